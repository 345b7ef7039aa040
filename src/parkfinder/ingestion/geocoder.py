"""
Place search (OpenStreetMap Nominatim).

Resolves a free-text destination ("Queen Victoria Market") to a coordinate inside
the configured city viewbox. The state controller decides what to do with the
result; this module only talks HTTP.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from parkfinder.config.settings import Settings
from parkfinder.core.cache import FileCache
from parkfinder.core.http import get_json
from parkfinder.domain.models import GeoPoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlaceMatch:
    """One geocoder hit."""

    name: str
    location: GeoPoint


class NominatimGeocoder:
    """Nominatim search client with caching."""

    def __init__(self, settings: Settings, cache: FileCache):
        self._settings = settings
        self._cache = cache

    def _params(self, term: str) -> dict[str, Any]:
        cfg = self._settings.geocoder
        params: dict[str, Any] = {"format": "json", "q": term}
        if cfg.country_codes:
            params["countrycodes"] = cfg.country_codes
        if cfg.viewbox:
            params["viewbox"] = ",".join(str(v) for v in cfg.viewbox)
            params["bounded"] = 1 if cfg.bounded else 0
        return params

    def search(self, term: str) -> list[PlaceMatch]:
        """Return matches for `term`, best first. Empty terms return nothing."""
        term = term.strip()
        if not term:
            return []
        cfg = self._settings.geocoder

        def builder() -> Any:
            logger.info("Searching places for %r", term)
            return get_json(
                cfg.base_url,
                params=self._params(term),
                timeout_seconds=self._settings.app.http_timeout_seconds,
            )

        payload = self._cache.get_or_set(
            "geocoder",
            term.lower(),
            builder,
            ttl_seconds=int(cfg.cache_ttl_seconds),
            stale_if_error=True,
            stale_predicate=lambda exc: isinstance(exc, httpx.HTTPError),
        )
        if not isinstance(payload, list):
            return []

        matches: list[PlaceMatch] = []
        for item in payload:
            if not isinstance(item, dict):
                continue
            try:
                location = GeoPoint(lat=float(item["lat"]), lon=float(item["lon"]))
            except (KeyError, TypeError, ValueError):
                continue
            matches.append(PlaceMatch(name=str(item.get("display_name") or term), location=location))
        return matches

    def resolve(self, term: str) -> GeoPoint | None:
        """Return the best match location for `term`, or None."""
        matches = self.search(term)
        return matches[0].location if matches else None
