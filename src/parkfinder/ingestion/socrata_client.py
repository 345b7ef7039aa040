"""
Open-data ingestion client (Socrata SODA API, City of Melbourne portal).

This module is responsible only for:
- mapping logical dataset names (`bays`, `sensors_2019`, ...) to resource ids,
- fetching every page of a dataset with optional SoQL clauses,
- caching the raw rows on disk (stale-if-error on transport failures).

Parsing rows into typed records lives in `parkfinder.ingestion.sources`.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from parkfinder.config.settings import Settings
from parkfinder.core.cache import FileCache
from parkfinder.core.errors import UnrecognisedDatasetError
from parkfinder.core.http import get_json

logger = logging.getLogger(__name__)


class SocrataClient:
    """Socrata API client with paging and on-disk caching."""

    def __init__(self, settings: Settings, cache: FileCache):
        self._settings = settings
        self._cache = cache

    @staticmethod
    def _stale_ok(exc: Exception) -> bool:
        return isinstance(exc, httpx.HTTPError)

    def resource_url(self, dataset: str) -> str:
        """Return the JSON endpoint for a logical dataset name.

        Raises:
            UnrecognisedDatasetError: If `dataset` is not configured.
        """
        resource = self._settings.socrata.datasets.get(dataset)
        if not resource:
            raise UnrecognisedDatasetError(dataset)
        base = self._settings.socrata.base_url.rstrip("/")
        return f"{base}/{resource}.json"

    def _headers(self) -> dict[str, str]:
        token = self._settings.socrata.app_token
        return {"X-App-Token": token} if token else {}

    def _fetch_all_pages(self, url: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        page_size = max(1, int(self._settings.socrata.page_size))
        rows: list[dict[str, Any]] = []
        offset = 0
        while True:
            page_params = {**params, "$limit": page_size, "$offset": offset}
            page = get_json(
                url,
                params=page_params,
                headers=self._headers(),
                timeout_seconds=self._settings.app.http_timeout_seconds,
            )
            if not isinstance(page, list):
                raise ValueError(f"Unexpected Socrata payload from {url}: expected a JSON array")
            rows.extend(r for r in page if isinstance(r, dict))
            if len(page) < page_size:
                return rows
            offset += page_size

    def fetch(self, dataset: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Fetch all rows of `dataset` (cached)."""
        url = self.resource_url(dataset)
        query = dict(params or {})
        cache_key = f"{url}?{json.dumps(query, sort_keys=True)}"

        def builder() -> list[dict[str, Any]]:
            logger.info("Loading remote dataset: %s", dataset)
            return self._fetch_all_pages(url, query)

        rows = self._cache.get_or_set(
            "socrata",
            cache_key,
            builder,
            ttl_seconds=int(self._settings.socrata.cache_ttl_seconds),
            stale_if_error=True,
            stale_predicate=self._stale_ok,
        )
        logger.info("Dataset %s loaded with %d rows", dataset, len(rows))
        return rows
