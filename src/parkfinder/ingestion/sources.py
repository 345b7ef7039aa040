"""
Source loaders: raw rows -> typed per-source records.

Each public `load_*` function returns exactly one of the five record collections the
fusion engine consumes. Source-specific quirks are handled here and nowhere else:
- the sensor and disability feeds call the bay key `bayid` and the device `deviceid`
- pay-stay segments call the road-segment key `street_segment_id`
- bay outlines come either as GeoJSON features (local) or a `the_geom` column (remote)

Rows that cannot be validated (e.g. missing their join key) are skipped and counted.
A source whose container shape is wrong, or whose rows all fail validation, raises
and fails the whole load. Pay-stay restrictions are narrowed to the rows in force
at `data.sensor_snapshot_at`, the same instant the occupancy snapshot describes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time
from typing import Any, Callable, Iterable, Mapping, TypeVar

from pydantic import BaseModel, ValidationError

from parkfinder.config.settings import Settings
from parkfinder.core.geo import polygon_centroid
from parkfinder.domain.sources import (
    BayGeometry,
    DisabilityRecord,
    OccupancyRecord,
    PayStayRestriction,
    PayStaySegment,
)
from parkfinder.ingestion.local import load_geojson, load_json
from parkfinder.ingestion.socrata_client import SocrataClient

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)


@dataclass(frozen=True)
class SourceBundle:
    """The five normalized inputs of the fusion engine."""

    bays: list[BayGeometry]
    occupancy: list[OccupancyRecord]
    disability: list[DisabilityRecord]
    segments: list[PayStaySegment]
    restrictions: list[PayStayRestriction]


def _validate_rows(
    rows: Iterable[Mapping[str, Any]],
    model: type[R],
    *,
    source: str,
    transform: Callable[[Mapping[str, Any]], Mapping[str, Any]] | None = None,
) -> list[R]:
    out: list[R] = []
    seen = 0
    skipped = 0
    for row in rows:
        seen += 1
        try:
            payload = transform(row) if transform else row
            out.append(model.model_validate(payload))
        except (ValidationError, ValueError, TypeError, KeyError):
            skipped += 1
    if seen and not out:
        # Every row rejected: the upstream schema changed, not a few bad rows.
        raise ValueError(f"{source}: no valid rows out of {seen}")
    if skipped:
        logger.warning("Skipped %d invalid %s rows", skipped, source)
    return out


def _renamed(mapping: dict[str, str]) -> Callable[[Mapping[str, Any]], Mapping[str, Any]]:
    def transform(row: Mapping[str, Any]) -> Mapping[str, Any]:
        out = dict(row)
        for src, dst in mapping.items():
            if src in out and dst not in out:
                out[dst] = out.pop(src)
        return out

    return transform


def _bay_from_geometry(properties: Mapping[str, Any], geometry: Any) -> dict[str, Any]:
    if not isinstance(geometry, Mapping):
        raise ValueError("bay has no geometry")
    centroid = polygon_centroid(geometry)
    return {**properties, "latitude": centroid.lat, "longitude": centroid.lon}


# Parsers -----------------------------------------------------------------------


def parse_bay_features(features: Iterable[Mapping[str, Any]]) -> list[BayGeometry]:
    """Parse GeoJSON bay features, reducing each outline to its centroid."""
    return _validate_rows(
        features,
        BayGeometry,
        source="bays",
        transform=lambda f: _bay_from_geometry(f.get("properties") or {}, f.get("geometry")),
    )


def parse_bay_rows(rows: Iterable[Mapping[str, Any]]) -> list[BayGeometry]:
    """Parse remote bay rows that carry their outline in a `the_geom` column."""
    return _validate_rows(
        rows,
        BayGeometry,
        source="bays",
        transform=lambda r: _bay_from_geometry(
            {k: v for k, v in r.items() if k != "the_geom"}, r.get("the_geom")
        ),
    )


def parse_occupancy(rows: Iterable[Mapping[str, Any]]) -> list[OccupancyRecord]:
    """Parse historical sensor rows (`bayid`, `deviceid`)."""
    return _validate_rows(
        rows,
        OccupancyRecord,
        source="sensors",
        transform=_renamed({"bayid": "bay_id", "deviceid": "occupied_id"}),
    )


def parse_live_occupancy(rows: Iterable[Mapping[str, Any]]) -> list[OccupancyRecord]:
    """Parse the live sensor feed, keeping only bays currently reported present."""
    present = [r for r in rows if str(r.get("status", "")).strip().lower() == "present"]

    def transform(row: Mapping[str, Any]) -> Mapping[str, Any]:
        return {"bay_id": row.get("bay_id"), "occupied_id": row.get("st_marker_id") or row.get("bay_id")}

    return _validate_rows(present, OccupancyRecord, source="sensors", transform=transform)


def parse_disability(rows: Iterable[Mapping[str, Any]]) -> list[DisabilityRecord]:
    """Parse disability restriction rows (`bayid`, `deviceid`)."""
    return _validate_rows(
        rows,
        DisabilityRecord,
        source="disability",
        transform=_renamed({"bayid": "bay_id", "deviceid": "disability_deviceid"}),
    )


def parse_segments(rows: Iterable[Mapping[str, Any]]) -> list[PayStaySegment]:
    """Parse pay-stay zone/segment rows (`street_segment_id`, `pay_stay_zone`)."""
    return _validate_rows(
        rows,
        PayStaySegment,
        source="paystay_segments",
        transform=_renamed({"street_segment_id": "rd_seg_id", "street_name": "street"}),
    )


def parse_restrictions(rows: Iterable[Mapping[str, Any]]) -> list[PayStayRestriction]:
    """Parse pay-stay cost/duration rows; numeric columns are coerced to ints."""
    return _validate_rows(rows, PayStayRestriction, source="paystay_restrictions")


def _clock(value: str | None) -> time | None:
    """Parse `07:30`, `07:30:00` or a `...T07:30:00.000` timestamp; None if unparseable."""
    if not value:
        return None
    text = value.split("T")[-1]
    try:
        return time.fromisoformat(text)
    except ValueError:
        return None


def restriction_applies(restriction: PayStayRestriction, at: datetime) -> bool:
    """True if `restriction` is in force at `at`.

    Missing day or window columns do not exclude a row.
    """
    day = restriction.day_of_week
    if day and day.strip().lower() != at.strftime("%A").lower():
        return False
    start, end = _clock(restriction.start_time), _clock(restriction.end_time)
    if start is not None and end is not None:
        return start <= at.time() < end
    return True


def select_restrictions(restrictions: Iterable[PayStayRestriction], snapshot_at: str) -> list[PayStayRestriction]:
    """Keep the restriction rows in force at the occupancy snapshot instant."""
    at = datetime.fromisoformat(snapshot_at)
    rows = list(restrictions)
    kept = [r for r in rows if restriction_applies(r, at)]
    logger.info("Restrictions in force at %s: %d of %d rows", snapshot_at, len(kept), len(rows))
    return kept


def distinct_by(rows: Iterable[Mapping[str, Any]], key: str) -> list[Mapping[str, Any]]:
    """Keep the first row for each value of `key` (rows without the key are kept)."""
    seen: set[Any] = set()
    out: list[Mapping[str, Any]] = []
    for row in rows:
        value = row.get(key)
        if value is not None:
            if value in seen:
                continue
            seen.add(value)
        out.append(row)
    return out


# Local snapshots ----------------------------------------------------------------


def load_local_bays(settings: Settings) -> list[BayGeometry]:
    return parse_bay_features(load_geojson(settings.data.local.bays))


def load_local_occupancy(settings: Settings) -> list[OccupancyRecord]:
    return parse_occupancy(load_json(settings.data.local.sensors))


def load_local_disability(settings: Settings) -> list[DisabilityRecord]:
    return parse_disability(load_json(settings.data.local.disability))


def load_local_segments(settings: Settings) -> list[PayStaySegment]:
    return parse_segments(load_json(settings.data.local.paystay_segments))


def load_local_restrictions(settings: Settings) -> list[PayStayRestriction]:
    rows = parse_restrictions(load_json(settings.data.local.paystay_restrictions))
    return select_restrictions(rows, settings.data.sensor_snapshot_at)


# Remote datasets ----------------------------------------------------------------


def _where(settings: Settings, dataset: str) -> dict[str, Any]:
    clause = settings.socrata.where.get(dataset)
    return {"$where": clause} if clause else {}


def load_remote_bays(settings: Settings, client: SocrataClient) -> list[BayGeometry]:
    return parse_bay_rows(client.fetch("bays", _where(settings, "bays")))


def historical_sensor_params(snapshot_at: str) -> dict[str, Any]:
    """SoQL filter for sensors whose stay spans `snapshot_at`."""
    return {
        "$where": f"arrivaltime <= '{snapshot_at}' and departuretime > '{snapshot_at}'",
    }


def load_remote_occupancy(settings: Settings, client: SocrataClient) -> list[OccupancyRecord]:
    if settings.data.occupancy_feed == "live":
        return parse_live_occupancy(client.fetch("sensors", _where(settings, "sensors")))
    rows = client.fetch("sensors_2019", historical_sensor_params(settings.data.sensor_snapshot_at))
    # One device can log overlapping stays; keep a single row per device.
    return parse_occupancy(distinct_by(rows, "deviceid"))


def load_remote_disability(settings: Settings, client: SocrataClient) -> list[DisabilityRecord]:
    return parse_disability(client.fetch("restrictions", _where(settings, "restrictions")))


def load_remote_segments(settings: Settings, client: SocrataClient) -> list[PayStaySegment]:
    return parse_segments(client.fetch("paystay_segments", _where(settings, "paystay_segments")))


def load_remote_restrictions(settings: Settings, client: SocrataClient) -> list[PayStayRestriction]:
    rows = parse_restrictions(client.fetch("paystay_restrictions", _where(settings, "paystay_restrictions")))
    # The feed lists every day and time window; fusion keys on zone alone.
    return select_restrictions(rows, settings.data.sensor_snapshot_at)
