"""
Per-source record schemas.

Each open dataset arrives loosely typed (Socrata serves every value as a string,
the GeoJSON snapshot mixes ints and strings). Loaders validate raw rows into these
models so the fusion and filter layers only ever see clean, typed values:
- identifiers become stripped strings (`1234`, `1234.0` and `" 1234 "` all join)
- numeric restriction fields become ints, blanks become `None`
"""

from __future__ import annotations

import math
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict


def _to_id(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return str(int(value)) if value.is_integer() else str(value)
    if isinstance(value, int):
        return str(value)
    text = str(value).strip()
    return text or None


def _to_int(value: Any) -> Any:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return int(round(number))


def _to_text(value: Any) -> Any:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


IdStr = Annotated[str, BeforeValidator(_to_id)]
OptionalIdStr = Annotated[str | None, BeforeValidator(_to_id)]
OptionalInt = Annotated[int | None, BeforeValidator(_to_int)]
OptionalText = Annotated[str | None, BeforeValidator(_to_text)]


class _SourceRecord(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class BayGeometry(_SourceRecord):
    """A bay outline reduced to its centroid."""

    bay_id: IdStr
    rd_seg_id: OptionalIdStr = None
    latitude: float
    longitude: float
    marker_id: OptionalText = None
    meter_id: OptionalText = None


class OccupancyRecord(_SourceRecord):
    """A sensor reporting a bay as occupied."""

    bay_id: IdStr
    occupied_id: IdStr


class DisabilityRecord(_SourceRecord):
    """A disability permit restriction on a bay."""

    bay_id: IdStr
    disability_deviceid: IdStr


class PayStaySegment(_SourceRecord):
    """Links a road segment to the pay-stay zone that covers it."""

    rd_seg_id: IdStr
    pay_stay_zone: IdStr
    street: OptionalText = None


class PayStayRestriction(_SourceRecord):
    """Cost and duration policy of a pay-stay zone."""

    pay_stay_zone: IdStr
    cost_per_hour: OptionalInt = None
    maximum_stay: OptionalInt = None
    start_time: OptionalText = None
    end_time: OptionalText = None
    day_of_week: OptionalText = None
