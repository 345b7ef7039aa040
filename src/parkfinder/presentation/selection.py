"""
Bay selection.

A map click arrives as a coordinate. We resolve it against the currently visible
bays (exact centroid match first, else the nearest bay within a small tolerance)
and return the descriptive fields an external popup displays.
"""

from __future__ import annotations

from typing import Sequence

from parkfinder.core.geo import GeoPoint, haversine_m
from parkfinder.domain.models import BayDetails, BayRecord

METER_TYPES: dict[int, str] = {60: "1P", 120: "2P", 180: "3P", 240: "4P"}


def meter_type(maximum_stay: int | None) -> str:
    """Meter label for a maximum stay in minutes (`120` -> `"2P"`)."""
    if maximum_stay is None:
        return "P"
    return METER_TYPES.get(maximum_stay, "P")


def format_cost(cost_per_hour: int | None) -> str | None:
    if cost_per_hour is None:
        return None
    return f"${cost_per_hour / 100:.2f}"


def find_bay(
    visible: Sequence[BayRecord], lat: float, lon: float, *, max_distance_m: float
) -> BayRecord | None:
    """Return the visible bay at (lat, lon), or the nearest one within `max_distance_m`."""
    for bay in visible:
        if bay.latitude == lat and bay.longitude == lon:
            return bay

    target = GeoPoint(lat=lat, lon=lon)
    best: BayRecord | None = None
    best_d = float("inf")
    for bay in visible:
        d = haversine_m(bay.location, target)
        if d < best_d:
            best, best_d = bay, d
    if best is not None and best_d <= max_distance_m:
        return best
    return None


def bay_details(bay: BayRecord) -> BayDetails:
    cost_label = format_cost(bay.cost_per_hour)
    return BayDetails(
        bay_id=bay.bay_id,
        latitude=bay.latitude,
        longitude=bay.longitude,
        street=bay.street,
        cost_per_hour=bay.cost_per_hour,
        cost_label=cost_label,
        start_time=bay.start_time,
        end_time=bay.end_time,
        is_accessible=bay.is_accessible,
        is_free=bay.is_free,
        meter_type=meter_type(bay.maximum_stay),
        # Popups show "No restrictions apply" unless all four are known.
        has_restrictions=None not in (bay.street, cost_label, bay.start_time, bay.end_time),
    )


def select_bay(
    visible: Sequence[BayRecord], lat: float, lon: float, *, max_distance_m: float = 25.0
) -> BayDetails | None:
    bay = find_bay(visible, lat, lon, max_distance_m=max_distance_m)
    return bay_details(bay) if bay is not None else None
