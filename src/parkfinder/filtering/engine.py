"""
Filter engine.

`filter_bays` is a pure function of (collection, criteria). It never mutates the
collection and keeps the collection's order. Predicates, in order:

1. distance from the reference location, within `radius_range` (inclusive; NaN fails)
2. cost: no cost data only passes when the minimum is 0, otherwise within `cost_range`
3. duration: unrestricted, or `maximum_stay >= duration_minimum`
4. `free_only`: no cost data or zero cost
5. `accessible_only`: disability permit bay
6. occupied bays are always dropped
7. one record per `bay_id`
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence

from parkfinder.core.geo import GeoPoint, haversine_km
from parkfinder.domain.models import BayRecord, FilterCriteria


def within_radius(distance_km: float, criteria: FilterCriteria) -> bool:
    if math.isnan(distance_km):
        return False
    rmin, rmax = criteria.radius_range
    return rmin <= distance_km <= rmax


def passes_cost(bay: BayRecord, criteria: FilterCriteria) -> bool:
    cmin, cmax = criteria.cost_range
    if bay.cost_per_hour is None:
        # No cost data is assumed free; it only shows up when the user allows $0.
        return cmin == 0
    return cmin <= bay.cost_per_hour <= cmax


def passes_duration(bay: BayRecord, criteria: FilterCriteria) -> bool:
    return bay.maximum_stay is None or bay.maximum_stay >= criteria.duration_minimum


def passes_flags(bay: BayRecord, criteria: FilterCriteria) -> bool:
    if criteria.free_only and not bay.is_free:
        return False
    if criteria.accessible_only and not bay.is_accessible:
        return False
    return not bay.is_occupied


def annotate_distances(
    collection: Iterable[BayRecord], origin: GeoPoint
) -> list[tuple[BayRecord, float]]:
    """Pair each bay with its distance (km) from `origin`."""
    return [(bay, haversine_km(bay.location, origin)) for bay in collection]


def filter_with_distances(
    collection: Sequence[BayRecord], criteria: FilterCriteria
) -> list[tuple[BayRecord, float]]:
    """Like `filter_bays`, but keeps the distance computed for each kept bay."""
    origin = criteria.reference_location.to_core()
    seen: set[str] = set()
    out: list[tuple[BayRecord, float]] = []
    for bay, distance in annotate_distances(collection, origin):
        if not within_radius(distance, criteria):
            continue
        if not passes_cost(bay, criteria):
            continue
        if not passes_duration(bay, criteria):
            continue
        if not passes_flags(bay, criteria):
            continue
        if bay.bay_id in seen:
            continue
        seen.add(bay.bay_id)
        out.append((bay, distance))
    return out


def filter_bays(collection: Sequence[BayRecord], criteria: FilterCriteria) -> list[BayRecord]:
    """Return the bays of `collection` visible under `criteria`, in source order."""
    return [bay for bay, _ in filter_with_distances(collection, criteria)]
