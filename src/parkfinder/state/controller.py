"""
Reactive state controller.

Owns the single live `FilterCriteria` (including the reference location) and the
visible bay set derived from it. Every named mutation:
1. validates the new value (`FilterInputError` leaves state untouched),
2. re-runs the filter engine synchronously over the full collection,
3. notifies subscribers if the visible set or the reference location changed.

Place search is the only input that can complete out of order. Each search gets a
ticket; only the newest ticket may move the reference location.
"""

from __future__ import annotations

import logging
from typing import Callable, Protocol, Sequence

from parkfinder.config.settings import Settings, get_settings
from parkfinder.core.errors import FilterInputError
from parkfinder.domain.models import BayDetails, BayRecord, FilterCriteria, GeoPoint, RadarBand
from parkfinder.filtering.engine import filter_with_distances
from parkfinder.presentation.radar import radar_bands
from parkfinder.presentation.selection import select_bay

logger = logging.getLogger(__name__)

Subscriber = Callable[[list[BayRecord]], None]


class PlaceResolver(Protocol):
    def resolve(self, term: str) -> GeoPoint | None: ...


def criteria_from_settings(settings: Settings) -> FilterCriteria:
    """Build the initial criteria from the `defaults` settings section."""
    d = settings.defaults
    lat, lon = d.reference_location
    return FilterCriteria.create(
        free_only=d.free_only,
        accessible_only=d.accessible_only,
        radius_range=d.radius_range,
        cost_range=d.cost_range,
        duration_minimum=d.duration_minimum,
        reference_location={"lat": lat, "lon": lon},
    )


class ParkingStateController:
    """Single-owner state object between UI events and the map renderer."""

    def __init__(
        self,
        collection: Sequence[BayRecord],
        *,
        criteria: FilterCriteria | None = None,
        settings: Settings | None = None,
    ):
        self._settings = settings or get_settings()
        self._collection = tuple(collection)
        self._criteria = criteria or criteria_from_settings(self._settings)
        self._subscribers: list[Subscriber] = []
        self._search_ticket = 0
        self._search_term = ""
        self._search_name = ""
        self._visible: list[tuple[BayRecord, float]] = filter_with_distances(
            self._collection, self._criteria
        )

    # Read side ----------------------------------------------------------------

    @property
    def collection(self) -> tuple[BayRecord, ...]:
        return self._collection

    def current_criteria(self) -> FilterCriteria:
        return self._criteria

    def current_visible_set(self) -> list[BayRecord]:
        return [bay for bay, _ in self._visible]

    def current_visible_with_distances(self) -> list[tuple[BayRecord, float]]:
        return list(self._visible)

    def current_reference_location(self) -> tuple[float, float]:
        loc = self._criteria.reference_location
        return (loc.lat, loc.lon)

    def current_radar_bands(self) -> list[RadarBand]:
        return radar_bands(self._criteria.radius_range[1])

    @property
    def search_term(self) -> str:
        return self._search_term

    @property
    def search_name(self) -> str:
        return self._search_name

    def select_bay(self, lat: float, lon: float) -> BayDetails | None:
        return select_bay(
            self.current_visible_set(),
            lat,
            lon,
            max_distance_m=self._settings.selection.max_match_distance_m,
        )

    # Subscriptions --------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register `callback(visible_set)`; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # Mutations ------------------------------------------------------------------

    def _apply(self, criteria: FilterCriteria) -> None:
        previous_ids = [bay.bay_id for bay, _ in self._visible]
        previous_loc = self._criteria.reference_location

        self._criteria = criteria
        self._visible = filter_with_distances(self._collection, criteria)

        changed = [bay.bay_id for bay, _ in self._visible] != previous_ids
        moved = criteria.reference_location != previous_loc
        if changed or moved:
            visible = self.current_visible_set()
            for callback in list(self._subscribers):
                callback(visible)

    def update(self, **changes) -> FilterCriteria:
        """Apply several criteria changes as one mutation (one recomputation)."""
        criteria = self._criteria.updated(**changes)
        self._apply(criteria)
        return criteria

    def set_free_only(self, value: bool) -> FilterCriteria:
        return self.update(free_only=bool(value))

    def set_accessible_only(self, value: bool) -> FilterCriteria:
        return self.update(accessible_only=bool(value))

    def set_radius_range(self, min_km: float, max_km: float) -> FilterCriteria:
        return self.update(radius_range=(float(min_km), float(max_km)))

    def set_cost_range_cents(self, min_cents: int, max_cents: int) -> FilterCriteria:
        return self.update(cost_range=(int(min_cents), int(max_cents)))

    def set_cost_range_dollars(self, min_dollars: float, max_dollars: float) -> FilterCriteria:
        """UI cost inputs are in dollars; criteria store cents."""
        return self.set_cost_range_cents(round(min_dollars * 100), round(max_dollars * 100))

    def set_duration_minimum(self, minutes: int) -> FilterCriteria:
        return self.update(duration_minimum=int(minutes))

    def set_duration_hours(self, hours: float) -> FilterCriteria:
        """UI duration input is in hours (fractions allowed); criteria store minutes."""
        if not hours >= self._settings.controller.min_duration_hours:
            raise FilterInputError(
                f"duration must be at least {self._settings.controller.min_duration_hours} hour(s)"
            )
        return self.set_duration_minimum(round(hours * 60))

    def increment_duration(self) -> FilterCriteria:
        step = self._settings.controller.duration_step_hours * 60
        return self.set_duration_minimum(self._criteria.duration_minimum + step)

    def decrement_duration(self) -> FilterCriteria:
        """Step the duration down, never below the configured minimum."""
        cfg = self._settings.controller
        floor = cfg.min_duration_hours * 60
        target = max(floor, self._criteria.duration_minimum - cfg.duration_step_hours * 60)
        return self.set_duration_minimum(target)

    def set_reference_location(self, lat: float, lon: float) -> FilterCriteria:
        """Move the reference location (device geolocation or a resolved search)."""
        return self.update(reference_location={"lat": float(lat), "lon": float(lon)})

    # Place search -----------------------------------------------------------------

    def begin_search(self, term: str) -> int:
        """Start a search for `term`; any earlier in-flight search becomes stale."""
        self._search_ticket += 1
        self._search_term = term
        return self._search_ticket

    def complete_search(self, ticket: int, location: GeoPoint | None, *, name: str = "") -> bool:
        """Apply a finished search. Returns False if it was superseded or found nothing."""
        if ticket != self._search_ticket:
            logger.debug("Discarding stale search result (ticket %d, current %d)", ticket, self._search_ticket)
            return False
        if location is None:
            return False
        self._search_name = name or self._search_term
        self.set_reference_location(location.lat, location.lon)
        return True

    def search_place(self, term: str, resolver: PlaceResolver) -> GeoPoint | None:
        """Resolve `term` and move the reference location to it (if still current)."""
        ticket = self.begin_search(term)
        location = resolver.resolve(term)
        if not self.complete_search(ticket, location):
            return None
        return location
