"""
API routes.

The browser map renderer drives the state controller through these endpoints:
- GET  `/api/state`: current criteria, reference location, radar rings, visible count.
- GET  `/api/bays`: visible bays with their distance from the reference location.
- PUT  `/api/criteria`: partial criteria update (any subset of fields).
- POST `/api/location`: device geolocation.
- POST `/api/search`: free-text place search.
- POST `/api/duration/increment|decrement`: the +/- duration buttons.
- GET  `/api/bays/select`: details of the bay at a clicked coordinate.
- GET  `/api/quality`: data quality report.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from parkfinder.config.settings import get_settings
from parkfinder.core.errors import FilterInputError
from parkfinder.domain.models import BayDetails, BayRecord, GeoPoint
from parkfinder.fusion.engine import build_cache, load_master_data
from parkfinder.ingestion.geocoder import NominatimGeocoder
from parkfinder.quality.report import build_quality_report
from parkfinder.state.controller import ParkingStateController

router = APIRouter()


class CriteriaUpdate(BaseModel):
    """Partial criteria update; omitted fields keep their current value."""

    free_only: bool | None = None
    accessible_only: bool | None = None
    radius_min_km: float | None = None
    radius_max_km: float | None = None
    cost_min_cents: int | None = None
    cost_max_cents: int | None = None
    duration_minimum: int | None = None


class SearchRequest(BaseModel):
    term: str = Field(..., min_length=1)


class BayOut(BayRecord):
    distance_km: float


@lru_cache
def _controller() -> ParkingStateController:
    settings = get_settings()
    return ParkingStateController(load_master_data(settings), settings=settings)


@lru_cache
def _geocoder() -> NominatimGeocoder:
    settings = get_settings()
    return NominatimGeocoder(settings, build_cache(settings))


def _bad_request(e: Exception) -> HTTPException:
    return HTTPException(status_code=400, detail={"code": "VALIDATION_ERROR", "message": str(e)})


def _state_payload(ctrl: ParkingStateController) -> dict[str, Any]:
    lat, lon = ctrl.current_reference_location()
    return {
        "criteria": ctrl.current_criteria().model_dump(mode="json"),
        "reference_location": {"lat": lat, "lon": lon},
        "search": {"term": ctrl.search_term, "name": ctrl.search_name},
        "radar": [b.model_dump(mode="json") for b in ctrl.current_radar_bands()],
        "visible_count": len(ctrl.current_visible_set()),
        "total_count": len(ctrl.collection),
    }


@router.get("/api/health")
def get_health() -> dict:
    return {"status": "ok"}


@router.get("/api/state")
def get_state() -> dict:
    return _state_payload(_controller())


@router.get("/api/bays", response_model=list[BayOut])
def get_bays() -> list[BayOut]:
    """Return the visible bays, in collection order."""
    return [
        BayOut(**bay.model_dump(), distance_km=round(distance, 4))
        for bay, distance in _controller().current_visible_with_distances()
    ]


@router.put("/api/criteria")
def put_criteria(update: CriteriaUpdate) -> dict:
    """Apply a partial update as one criteria change."""
    ctrl = _controller()
    current = ctrl.current_criteria()
    changes: dict[str, Any] = {}
    if update.free_only is not None:
        changes["free_only"] = update.free_only
    if update.accessible_only is not None:
        changes["accessible_only"] = update.accessible_only
    if update.radius_min_km is not None or update.radius_max_km is not None:
        rmin, rmax = current.radius_range
        changes["radius_range"] = (
            update.radius_min_km if update.radius_min_km is not None else rmin,
            update.radius_max_km if update.radius_max_km is not None else rmax,
        )
    if update.cost_min_cents is not None or update.cost_max_cents is not None:
        cmin, cmax = current.cost_range
        changes["cost_range"] = (
            update.cost_min_cents if update.cost_min_cents is not None else cmin,
            update.cost_max_cents if update.cost_max_cents is not None else cmax,
        )
    if update.duration_minimum is not None:
        changes["duration_minimum"] = update.duration_minimum

    try:
        ctrl.update(**changes)
    except FilterInputError as e:
        raise _bad_request(e) from e
    return _state_payload(ctrl)


@router.post("/api/location")
def post_location(location: GeoPoint) -> dict:
    ctrl = _controller()
    ctrl.set_reference_location(location.lat, location.lon)
    return _state_payload(ctrl)


@router.post("/api/search")
def post_search(request: SearchRequest) -> dict:
    ctrl = _controller()
    try:
        location = ctrl.search_place(request.term, _geocoder())
    except FilterInputError as e:
        raise _bad_request(e) from e
    except Exception as e:
        raise HTTPException(
            status_code=502,
            detail={"code": "GEOCODER_ERROR", "message": str(e)},
        ) from e
    if location is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "PLACE_NOT_FOUND", "message": f"No match for '{request.term}'"},
        )
    return _state_payload(ctrl)


@router.post("/api/duration/increment")
def post_duration_increment() -> dict:
    ctrl = _controller()
    ctrl.increment_duration()
    return _state_payload(ctrl)


@router.post("/api/duration/decrement")
def post_duration_decrement() -> dict:
    ctrl = _controller()
    ctrl.decrement_duration()
    return _state_payload(ctrl)


@router.get("/api/bays/select", response_model=BayDetails)
def get_selected_bay(lat: float = Query(...), lon: float = Query(...)) -> BayDetails:
    details = _controller().select_bay(lat, lon)
    if details is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "BAY_NOT_FOUND", "message": "No visible bay at that location"},
        )
    return details


@router.get("/api/quality")
def get_quality() -> dict:
    return build_quality_report(get_settings())
