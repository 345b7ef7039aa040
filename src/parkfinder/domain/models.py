"""
Domain models (Pydantic).

These types represent the stable "contract" between layers:
- the fused, canonical bay entity (`BayRecord`)
- the user's current filter state (`FilterCriteria`)
- presentation hints handed to an external map renderer (`RadarBand`, `BayDetails`)

Missing values are explicit `None` fields with a documented interpretation:
- `cost_per_hour is None`: no cost data, treated as free.
- `maximum_stay is None`: unrestricted duration.
- `occupied_id is None`: vacant or unmonitored.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from parkfinder.core.errors import FilterInputError
from parkfinder.core.geo import GeoPoint as CoreGeoPoint


class GeoPoint(BaseModel):
    """A geographic point in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    lon: float = Field(..., ge=-180, le=180, allow_inf_nan=False)

    def to_core(self) -> CoreGeoPoint:
        return CoreGeoPoint(lat=self.lat, lon=self.lon)


class BayRecord(BaseModel):
    """One physical on-street parking bay after fusion."""

    model_config = ConfigDict(frozen=True)

    bay_id: str
    rd_seg_id: str | None = None
    latitude: float
    longitude: float

    marker_id: str | None = None
    meter_id: str | None = None

    occupied_id: str | None = None
    disability_deviceid: str | None = None

    pay_stay_zone: str | None = None
    cost_per_hour: int | None = None
    maximum_stay: int | None = None
    street: str | None = None
    start_time: str | None = None
    end_time: str | None = None

    @model_validator(mode="after")
    def _zone_fields_need_zone(self) -> "BayRecord":
        if self.pay_stay_zone is None:
            for name in ("cost_per_hour", "maximum_stay", "start_time", "end_time"):
                if getattr(self, name) is not None:
                    raise ValueError(f"bay {self.bay_id}: {name} set without a pay_stay_zone")
        return self

    @property
    def location(self) -> CoreGeoPoint:
        return CoreGeoPoint(lat=self.latitude, lon=self.longitude)

    @property
    def is_free(self) -> bool:
        return self.cost_per_hour is None or self.cost_per_hour == 0

    @property
    def is_accessible(self) -> bool:
        return self.disability_deviceid is not None

    @property
    def is_occupied(self) -> bool:
        return self.occupied_id is not None


class FilterCriteria(BaseModel):
    """Current user filter state. Immutable; the controller swaps whole instances."""

    model_config = ConfigDict(frozen=True)

    free_only: bool = False
    accessible_only: bool = False
    radius_range: tuple[float, float] = (0.0, 1.0)
    cost_range: tuple[int, int] = (0, 600)
    duration_minimum: int = Field(120, gt=0)
    reference_location: GeoPoint = GeoPoint(lat=-37.810513, lon=144.962840)

    @model_validator(mode="after")
    def _validate_ranges(self) -> "FilterCriteria":
        rmin, rmax = self.radius_range
        if not (0 <= rmin <= 1 and 0 <= rmax <= 1):
            raise ValueError("radius_range values must be within [0, 1] km")
        if rmin > rmax:
            raise ValueError("radius_range min must not exceed max")
        cmin, cmax = self.cost_range
        if cmin < 0 or cmax < 0:
            raise ValueError("cost_range values must be non-negative")
        if cmin > cmax:
            raise ValueError("cost_range min must not exceed max")
        return self

    @classmethod
    def create(cls, **values: Any) -> "FilterCriteria":
        """Validate `values`, raising `FilterInputError` instead of a pydantic error."""
        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            raise FilterInputError(_first_error(exc)) from exc

    def updated(self, **changes: Any) -> "FilterCriteria":
        """Return a re-validated copy with `changes` applied."""
        payload = self.model_dump(mode="python")
        payload.update(changes)
        return FilterCriteria.create(**payload)


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    err = errors[0]
    loc = ".".join(str(p) for p in err.get("loc", ()))
    msg = str(err.get("msg", "invalid value"))
    return f"{loc}: {msg}" if loc else msg


class RadarBand(BaseModel):
    """One proximity ring drawn around the reference location."""

    radius_m: int
    opacity: float


class BayDetails(BaseModel):
    """Descriptive fields of a selected bay, for an external popup component."""

    bay_id: str
    latitude: float
    longitude: float
    street: str | None = None
    cost_per_hour: int | None = None
    cost_label: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    is_accessible: bool = False
    is_free: bool = True
    meter_type: str = "P"
    has_restrictions: bool = False
