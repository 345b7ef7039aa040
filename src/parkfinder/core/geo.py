from __future__ import annotations
from dataclasses import dataclass
from math import asin, cos, radians, sin, sqrt
from typing import Any, Mapping

from shapely.geometry import shape

"""
Geospatial helpers.

Distance math uses `math` only. Polygon centroids go through shapely; bay
outlines arrive as GeoJSON Polygon/MultiPolygon geometries and are reduced once,
at load time.
"""

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in decimal degrees."""

    lat: float
    lon: float


def haversine_km(a: GeoPoint, b: GeoPoint) -> float:
    """Compute great-circle distance in kilometers between two points.

    NaN coordinates propagate to a NaN distance; callers decide what that means.
    """
    lat1 = radians(a.lat)
    lon1 = radians(a.lon)
    lat2 = radians(b.lat)
    lon2 = radians(b.lon)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    # Rounding can push h a hair above 1 for antipodal points.
    return 2 * EARTH_RADIUS_KM * asin(sqrt(min(h, 1.0)))


def haversine_m(a: GeoPoint, b: GeoPoint) -> float:
    """Compute great-circle distance in meters between two points."""
    return haversine_km(a, b) * 1000.0


def polygon_centroid(geometry: Mapping[str, Any]) -> GeoPoint:
    """Return the geometric centroid of a GeoJSON geometry mapping.

    Raises:
        ValueError: If the geometry is empty or cannot be parsed.
    """
    try:
        geom = shape(geometry)
    except Exception as exc:
        raise ValueError(f"Invalid GeoJSON geometry: {exc}") from exc
    if geom.is_empty:
        raise ValueError("Cannot compute the centroid of an empty geometry.")
    c = geom.centroid
    return GeoPoint(lat=float(c.y), lon=float(c.x))
