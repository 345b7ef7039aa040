"""
Proximity radar hint.

The map draws concentric rings around the reference location, one per 250 m up to
the selected maximum radius, fading outwards. Only the five slider stops have a
drawing; any other maximum draws nothing.
"""

from __future__ import annotations

from parkfinder.domain.models import RadarBand

# max radius (km) -> ((ring radius m, fill opacity), ...)
RADAR_BANDS: dict[float, tuple[tuple[int, float], ...]] = {
    0.0: (),
    0.25: ((250, 0.11),),
    0.5: ((250, 0.12), (500, 0.09)),
    0.75: ((250, 0.15), (500, 0.10), (750, 0.07)),
    1.0: ((250, 0.22), (500, 0.13), (750, 0.08), (1000, 0.05)),
}


def radar_bands(max_radius_km: float) -> list[RadarBand]:
    """Return the rings to draw for a `radius_range` maximum."""
    rings = RADAR_BANDS.get(float(max_radius_km), ())
    return [RadarBand(radius_m=r, opacity=o) for r, o in rings]
