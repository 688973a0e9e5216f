"""Distance functions."""

from math import asin, cos, radians, sin, sqrt
from typing import Final

from infra_nearby.geometry import Coordinate


__docformat__ = "google"
__all__ = (
    "EARTH_RADIUS_KM",
    "distance",
    "distance_m",
)


EARTH_RADIUS_KM: Final[float] = 6371.0
"""Mean Earth radius in kilometers."""


def distance(a: Coordinate, b: Coordinate) -> float:
    """
    Great-circle distance between two coordinates using the haversine formula.

    This treats the Earth as a sphere with the mean radius, which is off by up to ~0.5%
    compared to geodesic distances on the WGS 84 ellipsoid. That is accurate enough to
    decide whether something is within a couple of kilometers, but not for navigation.

    Both coordinates are expected to be valid; see ``Coordinate.is_valid``.

    Returns:
        distance in kilometers

    References:
        - https://www.movable-type.co.uk/scripts/latlong.html
    """
    phi_a = radians(a.lat)
    phi_b = radians(b.lat)
    d_phi = radians(b.lat - a.lat)
    d_lambda = radians(b.lon - a.lon)

    h = sin(d_phi / 2.0) ** 2 + cos(phi_a) * cos(phi_b) * sin(d_lambda / 2.0) ** 2

    # rounding can push h just above 1 for antipodal points
    return 2.0 * EARTH_RADIUS_KM * asin(sqrt(min(h, 1.0)))


def distance_m(a: Coordinate, b: Coordinate) -> float:
    """Same as ``distance()``, but in meters."""
    return distance(a, b) * 1000.0
