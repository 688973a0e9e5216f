"""Filter features by their distance to a reference point."""

import logging
import math
from collections.abc import Iterable
from typing import Final

from infra_nearby.distance import distance
from infra_nearby.feature import Feature, FeatureCollection
from infra_nearby.geometry import Coordinate, Geometry, LineString, MultiLineString, Point, Polygon


__docformat__ = "google"
__all__ = (
    "DEFAULT_RADIUS_KM",
    "representative_point",
    "is_nearby",
    "filter_nearby",
)


DEFAULT_RADIUS_KM: Final[float] = 10.0
"""Default radius of the proximity rule in kilometers."""

_DEFAULT_LOGGER = logging.getLogger(__name__)
_DEFAULT_LOGGER.addHandler(logging.NullHandler())


def representative_point(geom: Geometry) -> Coordinate | None:
    """
    The single coordinate that stands in for a geometry in distance tests.

    - ``Point``: its coordinate
    - ``LineString``: its first coordinate
    - ``MultiLineString``: the first coordinate of its first line
    - ``Polygon``: the first coordinate of its outer ring

    This is a deliberately coarse approximation: a long line whose first vertex is
    far away is not considered nearby, even if it passes right by the reference point.

    Returns:
        the coordinate, or ``None`` if the geometry is empty where it matters,
        or if the coordinate is invalid
    """
    match geom:
        case Point(coordinate=c):
            point: Coordinate | None = c
        case LineString(coordinates=cs):
            point = cs[0] if cs else None
        case MultiLineString(lines=lines):
            point = lines[0].coordinates[0] if lines and lines[0].coordinates else None
        case Polygon():
            outer = geom.outer
            point = outer[0] if outer else None
        case _:
            point = None

    if point is None or not point.is_valid:
        return None

    return point


def is_nearby(feature: Feature, reference: Coordinate, radius_km: float) -> bool:
    """``True`` if the representative point of ``feature`` is within ``radius_km`` (inclusive)."""
    point = representative_point(feature.geometry)
    if point is None:
        return False
    return distance(reference, point) <= radius_km


def filter_nearby(
    collections: Iterable[FeatureCollection],
    reference: Coordinate,
    radius_km: float = DEFAULT_RADIUS_KM,
    logger: logging.Logger = _DEFAULT_LOGGER,
) -> list[FeatureCollection]:
    """
    Keep only features within a radius of the reference point.

    The filter is stable: collections stay in their order, and so do the features within
    them. The returned collections keep label and style, and share the ``Feature`` objects
    of the input collections.

    A radius of zero only keeps features that are exactly at the reference point,
    and a negative radius keeps nothing.

    Args:
        collections: the collections to filter
        reference: the reference point, f.e. the user's location or the map center
        radius_km: the radius in kilometers
        logger: the logger to use for diagnostics

    Returns:
        one collection per input collection

    Raises:
        ValueError: if ``radius_km`` is NaN, or ``reference`` is invalid
    """
    if math.isnan(radius_km):
        msg = "'radius_km' must not be NaN"
        raise ValueError(msg)

    if not reference.is_valid:
        msg = f"invalid reference point {reference!r}"
        raise ValueError(msg)

    nearby = []

    for collection in collections:
        features = tuple(f for f in collection.features if is_nearby(f, reference, radius_km))
        nearby.append(collection.with_features(features))
        logger.debug(f"{collection.label}: {len(features)}/{len(collection)} within {radius_km}km")

    return nearby
