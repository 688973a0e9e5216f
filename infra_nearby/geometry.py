"""Coordinates and the four supported geometry kinds."""

import math
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Any, TypeAlias

from infra_nearby.spatial import GeoJsonDict

import shapely.geometry
from shapely.geometry.base import BaseGeometry


__docformat__ = "google"
__all__ = (
    "Coordinate",
    "Point",
    "LineString",
    "MultiLineString",
    "Polygon",
    "Geometry",
    "GEOMETRY_TYPES",
    "geometry_type",
    "geometry_mapping",
    "invalid_reason",
    "vertices",
    "to_shape",
)


@dataclass(kw_only=True, slots=True, frozen=True)
class Coordinate:
    """
    A geographic coordinate in decimal degrees on the WGS 84 ellipsoid.

    The order is the one used by GeoJSON positions: longitude first, then latitude.
    Creating a coordinate does not validate it; see ``is_valid``.

    Attributes:
        lon: longitude in ``[-180, 180]``
        lat: latitude in ``[-90, 90]``
    """

    lon: float
    lat: float

    @property
    def is_valid(self) -> bool:
        """``True`` if both components are finite and within their ranges."""
        return (
            math.isfinite(self.lon)
            and math.isfinite(self.lat)
            and -180.0 <= self.lon <= 180.0
            and -90.0 <= self.lat <= 90.0
        )

    @classmethod
    def from_position(cls, position: Any) -> "Coordinate | None":
        """
        Read a GeoJSON position like ``[lon, lat]`` or ``[lon, lat, alt]``.

        Returns:
            ``None`` if ``position`` is not an array of at least two numbers,
            otherwise a coordinate that may still be invalid (f.e. ``NaN`` or out of range)
        """
        if not isinstance(position, list | tuple) or len(position) < 2:
            return None
        lon, lat = position[0], position[1]
        if not _is_number(lon) or not _is_number(lat):
            return None
        try:
            return cls(lon=float(lon), lat=float(lat))
        except OverflowError:
            # integers beyond the range of floats
            return None

    @property
    def position(self) -> tuple[float, float]:
        """This coordinate as a GeoJSON position."""
        return self.lon, self.lat

    def __repr__(self) -> str:
        return f"{type(self).__name__}(lon={self.lon}, lat={self.lat})"


@dataclass(kw_only=True, slots=True, frozen=True)
class Point:
    """A single coordinate."""

    coordinate: Coordinate


@dataclass(kw_only=True, slots=True, frozen=True)
class LineString:
    """An ordered sequence of coordinates; a single coordinate is a valid line."""

    coordinates: tuple[Coordinate, ...]


@dataclass(kw_only=True, slots=True, frozen=True)
class MultiLineString:
    """An ordered sequence of lines."""

    lines: tuple[LineString, ...]


@dataclass(kw_only=True, slots=True, frozen=True)
class Polygon:
    """
    An ordered sequence of rings.

    The first ring is the outer boundary, any further rings are holes. Rings are
    kept as they were given: they are neither closed nor re-oriented.
    """

    rings: tuple[tuple[Coordinate, ...], ...]

    @property
    def outer(self) -> tuple[Coordinate, ...]:
        """The outer ring, or an empty tuple if there are no rings."""
        return self.rings[0] if self.rings else ()


Geometry: TypeAlias = Point | LineString | MultiLineString | Polygon
"""A geometry of one of the four supported kinds."""

GEOMETRY_TYPES = ("Point", "LineString", "MultiLineString", "Polygon")
"""GeoJSON type tags of the supported geometry kinds."""


def geometry_type(geom: Geometry) -> str:
    """The GeoJSON type tag of a geometry."""
    match geom:
        case Point():
            return "Point"
        case LineString():
            return "LineString"
        case MultiLineString():
            return "MultiLineString"
        case Polygon():
            return "Polygon"
        case _:
            raise AssertionError(geom)


def geometry_mapping(geom: Geometry) -> GeoJsonDict:
    """A GeoJSON geometry object for ``geom``."""
    match geom:
        case Point(coordinate=c):
            coords: Any = c.position
        case LineString(coordinates=cs):
            coords = [c.position for c in cs]
        case MultiLineString(lines=lines):
            coords = [[c.position for c in line.coordinates] for line in lines]
        case Polygon(rings=rings):
            coords = [[c.position for c in ring] for ring in rings]
        case _:
            raise AssertionError(geom)

    return {"type": geometry_type(geom), "coordinates": coords}


def invalid_reason(geom: Geometry) -> str | None:
    """
    Check a geometry against the invariants every normalized geometry upholds.

    An empty coordinate array at any nesting level, or any invalid coordinate,
    makes the whole geometry invalid.

    Returns:
        ``None`` if the geometry is valid, otherwise a short message stating why it is not
    """
    match geom:
        case Point(coordinate=c):
            parts: Sequence[Sequence[Coordinate]] = [(c,)]
        case LineString(coordinates=cs):
            parts = [cs]
        case MultiLineString(lines=lines):
            parts = [line.coordinates for line in lines]
        case Polygon(rings=rings):
            parts = rings
        case _:
            raise AssertionError(geom)

    if not parts:
        return f"{geometry_type(geom)} has no parts"

    for idx, part in enumerate(parts):
        if not part:
            return f"{geometry_type(geom)} has empty part at index {idx}"
        for c in part:
            if not c.is_valid:
                return f"{geometry_type(geom)} has invalid coordinate {c!r}"

    return None


def vertices(geom: Geometry) -> Iterator[Coordinate]:
    """All coordinates of a geometry, in order."""
    match geom:
        case Point(coordinate=c):
            yield c
        case LineString(coordinates=cs):
            yield from cs
        case MultiLineString(lines=lines):
            for line in lines:
                yield from line.coordinates
        case Polygon(rings=rings):
            for ring in rings:
                yield from ring
        case _:
            raise AssertionError(geom)


def to_shape(geom: Geometry) -> BaseGeometry:
    """
    Build a Shapely geometry with x/y referring to lon/lat.

    Shapely works on the Cartesian plane, so distances and areas of the result are
    in degrees and only useful for relative comparisons. Parts that Shapely cannot
    represent degrade: one-coordinate lines become points, and rings with less than
    three coordinates become lines or points. Holes that degrade are left out.

    Raises:
        ValueError: if the geometry has no coordinates at all
    """
    match geom:
        case Point(coordinate=c):
            return shapely.geometry.Point(c.position)
        case LineString(coordinates=cs):
            return _line_shape(cs)
        case MultiLineString(lines=lines):
            parts = [_line_shape(line.coordinates) for line in lines if line.coordinates]
            if not parts:
                raise ValueError("MultiLineString without coordinates")
            if all(isinstance(p, shapely.geometry.LineString) for p in parts):
                return shapely.geometry.MultiLineString(parts)
            return shapely.geometry.GeometryCollection(parts)
        case Polygon(rings=rings):
            outer = geom.outer
            if len(outer) < 3:
                return _line_shape(outer)
            holes = [[c.position for c in ring] for ring in rings[1:] if len(ring) >= 3]
            return shapely.geometry.Polygon([c.position for c in outer], holes=holes)
        case _:
            raise AssertionError(geom)


def _line_shape(coords: Sequence[Coordinate]) -> BaseGeometry:
    if not coords:
        raise ValueError("line without coordinates")
    if len(coords) == 1:
        return shapely.geometry.Point(coords[0].position)
    return shapely.geometry.LineString([c.position for c in coords])


def _is_number(value: Any) -> bool:
    # bool is a subclass of int, but 'true' is not a coordinate
    return isinstance(value, int | float) and not isinstance(value, bool)
