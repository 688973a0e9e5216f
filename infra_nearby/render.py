"""Map features to renderer-agnostic drawable primitives."""

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import Final, TypeAlias

from infra_nearby.feature import Attributes, Feature, FeatureCollection
from infra_nearby.geometry import Coordinate, LineString, MultiLineString, Point, Polygon
from infra_nearby.spatial import GeoJsonDict, Spatial
from infra_nearby.style import CollectionStyle, default_style


__docformat__ = "google"
__all__ = (
    "Marker",
    "Polyline",
    "Outline",
    "RenderPrimitive",
    "TITLE_KEYS",
    "DESCRIPTION_KEYS",
    "DEFAULT_TITLE",
    "DEFAULT_DESCRIPTION",
    "to_primitives",
    "render",
    "resolve",
    "select",
)


TITLE_KEYS: Final[tuple[str, ...]] = ("BR_NAME", "name")
"""Attribute keys that are tried in order to find a marker title."""

DESCRIPTION_KEYS: Final[tuple[str, ...]] = ("ROAD_NAME", "description")
"""Attribute keys that are tried in order to find a marker description."""

DEFAULT_TITLE: Final[str] = "Infrastructure"
"""Marker title if none of the ``TITLE_KEYS`` has a value."""

DEFAULT_DESCRIPTION: Final[str] = "DPWH Infrastructure"
"""Marker description if none of the ``DESCRIPTION_KEYS`` has a value."""


@dataclass(kw_only=True, slots=True, repr=False, eq=False)
class _Primitive(Spatial):
    """
    Common attributes of every primitive.

    Attributes:
        feature: the feature this primitive was derived from
        collection_index: position of the feature's collection in the rendered view
        feature_index: position of the feature within its collection
        stroke_color: stroke color as ``#RRGGBB``
        stroke_width: stroke width in screen units
    """

    feature: Feature
    collection_index: int
    feature_index: int
    stroke_color: str
    stroke_width: float

    @property
    def key(self) -> str:
        """An identifier that is unique within one rendered view."""
        return f"{self.collection_index}-{self.feature_index}"

    def _properties(self) -> GeoJsonDict:
        # https://github.com/mapbox/simplestyle-spec
        return {
            "stroke": self.stroke_color,
            "stroke-width": self.stroke_width,
            "collection_index": self.collection_index,
            "feature_index": self.feature_index,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.key}, {self.stroke_color})"


@dataclass(kw_only=True, slots=True, repr=False, eq=False)
class Marker(_Primitive):
    """
    A marker at a single coordinate, derived from a ``Point``.

    Attributes:
        coordinate: where to place the marker
        title: a short label, f.e. a bridge name
        description: a secondary label, f.e. the road a bridge is on
    """

    coordinate: Coordinate
    title: str
    description: str

    @property
    def geojson(self) -> GeoJsonDict:
        """A GeoJSON ``Feature`` with ``Point`` geometry and simplestyle properties."""
        properties = self._properties()
        properties["marker-color"] = self.stroke_color
        properties["title"] = self.title
        properties["description"] = self.description
        return {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": self.coordinate.position},
            "properties": properties,
        }


@dataclass(kw_only=True, slots=True, repr=False, eq=False)
class Polyline(_Primitive):
    """
    An open line, derived from a ``LineString`` or one line of a ``MultiLineString``.

    Attributes:
        coordinates: the vertices of the line, at least one
        line_index: for lines of a ``MultiLineString``, the position of the line
    """

    coordinates: tuple[Coordinate, ...]
    line_index: int | None = None

    @property
    def key(self) -> str:
        """An identifier that is unique within one rendered view."""
        key = f"{self.collection_index}-{self.feature_index}"
        return key if self.line_index is None else f"{key}-{self.line_index}"

    @property
    def geojson(self) -> GeoJsonDict:
        """A GeoJSON ``Feature`` with ``LineString`` geometry and simplestyle properties."""
        return {
            "type": "Feature",
            "geometry": {
                "type": "LineString",
                "coordinates": [c.position for c in self.coordinates],
            },
            "properties": self._properties(),
        }


@dataclass(kw_only=True, slots=True, repr=False, eq=False)
class Outline(_Primitive):
    """
    The outline of a ``Polygon``, drawn along its outer ring only.

    Attributes:
        coordinates: the vertices of the outer ring, as given in the source
        fill_color: the stroke color at reduced opacity, as ``#RRGGBBAA``
    """

    coordinates: tuple[Coordinate, ...]
    fill_color: str

    @property
    def geojson(self) -> GeoJsonDict:
        """A GeoJSON ``Feature`` with ``Polygon`` geometry and simplestyle properties."""
        ring = [c.position for c in self.coordinates]
        if ring[0] != ring[-1]:
            ring.append(ring[0])  # GeoJSON rings must be closed

        properties = self._properties()
        properties["fill"] = self.fill_color[:7]
        properties["fill-opacity"] = round(int(self.fill_color[7:], 16) / 255, 3)

        return {
            "type": "Feature",
            "geometry": {"type": "Polygon", "coordinates": [ring]},
            "properties": properties,
        }


RenderPrimitive: TypeAlias = Marker | Polyline | Outline
"""Any of the drawable primitives."""


def to_primitives(collection: FeatureCollection, collection_index: int) -> list[RenderPrimitive]:
    """
    Map every feature of a collection to drawable primitives.

    - ``Point`` -> one ``Marker``, labeled via ``TITLE_KEYS`` and ``DESCRIPTION_KEYS``
    - ``LineString`` -> one ``Polyline``
    - ``MultiLineString`` -> one ``Polyline`` per line
    - ``Polygon`` -> one ``Outline`` of the outer ring; holes are not drawn

    Invalid vertices are skipped. A line or ring that has no valid vertices left
    does not produce a primitive; for multi-lines, this applies to each line individually.

    Primitives are styled with the collection's ``style``, or, if it has none, with
    the palette style at ``collection_index``.

    Args:
        collection: the collection to map
        collection_index: the position of the collection in the rendered view

    Returns:
        the primitives in feature order
    """
    style = collection.style or default_style(collection_index)
    primitives: list[RenderPrimitive] = []

    for feature_index, feature in enumerate(collection.features):
        primitives.extend(_feature_primitives(feature, collection_index, feature_index, style))

    return primitives


def render(collections: Iterable[FeatureCollection]) -> list[RenderPrimitive]:
    """
    Map an entire view to primitives.

    The result is in z-order: primitives of earlier collections come first,
    and are meant to be drawn first.
    """
    return [
        primitive
        for collection_index, collection in enumerate(collections)
        for primitive in to_primitives(collection, collection_index)
    ]


def resolve(primitive: RenderPrimitive) -> Feature:
    """The feature a primitive was derived from, f.e. after it was tapped."""
    return primitive.feature


def select(primitive: RenderPrimitive) -> Attributes:
    """A copy of the full attribute bag of the feature a primitive was derived from."""
    return dict(primitive.feature.attributes)


def _feature_primitives(
    feature: Feature,
    collection_index: int,
    feature_index: int,
    style: CollectionStyle,
) -> Iterator[RenderPrimitive]:
    common = {
        "feature": feature,
        "collection_index": collection_index,
        "feature_index": feature_index,
        "stroke_color": style.color,
        "stroke_width": style.width,
    }

    match feature.geometry:
        case Point(coordinate=c):
            if c.is_valid:
                yield Marker(
                    **common,
                    coordinate=c,
                    title=str(feature.attribute(*TITLE_KEYS, default=DEFAULT_TITLE)),
                    description=str(
                        feature.attribute(*DESCRIPTION_KEYS, default=DEFAULT_DESCRIPTION)
                    ),
                )
        case LineString(coordinates=cs):
            if coords := _valid(cs):
                yield Polyline(**common, coordinates=coords)
        case MultiLineString(lines=lines):
            for line_index, line in enumerate(lines):
                if coords := _valid(line.coordinates):
                    yield Polyline(**common, coordinates=coords, line_index=line_index)
        case Polygon():
            if coords := _valid(feature.geometry.outer):
                yield Outline(**common, coordinates=coords, fill_color=style.fill)
        case _:
            raise AssertionError(feature.geometry)


def _valid(coords: Sequence[Coordinate]) -> tuple[Coordinate, ...]:
    return tuple(c for c in coords if c.is_valid)
