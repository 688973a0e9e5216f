"""Features, their attribute bags, and ordered collections of features."""

from collections.abc import Iterator
from dataclasses import dataclass, field, replace
from typing import TypeAlias

from infra_nearby.geometry import Geometry, geometry_mapping, geometry_type
from infra_nearby.spatial import GeoJsonDict, Spatial
from infra_nearby.style import CollectionStyle


__docformat__ = "google"
__all__ = (
    "AttributeValue",
    "Attributes",
    "FeatureId",
    "Feature",
    "FeatureCollection",
)


AttributeValue: TypeAlias = str | int | float | bool | None
"""The scalar kinds an attribute can have."""

Attributes: TypeAlias = dict[str, AttributeValue]
"""An attribute bag: free-form keys mapped to scalar values."""

FeatureId: TypeAlias = str | int
"""The optional ``id`` member of a GeoJSON feature."""


@dataclass(kw_only=True, slots=True, repr=False, eq=False)
class Feature(Spatial):
    """
    A single geometry with its attributes.

    Attributes are opaque to the engine, except for a few well-known keys used to label
    markers and to summarize features that were tapped. Features compare by identity,
    which is what makes the nearby view a subset of the complete view.

    Attributes:
        geometry: the normalized geometry
        attributes: the attribute bag, which is the ``properties`` member in GeoJSON
        id: the ``id`` member of the source GeoJSON feature, if there was one
    """

    geometry: Geometry
    attributes: Attributes = field(default_factory=dict)
    id: FeatureId | None = None

    def attribute(self, *keys: str, default: AttributeValue = None) -> AttributeValue:
        """
        Look up the first of the given keys that has a value.

        Keys are tried in order. ``None`` values and empty strings count as missing,
        so that a blank ``BR_NAME`` falls through to the next key.

        Returns:
            the first value found, or ``default``
        """
        for key in keys:
            value = self.attributes.get(key)
            if value is not None and value != "":
                return value
        return default

    @property
    def type(self) -> str:
        """The GeoJSON type tag of this feature's geometry."""
        return geometry_type(self.geometry)

    @property
    def geojson(self) -> GeoJsonDict:
        """A GeoJSON ``Feature`` with ``properties`` set to the attribute bag."""
        feature: GeoJsonDict = {
            "type": "Feature",
            "geometry": geometry_mapping(self.geometry),
            "properties": dict(self.attributes),
        }
        if self.id is not None:
            feature["id"] = self.id
        return feature

    def __repr__(self) -> str:
        ident = f" {self.id!r}" if self.id is not None else ""
        return f"{type(self).__name__}({self.type}{ident})"


@dataclass(kw_only=True, slots=True, repr=False, eq=False)
class FeatureCollection(Spatial):
    """
    An ordered sequence of features that came from the same source.

    The order of features is preserved from the source, since it doubles as the z-order
    when rendering.

    Attributes:
        label: the name of the source, f.e. ``"bridges-complete"``
        features: the features, in source order
        style: the style registered for ``label``, or ``None`` to fall back to
               the palette color of the collection's position
    """

    label: str
    features: tuple[Feature, ...] = ()
    style: CollectionStyle | None = None

    def with_features(self, features: tuple[Feature, ...]) -> "FeatureCollection":
        """A collection with the same label and style, but other features."""
        return replace(self, features=features)

    @property
    def geojson(self) -> GeoJsonDict:
        """A GeoJSON ``FeatureCollection``."""
        return {
            "type": "FeatureCollection",
            "features": [feature.geojson for feature in self.features],
        }

    def __len__(self) -> int:
        return len(self.features)

    def __iter__(self) -> Iterator[Feature]:
        return iter(self.features)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.label!r}, {len(self.features)} features)"
