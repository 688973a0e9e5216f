"""Turn raw GeoJSON datasets into normalized feature collections."""

import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from json import JSONDecodeError
from typing import Any, TypeAlias

from infra_nearby.feature import Attributes, AttributeValue, Feature, FeatureCollection, FeatureId
from infra_nearby.geometry import (
    Coordinate,
    Geometry,
    LineString,
    MultiLineString,
    Point,
    Polygon,
    invalid_reason,
)
from infra_nearby.style import DEFAULT_STYLES, CollectionStyle


__docformat__ = "google"
__all__ = (
    "RawCollection",
    "RawDataset",
    "normalize",
    "normalize_collection",
    "parse_geometry",
    "parse_attributes",
)


_DEFAULT_LOGGER = logging.getLogger(__name__)
_DEFAULT_LOGGER.addHandler(logging.NullHandler())


@dataclass(kw_only=True, slots=True, frozen=True)
class RawCollection:
    """
    A named raw dataset, as it was loaded from bulk data or mapped from a query result.

    Attributes:
        label: the name of the source, f.e. ``"highways-layer-0"``
        payload: a GeoJSON ``FeatureCollection`` object, JSON text encoding one,
                 or ``None`` if the source could not be loaded
    """

    label: str
    payload: Any


RawDataset: TypeAlias = (
    Sequence[RawCollection] | Sequence[tuple[str, Any]] | Mapping[str, Any]
)
"""Raw collections as objects, ``(label, payload)`` pairs, or a mapping from label to payload."""


def normalize(
    raw: RawDataset,
    styles: Mapping[str, CollectionStyle] = DEFAULT_STYLES,
    logger: logging.Logger = _DEFAULT_LOGGER,
) -> list[FeatureCollection]:
    """
    Normalize every collection of a raw dataset.

    Problems are contained as locally as possible: a malformed feature is dropped from
    its collection, and a malformed collection payload results in an empty collection.
    Neither raises.

    Args:
        raw: the raw collections, in the order they should be rendered in
        styles: styles to attach to collections, keyed by label
        logger: the logger to use for diagnostics on dropped features and collections

    Returns:
        one collection per raw collection, in the same order
    """
    return [
        normalize_collection(label, payload, style=styles.get(label), logger=logger)
        for label, payload in _raw_items(raw)
    ]


def normalize_collection(
    label: str,
    payload: Any,
    style: CollectionStyle | None = None,
    logger: logging.Logger = _DEFAULT_LOGGER,
) -> FeatureCollection:
    """
    Normalize a single raw collection.

    Args:
        label: the name of the source
        payload: a GeoJSON ``FeatureCollection`` object, JSON text encoding one, or ``None``
        style: the style to attach to the collection
        logger: the logger to use for diagnostics

    Returns:
        the normalized collection, which is empty if the payload is absent or malformed
    """
    empty = FeatureCollection(label=label, features=(), style=style)

    if payload is None:
        logger.warning(f"no data for {label!r}, using empty collection")
        return empty

    if isinstance(payload, str | bytes):
        try:
            payload = json.loads(payload)
        except (JSONDecodeError, UnicodeDecodeError, RecursionError):
            logger.warning(f"undecodable data for {label!r}, using empty collection")
            return empty

    if (
        not isinstance(payload, Mapping)
        or payload.get("type") != "FeatureCollection"
        or not isinstance(payload.get("features"), list)
    ):
        logger.warning(f"invalid data for {label!r}, using empty collection")
        return empty

    raw_features = payload["features"]
    features = []

    for idx, raw_feature in enumerate(raw_features):
        feature = _feature(raw_feature, idx, label, logger)
        if feature is not None:
            features.append(feature)

    nb_dropped = len(raw_features) - len(features)
    logger.info(f"{label}: {len(features)} features ({nb_dropped} dropped)")

    return FeatureCollection(label=label, features=tuple(features), style=style)


def _raw_items(raw: RawDataset) -> Iterable[tuple[str, Any]]:
    if isinstance(raw, Mapping):
        yield from raw.items()
        return

    for item in raw:
        if isinstance(item, RawCollection):
            yield item.label, item.payload
        else:
            label, payload = item
            yield label, payload


def _feature(
    raw_feature: Any,
    idx: int,
    label: str,
    logger: logging.Logger,
) -> Feature | None:
    if not isinstance(raw_feature, Mapping):
        logger.debug(f"{label}[{idx}]: dropped, not an object")
        return None

    try:
        geometry = parse_geometry(raw_feature.get("geometry"))
    except ValueError as err:
        logger.debug(f"{label}[{idx}]: dropped, {err}")
        return None

    if reason := invalid_reason(geometry):
        logger.debug(f"{label}[{idx}]: dropped, {reason}")
        return None

    raw_id = raw_feature.get("id")
    feature_id: FeatureId | None = (
        raw_id if isinstance(raw_id, str | int) and not isinstance(raw_id, bool) else None
    )

    return Feature(
        geometry=geometry,
        attributes=parse_attributes(raw_feature.get("properties")),
        id=feature_id,
    )


def parse_geometry(raw_geometry: Any) -> Geometry:
    """
    Build a geometry from a GeoJSON geometry object, or JSON text that encodes one.

    The geometry is *not* validated against coordinate ranges or empty parts;
    use ``invalid_reason()`` for that.

    Raises:
        ValueError: if the geometry is missing, cannot be decoded, has an unsupported type,
                    or its coordinates are not nested the way its type requires
    """
    if raw_geometry is None:
        raise ValueError("no geometry")

    if isinstance(raw_geometry, str | bytes):
        try:
            raw_geometry = json.loads(raw_geometry)
        except (JSONDecodeError, UnicodeDecodeError, RecursionError) as err:
            raise ValueError(f"undecodable geometry: {err}") from err

    if not isinstance(raw_geometry, Mapping):
        raise ValueError("geometry is not an object")

    kind = raw_geometry.get("type")
    coords = raw_geometry.get("coordinates")

    match kind:
        case "Point":
            return Point(coordinate=_coordinate(coords))
        case "LineString":
            return LineString(coordinates=_coordinates(coords))
        case "MultiLineString":
            return MultiLineString(
                lines=tuple(LineString(coordinates=_coordinates(line)) for line in _array(coords))
            )
        case "Polygon":
            return Polygon(rings=tuple(_coordinates(ring) for ring in _array(coords)))
        case _:
            raise ValueError(f"unsupported geometry type {kind!r}")


def _array(value: Any) -> list:
    if not isinstance(value, list | tuple):
        raise ValueError("expected coordinate array")
    return list(value)


def _coordinates(value: Any) -> tuple[Coordinate, ...]:
    return tuple(_coordinate(position) for position in _array(value))


def _coordinate(value: Any) -> Coordinate:
    coordinate = Coordinate.from_position(value)
    if coordinate is None:
        raise ValueError(f"bad position {value!r}")
    return coordinate


def parse_attributes(raw_properties: Any) -> Attributes:
    """
    Build an attribute bag from a GeoJSON ``properties`` member.

    Scalars are kept as they are. Nested arrays and objects are flattened to compact
    JSON text, so that every value is one of the ``AttributeValue`` kinds.
    Non-string keys are converted to strings. Anything but an object yields an empty bag.
    """
    if not isinstance(raw_properties, Mapping):
        return {}
    return {str(k): _attribute_value(v) for k, v in raw_properties.items()}


def _attribute_value(value: Any) -> AttributeValue:
    if value is None or isinstance(value, str | bool | int | float):
        return value
    try:
        return json.dumps(value, separators=(",", ":"), sort_keys=True, default=str)
    except ValueError:
        # circular references
        return str(value)
    except RecursionError:
        return f"<too deeply nested {type(value).__name__}>"
