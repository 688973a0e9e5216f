import json
from pathlib import Path
from typing import Any

from infra_nearby.feature import Feature, FeatureCollection
from infra_nearby.geometry import invalid_reason, vertices
from infra_nearby.render import Marker, Outline, Polyline, RenderPrimitive

import geojson
import shapely.geometry


FEATURE_DATA_DIR = Path(__file__).resolve().parent / "feature_data"


def load_feature_data(name: str) -> Any:
    """Load a JSON file from the ``feature_data`` directory."""
    data_file = FEATURE_DATA_DIR / name
    with data_file.open(encoding="utf-8") as file:
        return json.load(file)


def verify_feature(feature: Feature) -> None:
    msg = repr(feature)

    assert isinstance(feature, Feature), msg
    assert invalid_reason(feature.geometry) is None, msg
    assert all(c.is_valid for c in vertices(feature.geometry)), msg

    for k, v in feature.attributes.items():
        assert isinstance(k, str), msg
        assert v is None or isinstance(v, str | int | float | bool), msg

    assert geojson.loads(json.dumps(feature.geojson)).is_valid, msg  # valid GeoJSON

    try:
        for spatial_dict in feature.geo_interfaces:
            _ = shapely.geometry.shape(spatial_dict.__geo_interface__["geometry"])
    except BaseException as err:
        raise AssertionError(f"{msg}: bad __geo_interface__: {err}")

    assert str(feature), msg  # just test this doesn't raise
    assert repr(feature), msg  # just test this doesn't raise


def verify_collection(collection: FeatureCollection) -> None:
    msg = repr(collection)

    assert isinstance(collection, FeatureCollection), msg
    assert collection.label, msg
    assert len(collection) == len(collection.features), msg

    for feature in collection:
        verify_feature(feature)

    assert geojson.loads(json.dumps(collection.geojson)).is_valid, msg

    assert repr(collection), msg  # just test this doesn't raise


def verify_primitive(primitive: RenderPrimitive) -> None:
    msg = repr(primitive)

    assert isinstance(primitive, Marker | Polyline | Outline), msg
    assert primitive.collection_index >= 0, msg
    assert primitive.feature_index >= 0, msg
    assert primitive.stroke_color.startswith("#"), msg
    assert len(primitive.stroke_color) == 7, msg
    assert primitive.stroke_width > 0.0, msg
    assert primitive.key.startswith(f"{primitive.collection_index}-{primitive.feature_index}")

    match primitive:
        case Marker():
            assert primitive.coordinate.is_valid, msg
            assert primitive.title, msg
            assert primitive.description, msg
        case Polyline():
            assert primitive.coordinates, msg
            assert all(c.is_valid for c in primitive.coordinates), msg
        case Outline():
            assert primitive.coordinates, msg
            assert all(c.is_valid for c in primitive.coordinates), msg
            assert primitive.fill_color.startswith(primitive.stroke_color), msg
            assert len(primitive.fill_color) == 9, msg

    feature_geojson = primitive.geojson
    assert geojson.loads(json.dumps(feature_geojson)), msg
    _ = shapely.geometry.shape(feature_geojson["geometry"])

    assert repr(primitive), msg  # just test this doesn't raise
