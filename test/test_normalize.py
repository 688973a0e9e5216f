import json
import logging

from infra_nearby.feature import FeatureCollection
from infra_nearby.geometry import Coordinate, LineString, MultiLineString, Point, Polygon
from infra_nearby.normalize import (
    RawCollection,
    normalize,
    normalize_collection,
    parse_attributes,
    parse_geometry,
)
from infra_nearby.style import DEFAULT_STYLES
from test.util import load_feature_data, verify_collection

import pytest


def _collection(*features: dict) -> dict:
    return {"type": "FeatureCollection", "features": list(features)}


def _feature(geometry, properties=None, **kwargs) -> dict:
    return {"type": "Feature", "geometry": geometry, "properties": properties, **kwargs}


@pytest.mark.xdist_group(name="fast")
def test_manila_dataset():
    collections = normalize(load_feature_data("manila.json"))

    assert [c.label for c in collections] == [
        "highways-layer-0",
        "highways-layer-1",
        "bridges-complete",
        "kilometer-posts-complete",
        "flood-control",
    ]
    assert [len(c) for c in collections] == [3, 1, 2, 0, 1]

    for collection in collections:
        verify_collection(collection)

    highways, _, bridges, _, _ = collections
    assert [f.id for f in highways] == [1, 2, 3]
    assert [f.id for f in bridges] == ["B-1", "B-2"]


@pytest.mark.xdist_group(name="fast")
def test_styles_by_label():
    collections = normalize(load_feature_data("manila.json"))
    styles = {c.label: c.style for c in collections}

    assert styles["highways-layer-0"] is DEFAULT_STYLES["highways-layer-0"]
    assert styles["kilometer-posts-complete"] is DEFAULT_STYLES["kilometer-posts-complete"]
    assert styles["flood-control"] is None


@pytest.mark.xdist_group(name="fast")
def test_null_payload():
    (collection,) = normalize([RawCollection(label="bridges-complete", payload=None)])

    assert isinstance(collection, FeatureCollection)
    assert collection.label == "bridges-complete"
    assert len(collection) == 0
    assert not collection


@pytest.mark.xdist_group(name="fast")
@pytest.mark.parametrize(
    "payload",
    [
        "{not json",
        b"\xff\xfe",
        [],
        42,
        {"type": "Feature", "features": []},
        {"type": "FeatureCollection"},
        {"type": "FeatureCollection", "features": {}},
    ],
)
def test_malformed_payload(payload):
    collection = normalize_collection("highways-layer-0", payload)
    assert len(collection) == 0


@pytest.mark.xdist_group(name="fast")
def test_text_payload():
    payload = json.dumps(_collection(_feature({"type": "Point", "coordinates": [121.0, 14.6]})))

    collection = normalize_collection("bridges-complete", payload)
    assert len(collection) == 1

    collection = normalize_collection("bridges-complete", payload.encode("utf-8"))
    assert len(collection) == 1


@pytest.mark.xdist_group(name="fast")
def test_decode_failure_does_not_block_later_features():
    payload = _collection(
        _feature('{"type": "Point", "coordinates": [121.0, 14.6]}', id="a"),
        _feature('{"type": "Point", "coordinates": [121.0,', id="b"),
        _feature('{"type": "Point", "coordinates": [121.1, 14.7]}', id="c"),
    )

    collection = normalize_collection("bridges-complete", payload)

    assert [f.id for f in collection] == ["a", "c"]
    assert collection.features[1].geometry == Point(coordinate=Coordinate(lon=121.1, lat=14.7))


@pytest.mark.xdist_group(name="fast")
@pytest.mark.parametrize(
    "geometry",
    [
        None,
        {"type": "Point"},
        {"type": "Point", "coordinates": []},
        {"type": "Point", "coordinates": [121.0]},
        {"type": "Point", "coordinates": [121.0, "14.6"]},
        {"type": "Point", "coordinates": [True, False]},
        {"type": "Point", "coordinates": [181.0, 14.6]},
        {"type": "Point", "coordinates": [121.0, -90.5]},
        {"type": "LineString", "coordinates": []},
        {"type": "LineString", "coordinates": [[121.0, 14.6], [121.0, None]]},
        {"type": "MultiLineString", "coordinates": []},
        {"type": "MultiLineString", "coordinates": [[[121.0, 14.6]], []]},
        {"type": "Polygon", "coordinates": []},
        {"type": "Polygon", "coordinates": [[]]},
        {"type": "Polygon", "coordinates": [[[121.0, 14.6], [121.1, 14.6], [121.0, 14.7]], []]},
        {"type": "MultiPoint", "coordinates": [[121.0, 14.6]]},
        {"type": "GeometryCollection", "geometries": []},
        [121.0, 14.6],
    ],
)
def test_invalid_geometry_is_dropped(geometry):
    payload = _collection(
        _feature(geometry, id="bad"),
        _feature({"type": "Point", "coordinates": [121.0, 14.6]}, id="good"),
    )

    collection = normalize_collection("bridges-complete", payload)

    assert [f.id for f in collection] == ["good"]


@pytest.mark.xdist_group(name="fast")
def test_non_finite_coordinates_are_dropped():
    payload = _collection(
        _feature({"type": "Point", "coordinates": [float("nan"), 14.6]}),
        _feature({"type": "Point", "coordinates": [121.0, float("inf")]}),
    )
    assert len(normalize_collection("bridges-complete", payload)) == 0


@pytest.mark.xdist_group(name="fast")
def test_feature_that_is_not_an_object_is_dropped():
    payload = _collection(
        "Feature",
        None,
        _feature({"type": "Point", "coordinates": [121.0, 14.6]}),
    )
    assert len(normalize_collection("bridges-complete", payload)) == 1


@pytest.mark.xdist_group(name="fast")
def test_feature_ids():
    payload = _collection(
        _feature({"type": "Point", "coordinates": [121.0, 14.6]}, id=7),
        _feature({"type": "Point", "coordinates": [121.0, 14.6]}, id="seven"),
        _feature({"type": "Point", "coordinates": [121.0, 14.6]}, id=True),
        _feature({"type": "Point", "coordinates": [121.0, 14.6]}, id=[7]),
        _feature({"type": "Point", "coordinates": [121.0, 14.6]}),
    )

    collection = normalize_collection("bridges-complete", payload)

    assert [f.id for f in collection] == [7, "seven", None, None, None]


@pytest.mark.xdist_group(name="fast")
def test_altitude_is_ignored():
    geom = parse_geometry({"type": "Point", "coordinates": [121.0, 14.6, 12.5]})
    assert geom == Point(coordinate=Coordinate(lon=121.0, lat=14.6))


@pytest.mark.xdist_group(name="fast")
def test_parse_geometry_kinds():
    assert parse_geometry('{"type": "LineString", "coordinates": [[1, 2], [3, 4]]}') == LineString(
        coordinates=(Coordinate(lon=1.0, lat=2.0), Coordinate(lon=3.0, lat=4.0))
    )

    multi = parse_geometry({"type": "MultiLineString", "coordinates": [[[1, 2]], [[3, 4], [5, 6]]]})
    assert isinstance(multi, MultiLineString)
    assert [len(line.coordinates) for line in multi.lines] == [1, 2]

    polygon = parse_geometry(
        {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 0]], [[0, 0], [0, 0]]]}
    )
    assert isinstance(polygon, Polygon)
    assert len(polygon.rings) == 2
    assert polygon.outer[1] == Coordinate(lon=1.0, lat=0.0)


@pytest.mark.xdist_group(name="fast")
@pytest.mark.parametrize(
    "raw,match",
    [
        (None, "no geometry"),
        ("{", "undecodable geometry"),
        ("[]", "geometry is not an object"),
        ({"type": "MultiPolygon", "coordinates": []}, "unsupported geometry type"),
        ({"type": "LineString", "coordinates": 1}, "expected coordinate array"),
        ({"type": "Point", "coordinates": [1]}, "bad position"),
    ],
)
def test_parse_geometry_errors(raw, match: str):
    with pytest.raises(ValueError, match=match):
        _ = parse_geometry(raw)


@pytest.mark.xdist_group(name="fast")
def test_parse_attributes():
    attributes = parse_attributes(
        {
            "BR_NAME": "Jones Bridge",
            "NUM_SPAN": 3,
            "BR_WIDTH": 18.5,
            "IS_OFFICIAL": True,
            "REMARKS": None,
            "tags": {"b": 1, "a": [1, 2]},
            "history": [1921, 1945],
            1: "one",
        }
    )

    assert attributes == {
        "BR_NAME": "Jones Bridge",
        "NUM_SPAN": 3,
        "BR_WIDTH": 18.5,
        "IS_OFFICIAL": True,
        "REMARKS": None,
        "tags": '{"a":[1,2],"b":1}',
        "history": "[1921,1945]",
        "1": "one",
    }

    assert parse_attributes(None) == {}
    assert parse_attributes(["BR_NAME"]) == {}


@pytest.mark.xdist_group(name="fast")
def test_raw_dataset_shapes():
    payload = _collection(_feature({"type": "Point", "coordinates": [121.0, 14.6]}))

    as_objects = normalize([RawCollection(label="a", payload=payload)])
    as_pairs = normalize([("a", payload)])
    as_mapping = normalize({"a": payload})

    for collections in (as_objects, as_pairs, as_mapping):
        (collection,) = collections
        assert collection.label == "a"
        assert len(collection) == 1


@pytest.mark.xdist_group(name="fast")
def test_logs_dropped_features(caplog: pytest.LogCaptureFixture):
    logger = logging.getLogger("test_normalize")

    payload = _collection(
        _feature({"type": "Point", "coordinates": [121.0, 14.6]}),
        _feature({"type": "Point", "coordinates": [999.0, 14.6]}),
    )

    with caplog.at_level(logging.DEBUG, logger="test_normalize"):
        _ = normalize_collection("bridges-complete", payload, logger=logger)
        _ = normalize_collection("kilometer-posts-complete", None, logger=logger)

    assert "bridges-complete[1]: dropped" in caplog.text
    assert "bridges-complete: 1 features (1 dropped)" in caplog.text
    assert "no data for 'kilometer-posts-complete'" in caplog.text


@pytest.mark.xdist_group(name="fast")
def test_oversized_coordinates_are_dropped():
    huge = "1" + "0" * 400
    text = (
        '{"type": "FeatureCollection", "features": ['
        f'{{"type": "Feature", "id": "huge", "geometry": {{"type": "Point", "coordinates": [{huge}, 14.6]}}}},'
        '{"type": "Feature", "id": "good", "geometry": {"type": "Point", "coordinates": [121.0, 14.6]}}'
        "]}"
    )

    collection = normalize_collection("bridges-complete", text)
    assert [f.id for f in collection] == ["good"]

    payload = _collection(
        _feature({"type": "LineString", "coordinates": [[121.0, 14.6], [121.0, 10**400]]}, id="huge"),
        _feature({"type": "Point", "coordinates": [121.0, 14.6]}, id="good"),
    )

    collection = normalize_collection("bridges-complete", payload)
    assert [f.id for f in collection] == ["good"]


@pytest.mark.xdist_group(name="fast")
def test_deeply_nested_payload():
    nested = "[" * 100_000 + "]" * 100_000

    collection = normalize_collection("bridges-complete", nested)
    assert len(collection) == 0

    payload = _collection(
        _feature(nested, id="nested"),
        _feature({"type": "Point", "coordinates": [121.0, 14.6]}, id="good"),
    )

    collection = normalize_collection("bridges-complete", payload)
    assert [f.id for f in collection] == ["good"]


@pytest.mark.xdist_group(name="fast")
def test_deeply_nested_attribute():
    nested: list = []
    for _ in range(100_000):
        nested = [nested]

    attributes = parse_attributes({"BR_NAME": "Jones Bridge", "history": nested})

    assert attributes["BR_NAME"] == "Jones Bridge"
    assert isinstance(attributes["history"], str)
