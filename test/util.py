import json
from pathlib import Path

from overpass_decode.element import Element, Node, Relation, Way
from overpass_decode.geometry import (
    Coordinate,
    MultiPolygon,
    MultiPolyline,
    Point,
    Polygon,
    Polyline,
)
from overpass_decode.run import DecodeRun, RunState

import geojson
import shapely.geometry


def load_response(file_name: str) -> str:
    test_dir = Path(__file__).resolve().parent
    data_file = test_dir / "element_data" / file_name
    return data_file.read_text(encoding="utf-8")


def response(*elements: dict, **extra) -> dict:
    """Wrap element objects in a response envelope."""
    return {
        "version": 0.6,
        "generator": "Overpass API 0.7.62.1 084b4234",
        "osm3s": {
            "timestamp_osm_base": "2024-07-21T21:09:02Z",
            "copyright": (
                "The data included in this document is from www.openstreetmap.org."
                " The data is made available under ODbL."
            ),
        },
        "elements": list(elements),
        **extra,
    }


def coords(*pairs: tuple[float, float]) -> tuple[Coordinate, ...]:
    return tuple(Coordinate(lat=lat, lon=lon) for lat, lon in pairs)


def geom(*pairs: tuple[float, float]) -> list[dict]:
    """Embedded geometry as in 'out geom' responses."""
    return [{"lat": lat, "lon": lon} for lat, lon in pairs]


def decoded(*elements: dict, **kwargs) -> DecodeRun:
    run = DecodeRun(response(*elements), **kwargs)
    run.run()
    verify_run(run)
    return run


def verify_run(run: DecodeRun) -> None:
    """Assert run state consistency."""
    assert str(run)  # just test this doesn't raise
    assert repr(run)  # just test this doesn't raise

    if run.state is not RunState.FINISHED:
        assert not run.done
        assert run.elements == {}
        assert run.registry is None
        assert run.error is None
        assert run.element_errors == []
        assert run.renderable == []
        assert run.duration_secs is None
        return

    assert run.done
    assert run.duration_secs is not None and run.duration_secs >= 0.0

    if run.error is not None:
        assert run.elements == {}
        assert run.registry is None
        return

    assert run.registry is not None
    assert len(run.registry) == len(run.elements)

    for elem_id, elem in run.elements.items():
        assert elem.id == elem_id
        verify_element(elem)

    assert geojson.loads(json.dumps(run.geojson))


def verify_element(elem: Element) -> None:
    msg = repr(elem)

    assert isinstance(elem, Element), msg

    for k, v in elem.tags.items():
        assert elem.tag(k) == v, msg

    assert elem.type.value in {"node", "way", "relation"}, msg
    assert elem.link.endswith(f"/{elem.type.value}/{elem.id}"), msg

    match elem:
        case Node():
            assert isinstance(elem.geometry, Point), msg
        case Way():
            assert isinstance(elem.geometry, Point | Polyline | Polygon), msg
            if isinstance(elem.geometry, Polyline | Polygon):
                assert len(elem.geometry.ring) == len(elem.node_ids), msg
        case Relation():
            assert isinstance(elem.geometry, Point | MultiPolygon | MultiPolyline | None), msg

    assert geojson.loads(json.dumps(elem.geojson)), msg  # valid GeoJSON

    if elem.geometry is not None:
        assert elem.geometry.shape.is_valid or isinstance(elem.geometry, MultiPolygon), msg

    (feature,) = elem.geo_interfaces
    assert feature.has_geometry == (elem.geometry is not None), msg

    try:
        if feature.has_geometry:
            _ = shapely.geometry.shape(feature.__geo_interface__["geometry"])
    except BaseException as err:
        raise AssertionError(f"{msg}: bad __geo_interface__: {err}")

    assert str(elem), msg  # just test this doesn't raise
    assert repr(elem), msg  # just test this doesn't raise
