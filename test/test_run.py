import json
import logging
import re
from collections.abc import Mapping

from overpass_decode.error import (
    EnvelopeError,
    MalformedFieldError,
    RunStateError,
    is_envelope_error,
)
from overpass_decode.geometry import Coordinate
from overpass_decode.run import DecodeRun, RunState
from overpass_decode.tags import DEFAULT_POLICY, TagPolicy

import pytest

from test.util import decoded, load_response, response, verify_run


pytestmark = pytest.mark.xdist_group(name="fast")


NODES = (
    {"type": "node", "id": 1, "lat": 0, "lon": 0},
    {"type": "node", "id": 2, "lat": 1, "lon": 1},
)


def _hooked_policy(hook, trigger: str = "trigger") -> TagPolicy:
    """A default policy that calls ``hook`` whenever it classifies tags with a ``trigger`` key."""

    class HookedPolicy(TagPolicy):
        def is_interesting(self, tags: Mapping[str, str]) -> bool:
            if trigger in tags:
                hook()
            return super().is_interesting(tags)

    return HookedPolicy(
        interesting_keys=DEFAULT_POLICY.interesting_keys,
        area_keys=DEFAULT_POLICY.area_keys,
        area_values_one_of=DEFAULT_POLICY.area_values_one_of,
        area_values_none_of=DEFAULT_POLICY.area_values_none_of,
        linear_keys=DEFAULT_POLICY.linear_keys,
    )


def test_pending_run():
    run = DecodeRun(response(*NODES), id=1)

    assert run.state is RunState.PENDING
    assert run.kwargs == {"id": 1}
    assert run.policy is DEFAULT_POLICY
    assert str(run) == "run {'id': 1} (pending)"
    assert repr(run) == "DecodeRun(kwargs={'id': 1}, state='pending')"
    verify_run(run)


def test_finished_run():
    run = decoded(*NODES)

    assert run.state is RunState.FINISHED
    assert run.done
    assert not run.cancelled
    assert run.error is None
    assert set(run.elements) == {1, 2}
    assert len(run.registry) == 2
    assert re.fullmatch(r"run <no kwargs> \(2 elements in \d+\.\d\ds\)", str(run))
    assert repr(run) == (
        "DecodeRun(kwargs={}, state='finished', elements=2, element_errors=0)"
    )

    run.raise_for_error()  # does not raise


@pytest.mark.parametrize("encode", [json.dumps, lambda obj: json.dumps(obj).encode("utf-8")])
def test_unparsed_response(encode):
    run = DecodeRun(encode(response(*NODES)))
    run.run()

    verify_run(run)
    assert run.error is None
    assert run.elements[2].geometry.coordinate == Coordinate(lat=1.0, lon=1.0)


def test_response_file():
    run = DecodeRun(load_response("multipolygon.json").encode("utf-8"))
    run.run()

    verify_run(run)
    assert len(run.elements) == 14


@pytest.mark.parametrize(
    ("data", "reason"),
    [
        (b"{elements: []}", "not valid JSON"),
        ("", "not valid JSON"),
        (b"\x80abc", "not valid JSON"),
        ("[]", "expected a JSON object"),
        ([], "expected a JSON object"),
        ({"remark": "runtime error"}, "missing 'elements'"),
        ({"elements": {}}, "'elements' is not an array"),
        ('{"elements": null}', "'elements' is not an array"),
    ],
)
def test_envelope_error(data, reason):
    run = DecodeRun(data)
    run.run()

    verify_run(run)
    assert run.done
    assert is_envelope_error(run.error)
    assert run.error.reason == reason
    assert str(run.error).startswith(f"malformed response: {reason}")
    assert run.elements == {}
    assert run.registry is None
    assert str(run).startswith("run <no kwargs> (failed: malformed response:")
    assert repr(run).endswith("error='EnvelopeError')")

    with pytest.raises(EnvelopeError):
        run.raise_for_error()


def test_envelope_error_cause():
    run = DecodeRun("{")
    run.run()

    assert isinstance(run.error.cause, json.JSONDecodeError)
    assert str(run.error).startswith("malformed response: not valid JSON: ")


@pytest.mark.parametrize("lat", ["1" + "0" * 400, "1e400", "-Infinity", "NaN"])
def test_out_of_range_number_is_an_element_error(lat):
    body = (
        '{"elements": ['
        f'{{"type": "node", "id": 1, "lat": {lat}, "lon": 0}}, '
        '{"type": "node", "id": 2, "lat": 0, "lon": 0}'
        "]}"
    )

    run = DecodeRun(body)
    run.run()

    verify_run(run)
    assert run.done
    assert run.error is None
    assert set(run.elements) == {2}
    (err,) = run.element_errors
    assert isinstance(err, MalformedFieldError)
    assert err.element_id == 1
    assert err.field == "lat"


def test_integer_over_digit_limit_is_an_envelope_error():
    body = '{"elements": [{"type": "node", "id": ' + "1" * 5001 + ', "lat": 0, "lon": 0}]}'

    run = DecodeRun(body)
    run.run()

    assert run.done
    assert is_envelope_error(run.error)
    assert run.error.reason == "not valid JSON"
    assert isinstance(run.error.cause, ValueError)


def test_unexpected_error_cancels_run(caplog):
    caplog.set_level(logging.ERROR)

    def fail():
        raise RuntimeError("policy failed")

    run = DecodeRun(
        response(*NODES, {"type": "way", "id": 10, "nodes": [1, 2], "tags": {"trigger": "yes"}}),
        policy=_hooked_policy(hook=fail),
        id=4,
    )

    with pytest.raises(RuntimeError, match="policy failed"):
        run.run()

    verify_run(run)
    assert run.state is RunState.CANCELLED
    assert not run.done
    assert run.elements == {}
    assert run.error is None
    assert "failed unexpectedly" in caplog.text

    assert not run.cancel()
    with pytest.raises(RunStateError):
        run.run()


def test_empty_response():
    run = decoded()

    assert run.done
    assert run.error is None
    assert run.elements == {}
    assert run.renderable == []
    assert run.geojson == {"type": "FeatureCollection", "features": []}


def test_other_objects_are_ignored(caplog):
    logger = logging.getLogger("test_other_objects_are_ignored")

    with caplog.at_level(logging.DEBUG, logger=logger.name):
        run = decoded(
            {"type": "area", "id": 3600062428, "tags": {"name": "Berlin"}},
            {"type": "count", "id": 0, "tags": {"nodes": "2", "total": "2"}},
            "node",
            None,
            *NODES,
            logger=logger,
        )

    assert set(run.elements) == {1, 2}
    assert run.element_errors == []
    assert "ignore 4 objects that are not nodes, ways or relations" in caplog.messages


def test_element_errors_are_collected(caplog):
    logger = logging.getLogger("test_element_errors_are_collected")

    with caplog.at_level(logging.DEBUG, logger=logger.name):
        run = decoded(
            *NODES,
            {"type": "node", "id": 3, "lat": "x", "lon": 0},
            {"type": "way", "id": 10, "nodes": [1, 2]},
            {"type": "way", "id": 11, "nodes": [1, 4]},
            logger=logger,
        )

    assert run.error is None
    assert set(run.elements) == {1, 2, 10}
    assert [str(err) for err in run.element_errors] == [
        "element 3 has malformed 'lat': 'x'",
        "way 11 has an invalid length",
    ]
    assert "skip node: element 3 has malformed 'lat': 'x'" in caplog.messages
    assert "skip way: way 11 has an invalid length" in caplog.messages

    records = [r for r in caplog.records if r.message.startswith("skip ")]
    assert all(r.levelno == logging.WARNING for r in records)


def test_remark_is_logged(caplog):
    logger = logging.getLogger("test_remark_is_logged")

    with caplog.at_level(logging.WARNING, logger=logger.name):
        run = DecodeRun(response(*NODES, remark="runtime error: out of memory"), logger=logger)
        run.run()

    assert run.error is None
    assert "response has remark: 'runtime error: out of memory'" in caplog.messages


def test_elements_in_any_order():
    elements = [
        {
            "type": "relation",
            "id": 30,
            "members": [{"type": "way", "ref": 20, "role": ""}],
            "tags": {"type": "route"},
        },
        {"type": "way", "id": 20, "nodes": [1, 2]},
        *NODES,
    ]

    forward = decoded(*elements)
    backward = decoded(*reversed(elements))

    for run in (forward, backward):
        assert set(run.elements) == {1, 2, 20, 30}
        assert run.elements[30].geometry is not None
        assert run.elements[20].is_skippable


def test_duplicate_ids(caplog):
    logger = logging.getLogger("test_duplicate_ids")

    with caplog.at_level(logging.DEBUG, logger=logger.name):
        run = decoded(
            *NODES,
            {"type": "node", "id": 1, "lat": 5, "lon": 5},
            logger=logger,
        )

    assert len(run.elements) == 2
    assert run.elements[1].geometry.coordinate == Coordinate(lat=5.0, lon=5.0)
    assert "Node(1) replaces an element with the same ID" in caplog.messages


def test_cancel_between_node_and_way_pass():
    runs: list[DecodeRun] = []
    policy = _hooked_policy(hook=lambda: runs[0].cancel())

    run = DecodeRun(
        response(
            *NODES,
            {"type": "way", "id": 10, "nodes": [1, 2], "tags": {"trigger": "yes"}},
            {"type": "way", "id": 11, "nodes": [2, 1]},
        ),
        policy=policy,
    )
    runs.append(run)

    run.run()

    verify_run(run)
    assert run.state is RunState.CANCELLED
    assert run.cancelled
    assert not run.done
    assert run.elements == {}
    assert run.registry is None
    assert run.error is None
    assert run.element_errors == []
    assert str(run) == "run <no kwargs> (cancelled)"

    # cannot be cancelled twice, and cannot be restarted
    assert not run.cancel()
    with pytest.raises(RunStateError):
        run.run()


def test_cancel_during_node_pass():
    runs: list[DecodeRun] = []
    policy = _hooked_policy(hook=lambda: runs[0].cancel())

    run = DecodeRun(
        response(
            {"type": "node", "id": 1, "lat": 0, "lon": 0, "tags": {"trigger": "yes"}},
            {"type": "node", "id": 2, "lat": "malformed", "lon": 0},
        ),
        policy=policy,
    )
    runs.append(run)

    run.run()

    assert run.cancelled
    assert run.element_errors == []


def test_results_are_gated_while_running():
    runs: list[DecodeRun] = []
    observed = []

    def observe():
        run = runs[0]
        observed.append((run.state, run.done, run.elements, run.registry, run.error))

    run = DecodeRun(
        response(*NODES, {"type": "way", "id": 10, "nodes": [1, 2], "tags": {"trigger": "yes"}}),
        policy=_hooked_policy(hook=observe),
    )
    runs.append(run)

    run.run()

    assert observed == [(RunState.RUNNING, False, {}, None, None)]
    assert run.done
    assert set(run.elements) == {1, 2, 10}


def test_cancel_pending_run():
    run = DecodeRun(response(*NODES), id=2)

    assert run.cancel()
    assert run.state is RunState.CANCELLED
    assert not run.cancel()

    with pytest.raises(RunStateError) as exc_info:
        run.run()

    assert str(exc_info.value) == "cannot start run{'id': 2}: it is cancelled"
    verify_run(run)


def test_finished_run_cannot_be_cancelled_or_restarted():
    run = decoded(*NODES, id=3)

    assert not run.cancel()
    assert run.done

    with pytest.raises(RunStateError) as exc_info:
        run.run()

    assert exc_info.value.state == "finished"
    assert exc_info.value.kwargs == {"id": 3}
    assert set(run.elements) == {1, 2}


def test_results_are_copies():
    run = decoded(*NODES)

    run.elements.clear()
    run.element_errors.append(None)

    assert len(run.elements) == 2
    assert run.element_errors == []
