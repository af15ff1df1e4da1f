import json

from overpass_decode.error import (
    DecodeError,
    ElementDecodeError,
    EmptyRelationError,
    EnvelopeError,
    InvalidWayLengthError,
    MalformedFieldError,
    MissingFieldError,
    RunStateError,
    is_element_error,
    is_empty_relation,
    is_envelope_error,
    is_invalid_way_length,
)

import pytest


pytestmark = pytest.mark.xdist_group(name="fast")


def test_hierarchy():
    element_errors = [
        MissingFieldError(element_id=1, field="lat"),
        MalformedFieldError(element_id=1, field="lat", value="x"),
        InvalidWayLengthError(element_id=2),
        EmptyRelationError(element_id=3),
    ]

    for err in element_errors:
        assert isinstance(err, ElementDecodeError)
        assert isinstance(err, DecodeError)
        assert is_element_error(err)
        assert not is_envelope_error(err)

    envelope_err = EnvelopeError(reason="missing 'elements'")
    assert isinstance(envelope_err, DecodeError)
    assert is_envelope_error(envelope_err)
    assert not is_element_error(envelope_err)

    assert isinstance(RunStateError(kwargs={}, state="finished"), DecodeError)


def test_predicates():
    assert is_invalid_way_length(InvalidWayLengthError(element_id=2))
    assert not is_invalid_way_length(EmptyRelationError(element_id=2))
    assert is_empty_relation(EmptyRelationError(element_id=3))
    assert not is_empty_relation(InvalidWayLengthError(element_id=3))

    predicates = (is_element_error, is_envelope_error, is_invalid_way_length, is_empty_relation)

    for predicate in predicates:
        assert not predicate(None)
        assert not predicate(ValueError())


@pytest.mark.parametrize(
    ("err", "expected"),
    [
        (MissingFieldError(element_id=1, field="lat"), "element 1 is missing 'lat'"),
        (MissingFieldError(element_id=None, field="id"), "element <no id> is missing 'id'"),
        (
            MalformedFieldError(element_id=1, field="tags", value=["a"]),
            "element 1 has malformed 'tags': ['a']",
        ),
        (InvalidWayLengthError(element_id=2), "way 2 has an invalid length"),
        (EmptyRelationError(element_id=3), "relation 3 has no geometry"),
        (EmptyRelationError(element_id=None), "relation <no id> has no geometry"),
        (ElementDecodeError(element_id=4), "failed to decode element 4"),
        (
            EnvelopeError(reason="'elements' is not an array"),
            "malformed response: 'elements' is not an array",
        ),
        (
            RunStateError(kwargs={"id": 1}, state="running"),
            "cannot start run{'id': 1}: it is running",
        ),
    ],
)
def test_messages(err, expected):
    assert str(err) == expected


def test_envelope_error_with_cause():
    try:
        json.loads("{")
    except json.JSONDecodeError as cause:
        err = EnvelopeError(reason="not valid JSON", cause=cause)

    assert str(err) == f"malformed response: not valid JSON: {err.cause}"


def test_id_properties():
    assert InvalidWayLengthError(element_id=2).way_id == 2
    assert EmptyRelationError(element_id=3).relation_id == 3


def test_errors_can_be_raised():
    with pytest.raises(ElementDecodeError) as exc_info:
        raise MissingFieldError(element_id=1, field="lon")

    assert exc_info.value.element_id == 1
    assert exc_info.value.field == "lon"
