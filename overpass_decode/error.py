"""
Error types.

```
                              (DecodeError)
                                    ╷
             ┌──────────────────────┼──────────────────┐
             ╵                      ╵                  ╵
   (ElementDecodeError)       EnvelopeError      RunStateError
             ╷
   ┌─────────────────┬──────────────────────┬───────────────────────┐
   ╵                 ╵                      ╵                       ╵
MissingFieldError  MalformedFieldError  InvalidWayLengthError  EmptyRelationError
```

Element errors are recoverable: the offending element is left out of the result,
and decoding continues. An ``EnvelopeError`` ends a run without any result.
"""

from dataclasses import dataclass
from typing import Any, TypeGuard


__docformat__ = "google"
__all__ = (
    "DecodeError",
    "ElementDecodeError",
    "MissingFieldError",
    "MalformedFieldError",
    "InvalidWayLengthError",
    "EmptyRelationError",
    "EnvelopeError",
    "RunStateError",
    "is_element_error",
    "is_empty_relation",
    "is_envelope_error",
    "is_invalid_way_length",
)


class DecodeError(Exception):
    """Base exception for failures while decoding a response."""


@dataclass(kw_only=True)
class ElementDecodeError(DecodeError):
    """
    A single element could not be decoded.

    Attributes:
        element_id: the element's ID, or ``None`` if it could not be read
    """

    element_id: int | None

    def __str__(self) -> str:
        return f"failed to decode element {self._elem}"

    @property
    def _elem(self) -> str:
        return "<no id>" if self.element_id is None else str(self.element_id)


@dataclass(kw_only=True)
class MissingFieldError(ElementDecodeError):
    """
    A required field is absent from an element.

    Attributes:
        field: the name of the missing JSON field
    """

    field: str

    def __str__(self) -> str:
        return f"element {self._elem} is missing '{self.field}'"


@dataclass(kw_only=True)
class MalformedFieldError(ElementDecodeError):
    """
    A field of an element has an unexpected type or value.

    Attributes:
        field: the name of the malformed JSON field
        value: the offending value
    """

    field: str
    value: Any

    def __str__(self) -> str:
        return f"element {self._elem} has malformed '{self.field}': {self.value!r}"


@dataclass(kw_only=True)
class InvalidWayLengthError(ElementDecodeError):
    """
    The coordinates of a way could not be resolved for every one of its nodes.

    This happens if a referenced node is not part of the result set, or if entries of an
    embedded geometry could not be decoded.
    """

    @property
    def way_id(self) -> int | None:
        """The ID of the way."""
        return self.element_id

    def __str__(self) -> str:
        return f"way {self._elem} has an invalid length"


@dataclass(kw_only=True)
class EmptyRelationError(ElementDecodeError):
    """A displayable relation produced no geometry out of its members."""

    @property
    def relation_id(self) -> int | None:
        """The ID of the relation."""
        return self.element_id

    def __str__(self) -> str:
        return f"relation {self._elem} has no geometry"


@dataclass(kw_only=True)
class EnvelopeError(DecodeError):
    """
    The response itself is malformed, so there is nothing to decode.

    Attributes:
        reason: what is wrong with the response
        cause: an optional exception that caused this error
    """

    reason: str
    cause: BaseException | None = None

    def __str__(self) -> str:
        if self.cause is None:
            return f"malformed response: {self.reason}"
        return f"malformed response: {self.reason}: {self.cause}"


@dataclass(kw_only=True)
class RunStateError(DecodeError):
    """
    A decode run was started when it was not pending.

    Runs are single-use: once running, finished or cancelled, they cannot be started again.

    Attributes:
        kwargs: the run's ``kwargs``
        state: name of the state the run was in
    """

    kwargs: dict
    state: str

    def __str__(self) -> str:
        return f"cannot start run{self.kwargs!r}: it is {self.state}"


def is_element_error(err: BaseException | None) -> TypeGuard[ElementDecodeError]:
    """``True`` if this is an ``ElementDecodeError``."""
    return isinstance(err, ElementDecodeError)


def is_invalid_way_length(err: BaseException | None) -> TypeGuard[InvalidWayLengthError]:
    """``True`` if this is an ``InvalidWayLengthError``."""
    return isinstance(err, InvalidWayLengthError)


def is_empty_relation(err: BaseException | None) -> TypeGuard[EmptyRelationError]:
    """``True`` if this is an ``EmptyRelationError``."""
    return isinstance(err, EmptyRelationError)


def is_envelope_error(err: BaseException | None) -> TypeGuard[EnvelopeError]:
    """``True`` if this is an ``EnvelopeError``."""
    return isinstance(err, EnvelopeError)
