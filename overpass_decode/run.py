"""Decode run state and the three decoding passes."""

import json
import logging
import threading
import time
from collections.abc import Iterator
from enum import Enum, auto
from typing import Any

from overpass_decode.decode import OverpassDict, decode_element
from overpass_decode.element import Element, ElementType
from overpass_decode.error import (
    ElementDecodeError,
    EnvelopeError,
    RunStateError,
    is_element_error,
)
from overpass_decode.registry import ElementRegistry
from overpass_decode.spatial import FeatureSource, GeoJsonDict
from overpass_decode.tags import DEFAULT_POLICY, TagPolicy


__docformat__ = "google"
__all__ = (
    "DecodeRun",
    "RunState",
)


_NULL_LOGGER = logging.getLogger()
_NULL_LOGGER.addHandler(logging.NullHandler())

_KNOWN_ELEMENTS = {t.value for t in ElementType}


class RunState(Enum):
    """The state of a decode run."""

    PENDING = auto()
    """The run has not started yet."""

    RUNNING = auto()
    """The run is decoding elements."""

    FINISHED = auto()
    """The run is done, either successfully or with an ``EnvelopeError``."""

    CANCELLED = auto()
    """The run was cancelled before it finished. Its results are discarded."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}.{self.name}"


class DecodeRun(FeatureSource):
    """
    A single, cancellable decoding of an Overpass API response.

    Decoding makes three passes over the elements of a response: first all nodes are
    decoded, then all ways, then all relations. Each pass may look up elements
    of the previous passes to resolve references. Elements may appear in any order.

    Elements that cannot be decoded are left out, and their errors are collected
    in ``element_errors``. Only a malformed response as a whole fails a run.

    Results can only be read once the run is finished. Until then, and forever
    if the run is cancelled, the result properties are empty.

    Args:
        data: The response body, either unparsed, or as parsed JSON object.
        policy: The tag policy used to classify elements.
        logger: The logger to use for all logging output related to this run.
        **kwargs: Additional keyword arguments that can be used to identify runs.
    """

    __slots__ = (
        "_cancel_event",
        "_data",
        "_element_errors",
        "_error",
        "_kwargs",
        "_logger",
        "_policy",
        "_registry",
        "_state",
        "_state_lock",
        "_time_end",
        "_time_start",
    )

    def __init__(
        self,
        data: bytes | str | OverpassDict,
        policy: TagPolicy = DEFAULT_POLICY,
        logger: logging.Logger = _NULL_LOGGER,
        **kwargs,
    ) -> None:
        self._data: bytes | str | OverpassDict | None = data
        """the response to decode; released once the run is over"""

        self._policy = policy
        """policy to classify elements with"""

        self._logger = logger
        """logger to use for this run"""

        self._kwargs = kwargs
        """used to identify this run"""

        self._state = RunState.PENDING
        """current state; results may only be read when finished"""

        self._state_lock = threading.Lock()
        """guards state transitions, which may be requested from other threads"""

        self._cancel_event = threading.Event()
        """set when the run should stop at the next element"""

        self._registry: ElementRegistry | None = None
        """decoded elements, only set once finished"""

        self._element_errors: list[ElementDecodeError] = []
        """errors of elements that were left out, only set once finished"""

        self._error: EnvelopeError | None = None
        """run-level error, only set once finished"""

        self._time_start: float | None = None
        self._time_end: float | None = None

    @property
    def kwargs(self) -> dict:
        """Keyword arguments that can be used to identify runs."""
        return self._kwargs

    @property
    def logger(self) -> logging.Logger:
        """The logger used for logging output related to this run."""
        return self._logger

    @property
    def policy(self) -> TagPolicy:
        """The tag policy used to classify elements."""
        return self._policy

    @property
    def state(self) -> RunState:
        """The current state of this run."""
        return self._state

    @property
    def done(self) -> bool:
        """Returns ``True`` if the run is finished, either successfully or not."""
        return self._state is RunState.FINISHED

    @property
    def cancelled(self) -> bool:
        """Returns ``True`` if the run was cancelled."""
        return self._state is RunState.CANCELLED

    @property
    def registry(self) -> ElementRegistry | None:
        """
        The decoded elements.

        Returns:
            the registry, or ``None`` if the run has not successfully finished (yet)
        """
        if not self.done:
            return None
        return self._registry

    @property
    def elements(self) -> dict[int, Element]:
        """
        The decoded elements by ID.

        Returns:
            a mapping that is empty if the run has not successfully finished (yet)
        """
        if not self.done or self._registry is None:
            return {}
        return self._registry.as_dict()

    @property
    def renderable(self) -> list[Element]:
        """
        Decoded elements that have geometry, and are not represented by a relation.

        Returns:
            a list that is empty if the run has not successfully finished (yet)
        """
        return [
            elem
            for elem in self.elements.values()
            if elem.geometry is not None and not elem.is_skippable
        ]

    @property
    def error(self) -> EnvelopeError | None:
        """
        The error that failed this run.

        Returns:
            an error, or ``None`` if the run has not finished (yet), or finished successfully
        """
        if not self.done:
            return None
        return self._error

    @property
    def element_errors(self) -> list[ElementDecodeError]:
        """
        Errors of elements that could not be decoded, and were left out.

        Returns:
            a list that is empty if the run has not finished (yet)
        """
        if not self.done:
            return []
        return list(self._element_errors)

    @property
    def duration_secs(self) -> float | None:
        """
        How long it took to decode the response in seconds.

        Returns:
            the duration, or ``None`` if the run has not finished (yet)
        """
        if not self.done or self._time_start is None or self._time_end is None:
            return None
        return self._time_end - self._time_start

    def features(self) -> Iterator[GeoJsonDict]:
        """The GeoJSON features of the ``renderable`` elements."""
        for elem in self.renderable:
            yield elem.geojson

    def raise_for_error(self) -> None:
        """Raise ``error`` if the run finished with one."""
        if self.error is not None:
            raise self.error

    def cancel(self) -> bool:
        """
        Cancel this run.

        A pending run is cancelled right away. A running run stops before decoding its next
        element. Finished runs cannot be cancelled.

        Returns:
            ``True`` if the run was not finished or cancelled before
        """
        with self._state_lock:
            match self._state:
                case RunState.PENDING:
                    self._state = RunState.CANCELLED
                    self._data = None
                case RunState.RUNNING:
                    pass
                case _:
                    return False

            self._cancel_event.set()

        self._logger.info(f"cancel {self}")
        return True

    def run(self) -> None:
        """
        Decode the response.

        This blocks until the run is finished or cancelled. Use ``Decoder`` to run
        decodes off the event loop. Any unexpected exception cancels the run before
        it is re-raised.

        Raises:
            RunStateError: if the run is not pending
        """
        with self._state_lock:
            if self._state is not RunState.PENDING:
                raise RunStateError(kwargs=self._kwargs, state=self._state.name.lower())
            self._state = RunState.RUNNING

        self._time_start = time.monotonic()
        self._logger.info(f"decode {self}")

        try:
            self._decode()
        except BaseException:
            self._logger.exception(f"{self} failed unexpectedly")
            self._abort()
            raise

    def _decode(self) -> None:
        registry = ElementRegistry()
        element_errors: list[ElementDecodeError] = []

        try:
            elem_dicts = self._parse_elements()
        except EnvelopeError as err:
            self._logger.error(f"{self} failed: {err}")
            self._finish(registry=None, element_errors=[], error=err)
            return

        # nodes before ways before relations, so that references can be resolved
        for elem_type in ElementType:
            if not self._decode_pass(elem_type, elem_dicts, registry, element_errors):
                self._abort()
                return

        self._finish(registry=registry, element_errors=element_errors, error=None)

    def _parse_elements(self) -> list[Any]:
        data = self._data

        if isinstance(data, bytes | bytearray | str):
            # decode errors and ints over the digit limit are ValueErrors
            try:
                response = json.loads(data)
            except (ValueError, RecursionError) as err:
                raise EnvelopeError(reason="not valid JSON", cause=err) from err
        else:
            response = data

        if not isinstance(response, dict):
            raise EnvelopeError(reason="expected a JSON object")

        if "elements" not in response:
            raise EnvelopeError(reason="missing 'elements'")

        elem_dicts = response["elements"]

        if not isinstance(elem_dicts, list):
            raise EnvelopeError(reason="'elements' is not an array")

        if remark := response.get("remark"):
            self._logger.warning(f"response has remark: {remark!r}")

        nb_ignored = sum(
            1
            for elem_dict in elem_dicts
            if not isinstance(elem_dict, dict) or elem_dict.get("type") not in _KNOWN_ELEMENTS
        )
        if nb_ignored:
            self._logger.debug(f"ignore {nb_ignored} objects that are not nodes, ways or relations")

        return elem_dicts

    def _decode_pass(
        self,
        elem_type: ElementType,
        elem_dicts: list[Any],
        registry: ElementRegistry,
        element_errors: list[ElementDecodeError],
    ) -> bool:
        """
        Decode all elements of one type.

        Returns:
            ``False`` if the run was cancelled during this pass
        """
        nb_decoded = 0

        for elem_dict in elem_dicts:
            if self._cancel_event.is_set():
                return False

            if not isinstance(elem_dict, dict) or elem_dict.get("type") != elem_type.value:
                continue

            result = decode_element(elem_dict, registry, self._policy)

            if is_element_error(result):
                self._logger.warning(f"skip {elem_type.value}: {result}")
                element_errors.append(result)
                continue

            assert isinstance(result, Element)

            if registry.put(result) is not None:
                self._logger.debug(f"{result!r} replaces an element with the same ID")

            nb_decoded += 1

        self._logger.debug(f"decoded {nb_decoded} {elem_type.value}s")
        return True

    def _finish(
        self,
        registry: ElementRegistry | None,
        element_errors: list[ElementDecodeError],
        error: EnvelopeError | None,
    ) -> None:
        with self._state_lock:
            if self._cancel_event.is_set():
                self._state = RunState.CANCELLED
                self._data = None
                self._logger.info(f"{self} was cancelled")
                return

            self._registry = registry
            self._element_errors = element_errors
            self._error = error
            self._time_end = time.monotonic()
            self._data = None

            # results become readable with this transition
            self._state = RunState.FINISHED

        self._logger.info(f"finished {self}")

    def _abort(self) -> None:
        with self._state_lock:
            if self._state is not RunState.RUNNING:
                return
            self._state = RunState.CANCELLED
            self._data = None

        self._logger.info(f"{self} was cancelled")

    def __str__(self) -> str:
        run = f"run {self.kwargs}" if self.kwargs else "run <no kwargs>"

        match self._state:
            case RunState.PENDING:
                details = "pending"
            case RunState.RUNNING:
                details = "running"
            case RunState.CANCELLED:
                details = "cancelled"
            case RunState.FINISHED if self._error is not None:
                details = f"failed: {self._error}"
            case RunState.FINISHED:
                nb_elements = len(self._registry) if self._registry is not None else 0
                details = f"{nb_elements} elements in {self.duration_secs:.02f}s"
            case _:
                raise AssertionError(self._state)

        return f"{run} ({details})"

    def __repr__(self) -> str:
        cls_name = type(self).__name__

        details: dict[str, Any] = {
            "kwargs": self._kwargs,
            "state": self._state.name.lower(),
        }

        if self.done:
            details["elements"] = len(self._registry) if self._registry is not None else 0
            details["element_errors"] = len(self._element_errors)

            if self._error:
                details["error"] = type(self._error).__name__

        details_str = ", ".join((f"{k}={v!r}" for k, v in details.items()))

        return f"{cls_name}({details_str})"
