"""Interface for running decodes from async code."""

import asyncio
import logging

from overpass_decode.decode import OverpassDict
from overpass_decode.error import RunStateError
from overpass_decode.run import DecodeRun, RunState
from overpass_decode.tags import DEFAULT_POLICY, TagPolicy


__docformat__ = "google"
__all__ = ("Decoder",)


_NULL_LOGGER = logging.getLogger()
_NULL_LOGGER.addHandler(logging.NullHandler())


class Decoder:
    """
    Runs decodes in worker threads, so that they do not block the event loop.

    A typical host makes a new query whenever the map region changes. By default, a decoder
    therefore supersedes older runs: starting a run cancels every run that is still in flight,
    since their results would be outdated anyway.

    Args:
        policy: The tag policy used for all runs of this decoder.
        logger: The logger used for all runs of this decoder.
        supersede: If ``True``, starting a run cancels all runs in flight.
    """

    __slots__ = (
        "_in_flight",
        "_logger",
        "_policy",
        "_supersede",
    )

    def __init__(
        self,
        policy: TagPolicy = DEFAULT_POLICY,
        logger: logging.Logger = _NULL_LOGGER,
        supersede: bool = True,
    ) -> None:
        self._policy = policy
        self._logger = logger
        self._supersede = supersede
        self._in_flight: list[DecodeRun] = []

    @property
    def in_flight(self) -> list[DecodeRun]:
        """Runs that were started by this decoder, and did not finish yet."""
        return list(self._in_flight)

    async def decode(
        self,
        data: bytes | str | OverpassDict,
        raise_on_failure: bool = True,
        **kwargs,
    ) -> DecodeRun:
        """
        Decode a response, and await the result.

        Args:
            data: the response body, either unparsed, or as parsed JSON object
            raise_on_failure: if ``True``, raises ``run.error`` if the response is malformed
            **kwargs: additional keyword arguments that can be used to identify the run

        Returns:
            the run, which is either finished, or cancelled if superseded by a newer run

        Raises:
            EnvelopeError: if the response is malformed, unless ``raise_on_failure`` is ``False``
            asyncio.CancelledError: if the awaiting task is cancelled; the run is cancelled as well
        """
        run = DecodeRun(data, policy=self._policy, logger=self._logger, **kwargs)
        await self.run(run, raise_on_failure=raise_on_failure)
        return run

    async def run(self, run: DecodeRun, raise_on_failure: bool = True) -> None:
        """
        Run a pending decode run, and await its completion.

        Raises:
            RunStateError: if the run is not pending
            EnvelopeError: if the response is malformed, unless ``raise_on_failure`` is ``False``
            asyncio.CancelledError: if the awaiting task is cancelled; the run is cancelled as well
        """
        # a run that cannot start must not cancel the others
        if run.state is not RunState.PENDING:
            raise RunStateError(kwargs=run.kwargs, state=run.state.name.lower())

        if self._supersede:
            nb_cancelled = self.cancel_all()
            if nb_cancelled:
                self._logger.info(f"{run!s} supersedes {nb_cancelled} run(s)")

        self._in_flight.append(run)

        try:
            await asyncio.to_thread(run.run)
        except asyncio.CancelledError:
            # the thread cannot be interrupted, but will stop at the next element
            run.cancel()
            raise
        finally:
            self._in_flight.remove(run)

        if raise_on_failure:
            run.raise_for_error()

    def cancel_all(self) -> int:
        """
        Cancel all runs in flight.

        Returns:
            the number of cancelled runs
        """
        return sum(1 for run in self.in_flight if run.cancel())
