"""Ingestion progress reporting with callback-based listener notification.

One :class:`ProgressReporter` is created per ingestion call and wraps the
caller's ``on_progress`` callback.  It keeps the reported fraction inside
``[0, 1]`` and never lets it go backwards, so a listener driving a progress
bar sees a monotonically increasing value.

Listener errors are caught and logged so a broken callback never aborts an
ingestion.  Both sync and async callbacks are supported
(``asyncio.iscoroutine`` check).

While a long remote step runs (the embedding loop), :meth:`heartbeat` can
re-emit the last value on a fixed interval so a UI does not look stalled.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Union

import structlog

from docrag.models.pipeline import IngestionPhase
from docrag.utils.logging import get_logger

ProgressCallback = Callable[[float, str], Union[None, Awaitable[None]]]


class ProgressReporter:
    """Clamped, monotonic progress emitter for a single ingestion."""

    def __init__(
        self,
        callback: ProgressCallback | None = None,
        document_id: str = "",
    ) -> None:
        self._callback = callback
        self._document_id = document_id
        self._progress = 0.0
        self._message = ""
        self._phase: IngestionPhase | None = None
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def progress(self) -> float:
        return self._progress

    @property
    def phase(self) -> IngestionPhase | None:
        return self._phase

    def bind(self, document_id: str) -> None:
        """Attach the resolved document id to subsequent log lines."""
        self._document_id = document_id

    async def enter_phase(self, phase: IngestionPhase) -> None:
        """Record a state-machine transition."""
        previous = self._phase
        self._phase = phase
        self._logger.info(
            "ingestion_phase",
            document_id=self._document_id,
            phase=phase.value,
            previous=previous.value if previous else None,
        )

    async def report(self, progress: float, message: str = "") -> None:
        """Emit *progress*, clamped to [0, 1] and never below the last value.

        Parameters
        ----------
        progress:
            Completion fraction.  Values outside ``[0, 1]`` are clamped;
            values below the last reported value are raised to it.
        message:
            Human-readable status message.
        """
        progress = max(0.0, min(1.0, float(progress)))
        self._progress = max(self._progress, progress)
        self._message = message
        self._logger.debug(
            "progress_update",
            document_id=self._document_id,
            progress=round(self._progress, 3),
            message=message,
        )
        await self._notify(self._progress, message)

    async def report_span(
        self, start: float, end: float, done: int, total: int, message: str = ""
    ) -> None:
        """Report ``done / total`` of the way through the span ``[start, end]``."""
        fraction = done / total if total > 0 else 1.0
        await self.report(start + (end - start) * fraction, message)

    @contextlib.asynccontextmanager
    async def heartbeat(self, interval: float) -> AsyncIterator[None]:
        """Re-emit the last value every *interval* seconds while the block runs.

        A non-positive interval or a missing callback disables the heartbeat.
        """
        if interval <= 0 or self._callback is None:
            yield
            return

        task = asyncio.create_task(self._pulse(interval))
        try:
            yield
        finally:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _pulse(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self._notify(self._progress, self._message)

    async def _notify(self, progress: float, message: str) -> None:
        if self._callback is None:
            return
        try:
            result = self._callback(progress, message)
            if asyncio.iscoroutine(result):
                await result
        except Exception as exc:
            self._logger.warning(
                "progress_callback_error",
                document_id=self._document_id,
                error=str(exc),
                callback=getattr(self._callback, "__name__", repr(self._callback)),
            )
