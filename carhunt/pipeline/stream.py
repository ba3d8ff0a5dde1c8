"""Progress stream: job completions as an ordered event sequence.

Event order for one run::

    connected -> progress x totalSites -> complete
    connected -> error                     (the run could not proceed)

Producers call connect/publish/complete/fail; a single consumer iterates
``events()``. Transports (SSE, CLI) only serialize what comes out.
"""

import asyncio
import logging
from collections.abc import AsyncIterator

from carhunt.core.schemas import (
    CompleteEvent,
    ConnectedEvent,
    ErrorEvent,
    JobResult,
    ProgressEvent,
    StreamEvent,
    VehicleRecord,
)

logger = logging.getLogger(__name__)


class ProgressStream:
    """Single-run event channel; rejects events that would break the order above."""

    def __init__(self, total_sites: int) -> None:
        self._total_sites = total_sites
        self._queue: asyncio.Queue[StreamEvent] = asyncio.Queue()
        self._connected = False
        self._closed = False
        self._completed_sites = 0
        self._records: list[VehicleRecord] = []

    @property
    def total_sites(self) -> int:
        return self._total_sites

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def records(self) -> list[VehicleRecord]:
        return list(self._records)

    def connect(self) -> ConnectedEvent:
        if self._connected:
            msg = "stream already connected"
            raise RuntimeError(msg)
        self._connected = True
        event = ConnectedEvent(total_sites=self._total_sites)
        self._queue.put_nowait(event)
        return event

    def publish(self, result: JobResult) -> ProgressEvent:
        """Emit progress for one finished job (success, empty or failed)."""
        self._require_open()
        if self._completed_sites >= self._total_sites:
            msg = f"more results than sites ({self._total_sites})"
            raise RuntimeError(msg)
        self._completed_sites += 1
        self._records.extend(result.records)
        event = ProgressEvent(
            site_id=result.site_id,
            records=result.records,
            current_site_index=self._completed_sites,
            total_sites=self._total_sites,
            error=result.error,
        )
        self._queue.put_nowait(event)
        logger.info(
            "Progress %d/%d: %s (%d record(s)%s)",
            self._completed_sites, self._total_sites, result.site_id,
            len(result.records), f", error: {result.error}" if result.error else "",
        )
        return event

    def complete(self) -> CompleteEvent:
        self._require_open()
        if self._completed_sites != self._total_sites:
            msg = (
                f"cannot complete: {self._completed_sites}/{self._total_sites} "
                "sites reported"
            )
            raise RuntimeError(msg)
        self._closed = True
        event = CompleteEvent(
            total_records=len(self._records), all_records=list(self._records),
        )
        self._queue.put_nowait(event)
        return event

    def fail(self, message: str) -> ErrorEvent | None:
        """End the run with an error event. No-op once the stream is closed."""
        if self._closed:
            logger.debug("Stream already closed, dropping error: %s", message)
            return None
        if not self._connected:
            self.connect()
        self._closed = True
        event = ErrorEvent(message=message)
        self._queue.put_nowait(event)
        logger.error("Search failed: %s", message)
        return event

    async def events(self, cancel: asyncio.Event | None = None) -> AsyncIterator[StreamEvent]:
        """Yield events until complete/error, or until ``cancel`` is set."""
        while True:
            event = await self._next(cancel)
            if event is None:
                logger.info("Stream cancelled by consumer")
                return
            yield event
            if isinstance(event, (CompleteEvent, ErrorEvent)):
                return

    async def _next(self, cancel: asyncio.Event | None) -> StreamEvent | None:
        if cancel is None:
            return await self._queue.get()
        if cancel.is_set():
            return None

        getter = asyncio.ensure_future(self._queue.get())
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({getter, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not getter.done():
                getter.cancel()
        if cancel.is_set():
            return None
        return getter.result()

    def _require_open(self) -> None:
        if not self._connected:
            msg = "stream not connected"
            raise RuntimeError(msg)
        if self._closed:
            msg = "stream already closed"
            raise RuntimeError(msg)
