"""Batch accumulation and at-most-once delivery of decoded records.

State machine::

    offer(record) ──▶ buffer.append ──▶ len == batch_size ? ──yes──▶ flush()
                                                   │
                                                   no ──▶ return
    flush()  ──▶ empty? ──yes──▶ no-op
                   │
                   no ──▶ build payload ──▶ clear buffer ──▶ sink.send()
                                                               │
                                           failure ──▶ log, drop batch
    close()  ──▶ flush() the partial batch, wait for in-flight delivery

Delivery is at-most-once: a batch whose send fails is logged and discarded,
never re-buffered.  With ``double_buffer`` enabled a full batch is handed to
a background task so reading can continue; the next full batch waits for
that task first, which keeps batches in order and bounds memory to two
buffers.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Optional, Protocol

from adsb_dataset_forwarder.errors import SinkDeliveryError
from adsb_dataset_forwarder.models import DecodedRecord
from adsb_dataset_forwarder.transform import build_payload

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500
DEFAULT_SOURCE = "dump1090"
DEFAULT_COLLECTOR = "adsb-dataset-forwarder"


class Sink(Protocol):
    async def send(self, payload: bytes) -> None: ...


@dataclass
class ForwarderStats:
    """Running totals for one forwarder."""

    records_offered: int = 0
    batches_sent: int = 0
    batches_failed: int = 0
    records_dropped: int = 0


class BatchForwarder:
    """Buffer decoded records and ship them to a sink in fixed-size batches.

    Parameters
    ----------
    sink:
        Object with an ``async send(payload: bytes)`` method.
    batch_size:
        Number of records that triggers a flush.
    source:
        Receiver label written to every event's ``attrs.source``.
    collector:
        Collector identifier written to every event's ``attrs.collector``.
    session:
        DataSet session id; a random UUID is generated when omitted.
    double_buffer:
        Deliver full batches in a background task instead of blocking
        :meth:`offer` on the network round-trip.
    """

    def __init__(
        self,
        sink: Sink,
        batch_size: int = DEFAULT_BATCH_SIZE,
        *,
        source: str = DEFAULT_SOURCE,
        collector: str = DEFAULT_COLLECTOR,
        session: Optional[str] = None,
        double_buffer: bool = False,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self._sink = sink
        self._batch_size = batch_size
        self._source = source
        self._collector = collector
        self._session = session or str(uuid.uuid4())
        self._double_buffer = double_buffer
        self._buffer: list[DecodedRecord] = []
        self._inflight: Optional[asyncio.Task] = None
        self._closed = False
        self.stats = ForwarderStats()

    @property
    def session(self) -> str:
        """The DataSet session id used for every payload."""
        return self._session

    @property
    def pending(self) -> int:
        """Number of records waiting in the buffer."""
        return len(self._buffer)

    # ── public API ──────────────────────────────────────────────────

    async def offer(self, record: DecodedRecord) -> None:
        """Append *record*; flush when the buffer reaches ``batch_size``."""
        self._buffer.append(record)
        self.stats.records_offered += 1

        if len(self._buffer) < self._batch_size:
            return

        if self._double_buffer:
            await self._wait_inflight()
            batch = self._swap()
            self._inflight = asyncio.create_task(self._deliver(batch))
        else:
            await self.flush()

    async def flush(self) -> None:
        """Ship whatever is buffered.  The buffer is empty afterwards."""
        await self._wait_inflight()
        if not self._buffer:
            return
        await self._deliver(self._swap())

    async def close(self) -> None:
        """Ship the final partial batch at end of stream."""
        if self._closed:
            return
        self._closed = True
        await self.flush()

    # ── internal ────────────────────────────────────────────────────

    def _swap(self) -> list[DecodedRecord]:
        batch = self._buffer
        self._buffer = []
        return batch

    async def _wait_inflight(self) -> None:
        if self._inflight is not None:
            task, self._inflight = self._inflight, None
            await task

    async def _deliver(self, batch: list[DecodedRecord]) -> None:
        logger.info("Sending %d messages to the service", len(batch))
        payload = build_payload(batch, self._session, self._source, self._collector)
        try:
            await self._sink.send(payload)
        except (SinkDeliveryError, asyncio.TimeoutError) as exc:
            self.stats.batches_failed += 1
            self.stats.records_dropped += len(batch)
            logger.warning("Error sending messages, dropped %d: %s", len(batch), exc)
            return
        self.stats.batches_sent += 1
