"""Bounded event stream between background operations and one consumer."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

import structlog

from linkerd_adapter.services.mesh.exceptions import EventDeliveryError

logger = structlog.get_logger()

DEFAULT_QUEUE_SIZE = 100
DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_PUBLISH_TIMEOUT = 5.0


class EventType(str, Enum):
    """Severity of an operation event."""

    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


@dataclass(frozen=True)
class Event:
    """Outcome report for one operation."""

    operation_id: str
    event_type: EventType
    summary: str
    details: str = ""


EventSender = Callable[[Event], Awaitable[None] | None]


class EventStream:
    """FIFO buffer of operation events.

    Producers never block indefinitely: when the buffer stays full for
    ``publish_timeout`` seconds the oldest event is discarded. Delivery is
    at-least-once; an event the consumer fails to accept is put back.
    """

    def __init__(
        self,
        maxsize: int = DEFAULT_QUEUE_SIZE,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        publish_timeout: float = DEFAULT_PUBLISH_TIMEOUT,
    ) -> None:
        self._queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=maxsize)
        self._poll_interval = poll_interval
        self._publish_timeout = publish_timeout
        self._log = logger.bind(entity="events")
        self.dropped = 0

    @property
    def pending(self) -> int:
        """Number of events waiting for delivery."""
        return self._queue.qsize()

    async def publish(self, event: Event) -> None:
        """Enqueue *event*, evicting the oldest one if the buffer stays full."""
        try:
            await asyncio.wait_for(self._queue.put(event), timeout=self._publish_timeout)
        except TimeoutError:
            self._enqueue_evicting(event)
        else:
            self._log.debug(
                "event_published",
                operation_id=event.operation_id,
                event_type=event.event_type.value,
            )

    def _enqueue_evicting(self, event: Event) -> None:
        if self._queue.full():
            evicted = self._queue.get_nowait()
            self.dropped += 1
            self._log.warning(
                "event_dropped",
                operation_id=evicted.operation_id,
                summary=evicted.summary,
                dropped=self.dropped,
            )
        self._queue.put_nowait(event)

    async def stream(self, send: EventSender, stop: asyncio.Event | None = None) -> None:
        """Deliver events to *send* until *stop* is set or the task is cancelled.

        Args:
            send: Consumer callback; may be a coroutine function.
            stop: Optional signal ending the loop.

        Raises:
            EventDeliveryError: If *send* fails. The event stays queued.
        """
        self._log.debug("event_stream_started")
        while stop is None or not stop.is_set():
            try:
                event = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                await asyncio.sleep(self._poll_interval)
                continue

            try:
                result = send(event)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                self._enqueue_evicting(event)
                raise
            except Exception as e:
                # Order is not preserved for redelivered events
                self._enqueue_evicting(event)
                self._log.error(
                    "event_delivery_failed",
                    operation_id=event.operation_id,
                    error=str(e),
                )
                raise EventDeliveryError(
                    "error streaming event", details=str(e)
                ) from e
        self._log.debug("event_stream_stopped")
