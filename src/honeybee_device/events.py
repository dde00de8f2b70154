"""Events pushed from the device layer to the GUI.

Three event kinds cross this boundary:

- ``camera-frame``: ``{data, width, height}`` once per published frame
- ``camera-error``: ``{message}`` when the device cannot be opened/started
- ``photo-saved``: ``{path, success, error}`` once per photo request

Producers depend only on the ``EventSink`` protocol. ``EventBroadcaster``
is the production sink: it fans each event out to every connected
WebSocket subscriber, hopping from the emitting thread (usually the
capture worker) onto the subscriber's asyncio loop.

Example:
    broadcaster = EventBroadcaster()

    async def handler():
        with broadcaster.subscribe() as subscription:
            while True:
                message = await subscription.get()
                await websocket.send_json(message)
"""

from __future__ import annotations

import asyncio
import itertools
import threading
from dataclasses import dataclass
from types import TracebackType
from typing import Any, ClassVar, Protocol, runtime_checkable

from honeybee_device.observability import get_logger

logger = get_logger(__name__)

DEFAULT_SUBSCRIBER_QUEUE_SIZE = 8
"""Events buffered per subscriber before the oldest is dropped."""


# --- Event payloads ---


@dataclass(frozen=True, slots=True)
class CameraFrameEvent:
    """A freshly encoded frame, inline as a JPEG data URL."""

    name: ClassVar[str] = "camera-frame"

    data: str
    width: int
    height: int

    def to_payload(self) -> dict[str, Any]:
        return {"data": self.data, "width": self.width, "height": self.height}


@dataclass(frozen=True, slots=True)
class CameraErrorEvent:
    """The capture worker could not open or start the device."""

    name: ClassVar[str] = "camera-error"

    message: str

    def to_payload(self) -> dict[str, Any]:
        return {"message": self.message}


@dataclass(frozen=True, slots=True)
class PhotoSavedEvent:
    """Outcome of a photo capture request, successful or not."""

    name: ClassVar[str] = "photo-saved"

    path: str
    success: bool
    error: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {"path": self.path, "success": self.success, "error": self.error}


Event = CameraFrameEvent | CameraErrorEvent | PhotoSavedEvent


# --- Sink protocol ---


@runtime_checkable
class EventSink(Protocol):  # pragma: no cover
    """Destination for device events.

    Implementations must accept calls from any thread and must not block
    for long: the capture worker calls ``emit`` once per frame.
    """

    def emit(self, event: Event) -> None:
        """Deliver one event.

        Args:
            event: Event dataclass; ``event.name`` and ``event.to_payload()``
                give the wire form.

        Raises:
            Implementations may raise; the capture worker logs and
            continues, photo capture logs and still returns its result.
        """
        ...


class NullEventSink:
    """Sink that discards every event."""

    def emit(self, event: Event) -> None:
        pass


def event_message(event: Event) -> dict[str, Any]:
    """Build the wire message ``{"event": name, "payload": {...}}``."""
    return {"event": event.name, "payload": event.to_payload()}


# --- Broadcaster ---


class Subscription:
    """One subscriber's bounded inbox on its own asyncio loop.

    Created by ``EventBroadcaster.subscribe()`` from inside a running
    loop. When the inbox is full the oldest message is dropped, so a slow
    viewer always catches up to the newest frame instead of replaying a
    backlog.
    """

    def __init__(
        self,
        broadcaster: EventBroadcaster,
        subscriber_id: int,
        loop: asyncio.AbstractEventLoop,
        maxsize: int,
    ) -> None:
        self._broadcaster = broadcaster
        self.subscriber_id = subscriber_id
        self.loop = loop
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def offer(self, message: dict[str, Any]) -> None:
        """Enqueue ``message``, evicting the oldest if full. Loop thread only."""
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(message)

    async def get(self) -> dict[str, Any]:
        """Wait for the next message."""
        return await self._queue.get()

    def pending(self) -> int:
        """Number of queued messages."""
        return self._queue.qsize()

    def close(self) -> None:
        """Detach from the broadcaster. Safe to call more than once."""
        self._broadcaster.unsubscribe(self)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


class EventBroadcaster:
    """Thread-safe fan-out of events to asyncio subscribers.

    ``emit`` may be called from the capture worker thread, a request
    handler's threadpool, or the event loop itself. Each subscriber is
    reached through ``loop.call_soon_threadsafe`` so its queue is only
    ever touched on its own loop.

    Business context: The GUI keeps a single WebSocket open to receive
    live frames, camera errors and photo results. Several windows (or a
    reconnecting client) can subscribe at once without affecting the
    capture worker's pace.
    """

    def __init__(self, queue_size: int = DEFAULT_SUBSCRIBER_QUEUE_SIZE) -> None:
        if queue_size < 1:
            raise ValueError(f"queue_size must be >= 1, got {queue_size}")
        self._queue_size = queue_size
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._subscribers: dict[int, Subscription] = {}

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> Subscription:
        """Register a subscriber bound to the running event loop.

        Returns:
            Subscription usable as a context manager; leaving the block
            unsubscribes.

        Raises:
            RuntimeError: If called outside a running asyncio loop.
        """
        loop = asyncio.get_running_loop()
        with self._lock:
            subscription = Subscription(self, next(self._ids), loop, self._queue_size)
            self._subscribers[subscription.subscriber_id] = subscription
        logger.debug("Event subscriber added", subscriber_id=subscription.subscriber_id)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            removed = self._subscribers.pop(subscription.subscriber_id, None)
        if removed is not None:
            logger.debug(
                "Event subscriber removed",
                subscriber_id=subscription.subscriber_id,
                dropped=subscription.dropped,
            )

    def emit(self, event: Event) -> None:
        """Queue ``event`` for every current subscriber.

        Subscribers whose loop has already closed are removed.
        """
        message = event_message(event)
        with self._lock:
            subscribers = list(self._subscribers.values())

        for subscription in subscribers:
            try:
                subscription.loop.call_soon_threadsafe(subscription.offer, message)
            except RuntimeError:
                # Loop closed underneath us (client gone during shutdown)
                self.unsubscribe(subscription)
