"""In-process fan-out of new photos to live preview subscribers."""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol

from photo_wall.domain.photos import Photo, serialize_photo
from photo_wall.errors import SubscriberClosedError

logger = logging.getLogger(__name__)

KEEP_ALIVE_FRAME = ": keep-alive\n\n"


class EventSink(Protocol):
    """A writable end of one live connection."""

    async def send(self, frame: str) -> None:
        """Deliver one encoded frame; raise when the connection is gone."""

    def close(self) -> None:
        """Stop accepting frames."""


def encode_event(payload: dict[str, object]) -> str:
    """Encode a payload as a server-sent event data frame."""
    return f"data: {json.dumps(payload, separators=(',', ':'))}\n\n"


def photo_event(photo: Photo) -> dict[str, object]:
    return {"type": "photo", "photo": serialize_photo(photo)}


def total_count_event(count: int) -> dict[str, object]:
    return {"type": "totalCount", "count": count}


def error_event(message: str) -> dict[str, object]:
    return {"type": "error", "message": message}


_CLOSED = object()


class QueueSink:
    """Sink backed by a bounded queue drained by a streaming response."""

    def __init__(self, max_pending: int = 100) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=max_pending)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, frame: str) -> None:
        if self._closed:
            raise SubscriberClosedError("Subscriber is closed")
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull as exc:
            raise SubscriberClosedError("Subscriber is not keeping up") from exc

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # The reader sees the closed flag once it drains the backlog.
            pass

    async def frames(self) -> AsyncIterator[str]:
        """Yield queued frames until the sink is closed."""
        while True:
            if self._closed and self._queue.empty():
                return
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield str(item)


@dataclass
class BroadcastHub:
    """Registry of live subscribers.

    ``count_provider`` returns the current number of visible photos; it is
    looked up once per broadcast.
    """

    count_provider: Callable[[], int]
    _sinks: set[EventSink] = field(default_factory=set)

    @property
    def subscriber_count(self) -> int:
        return len(self._sinks)

    def subscribe(self, sink: EventSink) -> None:
        self._sinks.add(sink)
        logger.info("Subscriber connected", extra={"subscribers": len(self._sinks)})

    def unsubscribe(self, sink: EventSink) -> None:
        if sink not in self._sinks:
            return
        self._sinks.discard(sink)
        logger.info(
            "Subscriber disconnected", extra={"subscribers": len(self._sinks)}
        )

    async def send(self, sink: EventSink, payload: dict[str, object]) -> bool:
        """Send one event to one sink, dropping the sink if the send fails."""
        try:
            await sink.send(encode_event(payload))
        except Exception:
            logger.warning("Dropping subscriber after failed send", exc_info=True)
            self.unsubscribe(sink)
            return False
        return True

    async def broadcast(self, photo: Photo) -> int:
        """Send a photo event then a count event to every subscriber.

        When the count lookup fails only the photo event is sent. Returns the
        number of subscribers that received every event sent.
        """
        if not self._sinks:
            return 0
        count: int | None
        try:
            count = self.count_provider()
        except Exception:
            logger.exception(
                "Failed to look up photo count for broadcast",
                extra={"photo_id": photo.id},
            )
            count = None
        delivered = 0
        for sink in list(self._sinks):
            if not await self.send(sink, photo_event(photo)):
                continue
            if count is None or await self.send(sink, total_count_event(count)):
                delivered += 1
        return delivered

    def close(self) -> None:
        """Close and forget every subscriber."""
        for sink in list(self._sinks):
            sink.close()
        self._sinks.clear()


class LiveSubscription:
    """One live connection: its sink, hub registration and heartbeat task.

    ``close`` tears all three down together and is safe to call twice.
    """

    def __init__(
        self,
        hub: BroadcastHub,
        sink: EventSink,
        heartbeat_interval: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.hub = hub
        self.sink = sink
        self.heartbeat_interval = heartbeat_interval
        self._sleep = sleep
        self._heartbeat: asyncio.Task[None] | None = None
        self._closed = False

    def open(self) -> None:
        self.hub.subscribe(self.sink)
        self._heartbeat = asyncio.create_task(self._beat())

    async def _beat(self) -> None:
        while True:
            await self._sleep(self.heartbeat_interval)
            try:
                await self.sink.send(KEEP_ALIVE_FRAME)
            except Exception:
                logger.info("Heartbeat failed, closing subscription")
                self._teardown()
                return

    def _teardown(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.hub.unsubscribe(self.sink)
        self.sink.close()

    async def close(self) -> None:
        task = self._heartbeat
        self._teardown()
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> "LiveSubscription":
        self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
