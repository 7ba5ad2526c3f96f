"""
Ordered server-to-client progress channel framed as Server-Sent Events.

The weather workflow runs in a worker thread and emits events into a
ProgressStream. The stream frames each event, writes it to a sink and flushes
straight away. QueueSink hands the frames to the asyncio response generator in
the order they were emitted.
"""

import asyncio
import logging
from typing import AsyncIterator, List, Optional

from banana_weather.errors import UnsupportedTransportError
from banana_weather.models.events import EventKind, ProgressEvent, WeatherResult
from banana_weather.models.schemas import StreamedEvent, WeatherSummary

logger = logging.getLogger(__name__)


class SinkClosedError(RuntimeError):
    """The client side of the sink is gone."""


def format_event(event: ProgressEvent) -> str:
    lines = event.data.splitlines() or [""]
    data = "".join(f"data: {line}\n" for line in lines)
    return f"event: {event.kind.value}\n{data}\n"


class QueueSink:
    """Thread-safe bridge from a worker thread to an asyncio consumer."""

    supports_streaming = True

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop or asyncio.get_running_loop()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._pending: List[str] = []
        self.closed = False

    def write(self, chunk: str) -> None:
        if self.closed:
            raise SinkClosedError("sink is closed")
        self._pending.append(chunk)

    def flush(self) -> None:
        chunks, self._pending = self._pending, []
        for chunk in chunks:
            self._put(chunk)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, None)
        except RuntimeError:
            # loop already shut down, nobody is reading
            pass

    async def chunks(self) -> AsyncIterator[str]:
        while True:
            chunk = await self._queue.get()
            if chunk is None:
                return
            yield chunk

    def _put(self, chunk: str) -> None:
        if self.closed:
            raise SinkClosedError("sink is closed")
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, chunk)
        except RuntimeError as exc:
            self.closed = True
            raise SinkClosedError("event loop is closed") from exc


class BufferSink:
    """Collects the whole body before sending; cannot stream."""

    supports_streaming = False

    def __init__(self):
        self.chunks: List[str] = []
        self.closed = False

    def write(self, chunk: str) -> None:
        if self.closed:
            raise SinkClosedError("sink is closed")
        self.chunks.append(chunk)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True


class ProgressStream:
    def __init__(self, sink):
        self._sink = sink
        self._closed = False

    @classmethod
    def open(cls, sink) -> "ProgressStream":
        if not getattr(sink, "supports_streaming", False):
            raise UnsupportedTransportError("Streaming unsupported!")
        return cls(sink)

    @property
    def closed(self) -> bool:
        return self._closed or bool(getattr(self._sink, "closed", False))

    def emit(self, event: ProgressEvent) -> bool:
        """Write one event. Returns False, without raising, once the client is gone."""
        if self.closed:
            return False
        try:
            self._sink.write(format_event(event))
            self._sink.flush()
        except SinkClosedError:
            logger.info("Client disconnected, dropping %s event", event.kind.value)
            self._closed = True
            return False
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._sink.close()


class EventLog:
    """In-memory emitter used when the client cannot receive a stream."""

    def __init__(self):
        self.events: List[ProgressEvent] = []
        self.closed = False

    def emit(self, event: ProgressEvent) -> bool:
        if self.closed:
            return False
        self.events.append(event)
        return True

    def close(self) -> None:
        self.closed = True

    def summary(self) -> WeatherSummary:
        summary = WeatherSummary()
        for event in self.events:
            summary.events.append(StreamedEvent(event=event.kind.value, data=event.data))
            if event.kind is EventKind.RESULT and isinstance(event.payload, WeatherResult):
                summary.city = event.payload.city
                summary.image_base64 = event.payload.image_base64
            elif event.kind is EventKind.VIDEO:
                summary.video_url = event.data
            elif event.kind is EventKind.ERROR:
                summary.error = event.data
        return summary
