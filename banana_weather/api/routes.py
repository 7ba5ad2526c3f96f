import asyncio
import logging
import threading
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool

from banana_weather.api.deps import get_storage_service, get_weather_workflow
from banana_weather.config import settings
from banana_weather.errors import StorageError, UnsupportedTransportError
from banana_weather.models.events import ProgressEvent
from banana_weather.models.schemas import Preset, WeatherSummary
from banana_weather.services.preset_registry import FALLBACK_PRESETS, parse_presets
from banana_weather.services.progress_stream import BufferSink, EventLog, ProgressStream, QueueSink
from banana_weather.services.storage_service import StorageService
from banana_weather.services.weather_workflow import LocationQuery, WeatherWorkflow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

DISCONNECT_POLL_SECONDS = 1.0


def _accepts_event_stream(request: Request) -> bool:
    accept = request.headers.get("accept", "")
    if not accept or "text/event-stream" in accept or "*/*" in accept:
        return True
    return "application/json" not in accept


async def _cancel_on_disconnect(request: Request, cancel_event: threading.Event) -> None:
    while not await request.is_disconnected():
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)
    logger.info("Client disconnected before the weather response was ready")
    cancel_event.set()


async def _run_to_completion(request: Request, workflow: WeatherWorkflow, query: LocationQuery) -> WeatherSummary:
    log = EventLog()
    cancel_event = threading.Event()
    worker = asyncio.ensure_future(run_in_threadpool(workflow.run, query, log, cancel_event))
    watcher = asyncio.ensure_future(_cancel_on_disconnect(request, cancel_event))
    try:
        # The worker thread cannot be interrupted, so a cancelled request stops
        # waiting here and leaves the cancel event to end the video poll.
        await asyncio.wait([worker])
    finally:
        watcher.cancel()
        cancel_event.set()
    worker.result()
    return log.summary()


@router.get("/weather", response_model=None)
async def get_weather(
    request: Request,
    city: Optional[str] = None,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    workflow: WeatherWorkflow = Depends(get_weather_workflow),
):
    query = LocationQuery(city=(city or "").strip() or None, lat=lat, lng=lng)
    sink = QueueSink() if _accepts_event_stream(request) else BufferSink()

    try:
        stream = ProgressStream.open(sink)
    except UnsupportedTransportError:
        logger.info("Client cannot receive an event stream, answering with a single response")
        return await _run_to_completion(request, workflow, query)

    cancel_event = threading.Event()

    def run_workflow() -> None:
        try:
            workflow.run(query, stream, cancel_event)
        except Exception:
            logger.exception("Unhandled error in weather workflow for %s", query)
            stream.emit(ProgressEvent.error("Internal server error"))
        finally:
            stream.close()

    async def event_source():
        # Held so the task is not garbage collected while the stream is open.
        worker = asyncio.ensure_future(run_in_threadpool(run_workflow))
        try:
            async for chunk in sink.chunks():
                yield chunk
        finally:
            if not stream.closed:
                logger.info("Client disconnected from weather stream for %s", query)
            # Stop polling and drop any further events.
            cancel_event.set()
            sink.close()
            del worker

    return StreamingResponse(event_source(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.get("/presets", response_model=List[Preset])
def get_presets(storage: Optional[StorageService] = Depends(get_storage_service)):
    if storage is None:
        logger.info("Storage not configured, serving fallback presets")
        return FALLBACK_PRESETS

    try:
        return parse_presets(storage.read_object(settings.presets_key))
    except (StorageError, ValueError) as exc:
        logger.warning("Failed to read %s (using fallback): %s", settings.presets_key, exc)
        return FALLBACK_PRESETS


@router.get("/health")
def health_check():
    return {"status": "ok"}

