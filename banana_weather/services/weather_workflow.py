import logging
import threading
from dataclasses import dataclass
from typing import Optional

from banana_weather.errors import (
    JobCancelledError,
    ResolutionError,
    StorageError,
    SynthesisError,
    VideoGenerationError,
)
from banana_weather.models.events import ProgressEvent, WeatherResult
from banana_weather.services.image_service import ImageService
from banana_weather.services.location_service import LocationService
from banana_weather.services.storage_service import StorageService, content_key
from banana_weather.services.video_job_service import VIDEO_PROMPT, VideoJobRunner

logger = logging.getLogger(__name__)

VIDEO_FAILED_MESSAGE = "Video generation failed (Beta). Enjoy the image!"


@dataclass(frozen=True)
class LocationQuery:
    city: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None


class WeatherWorkflow:
    """Location -> image -> (optional) upload and video, reported as progress events."""

    def __init__(
        self,
        locations: LocationService,
        images: ImageService,
        storage: Optional[StorageService] = None,
        videos: Optional[VideoJobRunner] = None,
        default_city: str = "San Francisco",
        video_prompt: str = VIDEO_PROMPT,
    ):
        self.locations = locations
        self.images = images
        self.storage = storage
        self.videos = videos
        self.default_city = default_city
        self.video_prompt = video_prompt

    @property
    def video_enabled(self) -> bool:
        return self.storage is not None and self.videos is not None

    def run(self, query: LocationQuery, stream, cancel_event: Optional[threading.Event] = None) -> None:
        """Run every stage for one request, emitting events to ``stream``.

        Never raises for stage failures: those become ``error`` events or are
        dropped, depending on whether the image was already delivered.
        """
        cancel_event = cancel_event or threading.Event()
        logger.info("Received weather request. City: %s, Lat: %s, Lng: %s", query.city, query.lat, query.lng)

        stream.emit(ProgressEvent.status("Identifying location..."))
        try:
            if query.has_coordinates:
                city = self.locations.resolve_coordinates(query.lat, query.lng)
            else:
                city = self.locations.resolve_city(query.city or self.default_city)
        except ResolutionError as exc:
            logger.warning("Error resolving location %s: %s", query, exc)
            prefix = "Failed to resolve location: " if query.has_coordinates else "Failed to find city: "
            stream.emit(ProgressEvent.error(prefix + str(exc)))
            return

        logger.info("Resolved location to: %s", city)
        stream.emit(ProgressEvent.status(f"Found location: {city}"))

        stream.emit(ProgressEvent.status(f"Getting a banana image of the weather for {city}..."))
        try:
            image_data = self.images.generate_image(city)
        except SynthesisError as exc:
            logger.warning("Error generating image for %s: %s", city, exc)
            stream.emit(ProgressEvent.error(f"Failed to generate image: {exc}"))
            return

        logger.info("Successfully generated image for: %s", city)
        stream.emit(ProgressEvent.result(WeatherResult(city=city, image_data=image_data)))

        if not self.video_enabled:
            logger.info("Storage service not available, skipping video generation.")
            return
        if stream.closed or cancel_event.is_set():
            logger.info("Client left after the image for %s, skipping video generation.", city)
            return

        video_url = self._animate(image_data, stream, cancel_event)
        if video_url:
            logger.info("Video available at: %s", video_url)
            stream.emit(ProgressEvent.video(video_url))

    def _animate(self, image_data: bytes, stream, cancel_event: threading.Event) -> Optional[str]:
        stream.emit(ProgressEvent.status("Preparing for animation..."))
        try:
            s3_uri, _ = self.storage.upload_image(image_data, content_key(image_data))
        except StorageError as exc:
            # The user already has the image.
            logger.warning("Failed to upload image for video gen: %s", exc)
            return None

        stream.emit(ProgressEvent.status("Animating (Nova Reel)... this may take a minute."))
        try:
            video_uri = self.videos.generate(s3_uri, self.video_prompt, cancel_event)
        except JobCancelledError as exc:
            logger.info("Video generation abandoned: %s", exc)
            return None
        except VideoGenerationError as exc:
            logger.warning("Nova Reel generation failed: %s", exc)
            stream.emit(ProgressEvent.error(VIDEO_FAILED_MESSAGE))
            return None

        stream.emit(ProgressEvent.status("Finalizing video..."))
        try:
            return self.storage.public_url_for(video_uri)
        except StorageError as exc:
            logger.warning("Cannot build a public URL for %s: %s", video_uri, exc)
            stream.emit(ProgressEvent.error(VIDEO_FAILED_MESSAGE))
            return None
