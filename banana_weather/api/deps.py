"""FastAPI dependencies.

Provider clients and the services wrapping them are built once at startup and
shared by every request.
"""

import logging
from typing import Optional

from banana_weather.config import Settings
from banana_weather.services.image_service import ImageService
from banana_weather.services.location_service import LocationService
from banana_weather.services.storage_service import StorageService
from banana_weather.services.video_job_service import VideoJobRunner
from banana_weather.services.weather_workflow import WeatherWorkflow

logger = logging.getLogger(__name__)

_workflow: Optional[WeatherWorkflow] = None
_storage: Optional[StorageService] = None


def init_services(settings: Settings) -> WeatherWorkflow:
    """Initialize the global services (called at app startup)."""
    global _workflow, _storage
    from banana_weather.services import aws_clients

    bedrock = aws_clients.get_bedrock_runtime_client()
    locations = LocationService(aws_clients.get_location_client(), settings.place_index_name)
    images = ImageService(bedrock, settings.image_model_id)

    storage = None
    videos = None
    if settings.media_enabled:
        storage = StorageService(
            aws_clients.get_s3_client(),
            settings.media_bucket,
            settings.aws_region,
            settings.media_public_base_url,
        )
        videos = VideoJobRunner(
            bedrock,
            settings.video_model_id,
            settings.media_bucket,
            poll_interval=settings.video_poll_interval_seconds,
            timeout=settings.video_timeout_seconds,
        )
        logger.info("Storage Service initialized for bucket: %s", settings.media_bucket)
    else:
        logger.warning("MEDIA_BUCKET not set: video generation and presets are disabled.")

    _storage = storage
    _workflow = WeatherWorkflow(locations, images, storage, videos, default_city=settings.default_city)
    return _workflow


def get_weather_workflow() -> WeatherWorkflow:
    if _workflow is None:
        raise RuntimeError("Services not initialized — call init_services() first")
    return _workflow


def get_storage_service() -> Optional[StorageService]:
    return _storage
