from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from banana_weather.services.image_service import ImageService
from banana_weather.services.location_service import LocationService
from banana_weather.services.storage_service import StorageService
from banana_weather.services.video_job_service import VideoJobRunner
from banana_weather.services.weather_workflow import WeatherWorkflow

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


def client_error(code="ThrottlingException", operation="GetAsyncInvoke"):
    return ClientError({"Error": {"Code": code, "Message": "simulated"}}, operation)


@pytest.fixture
def locations():
    service = MagicMock(spec=LocationService)
    service.resolve_city.return_value = "Paris, France"
    service.resolve_coordinates.return_value = "Fort Collins, CO"
    return service


@pytest.fixture
def images():
    service = MagicMock(spec=ImageService)
    service.generate_image.return_value = PNG_BYTES
    return service


@pytest.fixture
def storage():
    service = MagicMock(spec=StorageService)
    service.upload_image.return_value = ("s3://media/image_abc.png", "https://cdn.example.com/image_abc.png")
    service.public_url_for.side_effect = lambda uri: uri.replace("s3://media", "https://cdn.example.com")
    return service


@pytest.fixture
def videos():
    runner = MagicMock(spec=VideoJobRunner)
    runner.generate.return_value = "s3://media/videos/inv123/output.mp4"
    return runner


@pytest.fixture
def image_only_workflow(locations, images):
    return WeatherWorkflow(locations, images)


@pytest.fixture
def full_workflow(locations, images, storage, videos):
    return WeatherWorkflow(locations, images, storage, videos)
