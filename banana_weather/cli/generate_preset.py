"""Generate a preset (image + video) and register it in presets.json.

Usage:
    banana-weather-preset --id paris --name "Paris, France" --city Paris [--category Europe]
                          [--context "at night, in the rain"] [--force]
"""

import argparse
import logging
import sys
import time
from typing import List, Optional

from banana_weather.config import settings
from banana_weather.errors import BananaWeatherError
from banana_weather.logging_config import configure_logging
from banana_weather.models.schemas import Preset
from banana_weather.services.image_service import ImageService
from banana_weather.services.preset_registry import load_presets, save_presets
from banana_weather.services.storage_service import StorageService
from banana_weather.services.video_job_service import VideoJobRunner

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate a banana weather preset.")
    parser.add_argument("--id", required=True, help="Unique ID")
    parser.add_argument("--name", required=True, help="Display name")
    parser.add_argument("--city", required=True, help="City name sent to the image model")
    parser.add_argument("--category", default="General", help="Category name")
    parser.add_argument("--context", default="", help="Extra prompt context")
    parser.add_argument("--force", action="store_true", help="Regenerate media for an existing preset")
    return parser


def process_preset(
    images: ImageService,
    storage: StorageService,
    videos: VideoJobRunner,
    args: argparse.Namespace,
) -> Preset:
    logger.info("Generating image for '%s'...", args.city)
    image_data = images.generate_image(args.city, args.context)

    image_key = f"preset_{args.id}_image_{int(time.time())}.png"
    s3_image_uri, public_image_url = storage.upload_image(image_data, image_key)
    logger.info("Image uploaded: %s", public_image_url)

    logger.info("Generating video (Nova Reel)...")
    video_uri = videos.generate(s3_image_uri)
    public_video_url = storage.public_url_for(video_uri)
    logger.info("Video generated: %s", public_video_url)

    return Preset(
        id=args.id,
        name=args.name,
        category=args.category,
        image_url=public_image_url,
        video_url=public_video_url,
    )


def run(
    args: argparse.Namespace,
    images: ImageService,
    storage: StorageService,
    videos: VideoJobRunner,
) -> Preset:
    existing = {p.id: p for p in load_presets(storage, settings.presets_key)}

    current = existing.get(args.id)
    if current is not None and not args.force:
        logger.info("Skipping generation for [%s], updating metadata only.", args.id)
        preset = current.model_copy(update={"name": args.name, "category": args.category})
    else:
        preset = process_preset(images, storage, videos, args)

    save_presets(storage, [preset], settings.presets_key)
    return preset


def main(argv: Optional[List[str]] = None) -> int:
    configure_logging(settings.log_level)
    args = build_parser().parse_args(argv)

    if not settings.media_enabled:
        logger.error("MEDIA_BUCKET is not set; presets need object storage.")
        return 2

    from banana_weather.services import aws_clients

    try:
        bedrock = aws_clients.get_bedrock_runtime_client()
        storage = StorageService(
            aws_clients.get_s3_client(),
            settings.media_bucket,
            settings.aws_region,
            settings.media_public_base_url,
        )
        images = ImageService(bedrock, settings.image_model_id)
        videos = VideoJobRunner(
            bedrock,
            settings.video_model_id,
            settings.media_bucket,
            poll_interval=settings.video_poll_interval_seconds,
            timeout=settings.video_timeout_seconds,
        )
        preset = run(args, images, storage, videos)
    except BananaWeatherError as exc:
        logger.error("Error: %s", exc)
        return 1

    print(preset.model_dump_json(indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
