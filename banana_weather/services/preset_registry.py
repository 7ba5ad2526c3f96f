import json
import logging
from typing import Dict, Iterable, List

from pydantic import ValidationError

from banana_weather.errors import StorageError
from banana_weather.models.schemas import Preset
from banana_weather.services.storage_service import StorageService

logger = logging.getLogger(__name__)

PRESETS_KEY = "presets.json"

FALLBACK_PRESETS: List[Preset] = [
    Preset(
        id="ft_collins",
        name="Fort Collins, CO",
        category="General",
        image_url="https://banana-weather-media.s3.us-east-1.amazonaws.com/image_5f0c1d2e3b4a59687a8b9c0d.png",
        video_url="https://banana-weather-media.s3.us-east-1.amazonaws.com/videos/qk3v9x2m7d1p/output.mp4",
    ),
]


def parse_presets(data: bytes) -> List[Preset]:
    """Parse the registry document. Raises ValueError when it is malformed."""
    raw = json.loads(data or b"null")
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError("presets registry must be a JSON array")
    try:
        return [Preset(**item) for item in raw]
    except (TypeError, ValidationError) as exc:
        raise ValueError(f"invalid preset entry: {exc}") from exc


def load_presets(store: StorageService, key: str = PRESETS_KEY) -> List[Preset]:
    try:
        return parse_presets(store.read_object(key))
    except StorageError:
        return []
    except ValueError as exc:
        logger.warning("Ignoring malformed %s: %s", key, exc)
        return []


def merge_presets(existing: Iterable[Preset], updates: Iterable[Preset]) -> List[Preset]:
    """Overwrite by id; entries not in ``updates`` are kept."""
    merged: Dict[str, Preset] = {p.id: p for p in existing}
    for preset in updates:
        merged[preset.id] = preset
    return list(merged.values())


def save_presets(store: StorageService, updates: List[Preset], key: str = PRESETS_KEY) -> List[Preset]:
    """Re-read the registry, merge ``updates`` into it and write it back.

    Concurrent writers are not coordinated: the last upload wins.
    """
    logger.info("Updating %s...", key)
    final = merge_presets(load_presets(store, key), updates)
    document = json.dumps([p.model_dump() for p in final], indent=2).encode("utf-8")
    store.upload_bytes(document, key, "application/json")
    logger.info("Registry updated successfully (%d presets).", len(final))
    return final
