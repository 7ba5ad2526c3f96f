import argparse
import json
from unittest.mock import MagicMock

from banana_weather.cli import generate_preset
from banana_weather.errors import StorageError
from banana_weather.models.schemas import Preset
from banana_weather.services.preset_registry import (
    load_presets,
    merge_presets,
    parse_presets,
    save_presets,
)
from banana_weather.services.storage_service import StorageService
from conftest import PNG_BYTES

PARIS = Preset(id="paris", name="Paris", category="Europe", image_url="p.png", video_url="p.mp4")
TOKYO = Preset(id="tokyo", name="Tokyo", category="Asia", image_url="t.png", video_url="t.mp4")


def registry_store(presets=None, error=None):
    store = MagicMock(spec=StorageService)
    if error is not None:
        store.read_object.side_effect = error
    else:
        store.read_object.return_value = json.dumps([p.model_dump() for p in presets or []]).encode()
    return store


def written_presets(store):
    data, key, content_type = store.upload_bytes.call_args.args
    assert key == "presets.json"
    assert content_type == "application/json"
    return {p.id: p for p in parse_presets(data)}


def test_merge_overwrites_by_id_and_keeps_others():
    updated = PARIS.model_copy(update={"video_url": "new.mp4"})

    merged = merge_presets([PARIS, TOKYO], [updated])

    assert {p.id: p for p in merged} == {"paris": updated, "tokyo": TOKYO}


def test_load_presets_tolerates_missing_registry():
    assert load_presets(registry_store(error=StorageError("NoSuchKey"))) == []


def test_load_presets_tolerates_malformed_registry():
    store = registry_store()
    store.read_object.return_value = b'{"not": "a list"}'

    assert load_presets(store) == []


def test_save_presets_merges_with_current_registry():
    store = registry_store([PARIS, TOKYO])
    oslo = Preset(id="oslo", name="Oslo", category="Europe")

    save_presets(store, [oslo])

    assert written_presets(store) == {"paris": PARIS, "tokyo": TOKYO, "oslo": oslo}


def cli_args(**overrides):
    values = {"id": "paris", "name": "Paris, France", "city": "Paris", "category": "Europe", "context": "", "force": False}
    values.update(overrides)
    return argparse.Namespace(**values)


def test_cli_patches_metadata_of_existing_preset():
    store = registry_store([PARIS])
    images = MagicMock()
    videos = MagicMock()

    preset = generate_preset.run(cli_args(name="Paris (FR)", category="Featured"), images, store, videos)

    assert preset.name == "Paris (FR)"
    assert preset.category == "Featured"
    assert (preset.image_url, preset.video_url) == (PARIS.image_url, PARIS.video_url)
    images.generate_image.assert_not_called()
    videos.generate.assert_not_called()
    assert written_presets(store)["paris"] == preset


def test_cli_generates_new_preset():
    store = registry_store([TOKYO])
    store.upload_image.return_value = ("s3://media/preset_oslo_image_1.png", "https://cdn.example.com/preset_oslo_image_1.png")
    store.public_url_for.return_value = "https://cdn.example.com/videos/inv9/output.mp4"
    images = MagicMock()
    images.generate_image.return_value = PNG_BYTES
    videos = MagicMock()
    videos.generate.return_value = "s3://media/videos/inv9/output.mp4"

    preset = generate_preset.run(
        cli_args(id="oslo", name="Oslo", city="Oslo", context="winter night"), images, store, videos
    )

    images.generate_image.assert_called_once_with("Oslo", "winter night")
    image_key = store.upload_image.call_args.args[1]
    assert image_key.startswith("preset_oslo_image_") and image_key.endswith(".png")
    videos.generate.assert_called_once_with("s3://media/preset_oslo_image_1.png")
    assert preset.video_url == "https://cdn.example.com/videos/inv9/output.mp4"
    assert set(written_presets(store)) == {"tokyo", "oslo"}


def test_cli_force_regenerates_existing_preset():
    store = registry_store([PARIS])
    store.upload_image.return_value = ("s3://media/x.png", "https://cdn.example.com/x.png")
    store.public_url_for.return_value = "https://cdn.example.com/v.mp4"
    images = MagicMock()
    images.generate_image.return_value = PNG_BYTES
    videos = MagicMock()

    preset = generate_preset.run(cli_args(force=True), images, store, videos)

    assert preset.image_url == "https://cdn.example.com/x.png"
    images.generate_image.assert_called_once()


def test_cli_parser_defaults():
    args = generate_preset.build_parser().parse_args(["--id", "nyc", "--name", "New York", "--city", "New York"])

    assert args.category == "General"
    assert args.context == ""
    assert args.force is False
