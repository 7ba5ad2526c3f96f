import base64
import binascii
import json
import logging
import random

from botocore.exceptions import BotoCoreError, ClientError

from banana_weather.errors import SynthesisError

logger = logging.getLogger(__name__)

BASE_PROMPT = (
    "A clear 45-degree top-down isometric miniature 3D cartoon scene of the city's iconic "
    "landmarks, centered, with precise and delicate modeling. Soft refined textures, realistic "
    "PBR materials, gentle lifelike lighting and shadows. Typical current-season weather is "
    "woven into the architecture, creating an immersive weather ambiance. Clean unified "
    "composition, minimalistic, soft solid-colored background, fresh and soothing style. "
    "A prominent weather icon at the top-center with the city name in large text above it, "
    "no text background."
)

# Nova Canvas rejects prompts longer than this.
MAX_PROMPT_CHARS = 1024

# Nova Reel only accepts 1280x720 keyframes.
IMAGE_WIDTH = 1280
IMAGE_HEIGHT = 720


def build_prompt(city: str, extra_context: str = "") -> str:
    tail = f"\n\nCity name: {city}"
    prompt = BASE_PROMPT
    if extra_context:
        room = MAX_PROMPT_CHARS - len(prompt) - len(tail) - len("\n\nContext/Setting: ")
        if room > 0:
            prompt = f"{prompt}\n\nContext/Setting: {extra_context[:room]}"
    return (prompt + tail)[:MAX_PROMPT_CHARS]


class ImageService:
    def __init__(self, bedrock_client, model_id: str):
        self.client = bedrock_client
        self.model_id = model_id

    def generate_image(self, city: str, extra_context: str = "") -> bytes:
        """Generate a weather illustration for the city and return the PNG bytes."""
        body = {
            "taskType": "TEXT_IMAGE",
            "textToImageParams": {"text": build_prompt(city, extra_context)},
            "imageGenerationConfig": {
                "numberOfImages": 1,
                "width": IMAGE_WIDTH,
                "height": IMAGE_HEIGHT,
                "cfgScale": 8.0,
                "seed": random.randint(0, 858993459),
            },
        }

        logger.info("Generating image for city: %s using model: %s", city, self.model_id)
        try:
            response = self.client.invoke_model(
                modelId=self.model_id,
                body=json.dumps(body),
                contentType="application/json",
                accept="application/json",
            )
            payload = json.loads(response["body"].read())
        except (ClientError, BotoCoreError) as exc:
            logger.exception("Bedrock InvokeModel failed")
            raise SynthesisError(f"bedrock error: {exc}") from exc
        except (KeyError, ValueError) as exc:
            raise SynthesisError("malformed response from image model") from exc

        if payload.get("error"):
            logger.error("Image model returned an error: %s", payload["error"])
            raise SynthesisError(payload["error"])

        images = payload.get("images") or []
        if not images or not images[0]:
            logger.error("No image data found in response")
            raise SynthesisError("no image data found in response")

        try:
            data = base64.b64decode(images[0], validate=True)
        except (binascii.Error, TypeError, ValueError) as exc:
            logger.error("Image model returned undecodable image data: %s", exc)
            raise SynthesisError("malformed image data") from exc
        logger.info("Image generated successfully. Bytes: %d", len(data))
        return data
