"""
Gemini image adapter (sync mode through the google-genai SDK)

The SDK wants raw bytes, so the sketch's data-URI prefix is dropped and the
base64 body decoded. The generated image comes back inline and is returned
as a data URI.
"""
import asyncio
import base64
import logging
from typing import Any, Optional

from google import genai
from google.genai import types

from config.provider_config import PROVIDER_CONFIG
from models.errors import ProviderFailure
from models.sketch import SketchImage
from providers.base import ImageProvider

logger = logging.getLogger(__name__)


def _to_data_uri(data: Any, mime_type: Optional[str]) -> Optional[str]:
    if not data:
        return None
    if isinstance(data, str):
        encoded = data
    else:
        encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type or 'image/png'};base64,{encoded}"


def _inline_image_from_candidates(response: Any) -> Optional[str]:
    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            inline_data = getattr(part, "inline_data", None)
            if inline_data is not None and getattr(inline_data, "data", None):
                return _to_data_uri(inline_data.data, getattr(inline_data, "mime_type", None))
    return None


def _generated_image(response: Any) -> Optional[str]:
    images = getattr(response, "generated_images", None) or []
    if not images:
        return None
    image = getattr(images[0], "image", None)
    return _to_data_uri(getattr(image, "image_bytes", None), getattr(image, "mime_type", None))


class GeminiImageProvider(ImageProvider):
    provider_id = "gemini"
    credential_variable = "GEMINI_API_KEY"
    result_strategies = [
        ("candidates.parts.inline_data", _inline_image_from_candidates),
        ("generated_images[0].image", _generated_image),
    ]

    def __init__(self, api_key: Optional[str], model: str = PROVIDER_CONFIG["gemini"]["default_model"], client=None):
        super().__init__(api_key, model)
        self._client = client

    @property
    def supports_text_only(self) -> bool:
        return True

    async def _generate(self, prompt: str, seed_image: Optional[SketchImage]) -> str:
        client = self._client or genai.Client(api_key=self.api_key)
        contents = [prompt]
        if seed_image is not None:
            contents.append(types.Part.from_bytes(data=seed_image.raw_bytes(), mime_type=seed_image.mime_type))

        logger.info(f"[gemini] generating with {self.model} ({'image' if seed_image else 'text'} input)")
        try:
            response = await asyncio.to_thread(
                client.models.generate_content,
                model=self.model,
                contents=contents,
                config=types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"]),
            )
        except Exception as e:
            raise ProviderFailure(self.provider_id, f"{type(e).__name__}: {e}") from e
        return self.extract_result(response)
