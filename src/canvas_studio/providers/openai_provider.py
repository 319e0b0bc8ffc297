from __future__ import annotations

import base64
import logging
from typing import Any

from canvas_studio.config import settings
from canvas_studio.errors import ProviderError, timeout_error, upstream_error
from canvas_studio.providers.base import GeneratedImage, ImageRequest, map_to_provider_size

logger = logging.getLogger(__name__)


def _map_openai_error(exc: Exception) -> ProviderError:
    import openai  # type: ignore

    if isinstance(exc, openai.APITimeoutError):
        return timeout_error("openai", settings.openai_timeout)
    if isinstance(exc, openai.APIStatusError):
        message = exc.message if isinstance(exc.message, str) else str(exc)
        return upstream_error("openai", exc.status_code, message)
    if isinstance(exc, openai.APIConnectionError):
        return ProviderError("openai", "API_ERROR", f"could not reach OpenAI: {exc}", 502)
    return ProviderError("openai", "API_ERROR", str(exc), 500)


class OpenAIImageProvider:
    name = "openai"

    def __init__(self, api_key: str) -> None:
        from openai import AsyncOpenAI  # type: ignore

        # No retries: the caller sees the first failure.
        self.client = AsyncOpenAI(api_key=api_key, timeout=settings.openai_timeout, max_retries=0)

    async def generate(self, request: ImageRequest) -> GeneratedImage:
        model = request.model or settings.openai_image_model
        w, h = map_to_provider_size("openai", request.width, request.height, model)

        kwargs: dict[str, Any] = {"model": model, "prompt": request.prompt, "size": f"{w}x{h}", "n": 1}
        if model.startswith("dall-e"):
            kwargs["response_format"] = "b64_json"
        if model == "dall-e-3":
            kwargs["quality"] = request.quality or "hd"
            kwargs["style"] = request.style or "natural"

        try:
            resp = await self.client.images.generate(**kwargs)
        except Exception as exc:
            raise _map_openai_error(exc) from exc

        item = resp.data[0] if resp.data else None
        if item is None or not item.b64_json:
            raise ProviderError("openai", "NO_OUTPUT", "OpenAI returned no image data", 500)

        revised = getattr(item, "revised_prompt", None)
        logger.info("openai image generated model=%s size=%dx%d", model, w, h)
        return GeneratedImage(
            data=base64.b64decode(item.b64_json),
            mime_type="image/png",
            provider=self.name,
            model=model,
            prompt_used=request.prompt,
            raw_metadata={"size": f"{w}x{h}", "revised_prompt": revised},
        )

    async def generate_background(self, prompt: str, width: int, height: int) -> tuple[GeneratedImage, str | None]:
        image = await self.generate(
            ImageRequest(prompt=prompt, width=width, height=height, quality="hd", style="natural", model="dall-e-3")
        )
        return image, image.raw_metadata.get("revised_prompt")

    async def validate_api_key(self) -> bool:
        try:
            await self.client.models.list()
        except Exception as exc:
            logger.info("openai key validation failed: %s", exc.__class__.__name__)
            return False
        return True
