from __future__ import annotations

import base64
import logging
from collections.abc import AsyncIterator

from canvas_studio.assembly.icons import ICON_LOCATE_PROMPT
from canvas_studio.config import settings
from canvas_studio.errors import ProviderError, timeout_error, upstream_error

logger = logging.getLogger(__name__)

VISION_MAX_TOKENS = 500
CHAT_MAX_TOKENS = 2048
EXTRACTION_MAX_TOKENS = 4096
VISION_TIMEOUT = 60.0


def _map_anthropic_error(exc: Exception) -> ProviderError:
    import anthropic  # type: ignore

    if isinstance(exc, anthropic.APITimeoutError):
        return timeout_error("anthropic", VISION_TIMEOUT)
    if isinstance(exc, anthropic.APIStatusError):
        return upstream_error("anthropic", exc.status_code, exc.message)
    if isinstance(exc, anthropic.APIConnectionError):
        return ProviderError("anthropic", "API_ERROR", f"could not reach Anthropic: {exc}", 502)
    return ProviderError("anthropic", "API_ERROR", str(exc), 500)


class AnthropicProvider:
    name = "anthropic"

    def __init__(self, api_key: str) -> None:
        from anthropic import AsyncAnthropic  # type: ignore

        self.client = AsyncAnthropic(api_key=api_key, timeout=VISION_TIMEOUT, max_retries=0)
        self.model = settings.anthropic_model

    async def locate_icon(self, image_bytes: bytes, media_type: str) -> str:
        """Asks the model where the icon sits; returns its raw text answer (JSON expected)."""
        try:
            msg = await self.client.messages.create(
                model=self.model,
                max_tokens=VISION_MAX_TOKENS,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "image",
                                "source": {
                                    "type": "base64",
                                    "media_type": media_type,
                                    "data": base64.b64encode(image_bytes).decode("ascii"),
                                },
                            },
                            {"type": "text", "text": ICON_LOCATE_PROMPT},
                        ],
                    }
                ],
            )
        except Exception as exc:
            raise _map_anthropic_error(exc) from exc

        block = msg.content[0] if msg.content else None
        if block is None or getattr(block, "type", None) != "text":
            raise ProviderError(self.name, "API_ERROR", "unexpected response type from vision model", 500)
        return block.text

    async def analyze_brand(self, prompt: str, image_bytes: bytes | None = None, media_type: str | None = None) -> str:
        """One-shot brand analysis over an image or page text; returns the model's raw reply."""
        content: list[dict] = []
        if image_bytes is not None:
            content.append(
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": media_type or "image/png",
                        "data": base64.b64encode(image_bytes).decode("ascii"),
                    },
                }
            )
        content.append({"type": "text", "text": prompt})
        try:
            msg = await self.client.messages.create(
                model=self.model,
                max_tokens=EXTRACTION_MAX_TOKENS,
                messages=[{"role": "user", "content": content}],
            )
        except Exception as exc:
            raise _map_anthropic_error(exc) from exc

        text = "".join(block.text for block in msg.content if getattr(block, "type", None) == "text")
        if not text:
            raise ProviderError(self.name, "EXTRACTION_FAILED", "model returned no text", 422)
        return text

    async def stream_chat(self, system: str, messages: list[dict[str, str]]) -> AsyncIterator[str]:
        try:
            async with self.client.messages.stream(
                model=self.model,
                max_tokens=CHAT_MAX_TOKENS,
                system=system,
                messages=messages,
            ) as stream:
                async for text in stream.text_stream:
                    yield text
        except Exception as exc:
            raise _map_anthropic_error(exc) from exc

    async def validate_api_key(self) -> bool:
        try:
            await self.client.models.list()
        except Exception as exc:
            logger.info("anthropic key validation failed: %s", exc.__class__.__name__)
            return False
        return True
