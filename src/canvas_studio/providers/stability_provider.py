from __future__ import annotations

import base64
import logging
import time
from typing import Any

import httpx

from canvas_studio.config import settings
from canvas_studio.errors import ProviderError, timeout_error
from canvas_studio.providers.base import GeneratedImage, ImageRequest, aspect_ratio_for
from canvas_studio.providers.http import async_client, raise_for_upstream

logger = logging.getLogger(__name__)

API_BASE = "https://api.stability.ai"
CORE_PATH = "/v2beta/stable-image/generate/core"
IMG2IMG_ENGINE = "stable-diffusion-xl-1024-v1-0"
OUTPAINT_PATH = "/v2beta/stable-image/edit/outpaint"
REMOVE_BG_PATH = "/v2beta/stable-image/edit/remove-background"
ACCOUNT_PATH = "/v1/user/account"

STYLE_PRESETS = {"natural": "photographic", "vivid": "enhance"}
MAX_OUTPAINT_EXTENSION = 2048


def _form(fields: dict[str, Any]) -> dict[str, tuple[None, str]]:
    # Sending plain fields as multipart parts; the v2beta endpoints reject urlencoded bodies.
    return {k: (None, str(v)) for k, v in fields.items() if v is not None}


def _ext_for(mime_type: str) -> str:
    return {"image/jpeg": "jpg", "image/webp": "webp"}.get(mime_type, "png")


class StabilityProvider:
    name = "stability"

    def __init__(self, api_key: str, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.api_key = api_key
        self._transport = transport

    def _headers(self, accept: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Accept": accept}

    async def _post(self, path: str, files: dict[str, Any], timeout: float, accept: str = "image/*") -> httpx.Response:
        started = time.monotonic()
        try:
            async with async_client(timeout, self._transport, base_url=API_BASE) as client:
                resp = await client.post(path, headers=self._headers(accept), files=files)
        except httpx.TimeoutException as exc:
            raise timeout_error(self.name, timeout) from exc
        except httpx.RequestError as exc:
            raise ProviderError(self.name, "API_ERROR", f"could not reach Stability AI: {exc}", 502) from exc
        raise_for_upstream(self.name, resp)
        logger.info("stability %s ok in %.1fs", path, time.monotonic() - started)
        return resp

    def _image_result(self, resp: httpx.Response, model: str, prompt: str, **meta: Any) -> GeneratedImage:
        mime = resp.headers.get("content-type", "image/png").split(";")[0].strip()
        if not mime.startswith("image/") or not resp.content:
            raise ProviderError(self.name, "NO_OUTPUT", "Stability AI returned no image", 500)
        return GeneratedImage(
            data=resp.content,
            mime_type=mime,
            provider=self.name,
            model=model,
            prompt_used=prompt,
            raw_metadata={"seed": resp.headers.get("seed"), "finish_reason": resp.headers.get("finish-reason"), **meta},
        )

    async def generate(self, request: ImageRequest) -> GeneratedImage:
        aspect = aspect_ratio_for(request.width, request.height)
        files = _form(
            {
                "prompt": request.prompt,
                "aspect_ratio": aspect,
                "output_format": "png",
                "negative_prompt": request.negative_prompt or None,
                "style_preset": STYLE_PRESETS.get(request.style or ""),
            }
        )
        resp = await self._post(CORE_PATH, files, settings.stability_timeout)
        return self._image_result(resp, request.model or settings.stability_model, request.prompt, aspect_ratio=aspect)

    async def image_to_image(
        self,
        image: bytes,
        prompt: str,
        negative_prompt: str | None = None,
        image_strength: float = 0.35,
        cfg_scale: float = 10,
        steps: int = 30,
        mime_type: str = "image/png",
    ) -> GeneratedImage:
        """SDXL image-to-image. `image_strength` is how much of the source survives (0..1)."""
        fields: dict[str, Any] = {
            "init_image_mode": "IMAGE_STRENGTH",
            "image_strength": f"{image_strength:.3f}",
            "text_prompts[0][text]": prompt,
            "text_prompts[0][weight]": 1,
            "cfg_scale": cfg_scale,
            "samples": 1,
            "steps": steps,
        }
        if negative_prompt:
            fields["text_prompts[1][text]"] = negative_prompt
            fields["text_prompts[1][weight]"] = -1
        files: dict[str, Any] = {"init_image": (f"source.{_ext_for(mime_type)}", image, mime_type), **_form(fields)}

        resp = await self._post(
            f"/v1/generation/{IMG2IMG_ENGINE}/image-to-image",
            files,
            settings.img2img_timeout,
            accept="application/json",
        )
        artifacts = resp.json().get("artifacts") or []
        if not artifacts or not artifacts[0].get("base64"):
            raise ProviderError(self.name, "NO_OUTPUT", "No image generated", 500)
        first = artifacts[0]
        return GeneratedImage(
            data=base64.b64decode(first["base64"]),
            mime_type="image/png",
            provider=self.name,
            model=IMG2IMG_ENGINE,
            prompt_used=prompt,
            raw_metadata={"seed": first.get("seed"), "finish_reason": first.get("finishReason")},
        )

    async def outpaint(
        self,
        image: bytes,
        left: int = 0,
        right: int = 0,
        top: int = 0,
        bottom: int = 0,
        prompt: str | None = None,
        creativity: float = 0.25,
        output_format: str = "png",
        mime_type: str = "image/png",
    ) -> GeneratedImage:
        fields: dict[str, Any] = {
            "output_format": output_format,
            "creativity": max(0.0, min(1.0, creativity)),
            "prompt": prompt or None,
        }
        for key, value in (("left", left), ("right", right), ("up", top), ("down", bottom)):
            if value > 0:
                fields[key] = int(value)
        files: dict[str, Any] = {"image": (f"image.{_ext_for(mime_type)}", image, mime_type), **_form(fields)}
        resp = await self._post(OUTPAINT_PATH, files, settings.outpaint_timeout)
        return self._image_result(resp, "outpaint", prompt or "", extension={"left": left, "right": right, "top": top, "bottom": bottom})

    async def remove_background(self, image: bytes, mime_type: str = "image/png") -> GeneratedImage:
        files: dict[str, Any] = {
            "image": (f"image.{_ext_for(mime_type)}", image, mime_type),
            **_form({"output_format": "png"}),
        }
        resp = await self._post(REMOVE_BG_PATH, files, settings.remove_background_timeout)
        return self._image_result(resp, "remove-background", "")

    async def validate_api_key(self) -> bool:
        try:
            async with async_client(settings.fetch_timeout, self._transport, base_url=API_BASE) as client:
                resp = await client.get(ACCOUNT_PATH, headers=self._headers("application/json"))
        except httpx.HTTPError as exc:
            logger.info("stability key validation failed: %s", exc.__class__.__name__)
            return False
        return resp.is_success
