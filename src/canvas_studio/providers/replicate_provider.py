from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx

from canvas_studio.config import settings
from canvas_studio.errors import ProviderError, timeout_error
from canvas_studio.providers.base import GeneratedImage, ImageRequest, aspect_ratio_for
from canvas_studio.providers.http import async_client, download_image, raise_for_upstream

logger = logging.getLogger(__name__)

API_BASE = "https://api.replicate.com"
REQUEST_TIMEOUT = 30.0


def _outputs(output: Any) -> list[str]:
    if output is None:
        return []
    if isinstance(output, str):
        return [output]
    if isinstance(output, list):
        return [o for o in output if isinstance(o, str) and o]
    return []


class ReplicateProvider:
    """
    Replicate predictions are asynchronous: create one, then poll its `urls.get`
    until it settles or the deadline passes.
    """

    name = "replicate"

    def __init__(self, api_key: str, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.api_key = api_key
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return async_client(
            REQUEST_TIMEOUT,
            self._transport,
            base_url=API_BASE,
            headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
        )

    async def resolve_version(self, client: httpx.AsyncClient, model: str) -> str:
        resp = await client.get(f"/v1/models/{model}")
        if resp.status_code == 404:
            raise ProviderError(self.name, "MODEL_NOT_FOUND", f"model {model} not found on Replicate", 404)
        raise_for_upstream(self.name, resp)
        version = (resp.json().get("latest_version") or {}).get("id")
        if not version:
            raise ProviderError(self.name, "MODEL_NOT_FOUND", f"model {model} has no published version", 404)
        return version

    async def run_prediction(
        self,
        model: str,
        model_input: dict[str, Any],
        timeout: float,
        poll_interval: float,
    ) -> list[str]:
        started = time.monotonic()
        deadline = started + timeout
        try:
            async with self._client() as client:
                version = await self.resolve_version(client, model)
                resp = await client.post("/v1/predictions", json={"version": version, "input": model_input})
                raise_for_upstream(self.name, resp)
                prediction = resp.json()
                poll_url = (prediction.get("urls") or {}).get("get")

                while prediction.get("status") not in ("succeeded", "failed", "canceled"):
                    if not poll_url:
                        raise ProviderError(self.name, "POLL_ERROR", "prediction has no polling URL", 500)
                    if time.monotonic() + poll_interval > deadline:
                        raise timeout_error(self.name, timeout)
                    await asyncio.sleep(poll_interval)
                    poll = await client.get(poll_url)
                    if not poll.is_success:
                        raise ProviderError(self.name, "POLL_ERROR", f"polling failed with HTTP {poll.status_code}", 500)
                    prediction = poll.json()
        except httpx.TimeoutException as exc:
            raise timeout_error(self.name, timeout) from exc
        except httpx.RequestError as exc:
            raise ProviderError(self.name, "API_ERROR", f"could not reach Replicate: {exc}", 502) from exc

        status = prediction.get("status")
        if status == "failed":
            raise ProviderError(self.name, "PREDICTION_FAILED", str(prediction.get("error") or "prediction failed"), 500)
        if status == "canceled":
            raise ProviderError(self.name, "PREDICTION_CANCELED", "prediction was canceled", 500)

        urls = _outputs(prediction.get("output"))
        if not urls:
            raise ProviderError(self.name, "NO_OUTPUT", "prediction returned no output", 500)
        logger.info("replicate %s produced %d output(s) in %.1fs", model, len(urls), time.monotonic() - started)
        return urls

    async def generate(self, request: ImageRequest) -> GeneratedImage:
        model = request.model or settings.replicate_image_model
        model_input = {
            "prompt": request.prompt,
            "aspect_ratio": aspect_ratio_for(request.width, request.height),
            "num_outputs": 1,
            "output_format": "png",
            "output_quality": 90,
        }
        urls = await self.run_prediction(model, model_input, settings.replicate_timeout, settings.replicate_poll_interval)
        data, mime = await download_image(urls[0], self.name, REQUEST_TIMEOUT, self._transport)
        return GeneratedImage(
            data=data,
            mime_type=mime,
            provider=self.name,
            model=model,
            prompt_used=request.prompt,
            raw_metadata={"output_url": urls[0]},
        )

    async def character_variations(
        self,
        subject: str,
        prompt: str,
        negative_prompt: str | None = None,
        number_of_outputs: int = 4,
        seed: int | None = None,
    ) -> list[GeneratedImage]:
        model = settings.replicate_character_model
        model_input: dict[str, Any] = {
            "subject": subject,
            "prompt": prompt,
            "number_of_outputs": number_of_outputs,
            "output_format": "png",
            "output_quality": 95,
        }
        if negative_prompt:
            model_input["negative_prompt"] = negative_prompt
        if seed is not None:
            model_input["seed"] = seed

        urls = await self.run_prediction(
            model,
            model_input,
            settings.character_variations_timeout,
            settings.character_poll_interval,
        )
        downloads = await asyncio.gather(*(download_image(u, self.name, REQUEST_TIMEOUT, self._transport) for u in urls))
        return [
            GeneratedImage(data=data, mime_type=mime, provider=self.name, model=model, prompt_used=prompt, raw_metadata={"output_url": url})
            for url, (data, mime) in zip(urls, downloads)
        ]

    async def validate_api_key(self) -> bool:
        try:
            async with self._client() as client:
                resp = await client.get("/v1/account")
        except httpx.HTTPError as exc:
            logger.info("replicate key validation failed: %s", exc.__class__.__name__)
            return False
        return resp.is_success
