from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from canvas_studio.config import settings
from canvas_studio.errors import ApiError, no_api_key
from canvas_studio.providers.anthropic_provider import AnthropicProvider
from canvas_studio.providers.base import PROVIDER_CONFIGS, GeneratedImage, ImageProvider, ImageRequest
from canvas_studio.providers.openai_provider import OpenAIImageProvider
from canvas_studio.providers.replicate_provider import ReplicateProvider
from canvas_studio.providers.stability_provider import StabilityProvider

logger = logging.getLogger(__name__)

_IMAGE_PROVIDER_CLASSES = {
    "openai": OpenAIImageProvider,
    "stability": StabilityProvider,
    "replicate": ReplicateProvider,
}


def platform_key(provider_id: str) -> str | None:
    return {
        "openai": settings.openai_api_key,
        "stability": settings.stability_api_key,
        "replicate": settings.replicate_api_key,
        "anthropic": settings.anthropic_api_key,
    }.get(provider_id)


def platform_keys() -> dict[str, bool]:
    return {pid: bool(platform_key(pid)) for pid in PROVIDER_CONFIGS}


def resolve_api_key(provider_id: str, user_key: str | None = None) -> str:
    key = (user_key or "").strip() or platform_key(provider_id)
    if not key:
        cfg = PROVIDER_CONFIGS.get(provider_id)
        raise no_api_key(cfg.name if cfg else provider_id)
    return key


def available_providers() -> list[dict]:
    keys = platform_keys()
    return [{**cfg.to_dict(), "hasPlatformKey": keys[pid]} for pid, cfg in PROVIDER_CONFIGS.items()]


def check_provider(provider_id: str) -> None:
    cfg = PROVIDER_CONFIGS.get(provider_id)
    if cfg is None:
        raise ApiError("INVALID_PROVIDER", f"Unknown provider: {provider_id}", 400)
    if not cfg.available:
        raise ApiError("PROVIDER_NOT_AVAILABLE", f"{cfg.name} does not generate images", 400)


def get_provider(provider_id: str, user_key: str | None = None) -> ImageProvider:
    check_provider(provider_id)
    return _IMAGE_PROVIDER_CLASSES[provider_id](resolve_api_key(provider_id, user_key))


def get_anthropic(user_key: str | None = None) -> AnthropicProvider:
    return AnthropicProvider(resolve_api_key("anthropic", user_key))


def get_stability(user_key: str | None = None) -> StabilityProvider:
    return StabilityProvider(resolve_api_key("stability", user_key))


def get_replicate(user_key: str | None = None) -> ReplicateProvider:
    return ReplicateProvider(resolve_api_key("replicate", user_key))


def get_openai(user_key: str | None = None) -> OpenAIImageProvider:
    return OpenAIImageProvider(resolve_api_key("openai", user_key))


async def validate_key(provider_id: str, api_key: str) -> bool:
    if provider_id not in PROVIDER_CONFIGS:
        raise ApiError("INVALID_PROVIDER", f"Unknown provider: {provider_id}", 400)
    if provider_id == "anthropic":
        handler = AnthropicProvider(api_key)
    else:
        handler = _IMAGE_PROVIDER_CLASSES[provider_id](api_key)
    return await handler.validate_api_key()


async def generate_variations(
    provider: ImageProvider,
    requests: Sequence[ImageRequest],
) -> tuple[list[GeneratedImage], list[str]]:
    """
    Runs every request concurrently and keeps whatever succeeds. Failures are
    reported as messages; only a total failure is an error.
    """
    results = await asyncio.gather(*(provider.generate(r) for r in requests), return_exceptions=True)

    images: list[GeneratedImage] = []
    errors: list[str] = []
    failures: list[Exception] = []
    for idx, result in enumerate(results, start=1):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            failures.append(result)
            message = result.message if isinstance(result, ApiError) else str(result)
            errors.append(f"Variation {idx}: {message}")
            logger.warning("%s variation %d failed: %s", provider.name, idx, message)
        else:
            images.append(result)

    if not images:
        # A shared cause (bad key, rate limit, timeout) is more useful to the client than a summary.
        codes = {f.code for f in failures if isinstance(f, ApiError)}
        if failures and len(codes) == 1 and all(isinstance(f, ApiError) for f in failures):
            raise failures[0]
        raise ApiError("ALL_GENERATIONS_FAILED", "All generations failed: " + ("; ".join(errors) or "no requests"), 500)
    return images, errors
