from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from canvas_studio.assembly.dataurl import encode_data_url


@dataclass(frozen=True)
class ProviderConfig:
    id: str
    name: str
    available: bool
    requires_api_key: bool
    env_key_name: str
    default_model: str
    supported_sizes: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "available": self.available,
            "requiresApiKey": self.requires_api_key,
            "envKeyName": self.env_key_name,
            "defaultModel": self.default_model,
            "supportedSizes": list(self.supported_sizes),
        }


PROVIDER_CONFIGS: dict[str, ProviderConfig] = {
    "openai": ProviderConfig(
        id="openai",
        name="OpenAI",
        available=True,
        requires_api_key=True,
        env_key_name="OPENAI_API_KEY",
        default_model="dall-e-3",
        supported_sizes=("1024x1024", "1792x1024", "1024x1792"),
    ),
    "stability": ProviderConfig(
        id="stability",
        name="Stability AI",
        available=True,
        requires_api_key=True,
        env_key_name="STABILITY_API_KEY",
        default_model="stable-image-core",
        supported_sizes=("1024x1024", "1216x832", "832x1216", "1152x896", "896x1152"),
    ),
    "replicate": ProviderConfig(
        id="replicate",
        name="Replicate",
        available=True,
        requires_api_key=True,
        env_key_name="REPLICATE_API_KEY",
        default_model="black-forest-labs/flux-schnell",
        supported_sizes=("1024x1024", "1344x768", "768x1344"),
    ),
    # Vision and chat only; not an image generator.
    "anthropic": ProviderConfig(
        id="anthropic",
        name="Anthropic",
        available=False,
        requires_api_key=True,
        env_key_name="ANTHROPIC_API_KEY",
        default_model="claude-sonnet-4-20250514",
        supported_sizes=(),
    ),
}

IMAGE_PROVIDERS = tuple(pid for pid, cfg in PROVIDER_CONFIGS.items() if cfg.available)


@dataclass(frozen=True)
class ImageRequest:
    prompt: str
    negative_prompt: str | None = None
    width: int = 1024
    height: int = 1024
    style: str | None = None  # natural|vivid
    quality: str | None = None  # standard|hd
    model: str | None = None


@dataclass(frozen=True)
class GeneratedImage:
    data: bytes
    mime_type: str
    provider: str
    model: str
    prompt_used: str
    raw_metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def data_url(self) -> str:
        return encode_data_url(self.data, self.mime_type)


class ImageProvider(Protocol):
    name: str

    async def generate(self, request: ImageRequest) -> GeneratedImage: ...

    async def validate_api_key(self) -> bool: ...


def aspect_ratio_for(width: int, height: int) -> str:
    ratio = width / height if height else 1.0
    if ratio >= 1.7:
        return "16:9"
    if ratio >= 1.4:
        return "3:2"
    if ratio >= 1.1:
        return "4:3"
    if ratio >= 0.9:
        return "1:1"
    if ratio >= 0.7:
        return "3:4"
    if ratio >= 0.55:
        return "2:3"
    return "9:16"


def map_to_provider_size(provider: str, width: int, height: int, model: str | None = None) -> tuple[int, int]:
    """Snap an arbitrary request size onto the nearest bucket the provider accepts."""
    ratio = width / height if height else 1.0

    if provider == "openai":
        if (model or "").startswith("gpt-image"):
            landscape, portrait = (1536, 1024), (1024, 1536)
        else:
            landscape, portrait = (1792, 1024), (1024, 1792)
        if ratio > 1.2:
            return landscape
        if ratio < 0.8:
            return portrait
        return (1024, 1024)

    if provider == "stability":
        if ratio > 1.4:
            return (1216, 832)
        if ratio < 0.7:
            return (832, 1216)
        if ratio > 1.1:
            return (1152, 896)
        if ratio < 0.9:
            return (896, 1152)
        return (1024, 1024)

    return (width, height)


def parse_dimensions(aspect_ratio: str | None, table: dict[str, tuple[int, int]], default: str = "1:1") -> tuple[int, int]:
    return table.get(aspect_ratio or default, table[default])
