from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    # Clients send camelCase; snake_case is accepted too.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class KeyedRequest(CamelModel):
    # Bring-your-own-key; falls back to the platform key when absent.
    user_api_key: str | None = Field(default=None, alias="user_api_key")


class BoundsModel(CamelModel):
    x: int
    y: int
    width: int
    height: int


class GenerateIconsRequest(KeyedRequest):
    image: str | None = None
    mode: str = "auto"
    padding: float | None = None
    background: str = "transparent"
    bounds: BoundsModel | None = None


class GenerateRequest(KeyedRequest):
    provider: str = "openai"
    prompt: str | None = None
    subject: str | None = None
    usage: str | None = None
    dimension: str | None = None
    additional_details: str | None = None
    negative_prompt: str | None = None
    width: int | None = None
    height: int | None = None
    style: str | None = None
    quality: str | None = None
    model: str | None = None


class ValidateKeyRequest(CamelModel):
    provider: str | None = None
    api_key: str | None = None


class Img2ImgRequest(KeyedRequest):
    source_image: str | None = None
    transformation_mode: str | None = None
    style_strength: float | None = None
    brand_theme: str = "funnelists"
    preserve_options: dict[str, bool] = Field(default_factory=dict)


class OutpaintRequest(KeyedRequest):
    image: str | None = None
    left: int = 0
    right: int = 0
    top: int = 0
    bottom: int = 0
    prompt: str | None = None
    creativity: float = 0.25
    output_format: str = "png"


class RemoveBackgroundRequest(KeyedRequest):
    image: str | None = None


class BackgroundRequest(KeyedRequest):
    setting: str = "studio"
    custom_setting_description: str | None = None
    brand_accent_color: str = "#0ea5e9"
    aspect_ratio: str = "16:9"


class LogoRequest(KeyedRequest):
    brand_name: str | None = None
    description: str | None = None
    logo_type: str | None = None
    style: str | None = None
    provider: str | None = None
    count: int = 4
    guide_id: str | None = None
    color_overrides: dict[str, str] | None = None
    refinement: str | None = None


class CharacterRequest(KeyedRequest):
    description: str | None = None
    setting: str | None = None
    expression: str | None = None
    provider: str | None = None
    outfit_description: str | None = None
    brand_accent_color: str = "#0ea5e9"
    custom_setting_description: str | None = None
    aspect_ratio: str = "16:9"
    count: int = 4


class CharacterVariationsRequest(KeyedRequest):
    subject: str | None = None
    prompt: str | None = None
    negative_prompt: str | None = None
    number_of_outputs: int = 4
    seed: int | None = None


class FetchImageRequest(CamelModel):
    url: str | None = None


class DownloadRequest(CamelModel):
    image_url: str | None = None


class ChatMessage(CamelModel):
    role: str
    content: Any = ""


class BrandChatRequest(KeyedRequest):
    messages: list[ChatMessage] = Field(default_factory=list)
    active_guide_id: str | None = None


class SetActiveGuideRequest(CamelModel):
    active_guide_id: str | None = None


class ExtractImageRequest(KeyedRequest):
    image: str | None = None
    brand_name: str | None = None


class ExtractUrlRequest(KeyedRequest):
    url: str | None = None
    brand_name: str | None = None
