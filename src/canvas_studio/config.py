from __future__ import annotations

import logging

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Loads keys from process env, and also from a local .env file.
    model_config = SettingsConfigDict(env_prefix="", extra="ignore", env_file=".env", env_file_encoding="utf-8")

    data_dir: str = "data"
    log_level: str = "INFO"

    # Platform keys (a key supplied with the request always wins)
    openai_api_key: str | None = None
    stability_api_key: str | None = None
    replicate_api_key: str | None = None
    anthropic_api_key: str | None = None

    # Gate for icon generation; unset means open.
    generator_api_key: str | None = None

    # Models
    openai_image_model: str = "dall-e-3"
    stability_model: str = "stable-image-core"
    replicate_image_model: str = "black-forest-labs/flux-schnell"
    replicate_character_model: str = "fofr/consistent-character"
    anthropic_model: str = "claude-sonnet-4-20250514"

    # Deadlines (seconds)
    openai_timeout: float = 120.0
    stability_timeout: float = 120.0
    img2img_timeout: float = 120.0
    outpaint_timeout: float = 90.0
    remove_background_timeout: float = 60.0
    replicate_timeout: float = 120.0
    character_variations_timeout: float = 180.0
    fetch_timeout: float = 30.0

    replicate_poll_interval: float = 1.0
    character_poll_interval: float = 2.0

    history_limit: int = 50
    max_fetch_bytes: int = 10 * 1024 * 1024


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


settings = Settings()
