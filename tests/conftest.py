from __future__ import annotations

import base64
from io import BytesIO
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from PIL import Image, ImageDraw

from canvas_studio.api import app as app_module
from canvas_studio.config import settings
from canvas_studio.storage import CharacterStore, HistoryStore, StyleGuideStore


def png_bytes(img: Image.Image) -> bytes:
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def data_url(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def logo_image(size: tuple[int, int] = (200, 100), box: tuple[int, int, int, int] = (20, 30, 60, 70)) -> Image.Image:
    """White canvas with one solid red rectangle; handy for bounds checks."""
    img = Image.new("RGBA", size, (255, 255, 255, 255))
    ImageDraw.Draw(img).rectangle((box[0], box[1], box[2] - 1, box[3] - 1), fill=(220, 20, 20, 255))
    return img


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    # Never talk to a real provider with a developer's .env keys.
    for key in ("openai_api_key", "stability_api_key", "replicate_api_key", "anthropic_api_key", "generator_api_key"):
        monkeypatch.setattr(settings, key, None)
    monkeypatch.setattr(settings, "data_dir", str(tmp_path / "data"))
    monkeypatch.setattr(settings, "replicate_poll_interval", 0.0)
    monkeypatch.setattr(settings, "character_poll_interval", 0.0)


@pytest.fixture()
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture()
def client(monkeypatch: pytest.MonkeyPatch, data_dir: Path) -> TestClient:
    monkeypatch.setattr(app_module, "characters", CharacterStore(data_dir))
    monkeypatch.setattr(app_module, "style_guides", StyleGuideStore(data_dir))
    monkeypatch.setattr(app_module, "history", HistoryStore(data_dir))
    return TestClient(app_module.app)
