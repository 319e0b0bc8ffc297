from __future__ import annotations

import base64
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from canvas_studio.api import app as app_module
from canvas_studio.assembly.icons import ICON_SIZES
from canvas_studio.config import settings
from canvas_studio.errors import ProviderError
from canvas_studio.providers.base import GeneratedImage, ImageRequest
from canvas_studio.storage import CharacterStore
from conftest import data_url, logo_image, png_bytes

PNG = png_bytes(logo_image((8, 8), (0, 0, 4, 4)))


class FakeImageProvider:
    name = "fake"

    def __init__(self, fail_on: set[int] | None = None) -> None:
        self.fail_on = fail_on or set()
        self.requests: list[ImageRequest] = []

    async def generate(self, request: ImageRequest) -> GeneratedImage:
        self.requests.append(request)
        if len(self.requests) in self.fail_on:
            raise ProviderError("fake", "API_ERROR", "upstream hiccup")
        return GeneratedImage(data=PNG, mime_type="image/png", provider=self.name, model="fake-1", prompt_used=request.prompt)


class FakeChat:
    def __init__(self, chunks: list[str], error: ProviderError | None = None) -> None:
        self.chunks = chunks
        self.error = error
        self.calls: list[tuple[str, list[dict[str, str]]]] = []

    async def stream_chat(self, system: str, messages: list[dict[str, str]]) -> AsyncIterator[str]:
        self.calls.append((system, messages))
        for chunk in self.chunks:
            yield chunk
        if self.error:
            raise self.error


def _error(resp: Any) -> dict[str, str]:
    body = resp.json()
    assert body["success"] is False
    return body["error"]


# ---------------------------------------------------------------------------
# icons
# ---------------------------------------------------------------------------


class TestGenerateIcons:
    def test_options_describe_every_size(self, client: TestClient) -> None:
        body = client.get("/api/generate-icons").json()
        assert body["success"] is True
        assert [s["name"] for s in body["sizes"]] == list(ICON_SIZES)
        assert body["modes"] == ["auto", "square"]
        assert body["paddingRange"] == {"min": 0, "max": 30, "default": 10}

    def test_generates_every_icon_and_ico(self, client: TestClient) -> None:
        resp = client.post("/api/generate-icons", json={"image": data_url(png_bytes(logo_image()))})
        assert resp.status_code == 200
        body = resp.json()

        assert set(body["icons"]) == set(ICON_SIZES) | {"favicon-ico"}
        for name, spec in ICON_SIZES.items():
            assert (body["icons"][name]["width"], body["icons"][name]["height"]) == (spec.width, spec.height)
        assert body["icons"]["favicon-ico"]["dataUrl"].startswith("data:image/x-icon;base64,")
        assert body["detected_bounds"] == {"x": 20, "y": 30, "width": 40, "height": 40}
        assert body["metadata"]["originalSize"] == "200x100"

    def test_bare_base64_is_accepted(self, client: TestClient) -> None:
        raw = base64.b64encode(png_bytes(logo_image())).decode("ascii")
        resp = client.post("/api/generate-icons", json={"image": raw, "mode": "square"})
        assert resp.status_code == 200
        assert resp.json()["detected_bounds"] is None

    @pytest.mark.parametrize(
        ("payload", "code"),
        [
            ({}, "MISSING_IMAGE"),
            ({"image": "x", "mode": "circle"}, "INVALID_MODE"),
            ({"image": "x", "padding": 45}, "INVALID_PADDING"),
            ({"image": "x", "background": "red"}, "INVALID_BACKGROUND"),
            ({"image": "data:image/png;base64,@@@"}, "INVALID_IMAGE_FORMAT"),
            ({"image": base64.b64encode(b"not an image").decode()}, "INVALID_IMAGE_FORMAT"),
        ],
    )
    def test_rejects_bad_input(self, client: TestClient, payload: dict[str, Any], code: str) -> None:
        resp = client.post("/api/generate-icons", json=payload)
        assert resp.status_code == 400
        assert _error(resp)["code"] == code

    def test_bounds_outside_image(self, client: TestClient) -> None:
        payload = {"image": data_url(png_bytes(logo_image())), "bounds": {"x": 900, "y": 900, "width": 5, "height": 5}}
        resp = client.post("/api/generate-icons", json=payload)
        assert _error(resp)["code"] == "INVALID_BOUNDS"

    def test_malformed_body_uses_envelope(self, client: TestClient) -> None:
        resp = client.post("/api/generate-icons", json={"image": "x", "padding": "lots"})
        assert resp.status_code == 400
        assert _error(resp)["code"] == "INVALID_REQUEST"

    def test_generator_key_required_when_configured(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "generator_api_key", "s3cret")

        denied = client.post("/api/generate-icons", json={"image": "x", "mode": "circle"})
        assert denied.status_code == 401
        assert _error(denied)["code"] == "UNAUTHORIZED"

        allowed = client.post("/api/generate-icons", json={"image": "x", "mode": "circle"}, headers={"X-API-Key": "s3cret"})
        assert _error(allowed)["code"] == "INVALID_MODE"

    def test_same_origin_skips_generator_key(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings, "generator_api_key", "s3cret")
        resp = client.post(
            "/api/generate-icons", json={"image": "x", "mode": "circle"}, headers={"Origin": "http://testserver"}
        )
        assert _error(resp)["code"] == "INVALID_MODE"


# ---------------------------------------------------------------------------
# providers & generation
# ---------------------------------------------------------------------------


def test_providers_report_platform_keys(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "stability_api_key", "sk-platform")
    providers = {p["id"]: p for p in client.get("/api/providers").json()["providers"]}

    assert providers["stability"]["hasPlatformKey"] is True
    assert providers["openai"]["hasPlatformKey"] is False
    assert providers["anthropic"]["available"] is False
    assert client.get("/api/platform-keys").json()["platformKeys"]["stability"] is True


@pytest.mark.parametrize(
    ("path", "payload"),
    [
        ("/api/generate", {"prompt": "a red fox", "provider": "openai"}),
        ("/api/outpaint", {"image": data_url(PNG), "right": 100}),
        ("/api/remove-background", {"image": data_url(PNG)}),
        ("/api/generate-background", {"setting": "studio"}),
        ("/api/character-variations", {"subject": data_url(PNG), "prompt": "waving"}),
        ("/api/chat/brand", {"messages": [{"role": "user", "content": "hi"}]}),
    ],
)
def test_missing_key_is_unauthorized(client: TestClient, path: str, payload: dict[str, Any]) -> None:
    resp = client.post(path, json=payload)
    assert resp.status_code == 401
    assert _error(resp)["code"] == "NO_API_KEY"


def test_unknown_provider(client: TestClient) -> None:
    resp = client.post("/api/generate", json={"prompt": "x", "provider": "midjourney", "user_api_key": "k"})
    assert resp.status_code == 400
    assert _error(resp)["code"] == "INVALID_PROVIDER"


def test_generate_records_history(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    fake = FakeImageProvider()
    monkeypatch.setattr(app_module, "get_provider", lambda provider_id, key=None: fake)

    resp = client.post(
        "/api/generate",
        json={"subject": "a lighthouse", "usage": "Blog", "dimension": "Vertical (9:16)", "provider": "openai"},
    )
    body = resp.json()

    assert body["success"] is True
    assert body["prompt"] == "Blog image of a lighthouse."
    assert (fake.requests[0].width, fake.requests[0].height) == (1024, 1792)

    entries = client.get("/api/history").json()["history"]
    assert [e["id"] for e in entries] == [body["id"]]
    image = client.get(f"/api/history/{body['id']}/image")
    assert image.status_code == 200
    assert image.content == PNG


def test_history_image_unknown_id(client: TestClient) -> None:
    resp = client.get("/api/history/nope/image")
    assert resp.status_code == 404
    assert _error(resp)["code"] == "NOT_FOUND"


class TestLogos:
    payload = {
        "brandName": "Acme",
        "description": "rockets for everyone",
        "logoType": "icon_mark",
        "style": "minimal",
        "provider": "openai",
    }

    def test_partial_success_keeps_survivors(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        fake = FakeImageProvider(fail_on={2})
        monkeypatch.setattr(app_module, "get_provider", lambda provider_id, key=None: fake)

        body = client.post("/api/generate-logos", json=self.payload).json()

        assert body["success"] is True
        assert len(body["variations"]) == 3
        assert body["metadata"]["requested_count"] == 4
        assert body["metadata"]["errors"] == ["Variation 2: upstream hiccup"]
        assert body["variations"][0]["imageUrl"].startswith("data:image/png;base64,")

    def test_count_is_clamped(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        fake = FakeImageProvider()
        monkeypatch.setattr(app_module, "get_provider", lambda provider_id, key=None: fake)
        body = client.post("/api/generate-logos", json={**self.payload, "count": 12}).json()
        assert body["metadata"]["count"] == 4
        assert len(fake.requests) == 4

    def test_all_failures(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        fake = FakeImageProvider(fail_on={1, 2})
        monkeypatch.setattr(app_module, "get_provider", lambda provider_id, key=None: fake)
        resp = client.post("/api/generate-logos", json={**self.payload, "count": 2})
        assert resp.status_code == 500
        assert _error(resp)["code"] == "API_ERROR"

    @pytest.mark.parametrize(
        ("override", "code"),
        [
            ({"brandName": ""}, "MISSING_REQUIRED_FIELDS"),
            ({"logoType": "mascot"}, "INVALID_LOGO_TYPE"),
            ({"style": "grunge"}, "INVALID_STYLE"),
            ({"provider": "anthropic"}, "INVALID_PROVIDER"),
        ],
    )
    def test_validation(self, client: TestClient, override: dict[str, str], code: str) -> None:
        resp = client.post("/api/generate-logos", json={**self.payload, **override})
        assert _error(resp)["code"] == code


def test_character_variation_cues(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    fake = FakeImageProvider()
    monkeypatch.setattr(app_module, "get_provider", lambda provider_id, key=None: fake)

    body = client.post(
        "/api/generate-character",
        json={"description": "a friendly barista", "setting": "studio", "expression": "neutral", "provider": "stability", "count": 2},
    ).json()

    assert len(body["variations"]) == 2
    assert len({r.prompt for r in fake.requests}) == 2
    assert (fake.requests[0].width, fake.requests[0].height) == (1536, 1024)


@pytest.mark.parametrize(
    ("override", "code"),
    [({"setting": "moon"}, "INVALID_SETTING"), ({"expression": "angry"}, "INVALID_EXPRESSION"), ({"aspectRatio": "5:4"}, "INVALID_ASPECT_RATIO")],
)
def test_character_validation(client: TestClient, override: dict[str, str], code: str) -> None:
    payload = {"description": "d", "setting": "studio", "expression": "neutral", "provider": "openai", **override}
    assert _error(client.post("/api/generate-character", json=payload))["code"] == code


@pytest.mark.parametrize(
    ("payload", "code"),
    [
        ({"image": "x"}, "NO_EXTENSION"),
        ({"image": "x", "left": -5}, "INVALID_EXTENSION"),
        ({"image": "x", "top": 4096}, "EXTENSION_TOO_LARGE"),
        ({"right": 10}, "MISSING_IMAGE"),
    ],
)
def test_outpaint_validation(client: TestClient, payload: dict[str, Any], code: str) -> None:
    assert _error(client.post("/api/outpaint", json=payload))["code"] == code


def test_img2img_validation(client: TestClient) -> None:
    base = {"sourceImage": data_url(PNG), "transformationMode": "style_transfer"}
    assert _error(client.post("/api/generate-img2img", json={**base, "transformationMode": "melt"}))["code"] == "INVALID_MODE"
    assert _error(client.post("/api/generate-img2img", json={**base, "styleStrength": 150}))["code"] == "INVALID_STRENGTH"


def test_character_variations_output_bounds(client: TestClient) -> None:
    payload = {"subject": data_url(PNG), "prompt": "waving", "numberOfOutputs": 7, "user_api_key": "r8"}
    assert _error(client.post("/api/character-variations", json=payload))["code"] == "INVALID_NUMBER_OF_OUTPUTS"


# ---------------------------------------------------------------------------
# remote images
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("url", "code"),
    [("", "MISSING_URL"), ("not a url", "INVALID_URL"), ("ftp://example.com/logo.png", "INVALID_PROTOCOL")],
)
def test_fetch_image_rejects(client: TestClient, url: str, code: str) -> None:
    assert _error(client.post("/api/fetch-image", json={"url": url}))["code"] == code


def test_download_decodes_data_url(client: TestClient) -> None:
    resp = client.post("/api/download", json={"imageUrl": data_url(PNG)})
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/png"
    assert resp.content == PNG


def _serve_remote(monkeypatch: pytest.MonkeyPatch, handler: Any) -> None:
    transport = httpx.MockTransport(handler)
    monkeypatch.setattr(
        app_module, "async_client", lambda timeout, **kw: httpx.AsyncClient(transport=transport, **kw)
    )


def test_fetch_image_returns_data_url(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    _serve_remote(monkeypatch, lambda request: httpx.Response(200, content=PNG, headers={"content-type": "image/png"}))
    body = client.post("/api/fetch-image", json={"url": "https://cdn.example.com/logo.png"}).json()
    assert body["success"] is True
    assert body["contentType"] == "image/png"
    assert body["size"] == len(PNG)
    assert body["imageBase64"] == data_url(PNG)


def test_fetch_image_normalizes_jpg_content_type(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    _serve_remote(monkeypatch, lambda request: httpx.Response(200, content=b"\xff\xd8jpeg", headers={"content-type": "image/jpg"}))
    body = client.post("/api/fetch-image", json={"url": "https://cdn.example.com/photo.jpg"}).json()
    assert body["contentType"] == "image/jpeg"
    assert body["imageBase64"].startswith("data:image/jpeg;base64,")


def test_fetch_image_rejects_non_image(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    _serve_remote(monkeypatch, lambda request: httpx.Response(200, text="<html></html>", headers={"content-type": "text/html"}))
    resp = client.post("/api/fetch-image", json={"url": "https://example.com/"})
    assert resp.status_code == 400
    assert _error(resp)["code"] == "INVALID_CONTENT_TYPE"


def test_fetch_image_remote_error(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    _serve_remote(monkeypatch, lambda request: httpx.Response(404))
    assert _error(client.post("/api/fetch-image", json={"url": "https://example.com/gone.png"}))["code"] == "FETCH_FAILED"


def test_fetch_image_rejects_declared_oversize(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "max_fetch_bytes", 1000)
    _serve_remote(monkeypatch, lambda request: httpx.Response(200, content=b"x" * 1001, headers={"content-type": "image/png"}))
    resp = client.post("/api/fetch-image", json={"url": "https://example.com/huge.png"})
    assert resp.status_code == 400
    assert _error(resp)["code"] == "FILE_TOO_LARGE"


def test_fetch_image_stops_reading_oversized_stream(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "max_fetch_bytes", 1000)
    sent: list[int] = []

    async def body() -> AsyncIterator[bytes]:
        for _ in range(5):
            sent.append(600)
            yield b"x" * 600

    # No content-length header: a chunked body has to be counted as it arrives.
    _serve_remote(monkeypatch, lambda request: httpx.Response(200, content=body(), headers={"content-type": "image/png"}))
    resp = client.post("/api/fetch-image", json={"url": "https://example.com/endless.png"})
    assert _error(resp)["code"] == "FILE_TOO_LARGE"
    assert len(sent) < 5


def test_download_proxies_remote_image(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    _serve_remote(monkeypatch, lambda request: httpx.Response(200, content=PNG, headers={"content-type": "image/png"}))
    resp = client.post("/api/download", json={"imageUrl": "https://cdn.example.com/logo.png"})
    assert resp.status_code == 200
    assert resp.content == PNG


# ---------------------------------------------------------------------------
# brand chat
# ---------------------------------------------------------------------------


def test_brand_chat_streams_sse(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    chat = FakeChat(["Hel", "lo"])
    monkeypatch.setattr(app_module, "get_anthropic", lambda key=None: chat)

    resp = client.post(
        "/api/chat/brand",
        json={"messages": [{"role": "assistant", "content": "Welcome"}, {"role": "user", "content": "Ideas?"}]},
    )

    assert resp.headers["content-type"].startswith("text/event-stream")
    assert resp.text == 'data: {"text": "Hel"}\n\ndata: {"text": "lo"}\n\ndata: [DONE]\n\n'
    system, messages = chat.calls[0]
    assert messages == [{"role": "user", "content": "Ideas?"}]
    assert "Funnelists" in system


def test_brand_chat_reports_stream_errors(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    chat = FakeChat(["partial"], error=ProviderError("anthropic", "RATE_LIMITED", "slow down", 400))
    monkeypatch.setattr(app_module, "get_anthropic", lambda key=None: chat)

    resp = client.post("/api/chat/brand", json={"messages": [{"role": "user", "content": "hi"}]})

    assert 'data: {"error": "slow down"}' in resp.text
    assert resp.text.endswith("data: [DONE]\n\n")


def test_brand_chat_needs_a_user_message(client: TestClient) -> None:
    resp = client.post("/api/chat/brand", json={"messages": [{"role": "assistant", "content": "hello"}]})
    assert _error(resp)["code"] == "INVALID_MESSAGES"


# ---------------------------------------------------------------------------
# characters & style guides
# ---------------------------------------------------------------------------


def test_character_crud(client: TestClient) -> None:
    created = client.post("/api/characters", json={"name": "Ava Stone", "role": "Host"})
    assert created.status_code == 201
    char_id = created.json()["character"]["id"]

    assert client.get(f"/api/characters/{char_id}").json()["character"]["role"] == "Host"
    updated = client.put(f"/api/characters/{char_id}", json={"role": "Guest"}).json()["character"]
    assert updated["role"] == "Guest"
    assert [c["id"] for c in client.get("/api/characters").json()["characters"]] == [char_id]

    assert client.delete(f"/api/characters/{char_id}").json() == {"success": True}
    missing = client.get(f"/api/characters/{char_id}")
    assert missing.status_code == 404
    assert _error(missing)["code"] == "NOT_FOUND"


def test_style_guide_lifecycle(client: TestClient) -> None:
    assert client.get("/api/style-guides/active").json()["activeGuideId"] == "funnelists"

    created = client.post("/api/style-guides", json={"name": "Acme Corp"})
    assert created.status_code == 201
    guide_id = created.json()["guide"]["id"]
    assert guide_id == "acme-corp"

    activated = client.put("/api/style-guides/active", json={"activeGuideId": guide_id}).json()
    assert activated["activeGuideId"] == guide_id
    assert client.get("/api/style-guides/active").json()["guide"]["name"] == "Acme Corp"

    deleted = client.delete(f"/api/style-guides/{guide_id}").json()
    assert deleted == {"success": True, "activeGuideId": "funnelists"}


def test_style_guide_presets_and_errors(client: TestClient) -> None:
    presets = client.get("/api/style-guides/presets").json()["presets"]
    assert {p["id"] for p in presets} >= {"funnelists", "minimal"}

    assert _error(client.put("/api/style-guides/active", json={}))["code"] == "MISSING_ID"
    assert client.put("/api/style-guides/active", json={"activeGuideId": "ghost"}).status_code == 404
    assert _error(client.post("/api/style-guides", json={"name": "  "}))["code"] == "INVALID_NAME"
    assert client.post("/api/style-guides", json={"id": "funnelists", "name": "Dup"}).status_code == 409


def test_unexpected_failure_uses_envelope(data_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(app_module, "characters", CharacterStore(data_dir))
    (data_dir / "characters").mkdir(parents=True)
    (data_dir / "characters" / "bob.json").write_text("{not json", "utf-8")
    # The server error middleware re-raises after responding; only the response matters here.
    client = TestClient(app_module.app, raise_server_exceptions=False)

    resp = client.get("/api/characters/bob")

    assert resp.status_code == 500
    assert resp.headers["content-type"] == "application/json"
    assert _error(resp)["code"] == "INTERNAL_ERROR"


class FakeAnalyst:
    def __init__(self, reply: str) -> None:
        self.reply = reply
        self.calls: list[tuple[str, bytes | None, str | None]] = []

    async def analyze_brand(self, prompt: str, image_bytes: bytes | None = None, media_type: str | None = None) -> str:
        self.calls.append((prompt, image_bytes, media_type))
        return self.reply


GUIDE_REPLY = '```json\n{"name": "Acme", "colors": {"primary": [{"hex": "#112233", "name": "Navy"}]}}\n```'


def test_extract_guide_from_image(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    analyst = FakeAnalyst(GUIDE_REPLY)
    monkeypatch.setattr(app_module, "get_anthropic", lambda key=None: analyst)

    resp = client.post("/api/style-guides/extract-image", json={"image": data_url(PNG), "brandName": "Acme Labs"})

    assert resp.status_code == 200
    guide = resp.json()["guide"]
    assert guide["name"] == "Acme Labs"
    assert guide["accountId"] == "default"
    assert guide["colors"]["primary"] == [{"hex": "#112233", "name": "Navy"}]
    assert analyst.calls[0][1:] == (PNG, "image/png")


@pytest.mark.parametrize(
    ("payload", "status", "code"),
    [
        ({}, 400, "MISSING_IMAGE"),
        ({"image": data_url(b"%PDF-1.4", "application/pdf")}, 400, "INVALID_FILE_TYPE"),
        ({"image": data_url(PNG)}, 401, "NO_API_KEY"),
    ],
)
def test_extract_image_rejects(client: TestClient, payload: dict[str, Any], status: int, code: str) -> None:
    resp = client.post("/api/style-guides/extract-image", json=payload)
    assert resp.status_code == status
    assert _error(resp)["code"] == code


def test_extract_image_unreadable_reply(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(app_module, "get_anthropic", lambda key=None: FakeAnalyst("Sorry, I can't help with that."))
    resp = client.post("/api/style-guides/extract-image", json={"image": data_url(PNG)})
    assert resp.status_code == 422
    assert _error(resp)["code"] == "EXTRACTION_FAILED"


def test_extract_guide_from_url(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    page = "<html><head><title>Acme</title><style>a{color:#ff6600}</style></head><body>Rockets for everyone</body></html>"
    _serve_remote(monkeypatch, lambda request: httpx.Response(200, text=page, headers={"content-type": "text/html"}))
    analyst = FakeAnalyst(GUIDE_REPLY)
    monkeypatch.setattr(app_module, "get_anthropic", lambda key=None: analyst)

    body = client.post("/api/style-guides/extract-url", json={"url": "https://acme.example"}).json()

    assert body["guide"]["name"] == "Acme"
    assert body["guide"]["sourceUrl"] == "https://acme.example"
    assert body["rawData"]["colors"] == ["#ff6600"]
    prompt = analyst.calls[0][0]
    assert "Content to analyze:" in prompt
    assert "Rockets for everyone" in prompt


def test_extract_url_rejects(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    assert _error(client.post("/api/style-guides/extract-url", json={"url": "acme"}))["code"] == "INVALID_URL"
    assert client.post("/api/style-guides/extract-url", json={"url": "https://acme.example"}).status_code == 401

    monkeypatch.setattr(app_module, "get_anthropic", lambda key=None: FakeAnalyst(GUIDE_REPLY))
    _serve_remote(monkeypatch, lambda request: httpx.Response(503))
    resp = client.post("/api/style-guides/extract-url", json={"url": "https://acme.example"})
    assert resp.status_code == 422
    assert _error(resp)["code"] == "EXTRACTION_FAILED"
