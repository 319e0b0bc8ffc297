from __future__ import annotations

import hmac
import json
import logging
import time
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlparse

import httpx
from fastapi import Body, Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse, Response, StreamingResponse

from canvas_studio.api.schemas import (
    BackgroundRequest,
    BrandChatRequest,
    CharacterRequest,
    CharacterVariationsRequest,
    DownloadRequest,
    ExtractImageRequest,
    ExtractUrlRequest,
    FetchImageRequest,
    GenerateIconsRequest,
    GenerateRequest,
    Img2ImgRequest,
    LogoRequest,
    OutpaintRequest,
    RemoveBackgroundRequest,
    SetActiveGuideRequest,
    ValidateKeyRequest,
)
from canvas_studio.assembly.dataurl import decode_data_url, encode_data_url
from canvas_studio.assembly.icons import (
    DEFAULT_PADDING,
    ICON_MODES,
    ICON_SIZES,
    NAMED_BACKGROUNDS,
    PADDING_RANGE,
    IconBounds,
    InvalidBoundsError,
    InvalidImageError,
    generate_icon_set,
    is_valid_background,
)
from canvas_studio.brand_extraction import (
    BRAND_EXTRACTION_PROMPT,
    EXTRACTABLE_IMAGE_TYPES,
    parse_extracted_guide,
    summarize_page,
)
from canvas_studio.config import configure_logging, settings
from canvas_studio.errors import ApiError, ProviderError, timeout_error
from canvas_studio.presets import DEFAULT_GUIDE_ID, all_presets
from canvas_studio.prompts import (
    BACKGROUND_DIMENSIONS,
    CHARACTER_DIMENSIONS,
    CHARACTER_EXPRESSIONS,
    CHARACTER_SETTINGS,
    IMG2IMG_MODES,
    LOGO_STYLES,
    LOGO_TYPES,
    VARIATION_CUES,
    build_background_prompt,
    build_brand_chat_system_prompt,
    build_character_prompt,
    build_img2img_prompt,
    build_logo_prompt,
    guide_colors,
    image_strength,
    img2img_negative_prompt,
    img2img_parameters,
)
from canvas_studio.providers.anthropic_provider import AnthropicProvider
from canvas_studio.providers.base import IMAGE_PROVIDERS, PROVIDER_CONFIGS, ImageRequest, parse_dimensions
from canvas_studio.providers.http import async_client
from canvas_studio.providers.stability_provider import MAX_OUTPAINT_EXTENSION
from canvas_studio.providers.registry import (
    available_providers,
    check_provider,
    generate_variations,
    get_anthropic,
    get_openai,
    get_provider,
    get_replicate,
    get_stability,
    platform_key,
    platform_keys,
    validate_key,
)
from canvas_studio.storage import CharacterStore, HistoryStore, StyleGuideStore

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="canvas_studio")

characters = CharacterStore()
style_guides = StyleGuideStore()
history = HistoryStore()

ALLOWED_FETCH_TYPES = ("image/png", "image/jpeg", "image/jpg", "image/webp")
MAX_LOGO_VARIATIONS = 4
MAX_CHARACTER_OUTPUTS = 6


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@app.exception_handler(ApiError)
async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.to_dict()})


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{where}: {first.get('msg', 'invalid request')}" if where else str(first.get("msg", "invalid request"))
    return JSONResponse(status_code=400, content={"success": False, "error": {"code": "INVALID_REQUEST", "message": message}})


@app.exception_handler(Exception)
async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": {"code": "INTERNAL_ERROR", "message": str(exc) or "Internal server error"}},
    )


def _decode_image(value: str, code: str = "INVALID_IMAGE_FORMAT") -> tuple[str, bytes]:
    try:
        return decode_data_url(value)
    except ValueError as exc:
        raise ApiError(code, f"Invalid image data: {exc}", 400) from exc


def _require(value: Any, code: str, message: str) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ApiError(code, message, 400)


def require_generator_key(request: Request, x_api_key: str | None = Header(default=None)) -> None:
    """Unset GENERATOR_API_KEY leaves the endpoint open; otherwise same-origin or a matching X-API-Key."""
    expected = settings.generator_api_key
    if not expected:
        return
    if x_api_key and hmac.compare_digest(x_api_key, expected):
        return
    host = request.headers.get("host")
    origin = request.headers.get("origin") or request.headers.get("referer")
    if host and origin and urlparse(origin).netloc == host:
        return
    raise ApiError("UNAUTHORIZED", "A valid X-API-Key header is required", 401)


# --- Icons -----------------------------------------------------------------


@app.get("/api/generate-icons")
def icon_options() -> dict[str, Any]:
    return {
        "success": True,
        "sizes": [
            {
                "name": name,
                "width": spec.width,
                "height": spec.height,
                "padding": spec.padding,
                "isMaskable": name.startswith("maskable"),
            }
            for name, spec in ICON_SIZES.items()
        ],
        "modes": list(ICON_MODES),
        "backgrounds": [*NAMED_BACKGROUNDS, "#RRGGBB"],
        "paddingRange": {"min": PADDING_RANGE[0], "max": PADDING_RANGE[1], "default": DEFAULT_PADDING},
    }


@app.post("/api/generate-icons", dependencies=[Depends(require_generator_key)])
async def generate_icons(body: GenerateIconsRequest) -> dict[str, Any]:
    _require(body.image, "MISSING_IMAGE", "image is required (data URL or base64)")
    if body.mode not in ICON_MODES:
        raise ApiError("INVALID_MODE", f"mode must be one of: {', '.join(ICON_MODES)}", 400)
    if body.padding is not None and not (PADDING_RANGE[0] <= body.padding <= PADDING_RANGE[1]):
        raise ApiError("INVALID_PADDING", f"padding must be between {PADDING_RANGE[0]} and {PADDING_RANGE[1]}", 400)
    if not is_valid_background(body.background):
        raise ApiError("INVALID_BACKGROUND", "background must be transparent, white, black or #RRGGBB", 400)
    _, data = _decode_image(body.image or "")

    locator: AnthropicProvider | None = None
    if body.mode == "auto" and body.bounds is None:
        key = (body.user_api_key or "").strip() or platform_key("anthropic")
        if key:
            locator = AnthropicProvider(key)
        else:
            logger.info("no Anthropic key, icon bounds come from pixel content only")

    bounds = IconBounds(**body.bounds.model_dump()) if body.bounds else None
    try:
        result = await generate_icon_set(
            data,
            mode=body.mode,
            padding=body.padding,
            background=body.background,
            bounds=bounds,
            locator=locator,
        )
    except InvalidImageError as exc:
        raise ApiError("INVALID_IMAGE_FORMAT", str(exc), 400) from exc
    except InvalidBoundsError as exc:
        raise ApiError("INVALID_BOUNDS", str(exc), 400) from exc
    except Exception as exc:
        logger.exception("icon generation failed")
        raise ApiError("INTERNAL_ERROR", f"Icon generation failed: {exc}", 500) from exc

    icons = {
        name: {"dataUrl": icon.data_url, "width": icon.width, "height": icon.height}
        for name, icon in result.icons.items()
    }
    icons["favicon-ico"] = {"dataUrl": encode_data_url(result.favicon_ico, "image/x-icon"), "width": 48, "height": 48}
    return {
        "success": True,
        "icons": icons,
        "detected_bounds": result.detected_bounds.to_dict() if result.detected_bounds else None,
        "metadata": result.metadata,
    }


# --- Providers & generation --------------------------------------------------


@app.get("/api/providers")
def list_providers() -> dict[str, Any]:
    return {"success": True, "providers": available_providers()}


@app.get("/api/platform-keys")
def get_platform_keys() -> dict[str, Any]:
    return {"success": True, "platformKeys": platform_keys()}


@app.post("/api/validate-key")
async def validate_api_key(body: ValidateKeyRequest) -> dict[str, Any]:
    _require(body.provider, "MISSING_PROVIDER", "provider is required")
    _require(body.api_key, "MISSING_API_KEY", "apiKey is required")
    provider = body.provider or ""
    valid = await validate_key(provider, body.api_key or "")
    return {"success": True, "valid": valid, "provider": provider, "providerName": PROVIDER_CONFIGS[provider].name}


def _dimension_size(dimension: str | None) -> tuple[int, int]:
    d = dimension or ""
    if "Vertical" in d or "9:16" in d:
        return (1024, 1792)
    if "Full screen" in d or "16:9" in d or "Rectangle" in d:
        return (1792, 1024)
    return (1024, 1024)


@app.post("/api/generate")
async def generate_image(body: GenerateRequest) -> dict[str, Any]:
    prompt = (body.prompt or "").strip()
    if not prompt and body.subject:
        parts = [f"{body.usage} image" if body.usage else "Image", f"of {body.subject.strip()}."]
        if body.additional_details:
            parts.append(body.additional_details.strip())
        prompt = " ".join(parts)
    _require(prompt, "MISSING_PROMPT", "prompt or subject is required")

    provider = get_provider(body.provider, body.user_api_key)
    default_w, default_h = _dimension_size(body.dimension)
    request = ImageRequest(
        prompt=prompt,
        negative_prompt=body.negative_prompt,
        width=body.width or default_w,
        height=body.height or default_h,
        style=body.style,
        quality=body.quality,
        model=body.model,
    )
    started = time.monotonic()
    image = await provider.generate(request)
    logger.info("generated image provider=%s model=%s in %.1fs", image.provider, image.model, time.monotonic() - started)

    entry = history.append(
        {
            "provider": image.provider,
            "model": image.model,
            "prompt": prompt,
            "usage": body.usage,
            "dimension": body.dimension,
            "subject": body.subject,
        },
        image=image.data,
        mime_type=image.mime_type,
    )
    return {
        "success": True,
        "id": entry["id"],
        "image": image.data_url,
        "provider": image.provider,
        "model": image.model,
        "prompt": prompt,
    }


@app.get("/api/history")
def list_history() -> dict[str, Any]:
    return {"success": True, "history": history.list()}


@app.get("/api/history/{entry_id}/image")
def history_image(entry_id: str) -> FileResponse:
    path, mime = history.image_path(entry_id)
    return FileResponse(path, media_type=mime)


@app.post("/api/generate-img2img")
async def generate_img2img(body: Img2ImgRequest) -> dict[str, Any]:
    _require(body.source_image, "MISSING_SOURCE_IMAGE", "Source image is required")
    _require(body.transformation_mode, "MISSING_MODE", "Transformation mode is required")
    mode = body.transformation_mode or ""
    if mode not in IMG2IMG_MODES:
        raise ApiError("INVALID_MODE", f"transformationMode must be one of: {', '.join(IMG2IMG_MODES)}", 400)
    if body.style_strength is None or not (0 <= body.style_strength <= 100):
        raise ApiError("INVALID_STRENGTH", "Style strength must be between 0 and 100", 400)

    stability = get_stability(body.user_api_key)
    mime, data = _decode_image(body.source_image or "")

    prompt = build_img2img_prompt(mode, body.brand_theme, body.preserve_options)
    negative = img2img_negative_prompt(mode)
    cfg_scale, steps = img2img_parameters(mode)
    strength = image_strength(body.style_strength)

    image = await stability.image_to_image(
        data,
        prompt,
        negative_prompt=negative,
        image_strength=strength,
        cfg_scale=cfg_scale,
        steps=steps,
        mime_type=mime,
    )
    return {
        "success": True,
        "styledImage": image.data_url,
        "prompt": prompt,
        "metadata": {
            "transformationMode": mode,
            "styleStrength": body.style_strength,
            "brandTheme": body.brand_theme,
            "preserveOptions": body.preserve_options,
            "imageStrength": f"{strength:.3f}",
            "cfgScale": cfg_scale,
            "steps": steps,
            "seed": image.raw_metadata.get("seed"),
        },
    }


@app.post("/api/outpaint")
async def outpaint(body: OutpaintRequest) -> dict[str, Any]:
    _require(body.image, "MISSING_IMAGE", "image is required")
    extents = {"left": body.left, "right": body.right, "top": body.top, "bottom": body.bottom}
    if any(v < 0 for v in extents.values()):
        raise ApiError("INVALID_EXTENSION", "extension values cannot be negative", 400)
    if not any(v > 0 for v in extents.values()):
        raise ApiError("NO_EXTENSION", "At least one direction must be greater than 0", 400)
    too_large = [k for k, v in extents.items() if v > MAX_OUTPAINT_EXTENSION]
    if too_large:
        raise ApiError(
            "EXTENSION_TOO_LARGE",
            f"Maximum extension is {MAX_OUTPAINT_EXTENSION}px per direction ({', '.join(too_large)})",
            400,
        )

    stability = get_stability(body.user_api_key)
    mime, data = _decode_image(body.image or "", code="INVALID_IMAGE")
    image = await stability.outpaint(
        data,
        left=body.left,
        right=body.right,
        top=body.top,
        bottom=body.bottom,
        prompt=body.prompt,
        creativity=body.creativity,
        output_format=body.output_format,
        mime_type=mime,
    )
    return {"success": True, "imageBase64": image.data_url}


@app.post("/api/remove-background")
async def remove_background(body: RemoveBackgroundRequest) -> dict[str, Any]:
    _require(body.image, "MISSING_IMAGE", "image is required")
    stability = get_stability(body.user_api_key)
    mime, data = _decode_image(body.image or "", code="INVALID_IMAGE")
    image = await stability.remove_background(data, mime_type=mime)
    return {"success": True, "imageBase64": image.data_url}


@app.post("/api/generate-background")
async def generate_background(body: BackgroundRequest) -> dict[str, Any]:
    openai_provider = get_openai(body.user_api_key)
    w, h = parse_dimensions(body.aspect_ratio, BACKGROUND_DIMENSIONS)
    prompt = build_background_prompt(body.setting, body.brand_accent_color, body.custom_setting_description)
    image, revised = await openai_provider.generate_background(prompt, w, h)
    return {"success": True, "background": image.data_url, "revisedPrompt": revised}


@app.post("/api/generate-logos")
async def generate_logos(body: LogoRequest) -> dict[str, Any]:
    missing = [
        name
        for name, value in (
            ("brandName", body.brand_name),
            ("description", body.description),
            ("logoType", body.logo_type),
            ("style", body.style),
            ("provider", body.provider),
        )
        if not value
    ]
    if missing:
        raise ApiError("MISSING_REQUIRED_FIELDS", f"Missing required fields: {', '.join(missing)}", 400)
    if body.logo_type not in LOGO_TYPES:
        raise ApiError("INVALID_LOGO_TYPE", f"logoType must be one of: {', '.join(LOGO_TYPES)}", 400)
    if body.style not in LOGO_STYLES:
        raise ApiError("INVALID_STYLE", f"style must be one of: {', '.join(LOGO_STYLES)}", 400)
    provider_id = body.provider or ""
    if provider_id not in IMAGE_PROVIDERS:
        raise ApiError("INVALID_PROVIDER", f"provider must be one of: {', '.join(IMAGE_PROVIDERS)}", 400)

    count = max(1, min(MAX_LOGO_VARIATIONS, body.count))
    guide = style_guides.load(body.guide_id)
    colors = guide_colors(guide, body.color_overrides)
    prompt, negative = build_logo_prompt(
        body.brand_name or "",
        body.description or "",
        body.logo_type or "",
        body.style or "",
        provider_id,
        colors=colors,
        refinement=body.refinement,
    )

    provider = get_provider(provider_id, body.user_api_key)
    requests = [
        ImageRequest(prompt=prompt, negative_prompt=negative, width=1024, height=1024, style="vivid", quality="hd")
        for _ in range(count)
    ]
    images, errors = await generate_variations(provider, requests)
    return {
        "success": True,
        "variations": [{"imageUrl": img.data_url, "prompt": prompt} for img in images],
        "metadata": {
            "brandName": body.brand_name,
            "logoType": body.logo_type,
            "style": body.style,
            "provider": provider_id,
            "model": PROVIDER_CONFIGS[provider_id].default_model,
            "generated_at": _utc_now(),
            "count": len(images),
            "requested_count": count,
            "errors": errors or None,
        },
    }


@app.post("/api/generate-character")
async def generate_character(body: CharacterRequest) -> dict[str, Any]:
    missing = [
        name
        for name, value in (
            ("description", body.description),
            ("setting", body.setting),
            ("expression", body.expression),
            ("provider", body.provider),
        )
        if not value
    ]
    if missing:
        raise ApiError("MISSING_REQUIRED_FIELDS", f"Missing required fields: {', '.join(missing)}", 400)
    if body.setting not in CHARACTER_SETTINGS:
        raise ApiError("INVALID_SETTING", f"setting must be one of: {', '.join(CHARACTER_SETTINGS)}", 400)
    if body.expression not in CHARACTER_EXPRESSIONS:
        raise ApiError("INVALID_EXPRESSION", f"expression must be one of: {', '.join(CHARACTER_EXPRESSIONS)}", 400)
    if body.aspect_ratio not in CHARACTER_DIMENSIONS:
        raise ApiError("INVALID_ASPECT_RATIO", f"aspectRatio must be one of: {', '.join(CHARACTER_DIMENSIONS)}", 400)
    provider_id = body.provider or ""
    check_provider(provider_id)

    count = max(1, min(len(VARIATION_CUES), body.count))
    prompt, negative = build_character_prompt(
        body.description or "",
        body.setting or "",
        body.expression or "",
        provider_id,
        outfit=body.outfit_description,
        accent_color=body.brand_accent_color,
        custom_setting=body.custom_setting_description,
        aspect_ratio=body.aspect_ratio,
    )
    w, h = CHARACTER_DIMENSIONS[body.aspect_ratio]

    provider = get_provider(provider_id, body.user_api_key)
    prompts = [f"{prompt}\n{cue}" if cue else prompt for cue in VARIATION_CUES[:count]]
    requests = [
        ImageRequest(prompt=p, negative_prompt=negative, width=w, height=h, style="natural", quality="hd")
        for p in prompts
    ]
    images, errors = await generate_variations(provider, requests)
    return {
        "success": True,
        "variations": [{"imageUrl": img.data_url, "prompt": img.prompt_used} for img in images],
        "metadata": {
            "setting": body.setting,
            "expression": body.expression,
            "provider": provider_id,
            "model": PROVIDER_CONFIGS[provider_id].default_model,
            "aspectRatio": body.aspect_ratio,
            "generated_at": _utc_now(),
            "count": len(images),
            "requested_count": count,
            "errors": errors or None,
        },
    }


@app.post("/api/character-variations")
async def character_variations(body: CharacterVariationsRequest) -> dict[str, Any]:
    _require(body.subject, "MISSING_SUBJECT", "subject (reference image) is required")
    _require(body.prompt, "MISSING_PROMPT", "prompt is required")
    if not (1 <= body.number_of_outputs <= MAX_CHARACTER_OUTPUTS):
        raise ApiError(
            "INVALID_NUMBER_OF_OUTPUTS", f"numberOfOutputs must be between 1 and {MAX_CHARACTER_OUTPUTS}", 400
        )
    replicate = get_replicate(body.user_api_key)
    images = await replicate.character_variations(
        body.subject or "",
        body.prompt or "",
        negative_prompt=body.negative_prompt,
        number_of_outputs=body.number_of_outputs,
        seed=body.seed,
    )
    return {"success": True, "variations": [img.data_url for img in images]}


# --- Remote images ------------------------------------------------------------


def _too_large() -> ApiError:
    return ApiError("FILE_TOO_LARGE", f"Image exceeds {settings.max_fetch_bytes // (1024 * 1024)}MB", 400)


async def _fetch_remote(
    url: str,
    accept: str = "image/*",
    allowed_types: tuple[str, ...] | None = None,
) -> tuple[str, bytes]:
    """Stream the body so an oversized response is cut off at max_fetch_bytes."""
    limit = settings.max_fetch_bytes
    try:
        async with async_client(settings.fetch_timeout, follow_redirects=True) as client:
            async with client.stream("GET", url, headers={"Accept": accept}) as resp:
                if not resp.is_success:
                    raise ApiError("FETCH_FAILED", f"Remote server returned HTTP {resp.status_code}", 400)
                content_type = resp.headers.get("content-type", "").split(";")[0].strip().lower()
                if allowed_types is not None and content_type not in allowed_types:
                    raise ApiError(
                        "INVALID_CONTENT_TYPE", f"Unsupported content type: {content_type or 'unknown'}", 400
                    )
                declared = resp.headers.get("content-length", "")
                if declared.isdigit() and int(declared) > limit:
                    raise _too_large()
                chunks: list[bytes] = []
                received = 0
                async for chunk in resp.aiter_bytes():
                    received += len(chunk)
                    if received > limit:
                        raise _too_large()
                    chunks.append(chunk)
    except httpx.TimeoutException as exc:
        raise timeout_error("fetch", settings.fetch_timeout) from exc
    except httpx.RequestError as exc:
        raise ApiError("FETCH_FAILED", f"Failed to fetch image: {exc}", 502) from exc
    return content_type, b"".join(chunks)


@app.post("/api/fetch-image")
async def fetch_image(body: FetchImageRequest) -> dict[str, Any]:
    _require(body.url, "MISSING_URL", "url is required")
    parsed = urlparse((body.url or "").strip())
    if not parsed.scheme or not parsed.netloc:
        raise ApiError("INVALID_URL", "url is not a valid URL", 400)
    if parsed.scheme not in ("http", "https"):
        raise ApiError("INVALID_PROTOCOL", "Only http and https URLs are allowed", 400)

    content_type, data = await _fetch_remote(parsed.geturl(), allowed_types=ALLOWED_FETCH_TYPES)
    # image/jpg is accepted on the wire but isn't a registered type.
    if content_type == "image/jpg":
        content_type = "image/jpeg"

    return {
        "success": True,
        "imageBase64": encode_data_url(data, content_type),
        "contentType": content_type,
        "size": len(data),
    }


@app.post("/api/download")
async def download(body: DownloadRequest) -> Response:
    _require(body.image_url, "MISSING_URL", "imageUrl is required")
    url = body.image_url or ""
    if url.startswith("data:"):
        mime, data = _decode_image(url)
        return Response(content=data, media_type=mime)
    if urlparse(url).scheme not in ("http", "https"):
        raise ApiError("INVALID_PROTOCOL", "Only http and https URLs are allowed", 400)
    content_type, data = await _fetch_remote(url)
    return Response(content=data, media_type=content_type or "image/png")


# --- Brand chat -----------------------------------------------------------------


def _sanitize_messages(messages: list[Any]) -> list[dict[str, str]]:
    """Anthropic wants non-empty user/assistant turns that start with the user and end with the user."""
    cleaned: list[dict[str, str]] = []
    for m in messages:
        if m.role not in ("user", "assistant"):
            continue
        content = m.content if isinstance(m.content, str) else json.dumps(m.content)
        if not content.strip():
            continue
        cleaned.append({"role": m.role, "content": content})
    while cleaned and cleaned[0]["role"] != "user":
        cleaned.pop(0)
    while cleaned and cleaned[-1]["role"] == "assistant":
        cleaned.pop()
    return cleaned


def _sse(payload: Any) -> str:
    return f"data: {json.dumps(payload)}\n\n"


@app.post("/api/chat/brand")
async def brand_chat(body: BrandChatRequest) -> StreamingResponse:
    if not body.messages:
        raise ApiError("INVALID_MESSAGES", "messages must be a non-empty array", 400)
    messages = _sanitize_messages(body.messages)
    if not messages:
        raise ApiError("INVALID_MESSAGES", "messages must contain at least one non-empty user message", 400)

    anthropic = get_anthropic(body.user_api_key)
    system = build_brand_chat_system_prompt(style_guides.load(body.active_guide_id))

    async def events() -> AsyncIterator[str]:
        try:
            async for text in anthropic.stream_chat(system, messages):
                yield _sse({"text": text})
        except ProviderError as exc:
            logger.warning("brand chat stream failed: %s", exc.message)
            yield _sse({"error": exc.message})
        yield "data: [DONE]\n\n"

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


# --- Characters -----------------------------------------------------------------


@app.get("/api/characters")
def list_characters() -> dict[str, Any]:
    return {"success": True, "characters": characters.list()}


@app.post("/api/characters", status_code=201)
def create_character(body: dict[str, Any] = Body(...)) -> dict[str, Any]:
    return {"success": True, "character": characters.create(body)}


@app.get("/api/characters/{character_id}")
def get_character(character_id: str) -> dict[str, Any]:
    return {"success": True, "character": characters.read(character_id)}


@app.put("/api/characters/{character_id}")
def update_character(character_id: str, body: dict[str, Any] = Body(...)) -> dict[str, Any]:
    return {"success": True, "character": characters.update(character_id, body)}


@app.delete("/api/characters/{character_id}")
def delete_character(character_id: str) -> dict[str, Any]:
    characters.delete(character_id)
    return {"success": True}


# --- Style guides ---------------------------------------------------------------
# Fixed paths are registered before /{guide_id} so they aren't captured as ids.


@app.get("/api/style-guides/presets")
def list_presets() -> dict[str, Any]:
    return {"success": True, "presets": all_presets()}


@app.get("/api/style-guides/active")
def get_active_guide() -> dict[str, Any]:
    guide = style_guides.get_active()
    return {"success": True, "activeGuideId": guide.get("id", DEFAULT_GUIDE_ID), "guide": guide}


@app.put("/api/style-guides/active")
def set_active_guide(body: SetActiveGuideRequest) -> dict[str, Any]:
    _require(body.active_guide_id, "MISSING_ID", "activeGuideId is required")
    guide = style_guides.set_active(body.active_guide_id or "")
    return {"success": True, "activeGuideId": guide["id"], "guide": guide}


@app.get("/api/style-guides")
def list_style_guides() -> dict[str, Any]:
    return {"success": True, "guides": style_guides.list()}


@app.post("/api/style-guides", status_code=201)
def create_style_guide(body: dict[str, Any] = Body(...)) -> dict[str, Any]:
    return {"success": True, "guide": style_guides.create(body)}


@app.post("/api/style-guides/extract-image")
async def extract_guide_from_image(body: ExtractImageRequest) -> dict[str, Any]:
    _require(body.image, "MISSING_IMAGE", "image is required (data URL or base64)")
    mime, data = _decode_image(body.image or "")
    if mime not in EXTRACTABLE_IMAGE_TYPES:
        raise ApiError("INVALID_FILE_TYPE", f"image must be one of: {', '.join(EXTRACTABLE_IMAGE_TYPES)}", 400)
    analyst = get_anthropic(body.user_api_key)

    reply = await analyst.analyze_brand(BRAND_EXTRACTION_PROMPT, image_bytes=data, media_type=mime)
    guide = parse_extracted_guide(reply, "image", brand_name=body.brand_name)
    logger.info("extracted style guide %r from a %s image", guide["name"], mime)
    return {"success": True, "guide": guide}


@app.post("/api/style-guides/extract-url")
async def extract_guide_from_url(body: ExtractUrlRequest) -> dict[str, Any]:
    parsed = urlparse((body.url or "").strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ApiError("INVALID_URL", "A valid http(s) url is required", 400)
    analyst = get_anthropic(body.user_api_key)

    try:
        _, page = await _fetch_remote(parsed.geturl(), accept="text/html,application/xhtml+xml,*/*;q=0.8")
    except ApiError as exc:
        raise ApiError("EXTRACTION_FAILED", f"Could not load {parsed.geturl()}: {exc.message}", 422) from exc
    content, raw = summarize_page(page.decode("utf-8", errors="replace"))

    reply = await analyst.analyze_brand(f"{BRAND_EXTRACTION_PROMPT}\n\nContent to analyze:\n{content}")
    guide = parse_extracted_guide(reply, "url", brand_name=body.brand_name, source_url=parsed.geturl())
    logger.info("extracted style guide %r from %s", guide["name"], parsed.netloc)
    return {"success": True, "guide": guide, "rawData": raw}


@app.get("/api/style-guides/{guide_id}")
def get_style_guide(guide_id: str) -> dict[str, Any]:
    return {"success": True, "guide": style_guides.read(guide_id)}


@app.put("/api/style-guides/{guide_id}")
def update_style_guide(guide_id: str, body: dict[str, Any] = Body(...)) -> dict[str, Any]:
    return {"success": True, "guide": style_guides.update(guide_id, body)}


@app.delete("/api/style-guides/{guide_id}")
def delete_style_guide(guide_id: str) -> dict[str, Any]:
    style_guides.delete(guide_id)
    return {"success": True, "activeGuideId": style_guides.active_id()}
