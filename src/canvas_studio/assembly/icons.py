from __future__ import annotations

import asyncio
import json
import logging
import math
import re
import time
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Protocol

from PIL import Image, ImageChops, ImageOps, UnidentifiedImageError

from canvas_studio.assembly.dataurl import encode_data_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IconSpec:
    width: int
    height: int
    padding: int  # percent of the source edge added on every side


ICON_SIZES: dict[str, IconSpec] = {
    # Favicons stay tight; there's no room to spare at 16px.
    "favicon-16x16": IconSpec(16, 16, 0),
    "favicon-32x32": IconSpec(32, 32, 0),
    "favicon-48x48": IconSpec(48, 48, 0),
    "apple-touch-icon": IconSpec(180, 180, 10),
    "icon-72x72": IconSpec(72, 72, 10),
    "icon-96x96": IconSpec(96, 96, 10),
    "icon-128x128": IconSpec(128, 128, 10),
    "icon-144x144": IconSpec(144, 144, 10),
    "icon-152x152": IconSpec(152, 152, 10),
    "icon-192x192": IconSpec(192, 192, 10),
    "icon-384x384": IconSpec(384, 384, 10),
    "icon-512x512": IconSpec(512, 512, 10),
    "mstile-150x150": IconSpec(150, 150, 10),
    # Maskable icons must keep content inside the platform safe zone.
    "maskable-192x192": IconSpec(192, 192, 40),
    "maskable-512x512": IconSpec(512, 512, 40),
}

ICON_MODES = ("auto", "square")
NAMED_BACKGROUNDS = ("transparent", "white", "black")
DEFAULT_PADDING = 10
PADDING_RANGE = (0, 30)

# Content smaller than this share of the canvas is already isolated from any wordmark.
CONTENT_RATIO_FOR_VISION = 0.6
ALPHA_CONTENT_THRESHOLD = 20
COLOR_CONTENT_THRESHOLD = 30
VISION_MIN_BOX = 0.05
VISION_BUFFER = 0.05

ICON_LOCATE_PROMPT = (
    "This image may contain a logo made of an icon/symbol and a text wordmark.\n"
    "Locate ONLY the icon/symbol portion, excluding any text.\n"
    "If the image is only an icon, return the icon's bounds.\n"
    "Respond with JSON only, no commentary, using percentages of the image size:\n"
    '{"left_pct": <0-100>, "top_pct": <0-100>, "right_pct": <0-100>, "bottom_pct": <0-100>}'
)

_HEX_RE = re.compile(r"^#[0-9a-fA-F]{6}$")

RGBA = tuple[int, int, int, int]


class InvalidImageError(ValueError):
    pass


class InvalidBoundsError(ValueError):
    pass


@dataclass(frozen=True)
class IconBounds:
    x: int
    y: int
    width: int
    height: int

    def box(self) -> tuple[int, int, int, int]:
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    def to_dict(self) -> dict[str, int]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class GeneratedIcon:
    name: str
    data: bytes
    width: int
    height: int

    @property
    def data_url(self) -> str:
        return encode_data_url(self.data, "image/png")


@dataclass(frozen=True)
class IconSetResult:
    icons: dict[str, GeneratedIcon]
    favicon_ico: bytes
    detected_bounds: IconBounds | None
    metadata: dict[str, Any] = field(default_factory=dict)


class IconLocator(Protocol):
    async def locate_icon(self, image_bytes: bytes, media_type: str) -> str: ...


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp(value: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, value))


def is_valid_background(value: str | None) -> bool:
    if not value:
        return False
    return value in NAMED_BACKGROUNDS or bool(_HEX_RE.match(value))


def parse_background(value: str | None) -> RGBA:
    if value == "white":
        return (255, 255, 255, 255)
    if value == "black":
        return (0, 0, 0, 255)
    if value and _HEX_RE.match(value):
        return (int(value[1:3], 16), int(value[3:5], 16), int(value[5:7], 16), 255)
    return (0, 0, 0, 0)


def load_image(data: bytes) -> Image.Image:
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise InvalidImageError(f"unreadable image: {exc}") from exc
    return img.convert("RGBA")


def _png_bytes(img: Image.Image) -> bytes:
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def detect_content_bounds(image: Image.Image) -> IconBounds:
    """
    Tight box around everything that isn't background.

    The top-left pixel is taken as the background. A mostly transparent corner means the
    image is alpha-backed and content is judged by alpha; otherwise content is any pixel
    whose colour differs noticeably from the corner.
    """
    rgba = image.convert("RGBA")
    w, h = rgba.size
    ref = rgba.getpixel((0, 0))

    if ref[3] < 128:
        mask = rgba.getchannel("A").point(lambda v: 255 if v >= ALPHA_CONTENT_THRESHOLD else 0)
    else:
        rgb = rgba.convert("RGB")
        diff = ImageChops.difference(rgb, Image.new("RGB", (w, h), ref[:3]))
        r, g, b = diff.split()
        strongest = ImageChops.lighter(ImageChops.lighter(r, g), b)
        mask = strongest.point(lambda v: 255 if v >= COLOR_CONTENT_THRESHOLD else 0)

    bbox = mask.getbbox()
    if bbox is None:
        return IconBounds(0, 0, w, h)
    left, top, right, bottom = bbox
    return IconBounds(left, top, right - left, bottom - top)


def bounds_from_percentages(pct: dict[str, Any], width: int, height: int) -> IconBounds:
    full = IconBounds(0, 0, width, height)
    try:
        left = _round_half_up(float(pct["left_pct"]) / 100 * width)
        top = _round_half_up(float(pct["top_pct"]) / 100 * height)
        right = _round_half_up(float(pct["right_pct"]) / 100 * width)
        bottom = _round_half_up(float(pct["bottom_pct"]) / 100 * height)
    except (KeyError, TypeError, ValueError):
        return full

    left = _clamp(left, 0, width)
    right = _clamp(right, 0, width)
    top = _clamp(top, 0, height)
    bottom = _clamp(bottom, 0, height)
    box_w = right - left
    box_h = bottom - top

    if box_w < width * VISION_MIN_BOX or box_h < height * VISION_MIN_BOX:
        return full

    # 5% of the detected box on every side, not of the canvas.
    buf_x = _round_half_up(box_w * VISION_BUFFER)
    buf_y = _round_half_up(box_h * VISION_BUFFER)
    x = max(0, left - buf_x)
    y = max(0, top - buf_y)
    return IconBounds(
        x,
        y,
        min(box_w + 2 * buf_x, width - x),
        min(box_h + 2 * buf_y, height - y),
    )


def strip_code_fences(text: str) -> str:
    s = text.strip()
    if s.startswith("```"):
        first_nl = s.find("\n")
        if first_nl != -1:
            s = s[first_nl + 1 :]
        if s.rstrip().endswith("```"):
            s = s.rstrip()[:-3]
    return s.strip()


def parse_vision_bounds(text: str | None, width: int, height: int) -> IconBounds:
    if not text:
        return IconBounds(0, 0, width, height)
    s = strip_code_fences(text)
    start, end = s.find("{"), s.rfind("}")
    if start != -1 and end > start:
        s = s[start : end + 1]
    try:
        data = json.loads(s)
    except json.JSONDecodeError:
        logger.warning("vision bounds were not JSON: %r", text[:200])
        return IconBounds(0, 0, width, height)
    if not isinstance(data, dict):
        return IconBounds(0, 0, width, height)
    return bounds_from_percentages(data, width, height)


async def detect_icon_bounds(image: Image.Image, locator: IconLocator | None = None) -> IconBounds:
    """
    Two-phase detection. Pixel bounds are cheap and good enough when the content is already
    small relative to the canvas; a vision model is asked to separate icon from wordmark
    only when the content spans most of the image.
    """
    w, h = image.size
    content = detect_content_bounds(image)
    ratio = (content.width * content.height) / float(w * h)
    if ratio < CONTENT_RATIO_FOR_VISION or locator is None:
        return content

    try:
        text = await locator.locate_icon(_png_bytes(image), "image/png")
    except Exception as exc:
        logger.warning("vision icon detection failed, using content bounds: %s", exc)
        return content
    return parse_vision_bounds(text, w, h)


def clamp_bounds(bounds: IconBounds, width: int, height: int) -> IconBounds:
    x = _clamp(bounds.x, 0, width)
    y = _clamp(bounds.y, 0, height)
    right = _clamp(bounds.x + bounds.width, 0, width)
    bottom = _clamp(bounds.y + bounds.height, 0, height)
    if right <= x or bottom <= y:
        raise InvalidBoundsError("bounds do not overlap the image")
    return IconBounds(x, y, right - x, bottom - y)


def make_square(image: Image.Image, background: RGBA) -> Image.Image:
    side = max(image.size)
    return ImageOps.pad(image.convert("RGBA"), (side, side), method=Image.Resampling.LANCZOS, color=background)


def add_padding(image: Image.Image, padding_percent: float, background: RGBA) -> Image.Image:
    if padding_percent <= 0:
        return image
    size = max(image.size)
    pad = _round_half_up(size * padding_percent / 100)
    canvas = Image.new("RGBA", (size + 2 * pad, size + 2 * pad), background)
    fitted = ImageOps.pad(image.convert("RGBA"), (size, size), method=Image.Resampling.LANCZOS, color=background)
    canvas.alpha_composite(fitted, (pad, pad))
    return canvas


def generate_single_icon(
    square: Image.Image,
    name: str,
    width: int,
    height: int,
    padding_percent: float,
    background: RGBA,
) -> GeneratedIcon:
    padded = add_padding(square, padding_percent, background)
    icon = ImageOps.pad(padded.convert("RGBA"), (width, height), method=Image.Resampling.LANCZOS, color=background)
    return GeneratedIcon(name=name, data=_png_bytes(icon), width=width, height=height)


def create_favicon_ico(icon16: bytes, icon32: bytes, icon48: bytes) -> bytes:
    frames = [Image.open(BytesIO(b)).convert("RGBA") for b in (icon16, icon32, icon48)]
    buf = BytesIO()
    # The ICO writer uses the base image for any size it isn't handed, so the largest goes first.
    frames[2].save(buf, format="ICO", sizes=[(16, 16), (32, 32), (48, 48)], append_images=frames[:2])
    return buf.getvalue()


async def generate_icon_set(
    image_bytes: bytes,
    mode: str = "auto",
    padding: float | None = None,
    background: str = "transparent",
    bounds: IconBounds | None = None,
    locator: IconLocator | None = None,
) -> IconSetResult:
    started = time.monotonic()
    source = load_image(image_bytes)
    w, h = source.size
    bg = parse_background(background)

    detected: IconBounds | None = None
    if bounds is not None:
        detected = clamp_bounds(bounds, w, h)
    elif mode == "auto":
        detected = await detect_icon_bounds(source, locator)

    cropped = source.crop(detected.box()) if detected is not None else source
    square = make_square(cropped, bg)
    square.load()

    async def render(name: str, spec: IconSpec) -> GeneratedIcon:
        pct = padding if padding is not None else spec.padding
        return await asyncio.to_thread(generate_single_icon, square, name, spec.width, spec.height, pct, bg)

    rendered = await asyncio.gather(*(render(name, spec) for name, spec in ICON_SIZES.items()))
    icons = {icon.name: icon for icon in rendered}

    ico = await asyncio.to_thread(
        create_favicon_ico,
        icons["favicon-16x16"].data,
        icons["favicon-32x32"].data,
        icons["favicon-48x48"].data,
    )

    logger.info(
        "icon set generated mode=%s source=%dx%d bounds=%s in %.2fs",
        mode,
        w,
        h,
        detected.to_dict() if detected else None,
        time.monotonic() - started,
    )
    return IconSetResult(
        icons=icons,
        favicon_ico=ico,
        detected_bounds=detected,
        metadata={
            "mode": mode,
            "padding": padding if padding is not None else DEFAULT_PADDING,
            "background": background,
            "originalSize": f"{w}x{h}",
        },
    )
