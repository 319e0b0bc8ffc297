from __future__ import annotations

import json
import logging
import re
from collections import Counter
from datetime import datetime, timezone
from typing import Any

from bs4 import BeautifulSoup

from canvas_studio.assembly.icons import strip_code_fences
from canvas_studio.errors import ApiError

logger = logging.getLogger(__name__)

EXTRACTABLE_IMAGE_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")
MAX_PAGE_TEXT = 12000
MAX_PAGE_COLORS = 12

BRAND_EXTRACTION_PROMPT = """Analyze this brand material and extract a brand style guide.

Return ONLY a JSON object with this shape (no prose, no markdown):
{
  "name": "brand name",
  "description": "one or two sentences on the brand's look and voice",
  "industry": "industry or category",
  "colors": {
    "primary": [{"hex": "#RRGGBB", "name": "color name"}],
    "secondary": [{"hex": "#RRGGBB", "name": "color name"}],
    "accent": [{"hex": "#RRGGBB", "name": "color name"}],
    "forbidden": ["colors or treatments the brand avoids"],
    "background": "typical background treatment"
  },
  "typography": {"headingFont": "font", "bodyFont": "font", "fontWeights": ["400", "700"]},
  "visualStyle": {
    "styleKeywords": ["short image-generation style phrases"],
    "mood": ["mood words"],
    "description": "a prompt-ready description of the imagery style",
    "avoidKeywords": ["things imagery should never contain"]
  }
}

Use hex colors you can actually see. Leave a list empty rather than guessing."""

_HEX_RE = re.compile(r"#(?:[0-9a-fA-F]{6}|[0-9a-fA-F]{3})\b")


def _meta_content(soup: BeautifulSoup) -> dict[str, str]:
    metas: dict[str, str] = {}
    for tag in soup.find_all("meta"):
        key = str(tag.get("name") or tag.get("property") or "").lower()
        content = str(tag.get("content") or "").strip()
        if key and content:
            metas.setdefault(key, content)
    return metas


def _expand_hex(value: str) -> str:
    value = value.lower()
    if len(value) == 4:
        value = "#" + "".join(ch * 2 for ch in value[1:])
    return value


def summarize_page(page: str) -> tuple[str, dict[str, Any]]:
    """
    Boils an HTML page down to what a model needs for brand analysis: title, meta
    description, theme color, the most used hex colors, and visible text.
    Returns the prompt text and the raw data it was built from.
    """
    soup = BeautifulSoup(page, "html.parser")
    title = soup.title.get_text(strip=True) if soup.title else ""
    metas = _meta_content(soup)
    description = metas.get("description") or metas.get("og:description") or ""
    theme_color = metas.get("theme-color") or ""

    # Colors come from the raw markup so inline styles and <style> blocks count.
    counts = Counter(_expand_hex(c) for c in _HEX_RE.findall(page))
    colors = [c for c, _ in counts.most_common(MAX_PAGE_COLORS)]

    for tag in soup(["script", "style", "noscript", "svg", "head"]):
        tag.decompose()
    text = re.sub(r"\s+", " ", soup.get_text(" ")).strip()[:MAX_PAGE_TEXT]

    raw = {
        "title": title,
        "description": description,
        "themeColor": theme_color,
        "colors": colors,
        "siteName": metas.get("og:site_name") or "",
    }
    lines = [
        f"Title: {title}",
        f"Site name: {raw['siteName']}",
        f"Meta description: {description}",
        f"Theme color: {theme_color}",
        f"Most used colors: {', '.join(colors)}",
        "",
        "Visible text:",
        text,
    ]
    return "\n".join(lines), raw


def _str_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if isinstance(v, (str, int, float)) and str(v).strip()]


def _swatch_list(value: Any) -> list[dict[str, str]]:
    swatches: list[dict[str, str]] = []
    for item in value if isinstance(value, list) else []:
        if isinstance(item, str):
            item = {"hex": item}
        if not isinstance(item, dict):
            continue
        hex_ = str(item.get("hex") or "").strip()
        if not _HEX_RE.fullmatch(hex_):
            continue
        swatches.append({"hex": hex_.upper(), "name": str(item.get("name") or "").strip()})
    return swatches


def parse_extracted_guide(
    text: str | None,
    source: str,
    brand_name: str | None = None,
    source_url: str | None = None,
) -> dict[str, Any]:
    """Turns the model's reply into a style guide body; raises EXTRACTION_FAILED when it isn't usable."""
    s = strip_code_fences(text or "")
    start, end = s.find("{"), s.rfind("}")
    if start != -1 and end > start:
        s = s[start : end + 1]
    try:
        data = json.loads(s)
    except json.JSONDecodeError as exc:
        logger.warning("brand extraction reply was not JSON: %r", (text or "")[:200])
        raise ApiError("EXTRACTION_FAILED", "Could not read a style guide from the model response", 422) from exc
    if not isinstance(data, dict):
        raise ApiError("EXTRACTION_FAILED", "Could not read a style guide from the model response", 422)

    name = (brand_name or "").strip() or str(data.get("name") or "").strip()
    if not name:
        raise ApiError("EXTRACTION_FAILED", "No brand name found; pass brandName", 422)

    colors = data.get("colors") if isinstance(data.get("colors"), dict) else {}
    typography = data.get("typography") if isinstance(data.get("typography"), dict) else {}
    visual = data.get("visualStyle") if isinstance(data.get("visualStyle"), dict) else {}

    guide: dict[str, Any] = {
        "name": name,
        "description": str(data.get("description") or ""),
        "industry": str(data.get("industry") or ""),
        "colors": {
            "primary": _swatch_list(colors.get("primary")),
            "secondary": _swatch_list(colors.get("secondary")),
            "accent": _swatch_list(colors.get("accent")),
            "forbidden": _str_list(colors.get("forbidden")),
            "background": str(colors.get("background") or ""),
        },
        "typography": {
            "headingFont": str(typography.get("headingFont") or ""),
            "bodyFont": str(typography.get("bodyFont") or ""),
            "fontWeights": _str_list(typography.get("fontWeights")),
        },
        "visualStyle": {
            "styleKeywords": _str_list(visual.get("styleKeywords")),
            "mood": _str_list(visual.get("mood")),
            "description": str(visual.get("description") or ""),
            "avoidKeywords": _str_list(visual.get("avoidKeywords")),
        },
        "accountId": "default",
        "metadata": {
            "extractedFrom": source,
            "extractedAt": datetime.now(timezone.utc).isoformat(),
        },
    }
    if source_url:
        guide["sourceUrl"] = source_url
    return guide
