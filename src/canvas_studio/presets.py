from __future__ import annotations

import copy
from typing import Any

DEFAULT_GUIDE_ID = "funnelists"
_PRESET_TIMESTAMP = "2025-01-01T00:00:00.000Z"


def _swatches(*pairs: tuple[str, str]) -> list[dict[str, str]]:
    return [{"hex": hex_, "name": name} for hex_, name in pairs]


def _preset(
    guide_id: str,
    name: str,
    description: str,
    industry: str,
    colors: dict[str, Any],
    typography: dict[str, Any],
    visual_style: dict[str, Any],
) -> dict[str, Any]:
    return {
        "id": guide_id,
        "name": name,
        "description": description,
        "industry": industry,
        "colors": colors,
        "typography": typography,
        "visualStyle": visual_style,
        "createdAt": _PRESET_TIMESTAMP,
        "updatedAt": _PRESET_TIMESTAMP,
    }


PRESETS: dict[str, dict[str, Any]] = {
    "funnelists": _preset(
        "funnelists",
        "Funnelists",
        "Futuristic tech aesthetic with glowing neon elements on dark backgrounds. The default Funnelists brand.",
        "SaaS / Technology",
        {
            "primary": _swatches(("#00FFFF", "Electric Cyan"), ("#0ea5e9", "Neon Blue"), ("#3b82f6", "Deep Blue")),
            "secondary": _swatches(("#39FF14", "Lime Green"), ("#10b981", "Emerald")),
            "accent": _swatches(("#FF00FF", "Magenta"), ("#8b5cf6", "Neon Purple")),
            "forbidden": ["no red", "no orange", "no yellow", "no warm colors", "no white backgrounds"],
            "background": "pitch black #000000 to deep navy #0A0A1F, infinite depth dark space",
        },
        {"headingFont": "Inter", "bodyFont": "Inter", "fontWeights": ["400", "500", "700"]},
        {
            "styleKeywords": [
                "futuristic cyberpunk neon, hyper-realistic but slightly surreal",
                "translucent glass-like holograms with glowing edges",
                "cinematic volumetric god rays, depth-of-field bokeh lights, inner glows",
                "flowing neon data streams, pulsating energy, quantum particle connections",
                "ultra-detailed 8K render quality, sharp vibrant professional",
            ],
            "mood": ["futuristic", "high-tech", "cyberpunk", "cutting-edge AI", "powerful"],
            "description": (
                "futuristic cyberpunk neon scene, translucent glass holograms with glowing edges, "
                "cinematic volumetric light and bokeh on a pitch black background"
            ),
            "avoidKeywords": [
                "cartoon", "hand-drawn", "vintage", "retro", "watercolor", "warm colors",
                "playful", "flat design", "muted colors", "pastel",
            ],
        },
    ),
    "neutral": _preset(
        "neutral",
        "Neutral",
        "Clean professional imagery with neutral color palette. Versatile and understated for corporate use.",
        "General / Corporate",
        {
            "primary": _swatches(("#64748b", "Slate Gray"), ("#6b7280", "Neutral Gray"), ("#374151", "Charcoal")),
            "secondary": _swatches(("#e5e7eb", "Light Gray"), ("#9ca3af", "Silver")),
            "accent": _swatches(("#3b82f6", "Subtle Blue")),
            "forbidden": ["no bright neon", "no saturated colors"],
            "background": "neutral gray or off-white background",
        },
        {"headingFont": "Inter", "bodyFont": "Inter", "fontWeights": ["400", "500", "600"]},
        {
            "styleKeywords": ["professional and clean", "corporate neutral", "balanced composition", "understated elegance"],
            "mood": ["professional", "balanced", "versatile", "understated"],
            "description": "clean professional imagery with neutral color palette",
            "avoidKeywords": ["flashy", "neon", "extreme", "dramatic", "bold colors"],
        },
    ),
    "minimal": _preset(
        "minimal",
        "Minimal",
        "Minimal clean design with generous white space. Elegant simplicity with single focal points.",
        "Design / Lifestyle",
        {
            "primary": _swatches(("#ffffff", "White"), ("#fafafa", "Off-White")),
            "secondary": _swatches(("#e5e7eb", "Light Gray"), ("#f3f4f6", "Subtle Gray")),
            "accent": _swatches(("#000000", "Black")),
            "forbidden": ["no multiple bright colors", "no gradients", "no complex patterns"],
            "background": "pure white or very light neutral background",
        },
        {"headingFont": "Inter", "bodyFont": "Inter", "fontWeights": ["300", "400", "500"]},
        {
            "styleKeywords": ["minimal design", "generous negative space", "single focal point", "clean lines"],
            "mood": ["calm", "sophisticated", "elegant", "refined"],
            "description": "minimal clean design with generous white space",
            "avoidKeywords": ["complex", "busy", "cluttered", "ornate", "cyberpunk", "neon"],
        },
    ),
    "photorealistic": _preset(
        "photorealistic",
        "Photorealistic",
        "Photorealistic professional photography with natural lighting. Authentic and genuine imagery.",
        "Photography / General",
        {
            "primary": _swatches(("#8B7355", "Natural Tone"), ("#6B8E7B", "Earthy Green")),
            "secondary": _swatches(("#D4C5A9", "Warm Beige"), ("#87CEEB", "Sky")),
            "accent": _swatches(("#CD853F", "Natural Accent")),
            "forbidden": ["no neon colors", "no unrealistic saturation"],
            "background": "natural environment or studio backdrop",
        },
        {"headingFont": "Georgia", "bodyFont": "Inter", "fontWeights": ["400", "600"]},
        {
            "styleKeywords": ["photorealistic", "natural photography", "authentic lighting", "professional photography"],
            "mood": ["authentic", "realistic", "natural", "genuine"],
            "description": "photorealistic professional photography with natural lighting",
            "avoidKeywords": ["illustration", "cartoon", "stylized", "abstract", "neon", "digital art"],
        },
    ),
}


def get_preset(preset_id: str) -> dict[str, Any] | None:
    """Returns a copy of the preset, accepting legacy snake_case ids."""
    preset = PRESETS.get(preset_id) or PRESETS.get(preset_id.replace("_", "-"))
    return copy.deepcopy(preset) if preset else None


def all_presets() -> list[dict[str, Any]]:
    return [copy.deepcopy(p) for p in PRESETS.values()]
