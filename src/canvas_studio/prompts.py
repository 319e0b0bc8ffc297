from __future__ import annotations

import json
from typing import Any

LOGO_TYPES: dict[str, str] = {
    "icon_mark": (
        'Minimalist icon mark logo, single symbolic icon representing {description}. '
        'The icon captures the essence of "{brand}" as a standalone graphic mark.'
    ),
    "wordmark": (
        'Typographic wordmark logo spelling out "{brand}" in a distinctive custom typeface. '
        "The typography conveys {description}. Focus on elegant letter spacing and unique character design."
    ),
    "combination": (
        'Combination mark logo featuring both an icon and the text "{brand}" arranged together. '
        "The icon represents {description}. Text and icon are balanced and work as a unified mark."
    ),
    "lettermark": (
        'Lettermark logo using the initials "{initials}" from "{brand}". '
        "The monogram is designed with {description} in mind. Clean, memorable letter arrangement."
    ),
    "emblem": (
        'Emblem-style logo with "{brand}" enclosed in a badge, crest, or seal design. '
        "The emblem represents {description}. Classic contained composition with text integrated into the shape."
    ),
    "abstract": (
        "Abstract geometric logo mark using shapes and forms to represent {description}. "
        'The abstract design captures the brand identity of "{brand}" through pure visual composition.'
    ),
}

LOGO_STYLES: dict[str, str] = {
    "minimal": "ultra minimal, clean lines, simple geometry, maximum whitespace, reduced to essentials",
    "modern": "modern contemporary design, clean and bold, current design trends, sharp edges",
    "vintage": "vintage retro style, classic typography, distressed texture, heritage feel, timeless",
    "playful": "playful and fun, rounded shapes, friendly, approachable, vibrant energy",
    "corporate": "professional corporate, trustworthy, established, authoritative, refined",
    "geometric": "geometric precision, mathematical, structured, grid-based, symmetrical",
    "handdrawn": "hand-drawn organic style, artistic, unique, sketched quality, natural imperfections",
}

_LOGO_UNIVERSAL = (
    "professional logo design, vector graphic style, flat design, centered on pure white background, "
    "high contrast, scalable design, clean crisp edges, brand identity design"
)
_LOGO_NEGATIVE = (
    "photograph, photorealistic, 3D render, realistic lighting, shadows, blurry, pixelated, low quality, "
    "watermark, busy background, complex scene, multiple logos, text errors, misspelled text, distorted text, "
    "gradient background, noisy, artifacts, mockup, frame, border decoration"
)
_LOGO_PROVIDER_HINTS = {
    "openai": "Render as a clean, flat vector-style illustration suitable for a logo. Single isolated design element on a white background.",
    "stability": "vector logo, flat color, isolated on white, SVG style, brand mark",
    "replicate": "clean vector logo design, flat minimal style, white background, professional branding",
}

CHARACTER_SETTINGS: dict[str, str] = {
    "studio": "Professional studio background with soft gradient backdrop",
    "coffee-shop": "Cozy coffee shop interior background with warm bokeh lighting and blurred shelves",
    "cafe-terrace": "Outdoor café terrace on a sunny day, soft natural sunlight, blurred greenery and street scene in background",
    "office": "Modern office background with clean lines and soft natural window light",
    "urban": "Urban street background with soft-focus city architecture and natural daylight",
    "custom": "",
}

CHARACTER_EXPRESSIONS: dict[str, str] = {
    "neutral": "Neutral relaxed expression, mouth closed",
    "slight-smile": "Subtle gentle closed-mouth smile, lips together",
    "confident": "Confident assured expression, mouth closed",
    "warm": "Warm approachable expression with a soft closed-mouth smile",
    "friendly": "Friendly open expression with a gentle closed-lip smile",
    "determined": "Determined focused expression with strong eye contact, mouth closed",
}

CHARACTER_DIMENSIONS: dict[str, tuple[int, int]] = {
    "16:9": (1536, 1024),
    "9:16": (1024, 1536),
    "1:1": (1024, 1024),
}

BACKGROUND_DIMENSIONS: dict[str, tuple[int, int]] = {
    "16:9": (1792, 1024),
    "9:16": (1024, 1792),
    "1:1": (1024, 1024),
}

# One cue per variation so parallel renders don't come back near-identical.
VARIATION_CUES = (
    "",
    "Slightly different camera angle and lighting setup. Unique composition.",
    "Softer, warmer lighting. Slightly different head position.",
    "Cooler-toned dramatic lighting. Subtle different framing.",
)

_CHARACTER_FRAMING = {
    "16:9": "Head-and-shoulders landscape framing, face positioned in the left or center third of frame, hands not visible, mouth closed",
    "1:1": "Tight head-and-shoulders square framing, face centered, hands not visible, mouth closed",
    "9:16": "Chest-up portrait framing, face centered in frame, hands not visible, mouth closed",
}
_CHARACTER_NEGATIVE = (
    "text, words, letters, watermark, logo, illustration, cartoon, anime, painting, drawing, 3D render, CGI, "
    "low quality, blurry, deformed face, extra fingers, mutated hands, visible hands, hands near face, open mouth"
)

IMG2IMG_MODES: dict[str, tuple[str, float, int]] = {
    # mode: (directive, cfg_scale, steps)
    "style_transfer": ("Completely restyle this image while keeping the same composition and subjects.", 12, 35),
    "reimagine": ("Create a dramatic new artistic interpretation of this image.", 15, 40),
    "enhance_brand": ("Apply color grading and subtle stylistic enhancement to this image.", 10, 30),
}

BRAND_THEMES: dict[str, str] = {
    "funnelists": (
        "Transform into Funnelists futuristic tech aesthetic with cyan (#0ea5e9), teal (#14b8a6), and blue (#3b82f6) "
        "primary colors, glowing neon lines, holographic elements, isometric 3D platforms floating in dark space, "
        "dark black background with emerald green accents"
    ),
    "salesforce": (
        "Transform into Salesforce enterprise aesthetic with bright cyan blue (#00A1E0) color scheme, fluffy white "
        "cloud motifs, clean corporate design, modern SaaS visual style"
    ),
    "general_ai": (
        "Transform into futuristic AI technology aesthetic with glowing cyan and purple neon accents, abstract "
        "neural network patterns, digital data streams, dark backgrounds with luminous elements"
    ),
    "blockchain": (
        "Transform into blockchain technology aesthetic with interconnected glowing nodes, hexagonal patterns, "
        "distributed network visualization, blue and gold metallic accents"
    ),
    "neutral": (
        "Transform into clean professional corporate aesthetic with modern minimalist design, balanced neutral "
        "color palette, subtle blue accents, polished corporate look"
    ),
    "minimal": (
        "Transform into ultra-minimalist design aesthetic with clean geometric lines, generous white space, "
        "muted sophisticated monochromatic colors"
    ),
    "photorealistic": (
        "Enhance with photorealistic quality, natural studio lighting, sharp focus, professional photography "
        "post-processing, realistic textures and materials"
    ),
}


def build_logo_prompt(
    brand_name: str,
    description: str,
    logo_type: str,
    style: str,
    provider: str,
    colors: dict[str, str] | None = None,
    refinement: str | None = None,
) -> tuple[str, str]:
    initials = "".join(w[0] for w in brand_name.split() if w).upper()
    parts = [
        LOGO_TYPES[logo_type].format(brand=brand_name, description=description, initials=initials),
        f"Style: {LOGO_STYLES[style]}.",
    ]
    color_parts = [f"{role} color {hex_}" for role, hex_ in (colors or {}).items() if hex_]
    if color_parts:
        parts.append(f"Color palette: {', '.join(color_parts)}.")
    parts.append(_LOGO_UNIVERSAL)
    if provider in _LOGO_PROVIDER_HINTS:
        parts.append(_LOGO_PROVIDER_HINTS[provider])
    if refinement:
        parts.append(f"Additional refinement: {refinement}.")
    return " ".join(parts), _LOGO_NEGATIVE


def guide_colors(guide: dict[str, Any] | None, overrides: dict[str, str] | None = None) -> dict[str, str]:
    """First swatch of each palette role, with explicit overrides taking priority."""
    colors: dict[str, str] = {}
    palette = (guide or {}).get("colors") or {}
    for role in ("primary", "secondary", "accent"):
        swatches = palette.get(role) or []
        if swatches and isinstance(swatches[0], dict) and swatches[0].get("hex"):
            colors[role] = swatches[0]["hex"]
    for role, value in (overrides or {}).items():
        if role in ("primary", "secondary", "accent") and value:
            colors[role] = value
    return colors


def build_character_prompt(
    description: str,
    setting: str,
    expression: str,
    provider: str,
    outfit: str | None = None,
    accent_color: str = "#0ea5e9",
    custom_setting: str | None = None,
    aspect_ratio: str = "16:9",
) -> tuple[str, str]:
    if setting == "custom" and custom_setting:
        setting_fragment = custom_setting
    else:
        setting_fragment = CHARACTER_SETTINGS.get(setting) or CHARACTER_SETTINGS["studio"]
    expression_fragment = CHARACTER_EXPRESSIONS.get(expression, "Neutral relaxed expression")

    # "8K" tends to make Stability paint text into the frame.
    resolution = "high resolution" if provider == "stability" else "high resolution, 8K"
    reinforcement = "photorealistic, professional photography, " if provider == "openai" else ""
    framing = _CHARACTER_FRAMING.get(aspect_ratio, _CHARACTER_FRAMING["9:16"])

    lines = [
        f"IMPORTANT: this person's unique physical appearance is: {description}.",
        f"Photorealistic portrait photo of exactly this person: {description}.",
        f"{setting_fragment}. {expression_fragment}, looking directly at camera with direct eye contact.",
        f"Wearing {outfit}." if outfit else "",
        f"Dramatic lighting with subtle {accent_color} rim light on one side.",
        f"{reinforcement}{framing}, sharp focus, {resolution}. NO text anywhere.",
        f"Remember: the subject is specifically {description}. Render their unique facial features accurately.",
    ]
    return "\n".join(line for line in lines if line), _CHARACTER_NEGATIVE


def build_background_prompt(setting: str, accent_color: str = "#0ea5e9", custom_setting: str | None = None) -> str:
    if setting == "custom" and custom_setting:
        scene = custom_setting
    else:
        scene = CHARACTER_SETTINGS.get(setting) or CHARACTER_SETTINGS["studio"]
    return (
        f"{scene}. Empty scene with no people, suitable as a backdrop for a portrait. "
        f"Subtle {accent_color} accent lighting, shallow depth of field, photorealistic, no text."
    )


def build_img2img_prompt(mode: str, theme: str, preserve: dict[str, bool] | None = None) -> str:
    directive = IMG2IMG_MODES[mode][0]
    prompt = f"{directive} {BRAND_THEMES.get(theme, theme)}"
    preserve = preserve or {}
    keep = []
    if preserve.get("preserveText"):
        keep.append("keep all text and labels readable")
    if preserve.get("preserveLayout"):
        keep.append("maintain the exact spatial layout")
    if preserve.get("preserveColors"):
        keep.append("preserve the original color palette")
    if keep:
        prompt += f" Important: {', '.join(keep)}."
    return prompt + " Ultra high quality, sharp details, professional result."


def img2img_negative_prompt(mode: str) -> str:
    base = "blurry, low quality, distorted, watermark, jpeg artifacts, noise, grainy, pixelated"
    if mode == "enhance_brand":
        return base + ", dramatic changes, oversaturated, unnatural colors"
    return base + ", ugly, deformed, amateur, unprofessional"


def img2img_parameters(mode: str) -> tuple[float, int]:
    _, cfg_scale, steps = IMG2IMG_MODES[mode]
    return cfg_scale, steps


def image_strength(style_strength: float) -> float:
    """Maps a 0-100 "style strength" slider onto Stability's source-retention strength."""
    return max(0.01, min(0.99, 1 - style_strength / 100))


def build_brand_chat_system_prompt(guide: dict[str, Any]) -> str:
    return (
        "You are a brand design assistant for the Canvas image studio. Help the user plan logos, "
        "characters and imagery that stay on-brand. Be concise and practical; when suggesting prompts, "
        "put them in a fenced block.\n\n"
        f"The active brand style guide is:\n{json.dumps(guide, indent=2)}"
    )
