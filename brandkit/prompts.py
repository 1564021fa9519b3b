from dataclasses import dataclass
from typing import Dict, List, Sequence

from .config import DEFAULT_PRESET, BrandConfig


STYLE_TEMPLATES: Dict[str, str] = {
    "minimal": (
        "ultra minimal, large clean planes, razor-smooth gradients, "
        "architectural lighting, museum-grade, abstract"
    ),
    "neon": (
        "intense neon glow, saturated spectrum accents, cyberpunk energy, "
        "electric haze, deep contrast, abstract"
    ),
    "clay": (
        "hyper polished claymorphism, bold pill forms, studio key light, "
        "deep soft shadows, premium 3D, tactile depth"
    ),
    "blueprint": (
        "high contrast blueprint style, razor grid lines, technical overlays, "
        "precision geometry, monochrome"
    ),
}


@dataclass(frozen=True)
class PromptPreset:
    id: str
    name: str
    description: str
    background: str
    edit: str


PROMPT_PRESETS: List[PromptPreset] = [
    PromptPreset(
        id="core",
        name="Core",
        description="Ultra-premium, cinematic, hero-grade brand look.",
        background="cinematic lighting, dramatic depth, ultra premium gradients, modern and sharp",
        edit="refined but powerful halo, razor separation, hero-level polish",
    ),
    PromptPreset(
        id="soft",
        name="Soft Airy",
        description="Luminous luxury with dreamy softness and glassy gradients.",
        background="luminous and airy, luxury pastels, glassy gradients, serene elegance",
        edit="clean glow with silky separation, ultra smooth and refined",
    ),
    PromptPreset(
        id="bold",
        name="Bold Contrast",
        description="Maximum contrast, bold energy, and striking visual punch.",
        background="maximum contrast, deep shadows, bold gradients, intense high-energy mood",
        edit="strong separation, crisp edges, powerful hero silhouette",
    ),
    PromptPreset(
        id="noir",
        name="Noir",
        description="Dark, sleek, cinematic intensity with sharp premium highlights.",
        background="dark neutral palette, intense highlights, cinematic minimal mood",
        edit="vivid logo, razor separation against the dark base",
    ),
]


def get_preset(config: BrandConfig) -> PromptPreset:
    """
    Resolve the config's preset: user-defined presets win over built-ins,
    unknown ids fall back to the default preset.
    """
    custom = config.custom_presets.get(config.preset)
    if custom:
        return PromptPreset(
            id=config.preset,
            name=config.preset,
            description=custom.get("description", ""),
            background=custom.get("background", ""),
            edit=custom.get("edit", ""),
        )

    wanted = (config.preset or DEFAULT_PRESET).lower()
    fallback = PROMPT_PRESETS[0]
    for preset in PROMPT_PRESETS:
        if preset.id == DEFAULT_PRESET:
            fallback = preset
        if preset.id == wanted:
            return preset
    return fallback


def build_background_prompt(style: str, colors: Sequence[str], config: BrandConfig) -> str:
    """
    Prompt for one abstract background. Custom styles override the built-in
    templates; unknown styles use the minimal template.
    """
    preset = get_preset(config)
    style_desc = (
        config.custom_styles.get(style)
        or STYLE_TEMPLATES.get(style)
        or STYLE_TEMPLATES["minimal"]
    )

    lines = [
        "Create an abstract background for a premium brand hero.",
        "Intended use: logo placement background for a launch asset.",
        f"Style: {style_desc}.",
        f"Mood: {preset.background}.",
    ]
    if colors:
        lines.append(f"Primary colors: {', '.join(colors)}.")
    lines += [
        "Scene: background only, no objects.",
        "Medium: high-end digital gradient design.",
        "Composition: asymmetrical, heavy negative space, safe zone center-left (~40% width).",
        "Details: smooth gradients, clean surfaces, refined lighting, premium finish.",
        "Constraints: no text, letters, logos, icons, watermarks, UI, or people.",
        "Output: high resolution, print-ready, no banding or artifacts.",
    ]
    return "\n".join(lines)


def build_edit_prompt(config: BrandConfig) -> str:
    """Prompt for placing the logo on a background. Shared by every style."""
    preset = get_preset(config)
    if config.tagline:
        tagline_part = (
            "Text: add the tagline exactly as provided below the logo. "
            f'Tagline: "{config.tagline}". Use a clean sans-serif font, high legibility, '
            "subtle weight, no effects, single line if possible."
        )
    else:
        tagline_part = "Text: do not add any text."

    return "\n".join(
        [
            "Edit the image to create a premium brand hero.",
            "Change only: logo placement, separation, and optional tagline. Keep everything else the same.",
            "Subject: the provided logo only.",
            "Logo: keep EXACTLY unchanged (shape, colors, proportions, edges).",
            "Placement: centered with generous margins; do not crop.",
            "Background: preserve the provided background; do not alter its color, texture, or layout.",
            "Separation: add a refined glow or soft shadow behind the logo.",
            f"Look: {preset.edit}.",
            tagline_part,
            "Constraints: no extra symbols, no extra text besides the tagline, no new elements.",
            "Finish: ultra clean, premium, professional brand hero image.",
        ]
    )
