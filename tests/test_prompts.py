from __future__ import annotations

from brandkit.prompts import STYLE_TEMPLATES, build_background_prompt, build_edit_prompt, get_preset
from conftest import make_config


def test_background_prompt_uses_style_and_colors() -> None:
    config = make_config()
    prompt = build_background_prompt("neon", config.colors, config)
    assert f"Style: {STYLE_TEMPLATES['neon']}." in prompt
    assert "Primary colors: #112233, #ff8800." in prompt
    assert "no text" in prompt


def test_background_prompt_without_colors_skips_palette_line() -> None:
    config = make_config(colors=())
    assert "Primary colors" not in build_background_prompt("minimal", (), config)


def test_custom_style_overrides_template() -> None:
    config = make_config(custom_styles={"neon": "soft risograph grain"})
    prompt = build_background_prompt("neon", config.colors, config)
    assert "Style: soft risograph grain." in prompt


def test_unknown_style_falls_back_to_minimal() -> None:
    config = make_config()
    prompt = build_background_prompt("vaporwave", config.colors, config)
    assert f"Style: {STYLE_TEMPLATES['minimal']}." in prompt


def test_preset_resolution() -> None:
    assert get_preset(make_config(preset="noir")).id == "noir"
    assert get_preset(make_config(preset="does-not-exist")).id == "core"

    custom = make_config(
        preset="mine",
        custom_presets={"mine": {"description": "d", "background": "moody dusk", "edit": "hard rim light"}},
    )
    assert get_preset(custom).background == "moody dusk"
    assert "Mood: moody dusk." in build_background_prompt("minimal", (), custom)
    assert "Look: hard rim light." in build_edit_prompt(custom)


def test_edit_prompt_tagline_handling() -> None:
    assert "Text: do not add any text." in build_edit_prompt(make_config())

    prompt = build_edit_prompt(make_config(tagline="Ship it"))
    assert 'Tagline: "Ship it"' in prompt
    assert "do not add any text" not in prompt
