from __future__ import annotations

import pytest

from brandkit.config import DEFAULT_STYLES, BrandConfig, normalize_config
from brandkit.errors import ConfigError


def test_normalize_applies_defaults() -> None:
    config = normalize_config({"name": "  Acme  "})
    assert config.name == "Acme"
    assert config.styles == DEFAULT_STYLES
    assert config.n == 2
    assert config.format == "png"
    assert config.quality == "high"
    assert config.background_size == "landscape"
    assert config.preset == "core"
    assert config.cache is True
    assert config.dry_run is False
    assert config.demo_mode is False
    assert config.compression == 85
    assert config.tagline is None


def test_normalize_accepts_web_client_payload() -> None:
    config = normalize_config(
        {
            "name": "Acme",
            "tagline": "  Build faster ",
            "colors": "#111111, #222222,,",
            "styles": ["neon", " clay "],
            "n": "3",
            "format": "webp",
            "quality": "medium",
            "backgroundSize": "portrait",
            "demoMode": True,
            "dryRun": "false",
            "apiKey": " sk-test ",
            "customStyles": {"grain": "film grain"},
            "customPresets": {"mine": {"description": "d", "background": "b", "edit": "e"}},
            "compression": 120,
        }
    )
    assert config.tagline == "Build faster"
    assert config.colors == ("#111111", "#222222")
    assert config.styles == ("neon", "clay")
    assert config.n == 3
    assert config.format == "webp"
    assert config.quality == "medium"
    assert config.background_size == "portrait"
    assert config.demo_mode is True
    assert config.dry_run is False
    assert config.api_key == "sk-test"
    assert config.custom_styles == {"grain": "film grain"}
    assert config.custom_presets["mine"]["edit"] == "e"
    assert config.compression == 100


def test_out_of_set_values_fall_back_to_defaults() -> None:
    config = normalize_config({"name": "Acme", "format": "gif", "quality": "ultra", "backgroundSize": "wide"})
    assert config.format == "png"
    assert config.quality == "high"
    assert config.background_size == "landscape"


@pytest.mark.parametrize("n", [0, -1, "0", "abc"])
def test_invalid_variant_count_is_rejected(n) -> None:
    with pytest.raises(ConfigError) as excinfo:
        normalize_config({"name": "Acme", "n": n})
    assert excinfo.value.field == "n"


def test_missing_name_is_rejected() -> None:
    with pytest.raises(ConfigError):
        normalize_config({"styles": "minimal"})


def test_constructor_validates_closed_sets() -> None:
    with pytest.raises(ConfigError):
        BrandConfig(name="Acme", format="gif")
    with pytest.raises(ConfigError):
        BrandConfig(name="Acme", styles=())
    with pytest.raises(ConfigError):
        BrandConfig(name="Acme", n=0)


def test_as_dict_never_exposes_api_key() -> None:
    config = normalize_config({"name": "Acme", "apiKey": "sk-secret"})
    data = config.as_dict()
    assert "api_key" not in data
    assert data["styles"] == list(DEFAULT_STYLES)


def test_repeated_styles_are_dropped_in_order() -> None:
    config = normalize_config({"name": "Acme", "styles": "minimal,neon,minimal", "n": 1})
    assert config.styles == ("minimal", "neon")


def test_styles_sharing_an_output_folder_are_rejected() -> None:
    with pytest.raises(ConfigError) as excinfo:
        BrandConfig(name="Acme", styles=("Retro Wave", "retro-wave"))
    assert excinfo.value.field == "styles"

    with pytest.raises(ConfigError) as excinfo:
        normalize_config(
            {
                "name": "Acme",
                "styles": ["Retro Wave", "retro-wave"],
                "customStyles": {"Retro Wave": "synth sunset", "retro-wave": "neon grid"},
            }
        )
    assert excinfo.value.field == "styles"
