from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Literal, Mapping, Optional, Tuple

from .errors import ConfigError


OutputFormat = Literal["png", "webp", "jpeg"]
Quality = Literal["low", "medium", "high", "auto"]
BackgroundSize = Literal["landscape", "square", "portrait"]

FORMAT_OPTIONS = ("png", "webp", "jpeg")
QUALITY_OPTIONS = ("low", "medium", "high", "auto")
SIZE_OPTIONS = ("landscape", "square", "portrait")

DEFAULT_STYLES: Tuple[str, ...] = ("minimal", "neon", "clay", "blueprint")
DEFAULT_PRESET = "core"
DEFAULT_N = 2
DEFAULT_COMPRESSION = 85


@dataclass(frozen=True)
class BrandConfig:
    """
    Immutable input to one pipeline run.

    Build instances through `normalize_config` when the input comes from a
    user (CLI flags, web form); the constructor only validates.
    """

    name: str
    styles: Tuple[str, ...] = DEFAULT_STYLES
    tagline: Optional[str] = None
    colors: Tuple[str, ...] = ()
    preset: str = DEFAULT_PRESET
    custom_styles: Dict[str, str] = field(default_factory=dict)
    custom_presets: Dict[str, Dict[str, str]] = field(default_factory=dict)
    n: int = DEFAULT_N
    format: OutputFormat = "png"
    quality: Quality = "high"
    background_size: BackgroundSize = "landscape"
    cache: bool = True
    dry_run: bool = False
    demo_mode: bool = False
    transparency: bool = False
    compression: int = DEFAULT_COMPRESSION
    api_key: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ConfigError("Name is required", field="name")
        if not self.styles:
            raise ConfigError("At least one style is required", field="styles")
        # Each style owns variants/{slug}/ on disk.
        seen: Dict[str, str] = {}
        for style in self.styles:
            slug = slugify(style)
            if slug in seen:
                raise ConfigError(
                    f"Styles '{seen[slug]}' and '{style}' would share the output folder '{slug}'",
                    field="styles",
                )
            seen[slug] = style
        if self.n < 1:
            raise ConfigError("Variant count must be at least 1", field="n")
        if self.format not in FORMAT_OPTIONS:
            raise ConfigError(f"Unsupported format: {self.format}", field="format")
        if self.quality not in QUALITY_OPTIONS:
            raise ConfigError(f"Unsupported quality: {self.quality}", field="quality")
        if self.background_size not in SIZE_OPTIONS:
            raise ConfigError(
                f"Unsupported background size: {self.background_size}",
                field="background_size",
            )

    def as_dict(self) -> Dict[str, Any]:
        """Serializable view of the config. The API key is never included."""
        data = asdict(self)
        data.pop("api_key", None)
        data["styles"] = list(self.styles)
        data["colors"] = list(self.colors)
        return data


# Keys as sent by the web client (camelCase) mapped to field names.
_ALIASES = {
    "customStyles": "custom_styles",
    "customPresets": "custom_presets",
    "dryRun": "dry_run",
    "demoMode": "demo_mode",
    "backgroundSize": "background_size",
    "apiKey": "api_key",
}


def _split_list(value: Any) -> Tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = [str(v) for v in value]
    return tuple(item.strip() for item in items if item and item.strip())


def slugify(text: str) -> str:
    slug = "".join(ch.lower() if ch.isalnum() else "-" for ch in text)
    while "--" in slug:
        slug = slug.replace("--", "-")
    return slug.strip("-") or "item"


def _resolve_n(value: Any) -> int:
    if value is None or value == "":
        return DEFAULT_N
    if isinstance(value, bool):
        raise ConfigError("Variant count must be an integer", field="n")
    try:
        n = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Variant count must be an integer, got {value!r}", field="n")
    if n < 1:
        raise ConfigError("Variant count must be at least 1", field="n")
    return n


def _resolve_choice(value: Any, options: Tuple[str, ...], default: str) -> str:
    if isinstance(value, str) and value.strip().lower() in options:
        return value.strip().lower()
    return default


def _resolve_compression(value: Any) -> int:
    try:
        compression = float(value)
    except (TypeError, ValueError):
        return DEFAULT_COMPRESSION
    return int(round(min(100.0, max(50.0, compression))))


def _resolve_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _resolve_custom_presets(value: Any) -> Dict[str, Dict[str, str]]:
    presets: Dict[str, Dict[str, str]] = {}
    for preset_id, preset in (value or {}).items():
        if not isinstance(preset, Mapping):
            raise ConfigError(f"Custom preset '{preset_id}' must be an object", field="custom_presets")
        presets[str(preset_id)] = {
            "description": str(preset.get("description") or ""),
            "background": str(preset.get("background") or ""),
            "edit": str(preset.get("edit") or ""),
        }
    return presets


def normalize_config(raw: Mapping[str, Any]) -> BrandConfig:
    """
    Turn loosely typed input into a validated `BrandConfig`.

    Accepts comma-separated strings or lists for colors/styles and both
    camelCase and snake_case keys. Repeated styles are dropped, keeping the
    first occurrence. Unknown format/quality/size values fall
    back to their defaults; a missing name or a non-positive `n` raise
    `ConfigError`.
    """
    data = {_ALIASES.get(key, key): value for key, value in raw.items()}

    name = str(data.get("name") or "").strip()
    if not name:
        raise ConfigError("Name is required", field="name")

    tagline = str(data.get("tagline") or "").strip() or None
    styles = tuple(dict.fromkeys(_split_list(data.get("styles")))) or DEFAULT_STYLES
    preset = str(data.get("preset") or "").strip() or DEFAULT_PRESET
    custom_styles = {str(k): str(v) for k, v in (data.get("custom_styles") or {}).items()}
    api_key = str(data.get("api_key") or "").strip() or None

    return BrandConfig(
        name=name,
        tagline=tagline,
        colors=_split_list(data.get("colors")),
        styles=styles,
        preset=preset,
        custom_styles=custom_styles,
        custom_presets=_resolve_custom_presets(data.get("custom_presets")),
        n=_resolve_n(data.get("n")),
        format=_resolve_choice(data.get("format"), FORMAT_OPTIONS, "png"),
        quality=_resolve_choice(data.get("quality"), QUALITY_OPTIONS, "high"),
        background_size=_resolve_choice(data.get("background_size"), SIZE_OPTIONS, "landscape"),
        cache=_resolve_bool(data.get("cache"), True),
        dry_run=_resolve_bool(data.get("dry_run"), False),
        demo_mode=_resolve_bool(data.get("demo_mode"), False),
        transparency=_resolve_bool(data.get("transparency"), False),
        compression=_resolve_compression(data.get("compression", DEFAULT_COMPRESSION)),
        api_key=api_key,
    )
