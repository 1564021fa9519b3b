import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import BrandConfig


@dataclass
class GeneratedFiles:
    backgrounds: List[str] = field(default_factory=list)
    heroes: List[str] = field(default_factory=list)
    icons: List[str] = field(default_factory=list)
    social: List[str] = field(default_factory=list)

    def all(self) -> List[str]:
        return [*self.backgrounds, *self.heroes, *self.icons, *self.social]


@dataclass
class Manifest:
    """
    Persisted record of one run: echoed input and config, every prompt used,
    and the generated file paths per category.
    """

    timestamp: str
    input: Dict[str, Any]
    config: Dict[str, Any]
    output_dir: str
    background_prompts: Dict[str, str] = field(default_factory=dict)
    edit_prompts: Dict[str, str] = field(default_factory=dict)
    generated: GeneratedFiles = field(default_factory=GeneratedFiles)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "input": self.input,
            "config": self.config,
            "prompts": {
                "backgrounds": dict(self.background_prompts),
                "edits": dict(self.edit_prompts),
            },
            "generated": {
                "backgrounds": list(self.generated.backgrounds),
                "heroes": list(self.generated.heroes),
                "icons": list(self.generated.icons),
                "social": list(self.generated.social),
            },
            "outputDir": self.output_dir,
        }


class ManifestBuilder:
    """
    Accumulates prompts and file paths as the stages resolve them, then
    writes `brandkit.json` once at the end of a successful run.
    """

    FILENAME = "brandkit.json"

    def __init__(self, config: BrandConfig, logo_path: Path, output_dir: Path) -> None:
        self.manifest = Manifest(
            timestamp=datetime.now(timezone.utc).isoformat(),
            input={
                "logo": str(logo_path),
                "name": config.name,
                "tagline": config.tagline,
                "colors": list(config.colors),
            },
            config={
                "styles": list(config.styles),
                "preset": config.preset,
                "n": config.n,
                "format": config.format,
                "quality": config.quality,
                "backgroundSize": config.background_size,
            },
            output_dir=str(output_dir),
        )

    @property
    def generated(self) -> GeneratedFiles:
        return self.manifest.generated

    def record_background_prompt(self, style: str, index: int, prompt: str) -> None:
        self.manifest.background_prompts[f"{style}-{index}"] = prompt

    def record_edit_prompt(self, key: str, prompt: str) -> None:
        self.manifest.edit_prompts[key] = prompt

    def add_background(self, path: Path) -> None:
        self.manifest.generated.backgrounds.append(str(path))

    def add_hero(self, path: Path) -> None:
        self.manifest.generated.heroes.append(str(path))

    def add_icon(self, path: Path) -> None:
        self.manifest.generated.icons.append(str(path))

    def add_social(self, path: Path) -> None:
        self.manifest.generated.social.append(str(path))

    def first_hero(self) -> Optional[Path]:
        heroes = self.manifest.generated.heroes
        return Path(heroes[0]) if heroes else None

    def write(self) -> Path:
        path = Path(self.manifest.output_dir) / self.FILENAME
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            json.dump(self.manifest.to_dict(), f, indent=2, ensure_ascii=False)
        return path
