import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= 1 else default


@dataclass(frozen=True)
class Settings:
    """
    Process-level settings read from the environment.

    Entry points call `load_dotenv()` first, so a local `.env` file works the
    same as exported variables.
    """

    openai_api_key: Optional[str] = None
    replicate_api_token: Optional[str] = None
    image_provider: str = "openai"
    openai_model: str = "gpt-image-1"
    cache_file: Path = Path(".brandkit-cache.json")
    jobs_dir: Path = Path(".temp") / "jobs"
    background_concurrency: int = 3
    hero_concurrency: int = 2
    export_concurrency: int = 5
    log_level: str = "INFO"
    port: int = 3001

    @classmethod
    def from_env(cls) -> "Settings":
        provider = os.environ.get("BRANDKIT_IMAGE_PROVIDER", "openai").strip().lower()
        return cls(
            openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
            replicate_api_token=os.environ.get("REPLICATE_API_TOKEN") or None,
            image_provider=provider or "openai",
            openai_model=os.environ.get("BRANDKIT_OPENAI_MODEL", "gpt-image-1"),
            cache_file=Path(os.environ.get("BRANDKIT_CACHE_FILE", ".brandkit-cache.json")),
            jobs_dir=Path(os.environ.get("BRANDKIT_JOBS_DIR", str(Path(".temp") / "jobs"))),
            background_concurrency=_env_int("BRANDKIT_BACKGROUND_CONCURRENCY", 3),
            hero_concurrency=_env_int("BRANDKIT_HERO_CONCURRENCY", 2),
            export_concurrency=_env_int("BRANDKIT_EXPORT_CONCURRENCY", 5),
            log_level=os.environ.get("BRANDKIT_LOG_LEVEL", "INFO").upper(),
            port=_env_int("PORT", 3001),
        )
