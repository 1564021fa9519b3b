import hashlib
import json
import logging
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .config import BrandConfig

log = logging.getLogger(__name__)

HASH_LENGTH = 16

# Config fields that change the generated pixels. Style and variant index are
# part of the prompt key instead; run-control flags never affect output.
HASHED_FIELDS = (
    "name",
    "tagline",
    "colors",
    "preset",
    "custom_styles",
    "custom_presets",
    "format",
    "quality",
    "background_size",
    "transparency",
    "compression",
)


@dataclass
class CacheEntry:
    hash: str
    path: str
    timestamp: str
    config: Dict[str, Any]


def cache_fields(config: BrandConfig, logo_digest: Optional[str] = None) -> Dict[str, Any]:
    data = config.as_dict()
    fields = {name: data[name] for name in HASHED_FIELDS}
    if logo_digest:
        fields["logo"] = logo_digest
    return fields


def hash_config(config: BrandConfig, prompt: str, logo_digest: Optional[str] = None) -> str:
    """
    Deterministic cache key for one generated artifact: SHA-256 over the
    output-relevant config fields and the prompt key, truncated to 16 hex chars.
    """
    payload = json.dumps(
        {"config": cache_fields(config, logo_digest), "prompt": prompt},
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:HASH_LENGTH]


def file_digest(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


class CacheStore:
    """
    Content-addressable hash -> file path store, persisted as a flat JSON list.

    One instance is shared by every job in the process. Writes are a full
    read-modify-write of the file under a lock, so stages may call
    `store` from worker threads.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def lookup(self, key: str, config: BrandConfig) -> Optional[Path]:
        if not config.cache:
            return None

        entry = self._load().get(key)
        if entry is None:
            return None

        cached = Path(entry.path)
        if not cached.exists():
            log.info("Cache entry %s points at missing file %s", key, cached)
            return None

        log.info("Cache hit: %s", cached)
        return cached

    def store(
        self,
        key: str,
        path: Path,
        config: BrandConfig,
        logo_digest: Optional[str] = None,
    ) -> None:
        if not config.cache:
            return

        entry = CacheEntry(
            hash=key,
            path=str(path),
            timestamp=datetime.now(timezone.utc).isoformat(),
            config=cache_fields(config, logo_digest),
        )
        with self._lock:
            entries = self._load()
            entries[key] = entry
            self._save(entries)

    def entries(self) -> Dict[str, CacheEntry]:
        return self._load()

    def _load(self) -> Dict[str, CacheEntry]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
            return {item["hash"]: CacheEntry(**item) for item in raw}
        except (OSError, ValueError, TypeError, KeyError) as exc:
            log.warning("Ignoring unreadable cache file %s: %s", self.path, exc)
            return {}

    def _save(self, entries: Dict[str, CacheEntry]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump([asdict(e) for e in entries.values()], f, indent=2, ensure_ascii=False)
        tmp_path.replace(self.path)
