"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import io
from typing import Callable, Dict, List, Optional, Tuple

import pytest
from PIL import Image

from brandkit.cache import CacheStore
from brandkit.config import BrandConfig
from brandkit.core import BrandkitPipeline
from brandkit.errors import RemoteError
from brandkit.generator import GenerationResult, ImageGenerator, calculate_image_cost
from brandkit.settings import Settings


def png_bytes(size: Tuple[int, int] = (32, 32), color=(200, 30, 30, 255)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


class StubGenerator(ImageGenerator):
    """Records every call and tracks how many calls are in flight."""

    def __init__(
        self,
        delay: float = 0.0,
        fail_on: Optional[Callable[[str, int], bool]] = None,
    ) -> None:
        self.delay = delay
        self.fail_on = fail_on
        self.calls: List[Tuple[str, str]] = []
        self.events: List[Tuple[str, str]] = []
        self.active = 0
        self.peak = 0
        self.active_by_op: Dict[str, int] = {"generate": 0, "edit": 0}
        self.peak_by_op: Dict[str, int] = {"generate": 0, "edit": 0}
        self._started = 0

    async def _call(self, operation: str, size: str, quality: str) -> GenerationResult:
        index = self._started
        self._started += 1
        self.events.append(("start", operation))
        self.active += 1
        self.peak = max(self.peak, self.active)
        self.active_by_op[operation] += 1
        self.peak_by_op[operation] = max(self.peak_by_op[operation], self.active_by_op[operation])
        try:
            await asyncio.sleep(self.delay)
            if self.fail_on and self.fail_on(operation, index):
                raise RemoteError("boom")
            self.calls.append((operation, size))
            return GenerationResult(
                image=png_bytes(),
                cost=calculate_image_cost(size, quality),
                model="stub",
                operation=operation,
                size=size,
                quality=quality,
            )
        finally:
            self.active -= 1
            self.active_by_op[operation] -= 1
            self.events.append(("end", operation))

    async def generate(self, prompt, size, quality):
        return await self._call("generate", size, quality)

    async def compose(self, base_image, edit_asset, prompt, size, quality):
        assert base_image and edit_asset
        return await self._call("edit", size, quality)


def make_config(**overrides) -> BrandConfig:
    values = dict(name="Acme", styles=("minimal", "neon"), n=1, colors=("#112233", "#ff8800"))
    values.update(overrides)
    return BrandConfig(**values)


@pytest.fixture()
def logo_path(tmp_path):
    path = tmp_path / "logo.png"
    path.write_bytes(png_bytes((64, 48), (10, 120, 250, 255)))
    return path


@pytest.fixture()
def settings(tmp_path):
    return Settings(cache_file=tmp_path / "cache.json", jobs_dir=tmp_path / "jobs")


@pytest.fixture()
def cache(settings):
    return CacheStore(settings.cache_file)


@pytest.fixture()
def stub():
    return StubGenerator(delay=0.005)


@pytest.fixture()
def pipeline(cache, settings, stub):
    return BrandkitPipeline(cache=cache, settings=settings, generator_factory=lambda config: stub)
