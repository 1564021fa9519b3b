"""
Pipeline stages: backgrounds, hero composition and local exports.

Each stage plans its items up front (dry-run skip, cache hit or scheduled),
runs the scheduled ones under its own concurrency ceiling and only returns
once every scheduled item has settled. The next stage starts after that, so
heroes always see resolved background paths.
"""

import asyncio
import logging
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from PIL import Image

from . import render
from .cache import CacheStore, hash_config
from .config import BrandConfig, slugify
from .cost import CostCategory, CostLedger
from .events import EventSink, ProgressEvent
from .generator import GenerationResult, ImageGenerator
from .manifest import ManifestBuilder
from .prompts import build_background_prompt, build_edit_prompt
from .scheduler import CancelToken, TaskScheduler

log = logging.getLogger(__name__)

ICON_SIZES: List[Tuple[str, int]] = [
    ("app-icon-1024", 1024),
    ("app-icon-512", 512),
    ("app-icon-256", 256),
    ("app-icon-192", 192),
    ("app-icon-180", 180),
    ("app-icon-152", 152),
    ("app-icon-128", 128),
    ("favicon-32", 32),
    ("favicon-16", 16),
]

SOCIAL_SIZES: List[Tuple[str, Tuple[int, int]]] = [
    ("og-1200x630", (1200, 630)),
    ("x-1600x900", (1600, 900)),
]


@dataclass
class StageContext:
    """Everything a stage needs for one run. Owned by the pipeline."""

    config: BrandConfig
    output_dir: Path
    logo_path: Path
    logo_digest: str
    manifest: ManifestBuilder
    cache: CacheStore
    ledger: CostLedger
    generator: ImageGenerator
    sink: EventSink
    cancel: Optional[CancelToken] = None

    @property
    def uses_cache(self) -> bool:
        # Demo placeholders must never be served for real runs.
        return self.config.cache and not self.config.demo_mode

    def progress(self, message: str) -> None:
        self.sink.emit(ProgressEvent(message))

    def variant_dir(self, style: str, index: int) -> Path:
        return self.output_dir / "variants" / slugify(style) / str(index)

    async def lookup(self, key: str) -> Optional[Path]:
        if not self.uses_cache:
            return None
        return await asyncio.to_thread(self.cache.lookup, key, self.config)

    async def remember(self, key: str, path: Path, logo_digest: Optional[str] = None) -> None:
        if self.uses_cache:
            await asyncio.to_thread(self.cache.store, key, path, self.config, logo_digest)

    def charge(self, result: GenerationResult, category: CostCategory) -> None:
        if self.generator.charges:
            self.ledger.add(result.cost, category)

    async def write_image(self, data: bytes, path: Path, keep_alpha: bool = False) -> Path:
        return await asyncio.to_thread(
            render.write_formatted_image,
            data,
            path,
            self.config.format,
            self.config.compression,
            keep_alpha,
        )


class BackgroundStage:
    def __init__(self, ctx: StageContext, scheduler: TaskScheduler) -> None:
        self.ctx = ctx
        self.scheduler = scheduler

    async def run(self) -> Dict[str, List[Path]]:
        """
        Resolve one background per (style, variant). Returns style -> paths
        ordered by variant index; dry-run entries are placeholder paths.
        """
        ctx = self.ctx
        config = ctx.config
        ext = render.output_extension(config.format)
        size = render.background_size(config)

        slots: Dict[str, List[Optional[Path]]] = {}
        planned: List[Tuple[str, int]] = []
        factories = []
        hits = 0

        for style in config.styles:
            slots[style] = [None] * config.n
            for i in range(config.n):
                prompt = build_background_prompt(style, config.colors, config)
                ctx.manifest.record_background_prompt(style, i, prompt)
                if config.demo_mode:
                    ctx.progress(f"[PROMPT:BACKGROUND:{style}:{i}]")
                    ctx.progress(prompt)

                if config.dry_run:
                    ctx.progress(f"  [DRY-RUN] Would generate: {style}-{i}")
                    slots[style][i] = ctx.variant_dir(style, i) / f"background-dry-run.{ext}"
                    continue

                key = hash_config(config, f"{style}-background-{i}-{prompt}")
                cached = await ctx.lookup(key)
                if cached is not None:
                    hits += 1
                    slots[style][i] = cached
                    continue

                planned.append((style, i))
                factories.append(partial(self._generate, style, i, prompt, key, size))

        if hits:
            ctx.progress(f"  Reusing {hits} cached background(s)")
        if factories:
            ctx.progress(f"  Generating {len(factories)} background(s)...")
            paths = await self.scheduler.run(factories, cancel=ctx.cancel)
            for (style, i), path in zip(planned, paths):
                slots[style][i] = path

        resolved: Dict[str, List[Path]] = {}
        for style, paths in slots.items():
            resolved[style] = [p for p in paths if p is not None]
            if not config.dry_run:
                for path in resolved[style]:
                    ctx.manifest.add_background(path)
        return resolved

    async def _generate(self, style: str, index: int, prompt: str, key: str, size: str) -> Path:
        ctx = self.ctx
        result = await ctx.generator.generate(prompt, size, ctx.config.quality)
        path = await ctx.write_image(result.image, ctx.variant_dir(style, index) / "background")
        await ctx.remember(key, path)
        ctx.charge(result, "backgrounds")
        ctx.progress(f"  Background ready: {style}-{index}")
        log.info("Background %s-%d written to %s", style, index, path, extra={"stage": "backgrounds"})
        return path


class HeroStage:
    def __init__(self, ctx: StageContext, scheduler: TaskScheduler) -> None:
        self.ctx = ctx
        self.scheduler = scheduler

    async def run(self, backgrounds: Dict[str, List[Path]]) -> List[Path]:
        """
        Compose the logo onto every resolved background, once per hero size.
        Returns hero paths in plan order (style, variant, size).
        """
        ctx = self.ctx
        config = ctx.config
        edit_prompt = build_edit_prompt(config)
        sizes = render.hero_sizes(config)

        if config.demo_mode:
            ctx.progress("[PROMPT:HERO:edit:0]")
            ctx.progress(edit_prompt)

        logo = None
        if not config.dry_run:
            logo = await asyncio.to_thread(ctx.logo_path.read_bytes)

        slots: List[Optional[Path]] = []
        planned: List[int] = []
        factories = []
        hits = 0

        for style, paths in backgrounds.items():
            for i, background in enumerate(paths):
                for hero in sizes:
                    item = f"{style}-{i}-{hero.type}"
                    ctx.manifest.record_edit_prompt(item, edit_prompt)

                    if config.dry_run:
                        ctx.progress(f"  [DRY-RUN] Would compose: {item}")
                        continue

                    key = hash_config(config, f"{item}-{edit_prompt}", ctx.logo_digest)
                    cached = await ctx.lookup(key)
                    if cached is not None:
                        hits += 1
                        slots.append(cached)
                        continue

                    planned.append(len(slots))
                    slots.append(None)
                    out_path = ctx.variant_dir(style, i) / f"hero-{hero.type}"
                    factories.append(
                        partial(self._compose, item, background, logo, edit_prompt, hero.size, key, out_path)
                    )

        if hits:
            ctx.progress(f"  Reusing {hits} cached hero image(s)")
        if factories:
            ctx.progress(f"  Composing {len(factories)} hero image(s)...")
            paths = await self.scheduler.run(factories, cancel=ctx.cancel)
            for slot, path in zip(planned, paths):
                slots[slot] = path

        heroes = [p for p in slots if p is not None]
        for path in heroes:
            ctx.manifest.add_hero(path)
        return heroes

    async def _compose(
        self,
        item: str,
        background: Path,
        logo: bytes,
        prompt: str,
        size: str,
        key: str,
        out_path: Path,
    ) -> Path:
        ctx = self.ctx
        base = await asyncio.to_thread(background.read_bytes)
        result = await ctx.generator.compose(base, logo, prompt, size, ctx.config.quality)
        path = await ctx.write_image(result.image, out_path, keep_alpha=ctx.config.transparency)
        await ctx.remember(key, path, ctx.logo_digest)
        ctx.charge(result, "heroes")
        ctx.progress(f"  Hero ready: {item}")
        log.info("Hero %s written to %s", item, path, extra={"stage": "heroes"})
        return path


class ExportStage:
    """
    Local raster exports: app icons / favicons from the logo and social
    crops from the first hero. No external calls, no cache, no cost.
    """

    def __init__(self, ctx: StageContext, scheduler: TaskScheduler) -> None:
        self.ctx = ctx
        self.scheduler = scheduler

    async def run(self, first_hero: Optional[Path]) -> None:
        ctx = self.ctx
        icons_dir = ctx.output_dir / "icons"
        social_dir = ctx.output_dir / "social"

        factories = [
            partial(self._export, ctx.logo_path, icons_dir / name, (px, px), False)
            for name, px in ICON_SIZES
        ]
        if first_hero is not None:
            factories += [
                partial(self._export, first_hero, social_dir / name, size, True)
                for name, size in SOCIAL_SIZES
            ]
        else:
            ctx.progress("  No hero image generated; skipping social exports")

        paths = await self.scheduler.run(factories, cancel=ctx.cancel)

        icon_paths = paths[: len(ICON_SIZES)]
        for path in icon_paths:
            ctx.manifest.add_icon(path)
        for path in paths[len(ICON_SIZES):]:
            ctx.manifest.add_social(path)
        ctx.progress(f"  Exported {len(icon_paths)} icon(s), {len(paths) - len(icon_paths)} social image(s)")

    async def _export(self, source: Path, target: Path, size: Tuple[int, int], cover: bool) -> Path:
        config = self.ctx.config

        def _work() -> Path:
            with Image.open(source) as img:
                if cover:
                    out = render.resize_cover(img.convert("RGB"), size)
                else:
                    out = render.resize_contain(img, size)
            return render.save_image(out, target, config.format, compression=config.compression)

        return await asyncio.to_thread(_work)
