import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import Callable, List, Optional

from .cache import CacheStore, file_digest
from .config import BrandConfig
from .cost import CostInfo, CostLedger
from .errors import UploadError
from .events import EventSink, NullSink, ProgressEvent
from .gallery import write_gallery
from .generator import ImageGenerator, build_generator
from .manifest import Manifest, ManifestBuilder
from .scheduler import CancelToken, TaskScheduler
from .settings import Settings
from .stages import BackgroundStage, ExportStage, HeroStage, StageContext

log = logging.getLogger(__name__)

GeneratorFactory = Callable[[BrandConfig], ImageGenerator]


@dataclass
class ForgeResult:
    output_dir: Path
    manifest_path: Path
    gallery_path: Path
    files: List[str]
    cost: CostInfo
    manifest: Manifest


class BrandkitPipeline:
    """
    Orchestrates one brand kit run:
    - generate backgrounds (style x variant), reusing cached ones
    - compose the logo onto every background, per hero size
    - export icons from the logo and social crops from the first hero
    - write the gallery and the brandkit.json manifest
    Output goes under {output_root}/{timestamp}/.
    """

    def __init__(
        self,
        cache: CacheStore,
        settings: Optional[Settings] = None,
        generator_factory: Optional[GeneratorFactory] = None,
    ) -> None:
        self.cache = cache
        self.settings = settings or Settings()
        self.generator_factory = generator_factory or partial(build_generator, self.settings)

    async def run(
        self,
        config: BrandConfig,
        logo_path: Path,
        output_root: Path,
        sink: Optional[EventSink] = None,
        cancel: Optional[CancelToken] = None,
    ) -> ForgeResult:
        sink = sink or NullSink()
        logo_path = Path(logo_path)
        if not logo_path.exists():
            raise UploadError(f"Logo file not found: {logo_path}")

        def progress(message: str) -> None:
            sink.emit(ProgressEvent(message))

        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
        output_dir = Path(output_root) / timestamp
        await asyncio.to_thread(output_dir.mkdir, parents=True, exist_ok=True)

        progress("Brandkit Forge started" + (" (demo mode)" if config.demo_mode else ""))
        progress(f"Brand: {config.name}")
        if config.tagline:
            progress(f"Tagline: {config.tagline}")
        progress(f"Styles: {', '.join(config.styles)}")
        progress(f"Preset: {config.preset}")
        progress(f"Variants per style: {config.n}")
        progress(f"Output: {output_dir}")

        manifest = ManifestBuilder(config, logo_path, output_dir)
        ledger = CostLedger(sink)
        ctx = StageContext(
            config=config,
            output_dir=output_dir,
            logo_path=logo_path,
            logo_digest=await asyncio.to_thread(file_digest, logo_path),
            manifest=manifest,
            cache=self.cache,
            ledger=ledger,
            generator=self.generator_factory(config),
            sink=sink,
            cancel=cancel,
        )
        settings = self.settings

        progress("\nStep 1: Generate backgrounds...")
        backgrounds = await BackgroundStage(
            ctx, TaskScheduler(settings.background_concurrency, "backgrounds")
        ).run()
        _check(cancel)

        progress("\nStep 2: Compose heroes...")
        await HeroStage(ctx, TaskScheduler(settings.hero_concurrency, "heroes")).run(backgrounds)
        _check(cancel)

        progress("\nStep 3: Export icons and social media assets...")
        await ExportStage(ctx, TaskScheduler(settings.export_concurrency, "exports")).run(
            manifest.first_hero()
        )
        _check(cancel)

        progress("\nStep 4: Generate gallery...")
        gallery_path = await asyncio.to_thread(write_gallery, output_dir, manifest.manifest)

        progress("\nStep 5: Write manifest...")
        manifest_path = await asyncio.to_thread(manifest.write)
        progress(f"Manifest saved: {manifest_path}")

        files = manifest.generated.all() + [str(manifest_path), str(gallery_path)]

        progress("\nDone!")
        progress(f"Total API cost: ${ledger.info.total_cost:.4f}")
        log.info(
            "Run finished: %d files, %d API calls, $%.4f",
            len(files),
            ledger.info.api_calls,
            ledger.info.total_cost,
        )

        return ForgeResult(
            output_dir=output_dir,
            manifest_path=manifest_path,
            gallery_path=gallery_path,
            files=files,
            cost=ledger.info,
            manifest=manifest.manifest,
        )


def _check(cancel: Optional[CancelToken]) -> None:
    if cancel is not None:
        cancel.raise_if_cancelled()
