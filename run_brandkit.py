import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from brandkit.cache import CacheStore
from brandkit.config import FORMAT_OPTIONS, QUALITY_OPTIONS, SIZE_OPTIONS, normalize_config
from brandkit.core import BrandkitPipeline
from brandkit.errors import BrandkitError
from brandkit.events import CallbackSink
from brandkit.logging_setup import configure_logging
from brandkit.prompts import PROMPT_PRESETS
from brandkit.settings import Settings


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    presets = "|".join(p.id for p in PROMPT_PRESETS)
    parser = argparse.ArgumentParser(
        prog="brandkit",
        description="One logo in -> complete launch asset pack out.",
    )
    parser.add_argument("--logo", type=Path, required=True, help="Path to logo (png/webp/jpg).")
    parser.add_argument("--name", required=True, help="Brand name.")
    parser.add_argument("--tagline", help="Tagline (optional).")
    parser.add_argument("--colors", help="Comma-separated colors (#RRGGBB).")
    parser.add_argument(
        "--styles",
        help="Comma-separated styles (default: minimal,neon,clay,blueprint).",
    )
    parser.add_argument("--preset", default="core", help=f"Prompt preset: {presets} (default: core).")
    parser.add_argument("-n", type=int, default=2, help="Variants per style (default: 2).")
    parser.add_argument("--out", type=Path, default=Path("out"), help="Output directory (default: ./out).")
    parser.add_argument("--format", choices=FORMAT_OPTIONS, default="png", help="Output format.")
    parser.add_argument("--quality", choices=QUALITY_OPTIONS, default="high", help="Image quality.")
    parser.add_argument(
        "--background-size",
        choices=SIZE_OPTIONS,
        default="landscape",
        help="Background orientation (default: landscape).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show prompts and plan without API calls.",
    )
    parser.add_argument("--no-cache", action="store_true", help="Disable caching.")
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Render local placeholder images instead of calling the image API.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    # Load environment variables from a local .env file if present
    # (e.g. OPENAI_API_KEY=sk-...).
    load_dotenv()

    args = parse_args(argv)
    settings = Settings.from_env()
    configure_logging("WARNING" if settings.log_level == "INFO" else settings.log_level)

    if not args.logo.exists():
        print(f"Error: logo file not found: {args.logo}", file=sys.stderr)
        return 1

    try:
        config = normalize_config(
            {
                "name": args.name,
                "tagline": args.tagline,
                "colors": args.colors,
                "styles": args.styles,
                "preset": args.preset,
                "n": args.n,
                "format": args.format,
                "quality": args.quality,
                "background_size": args.background_size,
                "dry_run": args.dry_run,
                "cache": not args.no_cache,
                "demo_mode": args.demo,
            }
        )

        print("\nBrandkit Forge")
        print("==================\n")

        pipeline = BrandkitPipeline(cache=CacheStore(settings.cache_file), settings=settings)
        result = asyncio.run(
            pipeline.run(config, args.logo, args.out, sink=CallbackSink(on_progress=print))
        )
    except BrandkitError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        if "OPENAI_API_KEY" in exc.message:
            print("\nTip: Create a .env file with: OPENAI_API_KEY=your_key", file=sys.stderr)
        return 1

    print(f"\nOutput directory: {result.output_dir}")
    print(f"Gallery: {result.gallery_path}")
    print(f"Manifest: {result.manifest_path}\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
