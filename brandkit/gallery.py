import html
import re
from pathlib import Path
from typing import Any, Callable, Dict, List

from .manifest import Manifest

GALLERY_NAME = "gallery/index.html"

_VARIANT_RE = re.compile(r"variants[\\/]+([^\\/]+)[\\/]+(\d+)[\\/]+[^\\/]+$")
_VARIANT_TAIL_RE = re.compile(r"variants/[^/]+/\d+/[^/]+$")

_STYLE = """
    * { margin: 0; padding: 0; box-sizing: border-box; }
    body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
           background: #f5f5f5; padding: 2rem; color: #333; }
    .header { background: white; padding: 2rem; border-radius: 8px; margin-bottom: 2rem;
              box-shadow: 0 2px 4px rgba(0,0,0,0.1); }
    h1 { margin-bottom: 0.5rem; }
    .meta { color: #666; font-size: 0.9rem; }
    .styles { display: grid; grid-template-columns: repeat(auto-fit, minmax(300px, 1fr)); gap: 2rem; }
    .style-group { background: white; border-radius: 8px; padding: 1.5rem;
                   box-shadow: 0 2px 4px rgba(0,0,0,0.1); }
    .style-title { font-size: 1.2rem; font-weight: 600; margin-bottom: 1rem; text-transform: capitalize; }
    .variants { display: grid; gap: 1rem; }
    .variant img { width: 100%; height: auto; display: block; border: 1px solid #e0e0e0; border-radius: 4px; }
"""


def group_heroes(heroes: List[str]) -> Dict[str, List[str]]:
    """Group hero paths by `{style}-{variant}` taken from the variants/ layout."""
    groups: Dict[str, List[str]] = {}
    for hero in heroes:
        match = _VARIANT_RE.search(hero)
        if match:
            style, index = match.groups()
            groups.setdefault(f"{style}-{index}", []).append(hero)
    return groups


def archive_name(path: Path, output_dir: Path) -> str:
    """
    Name of `path` inside a bundle of `output_dir`. Cache hits from an
    earlier run keep their `variants/{style}/{i}/` tail.
    """
    try:
        return Path(path).relative_to(output_dir).as_posix()
    except ValueError:
        pass
    match = _VARIANT_TAIL_RE.search(Path(path).as_posix())
    if match:
        return match.group(0)
    return f"cached/{Path(path).name}"


def _local_src(path: str, output_dir: Path) -> str:
    try:
        return "../" + Path(path).relative_to(output_dir).as_posix()
    except ValueError:
        # Cache hits may live in an earlier run's directory.
        return Path(path).resolve().as_uri()


def render_gallery(manifest: Dict[str, Any], src: Callable[[str], str]) -> str:
    """
    Gallery page for a manifest in its `brandkit.json` shape. `src` maps a
    hero path to the image link used in the page.
    """
    name = html.escape(manifest["input"].get("name") or "")
    tagline = manifest["input"].get("tagline")
    sections = []
    for key, paths in group_heroes(manifest["generated"]["heroes"]).items():
        images = "\n".join(
            f'        <div class="variant"><img src="{html.escape(src(p))}" '
            f'alt="{html.escape(Path(p).stem)}"></div>'
            for p in paths
        )
        sections.append(
            f'    <div class="style-group">\n'
            f'      <div class="style-title">{html.escape(key)}</div>\n'
            f'      <div class="variants">\n{images}\n      </div>\n'
            f"    </div>"
        )

    styles = manifest["config"].get("styles", [])
    meta = f"Styles: {html.escape(', '.join(styles))}"
    if tagline:
        meta = f"{html.escape(tagline)} &middot; {meta}"

    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n<head>\n'
        '  <meta charset="UTF-8">\n'
        '  <meta name="viewport" content="width=device-width, initial-scale=1.0">\n'
        f"  <title>Brandkit Gallery - {name}</title>\n"
        f"  <style>{_STYLE}  </style>\n"
        "</head>\n<body>\n"
        f'  <div class="header">\n    <h1>{name}</h1>\n    <div class="meta">{meta}</div>\n  </div>\n'
        '  <div class="styles">\n'
        + "\n".join(sections)
        + "\n  </div>\n</body>\n</html>\n"
    )


def write_gallery(output_dir: Path, manifest: Manifest) -> Path:
    gallery_path = output_dir / GALLERY_NAME
    gallery_path.parent.mkdir(parents=True, exist_ok=True)
    page = render_gallery(manifest.to_dict(), lambda p: _local_src(p, output_dir))
    gallery_path.write_text(page, encoding="utf-8")
    return gallery_path
