import io
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

from PIL import Image, ImageDraw, ImageOps

from .config import BrandConfig


Size = Tuple[int, int]

SIZE_DIMENSIONS: Dict[str, Size] = {
    "1536x1024": (1536, 1024),
    "1024x1024": (1024, 1024),
    "1024x1536": (1024, 1536),
}


@dataclass(frozen=True)
class HeroSize:
    type: str
    size: str


HERO_SIZES: Dict[str, HeroSize] = {
    "landscape": HeroSize(type="landscape", size="1536x1024"),
    "portrait": HeroSize(type="portrait", size="1024x1536"),
    "square": HeroSize(type="square", size="1024x1024"),
}


def background_size(config: BrandConfig) -> str:
    return HERO_SIZES[config.background_size].size


def hero_sizes(config: BrandConfig) -> List[HeroSize]:
    """Square always, plus the configured orientation unless that is square too."""
    sizes = [HERO_SIZES["square"]]
    if config.background_size != "square":
        sizes.append(HERO_SIZES[config.background_size])
    return sizes


def output_extension(fmt: str) -> str:
    return "jpg" if fmt == "jpeg" else fmt


def resolve_output_path(path: Path, fmt: str) -> Path:
    return path.with_suffix(f".{output_extension(fmt)}")


def load_image(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


def to_png_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def save_image(
    img: Image.Image,
    path: Path,
    fmt: str,
    compression: int = 85,
    keep_alpha: bool = True,
) -> Path:
    """
    Save `img` in the requested format, switching the file extension to match.
    JPEG (and any output with `keep_alpha=False`) is flattened onto white.
    """
    final_path = resolve_output_path(path, fmt)
    final_path.parent.mkdir(parents=True, exist_ok=True)

    if fmt == "jpeg" or not keep_alpha:
        img = _flatten(img)
    elif img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGBA")

    if fmt == "jpeg":
        img.save(final_path, format="JPEG", quality=compression)
    elif fmt == "webp":
        img.save(final_path, format="WEBP", quality=compression)
    else:
        img.save(final_path, format="PNG")
    return final_path


def write_formatted_image(
    data: bytes,
    path: Path,
    fmt: str,
    compression: int = 85,
    keep_alpha: bool = False,
) -> Path:
    return save_image(load_image(data), path, fmt, compression=compression, keep_alpha=keep_alpha)


def resize_cover(img: Image.Image, size: Size) -> Image.Image:
    """
    Resize + crop to exactly `size` while filling the frame.
    """
    return ImageOps.fit(img, size, Image.LANCZOS, centering=(0.5, 0.5))


def resize_contain(img: Image.Image, size: Size) -> Image.Image:
    """
    Fit the whole image inside `size` on a transparent canvas, centered.
    """
    img = img.convert("RGBA")
    scale = min(size[0] / img.width, size[1] / img.height)
    fitted = img.resize(
        (max(1, round(img.width * scale)), max(1, round(img.height * scale))), Image.LANCZOS
    )

    canvas = Image.new("RGBA", size, (0, 0, 0, 0))
    x = (size[0] - fitted.width) // 2
    y = (size[1] - fitted.height) // 2
    canvas.paste(fitted, (x, y), fitted)
    return canvas


def composite_logo(background: bytes, logo: bytes, size: Size) -> bytes:
    """
    Cover-fit the background to `size` and center the logo on it at no more
    than 40% of the shorter side. Returns PNG bytes for the edit API.
    """
    width, height = size
    base = resize_cover(load_image(background).convert("RGBA"), size)
    mark = load_image(logo).convert("RGBA")

    limit = int(min(width * 0.4, height * 0.4))
    mark.thumbnail((limit, limit), Image.LANCZOS)

    x = (width - mark.width) // 2
    y = (height - mark.height) // 2
    base.alpha_composite(mark, (x, y))
    return to_png_bytes(base)


def placeholder_image(size: Size, colors: Sequence[str], label: str = "") -> bytes:
    """
    Synthetic gradient image used when no external service is called.
    """
    width, height = size
    start = parse_color(colors[0]) if colors else (17, 24, 39)
    end = parse_color(colors[1]) if len(colors) > 1 else (59, 130, 246)

    img = Image.new("RGB", size, start)
    draw = ImageDraw.Draw(img)
    for i in range(height):
        t = i / max(1, height - 1)
        color = tuple(int(start[c] + (end[c] - start[c]) * t) for c in range(3))
        draw.line([(0, i), (width, i)], fill=color)

    if label:
        draw.text((int(width * 0.05), int(height * 0.05)), label, fill=(255, 255, 255))
    return to_png_bytes(img)


def parse_color(color_str: str) -> Tuple[int, int, int]:
    """
    Parse hex color strings like '#FF0000' or 'FF0000' into RGB tuple.
    Fallbacks to a safe default if parsing fails.
    """
    s = color_str.strip().lstrip("#")
    if len(s) == 3:
        s = "".join(ch * 2 for ch in s)
    if len(s) == 6:
        try:
            return (int(s[0:2], 16), int(s[2:4], 16), int(s[4:6], 16))
        except ValueError:
            pass
    return (59, 130, 246)  # blue-500


def _flatten(img: Image.Image) -> Image.Image:
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[3])
        return background
    return img.convert("RGB")
