# cardstudio/infrastructure/imaging/text.py
"""Bold text rendering with a blurred drop shadow."""
import functools
import logging
import math
import os
import sys
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image, ImageDraw, ImageFilter, ImageFont

from cardstudio.config.settings import settings
from cardstudio.domain.models import FontFamily

logger = logging.getLogger(__name__)

_FONT_FILES = {
    FontFamily.PLAYFAIR_DISPLAY: "PlayfairDisplay-Bold.ttf",
    FontFamily.INTER: "Inter-Bold.ttf",
}

SHADOW_COLOR = (0, 0, 0, 255)

# extra pixels between lines, same as ImageDraw.multiline_text
LINE_SPACING = 4


def _find_fallback() -> str:
    if sys.platform == "win32":
        candidates = ["C:/Windows/Fonts/arialbd.ttf"]
    elif sys.platform == "darwin":
        candidates = ["/System/Library/Fonts/Supplemental/Arial Bold.ttf", "/Library/Fonts/Arial Bold.ttf"]
    else:
        candidates = [
            "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
            "/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf",
            "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
        ]
    for path in candidates:
        if os.path.exists(path):
            return path
    return ""


_FALLBACK_BOLD = _find_fallback()


def font_path(family: FontFamily, fonts_dir: Optional[str] = None) -> str:
    path = Path(fonts_dir or settings.FONTS_DIR) / _FONT_FILES[FontFamily(family)]
    if path.exists():
        return str(path)
    return _FALLBACK_BOLD


@functools.lru_cache(maxsize=64)
def get_font(family: FontFamily, size: int):
    path = font_path(family)
    if path:
        return ImageFont.truetype(path, size)
    logger.warning(f"No bold font found for '{FontFamily(family).value}', using Pillow default.")
    return ImageFont.load_default(size)


def render_text(
    text: str,
    font,
    color: Tuple[int, int, int, int],
    shadow_blur: float = 0.0,
) -> Tuple[Image.Image, Tuple[int, int]]:
    """Render `text` on a transparent tile.

    Returns the tile and the offset of the text's top-left anchor inside it,
    so callers can paste the tile at (x - ox, y - oy). Line breaks stack
    lines downward from that anchor, left-aligned.
    """
    lines = text.splitlines() or [""]
    ascent, descent = font.getmetrics()
    line_height = ascent + descent + LINE_SPACING

    boxes = []
    for i, line in enumerate(lines):
        if not line:
            continue
        left, top, right, bottom = font.getbbox(line, anchor="lt")
        boxes.append((left, top + i * line_height, right, bottom + i * line_height))
    if boxes:
        bbox = (
            min(b[0] for b in boxes),
            min(b[1] for b in boxes),
            max(b[2] for b in boxes),
            max(b[3] for b in boxes),
        )
    else:
        bbox = (0, 0, 0, 0)

    pad = int(math.ceil(shadow_blur * 1.5)) + 2
    w = max(1, bbox[2] - bbox[0]) + 2 * pad
    h = max(1, bbox[3] - bbox[1]) + 2 * pad
    origin = (pad - bbox[0], pad - bbox[1])

    mask = Image.new("L", (w, h), 0)
    draw = ImageDraw.Draw(mask)
    for i, line in enumerate(lines):
        if line:
            # "lt" is rejected for multiline strings, so each line is drawn on its own
            draw.text((origin[0], origin[1] + i * line_height), line, font=font, fill=255, anchor="lt")

    tile = Image.new("RGBA", (w, h), (0, 0, 0, 0))
    if shadow_blur > 0:
        # canvas-style shadowBlur is roughly twice the gaussian sigma
        shadow_mask = mask.filter(ImageFilter.GaussianBlur(shadow_blur / 2))
        shadow = Image.new("RGBA", (w, h), SHADOW_COLOR)
        shadow.putalpha(shadow_mask)
        tile = Image.alpha_composite(tile, shadow)

    glyphs = Image.new("RGBA", (w, h), color)
    glyphs.putalpha(mask)
    tile = Image.alpha_composite(tile, glyphs)
    return tile, origin
