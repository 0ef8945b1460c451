# cardstudio/domain/compositor.py
"""Paints a store snapshot into a raster of any requested size.

Order is fixed: photo, then the template stretched to cover the raster
(its transparent window reveals the photo), then text layers by
ascending z_order. The same snapshot and size always give the same
pixels, so the preview and the native-size export agree.
"""
import logging
from typing import NamedTuple, Optional

from PIL import Image

from cardstudio.domain.errors import TemplateNotReadyError
from cardstudio.domain.geometry import Size, to_pixel_space
from cardstudio.domain.models import PhotoLayer, StoreSnapshot, TextLayer, color_to_rgba
from cardstudio.infrastructure.imaging.image_process import EMPTY, composite_at, crop_to_fill
from cardstudio.infrastructure.imaging.text import get_font, render_text

logger = logging.getLogger(__name__)

# Shadow blur at the template's native height; scaled with the raster height.
SHADOW_BLUR_PX = 8.0


class PhotoRect(NamedTuple):
    left: float
    top: float
    width: float
    height: float

    @property
    def center(self):
        return self.left + self.width / 2, self.top + self.height / 2


def photo_rect(photo: PhotoLayer, width: int, height: int) -> PhotoRect:
    display_h = to_pixel_space(photo.scale, height)
    display_w = display_h * photo.bitmap.aspect_ratio
    cx = to_pixel_space(photo.center_x, width)
    cy = to_pixel_space(photo.center_y, height)
    return PhotoRect(cx - display_w / 2, cy - display_h / 2, display_w, display_h)


def font_pixel_size(layer: TextLayer, height: int) -> int:
    return max(1, round(layer.font_size_fraction * height))


class Compositor:
    def __init__(self, shadow_blur_px: float = SHADOW_BLUR_PX):
        self.shadow_blur_px = shadow_blur_px

    @staticmethod
    def is_ready(snapshot: StoreSnapshot) -> bool:
        return snapshot.template is not None and snapshot.template.is_ready

    def render(self, snapshot: StoreSnapshot, size: Size) -> Image.Image:
        if not self.is_ready(snapshot):
            raise TemplateNotReadyError()
        width, height = int(size[0]), int(size[1])
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid raster size {width}x{height}")

        template = snapshot.template
        canvas = Image.new("RGBA", (width, height), EMPTY)

        if snapshot.photo is not None:
            canvas = self._paint_photo(canvas, snapshot.photo)

        frame = crop_to_fill(template.bitmap.image, width, height)
        canvas = composite_at(canvas, frame, (0, 0))

        blur = self.shadow_blur_px * height / template.native_height
        for layer in sorted(snapshot.text_layers, key=lambda t: t.z_order):
            canvas = self._paint_text(canvas, layer, blur)

        logger.debug(f"Composited {len(snapshot.text_layers)} text layer(s) at {width}x{height}")
        return canvas

    def render_optional(self, snapshot: StoreSnapshot, size: Size) -> Optional[Image.Image]:
        """Like render(), but returns None instead of raising when not ready."""
        if not self.is_ready(snapshot):
            return None
        return self.render(snapshot, size)

    def _paint_photo(self, canvas: Image.Image, photo: PhotoLayer) -> Image.Image:
        width, height = canvas.size
        rect = photo_rect(photo, width, height)
        left, top = round(rect.left), round(rect.top)
        dw, dh = max(1, round(rect.width)), max(1, round(rect.height))

        # only resample the part of the photo that lands on the raster
        vx0, vy0 = max(0, left), max(0, top)
        vx1, vy1 = min(width, left + dw), min(height, top + dh)
        if vx1 <= vx0 or vy1 <= vy0:
            return canvas

        src = photo.bitmap.image
        sx = src.width / dw
        sy = src.height / dh
        box = ((vx0 - left) * sx, (vy0 - top) * sy, (vx1 - left) * sx, (vy1 - top) * sy)
        visible = src.resize((vx1 - vx0, vy1 - vy0), Image.Resampling.LANCZOS, box=box)
        return composite_at(canvas, visible, (vx0, vy0))

    def _paint_text(self, canvas: Image.Image, layer: TextLayer, blur: float) -> Image.Image:
        width, height = canvas.size
        font = get_font(layer.font_family, font_pixel_size(layer, height))
        tile, (ox, oy) = render_text(layer.text, font, color_to_rgba(layer.color), shadow_blur=blur)
        x = round(to_pixel_space(layer.x, width))
        y = round(to_pixel_space(layer.y, height))
        return composite_at(canvas, tile, (x - ox, y - oy))
