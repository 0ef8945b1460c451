# cardstudio/infrastructure/imaging/image_process.py
from io import BytesIO
from typing import Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from cardstudio.domain.errors import DecodeError, EncodeError
from cardstudio.domain.models import Bitmap

EMPTY = (0, 0, 0, 0)


def decode_bitmap(data: bytes, max_side: int = 0) -> Bitmap:
    """Decode raw upload/asset bytes into an RGBA bitmap.

    Images larger than `max_side` on their long edge are downscaled;
    0 disables the cap.
    """
    if not data:
        raise DecodeError("The file is empty.")
    try:
        img = Image.open(BytesIO(data))
        if max_side:
            # JPEG can decode at a reduced scale; other formats ignore this
            img.draft("RGB", (max_side, max_side))
        img.load()
    except Image.DecompressionBombError as e:
        raise DecodeError("The image is too large to open.") from e
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise DecodeError("The file is not a valid image.") from e

    img = ImageOps.exif_transpose(img)
    if max_side and max(img.size) > max_side:
        img.thumbnail((max_side, max_side), Image.Resampling.LANCZOS)
    return Bitmap(img.convert("RGBA"))


def crop_to_fill(image_pil: Image.Image, target_w: int, target_h: int) -> Image.Image:
    """Scale to cover (target_w, target_h) and center-crop the overflow."""
    source_w, source_h = image_pil.size
    if (source_w, source_h) == (target_w, target_h):
        return image_pil
    target_ratio = target_w / target_h
    source_ratio = source_w / source_h

    if source_ratio > target_ratio:
        scaled_w = max(target_w, round(source_w * target_h / source_h))
        scaled_h = target_h
        resized_image = image_pil.resize((scaled_w, scaled_h), Image.Resampling.LANCZOS)
        crop_x = (scaled_w - target_w) // 2
        return resized_image.crop((crop_x, 0, crop_x + target_w, scaled_h))
    else:
        scaled_w = target_w
        scaled_h = max(target_h, round(source_h * target_w / source_w))
        resized_image = image_pil.resize((scaled_w, scaled_h), Image.Resampling.LANCZOS)
        crop_y = (scaled_h - target_h) // 2
        return resized_image.crop((0, crop_y, scaled_w, crop_y + target_h))


def composite_at(canvas: Image.Image, layer: Image.Image, position: Tuple[int, int]) -> Image.Image:
    """Alpha-blend `layer` onto `canvas` with its top-left at `position`.

    Offsets may be negative or run past the canvas edge; the overflow is clipped.
    """
    if layer.mode != "RGBA":
        layer = layer.convert("RGBA")
    if layer.size == canvas.size and position == (0, 0):
        return Image.alpha_composite(canvas, layer)
    placed = Image.new("RGBA", canvas.size, EMPTY)
    placed.paste(layer, position)
    return Image.alpha_composite(canvas, placed)


def encode_image(img: Image.Image, fmt: str = "png", quality: int = 95) -> bytes:
    fmt = (fmt or "png").lower()
    if fmt in ("jpg", "jpeg"):
        # JPEG can't have alpha
        if img.mode != "RGB":
            img = img.convert("RGB")
        save_kwargs = dict(format="JPEG", quality=quality, optimize=True)
    elif fmt == "png":
        save_kwargs = dict(format="PNG", optimize=True)
    else:
        raise EncodeError(f"Unsupported export format '{fmt}'.")

    buf = BytesIO()
    try:
        img.save(buf, **save_kwargs)
    except (OSError, ValueError) as e:
        raise EncodeError(f"Could not encode the card as {fmt.upper()}.") from e
    return buf.getvalue()
