# cardstudio/domain/models.py
from enum import Enum
from typing import List, Optional, Tuple

from PIL import Image, ImageColor
from pydantic import BaseModel, ConfigDict, Field, field_validator

# --- Layer defaults and limits ---
PHOTO_MIN_SCALE = 0.32
PHOTO_MAX_SCALE = 2.4
PHOTO_DEFAULT_CENTER = (0.5, 0.5)
PHOTO_DEFAULT_SCALE = 1.0

# 12..72 px against the 500 px reference height of the text controls
FONT_SIZE_MIN_FRACTION = 0.024
FONT_SIZE_MAX_FRACTION = 0.144

PALETTE = ["#ffffff", "#ffd166", "#ef476f", "#06d6a0", "#118ab2", "#222222", "#7d5fff"]


class FontFamily(str, Enum):
    PLAYFAIR_DISPLAY = "Playfair Display"
    INTER = "Inter"


def normalize_color(value: str) -> str:
    """Accept any colour Pillow understands and return it as #rrggbb."""
    try:
        rgb = ImageColor.getrgb(value.strip())
    except (ValueError, AttributeError) as e:
        raise ValueError(f"Unsupported colour value: {value!r}") from e
    return "#{:02x}{:02x}{:02x}".format(*rgb[:3])


def color_to_rgba(value: str, alpha: int = 255) -> Tuple[int, int, int, int]:
    r, g, b = ImageColor.getrgb(value)[:3]
    return r, g, b, alpha


class Bitmap:
    """A decoded image plus its intrinsic size."""

    def __init__(self, image: Image.Image):
        self.image = image

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height if self.height else 1.0


class Template:
    """Background frame. Its native size is the card's coordinate space."""

    def __init__(self, id: str, display_name: str, bitmap: Optional[Bitmap], native_width: int, native_height: int):
        self.id = id
        self.display_name = display_name
        self.bitmap = bitmap
        self.native_width = native_width
        self.native_height = native_height

    @property
    def is_ready(self) -> bool:
        return self.bitmap is not None and self.native_width > 0 and self.native_height > 0

    @classmethod
    def from_bitmap(cls, template_id: str, display_name: str, bitmap: Bitmap) -> "Template":
        return cls(
            id=template_id,
            display_name=display_name,
            bitmap=bitmap,
            native_width=bitmap.width,
            native_height=bitmap.height,
        )


class PhotoLayer(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    bitmap: Bitmap
    center_x: float = PHOTO_DEFAULT_CENTER[0]
    center_y: float = PHOTO_DEFAULT_CENTER[1]
    scale: float = PHOTO_DEFAULT_SCALE


class TextLayer(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    x: float
    y: float
    font_family: FontFamily
    color: str
    font_size_fraction: float
    z_order: int


class PhotoTransformPatch(BaseModel):
    center_x: Optional[float] = None
    center_y: Optional[float] = None
    scale: Optional[float] = None


class TextLayerPatch(BaseModel):
    text: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    font_family: Optional[FontFamily] = None
    color: Optional[str] = None
    font_size_fraction: Optional[float] = None

    @field_validator("color")
    @classmethod
    def _normalize_color(cls, v: Optional[str]) -> Optional[str]:
        return normalize_color(v) if v is not None else v


class StoreSnapshot(BaseModel):
    """Immutable view of the store handed to the compositor."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    template: Optional[Template] = None
    photo: Optional[PhotoLayer] = None
    text_layers: List[TextLayer] = Field(default_factory=list)
