from pydantic import BaseModel, Field
from typing import List, Literal, Optional

from cardstudio.domain.export_pipeline import ExportFormat
from cardstudio.domain.models import FontFamily, PhotoTransformPatch, TextLayer, TextLayerPatch


class CreateSessionBody(BaseModel):
    template_id: Optional[str] = None


class SelectTemplateBody(BaseModel):
    template_id: str


class PhotoTransformBody(PhotoTransformPatch):
    pass


class ZoomBody(BaseModel):
    delta: float


class TextLayerBody(TextLayerPatch):
    pass


class ReorderBody(BaseModel):
    z_order: int


class PressBody(BaseModel):
    target: Literal["photo", "text"]
    layer_id: Optional[str] = None
    x: float                        # pointer position in preview pixels
    y: float
    touches: int = 1


class MoveBody(BaseModel):
    x: float
    y: float
    touches: int = 1


class ExportBody(BaseModel):
    format: ExportFormat = ExportFormat.PNG


# --- responses ---
class TemplateOut(BaseModel):
    id: str
    name: str
    native_width: int = 0
    native_height: int = 0
    ready: bool = False


class PhotoOut(BaseModel):
    center_x: float
    center_y: float
    scale: float
    intrinsic_width: int
    intrinsic_height: int


class TextLayerOut(BaseModel):
    id: str
    text: str
    x: float
    y: float
    font_family: FontFamily
    color: str
    font_size_fraction: float
    z_order: int

    @classmethod
    def from_layer(cls, layer: TextLayer) -> "TextLayerOut":
        return cls(**layer.model_dump())


class PreviewBoxOut(BaseModel):
    width: int
    height: int


class SessionState(BaseModel):
    id: str
    template: Optional[TemplateOut] = None
    pending_template_id: Optional[str] = None
    photo: Optional[PhotoOut] = None
    text_layers: List[TextLayerOut] = Field(default_factory=list)
    selected_text_id: Optional[str] = None
    preview: Optional[PreviewBoxOut] = None


class DragOut(BaseModel):
    tracking: bool
    x: Optional[float] = None
    y: Optional[float] = None
