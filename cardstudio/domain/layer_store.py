# cardstudio/domain/layer_store.py
import uuid
from typing import List, Optional

from cardstudio.domain.errors import UnknownLayerError
from cardstudio.domain.geometry import clamp
from cardstudio.domain.models import (
    FONT_SIZE_MAX_FRACTION,
    FONT_SIZE_MIN_FRACTION,
    PHOTO_DEFAULT_CENTER,
    PHOTO_DEFAULT_SCALE,
    PHOTO_MAX_SCALE,
    PHOTO_MIN_SCALE,
    Bitmap,
    FontFamily,
    PhotoLayer,
    PhotoTransformPatch,
    StoreSnapshot,
    Template,
    TextLayer,
    TextLayerPatch,
)

DEFAULT_TEXT_ID = "main"


def default_text_layer() -> TextLayer:
    return TextLayer(
        id=DEFAULT_TEXT_ID,
        text="Happy Birthday!",
        x=0.15,
        y=0.44,
        font_family=FontFamily.PLAYFAIR_DISPLAY,
        color="#ffffff",
        font_size_fraction=0.064,
        z_order=0,
    )


def new_text_layer(z_order: int) -> TextLayer:
    return TextLayer(
        id="txt-" + uuid.uuid4().hex[:10],
        text="Write here",
        x=0.4,
        y=0.6,
        font_family=FontFamily.INTER,
        color="#222222",
        font_size_fraction=0.048,
        z_order=z_order,
    )


def clamp_unit(value: float) -> float:
    return clamp(value, 0.0, 1.0)


class LayerStore:
    """Session-scoped state: template, optional photo and text layers.

    Text layers are kept in paint order, so a layer's list index is always
    its z_order. Numeric input is clamped, never rejected.
    """

    def __init__(self, template: Optional[Template] = None):
        self._template: Optional[Template] = None
        self._photo: Optional[PhotoLayer] = None
        self._texts: List[TextLayer] = [default_text_layer()]
        if template is not None:
            self.set_template(template)

    # --- read access ---
    @property
    def template(self) -> Optional[Template]:
        return self._template

    @property
    def photo(self) -> Optional[PhotoLayer]:
        return self._photo

    @property
    def text_layers(self) -> List[TextLayer]:
        return list(self._texts)

    def get_text_layer(self, layer_id: str) -> TextLayer:
        return self._texts[self._index_of(layer_id)]

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot(template=self._template, photo=self._photo, text_layers=list(self._texts))

    # --- template ---
    def set_template(self, template: Template) -> None:
        self._template = template
        self._photo = None
        self._texts = [default_text_layer()]

    # --- photo ---
    def set_photo(self, bitmap: Bitmap) -> PhotoLayer:
        self._photo = PhotoLayer(bitmap=bitmap)
        return self._photo

    def clear_photo(self) -> None:
        self._photo = None

    def update_photo_transform(self, patch: PhotoTransformPatch) -> Optional[PhotoLayer]:
        if self._photo is None:
            return None
        changes = patch.model_dump(exclude_unset=True, exclude_none=True)
        if "center_x" in changes:
            changes["center_x"] = clamp_unit(changes["center_x"])
        if "center_y" in changes:
            changes["center_y"] = clamp_unit(changes["center_y"])
        if "scale" in changes:
            changes["scale"] = clamp(changes["scale"], PHOTO_MIN_SCALE, PHOTO_MAX_SCALE)
        self._photo = self._photo.model_copy(update=changes)
        return self._photo

    def zoom_photo(self, delta: float) -> Optional[PhotoLayer]:
        if self._photo is None:
            return None
        return self.update_photo_transform(PhotoTransformPatch(scale=round(self._photo.scale + delta, 3)))

    def reset_photo(self) -> Optional[PhotoLayer]:
        return self.update_photo_transform(
            PhotoTransformPatch(
                center_x=PHOTO_DEFAULT_CENTER[0],
                center_y=PHOTO_DEFAULT_CENTER[1],
                scale=PHOTO_DEFAULT_SCALE,
            )
        )

    # --- text layers ---
    def add_text_layer(self) -> str:
        layer = new_text_layer(len(self._texts))
        self._texts.append(layer)
        return layer.id

    def update_text_layer(self, layer_id: str, patch: TextLayerPatch) -> TextLayer:
        idx = self._index_of(layer_id)
        changes = patch.model_dump(exclude_unset=True, exclude_none=True)
        if "x" in changes:
            changes["x"] = clamp_unit(changes["x"])
        if "y" in changes:
            changes["y"] = clamp_unit(changes["y"])
        if "font_size_fraction" in changes:
            changes["font_size_fraction"] = clamp(
                changes["font_size_fraction"], FONT_SIZE_MIN_FRACTION, FONT_SIZE_MAX_FRACTION
            )
        if "font_family" in changes:
            changes["font_family"] = FontFamily(changes["font_family"])
        updated = self._texts[idx].model_copy(update=changes)
        self._texts[idx] = updated
        return updated

    def remove_text_layer(self, layer_id: str) -> int:
        """Remove a layer and return the list position it occupied."""
        idx = self._index_of(layer_id)
        del self._texts[idx]
        self._renumber()
        return idx

    def reorder_text_layer(self, layer_id: str, new_z: int) -> TextLayer:
        idx = self._index_of(layer_id)
        layer = self._texts.pop(idx)
        target = int(clamp(new_z, 0, len(self._texts)))
        self._texts.insert(target, layer)
        self._renumber()
        return self._texts[target]

    def _index_of(self, layer_id: str) -> int:
        for i, layer in enumerate(self._texts):
            if layer.id == layer_id:
                return i
        raise UnknownLayerError(layer_id)

    def _renumber(self) -> None:
        self._texts = [
            layer if layer.z_order == z else layer.model_copy(update={"z_order": z})
            for z, layer in enumerate(self._texts)
        ]
