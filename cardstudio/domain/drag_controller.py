# cardstudio/domain/drag_controller.py
"""Pointer drag handling for the photo and text layers.

A gesture is press -> move* -> release. The controller holds the start
pointer and start fraction only while a gesture is live; release, abort
and any error inside `gesture()` drop that state.
"""
import logging
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Iterator, NamedTuple, Optional, Tuple

from cardstudio.domain.errors import UnknownLayerError
from cardstudio.domain.geometry import Size, clamp, delta_to_fraction
from cardstudio.domain.layer_store import LayerStore
from cardstudio.domain.models import PhotoTransformPatch, TextLayerPatch

logger = logging.getLogger(__name__)


class DragKind(str, Enum):
    PHOTO = "photo"
    TEXT = "text"


class DragTarget(NamedTuple):
    kind: DragKind
    layer_id: Optional[str] = None

    @classmethod
    def photo(cls) -> "DragTarget":
        return cls(DragKind.PHOTO)

    @classmethod
    def text(cls, layer_id: str) -> "DragTarget":
        return cls(DragKind.TEXT, layer_id)


class DragSession(NamedTuple):
    target: DragTarget
    start_pointer: Tuple[float, float]
    start_fraction: Tuple[float, float]
    preview: Size


class DragController:
    def __init__(self, store: LayerStore, on_select: Optional[Callable[[str], None]] = None):
        self.store = store
        self.on_select = on_select
        self._session: Optional[DragSession] = None

    @property
    def active(self) -> Optional[DragSession]:
        return self._session

    def press(self, target: DragTarget, x: float, y: float, preview: Size, touches: int = 1) -> Optional[DragSession]:
        """Select (for text) and begin tracking. Returns None when nothing is tracked."""
        self._session = None
        if target.kind is DragKind.TEXT:
            layer = self.store.get_text_layer(target.layer_id)
            if self.on_select is not None:
                self.on_select(layer.id)
            start = (layer.x, layer.y)
        else:
            photo = self.store.photo
            if photo is None:
                return None
            start = (photo.center_x, photo.center_y)

        if touches != 1:
            logger.debug("Multi-touch press ignored for %s", target.kind.value)
            return None
        if preview.width <= 0 or preview.height <= 0:
            return None

        self._session = DragSession(
            target=target,
            start_pointer=(x, y),
            start_fraction=start,
            preview=preview,
        )
        return self._session

    def move(self, x: float, y: float, touches: int = 1) -> Optional[Tuple[float, float]]:
        """Apply the pointer position. Returns the committed fraction pair."""
        session = self._session
        if session is None:
            return None
        if touches != 1:
            # a second contact ends tracking for this gesture
            logger.debug("Second contact during drag; aborting gesture")
            self._session = None
            return None

        dx = delta_to_fraction(x - session.start_pointer[0], session.preview.width)
        dy = delta_to_fraction(y - session.start_pointer[1], session.preview.height)
        fx = clamp(session.start_fraction[0] + dx, 0.0, 1.0)
        fy = clamp(session.start_fraction[1] + dy, 0.0, 1.0)

        if session.target.kind is DragKind.PHOTO:
            if self.store.update_photo_transform(PhotoTransformPatch(center_x=fx, center_y=fy)) is None:
                # photo was cleared mid-gesture
                self._session = None
                return None
        else:
            try:
                self.store.update_text_layer(session.target.layer_id, TextLayerPatch(x=fx, y=fy))
            except UnknownLayerError:
                self._session = None
                return None
        return fx, fy

    def release(self) -> None:
        self._session = None

    @contextmanager
    def gesture(self, target: DragTarget, x: float, y: float, preview: Size, touches: int = 1) -> Iterator[Optional[DragSession]]:
        try:
            yield self.press(target, x, y, preview, touches=touches)
        finally:
            self.release()
