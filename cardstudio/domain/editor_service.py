# cardstudio/domain/editor_service.py
import asyncio
import logging
import time
import uuid
from concurrent.futures import Executor
from typing import Callable, Dict, Optional

from cardstudio.config.settings import settings
from cardstudio.domain.compositor import Compositor
from cardstudio.domain.drag_controller import DragController
from cardstudio.domain.errors import CardStudioError, DecodeError
from cardstudio.domain.export_pipeline import ExportFormat, ExportPipeline, ExportResult
from cardstudio.domain.geometry import Size, preview_box
from cardstudio.domain.layer_store import DEFAULT_TEXT_ID, LayerStore
from cardstudio.domain.models import Template
from cardstudio.infrastructure.catalog.asset_loader import AssetResolver, TemplateCatalog
from cardstudio.infrastructure.imaging.image_process import decode_bitmap, encode_image
from cardstudio.infrastructure.storage.save_target import SaveTarget

# --- PENGATURAN LOGGER ---
logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False


class EditorSession:
    """One user's editing state: a LayerStore plus the UI-side selection and drag."""

    def __init__(
        self,
        session_id: str,
        catalog: TemplateCatalog,
        resolver: AssetResolver,
        compositor: Compositor,
        executor: Optional[Executor] = None,
        preview_max: Size = Size(settings.PREVIEW_MAX_WIDTH, settings.PREVIEW_MAX_HEIGHT),
        max_upload_side: int = settings.MAX_UPLOAD_SIDE,
    ):
        self.id = session_id
        self.catalog = catalog
        self.resolver = resolver
        self.compositor = compositor
        self.executor = executor
        self.preview_max = preview_max
        self.max_upload_side = max_upload_side

        self.store = LayerStore()
        self.selected_text_id: Optional[str] = DEFAULT_TEXT_ID
        self.drag = DragController(self.store, on_select=self.select_text)
        self.pending_template_id: Optional[str] = None
        self._template_generation = 0
        self.last_access = 0.0

    # --- selection ---
    def select_text(self, layer_id: Optional[str]) -> None:
        if layer_id is not None:
            self.store.get_text_layer(layer_id)
        self.selected_text_id = layer_id

    def add_text(self) -> str:
        layer_id = self.store.add_text_layer()
        self.selected_text_id = layer_id
        return layer_id

    def remove_text(self, layer_id: str) -> None:
        position = self.store.remove_text_layer(layer_id)
        remaining = self.store.text_layers
        selection_gone = self.selected_text_id == layer_id or all(
            t.id != self.selected_text_id for t in remaining
        )
        if selection_gone:
            self.selected_text_id = remaining[min(position, len(remaining) - 1)].id if remaining else None

    # --- geometry ---
    def preview_size(self) -> Optional[Size]:
        template = self.store.template
        if template is None or not template.is_ready:
            return None
        return preview_box(template.native_width, template.native_height, *self.preview_max)

    # --- async loads ---
    async def _decode(self, data: bytes, max_side: int = 0):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, decode_bitmap, data, max_side)

    async def select_template(self, template_id: str) -> bool:
        """Load and install a template. Returns False when a newer selection won."""
        meta = self.catalog.get(template_id)
        self._template_generation += 1
        generation = self._template_generation
        self.pending_template_id = template_id
        logger.info(f"[{self.id}] Memuat template '{template_id}' (gen={generation})")

        try:
            data = await self.resolver.load_bytes(meta.image)
            bitmap = await self._decode(data)
        except DecodeError:
            if generation == self._template_generation:
                self.pending_template_id = None
                raise
            logger.info(f"[{self.id}] Template '{template_id}' gagal dimuat, tetapi sudah usang; diabaikan.")
            return False

        if generation != self._template_generation:
            logger.info(f"[{self.id}] Template '{template_id}' selesai dimuat tetapi sudah digantikan; dibuang.")
            return False

        self.drag.release()
        self.store.set_template(Template.from_bitmap(meta.id, meta.name, bitmap))
        self.selected_text_id = DEFAULT_TEXT_ID
        self.pending_template_id = None
        logger.info(f"[{self.id}] Template '{template_id}' aktif ({bitmap.width}x{bitmap.height}).")
        return True

    async def upload_photo(self, data: bytes) -> bool:
        """Decode and install a photo. A template switch during decode makes it a no-op."""
        template_at_start = self.store.template
        bitmap = await self._decode(data, self.max_upload_side)
        if self.store.template is not template_at_start:
            logger.info(f"[{self.id}] Foto selesai di-decode setelah template berganti; dibuang.")
            return False
        if self.drag.active is not None:
            self.drag.release()
        self.store.set_photo(bitmap)
        logger.info(f"[{self.id}] Foto dimuat ({bitmap.width}x{bitmap.height}).")
        return True

    # --- rendering ---
    async def render_preview_png(self) -> Optional[bytes]:
        size = self.preview_size()
        if size is None:
            return None
        snapshot = self.store.snapshot()

        def _render() -> bytes:
            image = self.compositor.render(snapshot, size)
            try:
                return encode_image(image, "png")
            finally:
                image.close()

        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, _render)

    async def export(self, fmt: ExportFormat, save_target: SaveTarget) -> ExportResult:
        pipeline = ExportPipeline(self.compositor, save_target, executor=self.executor)
        return await pipeline.export(self.store.snapshot(), fmt)


class EditorService:
    def __init__(
        self,
        catalog: TemplateCatalog,
        resolver: Optional[AssetResolver] = None,
        executor: Optional[Executor] = None,
        compositor: Optional[Compositor] = None,
        idle_ttl: float = settings.SESSION_IDLE_TTL,
        max_sessions: int = settings.MAX_SESSIONS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.catalog = catalog
        self.resolver = resolver or AssetResolver()
        self.executor = executor
        self.compositor = compositor or Compositor()
        self.idle_ttl = idle_ttl
        self.max_sessions = max_sessions
        self.clock = clock
        self.sessions: Dict[str, EditorSession] = {}

    def evict_idle(self) -> int:
        """Drop sessions idle longer than `idle_ttl`, then the least recently
        used ones until there is room for one more session."""
        now = self.clock()
        expired = [
            sid for sid, s in self.sessions.items()
            if self.idle_ttl > 0 and now - s.last_access > self.idle_ttl
        ]
        if self.max_sessions > 0:
            alive = sorted(
                (s for sid, s in self.sessions.items() if sid not in expired),
                key=lambda s: s.last_access,
            )
            overflow = len(alive) - (self.max_sessions - 1)
            expired.extend(s.id for s in alive[:max(0, overflow)])
        for sid in expired:
            self.close_session(sid)
        if expired:
            logger.info(f"{len(expired)} sesi menganggur dihapus (sisa {len(self.sessions)})")
        return len(expired)

    async def create_session(self, template_id: Optional[str] = None) -> EditorSession:
        self.evict_idle()
        session = EditorSession(
            session_id=uuid.uuid4().hex,
            catalog=self.catalog,
            resolver=self.resolver,
            compositor=self.compositor,
            executor=self.executor,
        )
        session.last_access = self.clock()
        self.sessions[session.id] = session
        logger.info(f"Sesi baru dibuat: {session.id} (total {len(self.sessions)})")
        if template_id is None and len(self.catalog):
            template_id = self.catalog.entries[0].id
        if template_id is not None:
            try:
                await session.select_template(template_id)
            except CardStudioError:
                self.sessions.pop(session.id, None)
                raise
        return session

    def get_session(self, session_id: str) -> Optional[EditorSession]:
        session = self.sessions.get(session_id)
        if session is not None:
            session.last_access = self.clock()
        return session

    def close_session(self, session_id: str) -> bool:
        session = self.sessions.pop(session_id, None)
        if session is None:
            return False
        session.drag.release()
        logger.info(f"Sesi ditutup: {session_id}")
        return True
