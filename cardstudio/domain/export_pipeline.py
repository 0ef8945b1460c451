# cardstudio/domain/export_pipeline.py
import asyncio
import logging
import os
import time
from concurrent.futures import Executor
from enum import Enum
from typing import Optional

import psutil
from pydantic import BaseModel

from cardstudio.config.settings import settings
from cardstudio.domain.compositor import Compositor
from cardstudio.domain.errors import TemplateNotReadyError
from cardstudio.domain.geometry import Size
from cardstudio.domain.models import StoreSnapshot
from cardstudio.infrastructure.imaging.image_process import encode_image
from cardstudio.infrastructure.storage.save_target import SaveTarget

# --- PENGATURAN LOGGER ---
logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter('%(asctime)s [%(levelname)s] [export] %(message)s', '%Y-%m-%d %H:%M:%S')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False


class ExportFormat(str, Enum):
    PNG = "png"      # lossless
    JPEG = "jpeg"    # lossy, fixed quality


class ExportResult(BaseModel):
    filename: str
    format: ExportFormat
    width: int
    height: int
    size_bytes: int
    location: str
    message: str


def _memory_mb() -> Optional[float]:
    try:
        return psutil.Process(os.getpid()).memory_info().rss / 1024 / 1024
    except psutil.Error as e:
        logger.warning(f"Could not get memory info: {e}")
        return None


class ExportPipeline:
    def __init__(
        self,
        compositor: Compositor,
        save_target: SaveTarget,
        executor: Optional[Executor] = None,
        basename: str = settings.EXPORT_BASENAME,
        jpeg_quality: int = settings.JPEG_QUALITY,
    ):
        self.compositor = compositor
        self.save_target = save_target
        self.executor = executor
        self.basename = basename
        self.jpeg_quality = jpeg_quality

    def filename_for(self, fmt: ExportFormat) -> str:
        return f"{self.basename}.{ExportFormat(fmt).value}"

    def _render_and_encode(self, snapshot: StoreSnapshot, fmt: ExportFormat) -> bytes:
        template = snapshot.template
        image = self.compositor.render(snapshot, Size(template.native_width, template.native_height))
        try:
            return encode_image(image, fmt.value, quality=self.jpeg_quality)
        finally:
            image.close()

    async def export(self, snapshot: StoreSnapshot, fmt: ExportFormat = ExportFormat.PNG) -> ExportResult:
        fmt = ExportFormat(fmt)
        template = snapshot.template
        if template is None or not template.is_ready:
            logger.warning("Export ditolak: template belum siap.")
            raise TemplateNotReadyError()

        size = Size(template.native_width, template.native_height)
        logger.info(f"=== START EXPORT {template.id} {size.width}x{size.height} ({fmt.value}) ===")
        memory_mb = _memory_mb()
        if memory_mb is not None:
            logger.info(f"Memory usage at start: {memory_mb:.1f}MB")

        start_time = time.perf_counter()
        loop = asyncio.get_running_loop()
        # EncodeError propagates here, before anything reaches the save target
        data = await loop.run_in_executor(self.executor, self._render_and_encode, snapshot, fmt)
        render_duration = time.perf_counter() - start_time
        logger.info(f"Tahap 1/2: Render & encode selesai dalam {render_duration:.2f} detik ({len(data)} bytes).")

        filename = self.filename_for(fmt)
        location = await self.save_target.save(data, filename, fmt.value)
        overall_duration = time.perf_counter() - start_time
        logger.info(f"Tahap 2/2: File diserahkan ke {location} (total {overall_duration:.2f} detik).")

        return ExportResult(
            filename=filename,
            format=fmt,
            width=size.width,
            height=size.height,
            size_bytes=len(data),
            location=location,
            message=f"Image downloaded! Saved as {filename}",
        )
