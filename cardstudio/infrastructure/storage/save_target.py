# cardstudio/infrastructure/storage/save_target.py
import logging
import os
from pathlib import Path
from typing import Optional, Protocol

import aiofiles

from cardstudio.domain.errors import SaveError

logger = logging.getLogger(__name__)

CONTENT_TYPES = {"png": "image/png", "jpeg": "image/jpeg"}


class SaveTarget(Protocol):
    async def save(self, data: bytes, filename: str, fmt: str) -> str:
        """Persist/deliver a finished file and return where it went."""
        ...


class DownloadSaveTarget:
    """Keeps the last file in memory so the HTTP layer can send it as a download."""

    def __init__(self):
        self.data: Optional[bytes] = None
        self.filename: Optional[str] = None
        self.content_type: Optional[str] = None

    async def save(self, data: bytes, filename: str, fmt: str) -> str:
        self.data = data
        self.filename = filename
        self.content_type = CONTENT_TYPES.get(fmt, "application/octet-stream")
        return filename


class LocalDirectorySaveTarget:
    def __init__(self, directory: str, prefix: str = ""):
        self.directory = Path(directory)
        self.prefix = prefix

    async def save(self, data: bytes, filename: str, fmt: str) -> str:
        self.directory.mkdir(parents=True, exist_ok=True)
        final_path = self.directory / f"{self.prefix}{filename}"
        tmp_path = final_path.with_name(final_path.name + ".part")
        try:
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(data)
            os.replace(tmp_path, final_path)
        except OSError as e:
            logger.error(f"Gagal menyimpan file ke {final_path}: {e}")
            if tmp_path.exists():
                tmp_path.unlink()
            raise SaveError("Could not save the file.") from e
        return str(final_path)
