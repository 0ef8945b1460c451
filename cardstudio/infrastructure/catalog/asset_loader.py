# cardstudio/infrastructure/catalog/asset_loader.py
import asyncio
import base64
import binascii
import json
import logging
import os
from pathlib import Path
from typing import List, Optional

import aiofiles
import aiohttp
from pydantic import BaseModel, TypeAdapter

from cardstudio.config.settings import settings
from cardstudio.domain.errors import DecodeError, UnknownTemplateError

logger = logging.getLogger(__name__)

_IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".webp", ".gif", ".bmp")


class TemplateMeta(BaseModel):
    id: str
    name: str
    image: str        # path relative to the templates dir, URL, data URL or base64


_catalog_adapter = TypeAdapter(List[TemplateMeta])


class TemplateCatalog:
    def __init__(self, entries: List[TemplateMeta]):
        self.entries = list(entries)

    def get(self, template_id: str) -> TemplateMeta:
        for entry in self.entries:
            if entry.id == template_id:
                return entry
        raise UnknownTemplateError(template_id)

    def __iter__(self):
        return iter(self.entries)

    def __len__(self):
        return len(self.entries)

    @classmethod
    async def load(cls, path: Optional[str] = None) -> "TemplateCatalog":
        catalog_path = Path(path or Path(settings.TEMPLATES_DIR) / settings.TEMPLATE_CATALOG_FILE)
        if not catalog_path.exists():
            logger.warning(f"Katalog template tidak ditemukan di {catalog_path}; katalog kosong.")
            return cls([])
        async with aiofiles.open(catalog_path, "r", encoding="utf-8") as f:
            raw = await f.read()
        return cls(_catalog_adapter.validate_python(json.loads(raw)))


class AssetResolver:
    """Turns an image reference into raw bytes."""

    def __init__(self, base_dir: Optional[str] = None, timeout: int = settings.REQUEST_TIMEOUT):
        self.base_dir = Path(base_dir or settings.TEMPLATES_DIR)
        self.timeout = timeout

    async def load_bytes(self, src: str) -> bytes:
        try:
            if src.startswith(("http://", "https://")):
                timeout = aiohttp.ClientTimeout(total=self.timeout)
                async with aiohttp.ClientSession(timeout=timeout) as session:
                    async with session.get(src) as response:
                        response.raise_for_status()
                        return await response.read()
            local = self.base_dir / src
            if os.path.isfile(local):
                async with aiofiles.open(local, "rb") as f:
                    return await f.read()
            if src.lower().endswith(_IMAGE_SUFFIXES):
                logger.warning(f"File template tidak ditemukan: {local}")
                raise DecodeError(f"Template image file '{src}' not found.")
            if src.startswith("data:image"):
                _, encoded = src.split(",", 1)
                return base64.b64decode(encoded + "===")
            return base64.b64decode(src + "===", validate=False)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError, binascii.Error) as e:
            logger.warning(f"Gagal memuat gambar dari sumber '{src[:70]}...': {type(e).__name__}")
            raise DecodeError("Could not load the template image.") from e
