# cardstudio/infrastructure/storage/cloudinary_upload.py
import asyncio
import logging
from concurrent.futures import Executor
from io import BytesIO
from pathlib import PurePosixPath
from typing import Optional

import cloudinary
import cloudinary.uploader

from cardstudio.config.settings import settings
from cardstudio.domain.errors import SaveError

logger = logging.getLogger(__name__)

_configured = False


def _configure() -> None:
    global _configured
    if _configured:
        return
    if settings.CLOUDINARY_URL:
        cloudinary.config(cloudinary_url=settings.CLOUDINARY_URL, secure=True)
    else:
        cloudinary.config(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_API_SECRET,
            secure=True,
        )
    _configured = True


def upload_image_bytes(
    data: bytes,
    public_id: str,
    fmt: str,
    folder: Optional[str] = None,
    overwrite: bool = True,
    tags: Optional[list[str]] = None,
) -> str:
    _configure()
    buf = BytesIO(data)
    res = cloudinary.uploader.upload(
        buf,
        resource_type="image",
        folder=folder or settings.CLOUDINARY_FOLDER,
        public_id=public_id,
        overwrite=overwrite,
        format=fmt,              # final extension in Cloudinary
        tags=tags or [],
    )
    return res["secure_url"]


class CloudinarySaveTarget:
    def __init__(self, executor: Optional[Executor] = None, public_id_prefix: str = ""):
        self.executor = executor
        self.public_id_prefix = public_id_prefix

    async def save(self, data: bytes, filename: str, fmt: str) -> str:
        public_id = f"{self.public_id_prefix}{PurePosixPath(filename).stem}"
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                self.executor, upload_image_bytes, data, public_id, fmt
            )
        except Exception as e:
            logger.error(f"Upload Cloudinary gagal untuk {public_id}: {type(e).__name__}: {e}")
            raise SaveError("Could not upload the card.") from e
