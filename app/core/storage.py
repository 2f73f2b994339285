import logging
from pathlib import Path
from typing import List
from uuid import uuid4

import aiofiles
from fastapi import UploadFile

from app.core.config import settings
from app.core.db import utcnow
from app.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}

CHUNK_SIZE = 1024 * 1024

class LocalStorage:
    """
    Blob store for report photos and evidence.
    Files land on local disk and are served from UPLOAD_URL_PREFIX; callers only keep the URL.
    """

    def __init__(self, base_dir: Path, url_prefix: str):
        self.base_dir = base_dir
        self.url_prefix = url_prefix.rstrip("/")

    def validate_batch(self, files: List[UploadFile], max_files: int):
        if not files:
            raise ValidationError("No files received")
        if len(files) > max_files:
            raise ValidationError(f"At most {max_files} files per upload")
        for file in files:
            if file.content_type not in ALLOWED_IMAGE_TYPES:
                raise ValidationError(f"File type not allowed: {file.content_type}")

    async def save_upload(self, file: UploadFile, max_bytes: int) -> str:
        """
        Streams an upload to disk and returns its public URL.
        The partial file is removed if the size limit is exceeded.
        """
        self.base_dir.mkdir(parents=True, exist_ok=True)
        ext = ALLOWED_IMAGE_TYPES.get(file.content_type) or Path(file.filename or "").suffix.lower() or ".img"
        safe_filename = f"{int(utcnow().timestamp() * 1000)}-{uuid4().hex[:16]}{ext}"
        destination = self.base_dir / safe_filename

        size = 0
        too_large = False
        try:
            await file.seek(0)
            async with aiofiles.open(destination, "wb") as buffer:
                while chunk := await file.read(CHUNK_SIZE):
                    size += len(chunk)
                    if size > max_bytes:
                        too_large = True
                        break
                    await buffer.write(chunk)
        finally:
            await file.close()

        if too_large:
            destination.unlink(missing_ok=True)
            raise ValidationError(f"File exceeds {max_bytes // (1024 * 1024)} MB")

        logger.info(f"[Storage] Saved {file.filename} -> {safe_filename} ({size} bytes)")
        return f"{self.url_prefix}/{safe_filename}"

    async def save_batch(self, files: List[UploadFile], max_files: int, max_mb: int) -> List[str]:
        self.validate_batch(files, max_files)
        max_bytes = max_mb * 1024 * 1024
        urls = []
        try:
            for file in files:
                urls.append(await self.save_upload(file, max_bytes))
        except ValidationError:
            # All or nothing: an oversized file drops the ones already written
            self.discard(urls)
            raise
        return urls

    def discard(self, urls: List[str]):
        """Removes files saved by save_batch whose database write did not go through."""
        for url in urls:
            (self.base_dir / url.rsplit("/", 1)[-1]).unlink(missing_ok=True)
        if urls:
            logger.warning(f"[Storage] Discarded {len(urls)} orphaned upload(s)")

storage = LocalStorage(Path(settings.UPLOAD_DIR), settings.UPLOAD_URL_PREFIX)
