import logging
import mimetypes
import os
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from filevault.config import Settings
from filevault.errors import PayloadTooLarge, StorageError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


@dataclass
class StoredFile:
    filename: str
    original_name: str
    file_path: str
    file_size: int
    mime_type: str


class _LimitExceeded(Exception):
    pass


class DiskStorage:
    """Uploaded file bytes under a single storage root."""

    def __init__(self, root: str, max_file_size: int):
        self.root = Path(root)
        self.max_file_size = max_file_size

    @classmethod
    def from_settings(cls, settings: Settings) -> "DiskStorage":
        return cls(settings.UPLOAD_PATH, settings.MAX_FILE_SIZE)

    def ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def generate_filename(self, original_filename: Optional[str]) -> str:
        ext = os.path.splitext(original_filename)[1].lower() if original_filename else ""
        timestamp = int(time.time() * 1000)
        unique_id = uuid.uuid4().hex[:12]
        return f"file-{timestamp}-{unique_id}{ext}"

    def _copy(self, source: BinaryIO, path: Path) -> int:
        written = 0
        with open(path, "wb") as out:
            while True:
                chunk = source.read(CHUNK_SIZE)
                if not chunk:
                    break
                written += len(chunk)
                if written > self.max_file_size:
                    raise _LimitExceeded()
                out.write(chunk)
        return written

    async def save(self, upload: UploadFile) -> StoredFile:
        if upload.size is not None and upload.size > self.max_file_size:
            raise PayloadTooLarge(f"File exceeds the maximum size of {self.max_file_size} bytes")

        original_name = upload.filename or "file"
        filename = self.generate_filename(original_name)
        path = self.root / filename

        try:
            await upload.seek(0)
            size = await run_in_threadpool(self._copy, upload.file, path)
        except _LimitExceeded:
            self.remove(str(path))
            raise PayloadTooLarge(f"File exceeds the maximum size of {self.max_file_size} bytes")
        except OSError as e:
            logger.error("Failed to write upload %s: %s", path, e)
            self.remove(str(path))
            raise StorageError("Failed to store file")

        mime_type = (
            upload.content_type
            or mimetypes.guess_type(original_name)[0]
            or "application/octet-stream"
        )

        return StoredFile(
            filename=filename,
            original_name=original_name,
            file_path=str(path),
            file_size=size,
            mime_type=mime_type,
        )

    def exists(self, file_path: str) -> bool:
        return os.path.isfile(file_path)

    def remove(self, file_path: str) -> bool:
        try:
            os.remove(file_path)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("Could not remove %s: %s", file_path, e)
            return False
