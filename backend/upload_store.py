"""
Upload Store - Keeps uploaded files on disk until a transfer has relayed them
Storage structure: uploads/{uniqueToken}-{originalName}
"""
import logging
import uuid
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os
from fastapi import UploadFile

from config import UPLOAD_DIR, CHUNK_SIZE

logger = logging.getLogger(__name__)

MIME_TYPES = {
    '.html': 'text/html',
    '.js': 'text/javascript',
    '.css': 'text/css',
    '.json': 'application/json',
    '.txt': 'text/plain',
    '.pdf': 'application/pdf',
    '.zip': 'application/zip',
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.gif': 'image/gif',
    '.svg': 'image/svg+xml',
    '.wav': 'audio/wav',
    '.mp3': 'audio/mpeg',
    '.mp4': 'video/mp4',
    '.woff': 'application/font-woff',
    '.ttf': 'application/font-ttf',
    '.eot': 'application/vnd.ms-fontobject',
    '.otf': 'application/font-otf',
    '.wasm': 'application/wasm',
}
DEFAULT_MIME_TYPE = 'application/octet-stream'


def get_mime_type(filename: str) -> str:
    """Look up the MIME type for a filename by its extension"""
    return MIME_TYPES.get(Path(filename).suffix.lower(), DEFAULT_MIME_TYPE)


def get_display_name(file_id: str) -> str:
    """Strip the leading unique token from a stored file id"""
    return '-'.join(file_id.split('-')[1:])


@dataclass
class StoredFile:
    """Metadata for one stored upload, in the shape clients receive it"""
    id: str
    name: str
    size: int
    type: str

    def to_dict(self) -> dict:
        return asdict(self)


class UploadStore:
    """Stores uploads under generated ids and resolves ids back to files"""

    def __init__(self, upload_dir: str = UPLOAD_DIR):
        self.upload_dir = Path(upload_dir)
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def generate_file_id(self, original_name: str) -> str:
        """Build `<uniqueToken>-<originalName>`; the token never contains a hyphen"""
        name = Path(original_name or '').name or 'file'
        return f"{uuid.uuid4().hex}-{name}"

    def get_path(self, file_id: str) -> Optional[Path]:
        """Resolve a file id to its path, or None if it names no stored file"""
        if not file_id or file_id != Path(file_id).name or file_id in ('.', '..'):
            return None
        path = self.upload_dir / file_id
        if not path.is_file():
            return None
        return path

    def describe(self, file_id: str) -> Optional[StoredFile]:
        """Get {id, name, size, type} for a stored file"""
        path = self.get_path(file_id)
        if path is None:
            return None
        return StoredFile(
            id=file_id,
            name=get_display_name(file_id),
            size=path.stat().st_size,
            type=get_mime_type(file_id),
        )

    async def save(self, upload: UploadFile) -> StoredFile:
        """Persist an uploaded file in chunks"""
        file_id = self.generate_file_id(upload.filename)
        path = self.upload_dir / file_id
        size = 0

        async with aiofiles.open(path, 'wb') as f:
            while True:
                content = await upload.read(CHUNK_SIZE)
                if not content:
                    break
                await f.write(content)
                size += len(content)

        logger.info(f"📥 Stored upload {file_id} ({size} bytes)")
        return self.describe(file_id)

    async def delete(self, file_id: str) -> bool:
        """Delete a stored file; failures are logged, not raised"""
        path = self.get_path(file_id)
        if path is None:
            return False
        try:
            await aiofiles.os.remove(path)
        except OSError as e:
            logger.error(f"❌ Error cleaning up file {file_id}: {e}")
            return False
        logger.info(f"🧹 Deleted file {file_id}")
        return True

    def count(self) -> int:
        return sum(1 for p in self.upload_dir.iterdir() if p.is_file())
