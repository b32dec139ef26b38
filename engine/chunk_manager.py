"""
Chunk Manager - Sequential file chunking and chunk encoding
"""
import base64
from typing import AsyncIterator, Optional

import aiofiles

from config import CHUNK_SIZE


class ChunkManager:
    """Reads files in fixed-size chunks and encodes them for the event channel"""

    def __init__(self, chunk_size: int = CHUNK_SIZE):
        self.chunk_size = chunk_size

    async def iter_chunks(self, file_path: str, limit: Optional[int] = None) -> AsyncIterator[bytes]:
        """
        Yield the file's bytes in order, chunk_size at a time
        Reading stops after `limit` bytes when a limit is given
        """
        remaining = limit
        async with aiofiles.open(file_path, 'rb') as f:
            while remaining is None or remaining > 0:
                size = self.chunk_size if remaining is None else min(self.chunk_size, remaining)
                chunk = await f.read(size)
                if not chunk:
                    break
                if remaining is not None:
                    remaining -= len(chunk)
                yield chunk

    def count_chunks(self, size: int) -> int:
        """Number of chunks a file of `size` bytes is split into"""
        return (size + self.chunk_size - 1) // self.chunk_size


def encode_chunk(data: bytes) -> str:
    """Encode raw chunk bytes as base64 text"""
    return base64.b64encode(data).decode('ascii')


def decode_chunk(chunk: str) -> bytes:
    """Decode a base64 chunk, tolerating a data-URL header"""
    if ',' in chunk:
        chunk = chunk.split(',', 1)[1]
    return base64.b64decode(chunk)


def format_size(size_bytes: int) -> str:
    """Format bytes to human readable size"""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size_bytes < 1024.0:
            return f"{size_bytes:.2f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.2f} PB"
