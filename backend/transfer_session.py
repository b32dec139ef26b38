"""
Transfer Session - One file relayed from a sender to a receiver in chunks
"""
import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Optional, Any

from engine.chunk_manager import ChunkManager, encode_chunk

# emit(connection_id, event, data) -> delivered
Emitter = Callable[[str, str, Any], Awaitable[bool]]


def compute_progress(bytes_sent: int, total_bytes: int) -> int:
    """Percentage of total_bytes sent, rounded half up and capped at 100"""
    if total_bytes <= 0:
        return 100
    return min(100, (bytes_sent * 200 + total_bytes) // (2 * total_bytes))


@dataclass
class TransferSession:
    sender_id: str
    receiver_id: str
    file_id: str
    path: Path
    total_bytes: int
    bytes_sent: int = 0
    task: Optional[asyncio.Task] = field(default=None, repr=False)
    _cancelled: bool = field(default=False, repr=False)

    @property
    def progress(self) -> int:
        return compute_progress(self.bytes_sent, self.total_bytes)

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def involves(self, connection_id: str) -> bool:
        return connection_id in (self.sender_id, self.receiver_id)

    def cancel(self):
        """Stop emitting; the running stream observes this before its next chunk"""
        self._cancelled = True
        if self.task is not None and self.task is not asyncio.current_task():
            self.task.cancel()

    async def stream(self, emit: Emitter, chunk_manager: ChunkManager) -> bool:
        """
        Relay the file chunk by chunk.

        Each chunk goes to the receiver as `file-chunk`, followed by a
        `transfer-progress` to the sender. Returns True when the whole file
        was sent, False if the session was cancelled first. Read errors
        propagate as OSError, as does a file that ends before total_bytes.
        """
        chunks = chunk_manager.iter_chunks(str(self.path), limit=self.total_bytes)
        try:
            async for chunk in chunks:
                if self._cancelled:
                    return False
                self.bytes_sent += len(chunk)
                progress = self.progress

                await emit(self.receiver_id, "file-chunk", {
                    "fileId": self.file_id,
                    "chunk": encode_chunk(chunk),
                    "progress": progress,
                })
                if self._cancelled:
                    return False
                await emit(self.sender_id, "transfer-progress", {"progress": progress})
        finally:
            await chunks.aclose()

        if self._cancelled:
            return False
        if self.bytes_sent < self.total_bytes:
            raise OSError(f"File ended after {self.bytes_sent} of {self.total_bytes} bytes")
        return True
