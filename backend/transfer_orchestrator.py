"""
Transfer Orchestrator - Starts, drives and tears down transfer sessions
Also owns the delayed deletion of files that were relayed successfully
"""
import asyncio
import logging
from typing import Dict, Optional

from config import FILE_CLEANUP_DELAY
from backend.connection_registry import ConnectionRegistry
from backend.errors import (
    FileNotFoundOnServer, ReceiverUnavailableError, RelayError, TransferInProgressError
)
from backend.transfer_session import TransferSession
from backend.upload_store import StoredFile, UploadStore, get_display_name, get_mime_type
from engine.chunk_manager import ChunkManager

logger = logging.getLogger(__name__)


class TransferOrchestrator:
    """One active session per sender connection"""

    def __init__(self, registry: ConnectionRegistry, store: UploadStore,
                 chunk_manager: ChunkManager = None, cleanup_delay: float = FILE_CLEANUP_DELAY):
        self.registry = registry
        self.store = store
        self.chunk_manager = chunk_manager or ChunkManager()
        self.cleanup_delay = cleanup_delay

        # sender connection_id -> TransferSession
        self.sessions: Dict[str, TransferSession] = {}
        # file_id -> pending deletion task
        self.deletions: Dict[str, asyncio.Task] = {}
        self._lock = asyncio.Lock()

    async def start(self, caller_id: str, file_id: str, receiver_id: str) -> Optional[TransferSession]:
        """
        Begin relaying a stored file from caller_id to receiver_id.
        Precondition failures are reported to the caller as `transfer-error`
        and no session is created.
        """
        try:
            session = await self._create_session(caller_id, file_id, receiver_id)
        except RelayError as e:
            logger.warning(f"⚠️ Transfer request from {caller_id} rejected: {e.message}")
            await self.registry.emit(caller_id, "transfer-error", {"message": e.message})
            return None

        file_info = StoredFile(
            id=file_id,
            name=get_display_name(file_id),
            size=session.total_bytes,
            type=get_mime_type(file_id),
        )
        logger.info(f"📤 Transfer started: {file_id} ({session.total_bytes} bytes) "
                    f"{caller_id} -> {receiver_id}")
        await self.registry.emit(receiver_id, "transfer-started", file_info.to_dict())

        session.task = asyncio.create_task(self._run(session))
        return session

    async def _create_session(self, caller_id: str, file_id: str, receiver_id: str) -> TransferSession:
        path = self.store.get_path(file_id)
        if path is None:
            raise FileNotFoundOnServer()

        async with self._lock:
            if caller_id in self.sessions:
                raise TransferInProgressError()
            if not self.registry.is_connected(receiver_id):
                raise ReceiverUnavailableError()

            self._cancel_deletion(file_id)
            try:
                total_bytes = path.stat().st_size
            except OSError:
                raise FileNotFoundOnServer()

            session = TransferSession(
                sender_id=caller_id,
                receiver_id=receiver_id,
                file_id=file_id,
                path=path,
                total_bytes=total_bytes,
            )
            self.sessions[caller_id] = session
            return session

    async def _run(self, session: TransferSession):
        try:
            completed = await session.stream(self.registry.emit, self.chunk_manager)
        except OSError as e:
            logger.error(f"❌ Error reading file {session.file_id}: {e}")
            async with self._lock:
                self._discard(session)
            await self.registry.emit(session.sender_id, "transfer-error", {"message": "Error reading file"})
            await self.registry.emit(session.receiver_id, "transfer-error", {"message": "Error transferring file"})
            return

        if not completed:
            return

        async with self._lock:
            self._discard(session)
        logger.info(f"✅ Transfer complete: {session.file_id} ({session.bytes_sent} bytes)")
        await self.registry.emit(session.sender_id, "transfer-complete")
        await self.registry.emit(session.receiver_id, "transfer-complete")
        self.schedule_deletion(session.file_id)

    def _discard(self, session: TransferSession):
        if self.sessions.get(session.sender_id) is session:
            del self.sessions[session.sender_id]

    async def handle_disconnect(self, connection_id: str):
        """
        Stop every session the connection takes part in.
        A departed sender leaves the receiver a `transfer-cancelled`; a
        departed receiver leaves the sender a `transfer-error`.
        """
        async with self._lock:
            affected = [s for s in self.sessions.values() if s.involves(connection_id)]
            for session in affected:
                session.cancel()
                self._discard(session)

        for session in affected:
            if session.task is not None:
                try:
                    await session.task
                except asyncio.CancelledError:
                    pass

            if session.sender_id == connection_id:
                logger.info(f"🛑 Transfer cancelled: sender {connection_id} disconnected")
                await self.registry.emit(session.receiver_id, "transfer-cancelled")
            else:
                logger.info(f"🛑 Transfer stopped: receiver {connection_id} disconnected")
                await self.registry.emit(session.sender_id, "transfer-error", {"message": "Receiver disconnected"})

    def schedule_deletion(self, file_id: str):
        """Delete the file after the cleanup delay unless a new transfer claims it"""
        self._cancel_deletion(file_id)
        self.deletions[file_id] = asyncio.create_task(self._delete_later(file_id))

    def _cancel_deletion(self, file_id: str):
        task = self.deletions.pop(file_id, None)
        if task is not None:
            task.cancel()

    async def _delete_later(self, file_id: str):
        try:
            await asyncio.sleep(self.cleanup_delay)
            await self.store.delete(file_id)
        finally:
            if self.deletions.get(file_id) is asyncio.current_task():
                del self.deletions[file_id]

    async def shutdown(self):
        """Cancel running sessions; files awaiting deletion are deleted now"""
        tasks = [s.task for s in self.sessions.values() if s.task is not None]
        for session in list(self.sessions.values()):
            session.cancel()
        self.sessions.clear()

        pending = list(self.deletions)
        tasks.extend(self.deletions.values())
        for task in self.deletions.values():
            task.cancel()
        self.deletions.clear()
        await asyncio.gather(*tasks, return_exceptions=True)

        for file_id in pending:
            await self.store.delete(file_id)
        if pending:
            logger.info(f"🧹 Deleted {len(pending)} file(s) pending cleanup on shutdown")

    def get_session(self, sender_id: str) -> Optional[TransferSession]:
        return self.sessions.get(sender_id)

    def __len__(self) -> int:
        return len(self.sessions)
