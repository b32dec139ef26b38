"""
Relay Hub - Routes inbound events from one connection and cleans up after it
"""
import logging
from typing import Any

from config import FILE_CLEANUP_DELAY
from backend.connection_registry import ConnectionRegistry
from backend.errors import InvalidEventError, RoomFullError
from backend.event_channel import EventChannel
from backend.room_table import RoomTable
from backend.transfer_orchestrator import TransferOrchestrator
from backend.upload_store import UploadStore

logger = logging.getLogger(__name__)


class RelayHub:
    """Everything a relay server instance shares between its connections"""

    def __init__(self, store: UploadStore, cleanup_delay: float = FILE_CLEANUP_DELAY):
        self.store = store
        self.registry = ConnectionRegistry()
        self.rooms = RoomTable(self.registry)
        self.transfers = TransferOrchestrator(self.registry, store, cleanup_delay=cleanup_delay)

        self.handlers = {
            "join-room": self.handle_join_room,
            "start-transfer": self.handle_start_transfer,
        }

    async def connect(self, channel: EventChannel):
        self.registry.register(channel)
        channel.start()
        await channel.emit("connected", {"connectionId": channel.connection_id})

    async def dispatch(self, channel: EventChannel, event: str, data: Any):
        """Handle one inbound event; bad input is answered with an `error` event"""
        handler = self.handlers.get(event)
        if handler is None:
            logger.warning(f"⚠️ Unknown event {event!r} from {channel.connection_id}")
            await channel.emit("error", {"message": f"Unknown event: {event}"})
            return
        try:
            await handler(channel, data)
        except InvalidEventError as e:
            logger.warning(f"⚠️ Invalid {event} from {channel.connection_id}: {e.message}")
            await channel.emit("error", {"message": e.message})

    async def handle_join_room(self, channel: EventChannel, room_code: Any):
        if not isinstance(room_code, str) or not room_code.strip():
            raise InvalidEventError("Invalid room code")

        try:
            assignment = await self.rooms.join(channel.connection_id, room_code)
        except RoomFullError:
            await channel.emit("room-full")
            return

        await channel.emit("room-joined", assignment.to_dict())
        if assignment.notify:
            await self.registry.emit(assignment.notify, "user-joined", channel.connection_id)

    async def handle_start_transfer(self, channel: EventChannel, data: Any):
        if not isinstance(data, dict):
            raise InvalidEventError("Invalid transfer request")
        file_id = data.get("fileId")
        receiver_id = data.get("receiverId")
        if not isinstance(file_id, str) or not isinstance(receiver_id, str):
            raise InvalidEventError("Invalid transfer request")

        await self.transfers.start(channel.connection_id, file_id, receiver_id)

    async def disconnect(self, connection_id: str):
        """Stop transfers, tear down rooms and forget the connection"""
        await self.transfers.handle_disconnect(connection_id)

        for room in await self.rooms.teardown(connection_id):
            await self.registry.broadcast(room.code, "peer-left", connection_id, exclude=connection_id)
            for occupant in room.occupants():
                self.registry.leave_group(room.code, occupant)

        await self.registry.unregister(connection_id)

    async def shutdown(self):
        await self.transfers.shutdown()
        for connection_id in list(self.registry.connections):
            await self.registry.unregister(connection_id)

    def get_stats(self) -> dict:
        return {
            "active_rooms": len(self.rooms),
            "active_transfers": len(self.transfers),
            "active_connections": len(self.registry),
            "stored_files": self.store.count(),
        }
