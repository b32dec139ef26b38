"""
Room Table - Pairs two connections under a shared room code
First joiner becomes the sender, second the receiver, third is turned away
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from backend.connection_registry import ConnectionRegistry
from backend.errors import RoomFullError

logger = logging.getLogger(__name__)


class Role(str, Enum):
    SENDER = "sender"
    RECEIVER = "receiver"


@dataclass
class Room:
    code: str
    sender: Optional[str] = None
    receiver: Optional[str] = None

    def role_of(self, connection_id: str) -> Optional[Role]:
        if self.sender == connection_id:
            return Role.SENDER
        if self.receiver == connection_id:
            return Role.RECEIVER
        return None

    def occupants(self) -> List[str]:
        return [c for c in (self.sender, self.receiver) if c is not None]


@dataclass(frozen=True)
class RoleAssignment:
    role: Role
    room_code: str
    # Sender to tell about a newly paired receiver
    notify: Optional[str] = None

    def to_dict(self) -> dict:
        return {"role": self.role.value, "roomCode": self.room_code}


class RoomTable:
    """Room code -> Room, mutated only under one lock"""

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry
        self.rooms: Dict[str, Room] = {}
        self._lock = asyncio.Lock()

    async def join(self, connection_id: str, room_code: str) -> RoleAssignment:
        """
        Assign the caller a role in the room
        Raises RoomFullError when both roles are taken; the room is left as is
        """
        async with self._lock:
            room = self.rooms.get(room_code)
            if room is None:
                room = self.rooms[room_code] = Room(code=room_code)

            existing = room.role_of(connection_id)
            if existing is not None:
                assignment = RoleAssignment(role=existing, room_code=room_code)
            elif room.sender is None:
                room.sender = connection_id
                assignment = RoleAssignment(role=Role.SENDER, room_code=room_code)
            elif room.receiver is None:
                room.receiver = connection_id
                assignment = RoleAssignment(role=Role.RECEIVER, room_code=room_code, notify=room.sender)
            else:
                logger.info(f"🚫 Room {room_code} is full, rejected {connection_id}")
                raise RoomFullError()

            self.registry.join_group(room_code, connection_id)

        logger.info(f"🏠 Client {connection_id} joined room {room_code} as {assignment.role.value}")
        return assignment

    async def teardown(self, connection_id: str) -> List[Room]:
        """Delete every room the connection occupies; returns the removed rooms"""
        async with self._lock:
            removed = [room for room in self.rooms.values() if room.role_of(connection_id) is not None]
            for room in removed:
                del self.rooms[room.code]

        for room in removed:
            logger.info(f"🗑️ Removed room {room.code}")
        return removed

    def get(self, room_code: str) -> Optional[Room]:
        return self.rooms.get(room_code)

    def __len__(self) -> int:
        return len(self.rooms)
