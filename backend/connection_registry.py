"""
Connection Registry - Live event channels by connection id, plus room groups
"""
import logging
from typing import Any, Dict, Optional, Set

from backend.event_channel import EventChannel

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Addresses connections by their opaque id"""

    def __init__(self):
        # connection_id -> EventChannel
        self.connections: Dict[str, EventChannel] = {}
        # group name -> connection ids
        self.groups: Dict[str, Set[str]] = {}

    def register(self, channel: EventChannel):
        self.connections[channel.connection_id] = channel
        logger.info(f"🔌 Client connected: {channel.connection_id}")
        logger.debug(f"📊 Total connections: {len(self.connections)}")

    async def unregister(self, connection_id: str):
        """Drop a connection from the registry and every group, then close it"""
        channel = self.connections.pop(connection_id, None)
        for members in self.groups.values():
            members.discard(connection_id)
        self.groups = {name: members for name, members in self.groups.items() if members}

        if channel is not None:
            await channel.close()
            logger.info(f"❌ Client disconnected: {connection_id}")

    def get(self, connection_id: str) -> Optional[EventChannel]:
        return self.connections.get(connection_id)

    def is_connected(self, connection_id: str) -> bool:
        channel = self.connections.get(connection_id)
        return channel is not None and not channel.closed

    async def emit(self, connection_id: str, event: str, data: Any = None) -> bool:
        """Send an event to one connection; False if it is gone"""
        channel = self.connections.get(connection_id)
        if channel is None:
            logger.debug(f"Connection {connection_id} not found for {event}")
            return False
        return await channel.emit(event, data)

    def join_group(self, group: str, connection_id: str):
        self.groups.setdefault(group, set()).add(connection_id)

    def leave_group(self, group: str, connection_id: str):
        members = self.groups.get(group)
        if not members:
            return
        members.discard(connection_id)
        if not members:
            del self.groups[group]

    async def broadcast(self, group: str, event: str, data: Any = None, exclude: Optional[str] = None) -> int:
        """Send an event to every member of a group; returns the number reached"""
        sent = 0
        for connection_id in sorted(self.groups.get(group, ())):
            if connection_id == exclude:
                continue
            if await self.emit(connection_id, event, data):
                sent += 1
        return sent

    def __len__(self) -> int:
        return len(self.connections)
