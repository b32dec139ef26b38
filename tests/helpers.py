"""
Test helpers - in-memory stand-ins for WebSocket connections
"""
import asyncio

from backend.event_channel import EventChannel


class FakeWebSocket:
    """Records sent messages; can stall after a given number of sends"""

    def __init__(self, pause_after: int = None):
        self.sent = []
        self.pause_after = pause_after
        self.paused = asyncio.Event()
        self.resume = asyncio.Event()
        self.fail = False
        self.inbound = asyncio.Queue()

    async def receive_json(self):
        return await self.inbound.get()

    async def send_json(self, message):
        if self.fail:
            raise ConnectionError("socket closed")
        self.sent.append(message)
        if self.pause_after is not None and len(self.sent) == self.pause_after:
            self.paused.set()
            await self.resume.wait()

    def events(self, name: str = None):
        if name is None:
            return [m["event"] for m in self.sent]
        return [m["data"] for m in self.sent if m["event"] == name]


def make_channel(connection_id: str, max_pending: int = 32, pause_after: int = None) -> EventChannel:
    channel = EventChannel(FakeWebSocket(pause_after=pause_after), connection_id, max_pending=max_pending)
    channel.start()
    return channel
