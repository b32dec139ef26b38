"""
Event Channel - Ordered, bounded outbound event stream for one connection
Every message is a JSON envelope: {"event": <name>, "data": <payload>}
"""
import asyncio
import logging
from typing import Any, Optional, Tuple

from config import OUTBOUND_QUEUE_SIZE
from backend.errors import InvalidEventError

logger = logging.getLogger(__name__)


class EventChannel:
    """
    Wraps a WebSocket with a single writer task.

    Emitted events are queued and sent strictly in emit order. The queue is
    bounded, so a producer emitting into a slow connection is suspended until
    the writer catches up.
    """

    def __init__(self, websocket, connection_id: str, max_pending: int = OUTBOUND_QUEUE_SIZE):
        self.websocket = websocket
        self.connection_id = connection_id
        self.closed = False
        self._outbound: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self._writer: Optional[asyncio.Task] = None

    def start(self):
        """Start the writer task"""
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain())

    async def emit(self, event: str, data: Any = None) -> bool:
        """Queue an event; returns False once the channel is closed"""
        if self.closed:
            return False
        await self._outbound.put({"event": event, "data": data})
        return not self.closed

    async def receive(self) -> Tuple[str, Any]:
        """Wait for the next inbound event"""
        message = await self.websocket.receive_json()
        if not isinstance(message, dict) or not isinstance(message.get("event"), str):
            raise InvalidEventError("Malformed event")
        return message["event"], message.get("data")

    async def flush(self):
        """Wait until every queued event has been handed to the socket"""
        if self._writer is not None and not self.closed:
            await self._outbound.join()

    async def close(self):
        """Stop the writer and release producers blocked on a full queue"""
        if self.closed:
            return
        self.closed = True
        if self._writer is not None:
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
        # Each discarded item wakes one blocked producer, which then puts once
        while not self._outbound.empty():
            self._discard_pending()
            await asyncio.sleep(0)

    async def _drain(self):
        while True:
            message = await self._outbound.get()
            try:
                await self.websocket.send_json(message)
            except Exception as e:
                logger.warning(f"❌ Send to {self.connection_id} failed: {e}")
                self.closed = True
                return
            finally:
                self._outbound.task_done()
                if self.closed:
                    self._discard_pending()

    def _discard_pending(self):
        while not self._outbound.empty():
            self._outbound.get_nowait()
            self._outbound.task_done()
