"""
Relay Client - Talks to the relay server over HTTP and its event channel
"""
import json
from pathlib import Path
from typing import Any, AsyncIterator, Tuple

import aiohttp

from config import RELAY_URL


class RelayClientError(Exception):
    pass


class RelayConnection:
    """One event channel to the relay server"""

    def __init__(self, ws: aiohttp.ClientWebSocketResponse):
        self.ws = ws
        self.connection_id = None

    async def emit(self, event: str, data: Any = None):
        await self.ws.send_json({"event": event, "data": data})

    async def events(self) -> AsyncIterator[Tuple[str, Any]]:
        """Yield (event, data) pairs until the server closes the channel"""
        async for msg in self.ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                message = json.loads(msg.data)
                event, data = message.get("event"), message.get("data")
                if event == "connected":
                    self.connection_id = data["connectionId"]
                yield event, data
            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise RelayClientError(f"Connection error: {self.ws.exception()}")

    async def close(self):
        await self.ws.close()


class RelayClient:
    """HTTP + WebSocket client for a relay server"""

    def __init__(self, server_url: str = RELAY_URL):
        self.server_url = server_url.rstrip('/')
        self.ws_url = self.server_url.replace('http', 'ws', 1) + '/ws'

    async def upload(self, session: aiohttp.ClientSession, file_path: str) -> dict:
        """Upload a file; returns the server's fileInfo"""
        path = Path(file_path)
        # aiohttp streams file objects in chunks
        with open(path, 'rb') as f:
            form = aiohttp.FormData()
            form.add_field('file', f, filename=path.name)

            async with session.post(f"{self.server_url}/api/upload", data=form) as resp:
                if resp.status != 200:
                    raise RelayClientError(f"Upload failed: {await resp.text()}")
                result = await resp.json()
                return result['fileInfo']

    async def connect(self, session: aiohttp.ClientSession) -> RelayConnection:
        ws = await session.ws_connect(self.ws_url, max_msg_size=0)
        return RelayConnection(ws)
