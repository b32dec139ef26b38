"""
Relay Server - Pairs clients by room code and relays files between them
Uploads arrive over HTTP; pairing, chunks and progress travel over a WebSocket
"""
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, File, Response, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import (
    RELAY_HOST, RELAY_PORT, UPLOAD_DIR, FILE_CLEANUP_DELAY, CHUNK_SIZE,
    OUTBOUND_QUEUE_SIZE, CORS_ORIGINS, LOG_LEVEL
)
from backend.errors import InvalidEventError
from backend.event_channel import EventChannel
from backend.relay_hub import RelayHub
from backend.upload_store import UploadStore

logger = logging.getLogger(__name__)


def create_app(upload_dir: str = UPLOAD_DIR, cleanup_delay: float = FILE_CLEANUP_DELAY,
               max_pending: int = OUTBOUND_QUEUE_SIZE) -> FastAPI:
    """Build a relay server app with its own hub and upload store"""
    hub = RelayHub(UploadStore(upload_dir), cleanup_delay=cleanup_delay)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await hub.shutdown()

    app = FastAPI(title="Roomdrop Relay Server", lifespan=lifespan)
    app.state.hub = hub

    # Enable CORS for web clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/api/upload")
    async def upload_file(file: Optional[UploadFile] = File(None)):
        """
        Store a file for a later transfer
        Returns fileInfo: {id, name, size, type}; the id is what start-transfer references
        """
        if file is None:
            return JSONResponse(status_code=400, content={"success": False, "message": "No file uploaded"})

        stored = await hub.store.save(file)
        return {"success": True, "fileInfo": stored.to_dict()}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """Event channel for one client"""
        await websocket.accept()
        channel = EventChannel(websocket, str(uuid.uuid4()), max_pending=max_pending)
        await hub.connect(channel)

        try:
            while True:
                try:
                    event, data = await channel.receive()
                except InvalidEventError as e:
                    await channel.emit("error", {"message": e.message})
                    continue
                except (ValueError, KeyError):
                    await channel.emit("error", {"message": "Malformed event"})
                    continue

                logger.debug(f"📨 Received {event} from {channel.connection_id}")
                await hub.dispatch(channel, event, data)

        except WebSocketDisconnect:
            logger.info(f"🔌 WebSocket disconnected: {channel.connection_id}")
        finally:
            await hub.disconnect(channel.connection_id)

    @app.get("/stats")
    async def get_stats():
        """Get server statistics"""
        return hub.get_stats()

    @app.head("/")
    async def root_head():
        """HEAD endpoint for uptime checks"""
        return Response(status_code=200)

    @app.get("/")
    async def root():
        """Health check endpoint"""
        return {
            "service": "Roomdrop Relay Server",
            "status": "running",
            "version": "1.0.0"
        }

    return app


app = create_app()


def main():
    import uvicorn
    logging.basicConfig(
        level=LOG_LEVEL,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    logger.info(f"🚀 Starting Relay Server on {RELAY_HOST}:{RELAY_PORT}")
    logger.info(f"📁 Upload directory: {UPLOAD_DIR}")
    logger.info(f"📦 Chunk size: {CHUNK_SIZE // 1024}KB")
    logger.info(f"🧹 Auto-cleanup {FILE_CLEANUP_DELAY:g} seconds after transfer")
    uvicorn.run(app, host=RELAY_HOST, port=RELAY_PORT)


if __name__ == "__main__":
    main()
