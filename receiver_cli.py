"""
Receiver CLI - Join a room and save the file the sender relays
"""
import asyncio
import os
import sys
from pathlib import Path

import aiofiles
import aiofiles.os
import aiohttp
from tqdm import tqdm

from config import RELAY_URL
from engine.chunk_manager import ChunkManager, decode_chunk, format_size
from engine.relay_client import RelayClient


class ReceiverCLI:
    """Command-line receiver application"""

    def __init__(self, server_url: str = RELAY_URL):
        self.client = RelayClient(server_url)
        self.chunk_manager = ChunkManager()

    async def receive_file(self, room_code: str, output_dir: str = ".") -> bool:
        """Join the room and write the relayed file into output_dir"""
        async with aiohttp.ClientSession() as session:
            connection = await self.client.connect(session)
            try:
                return await self._receive(connection, room_code, Path(output_dir))
            finally:
                await connection.close()

    async def _receive(self, connection, room_code: str, output_dir: Path) -> bool:
        output = None
        output_path = None
        pbar = None

        async def discard_partial():
            if pbar is not None:
                pbar.close()
            if output is not None:
                await output.close()
                await aiofiles.os.remove(output_path)

        async for event, data in connection.events():
            if event == "connected":
                await connection.emit("join-room", room_code)

            elif event == "room-joined":
                if data['role'] != 'receiver':
                    print(f"❌ No sender in room {room_code} yet")
                    return False
                print(f"🏠 Joined room {room_code}, waiting for the file...")

            elif event == "room-full":
                print(f"❌ Room {room_code} is full")
                return False

            elif event == "transfer-started":
                output_dir.mkdir(parents=True, exist_ok=True)
                output_path = output_dir / os.path.basename(data['name'] or data['id'])
                print(f"\n{'='*60}")
                print(f"📄 File: {data['name']}")
                print(f"📦 Size: {format_size(data['size'])}")
                print(f"🔢 Chunks: {self.chunk_manager.count_chunks(data['size'])}")
                print(f"💾 Output: {output_path}")
                print(f"{'='*60}")
                output = await aiofiles.open(output_path, 'wb')
                pbar = tqdm(total=data['size'], desc="Receiving", unit="B", unit_scale=True)

            elif event == "file-chunk":
                if output is None:
                    continue
                chunk = decode_chunk(data['chunk'])
                await output.write(chunk)
                pbar.update(len(chunk))

            elif event == "transfer-complete":
                if output is not None:
                    await output.close()
                    pbar.close()
                print(f"\n✅ Download complete!")
                print(f"📁 Saved to: {output_path}")
                return True

            elif event == "transfer-cancelled":
                await discard_partial()
                print(f"\n🛑 Sender cancelled the transfer")
                return False

            elif event == "transfer-error":
                await discard_partial()
                print(f"\n❌ Transfer failed: {data['message']}")
                return False

            elif event == "peer-left":
                await discard_partial()
                print(f"\n🚪 Sender left the room")
                return False

        print("❌ Connection closed by server")
        return False


async def main():
    """Main entry point"""
    print("=" * 60)
    print("📥 Roomdrop - Receiver CLI")
    print("=" * 60)

    if len(sys.argv) < 2:
        print("\nUsage:")
        print("  python receiver_cli.py <room_code> [output_dir]")
        print("\nExamples:")
        print("  python receiver_cli.py ABC123")
        print("  python receiver_cli.py ABC123 downloads/")
        sys.exit(1)

    room_code = sys.argv[1]
    output_dir = sys.argv[2] if len(sys.argv) > 2 else "."

    receiver = ReceiverCLI()
    ok = await receiver.receive_file(room_code, output_dir)
    sys.exit(0 if ok else 1)


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n\n👋 Goodbye!")


if __name__ == "__main__":
    run()
