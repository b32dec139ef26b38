"""
Sender CLI - Upload a file and relay it to whoever joins the room
"""
import asyncio
import sys
from pathlib import Path

import aiohttp
from tqdm import tqdm

from config import RELAY_URL
from engine.chunk_manager import format_size
from engine.relay_client import RelayClient, RelayClientError


class SenderCLI:
    """Command-line sender application"""

    def __init__(self, server_url: str = RELAY_URL):
        self.client = RelayClient(server_url)

    async def send_file(self, file_path: str, room_code: str) -> bool:
        """Upload the file, wait for a receiver and relay it"""

        # Validate path
        path = Path(file_path)
        if not path.is_file():
            print(f"❌ File not found: {file_path}")
            return False

        async with aiohttp.ClientSession() as session:
            print(f"⬆️  Uploading {path.name} ({format_size(path.stat().st_size)})...")
            try:
                file_info = await self.client.upload(session, str(path))
            except (RelayClientError, aiohttp.ClientError) as e:
                print(f"❌ {e}")
                return False
            print(f"✅ Uploaded as {file_info['id']}")

            connection = await self.client.connect(session)
            try:
                return await self._relay(connection, file_info, room_code)
            finally:
                await connection.close()

    async def _relay(self, connection, file_info: dict, room_code: str) -> bool:
        pbar = None

        async for event, data in connection.events():
            if event == "connected":
                await connection.emit("join-room", room_code)

            elif event == "room-joined":
                if data['role'] != 'sender':
                    print(f"❌ Room {room_code} already has a sender")
                    return False
                print(f"\n{'='*50}")
                print(f"🔢 ROOM CODE: {room_code}")
                print(f"{'='*50}")
                print(f"👉 Share this code with the receiver!")
                print(f"⏳ Waiting for receiver to join...")

            elif event == "room-full":
                print(f"❌ Room {room_code} is full")
                return False

            elif event == "user-joined":
                print(f"🤝 Receiver joined, starting transfer")
                pbar = tqdm(total=100, desc="Sending", unit="%")
                await connection.emit("start-transfer", {"fileId": file_info['id'], "receiverId": data})

            elif event == "transfer-progress":
                if pbar is not None:
                    pbar.update(data['progress'] - pbar.n)

            elif event == "transfer-complete":
                if pbar is not None:
                    pbar.close()
                print(f"\n✅ Transfer complete!")
                return True

            elif event == "transfer-error":
                if pbar is not None:
                    pbar.close()
                print(f"\n❌ Transfer failed: {data['message']}")
                return False

            elif event == "peer-left":
                if pbar is not None:
                    pbar.close()
                print(f"\n🚪 Receiver left the room")
                return False

        print("❌ Connection closed by server")
        return False


async def main():
    """Main entry point"""
    print("=" * 60)
    print("🚀 Roomdrop - Sender CLI")
    print("=" * 60)

    if len(sys.argv) < 3:
        print("\nUsage:")
        print("  python sender_cli.py <file_path> <room_code>")
        print("\nExamples:")
        print("  python sender_cli.py report.pdf ABC123")
        sys.exit(1)

    sender = SenderCLI()
    ok = await sender.send_file(sys.argv[1], sys.argv[2])
    sys.exit(0 if ok else 1)


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n\n👋 Goodbye!")


if __name__ == "__main__":
    run()
