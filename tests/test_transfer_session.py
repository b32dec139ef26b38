"""
Unit tests for chunked streaming and progress computation.
"""

import os
import tempfile
import unittest
from pathlib import Path

from backend.transfer_session import TransferSession, compute_progress
from engine.chunk_manager import ChunkManager, decode_chunk


class TestProgress(unittest.TestCase):

    def test_rounds_half_up(self):
        self.assertEqual(compute_progress(0, 200), 0)
        self.assertEqual(compute_progress(1, 200), 1)   # 0.5%
        self.assertEqual(compute_progress(5, 1000), 1)  # 0.5%
        self.assertEqual(compute_progress(4, 1000), 0)
        self.assertEqual(compute_progress(65536, 200000), 33)
        self.assertEqual(compute_progress(200000, 200000), 100)

    def test_capped_at_100(self):
        self.assertEqual(compute_progress(300, 200), 100)

    def test_empty_file_is_complete(self):
        self.assertEqual(compute_progress(0, 0), 100)


class RecordingEmitter:

    def __init__(self):
        self.calls = []

    async def __call__(self, connection_id, event, data=None):
        self.calls.append((connection_id, event, data))
        return True

    def payloads(self, connection_id, event):
        return [d for c, e, d in self.calls if c == connection_id and e == event]


class TrackingChunkManager(ChunkManager):
    """Notes when the chunk reader is closed"""

    closed = False

    async def iter_chunks(self, file_path, limit=None):
        try:
            async for chunk in super().iter_chunks(file_path, limit):
                yield chunk
        finally:
            self.closed = True


class TestTransferSession(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.chunk_manager = ChunkManager()

    def tearDown(self):
        self.tmp.cleanup()

    def make_session(self, size: int) -> TransferSession:
        path = Path(self.tmp.name) / "abc-data.bin"
        path.write_bytes(os.urandom(size))
        return TransferSession(
            sender_id="s", receiver_id="r", file_id=path.name, path=path, total_bytes=size
        )

    async def test_stream_relays_every_byte(self):
        session = self.make_session(200000)
        emit = RecordingEmitter()

        self.assertTrue(await session.stream(emit, self.chunk_manager))

        chunks = emit.payloads("r", "file-chunk")
        data = b"".join(decode_chunk(c["chunk"]) for c in chunks)
        self.assertEqual(data, session.path.read_bytes())
        self.assertEqual(len(chunks), 4)
        self.assertTrue(all(len(decode_chunk(c["chunk"])) <= 65536 for c in chunks))
        self.assertEqual(session.bytes_sent, 200000)

    async def test_progress_is_monotonic_and_ends_at_100(self):
        session = self.make_session(1000003)
        emit = RecordingEmitter()

        await session.stream(emit, self.chunk_manager)

        chunk_progress = [c["progress"] for c in emit.payloads("r", "file-chunk")]
        sender_progress = [p["progress"] for p in emit.payloads("s", "transfer-progress")]
        self.assertEqual(chunk_progress, sender_progress)
        self.assertEqual(chunk_progress, sorted(chunk_progress))
        self.assertTrue(all(0 <= p <= 100 for p in chunk_progress))
        self.assertEqual(chunk_progress[-1], 100)

    async def test_each_chunk_precedes_its_progress(self):
        session = self.make_session(70000)
        emit = RecordingEmitter()

        await session.stream(emit, self.chunk_manager)

        self.assertEqual([e for _, e, _ in emit.calls],
                         ["file-chunk", "transfer-progress", "file-chunk", "transfer-progress"])

    async def test_reads_stop_at_recorded_size(self):
        session = self.make_session(1000)
        with open(session.path, "ab") as f:
            f.write(b"grown after start")
        emit = RecordingEmitter()

        await session.stream(emit, self.chunk_manager)

        self.assertEqual(session.bytes_sent, 1000)

    async def test_file_shrinking_mid_stream_is_a_read_error(self):
        session = self.make_session(65536 * 4)
        emit = RecordingEmitter()

        async def truncating_emit(connection_id, event, data=None):
            await emit(connection_id, event, data)
            if event == "file-chunk" and len(emit.payloads("r", "file-chunk")) == 1:
                with open(session.path, "r+b") as f:
                    f.truncate(65536 * 2)
            return True

        with self.assertRaises(OSError):
            await session.stream(truncating_emit, self.chunk_manager)

        self.assertEqual(session.bytes_sent, 65536 * 2)
        self.assertEqual(emit.payloads("s", "transfer-progress")[-1], {"progress": 50})

    async def test_cancel_stops_before_next_chunk(self):
        session = self.make_session(65536 * 10)
        emit = RecordingEmitter()

        async def cancelling_emit(connection_id, event, data=None):
            await emit(connection_id, event, data)
            if event == "transfer-progress" and data["progress"] >= 40:
                session.cancel()
            return True

        self.assertFalse(await session.stream(cancelling_emit, self.chunk_manager))
        self.assertEqual(len(emit.payloads("r", "file-chunk")), 4)
        self.assertTrue(session.is_cancelled)

    async def test_cancel_closes_chunk_reader(self):
        chunk_manager = TrackingChunkManager()
        session = self.make_session(65536 * 10)

        async def cancelling_emit(connection_id, event, data=None):
            session.cancel()
            return True

        self.assertFalse(await session.stream(cancelling_emit, chunk_manager))
        self.assertTrue(chunk_manager.closed)

    async def test_missing_file_raises_oserror(self):
        session = self.make_session(10)
        session.path.unlink()

        with self.assertRaises(OSError):
            await session.stream(RecordingEmitter(), self.chunk_manager)


if __name__ == '__main__':
    unittest.main()
