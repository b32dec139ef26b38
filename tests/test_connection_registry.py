"""
Unit tests for connection addressing and room groups.
"""

import unittest

from backend.connection_registry import ConnectionRegistry
from helpers import make_channel


class TestConnectionRegistry(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.registry = ConnectionRegistry()
        self.a = make_channel("a")
        self.b = make_channel("b")
        self.registry.register(self.a)
        self.registry.register(self.b)

    async def asyncTearDown(self):
        for connection_id in list(self.registry.connections):
            await self.registry.unregister(connection_id)

    async def test_emit_by_id(self):
        self.assertTrue(await self.registry.emit("a", "hello", {"x": 1}))
        self.assertFalse(await self.registry.emit("ghost", "hello"))
        await self.a.flush()

        self.assertEqual(self.a.websocket.sent, [{"event": "hello", "data": {"x": 1}}])
        self.assertEqual(self.b.websocket.sent, [])

    async def test_broadcast_skips_excluded_member(self):
        self.registry.join_group("ROOM", "a")
        self.registry.join_group("ROOM", "b")

        reached = await self.registry.broadcast("ROOM", "peer-left", "a", exclude="a")
        await self.b.flush()

        self.assertEqual(reached, 1)
        self.assertEqual(self.b.websocket.events("peer-left"), ["a"])
        self.assertEqual(self.a.websocket.sent, [])

    async def test_unregister_closes_and_leaves_groups(self):
        self.registry.join_group("ROOM", "a")

        await self.registry.unregister("a")

        self.assertTrue(self.a.closed)
        self.assertFalse(self.registry.is_connected("a"))
        self.assertNotIn("ROOM", self.registry.groups)
        # Unregistering twice is harmless
        await self.registry.unregister("a")

    async def test_leave_group_drops_empty_group(self):
        self.registry.join_group("ROOM", "a")
        self.registry.leave_group("ROOM", "a")
        self.registry.leave_group("ROOM", "a")

        self.assertEqual(self.registry.groups, {})


if __name__ == '__main__':
    unittest.main()
