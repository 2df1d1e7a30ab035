"""
End-to-end relay tests: a real websockets server on an ephemeral local port
and RelayClient connections.
"""

import asyncio
import unittest

import websockets

from chatrelay.client.client import RelayClient
from chatrelay.protocol.types import EventName
from chatrelay.server.config import Settings
from chatrelay.server.server import MessengerServer


class RelayIntegrationTest(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.server = MessengerServer(Settings(host="127.0.0.1"))
        self.ws_server = await self.server.serve_ws(port=0)
        port = list(self.ws_server.sockets)[0].getsockname()[1]
        self.url = f"ws://127.0.0.1:{port}"
        self.clients = []

    async def asyncTearDown(self):
        for client in self.clients:
            await client.close()
        self.ws_server.close()
        await self.ws_server.wait_closed()
        await self.server.registry.close()

    async def connect(self, user_id):
        client = RelayClient({"id": user_id}, url=self.url)
        await client.connect()
        self.clients.append(client)
        return client

    async def assert_silent(self, client, timeout=0.2):
        with self.assertRaises(asyncio.TimeoutError):
            await client.next_event(timeout=timeout)

    async def wait_until(self, predicate, timeout=2.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not await predicate():
            if loop.time() > deadline:
                self.fail("condition not met in time")
            await asyncio.sleep(0.01)

    async def test_setup_is_acknowledged(self):
        u1 = await self.connect("u1")
        event = await u1.next_event(timeout=1)
        self.assertEqual(event.name, EventName.CONNECTED)

    async def test_message_delivered_to_other_member(self):
        u1 = await self.connect("u1")
        u2 = await self.connect("u2")
        await u1.next_event(timeout=1)  # connected
        await u2.next_event(timeout=1)

        msg = {
            "id": "m1",
            "chat": {"id": "c1", "members": [{"id": "u1"}, {"id": "u2"}]},
            "sender": {"id": "u2"},
            "content": "hello",
        }
        await u2.send_message(msg)

        event = await u1.next_event(timeout=1)
        self.assertEqual(event.name, EventName.MESSAGE_RECEIVED)
        self.assertEqual(event.data, msg)
        await self.assert_silent(u1)
        await self.assert_silent(u2)

    async def test_message_without_members_is_dropped(self):
        u1 = await self.connect("u1")
        u2 = await self.connect("u2")
        await u1.next_event(timeout=1)
        await u2.next_event(timeout=1)

        await u2.send_message({"sender": {"id": "u2"}, "chat": {"id": "c1"}, "content": "x"})
        await self.assert_silent(u1)
        await self.assert_silent(u2)
        # the sender's connection is still usable
        await u2.join_chat("c1")

    async def test_typing_in_room(self):
        u1 = await self.connect("u1")
        u2 = await self.connect("u2")
        await u1.next_event(timeout=1)
        await u2.next_event(timeout=1)

        await u1.join_chat("R1")
        await u2.join_chat("R1")
        await self.wait_until(lambda: self._room_size("R1", 2))

        await u2.typing("R1")
        event = await u1.next_event(timeout=1)
        self.assertEqual((event.name, event.data), (EventName.TYPING, "R1"))
        self.assertTrue(u1.session.typing["R1"])

        await u2.stop_typing("R1")
        event = await u1.next_event(timeout=1)
        self.assertEqual(event.name, EventName.STOP_TYPING)
        self.assertFalse(u1.session.typing["R1"])
        await self.assert_silent(u2)

    async def test_disconnect_unbinds(self):
        u1 = await self.connect("u1")
        await u1.join_chat("R1")
        await self.wait_until(lambda: self._room_size("R1", 1))

        await u1.close()
        self.clients.remove(u1)

        async def gone():
            return (not await self.server.registry.connections_for_user("u1")
                    and not await self.server.registry.connections_in_room("R1"))
        await self.wait_until(gone)

    async def test_bad_frame_is_ignored(self):
        u1 = await self.connect("u1")
        await u1.next_event(timeout=1)
        await u1.ws.send("not json")
        await u1.ws.send('{"event": "bogus"}')
        await u1.join_chat("R1")
        await self.wait_until(lambda: self._room_size("R1", 1))

    async def test_setup_profile_populates_chats(self):
        client = RelayClient({"id": "u1", "username": "Uma"}, url=self.url)
        await client.connect()
        self.clients.append(client)

        chat = self.server.chat_mgr.get_or_create_direct_chat("u2", "u1")
        self.assertEqual(chat["members"][1]["username"], "Uma")

    async def _room_size(self, room, size):
        return len(await self.server.registry.connections_in_room(room)) == size


class TrackingClient(RelayClient):
    """Keeps handles to the socket and receiver task it started."""

    async def _receiver(self):
        self.opened_ws = self.ws
        self.receiver = asyncio.current_task()
        await super()._receiver()


class SilentServerTest(unittest.IsolatedAsyncioTestCase):
    """A peer that accepts the socket but never acknowledges setup."""

    async def asyncSetUp(self):
        async def swallow(websocket):
            async for _ in websocket:
                pass

        self.ws_server = await websockets.serve(swallow, "127.0.0.1", 0)
        port = list(self.ws_server.sockets)[0].getsockname()[1]
        self.url = f"ws://127.0.0.1:{port}"

    async def asyncTearDown(self):
        self.ws_server.close()
        await self.ws_server.wait_closed()

    async def test_connect_timeout_releases_socket(self):
        client = TrackingClient({"id": "u1"}, url=self.url)
        with self.assertRaises(asyncio.TimeoutError):
            await client.connect(timeout=0.2)

        self.assertIsNone(client.ws)
        self.assertIsNone(client._receiver_task)
        self.assertIsNotNone(client.opened_ws.close_code)
        self.assertTrue(client.receiver.done())


if __name__ == "__main__":
    unittest.main()
