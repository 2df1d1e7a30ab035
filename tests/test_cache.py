import unittest
from unittest.mock import MagicMock

from chatrelay.server.cache import RedisCache
from chatrelay.server.chat_manager import ChatManager
from chatrelay.server.errors import InvalidArgument
from chatrelay.server.models import Chat
from chatrelay.server.storage import InMemoryStorage


class FakeRedis:
    """Just the hash and set commands RedisCache uses."""

    def __init__(self):
        self.hashes = {}
        self.sets = {}

    def hset(self, name, key, value):
        self.hashes.setdefault(name, {})[key] = value

    def hget(self, name, key):
        return self.hashes.get(name, {}).get(key)

    def delete(self, key):
        self.sets.pop(key, None)

    def sadd(self, key, *values):
        self.sets.setdefault(key, set()).update(values)

    def sismember(self, key, value):
        return value in self.sets.get(key, ())


class TestRedisCache(unittest.TestCase):

    def setUp(self):
        self.redis = FakeRedis()
        self.cache = RedisCache(client=self.redis)

    def test_store_and_get(self):
        chat = Chat(name="team", is_group=True, members=["a", "b", "c"], admin="a")
        self.cache.store_chat(chat)
        loaded = self.cache.get_chat(chat.id)
        self.assertEqual(loaded, chat)
        self.assertTrue(self.cache.is_member(chat.id, "b"))
        self.assertFalse(self.cache.is_member(chat.id, "z"))

    def test_store_rewrites_member_set(self):
        chat = Chat(name="team", is_group=True, members=["a", "b", "c"], admin="a")
        self.cache.store_chat(chat)
        chat.members.remove("b")
        self.cache.store_chat(chat)
        self.assertFalse(self.cache.is_member(chat.id, "b"))
        self.assertTrue(self.cache.is_member(chat.id, "c"))

    def test_missing_chat(self):
        self.assertIsNone(self.cache.get_chat("nope"))

    def test_chat_manager_writes_through(self):
        storage = InMemoryStorage()
        mgr = ChatManager(storage, cache=self.cache)
        group = mgr.create_group("a", "team", ["b", "c"])
        mgr.add_member(group["id"], "d")
        self.assertTrue(self.cache.is_member(group["id"], "d"))
        self.assertEqual(self.cache.get_chat(group["id"]).members, ["b", "c", "a", "d"])

    def test_sender_checked_against_member_set(self):
        mgr = ChatManager(InMemoryStorage(), cache=self.cache)
        chat = mgr.get_or_create_direct_chat("a", "b")
        mgr.record_message(chat["id"], "b", "hi")

        self.redis.sets[f"chat:{chat['id']}:members"].discard("b")
        with self.assertRaises(InvalidArgument):
            mgr.record_message(chat["id"], "b", "again")

    def test_chat_manager_reads_cache_first(self):
        cache = MagicMock(spec=RedisCache)
        cached = Chat(name="cached", is_group=True, members=["a", "b", "c"], admin="a")
        cache.get_chat.return_value = cached
        mgr = ChatManager(InMemoryStorage(), cache=cache)

        renamed = mgr.rename_group(cached.id, "renamed")
        cache.get_chat.assert_called_once_with(cached.id)
        cache.store_chat.assert_called_once()
        self.assertEqual(renamed["name"], "renamed")


if __name__ == "__main__":
    unittest.main()
