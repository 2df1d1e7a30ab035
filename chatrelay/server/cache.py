import os
import redis
from .models import Chat


class RedisCache:
    """Redis mirror of chat metadata.

    Chats are stored as JSON in the ``chats`` hash, and the member list is
    also kept in a ``chat:<id>:members`` set; ChatManager checks message
    senders against it without decoding the chat record.
    Messages are not cached; only the ``latest_message`` pointer travels
    with the chat record.
    """

    def __init__(self, url: str | None = None, client=None):
        self.url = url or os.getenv("REDIS_URL", "redis://localhost:6379/0")
        # decode_responses=True lets us work with str instead of bytes
        self.r = client if client is not None else redis.from_url(self.url, decode_responses=True)

    def store_chat(self, chat: Chat):
        self.r.hset("chats", chat.id, chat.model_dump_json())
        key = f"chat:{chat.id}:members"
        # rewrite the set as a whole
        self.r.delete(key)
        if chat.members:
            self.r.sadd(key, *chat.members)

    def get_chat(self, chat_id: str) -> Chat | None:
        val = self.r.hget("chats", chat_id)
        if not val:
            return None
        return Chat.model_validate_json(val)

    def is_member(self, chat_id: str, user_id: str) -> bool:
        return bool(self.r.sismember(f"chat:{chat_id}:members", user_id))
