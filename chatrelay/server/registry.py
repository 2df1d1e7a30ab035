import asyncio
import logging
from collections import defaultdict

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """Maps users and rooms to live connections.

    A connection is any object with an ``async send(str)`` method. Personal
    channels (``bind``) and rooms (``join_room``) are kept apart; a reverse
    index lets ``unbind`` drop a connection from everything it joined.
    """

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = defaultdict(set)   # user_id: {conn}
        self.rooms = defaultdict(set)   # room: {conn}
        self.conn_users = defaultdict(set)  # conn: {user_id}
        self.conn_rooms = defaultdict(set)  # conn: {room}
        self.closed = False

    async def bind(self, conn, user_id: str):
        async with self.lock:
            self._check_open()
            self.users[user_id].add(conn)
            self.conn_users[conn].add(user_id)
        logger.debug("Bound %r to user %s", conn, user_id)

    async def join_room(self, conn, room: str):
        async with self.lock:
            self._check_open()
            self.rooms[room].add(conn)
            self.conn_rooms[conn].add(room)

    async def unbind(self, conn):
        async with self.lock:
            for uid in self.conn_users.pop(conn, ()):
                self._discard(self.users, uid, conn)
            for room in self.conn_rooms.pop(conn, ()):
                self._discard(self.rooms, room, conn)

    async def connections_for_user(self, user_id: str) -> set:
        async with self.lock:
            return set(self.users.get(user_id, ()))

    async def connections_in_room(self, room: str) -> set:
        async with self.lock:
            return set(self.rooms.get(room, ()))

    async def close(self):
        async with self.lock:
            self.closed = True
            self.users.clear()
            self.rooms.clear()
            self.conn_users.clear()
            self.conn_rooms.clear()
        logger.info("Presence registry closed")

    def _check_open(self):
        if self.closed:
            raise RuntimeError("registry is closed")

    @staticmethod
    def _discard(index: dict, key: str, conn):
        conns = index.get(key)
        if conns is None:
            return
        conns.discard(conn)
        # drop empty entries
        if not conns:
            del index[key]
