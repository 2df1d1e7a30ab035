import asyncio
import logging
from typing import Optional
from websockets.exceptions import ConnectionClosed
from .registry import PresenceRegistry
from .chat_manager import ChatManager
from chatrelay.protocol.events import (
    ClientEvent, EventCodec, JoinChat, NewMessage, Setup, StopTyping, Typing,
)
from chatrelay.protocol.types import EventName

logger = logging.getLogger(__name__)


def _user_id(value) -> str | None:
    """Members and senders arrive either as plain ids or as user objects."""
    if isinstance(value, dict):
        value = value.get('id')
    if value is None or value == '':
        return None
    return str(value)


class EventRelay:
    """Fans client events out to registry connections.

    Every event is handled on its own against the current registry contents.
    Delivery is fire-and-forget: nothing is queued or retried.
    """

    def __init__(self, registry: PresenceRegistry, profiles: Optional[ChatManager] = None):
        self.registry = registry
        # setup user objects are recorded here so chats populate with profiles
        self.profiles = profiles

    async def handle(self, conn, event: ClientEvent):
        match event:
            case Setup(user=user):
                await self.on_setup(conn, user)
            case JoinChat(room=room):
                await self.registry.join_room(conn, room)
            case Typing(room=room):
                await self._broadcast_room(conn, room, EventName.TYPING)
            case StopTyping(room=room):
                await self._broadcast_room(conn, room, EventName.STOP_TYPING)
            case NewMessage(message=message):
                await self.on_new_message(conn, message)
            case _:
                raise TypeError(f"unhandled event {event!r}")

    async def on_setup(self, conn, user: dict):
        uid = _user_id(user)
        if uid is None:
            logger.warning("setup without user id, ignored")
            return
        if self.profiles is not None:
            self.profiles.upsert_profile(user)
        await self.registry.bind(conn, uid)
        await self._send(conn, EventCodec.pack(EventName.CONNECTED))

    async def on_new_message(self, conn, message: dict) -> int:
        """Deliver ``message-received`` to every member except the sender.

        Returns the number of connections the event was sent to.
        """
        chat = message.get('chat')
        members = chat.get('members') if isinstance(chat, dict) else None
        if not isinstance(members, list) or not members:
            logger.warning("chat.members not defined, message dropped")
            return 0

        sender_id = _user_id(message.get('sender'))
        recipients = set()
        for member in members:
            uid = _user_id(member)
            if uid is None or uid == sender_id:
                continue
            recipients |= await self.registry.connections_for_user(uid)
        recipients.discard(conn)

        frame = EventCodec.pack(EventName.MESSAGE_RECEIVED, message)
        await self._fan_out(recipients, frame)
        return len(recipients)

    async def _broadcast_room(self, conn, room: str, name: EventName):
        targets = await self.registry.connections_in_room(room)
        targets.discard(conn)
        await self._fan_out(targets, EventCodec.pack(name, room))

    async def _fan_out(self, conns, frame: str):
        if conns:
            await asyncio.gather(*(self._send(c, frame) for c in conns))

    @staticmethod
    async def _send(conn, frame: str):
        try:
            await conn.send(frame)
        except ConnectionClosed:
            logger.debug("Dropped frame for closed connection %r", conn)
        except Exception:
            # failures stay local to the recipient connection
            logger.exception("Send to %r failed, frame dropped", conn)
