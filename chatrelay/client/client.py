import asyncio
import logging
import websockets
from websockets.exceptions import ConnectionClosed
from .session import Session
from chatrelay.protocol.events import EventCodec, ProtocolError, ServerEvent
from chatrelay.protocol.types import EventName

logger = logging.getLogger(__name__)


class RelayClient:
    def __init__(self, user: dict, url: str = 'ws://127.0.0.1:8765'):
        self.url = url
        self.session = Session(user)
        self.ws = None
        self._receiver_task = None

    async def connect(self, timeout: float = 5.0):
        self.ws = await websockets.connect(self.url)
        self._receiver_task = asyncio.create_task(self._receiver())
        try:
            await self._emit(EventName.SETUP, self.session.user)
            await asyncio.wait_for(self.session.connected.wait(), timeout)
        except BaseException:
            await self.close()
            raise
        logger.info("Connected to %s as %s", self.url, self.session.user_id)

    async def close(self):
        if self.ws is not None:
            await self.ws.close()
        if self._receiver_task is not None:
            await self._receiver_task
        self.ws = None
        self._receiver_task = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def _receiver(self):
        try:
            async for raw in self.ws:
                try:
                    event = EventCodec.unpack_server(raw)
                except ProtocolError as e:
                    logger.warning("Ignoring frame: %s", e)
                    continue
                self.session.record(event)
        except ConnectionClosed as e:
            logger.info("Connection closed: %s", e)

    async def _emit(self, name: EventName, data=None):
        await self.ws.send(EventCodec.pack(name, data))

    async def join_chat(self, room: str):
        await self._emit(EventName.JOIN_CHAT, room)

    async def typing(self, room: str):
        await self._emit(EventName.TYPING, room)

    async def stop_typing(self, room: str):
        await self._emit(EventName.STOP_TYPING, room)

    async def send_message(self, message: dict):
        await self._emit(EventName.NEW_MESSAGE, message)

    async def next_event(self, timeout: float | None = None) -> ServerEvent:
        return await asyncio.wait_for(self.session.inbox.get(), timeout)
