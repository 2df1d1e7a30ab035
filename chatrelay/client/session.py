import asyncio
from chatrelay.protocol.events import ServerEvent
from chatrelay.protocol.types import EventName


class Session:
    def __init__(self, user: dict):
        self.user = user
        self.connected = asyncio.Event()  # set once the server acks setup
        self.inbox = asyncio.Queue()  # ServerEvent, in arrival order
        self.typing = {}  # room: bool

    @property
    def user_id(self) -> str:
        return self.user['id']

    def record(self, event: ServerEvent):
        """Update local state from a server event and queue it."""
        if event.name == EventName.CONNECTED:
            self.connected.set()
        elif event.name == EventName.TYPING:
            self.typing[event.data] = True
        elif event.name == EventName.STOP_TYPING:
            self.typing[event.data] = False
        self.inbox.put_nowait(event)
