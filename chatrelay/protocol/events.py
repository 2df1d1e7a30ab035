import json
from dataclasses import dataclass
from typing import Any, Union
from .types import EventName, CLIENT_EVENTS


class ProtocolError(ValueError):
    """Frame could not be decoded into a known event."""


@dataclass(frozen=True)
class Setup:
    user: dict


@dataclass(frozen=True)
class JoinChat:
    room: str


@dataclass(frozen=True)
class Typing:
    room: str


@dataclass(frozen=True)
class StopTyping:
    room: str


@dataclass(frozen=True)
class NewMessage:
    message: dict


ClientEvent = Union[Setup, JoinChat, Typing, StopTyping, NewMessage]


@dataclass(frozen=True)
class ServerEvent:
    name: EventName
    data: Any = None


class EventCodec:
    """JSON frames of the form {"event": <name>, "data": <payload>}."""

    @staticmethod
    def pack(name: EventName, data: Any = None) -> str:
        frame = {'event': EventName(name).value}
        if data is not None:
            frame['data'] = data
        return json.dumps(frame)

    @staticmethod
    def unpack(raw: str | bytes) -> ClientEvent:
        try:
            frame = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise ProtocolError(f"invalid JSON frame: {e}") from e
        if not isinstance(frame, dict):
            raise ProtocolError("frame must be a JSON object")

        try:
            name = EventName(frame.get('event'))
        except ValueError:
            raise ProtocolError(f"unknown event {frame.get('event')!r}") from None
        if name not in CLIENT_EVENTS:
            raise ProtocolError(f"{name.value!r} is not a client event")

        data = frame.get('data')
        match name:
            case EventName.SETUP:
                if not isinstance(data, dict):
                    raise ProtocolError("setup expects a user object")
                return Setup(data)
            case EventName.NEW_MESSAGE:
                if not isinstance(data, dict):
                    raise ProtocolError("new-message expects a message object")
                return NewMessage(data)
            case EventName.JOIN_CHAT | EventName.TYPING | EventName.STOP_TYPING:
                if not isinstance(data, (str, int)) or data == '':
                    raise ProtocolError(f"{name.value} expects a room label")
                room = str(data)
                if name == EventName.JOIN_CHAT:
                    return JoinChat(room)
                if name == EventName.TYPING:
                    return Typing(room)
                return StopTyping(room)

    @staticmethod
    def unpack_server(raw: str | bytes) -> ServerEvent:
        """Decode a frame sent by the server (client side)."""
        try:
            frame = json.loads(raw)
            return ServerEvent(EventName(frame['event']), frame.get('data'))
        except (TypeError, ValueError, KeyError) as e:
            raise ProtocolError(f"bad server frame: {e}") from e
