from enum import Enum


class EventName(str, Enum):
    # client -> server
    SETUP       = "setup"
    JOIN_CHAT   = "join-chat"
    NEW_MESSAGE = "new-message"
    # both directions
    TYPING      = "typing"
    STOP_TYPING = "stop-typing"
    # server -> client
    CONNECTED        = "connected"
    MESSAGE_RECEIVED = "message-received"


CLIENT_EVENTS = frozenset({
    EventName.SETUP,
    EventName.JOIN_CHAT,
    EventName.TYPING,
    EventName.STOP_TYPING,
    EventName.NEW_MESSAGE,
})

DIRECT_CHAT_NAME = "sender"  # placeholder name of non-group chats
