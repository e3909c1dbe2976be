"""Protocol and catalog enums."""
from enum import Enum


class MessageKind(str, Enum):
    """Inbound frame kinds accepted on a synchronization connection."""
    SUBSCRIBE = "subscribe"
    FETCH = "fetch"
    LATEST = "latest"
    CHANGE = "change"
    PONG = "pong"


class PushKind(str, Enum):
    """Outbound frame kinds sent by the server."""
    VALUE = "value"
    CHANGE = "change"
    PING = "ping"
    PONG = "pong"


class ConnectionState(str, Enum):
    """Lifecycle of a synchronization connection."""
    CONNECTED = "connected"
    SUBSCRIBED = "subscribed"
    CLOSED = "closed"


class LanguageKind(str, Enum):
    """Role a language plays in a game lineup."""
    MARKUP = "markup"
    STYLING = "styling"
    LOGIC = "logic"
