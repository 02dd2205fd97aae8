"""
alt_manager
~~~~~~~~~~~

Alt manager API 的异步 Python 客户端。
"""
from alt_manager.core.errors import (
    AltManagerError,
    HttpError,
    ProtocolError,
    TransportError,
)
from alt_manager.schemas.events import (
    ChatMessage,
    ClientEvent,
    Disconnected,
    FieldChange,
    PlayerEvent,
    StateChange,
)
from alt_manager.schemas.player import LiveData, PlayerId
from alt_manager.services.change_detector import diff
from alt_manager.services.client import AltManager, AnyPlayer
from alt_manager.services.offline_player import OfflinePlayer
from alt_manager.services.player import Player, PlayerState

__all__ = [
    "AltManager",
    "AltManagerError",
    "AnyPlayer",
    "ChatMessage",
    "ClientEvent",
    "Disconnected",
    "FieldChange",
    "HttpError",
    "LiveData",
    "OfflinePlayer",
    "Player",
    "PlayerEvent",
    "PlayerId",
    "PlayerState",
    "ProtocolError",
    "StateChange",
    "TransportError",
    "diff",
]
