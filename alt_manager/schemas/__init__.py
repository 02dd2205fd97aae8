"""
alt_manager.schemas
~~~~~~~~~~~~~~~~~~~
Pydantic snapshots, request bodies and notifications.
"""
from alt_manager.schemas.events import (
    ChatMessage,
    ClientEvent,
    Disconnected,
    DisconnectReason,
    FieldChange,
    PlayerEvent,
    StateChange,
)
from alt_manager.schemas.player import (
    LIVE_FIELDS,
    AuthMethod,
    ChatRequest,
    ConnectRequest,
    CreatePlayerRequest,
    GameMode,
    LiveData,
    LiveDataUpdate,
    PlayerId,
    PlayerSnapshot,
    SessionSnapshot,
    parse_snapshot,
    to_wire,
)
