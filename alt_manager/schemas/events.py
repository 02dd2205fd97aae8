"""
alt_manager.schemas.events
~~~~~~~~~~~~~~~~~~~~~~~~~~

通知类型定义。

``PlayerEvent`` 为在线玩家的通知标签，每种通知一个标签；
``ClientEvent`` 为客户端级别、由推送通道转发的通知标签。
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from alt_manager.schemas.player import LiveData, PlayerId


# local: 本地 disconnect()；remote: 推送通道的 playerDisconnect；
# superseded: 被同一客户端的新会话替代；closed: 客户端关闭或推送通道断开
DisconnectReason = Literal["local", "remote", "superseded", "closed"]


class PlayerEvent(str, Enum):
    """在线玩家的通知标签。"""

    HEALTH_CHANGED = "health_changed"
    HUNGER_CHANGED = "hunger_changed"
    PING_CHANGED = "ping_changed"
    GAME_MODE_CHANGED = "game_mode_changed"
    COORDINATES_CHANGED = "coordinates_changed"
    CHANGED = "changed"
    CHAT = "chat"
    DISCONNECTED = "disconnected"

    @classmethod
    def for_field(cls, field: str) -> PlayerEvent:
        """返回字段对应的 ``<field>_changed`` 标签。"""
        return cls(f"{field}_changed")


class ClientEvent(str, Enum):
    """客户端级别的通知标签，对应推送通道的入站事件。"""

    PLAYER_CONNECT = "player_connect"
    PLAYER_DISCONNECT = "player_disconnect"
    PLAYER_CREATE = "player_create"
    PLAYER_DELETE = "player_delete"
    PLAYER_MESSAGE = "player_message"
    PLAYER_DATA = "player_data"


# 推送通道事件名 → 客户端通知标签
CHANNEL_EVENTS: dict[str, ClientEvent] = {
    "playerConnect": ClientEvent.PLAYER_CONNECT,
    "playerDisconnect": ClientEvent.PLAYER_DISCONNECT,
    "playerCreate": ClientEvent.PLAYER_CREATE,
    "playerDelete": ClientEvent.PLAYER_DELETE,
    "playerMessage": ClientEvent.PLAYER_MESSAGE,
    "playerData": ClientEvent.PLAYER_DATA,
}


class FieldChange(BaseModel):
    """单个字段的变化。"""

    model_config = ConfigDict(frozen=True)

    field: str = Field(..., description="字段名（snake_case）")
    previous: Any = Field(..., description="变化前的值")
    current: Any = Field(..., description="变化后的值")

    @property
    def event(self) -> PlayerEvent:
        """本变化对应的通知标签。"""
        return PlayerEvent.for_field(self.field)


class StateChange(BaseModel):
    """一次推送的聚合变化通知（``changed``）。"""

    model_config = ConfigDict(frozen=True)

    previous: LiveData
    current: LiveData
    changes: tuple[FieldChange, ...]


class ChatMessage(BaseModel):
    """服务器发给玩家的聊天消息，原样转发。"""

    model_config = ConfigDict(frozen=True)

    player_id: PlayerId
    payload: Any = Field(..., description="服务器原始 JSON 聊天组件")
    position: str | None = Field(default=None, description="消息位置（chat / system / game_info）")


class Disconnected(BaseModel):
    """玩家会话进入终止状态。"""

    model_config = ConfigDict(frozen=True)

    player_id: PlayerId
    reason: DisconnectReason = Field(..., description="会话结束的原因")
