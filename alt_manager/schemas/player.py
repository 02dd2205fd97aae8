"""
alt_manager.schemas.player
~~~~~~~~~~~~~~~~~~~~~~~~~~

玩家相关的 Pydantic 快照 / 请求模型。

字段在 Python 侧使用 snake_case，在线路上使用 API 的 camelCase 别名
（``authMethod``、``lastOnline``、``liveData``、``gameMode``）。
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from alt_manager.core.errors import ProtocolError

PlayerId = str
"""Alt manager 内部玩家 ID（不是 Minecraft UUID），如 ``24a2bdc1-6dd9-40c4-b011-daa29c5ed59f``。"""

AuthMethod = Literal["mojang", "microsoft", "offline"]
GameMode = Literal["survival", "creative", "adventure", "spectator"]

Coordinates = tuple[float, float, float]

_M = TypeVar("_M", bound=BaseModel)

LIVE_FIELDS: tuple[str, ...] = ("health", "hunger", "ping", "game_mode", "coordinates")


class _WireModel(BaseModel):
    """同时接受字段名与别名，序列化时按需输出别名。"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LiveData(_WireModel):
    """在线玩家的动态数据（由服务端推送，客户端不做范围校验）。"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    health: float = Field(..., description="当前生命值（0-20）")
    hunger: float = Field(..., description="当前饱食度（0-20）")
    ping: float = Field(..., description="当前延迟（毫秒）")
    game_mode: GameMode = Field(..., alias="gameMode", description="当前游戏模式")
    coordinates: Coordinates = Field(..., description="当前坐标 (x, y, z)")


class LiveDataUpdate(_WireModel):
    """宽松解析的推送数据：缺失的字段视为“无变化”。"""

    health: float | None = None
    hunger: float | None = None
    ping: float | None = None
    game_mode: GameMode | None = Field(default=None, alias="gameMode")
    coordinates: Coordinates | None = None

    def present_fields(self) -> dict[str, Any]:
        """返回推送中实际携带的字段。"""
        return {
            name: getattr(self, name)
            for name in LIVE_FIELDS
            if getattr(self, name) is not None
        }


class PlayerSnapshot(_WireModel):
    """``GET /players``、``GET /players/{id}`` 等接口返回的玩家快照。"""

    id: PlayerId = Field(..., description="内部玩家 ID")
    name: str = Field(..., description="用户名（Mojang / 离线）或邮箱（Microsoft）")
    auth_method: AuthMethod = Field(..., alias="authMethod", description="登录方式")
    last_online: datetime | None = Field(
        default=None, alias="lastOnline", description="上次在线时间，从未在线为 None",
    )
    online: bool = Field(default=False, description="是否在线")
    server: str | None = Field(default=None, description="所连接服务器地址")
    version: str | None = Field(default=None, description="Minecraft 版本")
    username: str | None = Field(default=None, description="服务器分配的用户名")
    uuid: str | None = Field(default=None, description="Minecraft UUID")
    live_data: LiveData | None = Field(default=None, alias="liveData", description="动态数据")


class SessionSnapshot(_WireModel):
    """``POST /players/{id}/connect`` 返回的连接快照。"""

    server: str = Field(..., description="所连接服务器地址")
    version: str | None = Field(default=None, description="Minecraft 版本")
    username: str | None = Field(default=None, description="服务器分配的用户名")
    uuid: str | None = Field(default=None, description="Minecraft UUID")
    live_data: LiveData = Field(..., alias="liveData", description="动态数据")


class CreatePlayerRequest(_WireModel):
    """``POST /players`` 请求体。"""

    name: str
    password: str | None = None
    auth_method: AuthMethod = Field(default="offline", alias="authMethod")


class ConnectRequest(_WireModel):
    """``POST /players/{id}/connect`` 请求体。"""

    server: str
    version: str | None = None
    brand: str | None = None


class ChatRequest(_WireModel):
    """``POST /players/{id}/chat`` 请求体。"""

    message: str


def to_wire(model: BaseModel) -> dict[str, Any]:
    """序列化请求体：使用别名并去掉值为 None 的字段。"""
    return model.model_dump(by_alias=True, exclude_none=True)


def parse_snapshot(model: type[_M], data: Any) -> _M:
    """校验接口返回的数据，失败时抛出 ``ProtocolError``。"""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ProtocolError(f"{model.__name__} 结构错误: {e.error_count()} 处") from e
