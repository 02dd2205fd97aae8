"""
alt_manager.services.offline_player
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

离线玩家 —— 已创建但尚未连接到服务器的玩家身份（不可变快照）。

重连或状态变化会产生新的实例，而不是修改已有实例。
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Literal

from alt_manager.core.logging import get_logger
from alt_manager.schemas.player import (
    AuthMethod,
    ConnectRequest,
    PlayerId,
    PlayerSnapshot,
    SessionSnapshot,
    parse_snapshot,
    to_wire,
)
from alt_manager.services.player import Player

if TYPE_CHECKING:
    from alt_manager.services.client import AltManager

logger = get_logger(__name__)


@dataclass(frozen=True)
class OfflinePlayer:
    """一个已创建的玩家身份。

    Attributes:
        client: 获取此数据的 ``AltManager`` 客户端。
        id: 内部玩家 ID（不是 Minecraft UUID）。
        name: 用户名（Mojang / 离线模式）或邮箱（Microsoft 账号）。
        auth_method: 登录方式。
        last_online: 上次在线时间，从未在线为 None。
        online: 离线玩家恒为 False。
    """

    client: AltManager = field(repr=False, compare=False)
    id: PlayerId
    name: str
    auth_method: AuthMethod
    last_online: datetime | None = None
    online: Literal[False] = field(default=False, init=False)

    @classmethod
    def from_snapshot(cls, client: AltManager, snapshot: PlayerSnapshot) -> OfflinePlayer:
        """由接口返回的玩家快照构造身份。"""
        return cls(
            client=client,
            id=snapshot.id,
            name=snapshot.name,
            auth_method=snapshot.auth_method,
            last_online=snapshot.last_online,
        )

    async def connect(
        self,
        server: str,
        version: str | None = None,
        brand: str | None = None,
    ) -> Player:
        """连接到服务器，返回在线玩家。

        Args:
            server: 服务器地址。
            version: 服务器版本；省略时由服务端自动探测。
            brand: 客户端标识。

        Raises:
            HttpError: 远端调用失败（服务器不可达、认证被拒等），不重试。
            ProtocolError: 响应缺少连接快照字段。
        """
        body = to_wire(ConnectRequest(server=server, version=version, brand=brand))
        data = await self.client.transport.perform(
            f"/players/{self.id}/connect", "POST", body,
        )
        snapshot = parse_snapshot(SessionSnapshot, data)
        logger.info("玩家已连接 | id=%s | server=%s", self.id, snapshot.server)
        return Player.from_snapshot(self, snapshot)

    async def delete(self) -> None:
        """删除此玩家。"""
        await self.client.transport.perform(f"/players/{self.id}", "DELETE")
        logger.info("玩家已删除 | id=%s", self.id)
