"""
alt_manager.services.client
~~~~~~~~~~~~~~~~~~~~~~~~~~~

Alt manager API 客户端 —— 顶层入口。

持有请求/响应传输（``HttpTransport``）和推送通道（``PushChannel``），
负责玩家身份的列出 / 获取 / 创建，并维护“每个玩家 ID 至多一个在线会话”
的注册表。

推荐以异步上下文管理器的方式使用::

    async with AltManager("http://localhost:8080") as manager:
        player = await manager.get_player(player_id)
"""
from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from functools import partial
from types import TracebackType
from typing import Any, Union

from alt_manager.core.logging import get_logger
from alt_manager.core.settings import Settings, get_settings, socket_url_for
from alt_manager.schemas.events import CHANNEL_EVENTS, ClientEvent
from alt_manager.schemas.player import (
    AuthMethod,
    CreatePlayerRequest,
    PlayerId,
    PlayerSnapshot,
    parse_snapshot,
    to_wire,
)
from alt_manager.services.offline_player import OfflinePlayer
from alt_manager.services.player import Player
from alt_manager.services.push_channel import DISCONNECT_EVENT, PushChannel
from alt_manager.services.transport import HttpTransport

logger = get_logger(__name__)

AnyPlayer = Union[OfflinePlayer, Player]
"""玩家的两种状态；以 ``online`` 区分。"""

ClientListener = Callable[..., Any]


class AltManager:
    """Alt manager API 客户端。

    Attributes:
        base_url: API 基础地址。
        settings: 本客户端使用的配置。
        transport: 请求/响应传输。
        channel: 推送通道（整个客户端共享一条连接）。
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        transport: HttpTransport | None = None,
        channel: PushChannel | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings: Settings = settings or get_settings()
        self.base_url: str = base_url or self.settings.BASE_URL
        self.transport = transport or HttpTransport(
            self.base_url, timeout=self.settings.HTTP_TIMEOUT,
        )
        self.channel = channel or PushChannel(
            socket_url_for(self.base_url, self.settings.SOCKET_PATH),
        )
        self._listeners: dict[ClientEvent, list[ClientListener]] = defaultdict(list)
        self._live: dict[PlayerId, Player] = {}

        for name, event in CHANNEL_EVENTS.items():
            self.channel.on(name, partial(self._forward, event))
        self.channel.on(DISCONNECT_EVENT, self._on_channel_closed)

    # ── 生命周期 ──────────────────────────────────────────────────────

    async def open(self) -> None:
        """打开推送通道。

        Raises:
            TransportError: 无法连接推送通道。
        """
        await self.channel.open()

    async def close(self) -> None:
        """释放所有资源：结束所有在线玩家会话，关闭推送通道与 HTTP 连接池。

        每个在线玩家收到 ``disconnected``（reason=``closed``）；
        不会对任何玩家发起远端断开调用。
        """
        players = list(self._live.values())
        for player in players:
            player._end("closed")
        for player in players:
            await player.drain()
        await self.channel.close()
        await self.transport.aclose()
        logger.info("客户端已关闭 | base_url=%s", self.base_url)

    async def __aenter__(self) -> AltManager:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ── 客户端级通知 ──────────────────────────────────────────────────

    def on(self, event: ClientEvent | str, listener: ClientListener) -> None:
        """注册客户端级通知监听器（同步调用，参数与推送通道事件一致）。"""
        self._listeners[ClientEvent(event)].append(listener)

    def off(self, event: ClientEvent | str, listener: ClientListener) -> None:
        """移除客户端级通知监听器；未注册时静默忽略。"""
        listeners = self._listeners.get(ClientEvent(event))
        if listeners and listener in listeners:
            listeners.remove(listener)

    def _on_channel_closed(self) -> None:
        """推送通道断开（含远端关闭）：所有在线玩家会话随之结束。"""
        players = list(self._live.values())
        if players:
            logger.warning("推送通道已断开，结束 %d 个在线玩家会话", len(players))
        for player in players:
            player._end("closed")

    def _forward(self, event: ClientEvent, *args: Any) -> None:
        for listener in list(self._listeners.get(event, ())):
            try:
                listener(*args)
            except Exception as e:
                logger.error("客户端监听器异常 | event=%s | %s", event.value, e, exc_info=True)

    # ── 玩家 ──────────────────────────────────────────────────────────

    async def list_players(self) -> list[AnyPlayer]:
        """列出所有玩家，保持服务端返回的顺序。

        在线且携带 ``liveData`` 的条目返回 ``Player``，其余返回 ``OfflinePlayer``。
        已有在线会话的玩家返回该会话本身，不会新建订阅。
        """
        data = await self.transport.perform("/players")
        if not isinstance(data, list):
            data = [data]
        return [self._from_snapshot(parse_snapshot(PlayerSnapshot, item)) for item in data]

    async def get_player(self, player_id: PlayerId) -> AnyPlayer:
        """按内部 ID 获取玩家。

        Args:
            player_id: 内部玩家 ID。
        """
        data = await self.transport.perform(f"/players/{player_id}")
        return self._from_snapshot(parse_snapshot(PlayerSnapshot, data))

    async def create_player(
        self,
        name: str,
        password: str | None = None,
        auth_method: AuthMethod = "offline",
    ) -> OfflinePlayer:
        """创建新玩家。新玩家从不处于在线状态。

        Args:
            name: 用户名（Mojang / 离线模式）或邮箱（Microsoft 账号）。
            password: 密码，仅 Mojang 账号需要。
            auth_method: 登录方式，默认 ``offline``。
        """
        body = to_wire(
            CreatePlayerRequest(name=name, password=password, auth_method=auth_method),
        )
        data = await self.transport.perform("/players", "POST", body)
        player = OfflinePlayer.from_snapshot(self, parse_snapshot(PlayerSnapshot, data))
        logger.info("玩家已创建 | id=%s | auth=%s", player.id, player.auth_method)
        return player

    def live_player(self, player_id: PlayerId) -> Player | None:
        """返回当前订阅中的在线玩家，没有则为 None。"""
        return self._live.get(player_id)

    def _from_snapshot(self, snapshot: PlayerSnapshot) -> AnyPlayer:
        offline_player = OfflinePlayer.from_snapshot(self, snapshot)
        if not snapshot.online or snapshot.live_data is None:
            return offline_player
        live = self._live.get(snapshot.id)
        if live is not None:
            return live
        return Player.from_snapshot(offline_player, snapshot)

    # ── 在线玩家注册表（由 Player 调用） ──────────────────────────────

    def _attach(self, player: Player) -> None:
        """登记新的在线玩家。

        同一 ID 的旧会话以 ``superseded`` 结束（不发送取消订阅，订阅归新会话）。
        """
        previous = self._live.get(player.id)
        if previous is not None and previous is not player:
            previous._end("superseded")
        self._live[player.id] = player

    def _forget(self, player: Player) -> None:
        if self._live.get(player.id) is player:
            del self._live[player.id]
