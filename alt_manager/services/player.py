"""
alt_manager.services.player
~~~~~~~~~~~~~~~~~~~~~~~~~~~

在线玩家 —— 已认证并连接到服务器的玩家会话。

``Player`` 是其动态数据（``LiveData``）的唯一修改者：
  - 构造时立即通过推送通道发送 ``subscribe(id)``，并只接收本玩家的推送
  - 每条推送进入本玩家专属的 ``asyncio.Queue``，由单个 worker 协程按序处理，
    保证“读取 → 比较 → 替换”对单条推送是原子的
  - 每条被接受的推送先比较、逐字段通知、再聚合通知，最后才替换状态；
    因此通知期间通过属性读到的仍是旧状态，新值在通知对象上

状态机：SUBSCRIBING → ACTIVE → DISCONNECTED（终态，之后的推送一律忽略）。
进入终态的途径：本地 ``disconnect()``、推送通道的 ``playerDisconnect(id)``、
被同一客户端的新会话替代、客户端关闭或推送通道断开；每种途径都会发出
一次 ``disconnected`` 通知。
"""
from __future__ import annotations

import asyncio
import inspect
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal

from alt_manager.core.errors import ProtocolError, TransportError
from alt_manager.core.logging import get_logger
from alt_manager.schemas.events import (
    ChatMessage,
    Disconnected,
    DisconnectReason,
    PlayerEvent,
    StateChange,
)
from alt_manager.schemas.player import (
    AuthMethod,
    ChatRequest,
    GameMode,
    LiveData,
    LiveDataUpdate,
    PlayerId,
    PlayerSnapshot,
    SessionSnapshot,
    parse_snapshot,
    to_wire,
)
from alt_manager.services.change_detector import apply_update, diff

if TYPE_CHECKING:
    from alt_manager.services.client import AltManager
    from alt_manager.services.offline_player import OfflinePlayer

logger = get_logger(__name__)

Listener = Callable[[Any], Any]


class PlayerState(str, Enum):
    """在线玩家会话状态。"""

    SUBSCRIBING = "subscribing"
    ACTIVE = "active"
    DISCONNECTED = "disconnected"


class Player:
    """一个已认证、已连接到服务器的玩家。

    Attributes:
        offline_player: 本玩家的身份（只读反向引用，从不通过它修改身份）。
        server: 所连接的服务器地址（列表快照中可能缺失）。
        version: 玩家的 Minecraft 版本。
        username: 服务器分配的用户名。
        uuid: 服务器分配的 Minecraft UUID（可能为 None）。
        state: 当前会话状态。
        online: 在线玩家恒为 True。
    """

    online: Literal[True] = True

    def __init__(
        self,
        offline_player: OfflinePlayer,
        server: str | None,
        version: str | None,
        username: str | None,
        uuid: str | None,
        live_data: LiveData,
    ) -> None:
        """构造在线玩家并订阅其推送。必须在运行中的事件循环内调用。

        Raises:
            TransportError: 推送通道已关闭，无法发送订阅信号。
        """
        loop = asyncio.get_running_loop()

        self.offline_player = offline_player
        self.server = server
        self.version = version
        self.username = username
        self.uuid = uuid
        self.state: PlayerState = PlayerState.SUBSCRIBING

        self._live_data: LiveData = live_data
        # 非 None 时，worker 退出前以此原因发出 disconnected
        self._end_reason: DisconnectReason | None = None
        self._listeners: dict[PlayerEvent, list[Listener]] = defaultdict(list)
        # None 为唤醒信号，其余为 (kind, args)
        self._queue: asyncio.Queue[tuple[str, tuple[Any, ...]] | None] = asyncio.Queue(
            maxsize=self.client.settings.PUSH_QUEUE_SIZE,
        )

        channel = self.client.channel
        channel.emit("subscribe", self.id)
        self.client._attach(self)
        channel.on("playerData", self._on_data)
        channel.on("playerDisconnect", self._on_disconnect)
        channel.on("playerMessage", self._on_message)
        self._worker: asyncio.Task[None] = loop.create_task(self._process_loop())

        # 构造参数中的初始快照即满足 ACTIVE
        self.state = PlayerState.ACTIVE
        logger.info("已订阅玩家推送 | id=%s | server=%s", self.id, server)

    @classmethod
    def from_snapshot(
        cls,
        offline_player: OfflinePlayer,
        snapshot: SessionSnapshot | PlayerSnapshot,
    ) -> Player:
        """由连接快照或带 ``liveData`` 的玩家快照构造在线玩家。"""
        if snapshot.live_data is None:
            raise ProtocolError(f"玩家 {offline_player.id} 的快照缺少 liveData")
        return cls(
            offline_player,
            server=snapshot.server,
            version=snapshot.version,
            username=snapshot.username,
            uuid=snapshot.uuid,
            live_data=snapshot.live_data,
        )

    # ── 身份（委托给 offline_player） ─────────────────────────────────

    @property
    def client(self) -> AltManager:
        """获取此数据的 ``AltManager`` 客户端。"""
        return self.offline_player.client

    @property
    def id(self) -> PlayerId:
        return self.offline_player.id

    @property
    def name(self) -> str:
        return self.offline_player.name

    @property
    def auth_method(self) -> AuthMethod:
        return self.offline_player.auth_method

    @property
    def last_online(self) -> datetime | None:
        return self.offline_player.last_online

    # ── 动态数据 ──────────────────────────────────────────────────────

    @property
    def live_data(self) -> LiveData:
        """最近一次被接受的完整动态数据。"""
        return self._live_data

    @property
    def health(self) -> float:
        """当前生命值（0-20）。"""
        return self._live_data.health

    @property
    def hunger(self) -> float:
        """当前饱食度（0-20）。"""
        return self._live_data.hunger

    @property
    def ping(self) -> float:
        """当前延迟（毫秒）。"""
        return self._live_data.ping

    @property
    def game_mode(self) -> GameMode:
        """当前游戏模式。"""
        return self._live_data.game_mode

    @property
    def coordinates(self) -> tuple[float, float, float]:
        """当前坐标 (x, y, z)。"""
        return self._live_data.coordinates

    # ── 通知注册 ──────────────────────────────────────────────────────

    def on(self, event: PlayerEvent | str, listener: Listener) -> None:
        """注册通知监听器。

        监听器可以是普通函数或协程函数；协程由 worker 依次 await，
        因此同一条推送产生的通知严格按顺序送达。

        Raises:
            ValueError: 未知的通知标签。
        """
        self._listeners[PlayerEvent(event)].append(listener)

    def off(self, event: PlayerEvent | str, listener: Listener) -> None:
        """移除通知监听器；未注册时静默忽略。"""
        listeners = self._listeners.get(PlayerEvent(event))
        if listeners and listener in listeners:
            listeners.remove(listener)

    # ── 操作 ──────────────────────────────────────────────────────────

    async def send(self, message: str) -> None:
        """发送聊天消息或执行命令。不修改任何本地状态。

        Raises:
            HttpError: 远端调用失败。
        """
        await self.client.transport.perform(
            f"/players/{self.id}/chat", "POST", to_wire(ChatRequest(message=message)),
        )

    async def disconnect(self) -> None:
        """断开与当前服务器的连接。

        本地取消订阅不依赖远端确认：即使 ``POST /disconnect`` 失败，
        ``unsubscribe`` 信号也已发出，会话也已进入终态。
        已被新会话替代的旧会话不发送 ``unsubscribe``，订阅归新会话所有。

        Raises:
            HttpError: 远端调用失败（本地状态仍为 DISCONNECTED）。
        """
        was_active = self.state is not PlayerState.DISCONNECTED
        self._detach()
        if self.client.live_player(self.id) is None:
            try:
                self.client.channel.emit("unsubscribe", self.id)
            except TransportError as e:
                logger.warning("取消订阅信号发送失败 | id=%s | %s", self.id, e)

        try:
            await self.client.transport.perform(f"/players/{self.id}/disconnect", "POST")
        finally:
            if was_active:
                logger.info("玩家已断开 | id=%s", self.id)
                await self._notify(
                    PlayerEvent.DISCONNECTED,
                    Disconnected(player_id=self.id, reason="local"),
                )

    async def drain(self) -> None:
        """等待队列中所有已接收的推送处理完毕。

        会话已进入终态时，等待 worker 退出（包括发出 ``disconnected`` 通知）。
        """
        if self._worker.done():
            return
        if self.state is PlayerState.DISCONNECTED:
            await self._worker
            return
        await self._queue.join()

    # ── 推送通道监听器（同步，只负责入队） ────────────────────────────

    def _on_data(self, player_id: PlayerId, data: Any = None, *_: Any) -> None:
        if player_id == self.id:
            self._enqueue("data", data)

    def _on_disconnect(self, player_id: PlayerId, *_: Any) -> None:
        if player_id == self.id:
            self._enqueue("disconnect")

    def _on_message(
        self, player_id: PlayerId, payload: Any = None, position: str | None = None, *_: Any,
    ) -> None:
        if player_id == self.id:
            self._enqueue("message", payload, position)

    def _enqueue(self, kind: str, *args: Any) -> None:
        if self.state is PlayerState.DISCONNECTED:
            return
        try:
            self._queue.put_nowait((kind, args))
        except asyncio.QueueFull:
            logger.warning("推送队列已满，丢弃推送 | id=%s | kind=%s", self.id, kind)

    # ── worker ────────────────────────────────────────────────────────

    async def _process_loop(self) -> None:
        while self.state is not PlayerState.DISCONNECTED:
            item = await self._queue.get()
            try:
                if item is not None:
                    await self._handle(*item)
            except Exception as e:
                logger.error("推送处理异常 | id=%s | %s", self.id, e, exc_info=True)
            finally:
                self._queue.task_done()

        # 终态后丢弃剩余推送，避免 drain() 永久等待
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()

        if self._end_reason is not None:
            await self._notify(
                PlayerEvent.DISCONNECTED,
                Disconnected(player_id=self.id, reason=self._end_reason),
            )

    async def _handle(self, kind: str, args: tuple[Any, ...]) -> None:
        if self.state is PlayerState.DISCONNECTED:
            return
        if kind == "data":
            try:
                update = parse_snapshot(LiveDataUpdate, args[0])
            except ProtocolError as e:
                logger.warning("拒绝格式错误的推送，保留原状态 | id=%s | %s", self.id, e)
                return
            await self._apply(update)
        elif kind == "message":
            payload, position = args
            await self._notify(
                PlayerEvent.CHAT,
                ChatMessage(player_id=self.id, payload=payload, position=position),
            )
        elif kind == "disconnect":
            self._detach()
            logger.info("玩家被远端断开 | id=%s", self.id)
            await self._notify(
                PlayerEvent.DISCONNECTED,
                Disconnected(player_id=self.id, reason="remote"),
            )

    async def _apply(self, update: LiveDataUpdate) -> None:
        """比较 → 逐字段通知 → 聚合通知 → 替换状态。"""
        previous = self._live_data
        current = apply_update(previous, update)
        changes = diff(previous, current)
        if not changes:
            return

        for change in changes:
            await self._notify(change.event, change)
        await self._notify(
            PlayerEvent.CHANGED,
            StateChange(previous=previous, current=current, changes=changes),
        )
        # 通知期间若已断开，状态冻结在断开时刻
        if self.state is not PlayerState.DISCONNECTED:
            self._live_data = current

    async def _notify(self, event: PlayerEvent, payload: Any) -> None:
        for listener in list(self._listeners.get(event, ())):
            try:
                result = listener(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    "通知监听器异常 | id=%s | event=%s | %s",
                    self.id, event.value, e, exc_info=True,
                )

    def _end(self, reason: DisconnectReason) -> None:
        """由客户端终止会话（``superseded`` / ``closed``）。

        立即进入终态；已入队的推送被丢弃，``disconnected`` 通知由 worker
        在退出前发出。不发送 ``unsubscribe``，也不调用远端接口。
        """
        if self.state is PlayerState.DISCONNECTED:
            return
        self._end_reason = reason
        logger.info("玩家会话结束 | id=%s | reason=%s", self.id, reason)
        self._detach()

    def _detach(self) -> None:
        """进入终态：移除推送监听器、注销、唤醒 worker 使其退出。"""
        if self.state is PlayerState.DISCONNECTED:
            return
        self.state = PlayerState.DISCONNECTED

        channel = self.client.channel
        channel.off("playerData", self._on_data)
        channel.off("playerDisconnect", self._on_disconnect)
        channel.off("playerMessage", self._on_message)
        self.client._forget(self)
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            pass  # 队列非空时 worker 未阻塞在 get()，会自行检查状态退出
