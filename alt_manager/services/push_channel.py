"""
alt_manager.services.push_channel
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

推送通道 —— 每个客户端实例持有一条持久的 WebSocket 连接。

线路帧为 JSON 文本，双向格式一致::

    {"event": "playerData", "args": ["<id>", {...}]}

接收与发送分别运行在独立的协程中：
  - ``_receive_loop`` 按到达顺序把事件同步分发给监听器
  - ``_send_loop`` 消费出站队列，因此 ``emit()`` 非阻塞，
    在 ``open()`` 之前发出的信号会在连接建立后补发
"""
from __future__ import annotations

import asyncio
import json
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from alt_manager.core.errors import TransportError
from alt_manager.core.logging import get_logger

logger = get_logger(__name__)

Listener = Callable[..., Any]

# 本地事件：连接建立 / 断开时分发给监听器
CONNECT_EVENT: str = "connect"
DISCONNECT_EVENT: str = "disconnect"


class PushChannel:
    """基于 ``websockets`` 的双向事件通道。

    Attributes:
        url: WebSocket 地址。
    """

    def __init__(self, url: str) -> None:
        self.url = url
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._outbox: asyncio.Queue[str | None] = asyncio.Queue()
        self._ws: ClientConnection | None = None
        self._tasks: list[asyncio.Task[None]] = []
        self._closed: bool = False

    # ── 监听器注册 ────────────────────────────────────────────────────

    def on(self, event: str, listener: Listener) -> None:
        """注册监听器，收到 ``event`` 时以帧内 ``args`` 调用。"""
        self._listeners[event].append(listener)

    def off(self, event: str, listener: Listener) -> None:
        """移除监听器；未注册时静默忽略。"""
        listeners = self._listeners.get(event)
        if listeners and listener in listeners:
            listeners.remove(listener)

    # ── 出站 ──────────────────────────────────────────────────────────

    def emit(self, event: str, *args: Any) -> None:
        """发送一个信号（非阻塞，进入出站队列）。

        Raises:
            TransportError: 通道已关闭。
        """
        if self._closed:
            raise TransportError(f"推送通道已关闭，无法发送 {event}")
        self._outbox.put_nowait(json.dumps({"event": event, "args": list(args)}))

    # ── 生命周期 ──────────────────────────────────────────────────────

    @property
    def connected(self) -> bool:
        """连接是否已建立且未关闭。"""
        return self._ws is not None and not self._closed

    async def open(self) -> None:
        """建立连接并启动收发协程。

        Raises:
            TransportError: 无法连接到推送通道。
        """
        if self._closed:
            raise TransportError("推送通道已关闭")
        if self._ws is not None:
            return
        try:
            self._ws = await connect(self.url)
        except (OSError, TimeoutError, WebSocketException) as e:
            raise TransportError(f"无法连接推送通道 {self.url}: {e}") from e

        logger.info("推送通道已连接 | url=%s", self.url)
        self._tasks = [
            asyncio.create_task(self._receive_loop(self._ws)),
            asyncio.create_task(self._send_loop(self._ws)),
        ]
        self.dispatch(CONNECT_EVENT)

    async def close(self) -> None:
        """关闭连接并停止收发协程（幂等）。"""
        if self._closed:
            return
        self._closed = True
        await self._outbox.put(None)  # 结束信号给发送协程

        if self._ws is not None:
            await self._ws.close()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self._ws = None
        logger.info("推送通道已关闭 | url=%s", self.url)
        self.dispatch(DISCONNECT_EVENT)

    # ── 收发循环 ──────────────────────────────────────────────────────

    async def _receive_loop(self, ws: ClientConnection) -> None:
        try:
            async for frame in ws:
                if isinstance(frame, bytes):
                    frame = frame.decode("utf-8", errors="replace")
                self.handle_frame(frame)
        except ConnectionClosed as e:
            logger.warning("推送通道被远端关闭 | code=%s", e.rcvd.code if e.rcvd else None)
        finally:
            if not self._closed:
                self._closed = True
                self._outbox.put_nowait(None)
                self.dispatch(DISCONNECT_EVENT)

    async def _send_loop(self, ws: ClientConnection) -> None:
        while True:
            frame = await self._outbox.get()
            if frame is None:
                break
            try:
                await ws.send(frame)
            except ConnectionClosed:
                logger.warning("推送通道已断开，丢弃出站帧: %s", frame[:80])
                break

    # ── 入站分发 ──────────────────────────────────────────────────────

    def handle_frame(self, frame: str) -> None:
        """解析一条入站帧并分发；格式错误的帧记录日志后丢弃。"""
        try:
            message = json.loads(frame)
        except json.JSONDecodeError:
            logger.warning("丢弃非 JSON 推送帧: %s", frame[:80])
            return

        if not isinstance(message, dict) or not isinstance(message.get("event"), str):
            logger.warning("丢弃缺少事件名的推送帧: %s", frame[:80])
            return
        args = message.get("args", [])
        if not isinstance(args, list):
            logger.warning("丢弃参数格式错误的推送帧 | event=%s", message["event"])
            return

        self.dispatch(message["event"], *args)

    def dispatch(self, event: str, *args: Any) -> None:
        """按注册顺序同步调用 ``event`` 的所有监听器。"""
        for listener in list(self._listeners.get(event, ())):
            try:
                listener(*args)
            except Exception as e:
                logger.error("推送监听器异常 | event=%s | %s", event, e, exc_info=True)
