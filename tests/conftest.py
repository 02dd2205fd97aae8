"""
tests.conftest
~~~~~~~~~~~~~~

共享 pytest fixtures —— mock 掉请求/响应传输，推送通道使用未连接的真实
``PushChannel``：入站事件通过 ``dispatch()`` 注入，出站信号从出站队列读取，
使单元测试可在无网络环境下快速运行。
"""
from __future__ import annotations

import json
import os
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

# ── 在所有测试导入前设置环境变量 ─────────────────────────────────────
os.environ.setdefault("ENVIRONMENT", "test")  # 激活 .env.test 配置

from alt_manager.core.settings import Settings  # noqa: E402
from alt_manager.services.client import AltManager  # noqa: E402
from alt_manager.services.push_channel import PushChannel  # noqa: E402

BOB_ID: str = "a-b-c-d-e"

BOB: dict[str, Any] = {
    "id": BOB_ID,
    "name": "bob",
    "authMethod": "offline",
    "lastOnline": None,
}

BOB_LIVE: dict[str, Any] = {
    "health": 20,
    "hunger": 18,
    "ping": 40,
    "gameMode": "survival",
    "coordinates": [0, 64, 0],
}

BOB_SESSION: dict[str, Any] = {
    "server": "mc.example.com",
    "version": "1.20.4",
    "username": "bob",
    "uuid": "069a79f4-44e9-4726-a5be-fca90e38aaf5",
    "liveData": BOB_LIVE,
}


def sent_frames(channel: PushChannel) -> list[tuple[str, list[Any]]]:
    """取出推送通道出站队列中尚未发送的帧，返回 ``(event, args)`` 列表。"""
    frames: list[tuple[str, list[Any]]] = []
    while not channel._outbox.empty():
        raw = channel._outbox.get_nowait()
        if raw is None:
            continue
        message = json.loads(raw)
        frames.append((message["event"], message["args"]))
    return frames


@pytest.fixture()
def channel() -> PushChannel:
    """未连接的推送通道。"""
    return PushChannel("ws://alt-manager.test/ws")


@pytest.fixture()
def transport() -> MagicMock:
    """mock 的 ``HttpTransport``，``perform`` 默认返回 None。"""
    mock = MagicMock()
    mock.perform = AsyncMock(return_value=None)
    mock.aclose = AsyncMock()
    return mock


@pytest.fixture()
def manager(transport: MagicMock, channel: PushChannel) -> AltManager:
    """接入 mock 传输与本地推送通道的客户端。"""
    return AltManager(
        "http://alt-manager.test",
        transport=transport,
        channel=channel,
        settings=Settings(ENVIRONMENT="test", PUSH_QUEUE_SIZE=64),
    )


@pytest.fixture()
def frames() -> Any:
    """返回 ``sent_frames`` 辅助函数。"""
    return sent_frames


@pytest.fixture()
def bob() -> dict[str, Any]:
    """离线玩家 bob 的快照。"""
    return dict(BOB)


@pytest.fixture()
def bob_live() -> dict[str, Any]:
    """bob 连接后的初始动态数据。"""
    return dict(BOB_LIVE)


@pytest.fixture()
def bob_session() -> dict[str, Any]:
    """``POST /players/{id}/connect`` 返回的连接快照。"""
    return dict(BOB_SESSION)
