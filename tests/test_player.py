"""
tests.test_player
~~~~~~~~~~~~~~~~~

在线玩家（``Player``）单元测试：订阅、推送处理、通知顺序与断开。

推送通过 ``channel.dispatch()`` 注入，``await player.drain()`` 等待 worker
处理完毕后再断言。
"""
from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from alt_manager.core.errors import HttpError, TransportError
from alt_manager.schemas.events import (
    ChatMessage,
    Disconnected,
    FieldChange,
    PlayerEvent,
    StateChange,
)
from alt_manager.services.client import AltManager
from alt_manager.services.offline_player import OfflinePlayer
from alt_manager.services.player import Player, PlayerState
from alt_manager.services.push_channel import PushChannel


def make_identity(manager: AltManager, player_id: str = "a-b-c-d-e") -> OfflinePlayer:
    return OfflinePlayer(client=manager, id=player_id, name="bob", auth_method="offline")


async def connect_bob(
    manager: AltManager, transport: MagicMock, bob_session: dict[str, Any],
) -> Player:
    """以 mock 的连接响应连接 bob，返回在线玩家。"""
    transport.perform.return_value = bob_session
    player = await make_identity(manager).connect("mc.example.com")
    transport.perform.reset_mock()
    transport.perform.return_value = None
    return player


# ── 订阅与初始状态 ────────────────────────────────────────────────────

class TestSubscription:
    """测试构造时的订阅与初始快照。"""

    @pytest.mark.asyncio
    async def test_connect_exposes_snapshot_values(
        self, manager: AltManager, transport: MagicMock, bob_session: dict[str, Any],
    ) -> None:
        """connect 后立即读取属性，得到的是连接响应中的值而非默认值。"""
        player = await connect_bob(manager, transport, bob_session)

        assert player.state is PlayerState.ACTIVE
        assert player.online is True
        assert player.health == 20
        assert player.hunger == 18
        assert player.ping == 40
        assert player.game_mode == "survival"
        assert player.coordinates == (0, 64, 0)
        assert player.server == "mc.example.com"
        assert player.username == "bob"

    @pytest.mark.asyncio
    async def test_construction_emits_subscribe(
        self, manager: AltManager, transport: MagicMock,
        channel: PushChannel, bob_session: dict[str, Any], frames: Any,
    ) -> None:
        """构造在线玩家时立即发出 subscribe(id)，并登记到客户端注册表。"""
        player = await connect_bob(manager, transport, bob_session)

        assert frames(channel) == [("subscribe", ["a-b-c-d-e"])]
        assert manager.live_player("a-b-c-d-e") is player

    @pytest.mark.asyncio
    async def test_identity_fields_are_delegated(
        self, manager: AltManager, transport: MagicMock, bob_session: dict[str, Any],
    ) -> None:
        """身份字段与客户端引用委托给 offline_player。"""
        player = await connect_bob(manager, transport, bob_session)

        assert player.id == "a-b-c-d-e"
        assert player.name == "bob"
        assert player.auth_method == "offline"
        assert player.last_online is None
        assert player.client is manager

    @pytest.mark.asyncio
    async def test_subscribe_on_closed_channel_raises(
        self, manager: AltManager, transport: MagicMock,
        channel: PushChannel, bob_session: dict[str, Any],
    ) -> None:
        """推送通道已关闭时无法订阅，不会留下注册记录。"""
        await channel.close()

        with pytest.raises(TransportError):
            await connect_bob(manager, transport, bob_session)
        assert manager.live_player("a-b-c-d-e") is None


# ── 推送处理 ──────────────────────────────────────────────────────────

class TestPushHandling:
    """测试推送 → 比较 → 通知 → 替换。"""

    @pytest.mark.asyncio
    async def test_health_push_notifies_previous_value(
        self, manager: AltManager, transport: MagicMock,
        channel: PushChannel, bob_session: dict[str, Any], bob_live: dict[str, Any],
    ) -> None:
        """health 从 20 变为 15：通知携带旧值 20，属性随后变为 15。"""
        player = await connect_bob(manager, transport, bob_session)
        received: list[FieldChange] = []
        player.on(PlayerEvent.HEALTH_CHANGED, received.append)

        channel.dispatch("playerData", "a-b-c-d-e", {**bob_live, "health": 15})
        await player.drain()

        assert len(received) == 1
        assert received[0].previous == 20
        assert received[0].current == 15
        assert player.health == 15

    @pytest.mark.asyncio
    async def test_field_notifications_precede_aggregate_and_see_old_state(
        self, manager: AltManager, transport: MagicMock,
        channel: PushChannel, bob_session: dict[str, Any], bob_live: dict[str, Any],
    ) -> None:
        """逐字段通知先于聚合通知；通知期间属性仍为旧状态。"""
        player = await connect_bob(manager, transport, bob_session)
        order: list[tuple[str, float]] = []
        player.on("health_changed", lambda c: order.append(("health", player.health)))
        player.on("ping_changed", lambda c: order.append(("ping", player.ping)))
        player.on("changed", lambda c: order.append(("changed", player.health)))

        channel.dispatch(
            "playerData", "a-b-c-d-e", {**bob_live, "health": 10, "ping": 99},
        )
        await player.drain()

        assert order == [("health", 20), ("ping", 40), ("changed", 20)]
        assert (player.health, player.ping) == (10, 99)

    @pytest.mark.asyncio
    async def test_aggregate_carries_previous_and_current(
        self, manager: AltManager, transport: MagicMock,
        channel: PushChannel, bob_session: dict[str, Any], bob_live: dict[str, Any],
    ) -> None:
        """聚合通知携带完整的前后状态与变化列表。"""
        player = await connect_bob(manager, transport, bob_session)
        before = player.live_data
        received: list[StateChange] = []
        player.on(PlayerEvent.CHANGED, received.append)

        channel.dispatch("playerData", "a-b-c-d-e", {**bob_live, "gameMode": "creative"})
        await player.drain()

        assert received[0].previous == before
        assert received[0].current.game_mode == "creative"
        assert [c.field for c in received[0].changes] == ["game_mode"]

    @pytest.mark.asyncio
    async def test_sequential_pushes_leave_last_state(
        self, manager: AltManager, transport: MagicMock,
        channel: PushChannel, bob_session: dict[str, Any], bob_live: dict[str, Any],
    ) -> None:
        """n 条连续推送后，属性精确反映最后一条推送。"""
        player = await connect_bob(manager, transport, bob_session)

        for i in range(10):
            channel.dispatch(
                "playerData", "a-b-c-d-e",
                {**bob_live, "health": 20 - i, "coordinates": [i, 64, -i]},
            )
        channel.dispatch(
            "playerData", "a-b-c-d-e",
            {**bob_live, "health": 5, "hunger": 3, "gameMode": "adventure"},
        )
        await player.drain()

        assert player.health == 5
        assert player.hunger == 3
        assert player.game_mode == "adventure"
        assert player.coordinates == (0, 64, 0)

    @pytest.mark.asyncio
    async def test_unchanged_push_emits_nothing(
        self, manager: AltManager, transport: MagicMock,
        channel: PushChannel, bob_session: dict[str, Any], bob_live: dict[str, Any],
    ) -> None:
        """与当前状态相同的推送不产生任何通知。"""
        player = await connect_bob(manager, transport, bob_session)
        received: list[Any] = []
        player.on(PlayerEvent.CHANGED, received.append)

        channel.dispatch("playerData", "a-b-c-d-e", bob_live)
        await player.drain()

        assert received == []

    @pytest.mark.asyncio
    async def test_partial_push_changes_only_present_fields(
        self, manager: AltManager, transport: MagicMock,
        channel: PushChannel, bob_session: dict[str, Any],
    ) -> None:
        """缺失字段视为无变化。"""
        player = await connect_bob(manager, transport, bob_session)
        received: list[StateChange] = []
        player.on(PlayerEvent.CHANGED, received.append)

        channel.dispatch("playerData", "a-b-c-d-e", {"ping": 12})
        await player.drain()

        assert [c.field for c in received[0].changes] == ["ping"]
        assert player.ping == 12
        assert player.health == 20

    @pytest.mark.asyncio
    async def test_malformed_push_keeps_previous_state(
        self, manager: AltManager, transport: MagicMock,
        channel: PushChannel, bob_session: dict[str, Any], bob_live: dict[str, Any],
    ) -> None:
        """格式错误的推送被拒绝且不产生部分更新，后续推送照常处理。"""
        player = await connect_bob(manager, transport, bob_session)
        received: list[Any] = []
        player.on(PlayerEvent.CHANGED, received.append)

        channel.dispatch("playerData", "a-b-c-d-e", {"health": 1, "coordinates": "north"})
        channel.dispatch("playerData", "a-b-c-d-e", "not-an-object")
        await player.drain()

        assert received == []
        assert player.health == 20

        channel.dispatch("playerData", "a-b-c-d-e", {**bob_live, "health": 7})
        await player.drain()

        assert player.health == 7

    @pytest.mark.asyncio
    async def test_push_for_other_player_is_ignored(
        self, manager: AltManager, transport: MagicMock,
        channel: PushChannel, bob_session: dict[str, Any], bob_live: dict[str, Any],
    ) -> None:
        """其他玩家 ID 的推送不会影响本玩家。"""
        player = await connect_bob(manager, transport, bob_session)

        channel.dispatch("playerData", "f-g-h-i-j", {**bob_live, "health": 1})
        await player.drain()

        assert player.health == 20

    @pytest.mark.asyncio
    async def test_async_listeners_are_awaited_in_order(
        self, manager: AltManager, transport: MagicMock,
        channel: PushChannel, bob_session: dict[str, Any], bob_live: dict[str, Any],
    ) -> None:
        """协程监听器被依次 await，两条推送的通知不会交错。"""
        player = await connect_bob(manager, transport, bob_session)
        seen: list[float] = []

        async def on_health(change: FieldChange) -> None:
            seen.append(change.current)

        player.on(PlayerEvent.HEALTH_CHANGED, on_health)
        channel.dispatch("playerData", "a-b-c-d-e", {**bob_live, "health": 19})
        channel.dispatch("playerData", "a-b-c-d-e", {**bob_live, "health": 18})
        await player.drain()

        assert seen == [19, 18]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_processing(
        self, manager: AltManager, transport: MagicMock,
        channel: PushChannel, bob_session: dict[str, Any], bob_live: dict[str, Any],
    ) -> None:
        """监听器抛出异常时，其余监听器与状态替换不受影响。"""
        player = await connect_bob(manager, transport, bob_session)
        received: list[Any] = []

        def broken(change: Any) -> None:
            raise RuntimeError("boom")

        player.on(PlayerEvent.HEALTH_CHANGED, broken)
        player.on(PlayerEvent.CHANGED, received.append)
        channel.dispatch("playerData", "a-b-c-d-e", {**bob_live, "health": 3})
        await player.drain()

        assert len(received) == 1
        assert player.health == 3

    @pytest.mark.asyncio
    async def test_off_removes_listener(
        self, manager: AltManager, transport: MagicMock,
        channel: PushChannel, bob_session: dict[str, Any], bob_live: dict[str, Any],
    ) -> None:
        """off 之后不再收到通知。"""
        player = await connect_bob(manager, transport, bob_session)
        received: list[Any] = []
        player.on(PlayerEvent.HEALTH_CHANGED, received.append)
        player.off(PlayerEvent.HEALTH_CHANGED, received.append)

        channel.dispatch("playerData", "a-b-c-d-e", {**bob_live, "health": 2})
        await player.drain()

        assert received == []

    @pytest.mark.asyncio
    async def test_unknown_event_rejected(
        self, manager: AltManager, transport: MagicMock, bob_session: dict[str, Any],
    ) -> None:
        """未知的通知标签直接报错。"""
        player = await connect_bob(manager, transport, bob_session)

        with pytest.raises(ValueError):
            player.on("mana_changed", print)


# ── 聊天 ──────────────────────────────────────────────────────────────

class TestChat:
    """测试聊天消息的收发。"""

    @pytest.mark.asyncio
    async def test_player_message_forwarded_verbatim(
        self, manager: AltManager, transport: MagicMock,
        channel: PushChannel, bob_session: dict[str, Any],
    ) -> None:
        """playerMessage 原样转发为 chat 通知，不影响动态数据。"""
        player = await connect_bob(manager, transport, bob_session)
        before = player.live_data
        received: list[ChatMessage] = []
        player.on(PlayerEvent.CHAT, received.append)

        payload = {"text": "hello", "color": "yellow"}
        channel.dispatch("playerMessage", "a-b-c-d-e", payload, "chat")
        channel.dispatch("playerMessage", "f-g-h-i-j", {"text": "other"}, "chat")
        await player.drain()

        assert len(received) == 1
        assert received[0].payload == payload
        assert received[0].position == "chat"
        assert player.live_data is before

    @pytest.mark.asyncio
    async def test_send_performs_one_chat_request(
        self, manager: AltManager, transport: MagicMock, bob_session: dict[str, Any],
    ) -> None:
        """每次 send 只发起一次聊天请求，且不修改动态数据。"""
        player = await connect_bob(manager, transport, bob_session)
        before = player.live_data

        await player.send("/gamemode creative")

        transport.perform.assert_awaited_once_with(
            "/players/a-b-c-d-e/chat", "POST", {"message": "/gamemode creative"},
        )
        assert player.live_data is before

    @pytest.mark.asyncio
    async def test_send_propagates_http_error(
        self, manager: AltManager, transport: MagicMock, bob_session: dict[str, Any],
    ) -> None:
        """聊天请求失败时原样抛出 HttpError。"""
        player = await connect_bob(manager, transport, bob_session)
        transport.perform.side_effect = HttpError(409, "player is not connected")

        with pytest.raises(HttpError) as exc_info:
            await player.send("hi")
        assert exc_info.value.status == 409


# ── 断开 ──────────────────────────────────────────────────────────────

class TestDisconnect:
    """测试 ACTIVE → DISCONNECTED 的各种路径。"""

    @pytest.mark.asyncio
    async def test_disconnect_unsubscribes_and_calls_api(
        self, manager: AltManager, transport: MagicMock,
        channel: PushChannel, bob_session: dict[str, Any], frames: Any,
    ) -> None:
        """disconnect 发出 unsubscribe、调用断开接口并通知 disconnected。"""
        player = await connect_bob(manager, transport, bob_session)
        frames(channel)
        received: list[Disconnected] = []
        player.on(PlayerEvent.DISCONNECTED, received.append)

        await player.disconnect()

        assert frames(channel) == [("unsubscribe", ["a-b-c-d-e"])]
        transport.perform.assert_awaited_once_with("/players/a-b-c-d-e/disconnect", "POST")
        assert player.state is PlayerState.DISCONNECTED
        assert received[0].reason == "local"
        assert manager.live_player("a-b-c-d-e") is None

    @pytest.mark.asyncio
    async def test_push_after_disconnect_is_ignored(
        self, manager: AltManager, transport: MagicMock,
        channel: PushChannel, bob_session: dict[str, Any], bob_live: dict[str, Any],
    ) -> None:
        """断开后的推送不会修改缓存的动态数据。"""
        player = await connect_bob(manager, transport, bob_session)
        received: list[Any] = []
        player.on(PlayerEvent.CHANGED, received.append)

        await player.disconnect()
        channel.dispatch("playerData", "a-b-c-d-e", {**bob_live, "health": 1})
        await player.drain()

        assert received == []
        assert player.health == 20

    @pytest.mark.asyncio
    async def test_queued_push_dropped_when_disconnecting(
        self, manager: AltManager, transport: MagicMock,
        channel: PushChannel, bob_session: dict[str, Any], bob_live: dict[str, Any],
    ) -> None:
        """已入队但尚未处理的推送在断开后被丢弃，状态冻结在断开时刻。"""
        player = await connect_bob(manager, transport, bob_session)

        channel.dispatch("playerData", "a-b-c-d-e", {**bob_live, "health": 1})
        await player.disconnect()
        await player.drain()

        assert player.health == 20

    @pytest.mark.asyncio
    async def test_disconnect_failure_still_unsubscribes(
        self, manager: AltManager, transport: MagicMock,
        channel: PushChannel, bob_session: dict[str, Any], frames: Any,
    ) -> None:
        """远端断开失败时抛出 HttpError，但本地已取消订阅并进入终态。"""
        player = await connect_bob(manager, transport, bob_session)
        frames(channel)
        transport.perform.side_effect = HttpError(500, "internal error")

        with pytest.raises(HttpError):
            await player.disconnect()

        assert frames(channel) == [("unsubscribe", ["a-b-c-d-e"])]
        assert player.state is PlayerState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_remote_disconnect_transitions_to_terminal(
        self, manager: AltManager, transport: MagicMock,
        channel: PushChannel, bob_session: dict[str, Any], bob_live: dict[str, Any],
    ) -> None:
        """推送通道的 playerDisconnect（如被踢出）使会话进入终态，不调用接口。"""
        player = await connect_bob(manager, transport, bob_session)
        received: list[Disconnected] = []
        player.on(PlayerEvent.DISCONNECTED, received.append)

        channel.dispatch("playerDisconnect", "a-b-c-d-e")
        channel.dispatch("playerData", "a-b-c-d-e", {**bob_live, "health": 1})
        await player.drain()

        assert player.state is PlayerState.DISCONNECTED
        assert received[0].reason == "remote"
        assert player.health == 20
        transport.perform.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reconnect_supersedes_old_session(
        self, manager: AltManager, transport: MagicMock,
        channel: PushChannel, bob_session: dict[str, Any], bob_live: dict[str, Any],
    ) -> None:
        """再次 connect 产生的新会话替代旧会话，旧会话收到 superseded 通知。"""
        first = await connect_bob(manager, transport, bob_session)
        received: list[Disconnected] = []
        first.on(PlayerEvent.DISCONNECTED, received.append)

        second = await connect_bob(manager, transport, bob_session)
        channel.dispatch("playerData", "a-b-c-d-e", {**bob_live, "health": 4})
        await second.drain()
        await first.drain()

        assert first.state is PlayerState.DISCONNECTED
        assert [d.reason for d in received] == ["superseded"]
        assert manager.live_player("a-b-c-d-e") is second
        assert second.health == 4
        assert first.health == 20

    @pytest.mark.asyncio
    async def test_disconnect_superseded_session_keeps_subscription(
        self, manager: AltManager, transport: MagicMock,
        channel: PushChannel, bob_session: dict[str, Any], frames: Any,
    ) -> None:
        """对已被替代的旧会话调用 disconnect 不发送 unsubscribe，也不重复通知。"""
        first = await connect_bob(manager, transport, bob_session)
        second = await connect_bob(manager, transport, bob_session)
        await first.drain()
        received: list[Disconnected] = []
        first.on(PlayerEvent.DISCONNECTED, received.append)
        frames(channel)

        await first.disconnect()

        assert frames(channel) == []
        assert received == []
        assert second.state is PlayerState.ACTIVE
        assert manager.live_player("a-b-c-d-e") is second
