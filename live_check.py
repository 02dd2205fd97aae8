"""
手动联调脚本：列出所有玩家，并在数秒内打印第一个在线玩家的动态数据变化。

要求: 在运行本脚本前，请确保 alt manager 服务已经在 BASE_URL（默认
http://localhost:8080）运行。
"""
import asyncio
import sys

from alt_manager import AltManager, FieldChange, PlayerEvent, TransportError
from alt_manager.core.logging import setup_logging

WATCH_SECONDS: float = 10.0


def print_change(change: FieldChange) -> None:
    print(f"   {change.field}: {change.previous} -> {change.current}")


async def main() -> int:
    setup_logging()
    try:
        async with AltManager() as manager:
            print(f"已连接: {manager.base_url}")
            players = await manager.list_players()
            for player in players:
                status = "在线" if player.online else "离线"
                print(f" - {player.id} | {player.name} | {player.auth_method} | {status}")

            live = next((p for p in players if p.online), None)
            if live is None:
                print("没有在线玩家，结束。")
                return 0

            print(f"\n正在监听 {live.name} 的推送 {WATCH_SECONDS:.0f} 秒...")
            for event in PlayerEvent:
                if event.value.endswith("_changed"):
                    live.on(event, print_change)
            live.on(PlayerEvent.CHAT, lambda msg: print(f"   [chat] {msg.payload}"))
            await asyncio.sleep(WATCH_SECONDS)
    except TransportError as e:
        print(f"无法连接服务，请确认服务已启动: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
