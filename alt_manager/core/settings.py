"""
alt_manager.core.settings
~~~~~~~~~~~~~~~~~~~~~~~~~

集中式配置管理，基于 pydantic-settings 自动从 ``.env`` 文件加载。

支持多环境配置（dev / test / prod），加载顺序为:
  1. 环境变量（最高优先级）
  2. ``.env.{ENVIRONMENT}`` 环境专属文件
  3. ``.env`` 基础文件
  4. 字段默认值（最低优先级）
"""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# 读取当前环境标识（在 Settings 类定义之前，用于决定加载哪个 .env 文件）
_CURRENT_ENV: str = os.getenv("ENVIRONMENT", "dev")


class Settings(BaseSettings):
    """全局配置对象，字段值按如下优先级加载：环境变量 > .env.{env} > .env > 默认值。"""

    # ── 基础 ──────────────────────────────────────────────────────────
    ENVIRONMENT: Literal["dev", "test", "prod"] = Field(
        default="dev",
        description="运行环境：dev / test / prod",
    )

    # ── Alt Manager API ───────────────────────────────────────────────
    BASE_URL: str = Field(
        default="http://localhost:8080",
        description="Alt Manager API 的基础地址",
    )
    SOCKET_PATH: str = Field(
        default="/ws",
        description="推送通道（WebSocket）的路径",
    )
    HTTP_TIMEOUT: float = Field(
        default=10.0,
        description="单次请求/响应调用的超时时间（秒）",
    )

    # ── 推送处理 ──────────────────────────────────────────────────────
    PUSH_QUEUE_SIZE: int = Field(
        default=256,
        description="每个在线玩家待处理推送队列的容量",
    )

    LOG_LEVEL: str = Field(default="INFO", description="日志级别；未显式设置时按环境推断")

    # ── Pydantic Settings ─────────────────────────────────────────────
    # 先加载 .env.{env} 再加载 .env，前者优先级更高
    model_config = SettingsConfigDict(
        env_file=(f".env.{_CURRENT_ENV}", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── 环境判断 ──────────────────────────────────────────────────────

    @property
    def is_prod(self) -> bool:
        """当前是否为生产环境。"""
        return self.ENVIRONMENT == "prod"

    @property
    def is_test(self) -> bool:
        """当前是否为测试环境。"""
        return self.ENVIRONMENT == "test"

    @property
    def is_dev(self) -> bool:
        """当前是否为开发环境。"""
        return self.ENVIRONMENT == "dev"

    # ── 派生配置 ──────────────────────────────────────────────────────

    @property
    def socket_url(self) -> str:
        """由 ``BASE_URL`` 推导出的推送通道地址（http → ws，https → wss）。"""
        return socket_url_for(self.BASE_URL, self.SOCKET_PATH)

    @property
    def effective_log_level(self) -> str:
        """根据环境自动推断日志级别。

        - dev  → INFO
        - test → DEBUG（方便排查测试失败）
        - prod → WARNING（减少噪音）

        显式设置的 LOG_LEVEL（环境变量、.env 文件或构造参数）覆盖此默认推断。
        """
        if "LOG_LEVEL" in self.model_fields_set:
            return self.LOG_LEVEL
        return {
            "dev": "INFO",
            "test": "DEBUG",
            "prod": "WARNING",
        }.get(self.ENVIRONMENT, "INFO")


def socket_url_for(base_url: str, socket_path: str = "/ws") -> str:
    """将 HTTP 基础地址转换为对应的 WebSocket 地址。

    Args:
        base_url: API 基础地址，如 ``http://localhost:8080``。
        socket_path: 推送通道路径。

    Returns:
        形如 ``ws://localhost:8080/ws`` 的地址。
    """
    url = base_url.rstrip("/")
    if url.startswith("https://"):
        url = "wss://" + url[len("https://"):]
    elif url.startswith("http://"):
        url = "ws://" + url[len("http://"):]
    return url + "/" + socket_path.lstrip("/")


@lru_cache
def get_settings() -> Settings:
    """获取全局 Settings 单例（带缓存，避免重复解析 .env）。"""
    return Settings()


settings: Settings = get_settings()
