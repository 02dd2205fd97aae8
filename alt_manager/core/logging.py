"""
alt_manager.core.logging
~~~~~~~~~~~~~~~~~~~~~~~~

客户端日志配置。

库代码只通过 ``get_logger(__name__)`` 记录日志，从不自行配置 handler；
由调用方（脚本、服务）在启动时调用一次 ``setup_logging()``。
推送通道与 HTTP 的底层库日志量很大，统一压到 WARNING。
"""
from __future__ import annotations

import logging
import sys

from alt_manager.core.settings import Settings, get_settings

# 时间 | 级别 | 模块 | 消息
_LOG_FORMAT: str = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS: tuple[str, ...] = ("httpcore", "httpx", "websockets")


def setup_logging(settings: Settings | None = None) -> None:
    """按 ``settings.effective_log_level`` 配置根 logger。

    Args:
        settings: 使用的配置；省略时取 ``get_settings()``。
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.effective_log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=_LOG_FORMAT,
        datefmt=_DATE_FORMAT,
        stream=sys.stdout,
        force=True,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """模块级 logger，``name`` 通常为 ``__name__``。"""
    return logging.getLogger(name)
