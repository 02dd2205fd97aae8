"""
alt_manager.core.errors
~~~~~~~~~~~~~~~~~~~~~~~

客户端异常体系。

- ``TransportError`` —— 连接层故障（HTTP 连接失败、推送通道断开）
- ``HttpError``      —— 请求/响应调用返回非 2xx
- ``ProtocolError``  —— 推送或快照数据格式错误（字段缺失、类型不符）

本库内任何位置都不做自动重试，异常原样抛给触发它的调用方。
"""
from __future__ import annotations


class AltManagerError(Exception):
    """所有 alt manager 客户端异常的基类。"""


class TransportError(AltManagerError):
    """连接层故障：无法建立连接、超时或推送通道已关闭。"""


class HttpError(AltManagerError):
    """请求/响应调用失败。

    Attributes:
        status: HTTP 状态码。
        message: 服务端返回的错误信息（JSON ``error`` 字段或纯文本）。
    """

    def __init__(self, status: int, message: str) -> None:
        self.status = status
        self.message = message
        super().__init__(f"Error: {status}: {message}")


class ProtocolError(AltManagerError):
    """推送负载或响应快照不符合约定的结构。"""
