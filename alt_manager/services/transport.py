"""
alt_manager.services.transport
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

请求/响应传输层 —— 基于 ``httpx.AsyncClient`` 的薄封装。

对外只暴露一个操作 ``perform(path, method, body)``：
  - GET / HEAD / DELETE / OPTIONS 的参数以 query string 传递
  - 其余方法以 JSON 请求体传递
  - 非 2xx 响应统一抛出 ``HttpError``，连接层故障抛出 ``TransportError``
"""
from __future__ import annotations

from typing import Any, Literal

import httpx

from alt_manager.core.errors import HttpError, TransportError
from alt_manager.core.logging import get_logger

logger = get_logger(__name__)

Method = Literal["GET", "POST", "PUT", "DELETE"]

_QUERY_METHODS: frozenset[str] = frozenset({"GET", "HEAD", "DELETE", "OPTIONS"})


class HttpTransport:
    """Alt manager API 的请求/响应传输。

    Attributes:
        base_url: API 基础地址。
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url
        self._client: httpx.AsyncClient = client or httpx.AsyncClient(
            base_url=base_url, timeout=timeout,
        )

    async def perform(
        self,
        path: str,
        method: Method = "GET",
        body: dict[str, Any] | None = None,
    ) -> Any:
        """执行一次请求并返回解码后的响应体。

        Args:
            path: 请求路径，如 ``/players``。
            method: HTTP 方法。
            body: 请求参数；值为 None 的键不会发送。

        Returns:
            ``application/json`` 响应返回解析后的对象，否则返回文本。

        Raises:
            HttpError: 服务端返回非 2xx。
            TransportError: 连接失败或超时。
        """
        params: dict[str, Any] | None = None
        payload: dict[str, Any] | None = None
        if body:
            cleaned = {k: v for k, v in body.items() if v is not None}
            if method in _QUERY_METHODS:
                params = cleaned
            else:
                payload = cleaned

        try:
            response = await self._client.request(
                method, path, params=params, json=payload,
            )
        except httpx.HTTPError as e:
            logger.warning("请求失败 | %s %s | %s", method, path, e)
            raise TransportError(f"{method} {path} 失败: {e}") from e

        data = _decode(response)
        if not response.is_success:
            message = data.get("error", data) if isinstance(data, dict) else data
            logger.debug("请求被拒绝 | %s %s | %d", method, path, response.status_code)
            raise HttpError(response.status_code, str(message))
        return data

    async def aclose(self) -> None:
        """关闭底层 HTTP 连接池。"""
        await self._client.aclose()


def _decode(response: httpx.Response) -> Any:
    """按 content-type 解码响应体：JSON 或纯文本。

    标注为 JSON 但无法解析的响应体按文本返回，由调用方决定是 ``HttpError``
    （非 2xx）还是快照校验失败（2xx）。
    """
    if not response.content:
        return None
    content_type = response.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            return response.json()
        except ValueError:
            logger.warning("响应声明为 JSON 但无法解析 | status=%d", response.status_code)
    return response.text
