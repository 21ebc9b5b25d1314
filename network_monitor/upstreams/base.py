"""
UpstreamClient 基类

每个数据域一个子类，负责一次出站请求 + 响应解析。
fetch() 只会抛出 FetchError，成功时返回已校验的快照值。
"""

import logging
from typing import Any, Generic, Optional, TypeVar

import httpx

from ..errors import FetchError, MalformedResponse, classify_httpx_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UpstreamClient(Generic[T]):
    """
    上游客户端基类

    Args:
        timeout: 单个 HTTP 请求超时（秒）
        transport: 可选的 httpx 传输层（测试时注入 MockTransport / ASGITransport）
    """

    domain: str = "upstream"

    def __init__(self, timeout: float = 5.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self._transport = transport

    def _make_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def fetch(self) -> T:
        """
        拉取并解析一次

        Raises:
            FetchError: 任意失败路径（不会抛出原始 httpx 异常）
        """
        try:
            async with self._make_client() as client:
                return await self._fetch(client)
        except FetchError:
            raise
        except Exception as e:
            raise classify_httpx_error(e) from e

    async def _fetch(self, client: httpx.AsyncClient) -> T:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} domain={self.domain}>"


def require_dict(value: Any, what: str) -> dict:
    """校验上游返回值为 JSON 对象"""
    if not isinstance(value, dict):
        raise MalformedResponse(f"{what}: expected object, got {type(value).__name__}")
    return value
