"""
JSON-RPC 2.0 客户端（基于 httpx）

所有网络 / 解析异常都转换为 FetchError 子类。
"""

import itertools
import logging
from typing import Any, Optional, Sequence

import httpx

from ..errors import MalformedResponse, UpstreamError, classify_httpx_error

logger = logging.getLogger(__name__)


class JsonRpcClient:
    """
    最小 JSON-RPC 客户端

    Args:
        url: RPC 端点
        client: 共享的 httpx.AsyncClient（测试时可注入 MockTransport）
    """

    def __init__(self, url: str, client: httpx.AsyncClient):
        self.url = url
        self._client = client
        self._ids = itertools.count(1)

    async def request(
        self,
        method: str,
        params: Optional[Sequence[Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        发起一次 RPC 调用并返回 result 字段

        Raises:
            FetchError: 超时 / 传输错误 / 响应格式错误 / RPC error
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": list(params or []),
        }
        kwargs = {}
        if timeout is not None:
            kwargs["timeout"] = timeout

        try:
            response = await self._client.post(self.url, json=payload, **kwargs)
            response.raise_for_status()
            body = response.json()
        except Exception as e:
            raise classify_httpx_error(e) from e

        if not isinstance(body, dict):
            raise MalformedResponse(f"{method}: response is not a JSON object")

        error = body.get("error")
        if error is not None:
            if isinstance(error, dict):
                code = error.get("code")
                raise UpstreamError(
                    f"{method}: {error.get('message', 'rpc error')}",
                    code=code if isinstance(code, int) else None,
                )
            raise UpstreamError(f"{method}: {error}")

        if "result" not in body:
            raise MalformedResponse(f"{method}: missing 'result'")

        return body["result"]
