"""
上游拉取错误分类

所有 UpstreamClient 只抛出 FetchError 子类，Poller 统一捕获并记录到 Cache Slot。
"""

import json
from typing import Optional

import httpx
from pydantic import ValidationError


class FetchError(Exception):
    """上游拉取失败（基类）"""

    kind = "fetch_error"

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        if self.code is not None:
            return f"{self.kind}({self.code}): {self.message}"
        return f"{self.kind}: {self.message}"


class FetchTimeout(FetchError):
    """请求超时"""

    kind = "timeout"


class TransportError(FetchError):
    """连接被拒绝 / 重置等传输层错误"""

    kind = "transport_error"


class MalformedResponse(FetchError):
    """响应结构与预期不符"""

    kind = "malformed_response"


class UpstreamError(FetchError):
    """上游返回了应用层错误（HTTP 状态码或 JSON-RPC error）"""

    kind = "upstream_error"


class UnknownTimeWindow(ValueError):
    """请求了未配置的时间窗口"""

    def __init__(self, window: str):
        super().__init__(f"Unknown time window: {window}")
        self.window = window


def classify_httpx_error(exc: Exception) -> FetchError:
    """
    将 httpx / 解析异常映射到 FetchError 分类

    Args:
        exc: 原始异常

    Returns:
        对应的 FetchError 实例
    """
    if isinstance(exc, FetchError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return FetchTimeout(str(exc) or "request timed out")
    if isinstance(exc, httpx.HTTPStatusError):
        return UpstreamError(
            f"HTTP {exc.response.status_code} from {exc.request.url}",
            code=exc.response.status_code,
        )
    if isinstance(exc, httpx.TransportError):
        return TransportError(str(exc) or exc.__class__.__name__)
    if isinstance(exc, (json.JSONDecodeError, ValidationError, KeyError, TypeError, ValueError)):
        return MalformedResponse(str(exc))
    if isinstance(exc, httpx.HTTPError):
        return TransportError(str(exc) or exc.__class__.__name__)
    return MalformedResponse(f"{exc.__class__.__name__}: {exc}")
