"""
网络健康探测

- NodeStatusClient: 通过 strata_syncStatus 探测批次生产者与 RPC 端点
- BundlerHealthClient: 请求 bundler 的 /health

健康探测的失败本身就是观测结果（offline），因此这两个客户端在
上游不可达或无响应时返回 offline，而不是抛出 FetchError。
单次探测的超时（probe_timeout_s）必须短于整次拉取的超时，
否则挂起的上游会被记录为拉取超时，缓存中的 online 不会被更新。
"""

import asyncio
import logging
from typing import Optional

import httpx

from ..errors import FetchError
from ..models import BundlerHealth, HealthState, NodeStatus
from .base import UpstreamClient
from .rpc import JsonRpcClient

logger = logging.getLogger(__name__)


class HealthProbeClient(UpstreamClient):
    """
    健康探测基类

    Args:
        probe_timeout_s: 单次探测超时，默认取 timeout 的一半
    """

    def __init__(self, probe_timeout_s: Optional[float] = None, **kwargs):
        super().__init__(**kwargs)
        self.probe_timeout_s = probe_timeout_s or self.timeout / 2


class NodeStatusClient(HealthProbeClient):
    """节点状态探测"""

    domain = "node_status"

    def __init__(self, rpc_url: str, **kwargs):
        super().__init__(**kwargs)
        self.rpc_url = rpc_url

    async def _probe(self, rpc: JsonRpcClient, role: str) -> HealthState:
        try:
            result = await asyncio.wait_for(
                rpc.request("strata_syncStatus", timeout=self.probe_timeout_s),
                timeout=self.probe_timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning(f"{role} probe timed out after {self.probe_timeout_s}s")
            return "offline"
        except FetchError as e:
            logger.warning(f"{role} probe failed: {e}")
            return "offline"

        if isinstance(result, dict) and result.get("tip_height") is not None:
            return "online"
        logger.info(f"{role} probe returned no tip_height: {result!r}")
        return "offline"

    async def _fetch(self, client: httpx.AsyncClient) -> NodeStatus:
        rpc = JsonRpcClient(self.rpc_url, client)
        # 两个探测并发执行，总耗时不超过一次 probe_timeout_s
        batch_producer, rpc_endpoint = await asyncio.gather(
            self._probe(rpc, "batch_producer"),
            self._probe(rpc, "rpc_endpoint"),
        )
        return NodeStatus(batch_producer=batch_producer, rpc_endpoint=rpc_endpoint)


class BundlerHealthClient(HealthProbeClient):
    """Bundler 健康检查（响应体包含 ok 即视为在线）"""

    domain = "bundler_health"

    def __init__(self, health_url: str, **kwargs):
        super().__init__(**kwargs)
        self.health_url = health_url

    async def _fetch(self, client: httpx.AsyncClient) -> BundlerHealth:
        try:
            response = await asyncio.wait_for(
                client.get(self.health_url, timeout=self.probe_timeout_s),
                timeout=self.probe_timeout_s,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Bundler health check timed out after {self.probe_timeout_s}s")
            return BundlerHealth(bundler_endpoint="offline")
        except httpx.HTTPError as e:
            logger.warning(f"Bundler health check failed: {e!r}")
            return BundlerHealth(bundler_endpoint="offline")

        if response.is_success and "ok" in response.text.lower():
            return BundlerHealth(bundler_endpoint="online")

        logger.info(f"Bundler unhealthy: HTTP {response.status_code}")
        return BundlerHealth(bundler_endpoint="offline")
