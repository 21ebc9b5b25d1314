"""
上游客户端

每个数据域一个 UpstreamClient 子类。
"""

from typing import Optional

import httpx

from ..config import (
    ActivityStatsConfig, BalancesConfig, BridgeStatusConfig, BundlerHealthConfig,
    DomainConfig, NodeStatusConfig,
)
from ..keys import ActivityKeys
from .activity import ActivityStatsClient
from .balances import BalancesClient
from .base import UpstreamClient
from .bridge import BridgeStatusClient
from .network import BundlerHealthClient, NodeStatusClient

__all__ = [
    "UpstreamClient",
    "NodeStatusClient",
    "BundlerHealthClient",
    "BalancesClient",
    "BridgeStatusClient",
    "ActivityStatsClient",
    "build_client",
]


def build_client(
    config: DomainConfig,
    keys: Optional[ActivityKeys] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> UpstreamClient:
    """根据数据域配置创建对应的 UpstreamClient"""
    common = {"timeout": config.timeout_s, "transport": transport}

    if isinstance(config, NodeStatusConfig):
        return NodeStatusClient(config.upstream_url, **common)
    if isinstance(config, BundlerHealthConfig):
        return BundlerHealthClient(config.upstream_url, **common)
    if isinstance(config, BalancesConfig):
        return BalancesClient(
            config.upstream_url,
            deposit_wallet=config.deposit_wallet,
            validating_wallet=config.validating_wallet,
            **common,
        )
    if isinstance(config, BridgeStatusConfig):
        return BridgeStatusClient(
            config.upstream_url,
            node_rpc_url=config.node_rpc_url,
            operator_ping_timeout_s=config.operator_ping_timeout_s,
            operator_name_prefix=config.operator_name_prefix,
            **common,
        )
    if isinstance(config, ActivityStatsConfig):
        if keys is None:
            raise ValueError("activity_stats requires activity keys")
        return ActivityStatsClient(
            config.upstream_url,
            accounts_url=config.accounts_url,
            keys=keys,
            page_size=config.page_size,
            max_pages=config.max_pages,
            accounts_limit=config.accounts_limit,
            **common,
        )
    raise ValueError(f"Unsupported domain: {config.domain}")
