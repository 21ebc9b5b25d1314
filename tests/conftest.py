"""
公共测试夹具

- 隔离全局配置（不读取工作目录下的 config.yaml）
- 模拟上游：节点 RPC / 桥 RPC 使用 mock_rpc 的 ASGI 应用，
  bundler 与区块浏览器使用 httpx.MockTransport
"""

import asyncio
import copy
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import httpx
import pytest

from network_monitor.api.dependencies import set_query_service
from network_monitor.config import reset_config
from network_monitor.keys import load_activity_keys
from network_monitor.mock_rpc import create_bridge_rpc_app, create_node_rpc_app, load_fixture


ENV_VARS = [
    "RPC_URL", "RETH_URL", "BUNDLER_URL", "STRATA_RPC_URL", "STRATA_BRIDGE_RPC_URL",
    "USER_OPS_QUERY_URL", "ACCOUNTS_QUERY_URL", "DEPOSIT_PAYMASTER_WALLET",
    "VALIDATING_PAYMASTER_WALLET", "NETWORK_STATUS_REFETCH_INTERVAL_S", "BALANCES_REFETCH_INTERVAL_S",
    "BRIDGE_STATUS_REFETCH_INTERVAL_S", "ACTIVITY_STATS_REFETCH_INTERVAL_S",
    "BRIDGE_OPERATOR_PING_TIMEOUT_S", "ACTIVITY_QUERY_PAGE_SIZE", "ACTIVITY_KEYS_PATH", "PORT", "LOG_LEVEL",
]


class RoutingTransport(httpx.AsyncBaseTransport):
    """按端口把请求分发到不同的传输层（None 表示默认端口）"""

    def __init__(self, routes: Dict[Optional[int], httpx.AsyncBaseTransport]):
        self.routes = routes

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        transport = self.routes.get(request.url.port)
        if transport is None:
            raise httpx.ConnectError(f"No route to {request.url}", request=request)
        return await transport.handle_async_request(request)


def iso(ts: datetime) -> str:
    return ts.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def explorer_handler(now: Optional[datetime] = None):
    """
    模拟区块浏览器：operations 分两页返回，accounts 一页返回

    时间戳相对 now 生成，保证落在 24h 窗口内。
    """
    now = now or datetime.now(timezone.utc)
    pages = {
        None: {
            "items": [
                {"address": {"hash": "0xA"}, "fee": "100", "timestamp": iso(now - timedelta(hours=1))},
                {"address": {"hash": "0xB"}, "fee": "50", "timestamp": iso(now - timedelta(hours=2))},
            ],
            "next_page_params": {"page_token": "page-2"},
        },
        "page-2": {
            "items": [
                {"address": {"hash": "0xA"}, "fee": "30", "timestamp": iso(now - timedelta(hours=3))},
            ],
            "next_page_params": None,
        },
    }
    accounts = {
        "items": [
            {"address": {"hash": "0xA"}, "creation_timestamp": iso(now - timedelta(days=10))},
            {"address": {"hash": "0xB"}, "creation_timestamp": iso(now - timedelta(hours=5))},
        ],
        "next_page_params": None,
    }

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/accounts"):
            return httpx.Response(200, json=accounts)
        return httpx.Response(200, json=pages[request.url.params.get("page_token")])

    return handler


def bundler_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, text="OK")


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """每个测试使用默认配置，结束后清理全局单例"""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("NETWORK_MONITOR_CONFIG_PATH", str(tmp_path / "missing.yaml"))
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield
    reset_config()
    set_query_service(None)


@pytest.fixture
def keys():
    return load_activity_keys()


@pytest.fixture
def node_data():
    return copy.deepcopy(load_fixture("node_rpc"))


@pytest.fixture
def bridge_data():
    return copy.deepcopy(load_fixture("bridge_rpc"))


@pytest.fixture
def node_transport(node_data):
    return httpx.ASGITransport(app=create_node_rpc_app(node_data))


@pytest.fixture
def bridge_transport(bridge_data):
    return httpx.ASGITransport(app=create_bridge_rpc_app(bridge_data))


@pytest.fixture
def upstream_transport(node_transport, bridge_transport):
    """默认配置下所有上游地址的模拟（localhost:8545 / 8546 / 4337 / 80）"""
    return RoutingTransport({
        8545: node_transport,
        8546: bridge_transport,
        4337: httpx.MockTransport(bundler_handler),
        None: httpx.MockTransport(explorer_handler()),
    })


@pytest.fixture
def unreachable_transport():
    """所有上游都拒绝连接"""
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    return httpx.MockTransport(handler)


@pytest.fixture
def hanging_transport():
    """上游接受连接但一直不响应"""
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200, text="ok")

    return httpx.MockTransport(handler)
