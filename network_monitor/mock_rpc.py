"""
模拟上游 JSON-RPC 服务

用于本地开发和 CI，代替真实的节点 RPC 与桥 RPC。
返回 mock_data/ 下的固定数据，请求 / 响应格式与生产端点一致。

- 节点 RPC（默认 8545）: strata_syncStatus / strata_getCurrentDeposits /
  strata_getCurrentDepositById / eth_getBalance
- 桥 RPC（默认 8546）: stratabridge_bridgeOperators / operatorStatus /
  depositInfo / withdrawalInfo / claims / claimInfo
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, Request

logger = logging.getLogger(__name__)

MOCK_DATA_DIR = Path(__file__).parent / "mock_data"

METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
NOT_FOUND = -32000


class RpcError(Exception):
    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


def load_fixture(name: str, data_dir: Optional[Path] = None) -> Dict[str, Any]:
    """读取 mock_data/<name>.json"""
    path = (data_dir or MOCK_DATA_DIR) / f"{name}.json"
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _param(params: List[Any], index: int, name: str) -> Any:
    if len(params) <= index:
        raise RpcError(INVALID_PARAMS, f"missing parameter '{name}'")
    return params[index]


def _lookup(table: Dict[str, Any], key: Any, what: str) -> Any:
    value = table.get(str(key))
    if value is None:
        raise RpcError(NOT_FOUND, "not found", f"{what} {key}")
    return value


def node_rpc_methods(data: Dict[str, Any]) -> Dict[str, Callable[[List[Any]], Any]]:
    """节点 RPC 方法表"""
    return {
        "strata_syncStatus": lambda params: data["sync_status"],
        "strata_getCurrentDeposits": lambda params: data["current_deposits"],
        "strata_getCurrentDepositById": lambda params: _lookup(
            data["deposit_entries"], _param(params, 0, "deposit_idx"), "deposit"
        ),
        "eth_getBalance": lambda params: data["balances"].get(
            _param(params, 0, "address"), "0x0"
        ),
    }


def bridge_rpc_methods(data: Dict[str, Any]) -> Dict[str, Callable[[List[Any]], Any]]:
    """桥 RPC 方法表"""
    return {
        "stratabridge_bridgeOperators": lambda params: data["operators"],
        "stratabridge_operatorStatus": lambda params: _lookup(
            data["operator_status"], _param(params, 0, "operator_idx"), "operator"
        ),
        "stratabridge_depositInfo": lambda params: _lookup(
            data["deposit_infos"], _param(params, 0, "outpoint"), "deposit"
        ),
        "stratabridge_withdrawalInfo": lambda params: _lookup(
            data["withdrawal_infos"], _param(params, 0, "outpoint"), "withdrawal"
        ),
        "stratabridge_claims": lambda params: data["claims"],
        "stratabridge_claimInfo": lambda params: _lookup(
            data["claim_infos"], _param(params, 0, "txid"), "claim"
        ),
    }


def create_mock_rpc_app(methods: Dict[str, Callable[[List[Any]], Any]], title: str = "Mock RPC") -> FastAPI:
    """创建 JSON-RPC 2.0 模拟服务（POST /）"""
    app = FastAPI(title=title)

    @app.post("/")
    async def handle(request: Request):
        body = await request.json()
        request_id = body.get("id")
        method = body.get("method")
        params = body.get("params") or []

        handler = methods.get(method)
        try:
            if handler is None:
                raise RpcError(METHOD_NOT_FOUND, "Method not found", method)
            result = handler(params)
        except RpcError as e:
            logger.info(f"{method}{params} -> error {e.code}: {e.message}")
            error = {"code": e.code, "message": e.message}
            if e.data is not None:
                error["data"] = e.data
            return {"jsonrpc": "2.0", "id": request_id, "error": error}

        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    return app


def create_node_rpc_app(data: Optional[Dict[str, Any]] = None) -> FastAPI:
    return create_mock_rpc_app(node_rpc_methods(data or load_fixture("node_rpc")), "Mock Node RPC")


def create_bridge_rpc_app(data: Optional[Dict[str, Any]] = None) -> FastAPI:
    return create_mock_rpc_app(bridge_rpc_methods(data or load_fixture("bridge_rpc")), "Mock Bridge RPC")


async def serve(host: str, node_port: int, bridge_port: int):
    servers = [
        uvicorn.Server(uvicorn.Config(create_node_rpc_app(), host=host, port=node_port, log_level="info")),
        uvicorn.Server(uvicorn.Config(create_bridge_rpc_app(), host=host, port=bridge_port, log_level="info")),
    ]
    logger.info(f"Mock node RPC on {host}:{node_port}, mock bridge RPC on {host}:{bridge_port}")
    await asyncio.gather(*(s.serve() for s in servers))


def main():
    """命令行入口"""
    parser = argparse.ArgumentParser(description="Mock node / bridge JSON-RPC server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--node-port", type=int, default=8545)
    parser.add_argument("--bridge-port", type=int, default=8546)
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    try:
        asyncio.run(serve(args.host, args.node_port, args.bridge_port))
    except KeyboardInterrupt:
        print("\nShutdown requested, exiting...")


if __name__ == "__main__":
    main()
