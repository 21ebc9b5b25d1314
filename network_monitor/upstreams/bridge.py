"""
桥状态

数据来源：
- 节点 RPC: strata_getCurrentDeposits / strata_getCurrentDepositById
- 桥 RPC: stratabridge_bridgeOperators / operatorStatus / depositInfo /
  withdrawalInfo / claims / claimInfo

状态字符串直接透传（以上游为准，不重新解释桥协议语义）。
每次拉取整体替换 operators / deposits / withdrawals / reimbursements 列表。
"""

import asyncio
import logging
from typing import Any, List, Optional, Tuple

import httpx

from ..errors import FetchError, MalformedResponse, UpstreamError
from ..models import (
    BridgeStatus, DepositInfo, OperatorStatus, ReimbursementInfo, WithdrawalInfo
)
from .base import UpstreamClient, require_dict
from .rpc import JsonRpcClient

logger = logging.getLogger(__name__)


def status_label(value: Any) -> str:
    """
    提取状态名称

    上游状态可能是字符串，也可能是 {"StateName": {...}} 形式的对象，
    后者取唯一的键名。
    """
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and len(value) == 1:
        return next(iter(value))
    raise MalformedResponse(f"Unrecognised status value: {value!r}")


def parse_operator_table(result: Any) -> List[Tuple[int, str]]:
    """解析 {operator_idx: public_key}，按索引排序"""
    table = require_dict(result, "stratabridge_bridgeOperators")
    operators = []
    for idx, pubkey in table.items():
        try:
            operators.append((int(idx), str(pubkey)))
        except (TypeError, ValueError) as e:
            raise MalformedResponse(f"Invalid operator index {idx!r}") from e
    return sorted(operators)


class BridgeStatusClient(UpstreamClient[BridgeStatus]):
    """桥状态拉取"""

    domain = "bridge_status"

    def __init__(
        self,
        bridge_rpc_url: str,
        node_rpc_url: str,
        operator_ping_timeout_s: float = 5.0,
        operator_name_prefix: str = "Alpen Labs",
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.bridge_rpc_url = bridge_rpc_url
        self.node_rpc_url = node_rpc_url
        self.operator_ping_timeout_s = operator_ping_timeout_s
        self.operator_name_prefix = operator_name_prefix

    # ------------------------------------------------------------------
    # operators
    # ------------------------------------------------------------------

    async def _operator_status(self, bridge: JsonRpcClient, idx: int, pubkey: str) -> OperatorStatus:
        try:
            result = await asyncio.wait_for(
                bridge.request("stratabridge_operatorStatus", [idx], timeout=self.operator_ping_timeout_s),
                timeout=self.operator_ping_timeout_s,
            )
            status = status_label(result)
        except (asyncio.TimeoutError, FetchError) as e:
            # 运营者无响应即视为离线
            logger.warning(f"Operator {idx} status unavailable: {e!r}")
            status = "Offline"

        return OperatorStatus(
            operator_id=f"{self.operator_name_prefix} #{idx}",
            operator_address=pubkey,
            status=status,
        )

    async def fetch_operators(self, bridge: JsonRpcClient) -> List[OperatorStatus]:
        table = parse_operator_table(await bridge.request("stratabridge_bridgeOperators"))
        return list(await asyncio.gather(*(
            self._operator_status(bridge, idx, pubkey) for idx, pubkey in table
        )))

    # ------------------------------------------------------------------
    # deposits / withdrawals
    # ------------------------------------------------------------------

    async def _deposit_entries(self, node: JsonRpcClient) -> List[dict]:
        deposit_ids = await node.request("strata_getCurrentDeposits")
        if not isinstance(deposit_ids, list):
            raise MalformedResponse("strata_getCurrentDeposits: expected a list")

        entries = []
        for deposit_id in deposit_ids:
            try:
                entry = await node.request("strata_getCurrentDepositById", [deposit_id])
            except UpstreamError as e:
                logger.warning(f"Skipping deposit {deposit_id}: {e}")
                continue
            entry = require_dict(entry, "strata_getCurrentDepositById")
            if not entry.get("output"):
                raise MalformedResponse(f"Deposit {deposit_id} has no output")
            entries.append(entry)
        return entries

    async def _row(self, bridge: JsonRpcClient, method: str, key: str) -> Optional[dict]:
        """查询单行信息；上游明确报告不存在时返回 None"""
        try:
            result = await bridge.request(method, [key])
        except UpstreamError as e:
            logger.warning(f"{method}({key}) unavailable: {e}")
            return None
        row = dict(require_dict(result, method))
        row["status"] = status_label(row.get("status"))
        return row

    async def fetch_deposits_and_withdrawals(
        self, node: JsonRpcClient, bridge: JsonRpcClient
    ) -> Tuple[List[DepositInfo], List[WithdrawalInfo]]:
        deposits: List[DepositInfo] = []
        withdrawals: List[WithdrawalInfo] = []

        for entry in await self._deposit_entries(node):
            outpoint = str(entry["output"])

            row = await self._row(bridge, "stratabridge_depositInfo", outpoint)
            if row is not None:
                deposits.append(DepositInfo(**row))

            if entry.get("withdrawal_request_txid"):
                row = await self._row(bridge, "stratabridge_withdrawalInfo", outpoint)
                if row is not None:
                    withdrawals.append(WithdrawalInfo(**row))

        return deposits, withdrawals

    # ------------------------------------------------------------------
    # reimbursements
    # ------------------------------------------------------------------

    async def fetch_reimbursements(self, bridge: JsonRpcClient) -> List[ReimbursementInfo]:
        claim_txids = await bridge.request("stratabridge_claims")
        if not isinstance(claim_txids, list):
            raise MalformedResponse("stratabridge_claims: expected a list")

        reimbursements = []
        for txid in claim_txids:
            row = await self._row(bridge, "stratabridge_claimInfo", str(txid))
            if row is not None:
                reimbursements.append(ReimbursementInfo(**row))
        return reimbursements

    async def _fetch(self, client: httpx.AsyncClient) -> BridgeStatus:
        node = JsonRpcClient(self.node_rpc_url, client)
        bridge = JsonRpcClient(self.bridge_rpc_url, client)

        operators = await self.fetch_operators(bridge)
        deposits, withdrawals = await self.fetch_deposits_and_withdrawals(node, bridge)
        reimbursements = await self.fetch_reimbursements(bridge)

        logger.debug(
            f"Bridge status: {len(operators)} operators, {len(deposits)} deposits, "
            f"{len(withdrawals)} withdrawals, {len(reimbursements)} reimbursements"
        )
        return BridgeStatus(
            operators=operators,
            deposits=deposits,
            withdrawals=withdrawals,
            reimbursements=reimbursements,
        )
