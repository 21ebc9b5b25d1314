"""
Paymaster 钱包余额

eth_getBalance(address, "latest") 返回 0x 十六进制字符串，解析为任意精度整数。
任一钱包失败则本次拉取整体失败（缓存保留上一次的值）。
"""

import logging

import httpx

from ..errors import MalformedResponse
from ..models import PaymasterWallets, Wallet
from .base import UpstreamClient
from .rpc import JsonRpcClient

logger = logging.getLogger(__name__)


def parse_hex_quantity(value) -> int:
    """解析 JSON-RPC 十六进制数量（如 "0xde0b6b3a7640000"）"""
    if not isinstance(value, str) or not value.lower().startswith("0x"):
        raise MalformedResponse(f"Expected 0x-prefixed hex quantity, got {value!r}")
    digits = value[2:]
    if not digits:
        raise MalformedResponse("Empty hex quantity")
    try:
        return int(digits, 16)
    except ValueError as e:
        raise MalformedResponse(f"Invalid hex quantity {value!r}") from e


class BalancesClient(UpstreamClient[PaymasterWallets]):
    """拉取 deposit / validating 两个 paymaster 钱包余额"""

    domain = "balances"

    def __init__(self, rpc_url: str, deposit_wallet: str, validating_wallet: str, **kwargs):
        super().__init__(**kwargs)
        self.rpc_url = rpc_url
        self.deposit_wallet = deposit_wallet
        self.validating_wallet = validating_wallet

    async def _balance_of(self, rpc: JsonRpcClient, address: str) -> Wallet:
        logger.debug(f"Fetching balance for wallet {address}")
        result = await rpc.request("eth_getBalance", [address, "latest"])
        return Wallet(address=address, balance=parse_hex_quantity(result))

    async def _fetch(self, client: httpx.AsyncClient) -> PaymasterWallets:
        rpc = JsonRpcClient(self.rpc_url, client)
        deposit = await self._balance_of(rpc, self.deposit_wallet)
        validating = await self._balance_of(rpc, self.validating_wallet)
        return PaymasterWallets(deposit=deposit, validating=validating)
