"""
数据模型定义

包括：
- 各数据域的快照值模型（校验后才会写入缓存）
- Snapshot / ErrorInfo 缓存元数据
- Pydantic 响应模型（用于 API）
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


HealthState = Literal["online", "offline", "unknown"]


# =============================================================================
# 数据域快照值（不可变）
# =============================================================================

class FrozenModel(BaseModel):
    """不可变模型基类，写入缓存后不再修改"""
    model_config = ConfigDict(frozen=True)


class NodeStatus(FrozenModel):
    """节点健康状态（strata_syncStatus 探测结果）"""
    batch_producer: HealthState = "unknown"
    rpc_endpoint: HealthState = "unknown"


class BundlerHealth(FrozenModel):
    """Bundler 健康检查结果"""
    bundler_endpoint: HealthState = "unknown"


class Wallet(FrozenModel):
    """钱包（余额为最小单位整数，可超过 64 位）"""
    address: str
    balance: int


class PaymasterWallets(FrozenModel):
    """Paymaster 钱包对"""
    deposit: Wallet
    validating: Wallet


class OperatorStatus(FrozenModel):
    """桥运营者状态"""
    operator_id: str
    operator_address: str
    status: str


class DepositInfo(FrozenModel):
    """充值信息"""
    deposit_request_txid: str
    deposit_txid: Optional[str] = None
    status: str


class WithdrawalInfo(FrozenModel):
    """提现信息"""
    withdrawal_request_txid: str
    fulfillment_txid: Optional[str] = None
    status: str


class ReimbursementInfo(FrozenModel):
    """报销（claim）信息"""
    claim_txid: str
    challenge_step: str
    payout_txid: Optional[str] = None
    status: str


class BridgeStatus(FrozenModel):
    """桥整体状态，每次拉取整体替换"""
    operators: List[OperatorStatus] = Field(default_factory=list)
    deposits: List[DepositInfo] = Field(default_factory=list)
    withdrawals: List[WithdrawalInfo] = Field(default_factory=list)
    reimbursements: List[ReimbursementInfo] = Field(default_factory=list)


class Account(FrozenModel):
    """账户抽象账户"""
    address: str
    creation_timestamp: str = ""
    gas_used: int = 0


class ActivityStats(FrozenModel):
    """
    活动统计

    stats: {stat_name: {time_window: value}}
    selected_accounts: {selection_name: [Account]}
    """
    stats: Dict[str, Dict[str, int]] = Field(default_factory=dict)
    selected_accounts: Dict[str, List[Account]] = Field(default_factory=dict)


# =============================================================================
# 缓存元数据
# =============================================================================

class ErrorInfo(FrozenModel):
    """最近一次拉取失败的信息"""
    kind: str
    message: str
    code: Optional[int] = None
    at: datetime


class Snapshot(BaseModel):
    """
    单个数据域的快照

    value 为 None 表示首次拉取尚未成功。
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    value: Optional[Any] = None
    fetched_at: Optional[datetime] = None     # 最近一次成功提交时间
    attempted_at: Optional[datetime] = None   # 最近一次尝试时间（成功或失败）
    last_error: Optional[ErrorInfo] = None
    consecutive_failures: int = 0

    @property
    def populated(self) -> bool:
        return self.value is not None


# =============================================================================
# Pydantic 响应模型
# =============================================================================

class NetworkStatus(BaseModel):
    """网络状态响应（GET /api/status）"""
    batch_producer: HealthState = "unknown"
    rpc_endpoint: HealthState = "unknown"
    bundler_endpoint: HealthState = "unknown"


class WalletResponse(BaseModel):
    """钱包响应，余额为 8 位小数字符串；未拉取到时为 None"""
    address: str
    balance: Optional[str] = None


class PaymasterWalletsResponse(BaseModel):
    deposit: WalletResponse
    validating: WalletResponse


class BalancesResponse(BaseModel):
    """余额响应（GET /api/balances）"""
    wallets: PaymasterWalletsResponse


class KeySchemaResponse(BaseModel):
    """活动统计键值表（GET /activity_keys.json）"""
    version: int
    stat_names: List[str]
    time_windows: List[str]
    selection_names: List[str]


class SnapshotInfo(BaseModel):
    """单个数据域的新鲜度信息"""
    domain: str
    populated: bool
    fetched_at: Optional[datetime] = None
    attempted_at: Optional[datetime] = None
    consecutive_failures: int = 0
    last_error: Optional[ErrorInfo] = None
