"""
查询服务

将 HTTP 读请求翻译为 SnapshotStore 读取 + 响应整形。
不做任何缓存，每次调用都从 SnapshotStore 读取最新快照。
"""

import logging
from typing import Dict, List, Optional

from .cache import SnapshotStore
from .errors import UnknownTimeWindow
from .keys import ActivityKeys
from .models import (
    ActivityStats, BalancesResponse, BridgeStatus, KeySchemaResponse, NetworkStatus,
    PaymasterWallets, PaymasterWalletsResponse, SnapshotInfo, WalletResponse,
)

logger = logging.getLogger(__name__)

WEI_DECIMALS = 18
DISPLAY_DECIMALS = 8


def format_display_amount(raw: int, decimals: int = WEI_DECIMALS, places: int = DISPLAY_DECIMALS) -> str:
    """
    最小单位整数 -> 固定小数位字符串（截断，不四舍五入）

    全程整数运算，避免浮点误差：
        1000000000000000000 -> "1.00000000"
        123456789012345678  -> "0.12345678"
    """
    if raw < 0:
        return "-" + format_display_amount(-raw, decimals, places)
    truncated = raw // 10 ** (decimals - places)
    whole, frac = divmod(truncated, 10 ** places)
    return f"{whole}.{frac:0{places}d}"


class QueryService:
    """
    读取服务

    Args:
        store: 快照存储
        keys: 活动统计键值表
        deposit_wallet / validating_wallet: 配置的钱包地址（余额未拉取时仍返回地址）
    """

    def __init__(
        self,
        store: SnapshotStore,
        keys: ActivityKeys,
        deposit_wallet: str = "",
        validating_wallet: str = "",
    ):
        self.store = store
        self.keys = keys
        self.deposit_wallet = deposit_wallet
        self.validating_wallet = validating_wallet

    def get_network_status(self) -> NetworkStatus:
        """组合 node_status 与 bundler_health，未填充的字段为 unknown"""
        status = NetworkStatus()

        node = self.store.read("node_status").value
        if node is not None:
            status.batch_producer = node.batch_producer
            status.rpc_endpoint = node.rpc_endpoint

        bundler = self.store.read("bundler_health").value
        if bundler is not None:
            status.bundler_endpoint = bundler.bundler_endpoint

        return status

    def get_balances(self) -> BalancesResponse:
        """余额按 8 位小数截断格式化"""
        wallets: Optional[PaymasterWallets] = self.store.read("balances").value
        if wallets is None:
            shaped = PaymasterWalletsResponse(
                deposit=WalletResponse(address=self.deposit_wallet),
                validating=WalletResponse(address=self.validating_wallet),
            )
        else:
            shaped = PaymasterWalletsResponse(
                deposit=WalletResponse(
                    address=wallets.deposit.address,
                    balance=format_display_amount(wallets.deposit.balance),
                ),
                validating=WalletResponse(
                    address=wallets.validating.address,
                    balance=format_display_amount(wallets.validating.balance),
                ),
            )
        return BalancesResponse(wallets=shaped)

    def get_bridge_status(self) -> BridgeStatus:
        value = self.store.read("bridge_status").value
        return value if value is not None else BridgeStatus()

    def get_activity_stats(
        self,
        window: Optional[str] = None,
        stat: Optional[str] = None,
        selection: Optional[str] = None,
    ) -> ActivityStats:
        """
        活动统计

        Args:
            window: 只返回该时间窗口的值（必须是已配置的窗口）
            stat: 只返回该统计项；未知名称返回空映射
            selection: 只返回该账户筛选；未知名称返回空映射

        Raises:
            UnknownTimeWindow: 请求了未配置的时间窗口
        """
        if window is not None and window not in self.keys.window_names:
            raise UnknownTimeWindow(window)

        value: Optional[ActivityStats] = self.store.read("activity_stats").value
        if value is None:
            value = self.empty_activity_stats()

        stats: Dict[str, Dict[str, int]] = value.stats
        if stat is not None:
            stats = {stat: stats[stat]} if stat in stats else {}
        if window is not None:
            stats = {
                name: {window: per_window[window]}
                for name, per_window in stats.items()
                if window in per_window
            }

        selected = value.selected_accounts
        if selection is not None:
            selected = {selection: selected[selection]} if selection in selected else {}

        return ActivityStats(stats=stats, selected_accounts=selected)

    def empty_activity_stats(self) -> ActivityStats:
        """未填充时的默认值：所有统计项为 0，所有筛选为空列表"""
        return ActivityStats(
            stats={
                name: {window: 0 for window in self.keys.window_names}
                for name in self.keys.stat_names
            },
            selected_accounts={name: [] for name in self.keys.selection_names},
        )

    def get_usage_key_schema(self) -> KeySchemaResponse:
        return KeySchemaResponse(
            version=self.keys.version,
            stat_names=self.keys.stat_names,
            time_windows=self.keys.window_names,
            selection_names=self.keys.selection_names,
        )

    def get_snapshot_overview(self) -> List[SnapshotInfo]:
        """各数据域的新鲜度"""
        result = []
        for domain in self.store.domains():
            snapshot = self.store.read(domain)
            result.append(SnapshotInfo(
                domain=domain,
                populated=snapshot.populated,
                fetched_at=snapshot.fetched_at,
                attempted_at=snapshot.attempted_at,
                consecutive_failures=snapshot.consecutive_failures,
                last_error=snapshot.last_error,
            ))
        return result
