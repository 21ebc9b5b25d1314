"""
账户抽象活动统计

从区块浏览器分页拉取 user operations 与 accounts，按时间窗口计算：
- user ops 数量
- gas 消耗（fee 之和）
- 活跃账户数（去重 sender）
以及账户筛选：最近创建的账户、24 小时 gas 消耗最高的账户。

统计项 / 时间窗口 / 筛选方式的名称来自 activity_keys.json。
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx
from pydantic import BaseModel, field_validator

from ..errors import MalformedResponse
from ..keys import ActivityKeys, SelectionKey, StatKey, window_start
from ..models import Account, ActivityStats
from .base import UpstreamClient, require_dict

logger = logging.getLogger(__name__)

QUERY_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_timestamp(value: str) -> Optional[datetime]:
    """解析 ISO 8601 时间戳，无时区时按 UTC 处理；无法解析返回 None"""
    if not value:
        return None
    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _address_hash(value: Any) -> str:
    if isinstance(value, dict) and isinstance(value.get("hash"), str):
        return value["hash"]
    raise ValueError("missing address.hash")


class ExplorerUserOp(BaseModel):
    """浏览器返回的 user operation"""
    address: str
    fee: int
    timestamp: str

    @field_validator("address", mode="before")
    @classmethod
    def _address(cls, v):
        return _address_hash(v)

    @field_validator("fee", mode="before")
    @classmethod
    def _fee(cls, v):
        # fee 以十进制字符串返回，可能超过 64 位
        if isinstance(v, str):
            return int(v)
        return v


class ExplorerAccount(BaseModel):
    """浏览器返回的账户"""
    address: str
    creation_timestamp: str = ""

    @field_validator("address", mode="before")
    @classmethod
    def _address(cls, v):
        return _address_hash(v)

    @field_validator("creation_timestamp", mode="before")
    @classmethod
    def _creation_timestamp(cls, v):
        return v or ""


def next_page_token(body: Dict[str, Any]) -> Optional[str]:
    params = body.get("next_page_params")
    if not isinstance(params, dict):
        return None
    token = params.get("page_token")
    if token is None or token == "":
        return None
    return str(token).strip('"')


def compute_activity_stats(
    user_ops: List[ExplorerUserOp],
    accounts: List[ExplorerAccount],
    keys: ActivityKeys,
    now: datetime,
    accounts_limit: int = 5,
) -> ActivityStats:
    """
    根据拉取到的原始数据计算活动统计（纯函数，可在线程中运行）
    """
    starts = {name: window_start(key, now) for key, name in keys.time_windows.items()}

    user_ops_count: Dict[str, int] = {w: 0 for w in starts}
    gas_used: Dict[str, int] = {w: 0 for w in starts}
    senders: Dict[str, set] = {w: set() for w in starts}
    gas_24h: Dict[str, int] = defaultdict(int)
    day_ago = now - timedelta(days=1)

    for op in user_ops:
        op_time = parse_timestamp(op.timestamp)
        if op_time is None:
            logger.debug(f"Skipping user op with bad timestamp: {op.timestamp!r}")
            continue
        for window, start in starts.items():
            if start <= op_time:
                user_ops_count[window] += 1
                gas_used[window] += op.fee
                senders[window].add(op.address)
        if day_ago <= op_time:
            gas_24h[op.address] += op.fee

    values = {
        StatKey.USER_OPS: user_ops_count,
        StatKey.GAS_USED: gas_used,
        StatKey.UNIQUE_ACTIVE_ACCOUNTS: {w: len(s) for w, s in senders.items()},
    }
    stats = {name: dict(values[key]) for key, name in keys.activity_stat_names.items()}

    selected: Dict[str, List[Account]] = {}

    recent_name = keys.selection_name(SelectionKey.RECENT)
    if recent_name is not None:
        dated: List[Tuple[datetime, ExplorerAccount]] = []
        for acc in accounts:
            created = parse_timestamp(acc.creation_timestamp)
            if created is not None:
                dated.append((created, acc))
        dated.sort(key=lambda item: item[0], reverse=True)
        selected[recent_name] = [
            Account(
                address=acc.address,
                creation_timestamp=acc.creation_timestamp,
                gas_used=gas_24h.get(acc.address, 0),
            )
            for _, acc in dated[:accounts_limit]
        ]

    top_name = keys.selection_name(SelectionKey.TOP_GAS_CONSUMERS_24H)
    if top_name is not None:
        created_at = {acc.address: acc.creation_timestamp for acc in accounts}
        ranked = sorted(gas_24h.items(), key=lambda item: (-item[1], item[0]))
        selected[top_name] = [
            Account(address=address, creation_timestamp=created_at.get(address, ""), gas_used=gas)
            for address, gas in ranked[:accounts_limit]
        ]

    return ActivityStats(stats=stats, selected_accounts=selected)


class ActivityStatsClient(UpstreamClient[ActivityStats]):
    """活动统计拉取"""

    domain = "activity_stats"

    def __init__(
        self,
        user_ops_url: str,
        accounts_url: str,
        keys: ActivityKeys,
        page_size: int = 100,
        max_pages: int = 50,
        accounts_limit: int = 5,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.user_ops_url = user_ops_url
        self.accounts_url = accounts_url
        self.keys = keys
        self.page_size = page_size
        self.max_pages = max_pages
        self.accounts_limit = accounts_limit

    def query_start(self, now: datetime) -> datetime:
        """所有时间窗口中最早的起点"""
        return min(window_start(key, now) for key in self.keys.time_windows)

    async def _fetch_pages(
        self,
        client: httpx.AsyncClient,
        url: str,
        start: datetime,
        end: datetime,
    ) -> List[Dict[str, Any]]:
        """
        分页拉取 items

        请求参数：start_time / end_time / page_size / page_token
        响应：items + next_page_params.page_token
        """
        items: List[Dict[str, Any]] = []
        page_token: Optional[str] = None

        for page in range(self.max_pages):
            params = {
                "start_time": start.strftime(QUERY_TIME_FORMAT),
                "end_time": end.strftime(QUERY_TIME_FORMAT),
                "page_size": str(self.page_size),
            }
            if page_token:
                params["page_token"] = page_token

            response = await client.get(url, params=params)
            response.raise_for_status()
            body = require_dict(response.json(), url)

            page_items = body.get("items")
            if not isinstance(page_items, list):
                raise MalformedResponse(f"Missing 'items' in response from {url}")
            items.extend(page_items)

            page_token = next_page_token(body)
            if page_token is None:
                return items

        logger.warning(f"Stopped paging {url} after {self.max_pages} pages")
        return items

    async def _fetch(self, client: httpx.AsyncClient) -> ActivityStats:
        now = datetime.now(timezone.utc)
        start = self.query_start(now)

        raw_ops = await self._fetch_pages(client, self.user_ops_url, start, now)
        raw_accounts = await self._fetch_pages(client, self.accounts_url, start, now)

        user_ops = [ExplorerUserOp(**item) for item in raw_ops]
        accounts = [ExplorerAccount(**item) for item in raw_accounts]
        logger.info(f"Fetched {len(user_ops)} user ops and {len(accounts)} accounts")

        # 聚合计算放到线程中，避免阻塞其他数据域的轮询与 API 请求
        return await asyncio.to_thread(
            compute_activity_stats, user_ops, accounts, self.keys, now, self.accounts_limit
        )
