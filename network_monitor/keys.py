"""
活动统计键值表

从 activity_keys.json 加载（启动时加载一次），定义：
- activity_stat_names: 统计项 -> 展示名称
- time_windows: 时间窗口 -> 展示名称
- select_accounts_by: 账户筛选方式 -> 展示名称

API 返回的 stats / selected_accounts 均以展示名称为键，前端通过
/activity_keys.json 发现可用名称，而不是写死在代码里。
"""

import json
import logging
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)

DEFAULT_KEYS_PATH = Path(__file__).parent / "activity_keys.json"


class StatKey(str, Enum):
    USER_OPS = "ACTIVITY_STATS__USER_OPS"
    GAS_USED = "ACTIVITY_STATS__GAS_USED"
    UNIQUE_ACTIVE_ACCOUNTS = "ACTIVITY_STATS__UNIQUE_ACTIVE_ACCOUNTS"


class WindowKey(str, Enum):
    LAST_24_HOURS = "TIME_WINDOW__LAST_24_HOURS"
    LAST_30_DAYS = "TIME_WINDOW__LAST_30_DAYS"
    YEAR_TO_DATE = "TIME_WINDOW__YEAR_TO_DATE"


class SelectionKey(str, Enum):
    RECENT = "ACCOUNTS__RECENT"
    TOP_GAS_CONSUMERS_24H = "ACCOUNTS__TOP_GAS_CONSUMERS_24H"


def window_start(window: WindowKey, now: datetime) -> datetime:
    """计算时间窗口的起点（含）"""
    if window is WindowKey.LAST_24_HOURS:
        return now - timedelta(days=1)
    if window is WindowKey.LAST_30_DAYS:
        return now - timedelta(days=30)
    return now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)


class ActivityKeys(BaseModel):
    """活动统计键值表（版本化配置文档）"""
    version: int = 1
    activity_stat_names: Dict[StatKey, str]
    time_windows: Dict[WindowKey, str]
    select_accounts_by: Dict[SelectionKey, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_names(self):
        if not self.activity_stat_names:
            raise ValueError("activity_stat_names must not be empty")
        if not self.time_windows:
            raise ValueError("time_windows must not be empty")
        for field in ("activity_stat_names", "time_windows", "select_accounts_by"):
            names = list(getattr(self, field).values())
            if len(names) != len(set(names)):
                raise ValueError(f"Duplicate display names in {field}")
        return self

    def stat_name(self, key: StatKey) -> Optional[str]:
        return self.activity_stat_names.get(key)

    def selection_name(self, key: SelectionKey) -> Optional[str]:
        return self.select_accounts_by.get(key)

    @property
    def stat_names(self) -> List[str]:
        return list(self.activity_stat_names.values())

    @property
    def window_names(self) -> List[str]:
        return list(self.time_windows.values())

    @property
    def selection_names(self) -> List[str]:
        return list(self.select_accounts_by.values())


def load_activity_keys(path: Optional[str] = None) -> ActivityKeys:
    """
    加载键值表

    Args:
        path: JSON 文件路径，默认使用包内自带的 activity_keys.json

    Raises:
        FileNotFoundError: 文件不存在
        pydantic.ValidationError: 内容不合法
    """
    keys_file = Path(path) if path else DEFAULT_KEYS_PATH
    with open(keys_file, "r", encoding="utf-8") as f:
        raw = json.load(f)

    keys = ActivityKeys(**raw)
    logger.info(
        f"Activity keys v{keys.version} loaded from {keys_file}: "
        f"{len(keys.activity_stat_names)} stats, {len(keys.time_windows)} windows, "
        f"{len(keys.select_accounts_by)} selections"
    )
    return keys
