"""
依赖注入模块

提供 FastAPI 依赖项。QueryService 由 main 在启动时注册；
未注册时（例如单独导入 app）按当前配置创建一个空的快照存储。
"""

from typing import Optional

from ..cache import SnapshotStore
from ..config import AppConfig, get_config
from ..keys import load_activity_keys
from ..service import QueryService

_service: Optional[QueryService] = None


def build_query_service(store: SnapshotStore, config: Optional[AppConfig] = None) -> QueryService:
    """为给定的快照存储创建 QueryService（默认使用全局配置）"""
    config = config or get_config()
    keys = load_activity_keys(config.domains.activity_stats.keys_path)
    return QueryService(
        store,
        keys,
        deposit_wallet=config.domains.balances.deposit_wallet,
        validating_wallet=config.domains.balances.validating_wallet,
    )


def set_query_service(service: Optional[QueryService]):
    global _service
    _service = service


async def get_query_service() -> QueryService:
    """获取 QueryService 实例"""
    global _service
    if _service is None:
        store = SnapshotStore(c.domain for c in get_config().domain_configs())
        _service = build_query_service(store)
    return _service
