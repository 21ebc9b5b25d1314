"""
快照新鲜度 API
"""

from typing import List

from fastapi import APIRouter, Depends

from ...models import SnapshotInfo
from ...service import QueryService
from ..dependencies import get_query_service

router = APIRouter(prefix="/api", tags=["snapshots"])


@router.get("/snapshots", response_model=List[SnapshotInfo])
async def list_snapshots(service: QueryService = Depends(get_query_service)):
    """
    各数据域最近一次成功 / 尝试时间及最近错误

    上游故障只体现在这里，不会导致其他接口返回 5xx。
    """
    return service.get_snapshot_overview()


@router.get("/health")
async def health():
    return {"status": "ok"}
