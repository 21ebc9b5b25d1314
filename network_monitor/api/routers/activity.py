"""
活动统计 API

/api/usage_stats 与 /usage_keys.json 为旧路径别名。
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...errors import UnknownTimeWindow
from ...models import ActivityStats, KeySchemaResponse
from ...service import QueryService
from ..dependencies import get_query_service

router = APIRouter(tags=["activity"])


@router.get("/api/activity_stats", response_model=ActivityStats)
@router.get("/api/usage_stats", response_model=ActivityStats, include_in_schema=False)
async def get_activity_stats(
    window: Optional[str] = Query(None, description="时间窗口名称，见 /activity_keys.json"),
    stat: Optional[str] = Query(None, description="统计项名称"),
    selection: Optional[str] = Query(None, description="账户筛选名称"),
    service: QueryService = Depends(get_query_service),
):
    """
    获取活动统计

    未知的统计项 / 筛选名称返回空映射；未知的时间窗口返回 400。
    """
    try:
        return service.get_activity_stats(window=window, stat=stat, selection=selection)
    except UnknownTimeWindow as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{e}. Must be one of: {service.keys.window_names}",
        )


@router.get("/activity_keys.json", response_model=KeySchemaResponse)
@router.get("/usage_keys.json", response_model=KeySchemaResponse, include_in_schema=False)
async def get_activity_keys(service: QueryService = Depends(get_query_service)):
    """统计项 / 时间窗口 / 账户筛选名称表"""
    return service.get_usage_key_schema()
