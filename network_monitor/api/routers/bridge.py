"""
桥状态 API
"""

from fastapi import APIRouter, Depends

from ...models import BridgeStatus
from ...service import QueryService
from ..dependencies import get_query_service

router = APIRouter(prefix="/api", tags=["bridge"])


@router.get("/bridge_status", response_model=BridgeStatus)
async def get_bridge_status(service: QueryService = Depends(get_query_service)):
    """获取桥运营者、充值、提现、报销状态"""
    return service.get_bridge_status()
