"""
网络状态与余额 API
"""

from fastapi import APIRouter, Depends

from ...models import BalancesResponse, NetworkStatus
from ...service import QueryService
from ..dependencies import get_query_service

router = APIRouter(prefix="/api", tags=["network"])


@router.get("/status", response_model=NetworkStatus)
async def get_network_status(service: QueryService = Depends(get_query_service)):
    """
    获取网络状态

    batch_producer / rpc_endpoint / bundler_endpoint：online | offline | unknown
    """
    return service.get_network_status()


@router.get("/balances", response_model=BalancesResponse)
async def get_balances(service: QueryService = Depends(get_query_service)):
    """获取 paymaster 钱包余额（8 位小数字符串）"""
    return service.get_balances()
