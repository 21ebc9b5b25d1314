"""
FastAPI 应用配置

配置 CORS、路由注册。所有接口只读。
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import get_config
from .routers import activity, bridge, network, snapshots


def create_app() -> FastAPI:
    """
    创建 FastAPI 应用实例

    配置：
    - CORS 中间件（仅 GET）
    - API 路由
    """
    config = get_config()

    app = FastAPI(
        title="Network Monitor",
        description="网络监控数据聚合与缓存服务",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.include_router(network.router)
    app.include_router(bridge.router)
    app.include_router(activity.router)
    app.include_router(snapshots.router)

    return app
