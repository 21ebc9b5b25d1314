"""
主程序入口

并发运行：
1. 每个数据域一个轮询循环
2. REST API 服务
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import httpx
import uvicorn

from . import __version__
from .api.dependencies import build_query_service, set_query_service
from .cache import SnapshotStore
from .config import AppConfig, get_config
from .poller import Poller, run_pollers
from .service import QueryService
from .upstreams import build_client


def setup_logging():
    """配置日志"""
    config = get_config()

    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    level = getattr(logging, config.logging.level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=log_format,
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    if config.logging.file:
        log_path = Path(config.logging.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(str(log_path), encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(log_format))
        logging.getLogger().addHandler(file_handler)

    # 降低第三方库日志级别
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def build_runtime(
    config: AppConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> tuple:
    """
    创建快照存储、查询服务与所有 Poller

    Returns:
        (SnapshotStore, QueryService, List[Poller])
    """
    domain_configs = config.domain_configs()
    store = SnapshotStore(c.domain for c in domain_configs)
    service: QueryService = build_query_service(store, config)

    pollers: List[Poller] = []
    for domain_config in domain_configs:
        if not domain_config.enabled:
            logging.getLogger(__name__).info(f"Domain {domain_config.domain} disabled")
            continue
        client = build_client(domain_config, keys=service.keys, transport=transport)
        pollers.append(Poller(
            client=client,
            slot=store.slot(domain_config.domain),
            interval_s=domain_config.interval_s,
            timeout_s=domain_config.timeout_s,
        ))

    return store, service, pollers


async def run_api_server():
    """运行 API 服务器"""
    from .api.app import create_app

    config = get_config()
    app = create_app()

    server_config = uvicorn.Config(
        app=app,
        host=config.api.host,
        port=config.api.port,
        log_level="info",
        access_log=False
    )
    server = uvicorn.Server(server_config)
    await server.serve()


async def main():
    """主函数：启动所有任务"""
    logger = logging.getLogger(__name__)

    setup_logging()
    logger.info("=" * 60)
    logger.info(f"Network Monitor v{__version__}")
    logger.info("=" * 60)

    config = get_config()
    logger.info(f"Config loaded: API={config.api.host}:{config.api.port}")
    for c in config.domain_configs():
        logger.info(f"Domain {c.domain}: {c.upstream_url} every {c.interval_s}s (timeout {c.timeout_s}s)")

    _, service, pollers = build_runtime(config)
    set_query_service(service)

    logger.info("Starting concurrent tasks...")

    poll_task = asyncio.create_task(run_pollers(pollers))
    try:
        # API 服务退出（收到信号）后停止所有轮询
        await run_api_server()
    except asyncio.CancelledError:
        logger.info("Tasks cancelled, shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        raise
    finally:
        poll_task.cancel()
        await asyncio.gather(poll_task, return_exceptions=True)
        logger.info("Pollers stopped")


def cli():
    """命令行入口"""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nShutdown requested, exiting...")
        sys.exit(0)


if __name__ == "__main__":
    cli()
