"""
轮询循环

每个数据域一个 Poller，按固定周期调用 UpstreamClient 并更新对应的 CacheSlot。

状态机：idle -> fetching -> committed | failed -> idle
- 单次拉取受 timeout_s 限制（小于周期），同一数据域最多一个在途请求
- 失败不立即重试，下一个周期即为重试；不做退避
- 任何异常都不会终止循环，也不会影响其他数据域
"""

import asyncio
import logging
from typing import Iterable, Optional

from .cache import CacheSlot
from .errors import FetchTimeout
from .upstreams.base import UpstreamClient

logger = logging.getLogger(__name__)

IDLE = "idle"
FETCHING = "fetching"
COMMITTED = "committed"
FAILED = "failed"


class Poller:
    """
    单个数据域的轮询器

    Args:
        client: 上游客户端
        slot: 所属缓存槽（本 Poller 为唯一写者）
        interval_s: 轮询周期（秒）
        timeout_s: 单次拉取超时（秒），必须小于 interval_s
    """

    def __init__(self, client: UpstreamClient, slot: CacheSlot, interval_s: float, timeout_s: float):
        if not 0 < timeout_s < interval_s:
            raise ValueError(f"timeout_s ({timeout_s}) must be shorter than interval_s ({interval_s})")
        self.client = client
        self.slot = slot
        self.interval_s = interval_s
        self.timeout_s = timeout_s
        self.state = IDLE
        self.last_outcome: Optional[str] = None
        self._stopped = asyncio.Event()

    @property
    def domain(self) -> str:
        return self.slot.domain

    async def poll_once(self) -> str:
        """
        执行一次拉取

        Returns:
            本次结果：committed 或 failed
        """
        self.state = FETCHING
        try:
            value = await asyncio.wait_for(self.client.fetch(), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            error = FetchTimeout(f"no response within {self.timeout_s}s")
            snapshot = self.slot.record_error(error)
            logger.warning(
                f"[{self.domain}] poll timed out after {self.timeout_s}s "
                f"({snapshot.consecutive_failures} consecutive failures)"
            )
            outcome = FAILED
        except asyncio.CancelledError:
            self.state = IDLE
            raise
        except Exception as e:
            snapshot = self.slot.record_error(e)
            if snapshot.last_error and snapshot.last_error.kind == "malformed_response":
                logger.error(f"[{self.domain}] poll failed: {e}", exc_info=True)
            else:
                logger.warning(
                    f"[{self.domain}] poll failed: {e} "
                    f"({snapshot.consecutive_failures} consecutive failures)"
                )
            outcome = FAILED
        else:
            self.slot.write(value)
            logger.debug(f"[{self.domain}] snapshot committed")
            outcome = COMMITTED

        self.last_outcome = outcome
        self.state = IDLE
        return outcome

    async def run(self):
        """
        运行轮询循环

        首次拉取立即执行，之后按固定周期（以事件循环时钟对齐，不随拉取耗时漂移）。
        """
        loop = asyncio.get_running_loop()
        logger.info(
            f"Starting poller {self.domain} (interval={self.interval_s}s, timeout={self.timeout_s}s)"
        )
        next_tick = loop.time()

        while not self._stopped.is_set():
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                logger.info(f"Poller {self.domain} cancelled")
                raise
            except Exception as e:
                # poll_once 自身已兜底，这里只防御记录逻辑本身的异常
                logger.error(f"Poller {self.domain} loop error: {e}", exc_info=True)

            next_tick += self.interval_s
            now = loop.time()
            if next_tick < now:
                # 落后超过一个周期时跳过错过的 tick
                next_tick = now + self.interval_s

            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=next_tick - now)
            except asyncio.TimeoutError:
                pass

        logger.info(f"Poller {self.domain} stopped")

    def stop(self):
        """停止调度新的 tick（当前拉取仍受超时约束）"""
        self._stopped.set()


async def run_pollers(pollers: Iterable[Poller]):
    """并发运行所有 Poller，直到被取消"""
    pollers = list(pollers)
    tasks = [asyncio.create_task(p.run(), name=f"poller:{p.domain}") for p in pollers]
    try:
        await asyncio.gather(*tasks)
    finally:
        for p in pollers:
            p.stop()
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
