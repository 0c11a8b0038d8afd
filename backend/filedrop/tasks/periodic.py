"""周期任务

在应用事件循环内按固定间隔执行协程，生命周期由应用 lifespan 管理。
"""

import asyncio
from typing import Awaitable, Callable, Optional

from filedrop.core.log_utils import get_logger

logger = get_logger(__name__)


class PeriodicTask:
    """周期任务

    Args:
        name: 任务名称，用于日志
        interval: 执行间隔（秒）
        func: 每次执行的协程函数
        run_immediately: 启动时是否立即执行一次
    """

    def __init__(
        self,
        name: str,
        interval: float,
        func: Callable[[], Awaitable[object]],
        run_immediately: bool = False,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self.func = func
        self.run_immediately = run_immediately
        self.runs = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """启动任务，重复调用无副作用"""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=f"periodic:{self.name}")
        logger.info("周期任务已启动", task=self.name, interval=self.interval)

    async def stop(self) -> None:
        """取消任务并等待其退出"""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("周期任务已停止", task=self.name)

    async def _loop(self) -> None:
        if self.run_immediately:
            await self._tick()
        while True:
            await asyncio.sleep(self.interval)
            await self._tick()

    async def _tick(self) -> None:
        self.runs += 1
        try:
            await self.func()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # 单次执行失败不影响后续调度
            logger.error("周期任务执行失败", exception=e, task=self.name)
