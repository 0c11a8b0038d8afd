"""后台任务

基于 asyncio 的进程内周期任务：过期文件清理与下载记录写入。
"""

from .periodic import PeriodicTask

__all__ = [
    "PeriodicTask",
]
