"""
过期文件清理服务
定期删除早于保留期限的整个日期目录
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional

from filedrop.core.config import settings
from filedrop.core.log_messages import log_messages
from filedrop.core.log_utils import get_logger
from filedrop.core.storage import BaseStorage, StorageError

logger = get_logger(__name__)

BUCKET_DATE_FORMAT = "%Y-%m-%d"


class SweeperState(Enum):
    """清理器状态"""
    IDLE = "idle"
    SWEEPING = "sweeping"


@dataclass
class SweepResult:
    """一次清理的结果"""
    cutoff: Optional[str] = None
    deleted: List[str] = field(default_factory=list)
    kept: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "cutoff": self.cutoff,
            "deleted": self.deleted,
            "kept": self.kept,
            "skipped": self.skipped,
            "failed": self.failed,
        }


def parse_bucket_date(name: str) -> Optional[date]:
    """解析日期目录名，无法解析时返回None"""
    if len(name) != 10:
        return None
    try:
        return datetime.strptime(name, BUCKET_DATE_FORMAT).date()
    except ValueError:
        return None


class RetentionSweeper:
    """
    过期文件清理器

    状态流转：Idle → Sweeping → Idle。

    - 只删除名称可解析为日期、且严格早于 ``today - retention_days`` 的目录
    - 名称无法解析的目录视为外部目录，永不删除
    - 单个目录删除失败只记录日志，不影响其余目录
    - 同一时间只有一次清理在执行
    """

    def __init__(
        self,
        storage: BaseStorage,
        retention_days: Optional[int] = None,
        today: Optional[Callable[[], date]] = None
    ):
        """
        初始化清理器

        Args:
            storage: 存储服务
            retention_days: 保留天数，默认取配置
            today: 返回当前日期的函数，便于测试注入
        """
        self.storage = storage
        self.retention_days = retention_days if retention_days is not None else settings.retention_days
        self._today = today or date.today
        self._lock = asyncio.Lock()
        self.state = SweeperState.IDLE
        self.last_result: Optional[SweepResult] = None

    def cutoff_date(self) -> date:
        """保留期限的分界日期，早于该日期的目录会被删除"""
        return self._today() - timedelta(days=self.retention_days)

    async def sweep(self) -> SweepResult:
        """执行一次清理"""
        async with self._lock:
            self.state = SweeperState.SWEEPING
            try:
                result = await self._sweep()
            finally:
                self.state = SweeperState.IDLE
            self.last_result = result
            return result

    async def _sweep(self) -> SweepResult:
        cutoff = self.cutoff_date()
        result = SweepResult(cutoff=cutoff.isoformat())
        logger.info(log_messages.SWEEP_START, retention_days=self.retention_days)

        buckets = await self.storage.list_buckets()
        if not buckets:
            logger.info(log_messages.SWEEP_FINISHED, deleted=0, failed=0)
            return result

        for bucket in sorted(buckets):
            bucket_date = parse_bucket_date(bucket)
            if bucket_date is None:
                result.skipped.append(bucket)
                continue
            if bucket_date >= cutoff:
                result.kept.append(bucket)
                continue

            try:
                await self.storage.delete_bucket(bucket)
            except StorageError as e:
                result.failed.append(bucket)
                logger.error(log_messages.SWEEP_BUCKET_FAILED, exception=e, bucket=bucket)
                continue
            result.deleted.append(bucket)
            logger.info(log_messages.SWEEP_BUCKET_DELETED, bucket=bucket)

        logger.info(
            log_messages.SWEEP_FINISHED,
            deleted=len(result.deleted),
            failed=len(result.failed)
        )
        return result
