"""
下载记录服务
在内存中按客户端缓存下载事件，定期合并去重后写入记录文件
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from filedrop.core.config import settings
from filedrop.core.log_messages import log_messages
from filedrop.core.log_utils import get_logger
from filedrop.services.activity.journal import Journal, JsonJournalStore
from filedrop.tasks import PeriodicTask

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """格式化为带毫秒的 ISO-8601 UTC 时间，如 2024-05-01T08:00:00.000Z"""
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class DownloadEvent:
    """一次下载事件"""
    timestamp: datetime
    download_date: str
    files: List[str] = field(default_factory=list)

    @property
    def file_key(self) -> Tuple[str, ...]:
        """排序后的文件名集合，用于去重比较"""
        return tuple(sorted(self.files))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": format_timestamp(self.timestamp),
            "download_date": self.download_date,
            "files": list(self.files),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DownloadEvent":
        return cls(
            timestamp=parse_timestamp(data["timestamp"]),
            download_date=data.get("download_date", ""),
            files=list(data.get("files", [])),
        )


def deduplicate_events(events: Iterable[DownloadEvent], window_ms: int) -> List[DownloadEvent]:
    """
    按时间排序并去重

    若某事件距上一条*保留*事件不足 ``window_ms`` 毫秒且文件集合相同，则丢弃。
    """
    window = timedelta(milliseconds=window_ms)
    kept: List[DownloadEvent] = []
    last: Optional[DownloadEvent] = None
    for event in sorted(events, key=lambda e: e.timestamp):
        if (
            last is not None
            and event.timestamp - last.timestamp < window
            and event.file_key == last.file_key
        ):
            continue
        kept.append(event)
        last = event
    return kept


class ActivityLogState(Enum):
    """下载记录器状态"""
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class DownloadActivityLog:
    """
    下载记录器

    - ``record`` 只写内存，不触碰磁盘
    - ``flush`` 由定时器周期调用，关闭时再调用一次；同一时间只有一次写入
    - 写入失败时缓存的事件会放回缓冲区，等待下一次写入
    """

    def __init__(
        self,
        journal: Optional[JsonJournalStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
        flush_interval: Optional[float] = None,
        dedup_window_ms: Optional[int] = None,
    ):
        """
        初始化下载记录器

        Args:
            journal: 持久化存储
            clock: 返回当前时间的函数，便于测试注入
            flush_interval: 定时写入间隔（秒）
            dedup_window_ms: 去重时间窗口（毫秒）
        """
        self.journal = journal or JsonJournalStore()
        self.clock = clock or utc_now
        self.dedup_window_ms = (
            dedup_window_ms if dedup_window_ms is not None else settings.activity_dedup_window_ms
        )
        self._buffer: Dict[str, List[DownloadEvent]] = {}
        self._lock = asyncio.Lock()
        self._timer = PeriodicTask(
            "activity-flush",
            flush_interval or settings.activity_flush_interval_seconds,
            self.flush,
        )
        self.state = ActivityLogState.RUNNING

    @property
    def pending_clients(self) -> int:
        """缓冲区中有待写入事件的客户端数量"""
        return len(self._buffer)

    @property
    def pending_events(self) -> int:
        return sum(len(events) for events in self._buffer.values())

    def start(self) -> None:
        """启动定时写入"""
        self._timer.start()

    def record(self, client: str, date: str, names: List[str]) -> Optional[DownloadEvent]:
        """记录一次下载事件"""
        if self.state is ActivityLogState.STOPPED:
            logger.warning("下载记录器已停止，丢弃下载事件", client=client, download_date=date)
            return None
        event = DownloadEvent(timestamp=self.clock(), download_date=date, files=list(names))
        self._buffer.setdefault(client, []).append(event)
        return event

    async def flush(self) -> int:
        """
        将缓冲区合并写入记录文件

        Returns:
            int: 本次写入的客户端数量
        """
        async with self._lock:
            if not self._buffer:
                return 0

            pending, self._buffer = self._buffer, {}
            # 未成功保存的客户端，finally 中放回缓冲区（包括被取消的情况）
            unsaved = set(pending)
            logger.debug(log_messages.ACTIVITY_FLUSH_START)

            try:
                try:
                    data = await self.journal.load()
                except Exception as e:
                    logger.error(log_messages.ACTIVITY_FLUSH_FAILED, exception=e)
                    return 0

                merged_clients = []
                for client, events in pending.items():
                    try:
                        data[client] = self._merge_client(client, data.get(client, []), events)
                    except Exception as e:
                        logger.error(log_messages.ACTIVITY_CLIENT_MERGE_FAILED, exception=e, client=client)
                        continue
                    merged_clients.append(client)

                if not merged_clients:
                    return 0

                try:
                    await self.journal.save(data)
                except Exception as e:
                    logger.error(log_messages.ACTIVITY_FLUSH_FAILED, exception=e)
                    return 0
                unsaved.difference_update(merged_clients)
            finally:
                if unsaved:
                    self._requeue({client: pending[client] for client in unsaved})

            logger.info(log_messages.ACTIVITY_FLUSH_SUCCESS, count=len(merged_clients))
            return len(merged_clients)

    def _merge_client(
        self,
        client: str,
        existing: List[Dict[str, Any]],
        events: List[DownloadEvent]
    ) -> List[Dict[str, Any]]:
        """合并单个客户端的已有记录与新事件，排序去重"""
        restored: List[DownloadEvent] = []
        for record in existing:
            try:
                restored.append(DownloadEvent.from_dict(record))
            except (KeyError, TypeError, ValueError, AttributeError):
                logger.warning("忽略无法解析的下载记录", client=client, record=str(record))
        deduped = deduplicate_events(restored + events, self.dedup_window_ms)
        return [event.to_dict() for event in deduped]

    def _requeue(self, pending: Dict[str, List[DownloadEvent]]) -> None:
        """写入失败时把事件放回缓冲区，保持时间顺序"""
        for client, events in pending.items():
            self._buffer[client] = events + self._buffer.get(client, [])

    async def get_snapshot(self) -> Journal:
        """获取完整下载记录，若有未写入事件则先写入"""
        if self._buffer:
            logger.info("查看下载记录，先写入缓存")
            await self.flush()
        return await self.journal.load()

    async def shutdown(self) -> None:
        """停止定时器并写入剩余缓存，进程退出前必须等待完成"""
        if self.state is ActivityLogState.STOPPED:
            return
        self.state = ActivityLogState.SHUTTING_DOWN
        # 等待进行中的定时写入完成后再停止定时器
        async with self._lock:
            await self._timer.stop()

        if self._buffer:
            logger.info(log_messages.ACTIVITY_SHUTDOWN)
        # 写入期间仍可能有下载完成，直到缓冲区清空或写入失败
        while self._buffer:
            if not await self.flush():
                logger.error("关闭时下载记录写入失败，未写入的事件将丢失", count=self.pending_events)
                break
        self.state = ActivityLogState.STOPPED
