"""
文件投递服务
组合存储、下载、下载记录、过期清理和文本备忘，对外提供统一入口
"""

from datetime import date
from typing import Any, AsyncIterable, Callable, Dict, List, Optional

from filedrop.core.config import Settings, settings
from filedrop.core.log_messages import log_messages
from filedrop.core.log_utils import get_logger
from filedrop.core.storage import (
    BaseStorage,
    StorageError,
    get_storage_service,
    sanitize_filename,
    validate_date,
)
from filedrop.services.activity.download_log import DownloadActivityLog
from filedrop.services.activity.journal import JsonJournalStore
from filedrop.services.download.archive_streamer import (
    ArchiveStreamer,
    DisconnectProbe,
    DownloadPayload,
)
from filedrop.services.retention.sweeper import RetentionSweeper, SweepResult
from filedrop.services.text.text_note_service import TextNoteService
from filedrop.tasks import PeriodicTask
from filedrop.utils.file_utils import get_human_readable_size

logger = get_logger(__name__)


class FileDropService:
    """
    文件投递服务

    生命周期由应用 lifespan 管理：启动时 ``start()``，退出前必须等待 ``shutdown()``
    完成，以保证缓存的下载记录写入磁盘。
    """

    def __init__(
        self,
        storage: Optional[BaseStorage] = None,
        activity_log: Optional[DownloadActivityLog] = None,
        sweeper: Optional[RetentionSweeper] = None,
        text_notes: Optional[TextNoteService] = None,
        today: Optional[Callable[[], date]] = None,
        max_upload_size: Optional[int] = None,
        sweep_interval: Optional[float] = None,
        compress_level: Optional[int] = None
    ):
        self.storage = storage or get_storage_service()
        self.activity_log = activity_log or DownloadActivityLog()
        self._today = today or date.today
        self.sweeper = sweeper or RetentionSweeper(self.storage, today=self._today)
        self.streamer = ArchiveStreamer(self.storage, self.activity_log, compress_level)
        self.text_notes = text_notes or TextNoteService()
        self.max_upload_size = (
            max_upload_size if max_upload_size is not None else settings.max_upload_size
        )
        self._sweep_task = PeriodicTask(
            "retention-sweep",
            sweep_interval or settings.sweep_interval_seconds,
            self.sweep_now,
            run_immediately=True,
        )

    @classmethod
    def from_settings(cls, app_settings: Settings) -> "FileDropService":
        """根据配置创建服务及其全部组件"""
        storage = get_storage_service(
            app_settings.storage_adapter,
            root_dir=app_settings.absolute_files_dir,
            chunk_size=app_settings.stream_chunk_size,
        )
        activity_log = DownloadActivityLog(
            journal=JsonJournalStore(app_settings.absolute_activity_journal_file),
            flush_interval=app_settings.activity_flush_interval_seconds,
            dedup_window_ms=app_settings.activity_dedup_window_ms,
        )
        return cls(
            storage=storage,
            activity_log=activity_log,
            sweeper=RetentionSweeper(storage, retention_days=app_settings.retention_days),
            text_notes=TextNoteService(app_settings.absolute_text_log_file),
            max_upload_size=app_settings.max_upload_size,
            sweep_interval=app_settings.sweep_interval_seconds,
            compress_level=app_settings.archive_compress_level,
        )

    def today_bucket(self) -> str:
        """当天的日期目录名"""
        return self._today().isoformat()

    def start(self) -> None:
        """启动过期清理（立即执行一次）和下载记录定时写入"""
        self._sweep_task.start()
        self.activity_log.start()

    async def upload(
        self,
        date_str: str,
        desired_name: str,
        content_type: Optional[str],
        stream: AsyncIterable[bytes]
    ) -> str:
        """
        保存上传的数据流

        Args:
            date_str: 日期目录
            desired_name: 客户端提供的文件名（已解码）
            content_type: 客户端声明的文件类型，仅用于日志
            stream: 请求体字节流

        Returns:
            str: 最终保存的文件名
        """
        validate_date(date_str)
        base_name, extension = sanitize_filename(desired_name)
        logger.info(log_messages.FILE_UPLOAD_START, file_name=desired_name, content_type=content_type)

        try:
            result = await self.storage.write_stream(
                date_str,
                base_name,
                extension,
                stream,
                max_size=self.max_upload_size or None,
            )
        except StorageError as e:
            logger.error(log_messages.FILE_UPLOAD_FAILED, exception=e, file_name=desired_name)
            raise

        logger.info(
            log_messages.FILE_UPLOAD_SUCCESS,
            file_name=result.name,
            size=get_human_readable_size(result.size)
        )
        return result.name

    async def list_files(self, date_str: str) -> List[Dict[str, Any]]:
        """列出某天上传的文件"""
        validate_date(date_str)
        files = await self.storage.list(date_str)
        logger.info(log_messages.FILE_LIST_SUCCESS, date=date_str, count=len(files))
        return [stored.to_entry() for stored in files]

    async def download(
        self,
        date_str: str,
        names: List[str],
        client_identity: str,
        is_disconnected: Optional[DisconnectProbe] = None
    ) -> DownloadPayload:
        """构造下载内容，单个文件直接返回，多个文件打包为 zip"""
        return await self.streamer.prepare(date_str, names, client_identity, is_disconnected)

    async def get_activity_report(self) -> Dict[str, List[Dict[str, Any]]]:
        """获取全部下载记录"""
        return await self.activity_log.get_snapshot()

    async def sweep_now(self) -> SweepResult:
        """立即执行一次过期清理"""
        return await self.sweeper.sweep()

    async def append_text(self, content: str) -> str:
        """保存一条文本备忘"""
        return await self.text_notes.append(content)

    async def shutdown(self) -> None:
        """停止定时任务并写入剩余下载记录"""
        await self._sweep_task.stop()
        await self.activity_log.shutdown()
        logger.info(log_messages.OPERATION_SUCCESS, operation_name="文件投递服务关闭")
