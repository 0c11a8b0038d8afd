"""
下载服务
单个文件直接流式返回，多个文件边读边压缩为 zip 流
"""

import zipfile
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional

from filedrop.core.config import settings
from filedrop.core.log_messages import log_messages
from filedrop.core.log_utils import get_logger
from filedrop.core.storage import (
    BaseStorage,
    NotFoundError,
    StoredFile,
    ValidationError,
    validate_date,
    validate_name,
)
from filedrop.services.activity.download_log import DownloadActivityLog
from filedrop.utils.file_utils import build_content_disposition

logger = get_logger(__name__)

ARCHIVE_MEDIA_TYPE = "application/zip"

DisconnectProbe = Callable[[], Awaitable[bool]]


def archive_name_for(date: str) -> str:
    return f"files_{date}.zip"


@dataclass
class DownloadPayload:
    """下载响应内容，body 在被迭代时才真正读取文件"""
    filename: str
    media_type: str
    body: AsyncIterator[bytes]
    size: Optional[int] = None
    is_archive: bool = False

    @property
    def headers(self) -> Dict[str, str]:
        headers = {"Content-Disposition": build_content_disposition(self.filename)}
        if self.size is not None:
            headers["Content-Length"] = str(self.size)
        return headers


class _ZipSink:
    """
    zip 编码器的输出缓冲

    不提供 tell/seek，zipfile 会按不可回写的流处理并为每个条目写数据描述符。
    """

    def __init__(self):
        self._buffer = bytearray()

    def write(self, data: bytes) -> int:
        self._buffer.extend(data)
        return len(data)

    def flush(self) -> None:
        pass

    def drain(self) -> bytes:
        data = bytes(self._buffer)
        self._buffer.clear()
        return data


class ArchiveStreamer:
    """
    下载流构造器

    - 所有文件名在访问文件系统前统一校验
    - 单个文件：原样返回，不做 zip 封装
    - 多个文件：逐个读取并写入 zip，缺失的文件跳过，全部缺失时返回 404
    - 响应完整发送后记录一次下载事件
    """

    def __init__(
        self,
        storage: BaseStorage,
        activity_log: Optional[DownloadActivityLog] = None,
        compress_level: Optional[int] = None
    ):
        self.storage = storage
        self.activity_log = activity_log
        self.compress_level = (
            compress_level if compress_level is not None else settings.archive_compress_level
        )

    async def prepare(
        self,
        date: str,
        names: List[str],
        client: str,
        is_disconnected: Optional[DisconnectProbe] = None
    ) -> DownloadPayload:
        """
        校验请求并构造下载内容

        Args:
            date: 日期（YYYY-MM-DD）
            names: 要下载的文件名列表
            client: 客户端标识，用于下载记录
            is_disconnected: 检查客户端是否已断开的协程函数

        Returns:
            DownloadPayload: 下载内容

        Raises:
            ValidationError: 日期或文件名不合法
            NotFoundError: 请求的文件均不存在
        """
        validate_date(date)
        if not names:
            raise ValidationError("未指定要下载的文件", details={"date": date})
        for name in names:
            validate_name(name)

        unique_names = list(dict.fromkeys(names))
        if len(unique_names) == 1:
            metadata = await self.storage.stat(date, unique_names[0])
            return DownloadPayload(
                filename=metadata.name,
                media_type=metadata.content_type,
                body=self._single_body(metadata, client),
                size=metadata.size,
            )

        available = await self._collect_available(date, unique_names)
        if not available:
            raise NotFoundError(
                "请求的文件均不存在",
                details={"date": date, "names": unique_names}
            )

        archive_name = archive_name_for(date)
        return DownloadPayload(
            filename=archive_name,
            media_type=ARCHIVE_MEDIA_TYPE,
            body=self._archive_body(date, available, len(unique_names), client, is_disconnected),
            is_archive=True,
        )

    async def _collect_available(self, date: str, names: List[str]) -> List[StoredFile]:
        available = []
        for name in names:
            try:
                available.append(await self.storage.stat(date, name))
            except NotFoundError:
                logger.warning(log_messages.ARCHIVE_ENTRY_MISSING, date=date, file_name=name)
        return available

    async def _single_body(self, metadata: StoredFile, client: str) -> AsyncIterator[bytes]:
        try:
            async with await self.storage.open_read(metadata.bucket, metadata.name) as stream:
                async for chunk in stream:
                    yield chunk
        except Exception as e:
            logger.error(log_messages.DOWNLOAD_FAILED, exception=e, date=metadata.bucket)
            raise

        self._record(client, metadata.bucket, [metadata.name])
        logger.info(log_messages.DOWNLOAD_SINGLE_SUCCESS, date=metadata.bucket, file_name=metadata.name)

    async def _archive_body(
        self,
        date: str,
        entries: List[StoredFile],
        requested: int,
        client: str,
        is_disconnected: Optional[DisconnectProbe]
    ) -> AsyncIterator[bytes]:
        archive_name = archive_name_for(date)
        sink = _ZipSink()
        archive = zipfile.ZipFile(
            sink,
            mode="w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=self.compress_level,
        )
        added: List[str] = []

        try:
            for metadata in entries:
                if is_disconnected is not None and await is_disconnected():
                    logger.warning(log_messages.ARCHIVE_CLIENT_GONE, archive_name=archive_name)
                    return

                try:
                    stream = await self.storage.open_read(date, metadata.name)
                except NotFoundError:
                    # 预检查之后被删除
                    logger.warning(log_messages.ARCHIVE_ENTRY_MISSING, date=date, file_name=metadata.name)
                    continue

                force_zip64 = metadata.size * 1.05 > zipfile.ZIP64_LIMIT
                async with stream:
                    with archive.open(metadata.name, mode="w", force_zip64=force_zip64) as entry:
                        async for chunk in stream:
                            entry.write(chunk)
                            data = sink.drain()
                            if data:
                                yield data
                added.append(metadata.name)

                data = sink.drain()
                if data:
                    yield data

            archive.close()
            data = sink.drain()
            if data:
                yield data
        except Exception as e:
            logger.error(log_messages.DOWNLOAD_FAILED, exception=e, date=date)
            raise

        self._record(client, date, added)
        logger.info(
            log_messages.DOWNLOAD_ARCHIVE_SUCCESS,
            archive_name=archive_name,
            added=len(added),
            requested=requested
        )

    def _record(self, client: str, date: str, names: List[str]) -> None:
        if self.activity_log is not None and names:
            self.activity_log.record(client, date, names)
