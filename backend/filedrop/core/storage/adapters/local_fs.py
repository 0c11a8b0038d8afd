"""
本地文件系统存储适配器
按 ``<root>/<YYYY-MM-DD>/<filename>`` 布局管理上传文件
"""

import asyncio
import os
import shutil
from stat import S_ISREG
from datetime import datetime
from pathlib import Path
from typing import AsyncIterable, AsyncIterator, List, Optional, Union

import aiofiles
import aiofiles.os

from filedrop.core.config import settings
from filedrop.core.log_messages import log_messages
from filedrop.core.log_utils import get_logger
from filedrop.core.storage.base_storage import BaseStorage, FileReadStream
from filedrop.core.storage.exceptions import (
    NotFoundError,
    StorageIOError,
    UploadInterruptedError,
    UploadTooLargeError,
)
from filedrop.core.storage.models import StoredFile, WriteResult
from filedrop.core.storage.naming import NameResolver, validate_date, validate_name
from filedrop.utils.file_utils import get_mime_type

logger = get_logger(__name__)


class LocalFileReadStream(FileReadStream):
    """基于 aiofiles 文件句柄的分块读取流"""

    def __init__(self, handle, metadata: StoredFile, chunk_size: int):
        super().__init__(metadata)
        self._handle = handle
        self._chunk_size = chunk_size
        self._closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        try:
            while True:
                chunk = await self._handle.read(self._chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if not self._closed:
            self._closed = True
            await self._handle.close()


class LocalDatedStorage(BaseStorage):
    """
    本地日期分桶存储

    功能特性：
    - 日期目录在首次写入时惰性创建，列表和读取不会创建目录
    - 写入使用独占创建，重名时自动追加 ``_N`` 后缀，绝不覆盖已有文件
    - 读写均为分块流式处理，不会整体载入内存
    - 写入失败时删除残留文件
    """

    ADAPTER_NAME = "local"

    def __init__(
        self,
        root_dir: Optional[Union[str, Path]] = None,
        chunk_size: Optional[int] = None,
        resolver: Optional[NameResolver] = None
    ) -> None:
        """
        初始化本地存储

        Args:
            root_dir: 存储根目录，默认使用配置中的 files_dir
            chunk_size: 读取分块大小（字节）
            resolver: 重名消解器
        """
        self.root_dir = Path(root_dir or settings.absolute_files_dir)
        self.chunk_size = chunk_size or settings.stream_chunk_size
        self.resolver = resolver or NameResolver()

    def bucket_path(self, date: str) -> Path:
        """获取日期目录路径"""
        return self.root_dir / validate_date(date)

    async def ensure_root(self) -> None:
        """确保根目录存在"""
        await aiofiles.os.makedirs(self.root_dir, exist_ok=True)

    async def ensure_bucket(self, date: str) -> None:
        bucket_dir = self.bucket_path(date)
        if await aiofiles.os.path.isdir(bucket_dir):
            return
        try:
            await aiofiles.os.makedirs(bucket_dir, exist_ok=True)
        except OSError as e:
            raise StorageIOError(
                "创建日期目录失败",
                details={"bucket": date, "error": str(e)}
            ) from e
        logger.info(log_messages.BUCKET_CREATED, bucket=date)

    async def _create_exclusive(self, bucket_dir: Path, base_name: str, extension: str):
        """
        解析最终文件名并独占创建

        检查与创建合并为一次 ``open(..., "xb")``，遇到并发创建的同名文件时重新解析。
        """
        while True:
            final_name = await asyncio.to_thread(
                self.resolver.resolve, bucket_dir, base_name, extension
            )
            try:
                handle = await aiofiles.open(bucket_dir / final_name, "xb")
            except FileExistsError:
                logger.debug("候选文件名已被并发写入占用，重新解析", file_name=final_name)
                continue
            return final_name, handle

    async def write_stream(
        self,
        date: str,
        base_name: str,
        extension: str,
        source: AsyncIterable[bytes],
        max_size: Optional[int] = None
    ) -> WriteResult:
        bucket_dir = self.bucket_path(date)
        await self.ensure_bucket(date)

        try:
            final_name, handle = await self._create_exclusive(bucket_dir, base_name, extension)
        except OSError as e:
            raise StorageIOError(
                "创建文件失败",
                details={"bucket": date, "file_name": f"{base_name}{extension}", "error": str(e)}
            ) from e

        file_path = bucket_dir / final_name
        written = 0
        try:
            try:
                chunks = aiter(source)
                while True:
                    try:
                        chunk = await anext(chunks)
                    except StopAsyncIteration:
                        break
                    except Exception as e:
                        # 源数据流异常（客户端断开等）
                        raise UploadInterruptedError(
                            "上传数据流中断",
                            details={"file_name": final_name, "received": written, "error": str(e)}
                        ) from e
                    if not chunk:
                        continue
                    written += len(chunk)
                    if max_size and written > max_size:
                        raise UploadTooLargeError(
                            "上传文件超过大小限制",
                            details={"file_name": final_name, "max_size": max_size}
                        )
                    await handle.write(chunk)
            finally:
                await handle.close()
        except BaseException as e:
            await self._discard_partial(file_path)
            if isinstance(e, OSError):
                raise StorageIOError(
                    "写入文件失败",
                    details={"file_name": final_name, "written": written, "error": str(e)}
                ) from e
            raise

        renamed = final_name != f"{base_name}{extension}"
        if renamed:
            logger.info(log_messages.FILE_NAME_RESOLVED, file_name=final_name)
        return WriteResult(bucket=date, name=final_name, size=written, renamed=renamed)

    async def _discard_partial(self, file_path: Path) -> None:
        """删除写入失败后残留的文件"""
        try:
            await aiofiles.os.remove(file_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("删除残留文件失败", exception=e, file_path=str(file_path))
        else:
            logger.warning(log_messages.FILE_UPLOAD_INTERRUPTED, file_name=file_path.name)

    def _stat_entry(self, date: str, entry: os.DirEntry) -> Optional[StoredFile]:
        """根据目录项生成文件元数据，非普通文件返回None"""
        if not entry.is_file(follow_symlinks=False):
            return None
        stat_result = entry.stat(follow_symlinks=False)
        return StoredFile(
            bucket=date,
            name=entry.name,
            size=stat_result.st_size,
            content_type=get_mime_type(entry.name),
            uploaded_at=_creation_time(stat_result),
        )

    def _scan_bucket(self, date: str) -> List[StoredFile]:
        bucket_dir = self.bucket_path(date)
        try:
            entries = os.scandir(bucket_dir)
        except (FileNotFoundError, NotADirectoryError):
            return []

        files = []
        with entries:
            for entry in entries:
                try:
                    stored = self._stat_entry(date, entry)
                except FileNotFoundError:
                    # 扫描期间被删除
                    continue
                if stored is not None:
                    files.append(stored)
        return files

    async def list(self, date: str) -> List[StoredFile]:
        try:
            return await asyncio.to_thread(self._scan_bucket, date)
        except OSError as e:
            raise StorageIOError(
                "读取文件列表失败",
                details={"bucket": date, "error": str(e)}
            ) from e

    async def stat(self, date: str, name: str) -> StoredFile:
        """
        获取单个文件元数据

        Raises:
            NotFoundError: 文件不存在
        """
        validate_name(name)
        file_path = self.bucket_path(date) / name
        try:
            stat_result = await aiofiles.os.stat(file_path)
        except (FileNotFoundError, NotADirectoryError) as e:
            raise NotFoundError(
                "文件不存在",
                details={"bucket": date, "file_name": name}
            ) from e
        except OSError as e:
            raise StorageIOError(
                "读取文件信息失败",
                details={"bucket": date, "file_name": name, "error": str(e)}
            ) from e

        if not S_ISREG(stat_result.st_mode):
            raise NotFoundError("文件不存在", details={"bucket": date, "file_name": name})

        return StoredFile(
            bucket=date,
            name=name,
            size=stat_result.st_size,
            content_type=get_mime_type(name),
            uploaded_at=_creation_time(stat_result),
        )

    async def open_read(self, date: str, name: str) -> LocalFileReadStream:
        metadata = await self.stat(date, name)
        try:
            handle = await aiofiles.open(self.bucket_path(date) / name, "rb")
        except (FileNotFoundError, IsADirectoryError) as e:
            raise NotFoundError(
                "文件不存在",
                details={"bucket": date, "file_name": name}
            ) from e
        except OSError as e:
            raise StorageIOError(
                "打开文件失败",
                details={"bucket": date, "file_name": name, "error": str(e)}
            ) from e
        return LocalFileReadStream(handle, metadata, self.chunk_size)

    async def list_buckets(self) -> List[str]:
        def _scan() -> List[str]:
            with os.scandir(self.root_dir) as entries:
                return [entry.name for entry in entries if entry.is_dir(follow_symlinks=False)]

        try:
            await self.ensure_root()
            return await asyncio.to_thread(_scan)
        except OSError as e:
            raise StorageIOError(
                "读取存储根目录失败",
                details={"root_dir": str(self.root_dir), "error": str(e)}
            ) from e

    async def delete_bucket(self, date: str) -> None:
        bucket_dir = self.bucket_path(date)
        try:
            await asyncio.to_thread(shutil.rmtree, bucket_dir)
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageIOError(
                "删除日期目录失败",
                details={"bucket": date, "error": str(e)}
            ) from e


def _creation_time(stat_result: os.stat_result) -> datetime:
    """文件创建时间，平台不支持时退回到 ctime"""
    timestamp = getattr(stat_result, "st_birthtime", None) or stat_result.st_ctime
    return datetime.fromtimestamp(timestamp).astimezone()


__all__ = [
    'LocalDatedStorage',
    'LocalFileReadStream',
]
