"""
存储抽象基类
定义按日期分桶的统一存储接口，支持多种存储后端
"""

from abc import ABC, abstractmethod
from typing import AsyncIterable, AsyncIterator, List, Optional

from filedrop.core.storage.models import StoredFile, WriteResult


class FileReadStream(ABC):
    """
    文件读取流

    以异步迭代的方式分块读取文件内容，使用完毕后必须关闭。

    示例:
        async with await storage.open_read(date, name) as stream:
            async for chunk in stream:
                ...
    """

    def __init__(self, metadata: StoredFile):
        self.metadata = metadata

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[bytes]:
        pass

    @abstractmethod
    async def aclose(self) -> None:
        """释放底层资源"""
        pass

    async def __aenter__(self) -> "FileReadStream":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.aclose()
        return False


class BaseStorage(ABC):
    """存储抽象基类，布局为 ``<root>/<YYYY-MM-DD>/<filename>``"""

    @abstractmethod
    async def ensure_bucket(self, date: str) -> None:
        """
        确保日期目录存在（幂等）

        Args:
            date: 日期（YYYY-MM-DD）
        """
        pass

    @abstractmethod
    async def write_stream(
        self,
        date: str,
        base_name: str,
        extension: str,
        source: AsyncIterable[bytes],
        max_size: Optional[int] = None
    ) -> WriteResult:
        """
        将数据流写入新文件

        Args:
            date: 日期
            base_name: 已清洗的基础文件名
            extension: 扩展名（含前导点）
            source: 异步字节流
            max_size: 最大允许字节数，None 或 0 表示不限制

        Returns:
            WriteResult: 写入结果（包含最终文件名）

        Raises:
            UploadInterruptedError: 源数据流中断
            UploadTooLargeError: 超过大小限制
            StorageIOError: 磁盘写入失败
        """
        pass

    @abstractmethod
    async def list(self, date: str) -> List[StoredFile]:
        """
        列出日期目录下的文件，目录不存在时返回空列表

        Args:
            date: 日期

        Returns:
            List[StoredFile]: 文件列表
        """
        pass

    @abstractmethod
    async def stat(self, date: str, name: str) -> StoredFile:
        """
        获取单个文件元数据，不打开文件

        Raises:
            ValidationError: 文件名不安全
            NotFoundError: 日期目录或文件不存在
        """
        pass

    @abstractmethod
    async def open_read(self, date: str, name: str) -> FileReadStream:
        """
        打开文件读取流

        Raises:
            ValidationError: 文件名不安全
            NotFoundError: 日期目录或文件不存在
        """
        pass

    @abstractmethod
    async def list_buckets(self) -> List[str]:
        """列出根目录下的所有目录名（不保证都是合法日期）"""
        pass

    @abstractmethod
    async def delete_bucket(self, date: str) -> None:
        """
        递归删除整个日期目录

        Raises:
            StorageIOError: 删除失败时抛出
        """
        pass


__all__ = [
    'BaseStorage',
    'FileReadStream',
]
