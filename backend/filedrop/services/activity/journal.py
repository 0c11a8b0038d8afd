"""
下载记录持久化
以单个 JSON 文档保存 ``{客户端: [记录, ...]}``，每次整体重写
"""

import json
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import aiofiles
import aiofiles.os

from filedrop.core.config import settings
from filedrop.core.log_utils import get_logger
from filedrop.core.storage import StorageIOError

logger = get_logger(__name__)

Journal = Dict[str, List[Dict[str, Any]]]


class JsonJournalStore:
    """JSON 文件形式的下载记录存储"""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path or settings.absolute_activity_journal_file)

    async def load(self) -> Journal:
        """
        读取完整记录

        文件不存在时返回空字典；内容损坏时将原文件改名备份并返回空字典。

        Raises:
            StorageIOError: 读取失败时抛出
        """
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                content = await f.read()
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StorageIOError(
                "读取下载记录失败",
                details={"path": str(self.path), "error": str(e)}
            ) from e

        if not content.strip():
            return {}

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            await self._quarantine(e)
            return {}

        if not isinstance(data, dict):
            await self._quarantine(ValueError("journal root is not an object"))
            return {}
        return data

    async def save(self, data: Journal) -> None:
        """
        原子写入完整记录（先写临时文件再替换）

        Raises:
            StorageIOError: 写入失败时抛出
        """
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(data, ensure_ascii=False))
            await aiofiles.os.replace(tmp_path, self.path)
        except OSError as e:
            raise StorageIOError(
                "写入下载记录失败",
                details={"path": str(self.path), "error": str(e)}
            ) from e

    async def _quarantine(self, error: Exception) -> None:
        """备份损坏的记录文件"""
        backup = self.path.with_name(f"{self.path.name}.corrupt-{int(time.time())}")
        logger.error("下载记录文件损坏，已备份", exception=error, backup=str(backup))
        try:
            await aiofiles.os.replace(self.path, backup)
        except OSError as e:
            raise StorageIOError(
                "备份损坏的下载记录失败",
                details={"path": str(self.path), "error": str(e)}
            ) from e
