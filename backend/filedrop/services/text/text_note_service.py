"""
文本备忘服务
将客户端提交的文本追加写入 text.log
"""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Union

import aiofiles
import aiofiles.os

from filedrop.core.config import settings
from filedrop.core.log_utils import get_logger
from filedrop.core.storage import StorageIOError, ValidationError

logger = get_logger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_note(content: str, moment: datetime) -> str:
    """格式化为 ``[时间]\\n内容\\n\\n``"""
    return f"[{moment.strftime(TIMESTAMP_FORMAT)}]\n{content}\n\n"


class TextNoteService:
    """文本备忘服务"""

    def __init__(
        self,
        log_path: Optional[Union[str, Path]] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.log_path = Path(log_path or settings.absolute_text_log_file)
        self.clock = clock or datetime.now
        self._lock = asyncio.Lock()

    async def append(self, content: str) -> str:
        """
        追加一条文本

        Args:
            content: 文本内容，首尾空白会被去除

        Returns:
            str: 实际写入的记录

        Raises:
            ValidationError: 内容为空
            StorageIOError: 写入失败
        """
        text = (content or "").strip()
        if not text:
            raise ValidationError("文本内容不能为空")

        entry = format_note(text, self.clock())
        async with self._lock:
            try:
                await aiofiles.os.makedirs(self.log_path.parent, exist_ok=True)
                async with aiofiles.open(self.log_path, "a", encoding="utf-8") as f:
                    await f.write(entry)
            except OSError as e:
                raise StorageIOError(
                    "保存文本失败",
                    details={"path": str(self.log_path), "error": str(e)}
                ) from e

        logger.info("文本已保存", length=len(text))
        return entry
