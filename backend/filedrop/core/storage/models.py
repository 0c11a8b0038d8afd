"""
存储服务数据模型
定义存储操作中使用的所有数据结构
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict


@dataclass(frozen=True)
class StoredFile:
    """
    已存储的文件

    Attributes:
        bucket: 所属日期目录（YYYY-MM-DD）
        name: 最终文件名
        size: 文件大小（字节）
        content_type: 内容类型（根据扩展名推断）
        uploaded_at: 创建时间
    """
    bucket: str
    name: str
    size: int
    content_type: str
    uploaded_at: datetime

    def to_entry(self) -> Dict[str, Any]:
        """转换为文件列表条目"""
        return {
            "name": self.name,
            "size": self.size,
            "uploadedAt": self.uploaded_at.isoformat(),
        }


@dataclass(frozen=True)
class WriteResult:
    """
    写入结果

    Attributes:
        bucket: 日期目录
        name: 最终文件名（可能带 _N 后缀）
        size: 写入字节数
        renamed: 是否因重名而改名
    """
    bucket: str
    name: str
    size: int
    renamed: bool = False


__all__ = [
    'StoredFile',
    'WriteResult',
]
