"""
文件名处理
负责文件名清洗、路径安全校验和重名消解
"""

import os
import re
from pathlib import PureWindowsPath
from typing import Iterator, Tuple, Union

from filedrop.core.storage.exceptions import ValidationError

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_UNSAFE_CHARS = re.compile(r'[/\\?%*:|"<>]')

# 常见文件系统单个文件名的字节上限
MAX_NAME_BYTES = 255


def validate_date(date: str) -> str:
    """
    校验日期目录名格式（YYYY-MM-DD）

    Raises:
        ValidationError: 格式不正确时抛出
    """
    if not isinstance(date, str) or not DATE_PATTERN.match(date):
        raise ValidationError("日期格式错误", details={"date": date})
    return date


def is_safe_name(name: str) -> bool:
    """文件名不含路径穿越、路径分隔符和绝对路径标记"""
    if not name or "\x00" in name:
        return False
    if len(os.fsencode(name)) > MAX_NAME_BYTES:
        return False
    if ".." in name or "/" in name or "\\" in name or os.sep in name:
        return False
    if os.path.isabs(name):
        return False
    windows_path = PureWindowsPath(name)
    if windows_path.drive or windows_path.is_absolute():
        return False
    return True


def validate_name(name: str) -> str:
    """
    校验单个文件名

    Raises:
        ValidationError: 文件名不安全时抛出
    """
    if not isinstance(name, str) or not is_safe_name(name):
        raise ValidationError("检测到非法文件名", details={"file_name": name})
    return name


def sanitize_filename(raw_name: str) -> Tuple[str, str]:
    """
    清洗客户端提供的文件名并拆分扩展名

    非法字符替换为 ``_``，移除 ``..``。超过 255 字节的文件名直接拒绝。

    Returns:
        (基础名, 扩展名)，扩展名包含前导点，可能为空

    Raises:
        ValidationError: 清洗后为空或过长时抛出
    """
    cleaned = _UNSAFE_CHARS.sub("_", raw_name or "")
    cleaned = cleaned.replace("..", "").replace("\x00", "")
    if not cleaned.strip():
        raise ValidationError("文件名为空", details={"file_name": raw_name})
    if len(os.fsencode(cleaned)) > MAX_NAME_BYTES:
        raise ValidationError(
            "文件名过长",
            details={"file_name": cleaned[:64], "max_bytes": MAX_NAME_BYTES}
        )

    base_name, extension = os.path.splitext(cleaned)
    return base_name, extension


class NameResolver:
    """
    重名消解器

    依次尝试 ``name.ext``、``name_1.ext``、``name_2.ext`` ……直到找到未被占用的名字。
    不预留名字，调用方应尽快创建文件。
    """

    @staticmethod
    def candidates(base_name: str, extension: str) -> Iterator[str]:
        """按递增序号生成候选文件名"""
        yield f"{base_name}{extension}"
        index = 1
        while True:
            yield f"{base_name}_{index}{extension}"
            index += 1

    def resolve(self, directory: Union[str, os.PathLike], base_name: str, extension: str) -> str:
        """返回目录中第一个未被占用的候选文件名"""
        for candidate in self.candidates(base_name, extension):
            if not os.path.lexists(os.path.join(directory, candidate)):
                return candidate


__all__ = [
    'DATE_PATTERN',
    'MAX_NAME_BYTES',
    'validate_date',
    'validate_name',
    'is_safe_name',
    'sanitize_filename',
    'NameResolver',
]
