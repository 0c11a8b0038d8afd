"""
文件工具模块
提供统一的文件处理函数
"""

import mimetypes
from pathlib import Path
from typing import Union
from urllib.parse import quote


def get_mime_type(file_path: Union[str, Path]) -> str:
    """
    根据文件扩展名获取MIME类型

    Args:
        file_path: 文件路径

    Returns:
        str: MIME类型，无法识别时返回 application/octet-stream
    """
    mime_type, _ = mimetypes.guess_type(str(file_path), strict=False)
    return mime_type or "application/octet-stream"


def build_content_disposition(filename: str) -> str:
    """
    构造附件下载的 Content-Disposition 头

    非 ASCII 文件名使用 RFC 5987 的 ``filename*`` 形式。
    """
    quoted = quote(filename)
    if quoted != filename:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'


def get_human_readable_size(size_bytes: int) -> str:
    """
    将字节大小转换为人类可读的格式

    Args:
        size_bytes: 字节大小

    Returns:
        str: 人类可读的大小（如：1.50 MB）
    """
    if size_bytes == 0:
        return "0 B"

    size_names = ["B", "KB", "MB", "GB", "TB"]
    size = float(size_bytes)
    i = 0
    while size >= 1024 and i < len(size_names) - 1:
        size /= 1024.0
        i += 1

    return f"{size:.2f} {size_names[i]}"
