"""
存储服务异常定义
定义存储模块中使用的所有异常类型
"""

from typing import Any, Dict, Optional


class StorageError(Exception):
    """
    存储操作基础异常

    所有存储相关异常的基类。

    Attributes:
        message: 错误消息
        code: 错误码
        details: 错误详情
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class ConfigurationError(StorageError):
    """存储配置错误"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="CONFIG_ERROR", details=details)


class ValidationError(StorageError):
    """请求参数错误（日期格式、文件名、空列表等），在访问磁盘前拒绝"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: str = "VALIDATION_ERROR"
    ) -> None:
        super().__init__(message, code=code, details=details)


class UploadTooLargeError(ValidationError):
    """上传内容超过大小限制"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details=details, code="UPLOAD_TOO_LARGE")


class NotFoundError(StorageError):
    """日期目录或文件不存在"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="NOT_FOUND", details=details)


class StorageIOError(StorageError):
    """磁盘读写错误（磁盘已满、权限不足、流中断等）"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: str = "IO_ERROR"
    ) -> None:
        super().__init__(message, code=code, details=details)


class UploadInterruptedError(StorageIOError):
    """上传源数据流中断（如客户端断开连接）"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details=details, code="UPLOAD_INTERRUPTED")


class PortExhaustedError(StorageError):
    """在允许的尝试次数内找不到可用端口"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code="PORT_EXHAUSTED", details=details)


__all__ = [
    'StorageError',
    'ConfigurationError',
    'ValidationError',
    'UploadTooLargeError',
    'NotFoundError',
    'StorageIOError',
    'UploadInterruptedError',
    'PortExhaustedError',
]
