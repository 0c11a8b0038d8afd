"""
存储服务模块
提供按日期分桶的统一存储访问接口，支持多种存储适配器
"""

from typing import Any

from filedrop.core.config import settings
from filedrop.core.storage.adapters.local_fs import LocalDatedStorage, LocalFileReadStream
from filedrop.core.storage.base_storage import BaseStorage, FileReadStream
from filedrop.core.storage.exceptions import *
from filedrop.core.storage.factory import (
    create_adapter,
    list_available_adapters,
    register_adapter,
)
from filedrop.core.storage.models import *
from filedrop.core.storage.naming import (
    MAX_NAME_BYTES,
    NameResolver,
    is_safe_name,
    sanitize_filename,
    validate_date,
    validate_name,
)

# 自动注册本地文件系统适配器
register_adapter(LocalDatedStorage.ADAPTER_NAME, LocalDatedStorage)


def get_storage_service(adapter_name: str | None = None, **kwargs: Any) -> BaseStorage:
    """
    获取存储服务实例

    Args:
        adapter_name: 适配器名称，不指定则使用配置中的 storage_adapter
        **kwargs: 适配器构造参数（如 root_dir）

    Returns:
        BaseStorage: 存储服务实例

    Example:
        >>> storage = get_storage_service()
        >>> storage = get_storage_service('local', root_dir='/tmp/files')
    """
    return create_adapter(adapter_name or settings.storage_adapter, **kwargs)


__all__ = [
    # 工厂函数
    'get_storage_service',
    'create_adapter',
    'list_available_adapters',
    'register_adapter',
    # 抽象接口
    'BaseStorage',
    'FileReadStream',
    # 适配器类
    'LocalDatedStorage',
    'LocalFileReadStream',
    # 文件名处理
    'MAX_NAME_BYTES',
    'NameResolver',
    'is_safe_name',
    'sanitize_filename',
    'validate_date',
    'validate_name',
    # 异常
    'StorageError',
    'ConfigurationError',
    'ValidationError',
    'UploadTooLargeError',
    'NotFoundError',
    'StorageIOError',
    'UploadInterruptedError',
    'PortExhaustedError',
    # 数据模型
    'StoredFile',
    'WriteResult',
]
