"""
存储适配器
"""

from filedrop.core.storage.adapters.local_fs import LocalDatedStorage, LocalFileReadStream

__all__ = [
    'LocalDatedStorage',
    'LocalFileReadStream',
]
