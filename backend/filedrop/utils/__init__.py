"""
通用工具模块包
提供项目通用的工具函数

port_utils 依赖配置模块，需直接从子模块导入
"""

from .config_utils import (
    get_project_root,
    get_workspace_path,
    get_config_path,
    resolve_workspace_path,
    parse_json_config,
    ensure_directory_exists
)

from .file_utils import (
    get_mime_type,
    build_content_disposition,
    get_human_readable_size
)

__all__ = [
    # config_utils
    'get_project_root', 'get_workspace_path', 'get_config_path',
    'resolve_workspace_path', 'parse_json_config', 'ensure_directory_exists',

    # file_utils
    'get_mime_type', 'build_content_disposition',
    'get_human_readable_size',
]
