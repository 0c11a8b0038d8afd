"""
应用配置管理模块
统一管理所有配置信息，包括环境变量和文件配置
"""

from typing import List

from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings

from filedrop.utils.config_utils import (
    get_config_path, get_workspace_path, parse_json_config, resolve_workspace_path
)


class Settings(BaseSettings):
    """应用配置类 - 统一管理所有配置信息"""

    # ==================== 基础配置 ====================
    app_name: str = "FileDrop"
    app_version: str = "1.0.0"
    app_debug: bool = False
    app_env: str = "development"

    # ==================== API配置 ====================
    api_v1_str: str = "/api/v1"
    project_name: str = "FileDrop API"

    # ==================== 文件存储配置 ====================
    storage_adapter: str = "local"
    files_dir: str = "files"
    activity_journal_file: str = "download.json"
    text_log_file: str = "text.log"

    stream_chunk_size: int = 65536  # 64KB
    max_upload_size: int = 0  # 0 表示不限制
    archive_compress_level: int = 6

    # ==================== 过期清理配置 ====================
    retention_days: int = 7
    sweep_interval_hours: int = 24

    # ==================== 下载记录配置 ====================
    activity_flush_interval_seconds: int = 300  # 5分钟
    activity_dedup_window_ms: int = 3000

    # ==================== 日志配置 ====================
    log_dir: str = "log"
    log_level: str = "INFO"
    log_file: str = "server.log"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # ==================== 应用服务配置 ====================
    app_port: int = 3000
    app_host: str = "0.0.0.0"
    port_probe_max_attempts: int = 100
    trust_proxy: bool = True

    # ==================== CORS配置 ====================
    cors_origins: str = '["*"]'

    # ==================== 验证器 ====================
    @field_validator("cors_origins")
    @classmethod
    def parse_cors_origins(cls, value: str) -> List[str]:
        """解析CORS origins配置"""
        return parse_json_config(value)

    @field_validator("retention_days", "sweep_interval_hours", "activity_flush_interval_seconds")
    @classmethod
    def check_positive(cls, value: int) -> int:
        """周期类配置必须为正数"""
        if value <= 0:
            raise ValueError("必须为正整数")
        return value

    # ==================== 计算属性 ====================
    @property
    def workspace_dir(self) -> str:
        """获取workspace目录路径"""
        return str(get_workspace_path())

    @property
    def absolute_files_dir(self) -> str:
        """获取绝对文件存储目录路径"""
        return str(resolve_workspace_path(self.files_dir))

    @property
    def absolute_log_dir(self) -> str:
        """获取绝对日志目录路径"""
        return str(resolve_workspace_path(self.log_dir))

    @property
    def absolute_log_file(self) -> str:
        """获取绝对日志文件路径"""
        return str(resolve_workspace_path(self.log_dir) / self.log_file)

    @property
    def absolute_activity_journal_file(self) -> str:
        """获取下载记录文件的绝对路径"""
        return str(resolve_workspace_path(self.activity_journal_file))

    @property
    def absolute_text_log_file(self) -> str:
        """获取文本记录文件的绝对路径"""
        return str(resolve_workspace_path(self.text_log_file))

    @property
    def sweep_interval_seconds(self) -> int:
        """过期清理周期（秒）"""
        return self.sweep_interval_hours * 60 * 60

    model_config = ConfigDict(
        env_file=get_config_path(".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
        validate_default=True
    )


def get_settings() -> Settings:
    """获取应用配置实例"""
    # 环境变量文件加载由外部环境控制（Docker Compose、systemd等）
    return Settings()


# 全局配置实例
settings = get_settings()
