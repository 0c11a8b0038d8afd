"""
API依赖注入
从应用状态中获取服务实例，解析客户端标识
"""

from fastapi import Depends, Request

from filedrop.core.config import Settings
from filedrop.services.filedrop.handler import FileDropHandler
from filedrop.services.filedrop.service import FileDropService

UNKNOWN_CLIENT = "unknown"


def get_app_settings(request: Request) -> Settings:
    """获取应用配置"""
    return request.app.state.settings


def get_filedrop_service(request: Request) -> FileDropService:
    """获取 lifespan 中创建的文件投递服务"""
    return request.app.state.filedrop_service


def get_filedrop_handler(
    service: FileDropService = Depends(get_filedrop_service)
) -> FileDropHandler:
    """获取业务处理器"""
    return FileDropHandler(service)


def get_client_identity(
    request: Request,
    app_settings: Settings = Depends(get_app_settings)
) -> str:
    """
    获取客户端标识

    信任反向代理时取 X-Forwarded-For 的第一个地址，否则取连接对端地址。
    """
    if app_settings.trust_proxy:
        forwarded_for = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client is not None and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT
