"""
API路由聚合模块
将所有v1版本的路由统一注册

路由管理规范：
1. 所有路由文件内部使用相对路径
2. 所有前缀统一在router.py中管理
3. Tags统一使用中文，与端点文件定义保持一致
"""

from fastapi import APIRouter

from filedrop.api.v1.endpoints import download, files, monitor

api_router = APIRouter()

# ==================== 文件投递路由 ====================
api_router.include_router(files.router, tags=["文件投递"])
api_router.include_router(download.router, tags=["文件下载"])

# ==================== 监控路由 ====================
api_router.include_router(monitor.router, tags=["监控"])
