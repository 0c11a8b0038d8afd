"""
FileDrop - FastAPI主应用
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from filedrop.api.v1.router import api_router
from filedrop.core.config import Settings, settings
from filedrop.core.log_utils import get_logger, setup_logging
from filedrop.services.filedrop.service import FileDropService

logger = get_logger(__name__)


def create_app(
    app_settings: Optional[Settings] = None,
    service: Optional[FileDropService] = None
) -> FastAPI:
    """
    创建FastAPI应用

    Args:
        app_settings: 应用配置，默认使用全局配置
        service: 预先构造的文件投递服务，默认根据配置创建
    """
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """应用生命周期管理"""
        setup_logging(app_settings)
        logger.info("应用启动中...")

        filedrop_service = service or FileDropService.from_settings(app_settings)
        app.state.filedrop_service = filedrop_service
        filedrop_service.start()
        logger.info("应用启动完成", files_dir=app_settings.absolute_files_dir)

        try:
            yield
        finally:
            # 必须等待下载记录写入完成后再退出
            await filedrop_service.shutdown()
            logger.info("应用关闭")

    app = FastAPI(
        title=app_settings.project_name,
        version=app_settings.app_version,
        description="按日期分桶的个人文件投递服务",
        openapi_url=f"{app_settings.api_v1_str}/openapi.json",
        docs_url=f"{app_settings.api_v1_str}/docs",
        redoc_url=f"{app_settings.api_v1_str}/redoc",
        lifespan=lifespan
    )
    app.state.settings = app_settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"]
    )

    app.include_router(api_router, prefix=app_settings.api_v1_str)

    @app.get("/")
    def read_root():
        """根路径"""
        return {
            "message": "FileDrop API",
            "version": app_settings.app_version,
            "docs": f"{app_settings.api_v1_str}/docs"
        }

    @app.get("/health")
    def health_check():
        """健康检查"""
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    from filedrop.utils.port_utils import find_available_port

    port = find_available_port(settings.app_port, settings.app_host, settings.port_probe_max_attempts)
    uvicorn.run(
        "main:app",
        host=settings.app_host,
        port=port,
        reload=settings.app_debug,
        log_level=settings.log_level.lower()
    )
