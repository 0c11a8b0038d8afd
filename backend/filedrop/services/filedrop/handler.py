"""
文件投递业务处理器
负责请求参数解析和业务异常到 HTTP 异常的转换
"""

from typing import Any, AsyncIterable, Dict, List, Optional
from urllib.parse import unquote

from fastapi import HTTPException, status

from filedrop.core.log_utils import get_logger
from filedrop.core.storage import (
    NotFoundError,
    StorageError,
    UploadInterruptedError,
    UploadTooLargeError,
    ValidationError,
)
from filedrop.services.download.archive_streamer import DisconnectProbe, DownloadPayload
from filedrop.services.filedrop.service import FileDropService

logger = get_logger(__name__)


def to_http_exception(error: StorageError) -> HTTPException:
    """将业务异常转换为 HTTP 异常"""
    if isinstance(error, UploadTooLargeError):
        status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    elif isinstance(error, ValidationError):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(error, NotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, UploadInterruptedError):
        status_code = status.HTTP_400_BAD_REQUEST
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=status_code, detail=error.message)


def parse_names(raw_names: Optional[str]) -> List[str]:
    """解析逗号分隔的文件名列表，忽略空项"""
    if not raw_names:
        return []
    return [name.strip() for name in raw_names.split(",") if name.strip()]


class FileDropHandler:
    """文件投递业务处理器"""

    def __init__(self, service: FileDropService):
        self.service = service

    async def handle_list_files(self, date_str: str) -> Dict[str, Any]:
        """处理文件列表查询"""
        try:
            file_list = await self.service.list_files(date_str)
        except StorageError as e:
            raise to_http_exception(e) from e
        return {"date": date_str, "file_list": file_list}

    async def handle_upload(
        self,
        raw_filename: Optional[str],
        content_type: Optional[str],
        stream: AsyncIterable[bytes]
    ) -> Dict[str, Any]:
        """处理原始请求体上传，文件名来自 URI 编码的 X-Filename 头"""
        if not raw_filename:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="缺少文件名"
            )

        date_str = self.service.today_bucket()
        try:
            file_name = await self.service.upload(
                date_str,
                unquote(raw_filename),
                content_type,
                stream
            )
        except StorageError as e:
            raise to_http_exception(e) from e
        return {"date": date_str, "file_name": file_name}

    async def handle_text(self, content: str) -> Dict[str, Any]:
        """处理文本备忘保存"""
        try:
            await self.service.append_text(content)
        except StorageError as e:
            raise to_http_exception(e) from e
        return {"saved": True}

    async def handle_download(
        self,
        date_str: str,
        raw_names: Optional[str],
        client_identity: str,
        is_disconnected: Optional[DisconnectProbe] = None
    ) -> DownloadPayload:
        """处理文件下载，响应开始前的错误转换为 HTTP 错误"""
        try:
            return await self.service.download(
                date_str,
                parse_names(raw_names),
                client_identity,
                is_disconnected
            )
        except StorageError as e:
            logger.warning("下载请求被拒绝", date=date_str, client=client_identity, reason=e.message)
            raise to_http_exception(e) from e

    async def handle_activity_report(self) -> Dict[str, Any]:
        """处理下载记录查询"""
        try:
            return await self.service.get_activity_report()
        except StorageError as e:
            raise to_http_exception(e) from e

    async def handle_sweep(self) -> Dict[str, Any]:
        """处理手动触发过期清理"""
        try:
            result = await self.service.sweep_now()
        except StorageError as e:
            raise to_http_exception(e) from e
        return result.to_dict()
