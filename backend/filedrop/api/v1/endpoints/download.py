"""
下载API端点
单个文件直接返回，多个文件以 zip 流返回
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from filedrop.api.deps import get_client_identity, get_filedrop_handler
from filedrop.services.filedrop.handler import FileDropHandler

router = APIRouter(tags=["文件下载"])


@router.get(
    "/download",
    response_class=StreamingResponse,
    summary="下载文件",
    description="names 为逗号分隔的文件名；单个文件原样返回，多个文件打包为 files_<date>.zip"
)
async def download_files(
    request: Request,
    date: str = Query(..., description="日期（YYYY-MM-DD）"),
    names: Optional[str] = Query(None, description="逗号分隔的文件名"),
    client: str = Depends(get_client_identity),
    handler: FileDropHandler = Depends(get_filedrop_handler)
) -> StreamingResponse:
    """
    下载文件

    Returns:
        StreamingResponse: 文件流或 zip 流
    """
    payload = await handler.handle_download(date, names, client, request.is_disconnected)
    return StreamingResponse(
        payload.body,
        media_type=payload.media_type,
        headers=payload.headers
    )
