"""
文件API端点
处理文件上传、文件列表和文本备忘
采用薄路由、重服务的架构设计
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status

from filedrop.api.deps import get_filedrop_handler
from filedrop.core.log_utils import get_logger
from filedrop.schemas.common import StandardResponse
from filedrop.schemas.files import FileListData, UploadData
from filedrop.services.filedrop.handler import FileDropHandler

logger = get_logger(__name__)

router = APIRouter(tags=["文件投递"])


@router.get(
    "/files",
    response_model=StandardResponse,
    summary="获取文件列表",
    description="列出指定日期上传的所有文件"
)
async def list_files(
    date: str = Query(..., description="日期（YYYY-MM-DD）"),
    handler: FileDropHandler = Depends(get_filedrop_handler)
) -> StandardResponse:
    """获取指定日期的文件列表，日期目录不存在时返回空列表"""
    result = await handler.handle_list_files(date)
    data = FileListData(**result)
    return StandardResponse(
        status="success",
        message=f"共 {len(data.file_list)} 个文件",
        data=data.model_dump(mode="json", by_alias=True)
    )


@router.post(
    "/file",
    response_model=StandardResponse,
    summary="上传文件",
    description="以原始请求体流式上传单个文件，保存到当天的日期目录"
)
async def upload_file(
    request: Request,
    x_filename: Optional[str] = Header(None, description="URI 编码的文件名"),
    x_filetype: Optional[str] = Header(None, description="文件类型"),
    handler: FileDropHandler = Depends(get_filedrop_handler)
) -> StandardResponse:
    """
    上传文件

    功能流程：
    1. 解码并清洗文件名
    2. 重名时追加 _N 后缀
    3. 流式写入磁盘，失败时删除残留文件
    """
    result = await handler.handle_upload(x_filename, x_filetype, request.stream())
    data = UploadData(**result)
    return StandardResponse(
        status="success",
        message=f"file {data.file_name} received",
        data=data.model_dump()
    )


@router.post(
    "/text",
    response_model=StandardResponse,
    summary="保存文本",
    description="将 text/plain 请求体追加写入文本记录"
)
async def save_text(
    request: Request,
    handler: FileDropHandler = Depends(get_filedrop_handler)
) -> StandardResponse:
    """保存文本备忘，内容为空时返回 400"""
    body = await request.body()
    try:
        content = body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="文本必须为 UTF-8 编码"
        ) from e

    data = await handler.handle_text(content)
    return StandardResponse(status="success", message="text received", data=data)
