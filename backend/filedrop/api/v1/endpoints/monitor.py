"""
监控API端点
查看下载记录，手动触发过期清理
"""

from fastapi import APIRouter, Depends

from filedrop.api.deps import get_filedrop_handler
from filedrop.schemas.common import StandardResponse
from filedrop.schemas.files import ActivityReport, SweepData
from filedrop.services.filedrop.handler import FileDropHandler

router = APIRouter(tags=["监控"])


@router.get(
    "/monit",
    response_model=ActivityReport,
    summary="查看下载记录",
    description="返回按客户端分组的全部下载记录，查看前会先写入缓存"
)
async def get_activity_report(
    handler: FileDropHandler = Depends(get_filedrop_handler)
):
    """返回原始下载记录文档 ``{客户端: [记录, ...]}``"""
    return await handler.handle_activity_report()


@router.post(
    "/sweep",
    response_model=StandardResponse,
    summary="立即清理过期文件",
    description="立即执行一次过期目录清理并返回结果"
)
async def sweep_now(
    handler: FileDropHandler = Depends(get_filedrop_handler)
) -> StandardResponse:
    """手动触发过期清理"""
    result = await handler.handle_sweep()
    data = SweepData(**result)
    return StandardResponse(
        status="success",
        message=f"已删除 {len(data.deleted)} 个过期目录",
        data=data.model_dump()
    )
