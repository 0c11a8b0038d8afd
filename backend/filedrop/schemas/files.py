"""
文件投递相关的Pydantic模型
"""

from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field


class FileEntry(BaseModel):
    """文件列表条目"""
    name: str = Field(..., description="文件名")
    size: int = Field(..., description="文件大小（字节）")
    uploaded_at: datetime = Field(..., alias="uploadedAt", description="上传时间")

    model_config = ConfigDict(populate_by_name=True)


class FileListData(BaseModel):
    """文件列表响应数据"""
    date: str = Field(..., description="日期（YYYY-MM-DD）")
    file_list: List[FileEntry] = Field(default_factory=list, description="文件列表")


class UploadData(BaseModel):
    """上传结果"""
    date: str = Field(..., description="保存的日期目录")
    file_name: str = Field(..., description="最终保存的文件名")


class DownloadRecord(BaseModel):
    """单条下载记录"""
    timestamp: str = Field(..., description="下载时间（ISO-8601 UTC）")
    download_date: str = Field(..., description="下载的日期目录")
    files: List[str] = Field(default_factory=list, description="下载的文件名")


ActivityReport = Dict[str, List[DownloadRecord]]


class SweepData(BaseModel):
    """过期清理结果"""
    cutoff: str = Field(..., description="分界日期，早于该日期的目录被删除")
    deleted: List[str] = Field(default_factory=list)
    kept: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)
