"""
日志消息模板模块
统一管理所有业务日志消息模板，便于维护和国际化
"""

from typing import Any, Dict


class LogMessages:
    """日志消息模板类"""

    # ==================== 通用日志消息 ====================
    OPERATION_SUCCESS = "操作成功完成: {operation_name}"

    # ==================== 文件上传相关 ====================
    FILE_UPLOAD_START = "开始接收文件: {file_name}"
    FILE_UPLOAD_SUCCESS = "文件 {file_name} 接收成功"
    FILE_UPLOAD_FAILED = "文件接收失败: {file_name}"
    FILE_UPLOAD_INTERRUPTED = "文件上传中断，已删除残留文件: {file_name}"
    FILE_NAME_RESOLVED = "文件名冲突，已改名为: {file_name}"

    # ==================== 文件列表相关 ====================
    FILE_LIST_SUCCESS = "已返回 {date} 的文件列表，共 {count} 个文件"
    BUCKET_CREATED = "日期目录不存在，已创建: {bucket}"

    # ==================== 文件下载相关 ====================
    DOWNLOAD_SINGLE_SUCCESS = "已发送文件 {date}/{file_name}"
    DOWNLOAD_ARCHIVE_SUCCESS = "已发送压缩包 {archive_name}，成功添加 {added}/{requested} 个文件"
    ARCHIVE_ENTRY_MISSING = "压缩包中缺失文件: {date}/{file_name}"
    ARCHIVE_CLIENT_GONE = "客户端已断开，停止写入压缩包: {archive_name}"
    DOWNLOAD_FAILED = "下载发送失败: {date}"

    # ==================== 过期清理相关 ====================
    SWEEP_START = "开始清理 {retention_days} 天前的文件"
    SWEEP_BUCKET_DELETED = "已删除过期目录: {bucket}"
    SWEEP_BUCKET_FAILED = "删除过期目录失败: {bucket}"
    SWEEP_FINISHED = "过期文件清理完成，删除 {deleted} 个目录，失败 {failed} 个"

    # ==================== 下载记录相关 ====================
    ACTIVITY_FLUSH_START = "开始写入下载记录缓存"
    ACTIVITY_FLUSH_SUCCESS = "已保存 {count} 个客户端的下载记录"
    ACTIVITY_FLUSH_FAILED = "写入下载记录失败"
    ACTIVITY_CLIENT_MERGE_FAILED = "合并客户端下载记录失败: {client}"
    ACTIVITY_SHUTDOWN = "下载记录器关闭，写入剩余缓存"

    # ==================== 端口探测相关 ====================
    PORT_IN_USE = "端口 {port} 已被占用，尝试 {next_port}"
    PORT_CHECK_FAILED = "端口检查失败: {port}"

    @classmethod
    def format_message(cls, message_template: str, **kwargs: Any) -> str:
        """格式化日志消息模板"""
        return message_template.format(**kwargs)

    @classmethod
    def get_structured_data(cls, **kwargs: Any) -> Dict[str, Any]:
        """获取结构化日志数据"""
        return kwargs


# 全局实例
log_messages = LogMessages()
