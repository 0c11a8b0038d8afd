"""
端口探测工具
从首选端口开始依次尝试绑定，返回第一个可用端口
"""

import errno
import socket
from typing import Optional

from filedrop.core.config import settings
from filedrop.core.log_messages import log_messages
from filedrop.core.log_utils import get_logger
from filedrop.core.storage.exceptions import PortExhaustedError

logger = get_logger(__name__)

MAX_PORT = 65535


def is_port_available(port: int, host: str = "0.0.0.0") -> bool:
    """
    尝试绑定端口，绑定成功后立即释放

    Returns:
        bool: 端口可用返回True，被占用返回False

    Raises:
        OSError: 端口占用以外的绑定错误
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    with socket.socket(family, socket.SOCK_STREAM) as sock:
        # 与 uvicorn 监听时的选项保持一致，避免 TIME_WAIT 误判为占用
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError as e:
            if e.errno == errno.EADDRINUSE:
                return False
            raise
    return True


def find_available_port(
    preferred: Optional[int] = None,
    host: Optional[str] = None,
    max_attempts: Optional[int] = None
) -> int:
    """
    查找可用端口

    Args:
        preferred: 首选端口，默认取配置中的 app_port
        host: 监听地址，默认取配置中的 app_host
        max_attempts: 最多尝试的端口数量

    Returns:
        int: 第一个可用端口

    Raises:
        PortExhaustedError: 尝试次数用尽或超过 65535 时抛出
        OSError: 端口占用以外的绑定错误（如权限不足）原样抛出

    Examples:
        >>> port = find_available_port(3000, "127.0.0.1", 10)
    """
    preferred = preferred if preferred is not None else settings.app_port
    host = host or settings.app_host
    max_attempts = max_attempts or settings.port_probe_max_attempts

    port = preferred
    for _ in range(max_attempts):
        if port > MAX_PORT:
            break
        try:
            available = is_port_available(port, host)
        except OSError as e:
            logger.error(log_messages.PORT_CHECK_FAILED, exception=e, port=port)
            raise
        if available:
            return port
        logger.warning(log_messages.PORT_IN_USE, port=port, next_port=port + 1)
        port += 1

    raise PortExhaustedError(
        "没有可用端口",
        details={"preferred": preferred, "host": host, "max_attempts": max_attempts}
    )
