"""
测试配置和fixtures
为所有测试提供共享的配置和fixtures

单元测试和集成测试通过pytest markers区分，所有文件读写都在临时目录中进行
"""

from pathlib import Path

import pytest

from filedrop.core.config import Settings
from filedrop.core.storage import LocalDatedStorage


@pytest.fixture(scope="function")
def files_root(tmp_path: Path) -> Path:
    """文件存储根目录（不预先创建）"""
    return tmp_path / "files"


@pytest.fixture(scope="function")
def storage(files_root: Path) -> LocalDatedStorage:
    """使用临时目录的本地存储，分块较小以覆盖多块读写"""
    return LocalDatedStorage(root_dir=files_root, chunk_size=4)


@pytest.fixture(scope="function")
def test_settings(tmp_path: Path) -> Settings:
    """所有路径指向临时目录的配置"""
    return Settings(
        files_dir=str(tmp_path / "files"),
        log_dir=str(tmp_path / "log"),
        activity_journal_file=str(tmp_path / "download.json"),
        text_log_file=str(tmp_path / "text.log"),
        stream_chunk_size=1024,
    )


def pytest_configure(config):
    """配置pytest标记"""
    config.addinivalue_line("markers", "unit: 单元测试")
    config.addinivalue_line("markers", "integration: 集成测试")
