"""
文件名处理单元测试
覆盖文件名清洗、路径安全校验和重名消解
"""

import pytest

from filedrop.core.storage import (
    MAX_NAME_BYTES,
    NameResolver,
    ValidationError,
    is_safe_name,
    sanitize_filename,
    validate_date,
    validate_name,
)


@pytest.mark.unit
class TestSanitizeFilename:
    """文件名清洗测试"""

    @pytest.mark.parametrize("raw, expected", [
        ("report.pdf", ("report", ".pdf")),
        ("a/b\\c.txt", ("a_b_c", ".txt")),
        ('what?*:|"<>%.txt', ("what_______", ".txt")),
        ("../../etc/passwd", ("__etc_passwd", "")),
        ("archive.tar.gz", ("archive.tar", ".gz")),
        ("README", ("README", "")),
    ])
    def test_sanitize(self, raw, expected):
        """非法字符替换为下划线并拆分扩展名"""
        assert sanitize_filename(raw) == expected

    @pytest.mark.parametrize("raw", ["", "..", "...."])
    def test_empty_after_cleaning(self, raw):
        """清洗后为空的文件名被拒绝"""
        with pytest.raises(ValidationError):
            sanitize_filename(raw)

    def test_result_is_always_safe(self):
        """清洗结果总能通过路径安全校验"""
        for raw in ["../x", "a/../../b", "C:\\windows\\system32", "..\\..\\boot.ini"]:
            base_name, extension = sanitize_filename(raw)
            assert is_safe_name(base_name + extension)

    def test_name_length_limit(self):
        """超过 255 字节的文件名被拒绝，边界长度可以通过"""
        assert sanitize_filename("a" * 251 + ".txt") == ("a" * 251, ".txt")
        with pytest.raises(ValidationError):
            sanitize_filename("a" * 252 + ".txt")
        # 多字节字符按编码后的字节数计算
        with pytest.raises(ValidationError):
            sanitize_filename("报" * 86)


@pytest.mark.unit
class TestPathSafety:
    """路径安全校验测试"""

    @pytest.mark.parametrize("name", ["a.txt", "照片.jpg", ".hidden", "name with space.md"])
    def test_safe_names(self, name):
        assert is_safe_name(name) is True
        assert validate_name(name) == name

    @pytest.mark.parametrize("name", [
        "",
        "../secret",
        "a/b.txt",
        "a\\b.txt",
        "/etc/passwd",
        "C:evil.txt",
        "bad\x00name",
        "a..b",
        "a" * (MAX_NAME_BYTES + 1),
    ])
    def test_unsafe_names(self, name):
        assert is_safe_name(name) is False
        with pytest.raises(ValidationError):
            validate_name(name)

    def test_validate_date(self):
        assert validate_date("2024-05-01") == "2024-05-01"
        for value in ["2024-5-1", "20240501", "../2024-05-01", "2024-05-01/..", ""]:
            with pytest.raises(ValidationError):
                validate_date(value)


@pytest.mark.unit
class TestNameResolver:
    """重名消解测试"""

    def setup_method(self):
        self.resolver = NameResolver()

    def test_unused_name_kept(self, tmp_path):
        assert self.resolver.resolve(tmp_path, "a", ".txt") == "a.txt"

    def test_first_free_suffix(self, tmp_path):
        """已存在 a.txt 和 a_1.txt 时返回 a_2.txt"""
        (tmp_path / "a.txt").write_bytes(b"")
        (tmp_path / "a_1.txt").write_bytes(b"")
        assert self.resolver.resolve(tmp_path, "a", ".txt") == "a_2.txt"

    def test_gap_is_reused(self, tmp_path):
        """序号有空缺时使用第一个空缺"""
        (tmp_path / "a.txt").write_bytes(b"")
        (tmp_path / "a_2.txt").write_bytes(b"")
        assert self.resolver.resolve(tmp_path, "a", ".txt") == "a_1.txt"

    def test_without_extension(self, tmp_path):
        (tmp_path / "README").write_bytes(b"")
        assert self.resolver.resolve(tmp_path, "README", "") == "README_1"

    def test_directory_counts_as_taken(self, tmp_path):
        (tmp_path / "data").mkdir()
        assert self.resolver.resolve(tmp_path, "data", "") == "data_1"

    def test_candidates_order(self):
        candidates = self.resolver.candidates("photo", ".jpg")
        assert [next(candidates) for _ in range(3)] == ["photo.jpg", "photo_1.jpg", "photo_2.jpg"]
