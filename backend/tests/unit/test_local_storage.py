"""
本地日期分桶存储单元测试
使用临时目录验证写入、列表、读取和目录管理
"""

import asyncio

import pytest

from filedrop.core.storage import (
    LocalDatedStorage,
    NotFoundError,
    StorageIOError,
    UploadInterruptedError,
    UploadTooLargeError,
    ValidationError,
    create_adapter,
    get_storage_service,
    list_available_adapters,
)
from filedrop.core.storage.exceptions import ConfigurationError
from tests.utils.stream_utils import TEST_DATE, async_chunks, collect, failing_stream, put_file


@pytest.mark.unit
class TestWriteStream:
    """流式写入测试"""

    @pytest.mark.asyncio
    async def test_write_creates_bucket_lazily(self, storage, files_root):
        """首次写入时才创建日期目录"""
        assert not (files_root / TEST_DATE).exists()

        result = await storage.write_stream(TEST_DATE, "hello", ".txt", async_chunks([b"hello ", b"world"]))

        assert result.name == "hello.txt"
        assert result.size == 11
        assert result.renamed is False
        assert (files_root / TEST_DATE / "hello.txt").read_bytes() == b"hello world"

    @pytest.mark.asyncio
    async def test_duplicate_names_get_suffix(self, storage, files_root):
        """同名上传依次得到 name、name_1、name_2，不覆盖已有文件"""
        names = []
        for index in range(3):
            result = await storage.write_stream(
                TEST_DATE, "report", ".pdf", async_chunks([str(index).encode()])
            )
            names.append(result.name)

        assert names == ["report.pdf", "report_1.pdf", "report_2.pdf"]
        assert (files_root / TEST_DATE / "report.pdf").read_bytes() == b"0"
        assert (files_root / TEST_DATE / "report_2.pdf").read_bytes() == b"2"

    @pytest.mark.asyncio
    async def test_concurrent_writes_never_share_a_name(self, storage, files_root):
        """并发写入同名文件时每个写入都得到不同的文件名"""
        results = await asyncio.gather(*[
            storage.write_stream(TEST_DATE, "same", ".bin", async_chunks([bytes([i])] * 3))
            for i in range(5)
        ])

        names = {result.name for result in results}
        assert len(names) == 5
        assert sorted(p.name for p in (files_root / TEST_DATE).iterdir()) == sorted(names)

    @pytest.mark.asyncio
    async def test_interrupted_source_removes_partial_file(self, storage, files_root):
        """源数据流中断时删除残留文件"""
        source = failing_stream([b"partial"], ConnectionResetError("client gone"))

        with pytest.raises(UploadInterruptedError):
            await storage.write_stream(TEST_DATE, "broken", ".iso", source)

        assert list((files_root / TEST_DATE).iterdir()) == []

    @pytest.mark.asyncio
    async def test_size_limit(self, storage, files_root):
        """超过大小限制时拒绝并删除残留文件"""
        with pytest.raises(UploadTooLargeError):
            await storage.write_stream(
                TEST_DATE, "big", ".bin", async_chunks([b"12345", b"67890"]), max_size=8
            )

        assert list((files_root / TEST_DATE).iterdir()) == []

    @pytest.mark.asyncio
    async def test_size_limit_is_inclusive(self, storage):
        result = await storage.write_stream(
            TEST_DATE, "exact", ".bin", async_chunks([b"1234", b"5678"]), max_size=8
        )
        assert result.size == 8

    @pytest.mark.asyncio
    async def test_invalid_date_rejected(self, storage, files_root):
        with pytest.raises(ValidationError):
            await storage.write_stream("../escape", "x", ".txt", async_chunks([b"x"]))
        assert not files_root.exists()


@pytest.mark.unit
class TestListAndRead:
    """列表与读取测试"""

    @pytest.mark.asyncio
    async def test_list_missing_bucket_is_empty(self, storage, files_root):
        """日期目录不存在时返回空列表，且不会创建目录"""
        assert await storage.list(TEST_DATE) == []
        assert not (files_root / TEST_DATE).exists()

    @pytest.mark.asyncio
    async def test_list_returns_metadata(self, storage, files_root):
        put_file(files_root, TEST_DATE, "a.txt", b"abc")
        put_file(files_root, TEST_DATE, "b.png", b"12345")
        (files_root / TEST_DATE / "nested").mkdir()

        files = {stored.name: stored for stored in await storage.list(TEST_DATE)}

        assert set(files) == {"a.txt", "b.png"}
        assert files["a.txt"].size == 3
        assert files["a.txt"].content_type == "text/plain"
        assert files["b.png"].content_type == "image/png"
        entry = files["b.png"].to_entry()
        assert entry["name"] == "b.png"
        assert entry["size"] == 5
        assert "uploadedAt" in entry

    @pytest.mark.asyncio
    async def test_list_skips_file_deleted_during_scan(self, storage, files_root, monkeypatch):
        """扫描期间被删除的文件不影响其余文件的列出"""
        for name in ("a.txt", "b.txt", "c.txt"):
            put_file(files_root, TEST_DATE, name, b"x")
        scan_entry = storage._stat_entry
        removed = []

        def _stat_entry_removing_sibling(date, entry):
            if not removed:
                sibling = next(
                    path for path in (files_root / TEST_DATE).iterdir() if path.name != entry.name
                )
                sibling.unlink()
                removed.append(sibling.name)
            return scan_entry(date, entry)

        monkeypatch.setattr(storage, "_stat_entry", _stat_entry_removing_sibling)

        names = {stored.name for stored in await storage.list(TEST_DATE)}

        assert names == {"a.txt", "b.txt", "c.txt"} - set(removed)
        assert len(names) == 2

    @pytest.mark.asyncio
    async def test_open_read_streams_in_chunks(self, storage, files_root):
        put_file(files_root, TEST_DATE, "data.bin", b"0123456789")

        stream = await storage.open_read(TEST_DATE, "data.bin")
        chunks = [chunk async for chunk in stream]

        assert chunks == [b"0123", b"4567", b"89"]
        assert stream.metadata.size == 10

    @pytest.mark.asyncio
    async def test_open_read_as_context_manager(self, storage, files_root):
        put_file(files_root, TEST_DATE, "note.md", b"# title")

        async with await storage.open_read(TEST_DATE, "note.md") as stream:
            assert await collect(stream) == b"# title"

    @pytest.mark.asyncio
    async def test_open_read_missing(self, storage, files_root):
        with pytest.raises(NotFoundError):
            await storage.open_read(TEST_DATE, "nothing.txt")

        put_file(files_root, TEST_DATE, "other.txt", b"x")
        with pytest.raises(NotFoundError):
            await storage.open_read(TEST_DATE, "nothing.txt")

    @pytest.mark.asyncio
    async def test_open_read_directory_is_not_a_file(self, storage, files_root):
        (files_root / TEST_DATE / "folder").mkdir(parents=True)
        with pytest.raises(NotFoundError):
            await storage.open_read(TEST_DATE, "folder")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["../secret.txt", "a/b.txt", "/etc/passwd", "..\\x"])
    async def test_open_read_rejects_traversal(self, storage, files_root, name):
        """路径穿越在访问文件系统之前被拒绝"""
        (files_root.parent / "secret.txt").write_bytes(b"secret")
        with pytest.raises(ValidationError):
            await storage.open_read(TEST_DATE, name)


@pytest.mark.unit
class TestBuckets:
    """日期目录管理测试"""

    @pytest.mark.asyncio
    async def test_ensure_bucket_is_idempotent(self, storage, files_root):
        await asyncio.gather(*[storage.ensure_bucket(TEST_DATE) for _ in range(5)])
        await storage.ensure_bucket(TEST_DATE)
        assert (files_root / TEST_DATE).is_dir()

    @pytest.mark.asyncio
    async def test_list_buckets_creates_root(self, storage, files_root):
        assert await storage.list_buckets() == []
        assert files_root.is_dir()

    @pytest.mark.asyncio
    async def test_list_buckets_only_directories(self, storage, files_root):
        put_file(files_root, "2024-05-01", "a.txt", b"a")
        (files_root / "not-a-date").mkdir()
        (files_root / "stray.txt").write_bytes(b"x")

        assert sorted(await storage.list_buckets()) == ["2024-05-01", "not-a-date"]

    @pytest.mark.asyncio
    async def test_delete_bucket(self, storage, files_root):
        put_file(files_root, TEST_DATE, "a.txt", b"a")
        await storage.delete_bucket(TEST_DATE)
        assert not (files_root / TEST_DATE).exists()

        # 不存在的目录直接忽略
        await storage.delete_bucket(TEST_DATE)

    @pytest.mark.asyncio
    async def test_list_wraps_os_errors(self, storage, monkeypatch):
        def _broken(date):
            raise PermissionError("denied")

        monkeypatch.setattr(storage, "_scan_bucket", _broken)
        with pytest.raises(StorageIOError):
            await storage.list(TEST_DATE)


@pytest.mark.unit
class TestStorageFactory:
    """存储适配器工厂测试"""

    def test_local_adapter_registered(self):
        assert "local" in list_available_adapters()

    def test_create_local_adapter(self, tmp_path):
        adapter = create_adapter("local", root_dir=tmp_path)
        assert isinstance(adapter, LocalDatedStorage)
        assert adapter.root_dir == tmp_path

    def test_get_storage_service_default(self, tmp_path):
        adapter = get_storage_service(root_dir=tmp_path, chunk_size=16)
        assert isinstance(adapter, LocalDatedStorage)
        assert adapter.chunk_size == 16

    def test_unknown_adapter(self):
        with pytest.raises(ConfigurationError):
            create_adapter("cos")
