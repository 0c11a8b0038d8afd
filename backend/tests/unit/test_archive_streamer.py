"""
下载流构造单元测试
单个文件直接返回，多个文件打包为 zip 流
"""

import io
import zipfile
from unittest.mock import AsyncMock, MagicMock

import pytest

from filedrop.core.storage import NotFoundError, ValidationError
from filedrop.services.download.archive_streamer import ArchiveStreamer, archive_name_for
from tests.utils.stream_utils import TEST_DATE, collect, put_file

CLIENT = "10.0.0.8"


@pytest.fixture
def activity_log():
    return MagicMock()


@pytest.fixture
def streamer(storage, activity_log):
    return ArchiveStreamer(storage, activity_log, compress_level=6)


def _open_zip(data: bytes) -> zipfile.ZipFile:
    return zipfile.ZipFile(io.BytesIO(data))


@pytest.mark.unit
class TestSingleFileDownload:
    """单文件下载测试"""

    @pytest.mark.asyncio
    async def test_single_file_has_no_zip_framing(self, streamer, files_root, activity_log):
        put_file(files_root, TEST_DATE, "a.txt", b"hello world")

        payload = await streamer.prepare(TEST_DATE, ["a.txt"], CLIENT)

        assert payload.is_archive is False
        assert payload.filename == "a.txt"
        assert payload.media_type == "text/plain"
        assert payload.headers["Content-Disposition"] == 'attachment; filename="a.txt"'
        assert payload.headers["Content-Length"] == "11"

        data = await collect(payload.body)
        assert data == b"hello world"
        assert not data.startswith(b"PK")

    @pytest.mark.asyncio
    async def test_event_recorded_after_full_serve(self, streamer, files_root, activity_log):
        put_file(files_root, TEST_DATE, "a.txt", b"hello world")

        payload = await streamer.prepare(TEST_DATE, ["a.txt"], CLIENT)
        activity_log.record.assert_not_called()

        await collect(payload.body)
        activity_log.record.assert_called_once_with(CLIENT, TEST_DATE, ["a.txt"])

    @pytest.mark.asyncio
    async def test_duplicated_single_name(self, streamer, files_root):
        put_file(files_root, TEST_DATE, "a.txt", b"abc")

        payload = await streamer.prepare(TEST_DATE, ["a.txt", "a.txt"], CLIENT)

        assert payload.is_archive is False
        assert await collect(payload.body) == b"abc"

    @pytest.mark.asyncio
    async def test_missing_single_file(self, streamer):
        with pytest.raises(NotFoundError):
            await streamer.prepare(TEST_DATE, ["missing.txt"], CLIENT)

    @pytest.mark.asyncio
    async def test_non_ascii_filename_header(self, streamer, files_root):
        put_file(files_root, TEST_DATE, "报告.txt", b"x")

        payload = await streamer.prepare(TEST_DATE, ["报告.txt"], CLIENT)

        assert payload.headers["Content-Disposition"].startswith("attachment; filename*=utf-8''")
        payload.headers["Content-Disposition"].encode("latin-1")


@pytest.mark.unit
class TestArchiveDownload:
    """多文件打包下载测试"""

    @pytest.mark.asyncio
    async def test_multiple_files_produce_valid_zip(self, streamer, files_root, activity_log):
        put_file(files_root, TEST_DATE, "a.txt", b"alpha" * 100)
        put_file(files_root, TEST_DATE, "b.bin", bytes(range(256)))

        payload = await streamer.prepare(TEST_DATE, ["a.txt", "b.bin"], CLIENT)

        assert payload.is_archive is True
        assert payload.filename == archive_name_for(TEST_DATE) == f"files_{TEST_DATE}.zip"
        assert payload.media_type == "application/zip"
        assert "Content-Length" not in payload.headers

        data = await collect(payload.body)
        with _open_zip(data) as archive:
            assert archive.testzip() is None
            assert archive.namelist() == ["a.txt", "b.bin"]
            assert archive.read("a.txt") == b"alpha" * 100
            assert archive.read("b.bin") == bytes(range(256))
            for info in archive.infolist():
                assert info.compress_type == zipfile.ZIP_DEFLATED
                # 不可回写的输出流使用数据描述符
                assert info.flag_bits & 0x08

        activity_log.record.assert_called_once_with(CLIENT, TEST_DATE, ["a.txt", "b.bin"])

    @pytest.mark.asyncio
    async def test_partial_availability(self, streamer, files_root, activity_log):
        """请求 3 个文件只有 2 个存在时，压缩包包含这 2 个"""
        put_file(files_root, TEST_DATE, "a.txt", b"a")
        put_file(files_root, TEST_DATE, "c.txt", b"c")

        payload = await streamer.prepare(TEST_DATE, ["a.txt", "b.txt", "c.txt"], CLIENT)
        data = await collect(payload.body)

        with _open_zip(data) as archive:
            assert archive.namelist() == ["a.txt", "c.txt"]
        activity_log.record.assert_called_once_with(CLIENT, TEST_DATE, ["a.txt", "c.txt"])

    @pytest.mark.asyncio
    async def test_none_available(self, streamer, files_root, activity_log):
        put_file(files_root, TEST_DATE, "other.txt", b"x")

        with pytest.raises(NotFoundError):
            await streamer.prepare(TEST_DATE, ["a.txt", "b.txt"], CLIENT)
        activity_log.record.assert_not_called()

    @pytest.mark.asyncio
    async def test_duplicate_names_added_once(self, streamer, files_root):
        put_file(files_root, TEST_DATE, "a.txt", b"a")
        put_file(files_root, TEST_DATE, "b.txt", b"b")

        payload = await streamer.prepare(TEST_DATE, ["a.txt", "b.txt", "a.txt"], CLIENT)
        data = await collect(payload.body)

        with _open_zip(data) as archive:
            assert archive.namelist() == ["a.txt", "b.txt"]

    @pytest.mark.asyncio
    async def test_file_removed_after_check_is_skipped(self, streamer, files_root, activity_log):
        put_file(files_root, TEST_DATE, "a.txt", b"a")
        doomed = put_file(files_root, TEST_DATE, "b.txt", b"b")

        payload = await streamer.prepare(TEST_DATE, ["a.txt", "b.txt"], CLIENT)
        doomed.unlink()
        data = await collect(payload.body)

        with _open_zip(data) as archive:
            assert archive.namelist() == ["a.txt"]
        activity_log.record.assert_called_once_with(CLIENT, TEST_DATE, ["a.txt"])

    @pytest.mark.asyncio
    async def test_client_disconnect_stops_archive(self, streamer, files_root, activity_log):
        """客户端断开后不再写入后续条目，也不记录下载事件"""
        for name in ("a.txt", "b.txt", "c.txt"):
            put_file(files_root, TEST_DATE, name, name.encode())

        is_disconnected = AsyncMock(side_effect=[False, True, True])
        payload = await streamer.prepare(
            TEST_DATE, ["a.txt", "b.txt", "c.txt"], CLIENT, is_disconnected=is_disconnected
        )
        await collect(payload.body)

        assert is_disconnected.await_count == 2
        activity_log.record.assert_not_called()


@pytest.mark.unit
class TestRequestValidation:
    """请求校验测试：非法请求在访问文件系统之前被拒绝"""

    def _mock_storage(self):
        storage = MagicMock()
        storage.stat = AsyncMock()
        storage.open_read = AsyncMock()
        return storage

    @pytest.mark.asyncio
    @pytest.mark.parametrize("names", [
        ["a.txt", "../etc/passwd"],
        ["sub/dir.txt"],
        ["/etc/passwd", "a.txt"],
        ["..\\boot.ini"],
    ])
    async def test_unsafe_names_rejected_before_filesystem(self, names):
        storage = self._mock_storage()
        streamer = ArchiveStreamer(storage)

        with pytest.raises(ValidationError):
            await streamer.prepare(TEST_DATE, names, CLIENT)

        storage.stat.assert_not_awaited()
        storage.open_read.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_names_rejected(self):
        storage = self._mock_storage()
        with pytest.raises(ValidationError):
            await ArchiveStreamer(storage).prepare(TEST_DATE, [], CLIENT)
        storage.stat.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_date_rejected(self):
        storage = self._mock_storage()
        with pytest.raises(ValidationError):
            await ArchiveStreamer(storage).prepare("2024/05/01", ["a.txt"], CLIENT)
        storage.stat.assert_not_awaited()
