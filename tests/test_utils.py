"""工具函数测试：文件发现、目标路径、原子放置、临时文件。"""

import os
from pathlib import Path
from unittest import mock

import pytest

from py_tinify_mcp.models.output_policy import OutputPolicy
from py_tinify_mcp.utils.cleanup_helpers import TempFileManager
from py_tinify_mcp.utils.file_helpers import place_atomically, scan_paths
from py_tinify_mcp.utils.message_formatter import MessageFormatter
from py_tinify_mcp.utils.naming_helpers import insert_suffix, resolve_destination
from tests.conftest import write_bytes_file


@pytest.fixture
def image_tree(temp_dir: Path) -> Path:
    """root/{a.png, b.JPG, notes.txt, sub/{c.webp, deeper/d.jpeg}}"""
    write_bytes_file(temp_dir / "a.png", 1)
    write_bytes_file(temp_dir / "b.JPG", 1)
    write_bytes_file(temp_dir / "notes.txt", 1)
    write_bytes_file(temp_dir / "sub" / "c.webp", 1)
    write_bytes_file(temp_dir / "sub" / "deeper" / "d.jpeg", 1)
    return temp_dir


class TestScanPaths:
    """图片文件发现"""

    def test_recursive_directory(self, image_tree):
        result = scan_paths([image_tree])
        names = [p.relative_to(image_tree).as_posix() for p in result.images]
        assert names == ["a.png", "b.JPG", "sub/c.webp", "sub/deeper/d.jpeg"]
        assert result.errors == []

    def test_non_recursive_directory(self, image_tree):
        result = scan_paths([image_tree], recursive=False)
        assert [p.name for p in result.images] == ["a.png", "b.JPG"]

    def test_glob_patterns(self, image_tree):
        result = scan_paths([str(image_tree / "**" / "*.webp")])
        assert [p.name for p in result.images] == ["c.webp"]

    def test_missing_path_is_recorded(self, image_tree):
        result = scan_paths([image_tree / "a.png", image_tree / "missing.png"])
        assert [p.name for p in result.images] == ["a.png"]
        assert len(result.errors) == 1
        assert "missing.png" in result.errors[0]

    def test_unsupported_file_is_skipped(self, image_tree):
        result = scan_paths([image_tree / "notes.txt"])
        assert result.images == []
        assert result.errors == []

    def test_results_are_absolute_and_deduplicated(self, image_tree, monkeypatch):
        monkeypatch.chdir(image_tree)
        expected = Path.cwd() / "a.png"
        result = scan_paths(["a.png", str(expected), "*.png"])
        assert result.images == [expected]
        assert result.images[0].is_absolute()

    def test_unmatched_glob_is_error(self, image_tree):
        result = scan_paths([str(image_tree / "*.gif")])
        assert result.images == []
        assert len(result.errors) == 1

    @pytest.mark.skipif(
        hasattr(os, "geteuid") and os.geteuid() == 0, reason="root 忽略目录权限"
    )
    def test_permission_error_does_not_abort(self, image_tree):
        locked = image_tree / "sub"
        os.chmod(locked, 0o000)
        try:
            result = scan_paths([image_tree])
        finally:
            os.chmod(locked, 0o755)

        assert [p.name for p in result.images] == ["a.png", "b.JPG"]
        assert any("权限错误" in error for error in result.errors)


class TestNaming:
    """目标路径计算"""

    def test_insert_suffix(self):
        assert insert_suffix(Path("a/photo.png"), ".tiny") == Path("a/photo.tiny.png")
        assert insert_suffix(Path("a/photo.png"), "") == Path("a/photo.png")

    def test_in_place(self):
        source = Path("/data/photo.png")
        assert resolve_destination(source, OutputPolicy.in_place()) == source

    def test_same_directory_with_suffix(self):
        source = Path("/data/photo.png")
        policy = OutputPolicy.with_suffix(".tiny")
        assert resolve_destination(source, policy) == Path("/data/photo.tiny.png")

    def test_output_directory(self):
        source = Path("/data/nested/photo.jpg")
        assert resolve_destination(
            source, OutputPolicy.to_directory(Path("/out"))
        ) == Path("/out/photo.jpg")
        assert resolve_destination(
            source, OutputPolicy.to_directory(Path("/out"), ".min")
        ) == Path("/out/photo.min.jpg")


class TestPlaceAtomically:
    """原子放置"""

    def test_rename(self, temp_dir):
        temp = write_bytes_file(temp_dir / "tiny-1.tmp", 5, b"n")
        destination = temp_dir / "out" / "photo.png"

        place_atomically(temp, destination)

        assert destination.read_bytes() == b"nnnnn"
        assert not temp.exists()

    def test_cross_device_fallback(self, temp_dir):
        """重命名失败时经由隐藏中间文件复制"""
        temp = write_bytes_file(temp_dir / "tiny-1.tmp", 5, b"n")
        destination = write_bytes_file(temp_dir / "photo.png", 9, b"o")
        real_replace = os.replace
        calls: list[tuple[str, str]] = []

        def fake_replace(src, dst):
            calls.append((Path(src).name, Path(dst).name))
            if Path(src) == temp:
                raise OSError(18, "Invalid cross-device link")
            return real_replace(src, dst)

        with mock.patch("py_tinify_mcp.utils.file_helpers.os.replace", fake_replace):
            place_atomically(temp, destination)

        assert destination.read_bytes() == b"nnnnn"
        assert calls[-1] == (".photo.png.partial", "photo.png")
        assert not temp.exists()
        assert not (temp_dir / ".photo.png.partial").exists()

    def test_fallback_failure_keeps_destination(self, temp_dir):
        temp = write_bytes_file(temp_dir / "tiny-1.tmp", 5, b"n")
        destination = write_bytes_file(temp_dir / "photo.png", 9, b"o")

        with (
            mock.patch(
                "py_tinify_mcp.utils.file_helpers.os.replace",
                side_effect=OSError(18, "Invalid cross-device link"),
            ),
            pytest.raises(OSError),
        ):
            place_atomically(temp, destination)

        assert destination.read_bytes() == b"o" * 9
        assert not (temp_dir / ".photo.png.partial").exists()


class TestTempFileManager:
    """临时文件管理"""

    def test_cleanup_on_exit(self, temp_dir):
        with TempFileManager(temp_dir) as temps:
            fd, path = temps.create()
            os.close(fd)
            assert path.name.startswith("tiny-")
            assert path.suffix == ".tmp"
            assert path.exists()
        assert not path.exists()

    def test_cleanup_on_error(self, temp_dir):
        with pytest.raises(RuntimeError):
            with TempFileManager(temp_dir) as temps:
                fd, path = temps.create()
                os.close(fd)
                raise RuntimeError("boom")
        assert not path.exists()

    def test_moved_file_is_ignored(self, temp_dir):
        with TempFileManager(temp_dir) as temps:
            fd, path = temps.create()
            os.close(fd)
            path.rename(temp_dir / "kept.png")
        assert (temp_dir / "kept.png").exists()


class TestMessageFormatter:
    """消息格式化"""

    def test_retrying(self):
        assert MessageFormatter.retrying("上传", 1, 2, 1.0) == "重试上传 (1/2)，等待 1.0s"

    def test_short_path(self):
        assert MessageFormatter.short_path("short.png") == "short.png"
        shortened = MessageFormatter.short_path("/" + "x" * 50 + "/photo.png", width=20)
        assert len(shortened) == 20
        assert shortened.startswith("...")
        assert shortened.endswith("photo.png")

    def test_size_change(self):
        message = MessageFormatter.size_change(2048, 1024, 50.0)
        assert "2.0 KiB" in message
        assert "1.0 KiB" in message
        assert "50.0%" in message
