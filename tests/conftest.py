"""测试配置文件。

提供测试所需的fixtures和配置。
"""

import io
import json
import tempfile
import threading
from pathlib import Path

import pytest
import requests
from PIL import Image, ImageDraw

from py_tinify_mcp.config import reset_config
from py_tinify_mcp.core.client import CompressedImage
from py_tinify_mcp.exceptions import OperationCancelledError


def make_response(
    status_code: int = 200,
    body: bytes | dict | list | None = None,
    url: str = "https://api.tinify.com/output/abc",
) -> requests.Response:
    """构造真实的 requests.Response，内容来自内存"""
    if isinstance(body, (dict, list)):
        data = json.dumps(body).encode("utf-8")
    else:
        data = body or b""

    response = requests.Response()
    response.status_code = status_code
    response.url = url
    response.raw = io.BytesIO(data)
    return response


def shrink_body(size: int, url: str = "https://api.tinify.com/output/abc") -> dict:
    """shrink 接口成功响应体"""
    return {
        "input": {"size": size * 2, "type": "image/png"},
        "output": {
            "size": size,
            "type": "image/png",
            "width": 1,
            "height": 1,
            "ratio": 0.5,
            "url": url,
        },
    }


def write_bytes_file(path: Path, size: int, fill: bytes = b"a") -> Path:
    """写入指定大小的文件"""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(fill * size)
    return path


class FakeClient:
    """按文件名返回预设结果的压缩客户端

    Args:
        ratio: 默认压缩比例
        sizes: 文件名 → 压缩后大小
        errors: 文件名 → 要抛出的异常
        delay: 每次压缩的耗时（可被取消信号打断）
    """

    def __init__(
        self,
        ratio: float = 0.5,
        sizes: dict[str, int] | None = None,
        errors: dict[str, Exception] | None = None,
        delay: float = 0.0,
    ):
        self.ratio = ratio
        self.sizes = sizes or {}
        self.errors = errors or {}
        self.delay = delay
        self.calls: list[str] = []
        self.release = threading.Event()
        self.release.set()
        self._lock = threading.Lock()
        self._active = 0
        self.max_active = 0
        self.closed = False

    def compress(self, source, display_name="", cancel=None):
        cancel = cancel or threading.Event()
        payload = source.read()

        with self._lock:
            self.calls.append(display_name)
            self._active += 1
            self.max_active = max(self.max_active, self._active)
        try:
            # release 被清除时阻塞，直到测试放行或流水线停止
            while not self.release.wait(0.01):
                if cancel.is_set():
                    raise OperationCancelledError()
            if self.delay and cancel.wait(self.delay):
                raise OperationCancelledError()
            if display_name in self.errors:
                raise self.errors[display_name]

            size = self.sizes.get(display_name, int(len(payload) * self.ratio))
            return CompressedImage(
                response=make_response(200, b"z" * size),
                compressed_size=size,
                original_size=len(payload),
            )
        finally:
            with self._lock:
                self._active -= 1

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """每个测试使用独立的配置目录和状态目录"""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "xdg-state"))
    monkeypatch.delenv("TINYPNG_API_KEY", raising=False)
    for name in (
        "TINY_MAX_RETRIES",
        "TINY_REQUEST_TIMEOUT",
        "TINY_WORKERS",
        "TINY_LOG_LEVEL",
        "TINY_ENABLE_FILE_LOGGING",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def temp_dir():
    """临时目录fixture"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def sample_images(temp_dir: Path) -> dict[str, Path]:
    """用 Pillow 生成的测试图片"""
    images_dir = temp_dir / "images"
    images_dir.mkdir()
    images = {}

    large_path = images_dir / "large.png"
    large_img = Image.new("RGB", (200, 160), color="white")
    draw = ImageDraw.Draw(large_img)
    for i in range(20):
        x, y = (i * 20) % 200, (i * 16) % 160
        color = (i * 5 % 256, i * 7 % 256, i * 11 % 256)
        draw.rectangle([x, y, x + 30, y + 20], fill=color)
    large_img.save(large_path, "PNG")
    images["large"] = large_path

    transparent_path = images_dir / "transparent.png"
    transparent_img = Image.new("RGBA", (100, 100), color=(0, 0, 0, 0))
    draw = ImageDraw.Draw(transparent_img)
    draw.ellipse([10, 10, 90, 90], fill=(255, 100, 25, 180))
    transparent_img.save(transparent_path, "PNG")
    images["transparent"] = transparent_path

    jpeg_path = images_dir / "photo.jpg"
    Image.new("RGB", (80, 60), color="red").save(jpeg_path, "JPEG", quality=90)
    images["jpeg"] = jpeg_path

    webp_path = images_dir / "tiny.webp"
    Image.new("RGB", (20, 20), color="blue").save(webp_path, "WEBP")
    images["webp"] = webp_path

    return images


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()
