"""远程压缩服务客户端。

每张图片需要两次远程调用：上传压缩（shrink）和下载结果。
两次调用都带有分类感知的重试与指数退避，临时故障对调用方透明。
"""

import io
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from typing import BinaryIO

import requests
from PIL import Image

from ..config import get_config
from ..exceptions import (
    AccountError,
    APIError,
    ClientError,
    NetworkError,
    OperationCancelledError,
    ResponseFormatError,
    RetriesExhaustedError,
    ServerError,
)
from ..models.api import ApiErrorBody, ShrinkResponse
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter


logger = get_logger()

# 不可重试的账户类状态码
ACCOUNT_STATUS_CODES = frozenset({401, 429})


@dataclass
class CompressedImage:
    """压缩结果

    持有下载响应的流，调用方负责关闭（支持 with 语句）。
    """

    response: requests.Response
    compressed_size: int
    original_size: int

    def iter_chunks(self, chunk_size: int | None = None) -> Iterator[bytes]:
        """逐块读取压缩后的数据"""
        chunk_size = chunk_size or get_config().service.DOWNLOAD_CHUNK_SIZE
        try:
            for chunk in self.response.iter_content(chunk_size=chunk_size):
                if chunk:
                    yield chunk
        except requests.RequestException as e:
            raise NetworkError(f"下载中断: {e}") from e

    def close(self) -> None:
        self.response.close()

    def __enter__(self) -> "CompressedImage":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def _build_probe_png() -> bytes:
    """生成 1x1 全透明 PNG，用于校验密钥"""
    buffer = io.BytesIO()
    Image.new("RGBA", (1, 1), (0, 0, 0, 0)).save(buffer, "PNG")
    return buffer.getvalue()


def _api_error(error_class: type[APIError], response: requests.Response) -> APIError:
    """从错误响应体构造类型化的接口错误"""
    try:
        body = ApiErrorBody.model_validate(response.json())
    except ValueError:
        body = ApiErrorBody()
    return error_class(response.status_code, body.error, body.message)


class TinifyClient:
    """TinyPNG shrink 接口客户端

    Args:
        api_key: API 密钥，作为 basic auth 的用户名
        api_url: shrink 接口地址
        max_retries: 可重试错误的最大重试次数
        base_delay: 第一次重试前的等待时间，之后每次翻倍
        timeout: 单次请求超时（秒）
        session: 自定义 requests 会话（测试时注入）
    """

    def __init__(
        self,
        api_key: str,
        api_url: str | None = None,
        max_retries: int | None = None,
        base_delay: float | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        service = get_config().service
        self.api_key = api_key
        self.api_url = api_url or service.API_URL
        self.max_retries = service.MAX_RETRIES if max_retries is None else max_retries
        self.base_delay = service.BASE_DELAY if base_delay is None else base_delay
        self.timeout = timeout or service.REQUEST_TIMEOUT

        self.session = session or requests.Session()
        self.session.auth = (api_key, "")

    def close(self) -> None:
        self.session.close()

    def compress(
        self,
        source: BinaryIO,
        display_name: str = "",
        cancel: threading.Event | None = None,
    ) -> CompressedImage:
        """上传图片并返回压缩结果流

        整个输入会被读入内存后上传，不做流式上传。

        Args:
            source: 可读的二进制流
            display_name: 用于日志的文件名
            cancel: 取消信号

        Returns:
            CompressedImage: 打开的结果流、接口报告的压缩后大小、本地测得的原始大小

        Raises:
            AccountError: 401 / 429
            ClientError: 其他 4xx，或下载返回非 200 且非 5xx
            RetriesExhaustedError: 重试次数用尽
            ResponseFormatError: 2xx 响应无法解析
            OperationCancelledError: 收到取消信号
        """
        cancel = cancel or threading.Event()
        payload = source.read()
        original_size = len(payload)

        shrink = self._shrink_with_retry(payload, cancel)
        logger.debug(
            f"shrink 完成 {display_name}: {original_size} → {shrink.output.size} 字节"
        )

        response = self._download_with_retry(shrink.output.url, cancel)
        return CompressedImage(
            response=response,
            compressed_size=shrink.output.size,
            original_size=original_size,
        )

    def validate_key(self, cancel: threading.Event | None = None) -> None:
        """压缩一张最小的图片，尽早暴露密钥问题

        Raises:
            AccountError: 密钥无效或额度用尽
        """
        with self.compress(io.BytesIO(_build_probe_png()), "probe.png", cancel):
            pass

    def _shrink_with_retry(
        self, payload: bytes, cancel: threading.Event
    ) -> ShrinkResponse:
        last_error: Exception | None = None

        for attempt in range(self.max_retries + 1):
            if attempt > 0:
                self._backoff("上传", attempt, cancel)

            try:
                response = self._send(
                    "POST",
                    self.api_url,
                    cancel,
                    data=payload,
                    headers={"Content-Type": "application/octet-stream"},
                )
            except NetworkError as e:
                last_error = e
                continue

            with response:
                status = response.status_code
                if status in ACCOUNT_STATUS_CODES:
                    raise _api_error(AccountError, response)
                if status >= 500:
                    last_error = _api_error(ServerError, response)
                    logger.warning(f"shrink 服务端错误: {last_error}")
                    continue
                if status >= 400:
                    raise _api_error(ClientError, response)

                try:
                    shrink = ShrinkResponse.model_validate(response.json())
                except ValueError as e:
                    raise ResponseFormatError(f"无法解析 shrink 响应: {e}") from e

            if not shrink.output.url:
                raise ResponseFormatError("shrink 响应缺少 output.url")
            return shrink

        raise RetriesExhaustedError("upload", last_error)

    def _download_with_retry(
        self, url: str, cancel: threading.Event
    ) -> requests.Response:
        last_error: Exception | None = None

        for attempt in range(self.max_retries + 1):
            if attempt > 0:
                self._backoff("下载", attempt, cancel)

            try:
                response = self._send("GET", url, cancel, stream=True)
            except NetworkError as e:
                last_error = e
                continue

            if response.status_code == 200:
                return response

            response.close()
            if response.status_code >= 500:
                last_error = ServerError(response.status_code, "DownloadError", "下载失败")
                logger.warning(f"下载服务端错误: {response.status_code}")
                continue
            raise ClientError(
                response.status_code, "DownloadError", f"download failed: {response.status_code}"
            )

        raise RetriesExhaustedError("download", last_error)

    def _send(
        self, method: str, url: str, cancel: threading.Event, **kwargs
    ) -> requests.Response:
        """发送请求，并在请求前后检查取消信号"""
        if cancel.is_set():
            raise OperationCancelledError()

        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.warning(MessageFormatter.operation_failed(f"{method} 请求", url, e))
            raise NetworkError(f"网络错误: {e}") from e

        if cancel.is_set():
            response.close()
            raise OperationCancelledError()
        return response

    def _backoff(self, stage: str, attempt: int, cancel: threading.Event) -> None:
        """第 attempt 次重试前等待 base_delay * 2**(attempt-1) 秒"""
        delay = self.base_delay * (2 ** (attempt - 1))
        logger.warning(MessageFormatter.retrying(stage, attempt, self.max_retries, delay))
        if self._sleep(cancel, delay):
            raise OperationCancelledError()

    @staticmethod
    def _sleep(cancel: threading.Event, delay: float) -> bool:
        """可被取消的等待，返回 True 表示等待期间收到取消信号"""
        return cancel.wait(delay)
