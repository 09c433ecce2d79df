"""压缩服务异常处理模块。

定义统一的异常类和错误分类机制。
"""

from pathlib import Path

from .models.job import ErrorKind, JobStatus
from .utils.logging_helpers import get_logger
from .utils.message_formatter import MessageFormatter


logger = get_logger()


# 统一的异常类型
class TinifyError(Exception):
    """压缩相关错误基类"""

    def __init__(self, message: str, input_path: Path | None = None):
        super().__init__(message)
        self.message = message
        self.input_path = input_path


class APIError(TinifyError):
    """远程接口返回的错误

    Attributes:
        status_code: HTTP 状态码
        error_type: 接口返回的错误代码，如 "Unauthorized"
    """

    def __init__(self, status_code: int, error_type: str = "", message: str = ""):
        self.status_code = status_code
        self.error_type = error_type
        super().__init__(f"API 错误 {status_code} ({error_type}): {message}")
        # 保留接口原始消息，便于直接展示
        self.message = message

    def __str__(self) -> str:
        return f"API 错误 {self.status_code} ({self.error_type}): {self.message}"


class AccountError(APIError):
    """密钥无效或额度用尽（401 / 429），不重试"""

    pass


class ClientError(APIError):
    """请求本身有问题（其他 4xx），不重试"""

    pass


class ServerError(APIError):
    """服务端错误（5xx），可重试"""

    pass


class NetworkError(TinifyError):
    """没有拿到响应的传输层错误，可重试"""

    pass


class RetriesExhaustedError(TinifyError):
    """重试次数用尽"""

    def __init__(self, stage: str, last_error: Exception | None = None):
        super().__init__(f"max retries exceeded for {stage}")
        self.stage = stage
        self.last_error = last_error


class ResponseFormatError(TinifyError):
    """2xx 响应内容无法解析"""

    pass


class OperationCancelledError(TinifyError):
    """流水线停止导致操作中断"""

    def __init__(self, message: str = "操作已取消", input_path: Path | None = None):
        super().__init__(message, input_path)


class ValidationError(TinifyError):
    """参数验证错误 - 统一的验证错误类型"""

    pass


class InvalidTransitionError(TinifyError):
    """任务状态只能向前推进"""

    def __init__(self, path: Path, current: JobStatus, target: JobStatus):
        super().__init__(
            f"非法的状态迁移 {current.value} → {target.value}", input_path=path
        )
        self.current = current
        self.target = target


class PipelineStateError(TinifyError):
    """流水线生命周期使用错误（重复启动、停止后再使用等）"""

    pass


class ErrorHandler:
    """统一错误处理器

    把异常归类为任务的错误类型，并生成记录到任务上的错误文本。
    """

    @staticmethod
    def classify(error: BaseException) -> ErrorKind:
        """异常分类，支持 match-case 分发"""
        match error:
            case OperationCancelledError():
                return ErrorKind.CANCELLED
            case AccountError():
                return ErrorKind.AUTH
            case ClientError() | ResponseFormatError() | ValidationError():
                return ErrorKind.CLIENT
            case ServerError() | NetworkError() | RetriesExhaustedError():
                return ErrorKind.TRANSIENT
            case OSError():
                return ErrorKind.IO
            case _:
                return ErrorKind.UNKNOWN

    @staticmethod
    def describe(error: BaseException) -> str:
        """生成记录到任务上的错误文本"""
        match error:
            case RetriesExhaustedError(last_error=last) if last is not None:
                return f"{error}: {last}"
            case OSError(filename=filename) if filename:
                return f"{error.strerror or error}: {filename}"
            case TinifyError():
                return str(error)
            case _:
                return f"{type(error).__name__}: {error}"

    @staticmethod
    def log_job_failure(path: Path, error: BaseException) -> None:
        """按错误类型选择日志级别"""
        kind = ErrorHandler.classify(error)
        log_msg = MessageFormatter.format_error("图像压缩", path, error)
        match kind:
            case ErrorKind.CANCELLED:
                logger.info(log_msg)
            case ErrorKind.UNKNOWN:
                logger.error(log_msg, exc_info=error)
            case _:
                logger.error(log_msg)
