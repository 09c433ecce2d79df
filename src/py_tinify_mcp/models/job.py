"""压缩任务模型。

定义任务状态机以及提供给观察者的只读任务快照。
"""

from enum import Enum
from pathlib import Path

from humanize import naturalsize
from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):
    """任务状态，只能沿 PENDING → PROCESSING → 终态 单向推进"""

    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({JobStatus.DONE, JobStatus.FAILED, JobStatus.CANCELLED})

# 合法的状态迁移
ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING, JobStatus.CANCELLED}),
    JobStatus.PROCESSING: frozenset({JobStatus.DONE, JobStatus.FAILED}),
    JobStatus.DONE: frozenset(),
    JobStatus.FAILED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}


class ErrorKind(str, Enum):
    """失败原因分类"""

    AUTH = "auth"  # 401 / 429，密钥无效或额度用尽
    CLIENT = "client"  # 其他 4xx，通常是图片本身有问题
    TRANSIENT = "transient"  # 5xx 或网络故障，重试后仍失败
    IO = "io"  # 本地文件读写失败
    CANCELLED = "cancelled"  # 流水线停止
    UNKNOWN = "unknown"


class JobSnapshot(BaseModel):
    """任务的不可变快照

    更新流和 Pipeline.jobs() 只返回快照，观察者无法修改工作线程持有的任务。
    """

    model_config = ConfigDict(frozen=True)

    path: Path = Field(description="源文件绝对路径，同时作为任务标识")
    status: JobStatus = Field(description="当前状态")
    original_size: int = Field(0, description="原始文件大小（字节）")
    compressed_size: int = Field(0, description="压缩后大小（字节）")
    saved_bytes: int = Field(0, description="节省的字节数")
    saved_percent: float = Field(0.0, description="节省比例（百分比）")
    output_path: Path | None = Field(None, description="结果写入位置")
    error: str | None = Field(None, description="错误信息")
    error_kind: ErrorKind | None = Field(None, description="错误分类")

    def is_terminal(self) -> bool:
        """是否已到达终态"""
        return self.status.is_terminal

    def is_successful(self) -> bool:
        return self.status == JobStatus.DONE

    def get_summary(self) -> str:
        """任务摘要"""
        match self.status:
            case JobStatus.DONE:
                return (
                    f"{naturalsize(self.original_size, binary=True)} → "
                    f"{naturalsize(self.compressed_size, binary=True)} "
                    f"({self.saved_percent:.1f}% 节省)"
                )
            case JobStatus.FAILED:
                return f"失败: {self.error}"
            case JobStatus.CANCELLED:
                return "已取消"
            case _:
                return self.status.value
