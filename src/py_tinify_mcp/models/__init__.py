"""数据模型包。

定义压缩任务、输出策略、接口响应和结果汇总等数据结构。
"""

from .api import ApiErrorBody, ShrinkOutput, ShrinkResponse
from .batch_result import BatchSummary
from .constants import SUPPORTED_EXTENSIONS, is_supported_image
from .history import HistoryRecord
from .job import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    ErrorKind,
    JobSnapshot,
    JobStatus,
)
from .output_policy import OutputMode, OutputPolicy


__all__ = [
    "ALLOWED_TRANSITIONS",
    "SUPPORTED_EXTENSIONS",
    "TERMINAL_STATUSES",
    "ApiErrorBody",
    "BatchSummary",
    "ErrorKind",
    "HistoryRecord",
    "JobSnapshot",
    "JobStatus",
    "OutputMode",
    "OutputPolicy",
    "ShrinkOutput",
    "ShrinkResponse",
    "is_supported_image",
]
