"""基于 TinyPNG 接口的批量图像压缩库。

上传图片到远程 shrink 接口，下载优化结果并安全地写回磁盘。
"""

__version__ = "0.1.0"
__author__ = "crper"
__description__ = "TinyPNG 批量图像压缩流水线与 MCP 服务"

# 核心功能导出
from .config import UserSettings
from .core.client import TinifyClient
from .engine.batch import BatchRunner
from .engine.pipeline import Pipeline
from .models.batch_result import BatchSummary
from .models.job import JobSnapshot, JobStatus
from .models.output_policy import OutputPolicy


__all__ = [
    "BatchRunner",
    "BatchSummary",
    "JobSnapshot",
    "JobStatus",
    "OutputPolicy",
    "Pipeline",
    "TinifyClient",
    "UserSettings",
    "get_version",
]


def get_version() -> str:
    """获取版本号。"""
    return __version__
