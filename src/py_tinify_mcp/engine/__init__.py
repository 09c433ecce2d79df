"""压缩处理引擎模块。

包含流水线、暂停闸门、更新流、历史记录和批量处理等核心处理逻辑。
"""

from .batch import BatchRunner
from .gate import PauseGate
from .history import HistoryManager
from .job import Job
from .pipeline import Pipeline
from .updates import Subscription, UpdateStream, UpdateStreamClosed


__all__ = [
    "BatchRunner",
    "HistoryManager",
    "Job",
    "PauseGate",
    "Pipeline",
    "Subscription",
    "UpdateStream",
    "UpdateStreamClosed",
]
