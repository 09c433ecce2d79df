"""流水线内部的可变任务记录。

只有流水线修改任务；每个任务自带锁，所有读写都在锁内完成，
对外只暴露不可变快照。
"""

import threading
from pathlib import Path

from ..exceptions import ErrorHandler, InvalidTransitionError
from ..models.job import ALLOWED_TRANSITIONS, ErrorKind, JobSnapshot, JobStatus


class Job:
    """单个文件的压缩任务"""

    def __init__(self, path: Path, original_size: int = 0):
        self.path = path
        self._lock = threading.Lock()
        self._status = JobStatus.PENDING
        self._original_size = original_size
        self._compressed_size = 0
        self._saved_bytes = 0
        self._saved_percent = 0.0
        self._output_path: Path | None = None
        self._error: str | None = None
        self._error_kind: ErrorKind | None = None

    def __repr__(self) -> str:
        return f"Job({self.path!s}, {self.status.value})"

    @property
    def status(self) -> JobStatus:
        with self._lock:
            return self._status

    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def _transition(self, target: JobStatus) -> None:
        # 调用方已持有锁
        if target not in ALLOWED_TRANSITIONS[self._status]:
            raise InvalidTransitionError(self.path, self._status, target)
        self._status = target

    def start(self) -> JobSnapshot:
        """PENDING → PROCESSING"""
        with self._lock:
            self._transition(JobStatus.PROCESSING)
            return self._snapshot()

    def cancel(self) -> JobSnapshot | None:
        """仍在排队的任务标记为已取消；已开始或已结束的任务不受影响"""
        with self._lock:
            if self._status != JobStatus.PENDING:
                return None
            self._transition(JobStatus.CANCELLED)
            return self._snapshot()

    def fail(self, error: BaseException) -> JobSnapshot:
        """PROCESSING → FAILED，记录错误和分类"""
        with self._lock:
            self._transition(JobStatus.FAILED)
            self._error = ErrorHandler.describe(error)
            self._error_kind = ErrorHandler.classify(error)
            return self._snapshot()

    def complete(
        self, original_size: int, compressed_size: int, output_path: Path
    ) -> JobSnapshot:
        """PROCESSING → DONE，计算节省量"""
        with self._lock:
            self._transition(JobStatus.DONE)
            self._original_size = original_size
            self._compressed_size = compressed_size
            self._saved_bytes = original_size - compressed_size
            self._saved_percent = (
                self._saved_bytes / original_size * 100 if original_size > 0 else 0.0
            )
            self._output_path = output_path
            return self._snapshot()

    def snapshot(self) -> JobSnapshot:
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> JobSnapshot:
        return JobSnapshot(
            path=self.path,
            status=self._status,
            original_size=self._original_size,
            compressed_size=self._compressed_size,
            saved_bytes=self._saved_bytes,
            saved_percent=self._saved_percent,
            output_path=self._output_path,
            error=self._error,
            error_kind=self._error_kind,
        )
