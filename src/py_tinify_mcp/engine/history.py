"""压缩历史管理模块。

记录每个终态任务，后台尽力持久化，支持导出 CSV / JSON。
保存失败只记录日志，不会阻塞或影响流水线。
"""

import csv
import os
import tempfile
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from ..config import APP_DIR_NAME, user_state_dir
from ..exceptions import ValidationError
from ..models.history import HistoryRecord
from ..models.job import JobSnapshot
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter


logger = get_logger()

HISTORY_FILE_NAME = "history.json"
CSV_HEADER = [
    "File",
    "Before_Size",
    "After_Size",
    "Saved_Bytes",
    "Saved_Percent",
    "Status",
    "Timestamp",
    "Error",
]

_records_adapter = TypeAdapter(list[HistoryRecord])


def default_history_path() -> Path:
    return user_state_dir() / APP_DIR_NAME / HISTORY_FILE_NAME


class HistoryManager:
    """历史记录管理器

    Args:
        path: 历史文件路径，默认 ~/.local/state/tinytui/history.json
    """

    def __init__(self, path: Path | None = None):
        self.path = path or default_history_path()
        self._records: list[HistoryRecord] = []
        self._lock = threading.Lock()
        self._save_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="history-save")
        self._pending: list[Future] = []
        self.load()

    def load(self) -> None:
        """读取历史文件，文件不存在时保持为空

        Raises:
            ValidationError: 文件内容损坏
        """
        if not self.path.exists():
            return

        try:
            records = _records_adapter.validate_json(self.path.read_bytes())
        except PydanticValidationError as e:
            raise ValidationError(f"历史文件内容无效: {e}", input_path=self.path) from e

        with self._lock:
            self._records = records

    def add(self, record: HistoryRecord) -> None:
        """追加记录并在后台保存"""
        with self._lock:
            self._records.append(record)
        future = self._executor.submit(self.save)
        future.add_done_callback(self._on_saved)
        with self._lock:
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)

    def record_job(self, snapshot: JobSnapshot) -> HistoryRecord:
        """把终态任务写入历史"""
        record = HistoryRecord.from_snapshot(snapshot)
        self.add(record)
        return record

    def all(self) -> list[HistoryRecord]:
        with self._lock:
            return list(self._records)

    def save(self) -> None:
        """写入历史文件（临时文件 + 原子替换）"""
        with self._lock:
            data = _records_adapter.dump_json(self._records, indent=2)

        with self._save_lock:
            self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(
                prefix=".history-", suffix=".tmp", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.chmod(temp_name, 0o644)
                os.replace(temp_name, self.path)
            except OSError:
                Path(temp_name).unlink(missing_ok=True)
                raise

    def flush(self) -> None:
        """等待所有后台保存完成"""
        with self._lock:
            pending = list(self._pending)
        for future in pending:
            future.exception()

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def _on_saved(self, future: Future) -> None:
        if error := future.exception():
            logger.warning(MessageFormatter.operation_failed("保存历史记录", self.path, error))

    def export_csv(self, path: Path) -> int:
        """导出 CSV

        Returns:
            int: 导出的记录数
        """
        records = self.all()
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(CSV_HEADER)
            for r in records:
                writer.writerow(
                    [
                        r.file,
                        r.before_size,
                        r.after_size,
                        r.saved_bytes,
                        f"{r.saved_percent:.2f}",
                        r.status,
                        r.timestamp.isoformat(timespec="seconds"),
                        r.error or "",
                    ]
                )
        return len(records)

    def export_json(self, path: Path) -> int:
        """导出 JSON"""
        records = self.all()
        Path(path).write_bytes(_records_adapter.dump_json(records, indent=2))
        return len(records)
