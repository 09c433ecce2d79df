"""压缩历史测试。"""

import csv
import json
from pathlib import Path
from unittest import mock

import pytest

from py_tinify_mcp.engine.history import CSV_HEADER, HistoryManager
from py_tinify_mcp.exceptions import ValidationError
from py_tinify_mcp.models.history import HistoryRecord
from py_tinify_mcp.models.job import ErrorKind, JobSnapshot, JobStatus


def done_snapshot(name: str = "a.png") -> JobSnapshot:
    return JobSnapshot(
        path=Path("/data") / name,
        status=JobStatus.DONE,
        original_size=1000,
        compressed_size=400,
        saved_bytes=600,
        saved_percent=60.0,
        output_path=Path("/data") / name,
    )


@pytest.fixture
def history(temp_dir):
    manager = HistoryManager(temp_dir / "state" / "history.json")
    yield manager
    manager.close()


class TestHistoryRecord:
    """历史记录模型"""

    def test_from_done_snapshot(self):
        record = HistoryRecord.from_snapshot(done_snapshot())
        assert record.status == "success"
        assert record.file == "/data/a.png"
        assert record.before_size == 1000
        assert record.after_size == 400
        assert record.saved_percent == 60.0
        assert record.timestamp.tzinfo is not None

    def test_from_failed_and_cancelled(self):
        failed = JobSnapshot(
            path=Path("/data/b.png"),
            status=JobStatus.FAILED,
            error="API 错误 401 (Unauthorized): bad key",
            error_kind=ErrorKind.AUTH,
        )
        cancelled = JobSnapshot(path=Path("/data/c.png"), status=JobStatus.CANCELLED)

        assert HistoryRecord.from_snapshot(failed).status == "failed"
        assert HistoryRecord.from_snapshot(failed).error.startswith("API 错误 401")
        assert HistoryRecord.from_snapshot(cancelled).status == "cancelled"

    def test_rejects_unfinished(self):
        with pytest.raises(ValueError):
            HistoryRecord.from_snapshot(
                JobSnapshot(path=Path("/data/a.png"), status=JobStatus.PROCESSING)
            )


class TestHistoryManager:
    """历史持久化与导出"""

    def test_default_path_follows_xdg_state(self, tmp_path):
        manager = HistoryManager()
        try:
            assert manager.path == tmp_path / "xdg-state" / "tinytui" / "history.json"
        finally:
            manager.close()

    def test_record_and_reload(self, history):
        history.record_job(done_snapshot("a.png"))
        history.record_job(done_snapshot("b.png"))
        history.flush()

        reloaded = HistoryManager(history.path)
        try:
            assert [r.file for r in reloaded.all()] == ["/data/a.png", "/data/b.png"]
        finally:
            reloaded.close()

    def test_missing_file_is_empty(self, history):
        assert history.all() == []

    def test_corrupt_file_raises(self, temp_dir):
        path = temp_dir / "history.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValidationError):
            HistoryManager(path)

    def test_save_failure_is_logged_not_raised(self, history, caplog):
        with mock.patch.object(history, "save", side_effect=OSError("disk full")):
            history.record_job(done_snapshot())
            history.close()

        assert len(history.all()) == 1
        assert any("disk full" in r.getMessage() for r in caplog.records)

    def test_all_returns_copy(self, history):
        history.record_job(done_snapshot())
        records = history.all()
        records.clear()
        assert len(history.all()) == 1

    def test_export_csv(self, history, temp_dir):
        history.record_job(done_snapshot("a.png"))
        history.record_job(
            JobSnapshot(
                path=Path("/data/b.png"),
                status=JobStatus.FAILED,
                original_size=10,
                error="max retries exceeded for upload",
            )
        )
        target = temp_dir / "history.csv"

        assert history.export_csv(target) == 2

        with open(target, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        assert rows[0] == CSV_HEADER
        assert rows[1][:6] == ["/data/a.png", "1000", "400", "600", "60.00", "success"]
        assert rows[2][5] == "failed"
        assert rows[2][7] == "max retries exceeded for upload"
        assert "T" in rows[1][6]

    def test_export_json(self, history, temp_dir):
        history.record_job(done_snapshot())
        target = temp_dir / "history-export.json"

        assert history.export_json(target) == 1

        data = json.loads(target.read_text(encoding="utf-8"))
        assert data[0]["file"] == "/data/a.png"
        assert data[0]["status"] == "success"
