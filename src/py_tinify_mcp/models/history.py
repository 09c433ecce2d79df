"""压缩历史记录模型。"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from .job import JobSnapshot, JobStatus


# 任务状态到历史记录状态的映射
_HISTORY_STATUS = {
    JobStatus.DONE: "success",
    JobStatus.FAILED: "failed",
    JobStatus.CANCELLED: "cancelled",
}


class HistoryRecord(BaseModel):
    """单个终态任务的历史记录"""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    file: str = Field(description="源文件路径")
    before_size: int = Field(0, description="压缩前大小")
    after_size: int = Field(0, description="压缩后大小")
    saved_bytes: int = Field(0, description="节省的字节数")
    saved_percent: float = Field(0.0, description="节省比例")
    status: str = Field(description="success / failed / cancelled")
    error: str | None = Field(None, description="错误信息")

    @classmethod
    def from_snapshot(cls, snapshot: JobSnapshot) -> "HistoryRecord":
        """由终态任务快照生成记录"""
        if not snapshot.is_terminal():
            raise ValueError(f"任务尚未结束: {snapshot.path} ({snapshot.status.value})")

        return cls(
            file=str(snapshot.path),
            before_size=snapshot.original_size,
            after_size=snapshot.compressed_size,
            saved_bytes=snapshot.saved_bytes,
            saved_percent=snapshot.saved_percent,
            status=_HISTORY_STATUS[snapshot.status],
            error=snapshot.error,
        )
