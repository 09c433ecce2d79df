"""批量压缩结果模型。

汇总一次批量运行中所有任务的终态快照。
"""

from humanize import naturalsize
from pydantic import BaseModel, Field

from .job import JobSnapshot, JobStatus


class BaseResult(BaseModel):
    """结果基类，包含通用字段和方法"""

    success: bool = Field(description="是否成功")
    error: str | None = Field(None, description="错误信息")

    def is_successful(self) -> bool:
        """检查是否成功"""
        return self.success and self.error is None

    @staticmethod
    def format_size(size_bytes: int) -> str:
        """格式化文件大小为人类可读格式"""
        return naturalsize(size_bytes, binary=True)


class BatchSummary(BaseResult):
    """批量处理结果"""

    jobs: list[JobSnapshot] = Field(default_factory=list, description="所有任务的终态快照")
    scan_errors: list[str] = Field(default_factory=list, description="文件扫描阶段的错误")

    def get_done_jobs(self) -> list[JobSnapshot]:
        return [j for j in self.jobs if j.status == JobStatus.DONE]

    def get_failed_jobs(self) -> list[JobSnapshot]:
        return [j for j in self.jobs if j.status == JobStatus.FAILED]

    def get_cancelled_jobs(self) -> list[JobSnapshot]:
        return [j for j in self.jobs if j.status == JobStatus.CANCELLED]

    def get_total_count(self) -> int:
        return len(self.jobs)

    def get_success_count(self) -> int:
        return len(self.get_done_jobs())

    def get_failure_count(self) -> int:
        return len(self.get_failed_jobs())

    def get_success_rate(self) -> float:
        """获取成功率（百分比）"""
        total = self.get_total_count()
        if total == 0:
            return 0.0
        return (self.get_success_count() / total) * 100

    def get_total_original_size(self) -> int:
        """成功任务的总原始大小"""
        return sum(j.original_size for j in self.get_done_jobs())

    def get_total_compressed_size(self) -> int:
        """成功任务的总压缩后大小"""
        return sum(j.compressed_size for j in self.get_done_jobs())

    def get_total_size_saved(self) -> int:
        """总节省大小"""
        return sum(j.saved_bytes for j in self.get_done_jobs())

    def get_overall_compression_ratio(self) -> float:
        """整体节省比例"""
        total_original = self.get_total_original_size()
        if total_original == 0:
            return 0.0
        return (self.get_total_size_saved() / total_original) * 100

    def get_summary(self) -> str:
        """批量处理摘要"""
        if not self.success:
            return f"批量处理失败: {self.error}"

        total = self.get_total_count()
        successful = self.get_success_count()
        size_saved = self.format_size(self.get_total_size_saved())

        return (
            f"处理 {successful}/{total} 个文件 "
            f"(成功率 {self.get_success_rate():.1f}%), "
            f"总节省 {size_saved} ({self.get_overall_compression_ratio():.0f}%)"
        )
