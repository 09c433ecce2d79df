"""批量处理器模块。

扫描输入路径，驱动流水线直到所有任务结束，汇总结果并写入历史。
"""

from collections.abc import Callable
from pathlib import Path

from ..config import UserSettings, get_config
from ..core.client import TinifyClient
from ..exceptions import ValidationError
from ..models.batch_result import BatchSummary
from ..models.job import JobSnapshot
from ..models.output_policy import OutputPolicy
from ..utils.file_helpers import scan_paths
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter
from .history import HistoryManager
from .pipeline import Pipeline
from .updates import UpdateStreamClosed


logger = get_logger()

UpdateCallback = Callable[[JobSnapshot], None]


class BatchRunner:
    """批量压缩处理器

    Args:
        settings: 用户设置（密钥、输出策略、并发数）
        client: 压缩服务客户端，默认按 settings.api_key 创建
        history: 历史记录管理器，None 时不记录
        poll_interval: 更新流安静时回查 Pipeline.jobs() 的间隔
    """

    def __init__(
        self,
        settings: UserSettings,
        client: TinifyClient | None = None,
        history: HistoryManager | None = None,
        poll_interval: float = 0.5,
    ):
        if client is None and not settings.is_configured():
            raise ValidationError("未配置 API 密钥")

        self.settings = settings
        self._owns_client = client is None
        self.client = client or TinifyClient(settings.api_key)
        self.history = history
        self.poll_interval = poll_interval

    def close(self) -> None:
        """关闭自己创建的客户端"""
        if self._owns_client:
            self.client.close()

    def run(
        self,
        paths: list[str | Path],
        recursive: bool = True,
        concurrency: int | None = None,
        policy: OutputPolicy | None = None,
        on_update: UpdateCallback | None = None,
        on_finished: UpdateCallback | None = None,
    ) -> BatchSummary:
        """压缩给定路径中的所有图片

        Args:
            paths: 文件、目录或通配符
            recursive: 目录是否递归
            concurrency: 并发数，默认读取用户设置
            policy: 输出策略，默认读取用户设置
            on_update: 收到任意更新时回调
            on_finished: 每个任务结束时回调一次

        Returns:
            BatchSummary: 批量处理结果
        """
        scan = scan_paths(paths, recursive=recursive)
        for error in scan.errors:
            logger.warning(error)

        if not scan.images:
            return BatchSummary(success=True, error="未找到图像文件", scan_errors=scan.errors)

        pipeline = Pipeline(
            policy or self.settings.to_output_policy(),
            client=self.client,
            poll_interval=get_config().pipeline.POLL_INTERVAL,
        )
        pipeline.configure(concurrency or self.settings.concurrency)
        pipeline.start()

        try:
            added = pipeline.add_files(scan.images)
            expected = {snapshot.path for snapshot in added}
            finished = self._drain(pipeline, expected, on_update, on_finished)
        finally:
            pipeline.stop()

        summary = self._create_summary(finished, scan.errors)
        logger.info(summary.get_summary())
        return summary

    def _drain(
        self,
        pipeline: Pipeline,
        expected: set[Path],
        on_update: UpdateCallback | None,
        on_finished: UpdateCallback | None,
    ) -> dict[Path, JobSnapshot]:
        """等待所有任务到达终态

        更新流会丢消息，流安静时以 Pipeline.jobs() 为准补齐。
        """
        finished: dict[Path, JobSnapshot] = {}
        subscription = pipeline.updates()

        while len(finished) < len(expected):
            try:
                snapshot = subscription.get(timeout=self.poll_interval)
            except UpdateStreamClosed:
                break

            if snapshot is not None:
                if on_update:
                    on_update(snapshot)
                candidates = [snapshot]
            else:
                candidates = pipeline.jobs()

            for candidate in candidates:
                if (
                    candidate.path in expected
                    and candidate.is_terminal()
                    and candidate.path not in finished
                ):
                    finished[candidate.path] = candidate
                    self._finish(candidate, on_finished)

        return finished

    def _finish(self, snapshot: JobSnapshot, on_finished: UpdateCallback | None) -> None:
        if self.history is not None:
            self.history.record_job(snapshot)
        if on_finished:
            on_finished(snapshot)

    def _create_summary(
        self, finished: dict[Path, JobSnapshot], scan_errors: list[str]
    ) -> BatchSummary:
        """创建批量处理结果"""
        jobs = sorted(finished.values(), key=lambda s: str(s.path))
        success = any(job.is_successful() for job in jobs)

        return BatchSummary(
            success=success,
            error=None if success else "所有文件处理都失败",
            jobs=jobs,
            scan_errors=scan_errors,
        )


def format_job_row(snapshot: JobSnapshot) -> str:
    """单个任务的表格行：状态 文件 压缩前 压缩后 节省% 错误"""
    return "\t".join(
        [
            snapshot.status.value,
            MessageFormatter.short_path(snapshot.path),
            BatchSummary.format_size(snapshot.original_size),
            BatchSummary.format_size(snapshot.compressed_size),
            f"{snapshot.saved_percent:.1f}%",
            snapshot.error or "",
        ]
    )
