"""压缩流水线。

持有任务队列、工作线程池、暂停闸门和原子化结果放置逻辑，
并通过更新流发布任务生命周期事件。
"""

import os
import queue
import shutil
import threading
from collections import deque
from collections.abc import Iterable
from pathlib import Path
from typing import BinaryIO

from ..config import get_config
from ..core.client import CompressedImage, TinifyClient
from ..exceptions import (
    ErrorHandler,
    InvalidTransitionError,
    OperationCancelledError,
    PipelineStateError,
    ValidationError,
)
from ..models.job import JobSnapshot, JobStatus
from ..models.output_policy import OutputPolicy
from ..utils.cleanup_helpers import TempFileManager
from ..utils.file_helpers import place_atomically
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter
from ..utils.naming_helpers import resolve_destination
from .gate import PauseGate
from .job import Job
from .updates import Subscription, UpdateStream


logger = get_logger()


class Pipeline:
    """多工作线程的压缩流水线

    典型用法::

        pipeline = Pipeline(OutputPolicy.with_suffix(".tiny"), api_key="...")
        pipeline.configure(2)
        pipeline.start()
        pipeline.add_files(paths)
        for snapshot in pipeline.updates():
            ...
        pipeline.stop()

    实例不可重启：stop() 之后不能再次 start()。
    """

    def __init__(
        self,
        policy: OutputPolicy | None = None,
        api_key: str | None = None,
        client: TinifyClient | None = None,
        queue_size: int | None = None,
        update_buffer: int | None = None,
        poll_interval: float | None = None,
    ):
        """初始化流水线

        Args:
            policy: 输出策略，默认原地覆盖
            api_key: API 密钥，未提供 client 时必填
            client: 压缩服务客户端
            queue_size: 任务队列容量
            update_buffer: 默认更新订阅的缓冲大小
            poll_interval: 工作线程轮询队列的间隔
        """
        defaults = get_config().pipeline

        # 只关闭自己创建的客户端
        self._owns_client = client is None
        if client is None:
            if not api_key:
                raise ValidationError("必须提供 API 密钥或压缩客户端")
            client = TinifyClient(api_key)
        self.client = client

        self._policy = policy or OutputPolicy.in_place()
        self._policy_lock = threading.Lock()

        self._jobs: list[Job] = []
        self._latest: dict[Path, Job] = {}
        self._jobs_lock = threading.Lock()

        self._queue: queue.Queue[Job] = queue.Queue(maxsize=queue_size or defaults.QUEUE_SIZE)
        self._overflow: deque[Job] = deque()
        self._overflow_lock = threading.Lock()
        self._feeder: threading.Thread | None = None
        self._poll_interval = poll_interval or defaults.POLL_INTERVAL

        self._gate = PauseGate()
        self._cancel = threading.Event()
        self._workers: list[threading.Thread] = []
        self._worker_count = defaults.DEFAULT_WORKERS
        self._state_lock = threading.Lock()
        self._started = False
        self._stopped = False

        self._stream = UpdateStream(update_buffer or defaults.UPDATE_BUFFER)
        # 构造时就订阅，调用方不会错过 start 之前的事件
        self._updates = self._stream.subscribe()

    # ------------------------------------------------------------------
    # 生命周期
    # ------------------------------------------------------------------

    @property
    def worker_count(self) -> int:
        return self._worker_count

    @property
    def is_running(self) -> bool:
        with self._state_lock:
            return self._started and not self._stopped

    def configure(self, concurrency: int) -> int:
        """设置并发数，限制在 [1, 4]，只影响之后 start() 启动的线程

        Returns:
            int: 实际生效的并发数
        """
        self._worker_count = get_config().pipeline.clamp_workers(concurrency)
        if self.is_running:
            logger.debug(f"流水线已启动，并发数 {self._worker_count} 不会调整现有线程")
        return self._worker_count

    def start(self) -> None:
        """启动 worker_count 个常驻工作线程"""
        with self._state_lock:
            if self._stopped:
                raise PipelineStateError("流水线已停止，不能重新启动")
            if self._started:
                raise PipelineStateError("流水线已经启动")
            self._started = True

            for worker_id in range(self._worker_count):
                worker = threading.Thread(
                    target=self._worker,
                    args=(worker_id,),
                    name=f"pipeline-worker-{worker_id}",
                    daemon=True,
                )
                self._workers.append(worker)
                worker.start()

        logger.info(f"流水线启动，工作线程数: {self._worker_count}")

    def stop(self) -> None:
        """发出取消信号，等待所有工作线程退出，然后关闭更新流

        仍在排队的任务被标记为已取消并在关闭前发布。重复调用无副作用。
        """
        with self._state_lock:
            if self._stopped:
                return
            self._stopped = True

        self._cancel.set()
        self._gate.interrupt()

        for worker in self._workers:
            worker.join()
        with self._overflow_lock:
            feeder = self._feeder
        if feeder is not None:
            feeder.join()

        with self._jobs_lock:
            jobs = list(self._jobs)
        cancelled = 0
        for job in jobs:
            snapshot = job.cancel()
            if snapshot is not None:
                cancelled += 1
                self._publish(snapshot)

        self._drain_queue()
        self._stream.close()
        if self._owns_client:
            self.client.close()
        logger.info(f"流水线已停止，取消排队任务 {cancelled} 个")

    def __enter__(self) -> "Pipeline":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # 任务提交与查询
    # ------------------------------------------------------------------

    def add_files(self, paths: Iterable[str | Path]) -> list[JobSnapshot]:
        """为每个路径创建排队任务

        同一路径已有未结束的任务时跳过。入队从不阻塞调用方。

        Returns:
            list[JobSnapshot]: 新建任务的快照

        Raises:
            PipelineStateError: 流水线已停止
        """
        added: list[JobSnapshot] = []

        with self._jobs_lock:
            if self._stopped:
                raise PipelineStateError("流水线已停止，不能再添加任务")

            for raw_path in paths:
                path = Path(raw_path).absolute()
                existing = self._latest.get(path)
                if existing is not None and not existing.is_terminal():
                    logger.debug(f"跳过重复任务: {path}")
                    continue

                try:
                    original_size = path.stat().st_size
                except OSError:
                    original_size = 0

                job = Job(path, original_size)
                self._jobs.append(job)
                self._latest[path] = job

                # 先发布 PENDING，再入队，工作线程的 PROCESSING 不会抢在前面
                snapshot = job.snapshot()
                self._publish(snapshot)
                added.append(snapshot)
                self._enqueue(job)

        logger.debug(f"新增任务 {len(added)} 个")
        return added

    def jobs(self) -> list[JobSnapshot]:
        """所有任务的快照，可在工作线程运行时安全读取"""
        with self._jobs_lock:
            jobs = list(self._jobs)
        return [job.snapshot() for job in jobs]

    def get_job(self, path: str | Path) -> JobSnapshot | None:
        """某路径最近一次任务的快照"""
        with self._jobs_lock:
            job = self._latest.get(Path(path).absolute())
        return job.snapshot() if job is not None else None

    def updates(self) -> Subscription:
        """默认的更新订阅（有损，关闭后迭代结束）"""
        return self._updates

    def subscribe(self, maxsize: int | None = None) -> Subscription:
        """额外的更新订阅，只能收到订阅之后的事件"""
        return self._stream.subscribe(maxsize)

    # ------------------------------------------------------------------
    # 暂停与输出策略
    # ------------------------------------------------------------------

    def pause(self) -> None:
        self._gate.pause()
        logger.info("流水线已暂停")

    def resume(self) -> None:
        self._gate.resume()
        logger.info("流水线已恢复")

    def toggle_pause(self) -> bool:
        paused = self._gate.toggle()
        logger.info("流水线已暂停" if paused else "流水线已恢复")
        return paused

    @property
    def is_paused(self) -> bool:
        return self._gate.paused

    @property
    def output_policy(self) -> OutputPolicy:
        with self._policy_lock:
            return self._policy

    def set_output_policy(self, policy: OutputPolicy) -> None:
        """替换输出策略，只影响之后进入放置步骤的任务"""
        with self._policy_lock:
            self._policy = policy

    # ------------------------------------------------------------------
    # 队列
    # ------------------------------------------------------------------

    def _enqueue(self, job: Job) -> None:
        with self._overflow_lock:
            # 溢出区非空时直接排在后面，保持提交顺序
            if not self._overflow:
                try:
                    self._queue.put_nowait(job)
                    return
                except queue.Full:
                    pass

            self._overflow.append(job)
            if self._feeder is None:
                self._feeder = threading.Thread(
                    target=self._feed_overflow, name="pipeline-feeder", daemon=True
                )
                self._feeder.start()

    def _feed_overflow(self) -> None:
        """把溢出区的任务逐个搬进有界队列"""
        while not self._cancel.is_set():
            with self._overflow_lock:
                if not self._overflow:
                    self._feeder = None
                    return
                job = self._overflow[0]

            try:
                self._queue.put(job, timeout=self._poll_interval)
            except queue.Full:
                continue

            with self._overflow_lock:
                self._overflow.popleft()

    def _drain_queue(self) -> None:
        with self._overflow_lock:
            self._overflow.clear()
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return

    # ------------------------------------------------------------------
    # 工作线程
    # ------------------------------------------------------------------

    def _worker(self, worker_id: int) -> None:
        logger.debug(f"工作线程 {worker_id} 启动")

        while self._gate.wait(self._cancel):
            try:
                job = self._queue.get(timeout=self._poll_interval)
            except queue.Empty:
                continue

            # 取到任务后再过一次闸门，暂停期间不开始新任务
            if not self._gate.wait(self._cancel):
                break

            if job.status == JobStatus.CANCELLED:
                continue

            try:
                self._publish(job.start())
            except InvalidTransitionError as e:
                logger.debug(f"任务无法开始: {e}")
                continue

            self._process(job)

        logger.debug(f"工作线程 {worker_id} 退出")

    def _process(self, job: Job) -> None:
        """处理单个已进入 PROCESSING 的任务，任何错误都只记录到任务上"""
        try:
            original_size, compressed_size, destination = self._compress_and_place(job)
        except Exception as e:
            ErrorHandler.log_job_failure(job.path, e)
            self._publish(job.fail(e))
            return

        snapshot = job.complete(original_size, compressed_size, destination)
        logger.info(
            f"压缩完成 {job.path.name}: "
            + MessageFormatter.size_change(
                snapshot.original_size, snapshot.compressed_size, snapshot.saved_percent
            )
        )
        self._publish(snapshot)

    def _compress_and_place(self, job: Job) -> tuple[int, int, Path]:
        """压缩到临时文件，再原子地放到目标位置

        Returns:
            tuple[int, int, Path]: 原始大小、压缩后大小、目标路径
        """
        with TempFileManager() as temps:
            with open(job.path, "rb") as source:
                fd, temp_path = temps.create()
                with os.fdopen(fd, "wb") as temp_file:
                    original_size, compressed_size = self._download_to(
                        job, source, temp_file
                    )

            # 原地覆盖时保留原文件权限
            shutil.copymode(job.path, temp_path)

            destination = resolve_destination(job.path, self.output_policy)
            place_atomically(temp_path, destination)

        return original_size, compressed_size, destination

    def _download_to(
        self, job: Job, source: BinaryIO, target: BinaryIO
    ) -> tuple[int, int]:
        result: CompressedImage
        with self.client.compress(source, job.path.name, self._cancel) as result:
            written = 0
            for chunk in result.iter_chunks():
                if self._cancel.is_set():
                    raise OperationCancelledError(input_path=job.path)
                target.write(chunk)
                written += len(chunk)

        return result.original_size, result.compressed_size or written

    def _publish(self, snapshot: JobSnapshot) -> None:
        logger.debug(f"任务更新: {snapshot.path} → {snapshot.status.value}")
        self._stream.publish(snapshot)
