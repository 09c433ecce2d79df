"""任务更新流。

有界、有损的广播通道：缓冲区满时直接丢弃更新，绝不阻塞发布者。
需要完整结果的消费者应以 Pipeline.jobs() 为准。
"""

import queue
import threading
from collections.abc import Iterator

from ..models.job import JobSnapshot
from ..utils.logging_helpers import get_logger


logger = get_logger()

_CLOSED = object()


class UpdateStreamClosed(Exception):
    """更新流已关闭且缓冲区已读空"""


class Subscription:
    """单个订阅者的有界缓冲区"""

    def __init__(self, maxsize: int):
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._closed = False
        self.dropped = 0

    def _offer(self, snapshot: JobSnapshot) -> None:
        try:
            self._queue.put_nowait(snapshot)
        except queue.Full:
            self.dropped += 1
            logger.debug(f"更新缓冲区已满，丢弃: {snapshot.path} ({snapshot.status.value})")

    def _close(self) -> None:
        # 缓冲区满时腾出一个位置给结束标记
        while True:
            try:
                self._queue.put_nowait(_CLOSED)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                    self.dropped += 1
                except queue.Empty:
                    pass

    def get(self, timeout: float | None = None) -> JobSnapshot | None:
        """取下一条更新

        Returns:
            JobSnapshot | None: 超时返回 None

        Raises:
            UpdateStreamClosed: 流已关闭
        """
        if self._closed:
            raise UpdateStreamClosed()
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if item is _CLOSED:
            self._closed = True
            raise UpdateStreamClosed()
        return item

    def __iter__(self) -> Iterator[JobSnapshot]:
        while True:
            try:
                yield self.get()
            except UpdateStreamClosed:
                return


class UpdateStream:
    """向所有订阅者广播任务快照"""

    def __init__(self, default_maxsize: int = 100):
        self._lock = threading.Lock()
        self._subscribers: list[Subscription] = []
        self._closed = False
        self.default_maxsize = default_maxsize

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def subscribe(self, maxsize: int | None = None) -> Subscription:
        """新建订阅；流已关闭时返回一个立即结束的订阅"""
        subscription = Subscription(maxsize or self.default_maxsize)
        with self._lock:
            if self._closed:
                subscription._close()
            else:
                self._subscribers.append(subscription)
        return subscription

    def publish(self, snapshot: JobSnapshot) -> None:
        """非阻塞发布，关闭后忽略"""
        with self._lock:
            if self._closed:
                return
            for subscription in self._subscribers:
                subscription._offer(snapshot)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            for subscription in self._subscribers:
                subscription._close()
