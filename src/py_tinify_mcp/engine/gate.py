"""暂停闸门。

工作线程在取下一个任务前经过闸门；暂停只阻止开始新任务，不打断正在处理的任务。
"""

import threading


class PauseGate:
    """基于条件变量的暂停/恢复闸门"""

    def __init__(self):
        self._cond = threading.Condition()
        self._paused = False

    @property
    def paused(self) -> bool:
        with self._cond:
            return self._paused

    def pause(self) -> None:
        with self._cond:
            self._paused = True

    def resume(self) -> None:
        with self._cond:
            self._paused = False
            self._cond.notify_all()

    def toggle(self) -> bool:
        """切换暂停状态，返回切换后是否处于暂停"""
        with self._cond:
            self._paused = not self._paused
            if not self._paused:
                self._cond.notify_all()
            return self._paused

    def wait(self, cancel: threading.Event) -> bool:
        """暂停期间阻塞，直到恢复或收到取消信号

        Returns:
            bool: True 表示可以继续，False 表示已取消
        """
        with self._cond:
            while self._paused and not cancel.is_set():
                self._cond.wait()
            return not cancel.is_set()

    def interrupt(self) -> None:
        """唤醒所有等待者，让它们重新检查取消信号"""
        with self._cond:
            self._cond.notify_all()
