"""消息格式化工具模块。

提供统一的错误消息、成功消息格式化功能。
"""

from pathlib import Path

from humanize import naturalsize


class MessageFormatter:
    """统一的消息格式化器"""

    @staticmethod
    def file_not_found(file_path: str | Path) -> str:
        """文件不存在错误消息"""
        return f"文件不存在: {file_path}"

    @staticmethod
    def permission_error(path: str | Path, operation: str = "访问") -> str:
        """权限错误消息"""
        return f"权限错误，无法{operation}: {path}"

    @staticmethod
    def operation_failed(
        operation: str, target: str | Path, error: Exception | None = None
    ) -> str:
        """操作失败消息"""
        msg = f"{operation}失败: {target}"
        if error:
            msg += f" - {error}"
        return msg

    @staticmethod
    def format_error(operation: str, path: str | Path, error: Exception) -> str:
        """格式化通用错误消息"""
        return f"{operation}失败 [{path}]: {error}"

    @staticmethod
    def retrying(stage: str, attempt: int, max_retries: int, delay: float) -> str:
        """重试提示消息"""
        return f"重试{stage} ({attempt}/{max_retries})，等待 {delay:.1f}s"

    @staticmethod
    def size_change(original_size: int, compressed_size: int, percent: float) -> str:
        """压缩前后大小变化"""
        return (
            f"{naturalsize(original_size, binary=True)} → "
            f"{naturalsize(compressed_size, binary=True)} ({percent:.1f}% 节省)"
        )

    @staticmethod
    def short_path(path: str | Path, width: int = 30) -> str:
        """截断过长的路径，仅保留末尾部分"""
        text = str(path)
        if len(text) > width:
            return "..." + text[-(width - 3) :]
        return text

