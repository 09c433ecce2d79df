"""清理工具模块。

提供临时文件清理和资源管理功能。
"""

import os
import tempfile
from pathlib import Path
from typing import Any

from ..models.constants import TEMP_PREFIX, TEMP_SUFFIX
from .logging_helpers import get_logger


logger = get_logger()


class TempFileManager:
    """临时文件管理器

    退出上下文时删除所有仍然存在的已登记临时文件，
    无论处理在哪一步失败都不会留下孤立的临时文件。
    """

    def __init__(self, directory: Path | None = None):
        self.directory = directory
        self.temp_files: set[Path] = set()

    def create(self) -> tuple[int, Path]:
        """在系统临时目录中创建私有临时文件

        Returns:
            tuple[int, Path]: 已打开的文件描述符和文件路径
        """
        fd, name = tempfile.mkstemp(
            prefix=TEMP_PREFIX, suffix=TEMP_SUFFIX, dir=self.directory
        )
        path = Path(name)
        self.register_temp_file(path)
        return fd, path

    def register_temp_file(self, file_path: Path) -> None:
        """注册临时文件"""
        self.temp_files.add(file_path)

    def cleanup_temp_files(self) -> int:
        """清理所有注册的临时文件"""
        cleaned_count = 0
        for file_path in self.temp_files:
            try:
                if file_path.exists():
                    file_path.unlink()
                    cleaned_count += 1
                    logger.debug(f"已清理临时文件: {file_path}")
            except OSError as e:
                logger.warning(f"清理临时文件失败 {file_path}: {e}")

        self.temp_files.clear()
        return cleaned_count

    def __enter__(self) -> "TempFileManager":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """上下文管理器退出时清理临时文件"""
        del exc_type, exc_val, exc_tb
        self.cleanup_temp_files()


def remove_quietly(path: Path) -> None:
    """尽力删除文件，失败只记录日志"""
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"删除文件失败 {path}: {e}")
