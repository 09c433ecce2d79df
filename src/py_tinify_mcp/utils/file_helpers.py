"""文件工具模块。

提供图片文件发现和原子化结果放置功能。
"""

import glob
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from ..models.constants import PARTIAL_SUFFIX, is_supported_image
from .cleanup_helpers import remove_quietly
from .logging_helpers import get_logger
from .message_formatter import MessageFormatter
from .naming_helpers import partial_path


logger = get_logger()


@dataclass
class ScanResult:
    """扫描结果：找到的图片和扫描过程中遇到的错误"""

    images: list[Path] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def scan_paths(paths: list[str | Path], recursive: bool = True) -> ScanResult:
    """扫描路径、通配符或目录中的图片

    单个路径的错误（不存在、权限不足、通配符无效）只记录，不会中断整体扫描。

    Args:
        paths: 文件、目录或通配符列表
        recursive: 目录是否递归扫描子目录

    Returns:
        ScanResult: 去重、排序后的绝对路径和错误列表
    """
    found: set[Path] = set()
    result = ScanResult()

    for raw in paths:
        pattern = str(raw)
        try:
            matches = glob.glob(pattern, recursive=True) if glob.has_magic(pattern) else []
        except (ValueError, OSError) as e:
            result.errors.append(MessageFormatter.operation_failed("通配符展开", pattern, e))
            continue

        if not matches:
            if not os.path.exists(pattern):
                result.errors.append(MessageFormatter.file_not_found(pattern))
                continue
            matches = [pattern]

        for match in matches:
            path = Path(match)
            if path.is_dir():
                _collect_directory(path, recursive, found, result.errors)
            elif path.is_file() and is_supported_image(path.name):
                found.add(path.absolute())

    result.images = sorted(found)
    logger.debug(f"扫描完成: {len(result.images)} 张图片, {len(result.errors)} 个错误")
    return result


def _collect_directory(
    directory: Path, recursive: bool, found: set[Path], errors: list[str]
) -> None:
    """收集目录中的图片文件"""

    def on_error(error: OSError) -> None:
        if isinstance(error, PermissionError):
            errors.append(MessageFormatter.permission_error(error.filename, "访问目录"))
        else:
            errors.append(MessageFormatter.operation_failed("访问目录", error.filename, error))

    for root, dirs, files in os.walk(directory, onerror=on_error):
        for name in files:
            if is_supported_image(name):
                found.add(Path(root, name).absolute())
        if not recursive:
            dirs.clear()


def place_atomically(temp_path: Path, destination: Path) -> None:
    """把临时文件原子地放到目标位置

    优先使用 os.replace；失败时（通常是跨设备）先复制到目标同目录的隐藏中间文件，
    再 os.replace 到目标，目标路径任何时候都不会出现写了一半的内容。

    Raises:
        OSError: 复制回退也失败
    """
    destination.parent.mkdir(parents=True, exist_ok=True)

    try:
        os.replace(temp_path, destination)
        return
    except OSError as e:
        logger.debug(f"重命名失败，改用复制: {temp_path} → {destination} ({e})")

    staging = partial_path(destination, PARTIAL_SUFFIX)
    try:
        shutil.copyfile(temp_path, staging)
        shutil.copymode(temp_path, staging)
        os.replace(staging, destination)
    except OSError:
        remove_quietly(staging)
        raise

    # 复制成功后临时文件只是多余副本
    remove_quietly(temp_path)
