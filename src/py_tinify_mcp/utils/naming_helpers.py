"""文件命名工具模块。

根据输出策略计算压缩结果的最终落盘路径。
"""

from pathlib import Path

from ..models.output_policy import OutputPolicy


def insert_suffix(path: Path, suffix: str) -> Path:
    """在扩展名前插入后缀

    >>> insert_suffix(Path("a/photo.png"), ".tiny")
    PosixPath('a/photo.tiny.png')
    """
    if not suffix:
        return path
    return path.with_name(f"{path.stem}{suffix}{path.suffix}")


def resolve_destination(source: Path, policy: OutputPolicy) -> Path:
    """解析最终目标路径

    - 配置了输出目录: 输出目录/<文件名（带后缀）>
    - 同目录且有后缀: 原路径插入后缀（不破坏原文件）
    - 同目录且无后缀: 原路径本身（原地覆盖）

    Args:
        source: 源文件路径
        policy: 输出策略

    Returns:
        Path: 目标路径
    """
    if policy.output_dir is not None:
        return policy.output_dir / insert_suffix(Path(source.name), policy.suffix)

    return insert_suffix(source, policy.suffix)


def partial_path(destination: Path, marker: str) -> Path:
    """目标同目录下的隐藏中间文件，用于跨设备复制"""
    return destination.with_name(f".{destination.name}{marker}")
