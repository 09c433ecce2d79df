"""图像处理相关常量定义。"""

from typing import Final


# 远程服务接受的图片扩展名
SUPPORTED_EXTENSIONS: Final[frozenset[str]] = frozenset({".png", ".jpg", ".jpeg", ".webp"})

# 临时文件命名
TEMP_PREFIX: Final[str] = "tiny-"
TEMP_SUFFIX: Final[str] = ".tmp"
PARTIAL_SUFFIX: Final[str] = ".partial"


def is_supported_image(filename: str) -> bool:
    """按扩展名（不区分大小写）判断是否为支持的图片"""
    dot = filename.rfind(".")
    if dot == -1:
        return False
    return filename[dot:].lower() in SUPPORTED_EXTENSIONS

