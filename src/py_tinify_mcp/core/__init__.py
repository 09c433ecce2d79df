"""核心模块包。

提供远程压缩服务客户端。
"""

from .client import CompressedImage, TinifyClient


__all__ = [
    "CompressedImage",
    "TinifyClient",
]
