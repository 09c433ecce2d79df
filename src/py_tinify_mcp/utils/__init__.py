"""工具模块包。

提供纯工具函数，不包含业务逻辑。
"""

# 从清理助手模块导入
from .cleanup_helpers import TempFileManager, remove_quietly

# 从文件助手模块导入
from .file_helpers import ScanResult, place_atomically, scan_paths

# 从日志工具模块导入
from .logging_helpers import get_logger, setup_logging

# 从消息格式化模块导入
from .message_formatter import MessageFormatter

# 从命名助手模块导入
from .naming_helpers import insert_suffix, resolve_destination


__all__ = [
    "MessageFormatter",
    "ScanResult",
    "TempFileManager",
    "get_logger",
    "insert_suffix",
    "place_atomically",
    "remove_quietly",
    "resolve_destination",
    "scan_paths",
    "setup_logging",
]
