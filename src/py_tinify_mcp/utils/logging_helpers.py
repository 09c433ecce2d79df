"""日志工具模块。

提供统一的日志记录功能，标准化日志格式和配置。
"""

import inspect
import logging
from logging.handlers import RotatingFileHandler


ROOT_LOGGER_NAME = "py_tinify_mcp"


def get_logger(name: str | None = None) -> logging.Logger:
    """获取标准化配置的日志记录器。

    Args:
        name: 日志记录器名称，默认使用调用模块的 __name__

    Returns:
        logging.Logger: 配置好的日志记录器
    """
    if name is None:
        # 获取调用者的模块名
        frame = inspect.currentframe()
        if frame and frame.f_back:
            name = frame.f_back.f_globals.get("__name__", "unknown")
        else:
            name = "unknown"

    return logging.getLogger(name)


def setup_logging(
    level: str | None = None,
    log_file: str | None = None,
) -> logging.Logger:
    """按照全局配置初始化包日志

    Args:
        level: 日志级别，默认读取 LoggingDefaults.LOG_LEVEL
        log_file: 日志文件路径，启用文件日志时默认读取 LoggingDefaults.LOG_FILE_PATH

    Returns:
        logging.Logger: 包级别的根日志记录器
    """
    from ..config import get_config

    settings = get_config().logging
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO))

    # 重复调用时替换已有处理器
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(settings.LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file or settings.ENABLE_FILE_LOGGING:
        file_handler = RotatingFileHandler(
            log_file or settings.LOG_FILE_PATH,
            maxBytes=settings.LOG_FILE_MAX_SIZE,
            backupCount=settings.LOG_FILE_BACKUP_COUNT,
            encoding="utf-8",
            delay=True,
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    return root
