"""统一配置管理模块。

提供应用程序的全局配置管理，包括默认值、环境变量支持，以及持久化的用户设置。
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    model_validator,
)

from .exceptions import ValidationError
from .models.output_policy import OutputMode, OutputPolicy


APP_DIR_NAME = "tinytui"
CONFIG_FILE_NAME = "config.json"
ENV_API_KEY = "TINYPNG_API_KEY"


@dataclass(frozen=True)
class ServiceDefaults:
    """远程压缩服务相关的默认配置"""

    API_URL: str = "https://api.tinify.com/shrink"

    # 重试设置，第 n 次重试前等待 BASE_DELAY * 2**(n-1) 秒
    MAX_RETRIES: int = 2
    BASE_DELAY: float = 1.0

    # 单次请求超时（秒）
    REQUEST_TIMEOUT: float = 60.0

    # 下载结果时的分块大小
    DOWNLOAD_CHUNK_SIZE: int = 64 * 1024


@dataclass(frozen=True)
class PipelineDefaults:
    """处理流水线相关的默认配置"""

    # 队列设置
    QUEUE_SIZE: int = 1000
    UPDATE_BUFFER: int = 100

    # 并发设置
    DEFAULT_WORKERS: int = 2
    MIN_WORKERS: int = 1
    MAX_WORKERS: int = 4

    # 工作线程轮询队列和取消信号的间隔（秒）
    POLL_INTERVAL: float = 0.1

    def clamp_workers(self, count: int) -> int:
        """把并发数限制在允许范围内"""
        return max(self.MIN_WORKERS, min(self.MAX_WORKERS, count))


@dataclass(frozen=True)
class LoggingDefaults:
    """日志相关的默认配置"""

    # 日志级别
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # 文件日志
    ENABLE_FILE_LOGGING: bool = False
    LOG_FILE_PATH: str = "py_tinify_mcp.log"
    LOG_FILE_MAX_SIZE: int = 10 * 1024 * 1024  # 10MB
    LOG_FILE_BACKUP_COUNT: int = 5


class AppConfig:
    """应用程序配置管理器

    支持环境变量覆盖默认配置
    """

    def __init__(self):
        self.service = ServiceDefaults()
        self.pipeline = PipelineDefaults()
        self.logging = LoggingDefaults()

        # 从环境变量加载配置
        self._load_from_env()

    def _load_from_env(self):
        """从环境变量加载配置"""
        # 服务配置
        if max_retries := os.getenv("TINY_MAX_RETRIES"):
            object.__setattr__(self.service, "MAX_RETRIES", int(max_retries))

        if timeout := os.getenv("TINY_REQUEST_TIMEOUT"):
            object.__setattr__(self.service, "REQUEST_TIMEOUT", float(timeout))

        # 流水线配置
        if workers := os.getenv("TINY_WORKERS"):
            object.__setattr__(
                self.pipeline,
                "DEFAULT_WORKERS",
                self.pipeline.clamp_workers(int(workers)),
            )

        # 日志配置
        if log_level := os.getenv("TINY_LOG_LEVEL"):
            object.__setattr__(self.logging, "LOG_LEVEL", log_level.upper())

        if enable_file_log := os.getenv("TINY_ENABLE_FILE_LOGGING"):
            object.__setattr__(
                self.logging,
                "ENABLE_FILE_LOGGING",
                enable_file_log.lower() in ("true", "1", "yes"),
            )


# 全局配置实例
config = AppConfig()


def get_config() -> AppConfig:
    """获取全局配置实例"""
    return config


def reset_config():
    """重置配置（主要用于测试）"""
    global config
    config = AppConfig()


def user_config_dir() -> Path:
    """用户配置目录，遵循 XDG_CONFIG_HOME"""
    base = os.getenv("XDG_CONFIG_HOME")
    return Path(base) if base else Path.home() / ".config"


def user_state_dir() -> Path:
    """用户状态目录，遵循 XDG_STATE_HOME"""
    base = os.getenv("XDG_STATE_HOME")
    return Path(base) if base else Path.home() / ".local" / "state"


def default_settings_path() -> Path:
    return user_config_dir() / APP_DIR_NAME / CONFIG_FILE_NAME


class UserSettings(BaseModel):
    """持久化的用户设置

    保存在 ~/.config/tinytui/config.json，环境变量 TINYPNG_API_KEY 优先于文件中的密钥。
    """

    model_config = ConfigDict(populate_by_name=True)

    api_key: str = Field("", description="TinyPNG API 密钥")
    output_mode: OutputMode = Field(OutputMode.REPLACE, description="输出模式")
    output_dir: Path | None = Field(None, description="输出目录")
    suffix: str = Field(".tiny", description="文件名后缀")
    preserve_metadata: bool = Field(
        False, alias="metadata", description="保留元数据（暂未实现）"
    )
    concurrency: int = Field(
        PipelineDefaults.DEFAULT_WORKERS,
        ge=PipelineDefaults.MIN_WORKERS,
        le=PipelineDefaults.MAX_WORKERS,
        description="并发数",
    )

    @model_validator(mode="after")
    def validate_output_dir(self) -> "UserSettings":
        if self.output_mode == OutputMode.DIRECTORY and self.output_dir is None:
            raise ValueError("目录模式必须指定输出目录")
        return self

    @classmethod
    def load(cls, path: Path | None = None) -> "UserSettings":
        """读取用户设置

        文件不存在时返回默认设置（附带环境变量中的密钥），不会写盘。

        Raises:
            ValidationError: 文件内容无法解析
        """
        path = path or default_settings_path()
        data: dict[str, Any] = {}

        if path.exists():
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as e:
                raise ValidationError(f"配置文件格式错误: {e}", input_path=path) from e

        if env_key := os.getenv(ENV_API_KEY):
            data["api_key"] = env_key

        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"配置文件内容无效: {e}", input_path=path) from e

    def save(self, path: Path | None = None) -> Path:
        """以严格权限写入设置文件"""
        path = path or default_settings_path()
        path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(self.model_dump_json(indent=2, by_alias=True))
        os.chmod(path, 0o600)
        return path

    def is_configured(self) -> bool:
        """是否已设置 API 密钥"""
        return bool(self.api_key)

    def to_output_policy(
        self, output_dir: Path | None = None, suffix: str | None = None
    ) -> OutputPolicy:
        """转换为流水线使用的输出策略

        Args:
            output_dir: 覆盖设置中的输出目录，提供时总是使用目录模式
            suffix: 覆盖设置中的后缀，None 表示沿用设置
        """
        suffix = self.suffix if suffix is None else suffix
        if output_dir is None and self.output_mode == OutputMode.DIRECTORY:
            output_dir = self.output_dir
        return OutputPolicy(
            mode=OutputMode.DIRECTORY if output_dir is not None else OutputMode.REPLACE,
            output_dir=output_dir,
            suffix=suffix,
            preserve_metadata=self.preserve_metadata,
        )
