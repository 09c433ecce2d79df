"""输出策略模型。

定义压缩结果写回磁盘的位置规则。
"""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator


class OutputMode(str, Enum):
    """输出模式枚举"""

    REPLACE = "replace"  # 写回原目录（无后缀时覆盖原文件）
    DIRECTORY = "directory"  # 写入指定输出目录


class OutputPolicy(BaseModel):
    """输出策略

    每个任务在放置结果时读取一次，运行中替换只影响之后处理的任务。
    """

    model_config = ConfigDict(frozen=True)

    mode: OutputMode = Field(OutputMode.REPLACE, description="输出模式")
    output_dir: Path | None = Field(None, description="输出目录")
    suffix: str = Field("", description="插入在扩展名前的文件名后缀")
    preserve_metadata: bool = Field(False, description="保留元数据（仅声明，不执行）")

    @model_validator(mode="after")
    def validate_output_dir(self) -> "OutputPolicy":
        if self.mode == OutputMode.DIRECTORY and self.output_dir is None:
            raise ValueError("目录模式必须指定输出目录")
        if self.mode == OutputMode.REPLACE and self.output_dir is not None:
            raise ValueError("替换模式不能指定输出目录")
        return self

    @property
    def overwrites_original(self) -> bool:
        """是否会直接覆盖原文件"""
        return self.output_dir is None and not self.suffix

    @classmethod
    def in_place(cls) -> "OutputPolicy":
        """原地覆盖"""
        return cls(mode=OutputMode.REPLACE, suffix="")

    @classmethod
    def with_suffix(cls, suffix: str) -> "OutputPolicy":
        """同目录加后缀"""
        return cls(mode=OutputMode.REPLACE, suffix=suffix)

    @classmethod
    def to_directory(cls, output_dir: Path, suffix: str = "") -> "OutputPolicy":
        """写入输出目录"""
        return cls(mode=OutputMode.DIRECTORY, output_dir=output_dir, suffix=suffix)
