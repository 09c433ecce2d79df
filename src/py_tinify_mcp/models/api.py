"""远程压缩接口的响应模型。"""

from pydantic import BaseModel, ConfigDict, Field


class ShrinkInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    size: int = 0
    type: str = ""


class ShrinkOutput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    size: int = 0
    type: str = ""
    width: int = 0
    height: int = 0
    ratio: float = 0.0
    url: str = ""


class ShrinkResponse(BaseModel):
    """shrink 接口 2xx 响应"""

    model_config = ConfigDict(extra="ignore")

    input: ShrinkInput = Field(default_factory=ShrinkInput)
    output: ShrinkOutput = Field(default_factory=ShrinkOutput)


class ApiErrorBody(BaseModel):
    """错误响应体 {"error": ..., "message": ...}"""

    model_config = ConfigDict(extra="ignore")

    error: str = ""
    message: str = ""
