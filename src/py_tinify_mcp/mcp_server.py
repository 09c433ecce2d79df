"""TinyPNG 批量压缩 MCP 服务器。

通过 MCP 工具暴露批量压缩、密钥校验和历史查询。
"""

from pathlib import Path
from typing import Any

from fastmcp import FastMCP

from .config import UserSettings
from .core.client import TinifyClient
from .engine.batch import BatchRunner
from .engine.history import HistoryManager
from .exceptions import AccountError, TinifyError
from .models.batch_result import BatchSummary
from .utils.logging_helpers import get_logger, setup_logging
from .utils.message_formatter import MessageFormatter


# MCP 服务器响应类型定义
MCPCompressionResponse = dict[str, Any]
MCPHistoryResponse = dict[str, Any]


class MCPResponseBuilder:
    """MCP 服务器响应构建器，专门用于构建符合 MCP 协议的响应格式。"""

    @staticmethod
    def error(
        message: str,
        error_type: str = "general",
        details: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """构建错误结果。

        Args:
            message: 错误消息
            error_type: 错误类型
            details: 额外的错误详情

        Returns:
            dict: 标准化的错误响应
        """
        result = {
            "success": False,
            "error": message,
            "error_type": error_type,
        }

        if details:
            result["details"] = details

        return result

    @staticmethod
    def validation_error(message: str, field: str | None = None) -> dict[str, Any]:
        """构建验证错误结果。"""
        details = {"field": field} if field else None
        return MCPResponseBuilder.error(
            message=message,
            error_type="validation",
            details=details,
        )

    @staticmethod
    def auth_error(error: AccountError) -> dict[str, Any]:
        """构建密钥/额度错误结果。"""
        return MCPResponseBuilder.error(
            message=str(error),
            error_type="auth",
            details={"status_code": error.status_code, "code": error.error_type},
        )

    @staticmethod
    def processing_error(message: str, operation: str | None = None) -> dict[str, Any]:
        """构建处理错误结果。"""
        details = {"operation": operation} if operation else None
        return MCPResponseBuilder.error(
            message=message,
            error_type="processing",
            details=details,
        )


logger = get_logger()

# 创建MCP应用
mcp: FastMCP[Any] = FastMCP("TinyPNG 批量压缩服务")


def _format_summary(summary: BatchSummary) -> dict[str, Any]:
    """格式化批量结果为MCP响应格式"""
    return {
        "total_files": summary.get_total_count(),
        "successful_files": summary.get_success_count(),
        "failed_files": summary.get_failure_count(),
        "cancelled_files": len(summary.get_cancelled_jobs()),
        "success_rate": summary.get_success_rate(),
        "total_original_size": summary.get_total_original_size(),
        "total_compressed_size": summary.get_total_compressed_size(),
        "total_size_saved": summary.get_total_size_saved(),
        "overall_compression_ratio": summary.get_overall_compression_ratio(),
        "summary": summary.get_summary(),
        "scan_errors": summary.scan_errors,
        "results": [
            {
                "input_path": str(job.path),
                "output_path": str(job.output_path) if job.output_path else None,
                "status": job.status.value,
                "original_size": job.original_size,
                "compressed_size": job.compressed_size,
                "saved_bytes": job.saved_bytes,
                "saved_percent": job.saved_percent,
                "error": job.error,
                "error_kind": job.error_kind.value if job.error_kind else None,
            }
            for job in summary.jobs
        ],
    }


# ============================================================================
# 核心工具
# ============================================================================


@mcp.tool()
def compress_images(
    paths: list[str] | str,
    output_dir: str | None = None,
    suffix: str | None = None,
    recursive: bool = True,
    concurrency: int | None = None,
) -> MCPCompressionResponse:
    """通过 TinyPNG 批量压缩图片

    支持文件、目录和通配符，结果先写临时文件再原子替换，失败时原文件不受影响。

    Args:
        paths: 一个或多个文件、目录或通配符
        output_dir: 输出目录（可选，默认读取用户设置）
        suffix: 文件名后缀（可选，默认读取用户设置；空字符串表示覆盖原文件）
        recursive: 目录处理时是否递归子目录
        concurrency: 并发数 1-4（可选）

    Returns:
        dict: 批量压缩结果
    """
    path_list = [paths] if isinstance(paths, str) else list(paths)
    try:
        settings = UserSettings.load()
        if not settings.is_configured():
            return MCPResponseBuilder.validation_error(
                "未配置 API 密钥，请设置 TINYPNG_API_KEY", "api_key"
            )

        policy = settings.to_output_policy(
            output_dir=Path(output_dir) if output_dir else None, suffix=suffix
        )

        runner = BatchRunner(settings, history=HistoryManager())
        try:
            summary = runner.run(
                path_list,
                recursive=recursive,
                concurrency=concurrency,
                policy=policy,
            )
        finally:
            runner.close()
            runner.history.close()

        return {
            "success": summary.success,
            "result": _format_summary(summary),
            "error": summary.error,
        }

    except (ValueError, TinifyError) as e:
        logger.error(MessageFormatter.operation_failed("批量压缩", path_list, e))
        return MCPResponseBuilder.validation_error(str(e))
    except Exception as e:
        logger.error(MessageFormatter.operation_failed("批量压缩", path_list, e))
        return MCPResponseBuilder.processing_error(
            MessageFormatter.operation_failed("批量压缩", path_list, e), "批量压缩"
        )


@mcp.tool()
def validate_api_key(api_key: str | None = None) -> dict[str, Any]:
    """校验 TinyPNG API 密钥

    压缩一张 1x1 透明图片，密钥无效或额度用尽时返回 auth 错误。

    Args:
        api_key: 要校验的密钥（可选，默认读取用户设置）
    """
    try:
        key = api_key or UserSettings.load().api_key
        if not key:
            return MCPResponseBuilder.validation_error("未配置 API 密钥", "api_key")

        client = TinifyClient(key)
        try:
            client.validate_key()
        finally:
            client.close()
        return {"success": True, "error": None}

    except AccountError as e:
        return MCPResponseBuilder.auth_error(e)
    except TinifyError as e:
        logger.error(MessageFormatter.operation_failed("密钥校验", "api", e))
        return MCPResponseBuilder.processing_error(str(e), "密钥校验")


@mcp.tool()
def get_history(limit: int = 20) -> MCPHistoryResponse:
    """查看最近的压缩历史

    Args:
        limit: 返回的最大记录数（最新的在后）
    """
    try:
        history = HistoryManager()
        try:
            records = history.all()
        finally:
            history.close()
    except TinifyError as e:
        return MCPResponseBuilder.processing_error(str(e), "读取历史")

    selected = records[-limit:] if limit > 0 else records
    return {
        "success": True,
        "total": len(records),
        "records": [record.model_dump(mode="json") for record in selected],
    }


# ============================================================================
# 应用入口
# ============================================================================


def main() -> None:
    """启动 MCP 服务器"""
    setup_logging()
    logger.info("启动 TinyPNG 批量压缩 MCP 服务器")
    mcp.run()


if __name__ == "__main__":
    main()
