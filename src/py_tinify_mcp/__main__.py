"""Entry point for python -m py_tinify_mcp.

不带子命令时启动 MCP 服务器。
"""

import argparse
import sys
from pathlib import Path

from . import get_version
from .config import UserSettings, default_settings_path
from .exceptions import AccountError, TinifyError
from .models.batch_result import BatchSummary
from .models.output_policy import OutputPolicy
from .utils.logging_helpers import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="py-tinify-mcp",
        description="通过 TinyPNG 批量压缩图片",
    )
    parser.add_argument(
        "-v", "--version", action="version", version=f"py-tinify-mcp {get_version()}"
    )
    parser.add_argument("--log-level", help="日志级别（默认读取 TINY_LOG_LEVEL）")
    subparsers = parser.add_subparsers(dest="command")

    compress = subparsers.add_parser("compress", help="压缩文件、目录或通配符")
    compress.add_argument("paths", nargs="*", help="要压缩的路径")
    compress.add_argument("--stdin", action="store_true", help="从标准输入逐行读取路径")
    compress.add_argument("--output-dir", type=Path, help="输出目录")
    compress.add_argument("--suffix", help="文件名后缀，空字符串表示覆盖原文件")
    compress.add_argument("--workers", type=int, help="并发数 1-4")
    compress.add_argument(
        "--no-recursive", action="store_true", help="不递归扫描子目录"
    )

    history = subparsers.add_parser("history", help="查看或导出压缩历史")
    history.add_argument("--csv", type=Path, help="导出为 CSV")
    history.add_argument("--json", type=Path, help="导出为 JSON")

    config = subparsers.add_parser("config", help="管理用户设置")
    config_commands = config.add_subparsers(dest="config_command", required=True)
    set_key = config_commands.add_parser("set-key", help="保存 API 密钥")
    set_key.add_argument("key")
    set_key.add_argument("--no-verify", action="store_true", help="保存前不校验密钥")
    config_commands.add_parser("show", help="显示当前设置")

    subparsers.add_parser("serve", help="启动 MCP 服务器（默认）")
    return parser


def _resolve_policy(args: argparse.Namespace, settings: UserSettings) -> OutputPolicy:
    return settings.to_output_policy(output_dir=args.output_dir, suffix=args.suffix)


def cmd_compress(args: argparse.Namespace) -> int:
    from .engine.batch import BatchRunner, format_job_row
    from .engine.history import HistoryManager

    settings = UserSettings.load()
    if not settings.is_configured():
        print("未配置 API 密钥，请先运行 `config set-key` 或设置 TINYPNG_API_KEY", file=sys.stderr)
        return 1

    paths: list[str | Path] = list(args.paths)
    if args.stdin:
        paths.extend(line.strip() for line in sys.stdin if line.strip())
    if not paths:
        print("没有提供任何路径", file=sys.stderr)
        return 2

    history = HistoryManager()
    runner = BatchRunner(settings, history=history)
    try:
        summary = runner.run(
            paths,
            recursive=not args.no_recursive,
            concurrency=args.workers,
            policy=_resolve_policy(args, settings),
            on_finished=lambda snapshot: print(format_job_row(snapshot), flush=True),
        )
    finally:
        runner.close()
        history.close()

    for error in summary.scan_errors:
        print(error, file=sys.stderr)
    _print_totals(summary)
    return 0 if summary.success else 1


def _print_totals(summary: BatchSummary) -> None:
    print()
    print(f"完成: {summary.get_success_count()}/{summary.get_total_count()}")
    print(f"失败: {summary.get_failure_count()}")
    print(f"取消: {len(summary.get_cancelled_jobs())}")
    print(
        "节省: "
        f"{summary.format_size(summary.get_total_size_saved())} "
        f"({summary.get_overall_compression_ratio():.1f}%)"
    )


def cmd_history(args: argparse.Namespace) -> int:
    from .engine.history import HistoryManager

    history = HistoryManager()
    try:
        if args.csv:
            count = history.export_csv(args.csv)
            print(f"已导出 {count} 条记录到 {args.csv}")
        if args.json:
            count = history.export_json(args.json)
            print(f"已导出 {count} 条记录到 {args.json}")
        if not (args.csv or args.json):
            for r in history.all():
                print(
                    "\t".join(
                        [
                            r.timestamp.isoformat(timespec="seconds"),
                            r.status,
                            r.file,
                            BatchSummary.format_size(r.before_size),
                            BatchSummary.format_size(r.after_size),
                            f"{r.saved_percent:.1f}%",
                        ]
                    )
                )
    finally:
        history.close()
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    settings = UserSettings.load()

    if args.config_command == "show":
        masked = settings.model_copy(
            update={"api_key": _mask_key(settings.api_key)}
        )
        print(f"# {default_settings_path()}")
        print(masked.model_dump_json(indent=2))
        return 0

    if not args.no_verify:
        from .core.client import TinifyClient

        client = TinifyClient(args.key)
        try:
            client.validate_key()
        except AccountError as e:
            print(f"密钥无效: {e}", file=sys.stderr)
            return 1
        finally:
            client.close()

    path = settings.model_copy(update={"api_key": args.key}).save()
    print(f"密钥已保存到 {path}")
    return 0


def _mask_key(key: str) -> str:
    if not key:
        return ""
    return key[:4] + "*" * max(len(key) - 4, 0)


def main(argv: list[str] | None = None) -> int:
    """主入口函数"""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    if args.command in (None, "serve"):
        from .mcp_server import main as server_main

        server_main()
        return 0

    handlers = {
        "compress": cmd_compress,
        "history": cmd_history,
        "config": cmd_config,
    }
    try:
        return handlers[args.command](args)
    except TinifyError as e:
        print(str(e), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
