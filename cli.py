# cli.py
"""
命令行界面 (Interface) 层
负责 argparse 定义、配置合并与 RunContext 组装，然后移交给 Orchestrator。
"""
import argparse
import logging
import os
import sys
from typing import List, Optional

import config_manager
import utils
from config import GlobalConfig
from context import RunContext
from errors import (
    ConfigurationError,
    DevSumError,
    InvalidDateRangeError,
    RepositoryNotFoundError,
    RunTimeoutError,
)
from models import LENGTHS
from orchestrator import ReportOrchestrator
from report_builder import FORMATS
from time_window import build_window
from usage_tracker import UsageTracker

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_RUNTIME_ERROR = 2


def setup_parser() -> argparse.ArgumentParser:
    """
    负责所有 argparse 的定义。
    """
    parser = argparse.ArgumentParser(
        prog="devsum",
        description="AI 开发成果报告生成器 (基于 Git 历史)",
        formatter_class=argparse.RawTextHelpFormatter,
    )

    parser.add_argument(
        "-r",
        "--repo-path",
        type=str,
        default=".",
        help="要分析的 Git 仓库路径 (默认: 当前目录)",
    )

    # --- 时间范围 ---
    since_group = parser.add_mutually_exclusive_group()
    since_group.add_argument(
        "-s",
        "--since",
        type=str,
        default=None,
        help="起始时间 (闭区间)。\n"
        "支持: today, yesterday, 7d, 2w, 1m, 1y, YYYY-MM-DD, ISO 时间戳\n"
        "(默认: 全部历史)",
    )
    since_group.add_argument(
        "--today", action="store_true", help="只统计今天的提交 (等价于 --since today)"
    )
    parser.add_argument(
        "-u",
        "--until",
        type=str,
        default=None,
        help="结束时间 (闭区间，格式同 --since)。(默认: 现在)",
    )
    parser.add_argument(
        "-a", "--author", type=str, default=None, help="按作者姓名或邮箱过滤 (不区分大小写)"
    )

    # --- 报告参数 ---
    parser.add_argument(
        "-f",
        "--format",
        dest="output_format",
        choices=FORMATS,
        default="markdown",
        help="输出格式 (默认: markdown)",
    )
    length_group = parser.add_mutually_exclusive_group()
    length_group.add_argument(
        "-l",
        "--length",
        choices=LENGTHS,
        default=None,
        help="报告长度 (默认: detailed)",
    )
    for length in LENGTHS:
        length_group.add_argument(
            f"--{length}",
            dest="length",
            action="store_const",
            const=length,
            help=f"等价于 --length {length}",
        )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help="输出文件路径；'-' 表示写到 stdout。\n(默认: reports/report-<时间戳>[-<长度>].<扩展名>)",
    )

    # --- AI 供应商 ---
    parser.add_argument(
        "-p",
        "--provider",
        type=str,
        default=None,
        help="(覆盖) 优先使用的 AI 供应商 (配置中的名称或类型，如 'gemini', 'claude', 'mock')。\n"
        "其余已配置的供应商仍作为回退。",
    )
    parser.add_argument(
        "--list-providers", action="store_true", help="列出可用的 AI 供应商及其配置状态"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="配置文件路径 (默认: ~/.config/devsum/config.json)",
    )

    # --- 标志 (Flags) ---
    parser.add_argument("--no-ai", action="store_true", help="禁用 AI 叙述，只输出统计")
    parser.add_argument(
        "--no-compare", action="store_true", help="不与上一个等长周期做对比"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="整体运行期限 (秒)。(默认: DEVSUM_TIMEOUT 或 300)",
    )
    parser.add_argument(
        "--no-telemetry", action="store_true", help="不发送匿名使用统计"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="输出调试日志")

    return parser


def list_providers(chain, global_config: GlobalConfig):
    """打印注册的供应商、密钥状态与当前回退链"""
    import ai_summarizer  # noqa: F401  (导入即注册全部供应商)
    from llm.provider_abc import PROVIDER_REGISTRY

    print("Available AI providers:")
    for provider_id in sorted(PROVIDER_REGISTRY):
        status = "configured" if global_config.is_provider_configured(provider_id) else "missing API key"
        model = global_config.DEFAULT_MODELS.get(provider_id, "-")
        print(f"  {provider_id:<10} {model:<28} {status}")

    print("\nFallback chain:")
    if not chain:
        print("  (empty: set an API key or add providers to the config file)")
    for spec in chain:
        model = spec.model or global_config.DEFAULT_MODELS.get(spec.provider, "-")
        print(f"  {spec.priority}. {spec.name} ({spec.provider}, {model})")


def build_context(args: argparse.Namespace, global_config: GlobalConfig) -> RunContext:
    """合并 CLI 参数与配置文件，组装 RunContext"""
    config_path = args.config or global_config.CONFIG_FILE
    config_data = config_manager.load_config(config_path)
    providers = config_manager.load_provider_specs(config_data, global_config)
    providers = config_manager.resolve_provider_chain(providers, args.provider)

    since_arg = "today" if args.today else args.since
    window = build_window(since_arg, args.until)

    repo_path = args.repo_path
    if not repo_path.startswith(("http://", "https://", "git@", "ssh://")):
        repo_path = os.path.abspath(repo_path)

    ignore_patterns = config_data.get("ignore_patterns")
    if ignore_patterns is not None and not isinstance(ignore_patterns, list):
        raise ConfigurationError("'ignore_patterns' must be a list")

    return RunContext(
        repo_path=repo_path,
        window=window,
        author=args.author,
        output_format=args.output_format,
        length=args.length or config_data.get("default_length", "detailed"),
        providers=providers,
        global_config=global_config,
        output_path=args.output,
        output_dir=config_data.get("output_dir"),
        ignore_patterns=ignore_patterns,
        no_ai=args.no_ai,
        compare=not args.no_compare,
        timeout=args.timeout if args.timeout is not None else global_config.DEFAULT_RUN_TIMEOUT,
        since_arg=since_arg,
        until_arg=args.until,
        provider_override=args.provider,
    )


def run_cli(argv: Optional[List[str]] = None) -> int:
    """
    主入口点，返回进程退出码。
    - 0: 成功 (包括 AI / PDF 降级)
    - 1: 输入错误 (仓库、时间范围、配置)
    - 2: 运行错误 (超时、读取失败)
    """
    # 1. 解析 Args
    parser = setup_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # 2. 加载 GlobalConfig
    global_config = GlobalConfig()

    # 3. 组装 RunContext
    try:
        if args.list_providers:
            config_data = config_manager.load_config(args.config or global_config.CONFIG_FILE)
            chain = config_manager.resolve_provider_chain(
                config_manager.load_provider_specs(config_data, global_config), args.provider
            )
            list_providers(chain, global_config)
            return EXIT_OK
        run_context = build_context(args, global_config)
    except (InvalidDateRangeError, ConfigurationError) as e:
        logger.error(f"❌ {e}")
        return EXIT_INPUT_ERROR

    if run_context.length not in LENGTHS:
        logger.error(f"❌ 未知的报告长度: {run_context.length}")
        return EXIT_INPUT_ERROR

    logger.info("=" * 50)
    logger.info("🚀 devsum 启动...")
    logger.info(f"   [目标仓库]: {run_context.repo_path}")
    logger.info(f"   [时间范围]: {run_context.window.label}")
    logger.info(f"   [作者过滤]: {run_context.author or '全部'}")
    logger.info(f"   [输出格式]: {run_context.output_format} ({run_context.length})")
    if run_context.no_ai:
        logger.info("   [AI 供应商]: 已禁用")
    else:
        logger.info(f"   [AI 供应商]: {[s.name for s in run_context.providers] or '未配置'}")
    logger.info("=" * 50)

    tracker = UsageTracker(
        global_config.TELEMETRY_ENDPOINT,
        enabled=global_config.TELEMETRY_ENABLED and not args.no_telemetry,
        timeout=global_config.TELEMETRY_TIMEOUT,
    )

    # 4. 运行 Orchestrator
    try:
        orchestrator = ReportOrchestrator(run_context, tracker=tracker)
        report = orchestrator.run()
    except RepositoryNotFoundError as e:
        logger.error(f"❌ {e}")
        return EXIT_INPUT_ERROR
    except RunTimeoutError as e:
        logger.error(f"❌ 运行超时: {e}")
        return EXIT_RUNTIME_ERROR
    except DevSumError as e:
        logger.error(f"❌ 运行失败: {e}")
        return EXIT_RUNTIME_ERROR
    except OSError as e:
        logger.error(f"❌ 写入报告失败: {e}")
        return EXIT_RUNTIME_ERROR

    for warning in report.warnings:
        logger.warning(f"⚠️ {warning}")
    if report.path:
        logger.info(f"✅ 报告已生成: {report.path}")
    return EXIT_OK


def main():
    """console script 入口"""
    utils.setup_logging()
    sys.exit(run_cli())
