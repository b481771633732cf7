# orchestrator.py
"""
业务逻辑编排器
读取历史 -> 统计 (含上一周期对比) -> AI 叙述 -> 渲染 -> 输出 -> 使用统计
- 输入错误 (仓库 / 时间范围) 直接抛出
- AI 与 PDF 属于尽力而为，失败时降级，统计数据总是可交付
"""
import logging
import os
import time
from datetime import datetime
from typing import Callable, List, Optional

from context import RunContext
from errors import (
    DevSumError,
    PrintConversionError,
    RunTimeoutError,
    SynthesisUnavailableError,
)
from models import ChangeSet, NarrativeSections, Report, ReportMetadata, Statistics
from utils import Deadline
from usage_tracker import UsageTracker
from ai_summarizer import SynthesisGateway
from data_sources.base import DataSource
from data_sources.factory import get_data_source
import aggregator
import report_builder

logger = logging.getLogger(__name__)


class ReportOrchestrator:
    """
    负责执行一次报告生成的核心业务逻辑。
    每次运行各自拥有 ChangeSet / Statistics / NarrativeSections。
    """

    def __init__(
        self,
        context: RunContext,
        tracker: Optional[UsageTracker] = None,
        data_source: Optional[DataSource] = None,
        gateway_factory: Callable[..., SynthesisGateway] = SynthesisGateway,
    ):
        self.context = context
        self.global_config = context.global_config
        self.tracker = tracker
        self.data_source = data_source or get_data_source(context)
        self.gateway_factory = gateway_factory
        self.deadline = Deadline(context.timeout)
        self.warnings: List[str] = []
        logger.info("✅ ReportOrchestrator 已初始化")

    # ------------------------------------------------------------------
    # 各阶段
    # ------------------------------------------------------------------

    def _ignore_patterns(self) -> List[str]:
        if self.context.ignore_patterns is not None:
            return list(self.context.ignore_patterns)
        return list(self.global_config.FILTER_FILE_PATTERNS)

    def _compare_with_previous(self, stats: Statistics) -> Statistics:
        """上一周期对比失败只记录 warning，不影响本期统计"""
        prior_window = self.context.window.previous()
        if prior_window is None:
            logger.info("ℹ️ 未指定起始时间，跳过上一周期对比")
            return stats
        try:
            prior_changeset = self.data_source.get_changeset(
                prior_window, self.context.author, self.deadline
            )
        except DevSumError as e:
            # 包括超时: 本期统计已算出，仍然交付
            warning = f"Comparison with the previous period skipped: {e}"
            logger.warning(f"⚠️ {warning}")
            self.warnings.append(warning)
            return stats
        prior_stats = aggregator.compute_statistics(prior_changeset, self._ignore_patterns())
        logger.info(f"🔁 上一周期提交数: {prior_stats.commit_count}")
        return aggregator.with_comparison(stats, prior_stats)

    def _synthesize(self, stats: Statistics, changeset: ChangeSet) -> NarrativeSections:
        if self.context.no_ai:
            logger.info("ℹ️ 已禁用 AI 叙述 (--no-ai)")
            return NarrativeSections.unavailable("disabled")

        try:
            gateway = self.gateway_factory(
                self.context.providers, self.global_config, deadline=self.deadline
            )
            logger.info("🤖 正在生成 AI 叙述...")
            return gateway.synthesize(stats, changeset, self.context.length)
        except SynthesisUnavailableError as e:
            logger.error(f"❌ AI 叙述不可用: {e}")
            for failure in e.failures:
                logger.error(f"   - {failure}")
            self.warnings.append(f"AI narrative unavailable: {e}")
            return NarrativeSections.unavailable(str(e))
        except RunTimeoutError as e:
            logger.error(f"❌ AI 叙述超时: {e}")
            self.warnings.append(f"AI narrative timed out: {e}")
            return NarrativeSections.unavailable(f"timed out: {e}")
        except DevSumError as e:
            logger.error(f"❌ AI 服务初始化失败: {e}")
            self.warnings.append(f"AI narrative unavailable: {e}")
            return NarrativeSections.unavailable(str(e))

    def _metadata(self, changeset: ChangeSet) -> ReportMetadata:
        return ReportMetadata(
            repo_name=os.path.basename(os.path.abspath(self.context.repo_path)),
            branch=changeset.branch,
            period=self.context.window.label,
            author_filter=self.context.author,
            generated_at=datetime.now().astimezone(),
        )

    def _output_path(self, output_format: str) -> str:
        if self.context.output_path:
            return self.context.output_path
        output_dir = self.context.output_dir or self.global_config.DEFAULT_OUTPUT_DIR
        filename = report_builder.default_report_filename(
            output_format, self.context.length, self.global_config
        )
        return os.path.join(output_dir, filename)

    def _render(
        self, stats: Statistics, narrative: NarrativeSections, metadata: ReportMetadata
    ) -> Report:
        output_format = self.context.output_format
        try:
            content = report_builder.render(
                stats,
                narrative,
                output_format,
                self.context.length,
                metadata,
                self.global_config,
            )
        except PrintConversionError as e:
            # 第二阶段失败: 交付第一阶段的 HTML
            logger.warning(f"⚠️ PDF 转换失败，改为输出 HTML: {e}")
            self.warnings.append(f"PDF conversion failed, delivered HTML instead: {e}")
            output_format = "html"
            content = e.html

        return Report(
            output_format=output_format,
            length=self.context.length,
            content=content,
            statistics=stats,
            narrative=narrative,
        )

    def _save(self, report: Report):
        path = self._output_path(report.output_format)
        if path != "-" and report.output_format != self.context.output_format:
            path = report_builder.swap_extension(path, report.output_format)
        report.path = report_builder.save_report(report.content, path)

    # ------------------------------------------------------------------
    # 主流程
    # ------------------------------------------------------------------

    def run(self) -> Report:
        """
        执行核心业务流程，返回最终 Report。
        无论成功与否，结束时发送一条使用统计。
        """
        started = time.monotonic()
        success = False
        report: Optional[Report] = None
        try:
            # --- 0. 验证数据源 ---
            self.data_source.validate()

            # --- 1. 获取 Git 数据 ---
            logger.info(f"📥 正在读取提交历史 ({self.context.window.label})...")
            changeset = self.data_source.get_changeset(
                self.context.window, self.context.author, self.deadline
            )
            self.warnings.extend(changeset.warnings)
            if changeset.is_empty:
                logger.warning("⚠️ 该时间段内没有提交记录，将生成空报告")

            # --- 2. 统计 ---
            stats = aggregator.compute_statistics(changeset, self._ignore_patterns())
            logger.info(
                f"📊 统计完成: {stats.commit_count} 个提交, {stats.file_count} 个文件, "
                f"+{stats.lines_added} -{stats.lines_removed}"
            )

            # --- 3. 上一周期对比 ---
            if self.context.compare:
                stats = self._compare_with_previous(stats)

            # --- 4. AI 叙述 ---
            narrative = self._synthesize(stats, changeset)

            # --- 5. 渲染 ---
            report = self._render(stats, narrative, self._metadata(changeset))
            report.warnings = list(self.warnings)

            # --- 6. 输出 ---
            self._save(report)
            success = True
            return report
        finally:
            self._track(time.monotonic() - started, success, report)

    def _track(self, duration: float, success: bool, report: Optional[Report]):
        if self.tracker is None:
            return
        metadata = {
            "outputFormat": self.context.output_format,
            "length": self.context.length,
            "aiEnabled": not self.context.no_ai,
        }
        if report is not None:
            metadata["commitCount"] = report.statistics.commit_count
            metadata["fileCount"] = report.statistics.file_count
            metadata["provider"] = report.narrative.provider
        self.tracker.track("report", duration, success, metadata)
