"""
AI 综合网关 (Synthesis Gateway)
- 按优先级顺序依次尝试回退链中的供应商 (串行，不并发)
- 单个供应商内: 仅对 transient 错误做指数退避重试，permanent 错误直接切换
- 重试不会越过整体运行期限 (deadline)
- 全部失败时抛出 SynthesisUnavailableError，由调用方降级为纯统计报告
"""
import logging
import os
import random
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Sequence

from config import GlobalConfig
from errors import (
    ConfigurationError,
    ProviderError,
    ProviderPermanentError,
    ProviderTransientError,
    RunTimeoutError,
    SynthesisUnavailableError,
)
from models import ChangeSet, NarrativeSections, ProviderSpec, Statistics
from utils import Deadline
import aggregator

# 供应商集合是封闭的: 显式导入即完成注册
from llm.provider_abc import PROVIDER_REGISTRY, GenerationParams, LLMProvider
from llm import claude_provider  # noqa: F401
from llm import deepseek_provider  # noqa: F401
from llm import gemini_provider  # noqa: F401
from llm import mock_provider  # noqa: F401
from llm import ollama_provider  # noqa: F401
from llm import openai_provider  # noqa: F401

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LengthProfile:
    max_commits: int
    max_output_tokens: int
    instructions: str


LENGTH_PROFILES: Dict[str, LengthProfile] = {
    "light": LengthProfile(
        max_commits=30,
        max_output_tokens=600,
        instructions=(
            "Generate a LIGHT report: a very brief summary (1-2 sentences) naming the "
            "most important outcomes. Keep it concise and executive-friendly."
        ),
    ),
    "short": LengthProfile(
        max_commits=60,
        max_output_tokens=1200,
        instructions=(
            "Generate a SHORT report: a concise summary (2-3 sentences), 5-8 "
            "highlights and one short paragraph per active change category. "
            "Suitable for a daily or weekly update."
        ),
    ),
    "detailed": LengthProfile(
        max_commits=150,
        max_output_tokens=3000,
        instructions=(
            "Generate a DETAILED report: a comprehensive summary (3-5 sentences), "
            "8-15 highlights, prose for every active change category, the risks "
            "you can see in the changes and recommendations for future work."
        ),
    ),
}

REQUIRED_SECTIONS: Dict[str, tuple] = {
    "light": ("summary",),
    "short": ("summary", "highlights", "categories"),
    "detailed": ("summary", "highlights", "categories", "risks"),
}

SECTION_TITLES: Dict[str, str] = {
    "summary": "Summary",
    "highlights": "Highlights",
    "categories": "Categories",
    "risks": "Risks",
    "recommendations": "Recommendations",
}


def load_prompt_templates(prompt_dir: str) -> Dict[str, str]:
    """辅助函数：递归加载所有 .txt 模板 (key 为相对路径，不含扩展名)"""
    prompts = {}
    for root, _, files in os.walk(prompt_dir):
        for filename in files:
            if filename.endswith(".txt"):
                file_path = os.path.join(root, filename)
                relative_path = os.path.relpath(file_path, prompt_dir)
                key = os.path.splitext(relative_path)[0].replace(os.path.sep, "/")
                with open(file_path, "r", encoding="utf-8") as f:
                    prompts[key] = f.read()
    if not prompts:
        logger.warning(f"⚠️ 在 {prompt_dir} 及其子目录中未找到 .txt 提示词。")
    return prompts


def _format_stats_block(stats: Statistics) -> str:
    lines = [
        f"- Commits: {stats.commit_count}",
        f"- Authors: {stats.author_count}",
        f"- Files changed: {stats.file_count}",
        f"- Lines: +{stats.lines_added} -{stats.lines_removed}",
        "- Categories: "
        + ", ".join(f"{name}={count}" for name, count in stats.categories.items() if count),
    ]
    if stats.most_active_area:
        areas = list(stats.directories.items())[:5]
        lines.append(
            "- Most active areas: " + ", ".join(f"{a} ({n})" for a, n in areas)
        )
    if stats.deltas:
        parts = []
        for metric, delta in stats.deltas.items():
            change = delta.change if delta.is_new_activity else f"{delta.change:+.1f}%"
            parts.append(f"{metric} {change}")
        lines.append("- Versus previous period: " + ", ".join(parts))
    return "\n".join(lines)


def _format_commit_block(changeset: ChangeSet, max_commits: int) -> str:
    if changeset.is_empty:
        return "(no commits in this period)"
    lines = []
    for commit in changeset.commits[:max_commits]:
        files = commit.file_paths
        file_part = ", ".join(files[:3]) + ("..." if len(files) > 3 else "")
        lines.append(
            f"- {commit.timestamp.date().isoformat()} | "
            f"{aggregator.categorize(commit.message)} | {commit.message} | Files: {file_part}"
        )
    hidden = len(changeset) - max_commits
    if hidden > 0:
        lines.append(f"- ... and {hidden} more commits")
    return "\n".join(lines)


def build_prompt(
    template: str, stats: Statistics, changeset: ChangeSet, length: str
) -> str:
    """由共享模板构建与供应商无关的提示词"""
    profile = LENGTH_PROFILES[length]
    section_names = list(REQUIRED_SECTIONS[length])
    if length == "detailed":
        section_names.append("recommendations")
    return template.format(
        length_instructions=profile.instructions,
        stats_block=_format_stats_block(stats),
        commit_block=_format_commit_block(changeset, profile.max_commits),
        section_block="\n".join(f"## {SECTION_TITLES[s]}" for s in section_names),
    )


def get_llm_provider(spec: ProviderSpec, global_config: GlobalConfig) -> LLMProvider:
    """
    工厂函数：基于 Registry Pattern 实现。
    从 PROVIDER_REGISTRY 查找，不使用 if/elif。
    """
    logger.info(f"ℹ️ 正在初始化 LLM 供应商: {spec.name} ({spec.provider})")
    if spec.provider not in PROVIDER_REGISTRY:
        logger.error(f"❌ 未知的 LLM 供应商: '{spec.provider}'")
        logger.error(f"   可用供应商: {sorted(PROVIDER_REGISTRY)}")
        raise ProviderPermanentError(
            f"Unknown provider type: {spec.provider}", provider=spec.name
        )
    provider_class = PROVIDER_REGISTRY[spec.provider]
    return provider_class(spec, global_config)


class SynthesisGateway:
    """
    封装所有对 LLM 的调用。
    每次报告运行各自构造一个实例，实例之间不共享可变状态。
    """

    def __init__(
        self,
        providers: Sequence[ProviderSpec],
        global_config: GlobalConfig,
        deadline: Optional[Deadline] = None,
        provider_factory: Callable[[ProviderSpec, GlobalConfig], LLMProvider] = get_llm_provider,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.global_config = global_config
        # sorted 是稳定排序: 同优先级保持配置顺序
        self.providers: List[ProviderSpec] = sorted(providers, key=lambda s: s.priority)
        self.deadline = deadline or Deadline(None)
        self._provider_factory = provider_factory
        self._sleep = sleep
        self._random = random.Random()
        self.max_attempts = global_config.RETRY_MAX_ATTEMPTS
        self.base_delay = global_config.RETRY_BASE_DELAY

        prompt_dir = os.path.join(global_config.SCRIPT_BASE_PATH, global_config.PROMPTS_DIR_NAME)
        self.prompts = load_prompt_templates(prompt_dir)
        if "report" not in self.prompts:
            raise ConfigurationError(f"Prompt template 'report.txt' not found in {prompt_dir}")

    def build_params(self, length: str) -> GenerationParams:
        """报告长度只影响生成参数，不影响供应商选择"""
        profile = LENGTH_PROFILES[length]
        return GenerationParams(
            length=length,
            max_output_tokens=profile.max_output_tokens,
            system_prompt=self.prompts.get("system", "").strip(),
        )

    def _compute_delay(self, attempt: int, error: ProviderError) -> float:
        backoff = self.base_delay * (2 ** (attempt - 1))
        delay = backoff + self._random.uniform(0, backoff * 0.25)
        if error.retry_after is not None:
            delay = max(delay, error.retry_after)
        return delay

    def _call_timeout(self) -> float:
        return self.deadline.bound(self.global_config.PROVIDER_REQUEST_TIMEOUT)

    def _attempt_provider(
        self,
        provider: LLMProvider,
        spec: ProviderSpec,
        prompt: str,
        params: GenerationParams,
        required: Sequence[str],
    ) -> Dict[str, str]:
        attempt = 1
        while True:
            self.deadline.check(f"calling provider '{spec.name}'")
            try:
                sections = provider.generate(prompt, replace(params, timeout=self._call_timeout()))
            except ProviderTransientError as e:
                if attempt >= self.max_attempts:
                    logger.warning(f"⚠️ [{spec.name}] 重试 {attempt} 次后仍失败: {e}")
                    raise
                delay = self._compute_delay(attempt, e)
                remaining = self.deadline.remaining()
                if remaining is not None and delay >= remaining:
                    raise RunTimeoutError(
                        f"Retrying provider '{spec.name}' in {delay:.1f}s would exceed the run deadline"
                    ) from e
                logger.warning(
                    f"⚠️ [{spec.name}] 第 {attempt} 次调用失败 ({e})，{delay:.1f}s 后重试"
                )
                self._sleep(delay)
                attempt += 1
                continue

            missing = [name for name in required if not sections.get(name)]
            if missing:
                raise ProviderPermanentError(
                    f"Response is missing required sections: {', '.join(missing)}",
                    provider=spec.name,
                )
            return sections

    def synthesize(
        self, stats: Statistics, changeset: ChangeSet, length: str
    ) -> NarrativeSections:
        """
        生成叙述段落。
        - 全部供应商失败 -> SynthesisUnavailableError
        - 超过运行期限 -> RunTimeoutError
        """
        if length not in LENGTH_PROFILES:
            raise ValueError(f"Unknown report length: {length}")
        if not self.providers:
            raise SynthesisUnavailableError("No AI providers configured")

        prompt = build_prompt(self.prompts["report"], stats, changeset, length)
        params = self.build_params(length)
        required = REQUIRED_SECTIONS[length]
        failures: List[str] = []

        for spec in self.providers:
            self.deadline.check("synthesis")
            try:
                provider = self._provider_factory(spec, self.global_config)
            except ProviderError as e:
                logger.error(f"❌ 供应商 '{spec.name}' 初始化失败: {e}")
                failures.append(f"{spec.name}: {e}")
                continue
            except Exception as e:
                logger.error(f"❌ 实例化供应商 '{spec.name}' 失败: {e}", exc_info=True)
                failures.append(f"{spec.name}: {e}")
                continue

            try:
                sections = self._attempt_provider(provider, spec, prompt, params, required)
            except ProviderError as e:
                logger.error(f"❌ 供应商 '{spec.name}' 失败，切换到下一个: {e}")
                failures.append(f"{spec.name}: {e}")
                continue

            logger.info(f"✅ 🤖 叙述生成成功 (Provider: {spec.name})")
            return NarrativeSections(
                sections=sections,
                available=True,
                provider=spec.name,
                model=provider.model,
            )

        raise SynthesisUnavailableError(
            f"All {len(self.providers)} AI providers failed", failures=failures
        )
