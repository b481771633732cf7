"""
一个模拟的 LLM 供应商
不进行任何 API 调用，用于离线运行与测试。
"""
import logging

from llm.provider_abc import GenerationParams, LLMProvider, register_provider
from config import GlobalConfig
from models import ProviderSpec

logger = logging.getLogger(__name__)


# 使用装饰器注册 ID 为 "mock"
@register_provider("mock")
class MockProvider(LLMProvider):
    """
    模拟的 Provider，仅返回固定格式的文本 (包含全部段落)。
    """

    def __init__(self, spec: ProviderSpec, global_config: GlobalConfig):
        super().__init__(spec, global_config)
        logger.info("✅ MockProvider 已初始化 (无需 API Key)")

    def _complete(self, prompt: str, params: GenerationParams) -> str:
        return (
            "## Summary\n"
            f"[Mock] {params.length} report generated from a {len(prompt)}-character prompt.\n\n"
            "## Highlights\n"
            "- [Mock] Highlights are produced offline\n\n"
            "## Categories\n"
            "- [Mock] Category prose\n\n"
            "## Risks\n"
            "- [Mock] No real analysis was performed\n\n"
            "## Recommendations\n"
            "- [Mock] Configure a real provider"
        )
