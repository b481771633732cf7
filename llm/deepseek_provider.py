"""
LLMProvider 针对 DeepSeek 的具体实现。
DeepSeek 提供 OpenAI 兼容接口，直接复用 OpenAIProvider。
"""
from llm.provider_abc import register_provider
from llm.openai_provider import OpenAIProvider
from config import GlobalConfig


@register_provider("deepseek")
class DeepSeekProvider(OpenAIProvider):
    """
    DeepSeek 策略实现 (OpenAI 兼容)。
    """

    default_base_url = GlobalConfig.DEEPSEEK_BASE_URL
