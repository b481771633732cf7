from llm.provider_abc import register_provider
from llm.openai_provider import OpenAIProvider
from config import GlobalConfig


@register_provider("ollama")
class OllamaProvider(OpenAIProvider):
    """
    Ollama 本地大模型策略实现。
    通过 OpenAI 兼容接口连接本地 Ollama 服务。
    """

    default_base_url = GlobalConfig.OLLAMA_BASE_URL

    def _api_key(self) -> str:
        # Ollama 不需要真实 Key，但库要求必填
        return "ollama"
