"""
LLMProvider 针对 Anthropic Claude 的具体实现。
"""
import logging

import anthropic

from llm.provider_abc import (
    GenerationParams,
    LLMProvider,
    parse_retry_after,
    register_provider,
    status_error,
)
from config import GlobalConfig
from errors import ProviderError, ProviderTransientError
from models import ProviderSpec

logger = logging.getLogger(__name__)


@register_provider("claude")
class ClaudeProvider(LLMProvider):
    """
    Claude Messages API 策略实现。
    """

    def __init__(self, spec: ProviderSpec, global_config: GlobalConfig):
        super().__init__(spec, global_config)
        self.client = anthropic.Anthropic(
            api_key=self._require_api_key(),
            base_url=spec.base_url,
            max_retries=0,
        )
        logger.info(f"✅ ClaudeProvider 初始化成功 (模型: {self.model})")

    def _complete(self, prompt: str, params: GenerationParams) -> str:
        kwargs = {
            "model": self.model,
            "max_tokens": params.max_output_tokens,
            "temperature": params.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if params.system_prompt:
            kwargs["system"] = params.system_prompt
        if params.timeout:
            kwargs["timeout"] = params.timeout
        response = self.client.messages.create(**kwargs)

        # 只取文本块
        return "\n".join(
            block.text for block in response.content if block.type == "text"
        ).strip()

    def classify_error(self, exc: Exception) -> ProviderError:
        name = self.spec.name
        if isinstance(exc, anthropic.APIConnectionError):
            return ProviderTransientError(str(exc), provider=name)
        if isinstance(exc, anthropic.APIStatusError):
            return status_error(
                name,
                exc.status_code,
                str(exc),
                parse_retry_after(getattr(exc.response, "headers", None)),
            )
        return super().classify_error(exc)
