"""
LLMProvider 针对 OpenAI 的具体实现。
DeepSeek 与 Ollama 都提供 OpenAI 兼容接口，复用本类。
"""
import logging

import openai
from openai import OpenAI

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


@register_provider("openai")
class OpenAIProvider(LLMProvider):
    """
    OpenAI Chat Completions 策略实现。
    """

    default_base_url = None

    def __init__(self, spec: ProviderSpec, global_config: GlobalConfig):
        super().__init__(spec, global_config)
        # 重试由网关统一控制，SDK 自带重试关闭
        self.client = OpenAI(
            api_key=self._api_key(),
            base_url=spec.base_url or self.default_base_url,
            max_retries=0,
        )
        logger.info(f"✅ {self.__class__.__name__} 初始化成功 (模型: {self.model})")

    def _api_key(self) -> str:
        return self._require_api_key()

    def _complete(self, prompt: str, params: GenerationParams) -> str:
        messages = [
            {"role": "system", "content": params.system_prompt},
            {"role": "user", "content": prompt},
        ]
        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=params.max_output_tokens,
            temperature=params.temperature,
            timeout=params.timeout,
        )
        if response.choices and response.choices[0].message.content:
            return response.choices[0].message.content.strip()
        return ""

    def classify_error(self, exc: Exception) -> ProviderError:
        name = self.spec.name
        # APITimeoutError 是 APIConnectionError 的子类
        if isinstance(exc, openai.APIConnectionError):
            return ProviderTransientError(str(exc), provider=name)
        if isinstance(exc, openai.APIStatusError):
            return status_error(
                name,
                exc.status_code,
                str(exc),
                parse_retry_after(getattr(exc.response, "headers", None)),
            )
        return super().classify_error(exc)
