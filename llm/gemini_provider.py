"""
LLMProvider 针对 Google Gemini 的具体实现 (google-genai)。
"""
import logging

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from llm.provider_abc import (
    GenerationParams,
    LLMProvider,
    register_provider,
    status_error,
)
from config import GlobalConfig
from errors import ProviderError, ProviderTransientError
from models import ProviderSpec

logger = logging.getLogger(__name__)


def _to_millis(seconds: float) -> int:
    return max(1, int(seconds * 1000))


@register_provider("gemini")
class GeminiProvider(LLMProvider):
    """
    Gemini 策略实现。
    """

    def __init__(self, spec: ProviderSpec, global_config: GlobalConfig):
        """
        初始化 Gemini 客户端 (genai.Client)
        """
        super().__init__(spec, global_config)
        self.client = genai.Client(
            api_key=self._require_api_key(),
            http_options=types.HttpOptions(
                timeout=_to_millis(global_config.PROVIDER_REQUEST_TIMEOUT)
            ),
        )
        logger.info(f"✅ GeminiProvider (genai.Client 模式) 初始化成功 (模型: {self.model})")

    def _complete(self, prompt: str, params: GenerationParams) -> str:
        config = types.GenerateContentConfig(
            system_instruction=params.system_prompt or None,
            max_output_tokens=params.max_output_tokens,
            temperature=params.temperature,
            http_options=(
                types.HttpOptions(timeout=_to_millis(params.timeout))
                if params.timeout
                else None
            ),
        )
        response = self.client.models.generate_content(
            model=self.model, contents=prompt, config=config
        )
        if not response or not response.text:
            return ""
        return response.text

    def classify_error(self, exc: Exception) -> ProviderError:
        name = self.spec.name
        if isinstance(exc, httpx.TransportError):
            return ProviderTransientError(str(exc), provider=name)
        if isinstance(exc, genai_errors.APIError):
            return status_error(name, exc.code, str(exc))
        return super().classify_error(exc)
