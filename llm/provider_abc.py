"""
所有 LLM 供应商的抽象基类 (ABC)。
- 统一能力接口: generate(prompt, params) -> 段落字典
- 注册表: 供应商 id -> 实现类，由配置选择，不做运行时类型探测
- 各 SDK 的异常在这里被归类为 transient / permanent
"""
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Type

from config import GlobalConfig
from errors import ProviderError, ProviderPermanentError, ProviderTransientError
from models import ProviderSpec

logger = logging.getLogger(__name__)

# --- 注册表机制 START ---
# 全局注册表，存储 "provider_id" -> Provider Class 的映射
PROVIDER_REGISTRY: Dict[str, Type["LLMProvider"]] = {}


def register_provider(provider_id: str):
    """
    类装饰器：用于将具体的 Provider 实现类注册到全局注册表中。

    使用示例:
        @register_provider("gemini")
        class GeminiProvider(LLMProvider):
            ...
    """

    def decorator(cls):
        if provider_id in PROVIDER_REGISTRY:
            raise ValueError(
                f"Provider id '{provider_id}' already registered ({PROVIDER_REGISTRY[provider_id].__name__})"
            )
        cls.provider_id = provider_id
        PROVIDER_REGISTRY[provider_id] = cls
        return cls

    return decorator


# --- 注册表机制 END ---


@dataclass(frozen=True)
class GenerationParams:
    """由报告长度决定的生成参数"""

    length: str
    max_output_tokens: int
    temperature: float = 0.4
    timeout: Optional[float] = None
    system_prompt: str = ""


SECTION_NAMES = ("summary", "highlights", "categories", "risks", "recommendations")

_HEADING_RE = re.compile(
    r"^\s*(?:#{1,6}\s*)?(?:\*\*)?\s*(?P<name>"
    + "|".join(SECTION_NAMES)
    + r")\s*(?:\*\*)?\s*:?\s*(?:\*\*)?\s*$",
    re.IGNORECASE,
)
_FENCE_START_RE = re.compile(r"^```(markdown|md)?\s*\n", re.IGNORECASE)


def strip_code_fence(text: str) -> str:
    """去除 LLM 可能输出的 markdown 代码块包裹标记 (```markdown ... ```)"""
    cleaned = text.strip()
    if _FENCE_START_RE.match(cleaned):
        cleaned = _FENCE_START_RE.sub("", cleaned, count=1)
        if cleaned.endswith("```"):
            cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_sections(text: str) -> Dict[str, str]:
    """
    按段落标题 (## Summary / **Highlights:** 等) 切分回复。
    标题之前的内容与空段落被丢弃。
    """
    sections: Dict[str, str] = {}
    current: Optional[str] = None
    buffer = []
    for line in strip_code_fence(text).splitlines():
        match = _HEADING_RE.match(line)
        if match:
            if current and "\n".join(buffer).strip():
                sections[current] = "\n".join(buffer).strip()
            current = match.group("name").lower()
            buffer = []
            continue
        if current:
            buffer.append(line)
    if current and "\n".join(buffer).strip():
        sections[current] = "\n".join(buffer).strip()
    return sections


class LLMProvider(ABC):
    """
    LLM 供应商的抽象接口。
    子类只需实现 _complete()；异常归类可通过 classify_error() 扩展。
    """

    provider_id: str = ""

    def __init__(self, spec: ProviderSpec, global_config: GlobalConfig):
        self.spec = spec
        self.global_config = global_config
        self.model = spec.model or global_config.DEFAULT_MODELS.get(spec.provider, "")

    def _require_api_key(self) -> str:
        api_key = self.global_config.resolve_api_key(self.spec.provider, self.spec.api_key_env)
        if not api_key:
            env_name = self.spec.api_key_env or self.global_config.API_KEY_ENV.get(
                self.spec.provider, "?"
            )
            logger.error(f"❌ {env_name} 未设置。请检查您的 .env 文件。")
            raise ProviderPermanentError(
                f"{env_name} is not set for provider '{self.spec.name}'",
                provider=self.spec.name,
            )
        return api_key

    @abstractmethod
    def _complete(self, prompt: str, params: GenerationParams) -> str:
        """调用 SDK，返回原始文本"""

    def classify_error(self, exc: Exception) -> ProviderError:
        """默认归类: 超时与连接错误可重试，其余不可重试"""
        if isinstance(exc, (TimeoutError, ConnectionError)):
            return ProviderTransientError(str(exc), provider=self.spec.name)
        return ProviderPermanentError(str(exc), provider=self.spec.name)

    def generate(self, prompt: str, params: GenerationParams) -> Dict[str, str]:
        try:
            text = self._complete(prompt, params)
        except ProviderError:
            raise
        except Exception as e:
            error = self.classify_error(e)
            logger.debug(f"[{self.spec.name}] {type(e).__name__} -> {type(error).__name__}")
            raise error from e

        if not text or not text.strip():
            raise ProviderPermanentError(
                "API call succeeded but the response was empty", provider=self.spec.name
            )
        return parse_sections(text)


def status_error(
    provider: str, status: Optional[int], message: str, retry_after: Optional[float] = None
) -> ProviderError:
    """按 HTTP 状态码归类: 408/429/5xx 可重试"""
    if status is not None and (status in (408, 429) or status >= 500):
        return ProviderTransientError(message, provider=provider, retry_after=retry_after)
    return ProviderPermanentError(message, provider=provider)


def parse_retry_after(headers) -> Optional[float]:
    if not headers:
        return None
    value = headers.get("retry-after") or headers.get("Retry-After")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except (TypeError, ValueError):
        return None
