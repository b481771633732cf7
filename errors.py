"""
devsum 异常体系
- 输入错误: 立即上报，不重试
- 局部数据问题: 不抛异常，记录为 warning
- 供应商错误: 区分可重试 (transient) 与不可重试 (permanent)
- 渲染错误: 打印阶段失败时携带中间产物 (HTML)
"""
from typing import Any, Dict, List, Optional


class DevSumError(RuntimeError):
    """基础异常，携带结构化上下文"""

    def __init__(self, message: str, *, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}


# --- 输入错误 ---


class RepositoryNotFoundError(DevSumError):
    """路径不存在或不是 Git 仓库"""


class InvalidDateRangeError(DevSumError):
    """since/until 无法解析或顺序颠倒"""


class ConfigurationError(DevSumError):
    """供应商配置缺失或不一致"""


class ExtractionError(DevSumError):
    """无法从仓库读取提交列表本身"""


# --- 运行期限 ---


class RunTimeoutError(DevSumError):
    """整体运行期限 (deadline) 已到"""


# --- 供应商错误 ---


class ProviderError(DevSumError):
    """单个 AI 供应商返回的失败"""

    transient = False

    def __init__(
        self,
        message: str,
        *,
        provider: str = "",
        retry_after: Optional[float] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context=context)
        self.provider = provider
        self.retry_after = retry_after


class ProviderTransientError(ProviderError):
    """超时 / 限流 / 5xx，可以在同一供应商内重试"""

    transient = True


class ProviderPermanentError(ProviderError):
    """鉴权失败 / 请求无效 / 回复不可用，直接切换到下一个供应商"""


class SynthesisUnavailableError(DevSumError):
    """回退链中的所有供应商都失败了"""

    def __init__(self, message: str, *, failures: Optional[List[str]] = None):
        super().__init__(message, context={"failures": failures or []})
        self.failures = failures or []


# --- 渲染错误 ---


class RenderError(DevSumError):
    """某个格式完全无法渲染"""


class PrintConversionError(RenderError):
    """HTML 已生成，但 HTML -> PDF 阶段失败"""

    def __init__(self, message: str, *, html: str):
        super().__init__(message)
        self.html = html
