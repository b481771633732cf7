"""
全局配置
- .env 由 python-dotenv 加载 (脚本目录优先，其次 CWD)
- 所有常量、默认模型、API 密钥均以类属性形式暴露
"""
import os
from dotenv import load_dotenv


# --- 脚本基础路径 ---
SCRIPT_BASE_PATH = os.path.abspath(os.path.dirname(__file__))
env_path = os.path.join(SCRIPT_BASE_PATH, ".env")
if os.path.exists(env_path):
    load_dotenv(env_path)
else:
    load_dotenv()


def _env_flag(name: str, default: str = "1") -> bool:
    return os.getenv(name, default).strip().lower() not in {"0", "false", "no", "off"}


class GlobalConfig:
    """
    devsum 的全局应用配置。
    """

    # --- 路径配置 ---
    SCRIPT_BASE_PATH: str = SCRIPT_BASE_PATH
    TEMPLATES_DIR_NAME: str = "templates"
    PROMPTS_DIR_NAME: str = "prompts"
    CONFIG_FILE: str = os.getenv(
        "DEVSUM_CONFIG",
        os.path.join(os.path.expanduser("~"), ".config", "devsum", "config.json"),
    )
    DEFAULT_OUTPUT_DIR: str = "reports"
    OUTPUT_FILENAME_PREFIX: str = "report"

    # --- Git 读取 ---
    GIT_COMMAND_TIMEOUT: float = 30.0
    MAX_COMMITS: int = int(os.getenv("DEVSUM_MAX_COMMITS", "1000"))

    # --- 运行期限 (秒) ---
    DEFAULT_RUN_TIMEOUT: float = float(os.getenv("DEVSUM_TIMEOUT", "300"))

    # --- 智能过滤 (不计入文件与行数统计) ---
    FILTER_FILE_PATTERNS: list[str] = [
        "*.lock",
        "package-lock.json",
        "pnpm-lock.yaml",
        "poetry.lock",
        "uv.lock",
        "dist/*",
        "build/*",
        "*.min.js",
        "*.pyc",
        "__pycache__/*",
        "*.png",
        "*.jpg",
        "*.jpeg",
        "*.gif",
        "*.ico",
        "*.pdf",
        "*.woff",
        "*.woff2",
        "*.zip",
        "*.tar.gz",
    ]

    # =================================================================
    # --- AI 供应商配置 ---
    # =================================================================

    # 1. 供应商 API 密钥 (默认的凭证环境变量名)
    API_KEY_ENV: dict[str, str] = {
        "gemini": "GEMINI_API_KEY",
        "openai": "OPENAI_API_KEY",
        "claude": "ANTHROPIC_API_KEY",
        "deepseek": "DEEPSEEK_API_KEY",
    }

    # 2. 供应商特定配置
    DEEPSEEK_BASE_URL: str = "https://api.deepseek.com"
    OLLAMA_BASE_URL: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434/v1")

    # 3. 没有配置文件时，按此顺序从环境变量推导回退链
    DEFAULT_PROVIDER_ORDER: list[str] = ["gemini", "claude", "openai", "deepseek"]

    # 4. 供应商的默认模型
    DEFAULT_MODELS: dict[str, str] = {
        "gemini": "gemini-2.5-flash",
        "openai": "gpt-4o-mini",
        "claude": "claude-3-5-sonnet-latest",
        "deepseek": "deepseek-chat",
        "ollama": os.getenv("OLLAMA_MODEL", "qwen2.5:7b"),
        "mock": "mock-1",
    }

    # 5. 重试策略
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_BASE_DELAY: float = 1.0
    PROVIDER_REQUEST_TIMEOUT: float = 120.0

    # =================================================================
    # --- 导出 ---
    # =================================================================
    PRINCE_BINARY: str = os.getenv("PRINCE_BINARY", "prince")
    PDF_CONVERT_TIMEOUT: float = 120.0

    # =================================================================
    # --- 使用统计 (匿名，尽力而为) ---
    # =================================================================
    TELEMETRY_ENABLED: bool = _env_flag("DEVSUM_TELEMETRY")
    TELEMETRY_ENDPOINT: str = os.getenv(
        "DEVSUM_TELEMETRY_URL", "https://devsum.rollenasistores.site/api/usage/track"
    )
    TELEMETRY_TIMEOUT: float = 3.0

    def resolve_api_key(self, provider: str, api_key_env: str | None = None) -> str:
        """按凭证引用 (环境变量名) 读取 API 密钥"""
        env_name = api_key_env or self.API_KEY_ENV.get(provider)
        if not env_name:
            return ""
        return os.getenv(env_name, "")

    def is_provider_configured(self, provider: str) -> bool:
        """
        检查特定供应商是否已在环境中设置其 API 密钥。
        ollama 与 mock 不需要密钥。
        """
        if provider in ("ollama", "mock"):
            return True
        return bool(self.resolve_api_key(provider))
