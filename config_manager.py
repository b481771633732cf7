# config_manager.py
"""
配置管理器
- 负责读取 JSON 配置文件 (默认 ~/.config/devsum/config.json)
- 将其中的 providers 列表解析为 ProviderSpec 回退链
- 没有配置文件时，按环境变量中已设置的 API 密钥推导回退链

配置文件示例:
{
    "providers": [
        {"name": "primary", "provider": "gemini", "model": "gemini-2.5-flash", "priority": 1},
        {"name": "backup", "provider": "claude", "api_key_env": "MY_CLAUDE_KEY", "priority": 2}
    ],
    "output_dir": "reports",
    "ignore_patterns": ["*.lock", "dist/*"]
}
"""

import os
import json
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

from config import GlobalConfig
from errors import ConfigurationError
from models import ProviderSpec

logger = logging.getLogger(__name__)


def load_config(config_path: str) -> Dict[str, Any]:
    """加载配置文件；文件不存在时返回空字典"""
    if not os.path.exists(config_path):
        logger.debug(f"ℹ️ 未找到配置文件: {config_path}")
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(
            f"Failed to read config file {config_path}: {e}",
            context={"path": config_path},
        ) from e
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {config_path} must contain a JSON object",
            context={"path": config_path},
        )
    logger.info(f"✅ 已加载配置文件: {config_path}")
    return data


def _parse_provider_entry(entry: Any, index: int) -> ProviderSpec:
    if not isinstance(entry, dict):
        raise ConfigurationError(f"Provider entry #{index + 1} must be an object")
    provider = entry.get("provider") or entry.get("type")
    if not provider:
        raise ConfigurationError(f"Provider entry #{index + 1} is missing 'provider'")
    try:
        priority = int(entry.get("priority", index + 1))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Provider entry #{index + 1} has an invalid priority: {entry.get('priority')!r}"
        ) from e
    return ProviderSpec(
        name=entry.get("name") or provider,
        provider=provider,
        model=entry.get("model"),
        api_key_env=entry.get("api_key_env"),
        priority=priority,
        base_url=entry.get("base_url"),
    )


def providers_from_environment(global_config: GlobalConfig) -> List[ProviderSpec]:
    """按 DEFAULT_PROVIDER_ORDER 为每个已设置 API 密钥的供应商生成一项"""
    specs = []
    for provider in global_config.DEFAULT_PROVIDER_ORDER:
        if global_config.is_provider_configured(provider):
            specs.append(
                ProviderSpec(name=provider, provider=provider, priority=len(specs) + 1)
            )
    if specs:
        logger.info(f"ℹ️ 从环境变量推导回退链: {[s.name for s in specs]}")
    else:
        logger.warning("⚠️ 环境中未找到任何 AI 供应商的 API 密钥。")
    return specs


def load_provider_specs(
    config_data: Dict[str, Any], global_config: GlobalConfig
) -> List[ProviderSpec]:
    """
    解析回退链 (按 priority 稳定排序)。
    配置中没有 providers 时，从环境变量推导。
    """
    entries = config_data.get("providers")
    if not entries:
        return providers_from_environment(global_config)
    if not isinstance(entries, list):
        raise ConfigurationError("'providers' must be a list")

    specs = [_parse_provider_entry(entry, i) for i, entry in enumerate(entries)]
    names = [s.name for s in specs]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigurationError(f"Duplicate provider names: {', '.join(duplicates)}")
    return sorted(specs, key=lambda s: s.priority)


def resolve_provider_chain(
    specs: List[ProviderSpec], override: Optional[str]
) -> List[ProviderSpec]:
    """
    应用 --provider 覆盖: 被指定的供应商移到链首，其余保留为回退。
    override 可以是配置中的名称，也可以是供应商类型 (如 'mock')。
    """
    if not override:
        return list(specs)

    matched = [s for s in specs if s.name == override]
    if not matched:
        matched = [s for s in specs if s.provider == override][:1]
    if matched:
        first = matched[0]
        rest = [s for s in specs if s is not first]
        chain = [first] + rest
    else:
        import ai_summarizer  # noqa: F401  (导入即注册全部供应商)
        from llm.provider_abc import PROVIDER_REGISTRY

        if override not in PROVIDER_REGISTRY:
            raise ConfigurationError(
                f"Unknown provider '{override}'. Available: {', '.join(sorted(PROVIDER_REGISTRY))}"
            )
        chain = [ProviderSpec(name=override, provider=override)] + list(specs)

    # 重新编号，保证链首优先级最高
    return [replace(s, priority=i + 1) for i, s in enumerate(chain)]
