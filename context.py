"""
运行时配置的数据模型
"""
from dataclasses import dataclass
from typing import List, Optional
from config import GlobalConfig
from models import ProviderSpec
from time_window import TimeWindow


@dataclass
class RunContext:
    """
    封装一次运行所需的所有配置和状态。
    这是从 CLI 传递到 Orchestrator 的唯一对象。
    """

    # --- 核心路径 ---
    repo_path: str

    # --- 范围参数 ---
    window: TimeWindow
    author: Optional[str]

    # --- AI 与报告参数 ---
    output_format: str
    length: str
    providers: List[ProviderSpec]

    # --- 全局配置 ---
    # 包含所有 API 密钥、常量和 .env 加载的数据
    global_config: GlobalConfig

    # --- 输出 ---
    # None: 自动生成文件名；"-": 写到 stdout
    output_path: Optional[str] = None
    output_dir: Optional[str] = None

    # --- 统计过滤 (None: 使用 GlobalConfig.FILTER_FILE_PATTERNS) ---
    ignore_patterns: Optional[List[str]] = None

    # --- 标志 ---
    no_ai: bool = False
    compare: bool = True
    timeout: Optional[float] = None

    # --- CLI 原始输入 (用于报告元数据与使用统计) ---
    since_arg: Optional[str] = None
    until_arg: Optional[str] = None
    provider_override: Optional[str] = None
