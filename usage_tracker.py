# usage_tracker.py
"""
匿名使用统计
- 每次运行结束时 (无论成功或失败) 发送一条事件
- 在守护线程中 POST，调用方不等待结果
- 任何失败只记录 debug 日志，绝不影响报告生成
"""
import logging
import platform
import threading
import uuid
from typing import Any, Callable, Dict, Optional

import requests

logger = logging.getLogger(__name__)

APP_NAME = "devsum"
APP_VERSION = "1.0.0"


class UsageTracker:
    """
    由命令层每个进程构造一次并显式传入 Orchestrator，不使用全局单例。
    """

    def __init__(
        self,
        endpoint: str,
        enabled: bool = True,
        timeout: float = 3.0,
        post: Callable[..., Any] = requests.post,
    ):
        self.endpoint = endpoint
        self.enabled = enabled and bool(endpoint)
        self.timeout = timeout
        self._post = post
        # 仅在本进程内有效的匿名标识
        self.session_id = uuid.uuid4().hex

    @staticmethod
    def system_info() -> Dict[str, str]:
        return {
            "platform": platform.system().lower(),
            "arch": platform.machine(),
            "python_version": platform.python_version(),
            "cli_version": APP_VERSION,
        }

    def build_event(
        self,
        command_type: str,
        duration: float,
        success: bool,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return {
            "app": APP_NAME,
            "sessionId": self.session_id,
            "commandType": command_type,
            "success": success,
            "metadata": {
                "duration": round(duration, 3),
                **(metadata or {}),
                **self.system_info(),
            },
        }

    def _send(self, event: Dict[str, Any]):
        try:
            resp = self._post(self.endpoint, json=event, timeout=self.timeout)
            status = getattr(resp, "status_code", None)
            logger.debug(f"📡 使用统计已发送 (HTTP {status})")
        except Exception as e:
            logger.debug(f"📡 使用统计发送失败 (已忽略): {e}")

    def track(
        self,
        command_type: str,
        duration: float,
        success: bool,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[threading.Thread]:
        """
        发送一条事件 (fire-and-forget)。
        返回后台线程 (便于测试 join)；未启用时返回 None。
        """
        if not self.enabled:
            return None
        try:
            event = self.build_event(command_type, duration, success, metadata)
            thread = threading.Thread(
                target=self._send, args=(event,), name="devsum-usage", daemon=True
            )
            thread.start()
            return thread
        except Exception as e:
            logger.debug(f"📡 使用统计未能启动 (已忽略): {e}")
            return None
