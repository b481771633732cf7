import logging
import sys
import time
from typing import Callable, Optional

from errors import RunTimeoutError


# 将日志配置移到这里，作为一个可被调用的函数
def setup_logging(verbose: bool = False):
    """配置全局日志 (输出到 stderr，stdout 留给 `-o -` 的报告内容)"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


class Deadline:
    """
    整体运行期限。由命令层创建，传递给 Git 读取与 AI 调用。
    seconds 为 None 表示不限时。
    """

    def __init__(
        self,
        seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._clock = clock
        self._expires_at = None if seconds is None else clock() + seconds

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self, what: str = "operation"):
        if self.expired():
            raise RunTimeoutError(f"Run deadline reached before {what}")

    def bound(self, timeout: float) -> float:
        """取 timeout 与剩余时间中较小者"""
        remaining = self.remaining()
        if remaining is None:
            return timeout
        return min(timeout, remaining)
