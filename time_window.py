"""
时间窗口解析
支持: today / yesterday / now, 相对时间 7d 2w 1m 1y, YYYY-MM-DD, ISO 时间戳。
since 与 until 两端都是闭区间。
"""
import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Optional

from errors import InvalidDateRangeError

_RELATIVE_RE = re.compile(r"^(\d+)([dwmy])$")
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_UNIT_DAYS = {"d": 1, "w": 7, "m": 30, "y": 365}
_UNIT_NAMES = {"d": "days", "w": "weeks", "m": "months", "y": "years"}


def _local(dt: datetime) -> datetime:
    """无时区的时间按本地时区解释"""
    if dt.tzinfo is None:
        return dt.astimezone()
    return dt


def _start_of_day(dt: datetime) -> datetime:
    return _local(datetime.combine(dt.date(), time.min))


def _end_of_day(dt: datetime) -> datetime:
    return _local(datetime.combine(dt.date(), time.max))


def parse_bound(value: str, *, is_end: bool, now: Optional[datetime] = None) -> datetime:
    """
    将单个 since/until 字符串解析为带时区的 datetime。
    日期型输入: since 取当天 00:00:00，until 取当天 23:59:59.999999。
    """
    now = _local(now or datetime.now())
    text = value.strip().lower()
    if not text:
        raise InvalidDateRangeError("Empty date value")

    if text == "now":
        return now
    if text == "today":
        return _end_of_day(now) if is_end else _start_of_day(now)
    if text == "yesterday":
        day = now - timedelta(days=1)
        return _end_of_day(day) if is_end else _start_of_day(day)

    match = _RELATIVE_RE.match(text)
    if match:
        amount, unit = int(match.group(1)), match.group(2)
        return now - timedelta(days=amount * _UNIT_DAYS[unit])

    if _ISO_DATE_RE.match(text):
        try:
            day = datetime.strptime(text, "%Y-%m-%d")
        except ValueError:
            raise InvalidDateRangeError(f"Invalid date: {value}") from None
        return _end_of_day(day) if is_end else _start_of_day(day)

    try:
        return _local(datetime.fromisoformat(value.strip()))
    except ValueError:
        raise InvalidDateRangeError(
            f"Invalid date format: {value!r}. "
            "Use today, yesterday, 7d, 2w, 1m, 1y, YYYY-MM-DD or an ISO timestamp"
        ) from None


@dataclass(frozen=True)
class TimeWindow:
    """闭区间 [since, until]；since 为 None 表示不设下限"""

    since: Optional[datetime]
    until: datetime
    label: str = "All commits"

    def contains(self, moment: datetime) -> bool:
        moment = _local(moment)
        if self.since is not None and moment < self.since:
            return False
        return moment <= self.until

    @property
    def length(self) -> Optional[timedelta]:
        if self.since is None:
            return None
        return self.until - self.since

    def previous(self) -> Optional["TimeWindow"]:
        """等长的上一个周期，在 since 之前 1 微秒结束"""
        if self.since is None:
            return None
        prior_until = self.since - timedelta(microseconds=1)
        prior_since = prior_until - (self.until - self.since)
        return TimeWindow(since=prior_since, until=prior_until, label="Previous period")


def describe_period(since: Optional[str], until: Optional[str]) -> str:
    """生成报告中显示的时间段描述"""
    if not since:
        return f"All commits until {until}" if until else "All commits"
    match = _RELATIVE_RE.match(since.strip().lower())
    if match:
        desc = f"Last {match.group(1)} {_UNIT_NAMES[match.group(2)]}"
    elif since.strip().lower() == "today":
        desc = "Today"
    else:
        return f"{since} to {until or 'present'}"
    return f"{desc} (until {until})" if until else desc


def build_window(
    since: Optional[str], until: Optional[str], now: Optional[datetime] = None
) -> TimeWindow:
    """
    由 CLI 传入的 since/until 构建时间窗口。
    - since 晚于 until -> InvalidDateRangeError
    """
    now = _local(now or datetime.now())
    since_dt = parse_bound(since, is_end=False, now=now) if since else None
    until_dt = parse_bound(until, is_end=True, now=now) if until else now

    if since_dt is not None and since_dt > until_dt:
        raise InvalidDateRangeError(
            f"--since ({since}) cannot be after --until ({until or 'now'})",
            context={"since": since, "until": until},
        )
    return TimeWindow(since=since_dt, until=until_dt, label=describe_period(since, until))
