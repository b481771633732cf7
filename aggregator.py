"""
变更聚合器: ChangeSet -> Statistics (纯函数)
- 按 conventional commit 前缀分类，无法解析的归入 other
- 按扩展名与顶层目录统计文件变更次数
- 与上一周期比较，上一周期没有提交时返回 "new activity" 哨兵值
"""
import fnmatch
import logging
import os
import re
from dataclasses import replace
from typing import Dict, Iterable, Optional, Sequence

from models import (
    CATEGORIES,
    NEW_ACTIVITY,
    ChangeSet,
    FileStat,
    MetricDelta,
    Statistics,
)

logger = logging.getLogger(__name__)

# type(scope)!: description
CONVENTIONAL_RE = re.compile(
    r"^(?P<type>[A-Za-z]+)(?:\((?P<scope>[^()\s][^()]*)\))?(?P<breaking>!)?: (?P<desc>\S.*)$"
)

TYPE_ALIASES: Dict[str, str] = {
    "feat": "feature",
    "feature": "feature",
    "fix": "fix",
    "bugfix": "fix",
    "hotfix": "fix",
    "docs": "docs",
    "doc": "docs",
    "refactor": "refactor",
    "perf": "refactor",
    "style": "refactor",
    "test": "test",
    "tests": "test",
    "chore": "chore",
    "build": "chore",
    "ci": "chore",
    "deps": "chore",
    "release": "chore",
}

DELTA_METRICS = ("commits", "files", "lines_added", "lines_removed", "authors")

ROOT_AREA = "."
NO_EXTENSION = "(none)"


def categorize(message: str) -> str:
    """
    根据提交信息首行推断分类。
    不完全符合语法的 (复合前缀、缺少空格、空描述) 一律归入 other。
    """
    first_line = message.strip().splitlines()[0] if message.strip() else ""
    match = CONVENTIONAL_RE.match(first_line)
    if not match:
        return "other"
    return TYPE_ALIASES.get(match.group("type").lower(), "other")


def file_extension(path: str) -> str:
    ext = os.path.splitext(os.path.basename(path))[1].lower()
    return ext if ext else NO_EXTENSION


def top_level_directory(path: str) -> str:
    parts = path.replace("\\", "/").split("/")
    return parts[0] if len(parts) > 1 else ROOT_AREA


def _is_filtered(path: str, patterns: Sequence[str]) -> bool:
    return any(fnmatch.fnmatch(path, pattern) for pattern in patterns)


def _sorted_counts(counts: Dict[str, int]) -> Dict[str, int]:
    return dict(sorted(counts.items(), key=lambda item: (-item[1], item[0])))


def compute_statistics(
    changeset: ChangeSet, ignore_patterns: Iterable[str] = ()
) -> Statistics:
    """
    计算 ChangeSet 的统计信息。
    相同输入总是得到相同输出 (字典与列表都按确定顺序排列)。
    """
    patterns = tuple(ignore_patterns)
    categories = {c: 0 for c in CATEGORIES}
    authors = set()
    per_file: Dict[str, Dict[str, int]] = {}
    extensions: Dict[str, int] = {}
    directories: Dict[str, int] = {}
    lines_added = 0
    lines_removed = 0

    for commit in changeset:
        categories[categorize(commit.message)] += 1
        authors.add(commit.author_email.lower() or commit.author_name.lower())

        for change in commit.files:
            if patterns and _is_filtered(change.path, patterns):
                logger.debug(f"智能过滤: 已跳过文件 {change.path}")
                continue
            added = change.additions or 0
            removed = change.deletions or 0
            lines_added += added
            lines_removed += removed

            entry = per_file.setdefault(
                change.path, {"commits": 0, "additions": 0, "deletions": 0}
            )
            entry["commits"] += 1
            entry["additions"] += added
            entry["deletions"] += removed

            ext = file_extension(change.path)
            extensions[ext] = extensions.get(ext, 0) + 1
            area = top_level_directory(change.path)
            directories[area] = directories.get(area, 0) + 1

    file_stats = tuple(
        sorted(
            (
                FileStat(
                    filename=name,
                    commits=v["commits"],
                    additions=v["additions"],
                    deletions=v["deletions"],
                )
                for name, v in per_file.items()
            ),
            key=lambda f: (-f.commits, -f.changes, f.filename),
        )
    )
    directories = _sorted_counts(directories)
    timestamps = [c.timestamp for c in changeset]

    return Statistics(
        commit_count=len(changeset),
        file_count=len(per_file),
        lines_added=lines_added,
        lines_removed=lines_removed,
        author_count=len(authors),
        categories=categories,
        file_stats=file_stats,
        extensions=_sorted_counts(extensions),
        directories=directories,
        most_active_area=next(iter(directories), None),
        first_commit=min(timestamps) if timestamps else None,
        last_commit=max(timestamps) if timestamps else None,
    )


def _metric_values(stats: Statistics) -> Dict[str, int]:
    return {
        "commits": stats.commit_count,
        "files": stats.file_count,
        "lines_added": stats.lines_added,
        "lines_removed": stats.lines_removed,
        "authors": stats.author_count,
    }


def percent_change(current: int, previous: int) -> float:
    if previous == 0:
        raise ValueError("previous must be non-zero")
    return round((current - previous) * 100.0 / previous, 1)


def compute_deltas(current: Statistics, previous: Statistics) -> Dict[str, MetricDelta]:
    """
    逐项计算与上一周期相比的百分比变化。
    上一周期没有提交时，所有指标都是 NEW_ACTIVITY；
    单项指标上期为 0 而本期非 0 时同样视为 NEW_ACTIVITY。
    """
    now_values = _metric_values(current)
    prev_values = _metric_values(previous)
    deltas: Dict[str, MetricDelta] = {}
    for metric in DELTA_METRICS:
        cur, prev = now_values[metric], prev_values[metric]
        if previous.commit_count == 0:
            change = NEW_ACTIVITY
        elif prev == 0:
            change = NEW_ACTIVITY if cur else 0.0
        else:
            change = percent_change(cur, prev)
        deltas[metric] = MetricDelta(current=cur, previous=prev, change=change)
    return deltas


def with_comparison(
    current: Statistics, previous: Optional[Statistics]
) -> Statistics:
    """返回附带比较结果的新 Statistics (原对象不变)"""
    if previous is None:
        return current
    return replace(current, deltas=compute_deltas(current, previous))
