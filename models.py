from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Tuple, Union

CATEGORIES: Tuple[str, ...] = (
    "feature",
    "fix",
    "docs",
    "refactor",
    "test",
    "chore",
    "other",
)

LENGTHS: Tuple[str, ...] = ("light", "short", "detailed")

NEW_ACTIVITY = "new activity"


@dataclass(frozen=True)
class FileChange:
    """单个提交中的文件变更 (二进制文件的行数为 None)"""

    path: str
    additions: Optional[int] = None
    deletions: Optional[int] = None


@dataclass(frozen=True)
class Commit:
    """Git提交数据模型"""

    hash: str
    timestamp: datetime
    author_name: str
    author_email: str
    message: str
    files: Tuple[FileChange, ...] = ()

    @property
    def author(self) -> str:
        return f"{self.author_name} <{self.author_email}>"

    @property
    def short_hash(self) -> str:
        return self.hash[:7]

    @property
    def file_paths(self) -> List[str]:
        return [f.path for f in self.files]

    @property
    def is_merge_commit(self) -> bool:
        return self.message.lower().startswith("merge")


@dataclass(frozen=True)
class ChangeSet:
    """
    一次查询 (时间窗口 + 作者过滤) 得到的全部提交，按时间倒序。
    warnings 记录局部失败 (如单个提交的文件列表读取失败)。
    """

    commits: Tuple[Commit, ...] = ()
    warnings: Tuple[str, ...] = ()
    branch: str = "unknown"

    def __len__(self) -> int:
        return len(self.commits)

    def __iter__(self) -> Iterator[Commit]:
        return iter(self.commits)

    @property
    def is_empty(self) -> bool:
        return not self.commits


@dataclass(frozen=True)
class FileStat:
    """文件变更统计数据模型 (按文件合并)"""

    filename: str
    commits: int
    additions: int
    deletions: int

    @property
    def changes(self) -> int:
        return self.additions + self.deletions


@dataclass(frozen=True)
class MetricDelta:
    """与上一周期相比的变化；change 为百分比或 NEW_ACTIVITY 哨兵值"""

    current: int
    previous: int
    change: Union[float, str]

    @property
    def is_new_activity(self) -> bool:
        return self.change == NEW_ACTIVITY


@dataclass(frozen=True)
class Statistics:
    commit_count: int = 0
    file_count: int = 0
    lines_added: int = 0
    lines_removed: int = 0
    author_count: int = 0
    categories: Dict[str, int] = field(
        default_factory=lambda: {c: 0 for c in CATEGORIES}
    )
    file_stats: Tuple[FileStat, ...] = ()
    extensions: Dict[str, int] = field(default_factory=dict)
    directories: Dict[str, int] = field(default_factory=dict)
    most_active_area: Optional[str] = None
    first_commit: Optional[datetime] = None
    last_commit: Optional[datetime] = None
    deltas: Optional[Dict[str, MetricDelta]] = None


@dataclass(frozen=True)
class NarrativeSections:
    """
    AI 生成的文本，按逻辑段落 (summary / highlights / ...) 分组。
    一次运行只生成一次；失败时整体标记为不可用，不做部分更新。
    """

    sections: Dict[str, str] = field(default_factory=dict)
    available: bool = True
    provider: Optional[str] = None
    model: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def unavailable(cls, reason: str) -> "NarrativeSections":
        return cls(sections={}, available=False, reason=reason)

    def get(self, name: str) -> Optional[str]:
        return self.sections.get(name)


@dataclass(frozen=True)
class ProviderSpec:
    """回退链中的一个 AI 供应商配置 (priority 越小越优先)"""

    name: str
    provider: str
    model: Optional[str] = None
    api_key_env: Optional[str] = None
    priority: int = 100
    base_url: Optional[str] = None


@dataclass(frozen=True)
class ReportMetadata:
    repo_name: str = ""
    branch: str = "unknown"
    period: str = "All commits"
    author_filter: Optional[str] = None
    generated_at: Optional[datetime] = None


@dataclass
class Report:
    """最终产物: 统计 + 叙述，渲染为一种格式"""

    output_format: str
    length: str
    content: Union[str, bytes]
    statistics: Statistics
    narrative: NarrativeSections
    warnings: List[str] = field(default_factory=list)
    path: Optional[str] = None
