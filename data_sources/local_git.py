import logging
import os
from typing import List, Optional

from .base import DataSource
from config import GlobalConfig
from errors import ExtractionError, RepositoryNotFoundError
from models import ChangeSet, Commit
from time_window import TimeWindow
from utils import Deadline
import git_utils

logger = logging.getLogger(__name__)


def matches_author(commit: Commit, author: Optional[str]) -> bool:
    """作者过滤: 对姓名或邮箱做不区分大小写的子串匹配"""
    if not author:
        return True
    needle = author.strip().lower()
    return needle in commit.author_name.lower() or needle in commit.author_email.lower()


class LocalGitDataSource(DataSource):
    """
    本地 Git 数据源实现。
    通过调用 git 命令行工具分析本地仓库。
    """

    def __init__(self, repo_path: str, global_config: Optional[GlobalConfig] = None):
        self.repo_path = repo_path
        self.global_config = global_config or GlobalConfig()

    def validate(self) -> None:
        if not os.path.isdir(self.repo_path):
            logger.error(f"❌ 路径不存在: {self.repo_path}")
            raise RepositoryNotFoundError(
                f"Path does not exist: {self.repo_path}",
                context={"repo_path": self.repo_path},
            )
        if not git_utils.is_git_repository(self.repo_path):
            logger.error(f"❌ 指定路径不是 Git 仓库: {self.repo_path}")
            raise RepositoryNotFoundError(
                f"Not a git repository: {self.repo_path}",
                context={"repo_path": self.repo_path},
            )

    def _timeout(self, deadline: Optional[Deadline], what: str) -> float:
        if deadline is None:
            return self.global_config.GIT_COMMAND_TIMEOUT
        deadline.check(what)
        return deadline.bound(self.global_config.GIT_COMMAND_TIMEOUT)

    def _has_commits(self, timeout: float) -> bool:
        output = git_utils.run_git_command(
            ["rev-parse", "--verify", "--quiet", "HEAD"],
            self.repo_path,
            "检查 HEAD",
            timeout,
        )
        return output is not None

    def get_changeset(
        self,
        window: TimeWindow,
        author: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> ChangeSet:
        # --- 1. 读取提交元数据 ---
        args = git_utils.build_log_args(window.since, author)
        log_output = git_utils.run_git_command(
            args,
            self.repo_path,
            "获取Git提交历史",
            self._timeout(deadline, "reading git log"),
        )
        if log_output is None:
            if not self._has_commits(self._timeout(deadline, "checking HEAD")):
                logger.info("ℹ️ 仓库尚无任何提交")
                return ChangeSet(commits=(), branch="unknown")
            raise ExtractionError(
                f"Failed to read git log in {self.repo_path}",
                context={"repo_path": self.repo_path},
            )

        # --- 2. 精确的闭区间与作者过滤 ---
        records = [
            record
            for record in git_utils.parse_git_log(log_output)
            if window.contains(record[1])
            and matches_author(git_utils.build_commit(record, []), author)
        ]
        # git log 默认按提交时间排序，这里统一按作者时间倒序 (稳定排序)
        records.sort(key=lambda r: r[1], reverse=True)

        warnings: List[str] = []
        max_commits = self.global_config.MAX_COMMITS
        if len(records) > max_commits:
            warning = (
                f"Period contains {len(records)} commits; "
                f"only the newest {max_commits} were analyzed"
            )
            logger.warning(f"⚠️ 提交数 {len(records)} 超过上限 {max_commits}，仅分析最新的部分")
            warnings.append(warning)
            records = records[:max_commits]

        # --- 3. 逐个提交读取文件列表 (单个失败不影响整体) ---
        commits: List[Commit] = []
        for record in records:
            short_hash = record[0][:7]
            files = git_utils.get_commit_file_changes(
                self.repo_path,
                record[0],
                self._timeout(deadline, f"reading files of {short_hash}"),
            )
            if files is None:
                warning = f"Could not read file list for commit {short_hash}"
                logger.warning(f"⚠️ {warning}，保留该提交 (文件列表为空)")
                warnings.append(warning)
                files = []
            commits.append(git_utils.build_commit(record, files))

        branch = git_utils.get_current_branch(
            self.repo_path, self._timeout(deadline, "reading branch")
        )
        logger.info(f"✅ 共获取 {len(commits)} 个提交 (分支: {branch})")
        return ChangeSet(commits=tuple(commits), warnings=tuple(warnings), branch=branch)
