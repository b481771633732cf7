import subprocess
import logging
from datetime import datetime
from typing import Optional, List, Tuple

from errors import RunTimeoutError
from models import Commit, FileChange

logger = logging.getLogger(__name__)

# 字段分隔符 (US) 与记录分隔符 (RS)，避免与提交信息中的 | 冲突
FIELD_SEP = "\x1f"
RECORD_SEP = "\x1e"
GIT_LOG_PRETTY = f"--pretty=format:%H{FIELD_SEP}%aI{FIELD_SEP}%an{FIELD_SEP}%ae{FIELD_SEP}%s{RECORD_SEP}"


def run_git_command(
    args: List[str],
    repo_path: str,
    context: str = "执行Git命令",
    timeout: float = 30.0,
) -> Optional[str]:
    """
    统一的Git命令执行函数
    - 在 repo_path 下执行 (cwd)，不经过 shell
    - 失败返回 None；超时抛出 RunTimeoutError
    """
    cmd = ["git", *args]
    try:
        logger.debug(f"在 {repo_path} 中执行命令: {' '.join(cmd)}")
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            cwd=repo_path,
        )
    except subprocess.TimeoutExpired:
        logger.error(f"{context}超时 ({timeout:.1f}s)")
        raise RunTimeoutError(f"{context} timed out after {timeout:.1f}s")
    except OSError as e:
        logger.error(f"{context}出错: {e}")
        return None

    if result.returncode != 0:
        logger.error(f"{context}失败: {result.stderr.strip()}")
        return None
    logger.debug(f"{context}成功，输出 {len(result.stdout.splitlines())} 行")
    return result.stdout


def is_git_repository(repo_path: str) -> bool:
    """检查指定路径是否为Git仓库"""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--is-inside-work-tree"],
            capture_output=True,
            text=True,
            cwd=repo_path,
            timeout=10,
        )
        return result.returncode == 0 and result.stdout.strip() == "true"
    except (OSError, subprocess.TimeoutExpired):
        return False


def get_current_branch(repo_path: str, timeout: float = 10.0) -> str:
    output = run_git_command(
        ["rev-parse", "--abbrev-ref", "HEAD"], repo_path, "获取当前分支", timeout
    )
    return output.strip() if output and output.strip() else "unknown"


def build_log_args(since: Optional[datetime], author: Optional[str] = None) -> List[str]:
    """
    构建 git log 参数。
    git 的 --since 作用于提交时间 (不早于作者时间)，只用作下限粗过滤；
    不传 --until，上限与精确的闭区间判断按作者时间在 Python 端完成。
    """
    args = ["log", "--no-color", GIT_LOG_PRETTY]
    # git 只识别到秒: 下限向下取整
    if since is not None:
        args.append(f"--since={since.replace(microsecond=0).isoformat()}")
    # --author 匹配 "Name <email>"，固定字符串且忽略大小写
    if author and author.strip():
        args.extend([
            f"--author={author.strip()}",
            "--regexp-ignore-case",
            "--fixed-strings",
        ])
    return args


def parse_commit_record(record: str) -> Optional[Tuple[str, datetime, str, str, str]]:
    """解析单条提交记录 -> (hash, timestamp, name, email, subject)"""
    parts = record.strip("\n").split(FIELD_SEP)
    if len(parts) < 5:
        if record.strip():
            logger.warning(f"提交格式异常: {record!r}")
        return None
    commit_hash, date_str, name, email = (p.strip() for p in parts[:4])
    # 提交信息本身可能包含分隔符以外的任何字符
    subject = FIELD_SEP.join(parts[4:]).strip()
    try:
        timestamp = datetime.fromisoformat(date_str)
    except ValueError:
        logger.warning(f"无法解析提交时间 {commit_hash}: {date_str!r}")
        return None
    return commit_hash, timestamp, name, email, subject


def parse_git_log(log_output: str) -> List[Tuple[str, datetime, str, str, str]]:
    """解析Git日志输出"""
    records = []
    if not log_output or not log_output.strip():
        logger.info("Git日志输出为空")
        return records
    for raw in log_output.split(RECORD_SEP):
        parsed = parse_commit_record(raw)
        if parsed:
            records.append(parsed)
    logger.info(f"成功解析 {len(records)} 个提交")
    return records


def parse_numstat(output: str) -> List[FileChange]:
    """
    解析 `git show --numstat` 输出。
    二进制文件的行数为 '-'，保留路径、行数记为 None。
    """
    changes: List[FileChange] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split("\t")
        if len(parts) < 3:
            continue
        add, delete, path = parts[0], parts[1], "\t".join(parts[2:]).strip()
        changes.append(
            FileChange(
                path=path,
                additions=int(add) if add.isdigit() else None,
                deletions=int(delete) if delete.isdigit() else None,
            )
        )
    return changes


def get_commit_file_changes(
    repo_path: str, commit_hash: str, timeout: float = 30.0
) -> Optional[List[FileChange]]:
    """获取单个commit的文件变更列表；失败返回 None"""
    output = run_git_command(
        ["show", "--numstat", "--format=", "--no-color", "--no-renames", commit_hash],
        repo_path,
        f"获取 {commit_hash[:7]} 的文件列表",
        timeout,
    )
    if output is None:
        return None
    return parse_numstat(output)


def build_commit(
    record: Tuple[str, datetime, str, str, str], files: List[FileChange]
) -> Commit:
    commit_hash, timestamp, name, email, subject = record
    return Commit(
        hash=commit_hash,
        timestamp=timestamp,
        author_name=name,
        author_email=email,
        message=subject,
        files=tuple(files),
    )
