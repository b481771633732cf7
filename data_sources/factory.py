import logging
from context import RunContext
from errors import RepositoryNotFoundError
from .base import DataSource
from .local_git import LocalGitDataSource

logger = logging.getLogger(__name__)

REMOTE_PREFIXES = ("http://", "https://", "git@", "ssh://")


def get_data_source(context: RunContext) -> DataSource:
    """
    数据源工厂
    只支持本地工作副本；远程 URL 需要先 clone。
    """
    path = context.repo_path.lower()

    if path.startswith(REMOTE_PREFIXES):
        logger.error(f"❌ [Factory] 不支持远程仓库: {context.repo_path}")
        raise RepositoryNotFoundError(
            f"Remote repositories are not supported, clone it first: {context.repo_path}",
            context={"repo_path": context.repo_path},
        )

    logger.info("🔌 [Factory] 初始化数据源: Local Git")
    return LocalGitDataSource(context.repo_path, context.global_config)
