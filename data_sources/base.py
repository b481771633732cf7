from abc import ABC, abstractmethod
from typing import Optional

from models import ChangeSet
from time_window import TimeWindow
from utils import Deadline


class DataSource(ABC):
    """
    数据源抽象基类
    定义了获取变更数据的窄接口: (时间窗口, 作者过滤) -> ChangeSet。
    数据源只读，不会写入仓库。
    """

    @abstractmethod
    def validate(self) -> None:
        """
        验证数据源是否可用。
        不可用时抛出 RepositoryNotFoundError。
        """

    @abstractmethod
    def get_changeset(
        self,
        window: TimeWindow,
        author: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> ChangeSet:
        """
        获取窗口内 (两端闭区间) 的提交，按时间倒序。
        没有匹配的提交时返回空 ChangeSet，而不是抛异常。
        """
