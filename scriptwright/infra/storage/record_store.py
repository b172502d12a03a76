"""
记录存储接口 (Record Store)
编排引擎只依赖这里声明的形状，不关心具体的查询语言或存储引擎。
记录以 dict 形式进出；where 中值为 list/tuple 的字段按 "in" 匹配。
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

Record = Dict[str, Any]
Where = Dict[str, Any]


class RecordStore(ABC):

    @abstractmethod
    def find(self, collection: str, where: Where, order_by: Optional[str] = None,
             descending: bool = False, limit: Optional[int] = None) -> List[Record]:
        """按条件查询记录列表"""

    @abstractmethod
    def first(self, collection: str, where: Where) -> Optional[Record]:
        """返回第一条匹配的记录，不存在时返回 None"""

    @abstractmethod
    def insert(self, collection: str, records: List[Record]) -> List[int]:
        """批量插入，按输入顺序返回新记录的 id"""

    @abstractmethod
    def update(self, collection: str, where: Where, patch: Record) -> int:
        """更新匹配记录，返回受影响行数"""

    @abstractmethod
    def delete(self, collection: str, where: Where) -> int:
        """删除匹配记录，返回删除行数"""

    @abstractmethod
    def count(self, collection: str, where: Where) -> int:
        ...

    @abstractmethod
    def max(self, collection: str, where: Where, field: str) -> Optional[Any]:
        ...
