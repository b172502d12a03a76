"""
SQL 数据库管理器 (SQL Store)
基于 SQLAlchemy 的 RecordStore 实现，默认使用项目目录下的 SQLite。
每个操作使用独立会话，单次操作内的写入是原子的。
"""
import logging
from functools import lru_cache
from typing import Any, List, Optional

from sqlalchemy import create_engine, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from scriptwright.core.exceptions import RecordStoreError
from scriptwright.core.models import Base, COLLECTIONS
from scriptwright.infra.storage.record_store import Record, RecordStore, Where

logger = logging.getLogger(__name__)


@lru_cache(maxsize=5)
def get_engine(database_url: str):
    """
    获取指定数据库的引擎 (带缓存)，首次获取时自动建表。
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        # 工具调用会在工作线程中并发访问同一个 SQLite 文件
        connect_args = {"check_same_thread": False, "timeout": 30}
    engine = create_engine(database_url, connect_args=connect_args)
    Base.metadata.create_all(engine)
    return engine


def _to_dict(row) -> Record:
    return {c.name: getattr(row, c.name) for c in row.__table__.columns}


class SqlRecordStore(RecordStore):
    """
    SQLAlchemy 版本的记录存储。

    Args:
        database_url (str): SQLAlchemy 连接串，例如 "sqlite:///content.db"。
    """

    def __init__(self, database_url: str):
        self.database_url = database_url
        self._session_factory = sessionmaker(bind=get_engine(database_url))

    def get_session(self) -> Session:
        """获取一个新的数据库会话"""
        return self._session_factory()

    @staticmethod
    def _model(collection: str):
        model = COLLECTIONS.get(collection)
        if model is None:
            raise RecordStoreError(f"unknown collection '{collection}'")
        return model

    @staticmethod
    def _column(model, field: str):
        column = getattr(model, field, None)
        if column is None:
            raise RecordStoreError(f"unknown field '{field}' on {model.__tablename__}")
        return column

    def _filters(self, model, where: Where):
        conditions = []
        for field, value in where.items():
            column = self._column(model, field)
            if isinstance(value, (list, tuple, set)):
                conditions.append(column.in_(list(value)))
            else:
                conditions.append(column == value)
        return conditions

    def _query(self, session: Session, model, where: Where):
        return session.query(model).filter(*self._filters(model, where))

    def _write(self, action: str, collection: str, operation):
        """在单个事务中执行写操作，失败时回滚并抛出 RecordStoreError"""
        session = self.get_session()
        try:
            result = operation(session)
            session.commit()
            return result
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"{action} {collection} 失败: {e}")
            raise RecordStoreError(f"{action} {collection} failed: {e}") from e
        finally:
            session.close()

    def _read(self, collection: str, operation):
        session = self.get_session()
        try:
            return operation(session)
        except SQLAlchemyError as e:
            logger.error(f"读取 {collection} 失败: {e}")
            raise RecordStoreError(f"read {collection} failed: {e}") from e
        finally:
            session.close()

    # --- 读操作 ---

    def find(self, collection: str, where: Where, order_by: Optional[str] = None,
             descending: bool = False, limit: Optional[int] = None) -> List[Record]:
        model = self._model(collection)

        def run(session):
            query = self._query(session, model, where)
            if order_by:
                column = self._column(model, order_by)
                query = query.order_by(column.desc() if descending else column.asc())
            if limit is not None:
                query = query.limit(limit)
            return [_to_dict(row) for row in query.all()]

        return self._read(collection, run)

    def first(self, collection: str, where: Where) -> Optional[Record]:
        model = self._model(collection)

        def run(session):
            row = self._query(session, model, where).first()
            return _to_dict(row) if row is not None else None

        return self._read(collection, run)

    def count(self, collection: str, where: Where) -> int:
        model = self._model(collection)
        return self._read(collection, lambda session: self._query(session, model, where).count())

    def max(self, collection: str, where: Where, field: str) -> Optional[Any]:
        model = self._model(collection)
        column = self._column(model, field)

        return self._read(
            collection,
            lambda session: session.query(func.max(column)).filter(*self._filters(model, where)).scalar(),
        )

    # --- 写操作 ---

    def insert(self, collection: str, records: List[Record]) -> List[int]:
        model = self._model(collection)

        def run(session):
            rows = [model(**record) for record in records]
            session.add_all(rows)
            session.flush()
            return [row.id for row in rows]

        return self._write("插入", collection, run)

    def update(self, collection: str, where: Where, patch: Record) -> int:
        model = self._model(collection)
        return self._write(
            "更新", collection,
            lambda session: self._query(session, model, where).update(patch, synchronize_session=False),
        )

    def delete(self, collection: str, where: Where) -> int:
        model = self._model(collection)
        return self._write(
            "删除", collection,
            lambda session: self._query(session, model, where).delete(synchronize_session=False),
        )
