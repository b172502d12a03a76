from scriptwright.infra.storage.record_store import RecordStore
from scriptwright.infra.storage.sql_db import SqlRecordStore

__all__ = ["RecordStore", "SqlRecordStore"]
