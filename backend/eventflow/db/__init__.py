from eventflow.db.base import Base, TimestampMixin
from eventflow.db.session import Database, get_db

__all__ = ["Base", "TimestampMixin", "Database", "get_db"]
