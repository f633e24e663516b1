from .http_repo import HttpEntityRepository
from .sqlite_repo import SqliteRepository

__all__ = ["HttpEntityRepository", "SqliteRepository"]
