from .adapter import SqliteAdapter

__all__ = ["SqliteAdapter"]
