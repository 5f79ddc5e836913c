from .adapter import PostgresAdapter

__all__ = ["PostgresAdapter"]
