from .adapter import MysqlAdapter

__all__ = ["MysqlAdapter"]
