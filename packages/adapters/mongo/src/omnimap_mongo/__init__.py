from .adapter import MongoAdapter

__all__ = ["MongoAdapter"]
