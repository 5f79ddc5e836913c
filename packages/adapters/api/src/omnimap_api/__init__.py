from .adapter import ApiAdapter

__all__ = ["ApiAdapter"]
