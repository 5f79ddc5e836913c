from .adapter import FirestoreAdapter

__all__ = ["FirestoreAdapter"]
