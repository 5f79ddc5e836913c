from .adapter import BaseSQLAlchemyAdapter, build_url

__all__ = ["BaseSQLAlchemyAdapter", "build_url"]
