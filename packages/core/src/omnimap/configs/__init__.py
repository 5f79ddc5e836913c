from .manager import ConfigManager, resolve_env
from .models import ConnectionEntry, MapperFileConfig, SchemaEntry

__all__ = ["ConfigManager", "resolve_env", "ConnectionEntry", "MapperFileConfig", "SchemaEntry"]
