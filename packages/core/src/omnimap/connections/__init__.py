from .factory import build_adapter, discover_adapters, infer_type
from .models import ConnectionConfig, ConnectionType
from .registry import DEFAULT_CONNECTION, ConnectionBuilder, ConnectionRegistry

__all__ = [
    "build_adapter",
    "discover_adapters",
    "infer_type",
    "ConnectionConfig",
    "ConnectionType",
    "DEFAULT_CONNECTION",
    "ConnectionBuilder",
    "ConnectionRegistry",
]
