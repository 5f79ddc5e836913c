from importlib.metadata import entry_points
from typing import Any, Dict, Mapping, Optional, Type

from omnimap.common.logger import get_logger
from omnimap.common.settings import Settings, settings as default_settings
from omnimap.connections.models import ConnectionConfig, ConnectionType
from omnimap_adapter_sdk import DocumentAdapter

logger = get_logger(__name__)

ADAPTER_ENTRY_POINT_GROUP = "omnimap.adapters"


def discover_adapters() -> Dict[str, Type[DocumentAdapter]]:
    """Discovers installed adapters via 'omnimap.adapters' entry points.

    Returns:
        Dict[str, Type[DocumentAdapter]]: Dict mapping connection type value
            (e.g., 'relational-postgres') to the Adapter Class.
    """
    adapters = {}
    for ep in entry_points(group=ADAPTER_ENTRY_POINT_GROUP):
        try:
            adapters[ep.name] = ep.load()
        except Exception as e:
            logger.error(f"Failed to load adapter {ep.name}: {e}")
    return adapters


def infer_type(settings: Mapping[str, Any]) -> ConnectionType:
    """Infers the connection type from a ``url`` / ``uri`` / ``base_url`` setting."""
    url = str(settings.get("url") or settings.get("uri") or settings.get("base_url") or "").lower()
    if not url:
        raise ValueError("Cannot infer connection type without a url")
    scheme = url.split("://", 1)[0] if "://" in url else ""
    if scheme.startswith("mysql") or scheme.startswith("mariadb"):
        return ConnectionType.MYSQL
    if scheme.startswith("postgres"):
        return ConnectionType.POSTGRES
    if scheme.startswith("sqlite") or url.endswith((".db", ".sqlite", ".sqlite3")):
        return ConnectionType.SQLITE
    if scheme.startswith("mongodb"):
        return ConnectionType.MONGO
    if scheme in ("http", "https"):
        return ConnectionType.API
    raise ValueError(f"Cannot infer connection type from url '{url}'")


def build_adapter(
    config: ConnectionConfig,
    settings: Optional[Settings] = None,
    available: Optional[Dict[str, Type[DocumentAdapter]]] = None,
) -> DocumentAdapter:
    """
    Factory method to instantiate the correct adapter for a connection.
    Uses dynamic discovery via entry points.
    """
    settings = settings or default_settings
    available = available if available is not None else discover_adapters()
    engine_type = config.type.value

    if engine_type not in available:
        raise ValueError(
            f"No adapter found for connection type: '{engine_type}'. "
            f"Available: {list(available.keys())}. "
            f"Please install the matching omnimap extra."
        )

    args = config.settings()
    if config.type is ConnectionType.API:
        args.setdefault("timeout", settings.api_timeout_ms)

    AdapterCls = available[engine_type]
    return AdapterCls(connection_name=config.name, connection_args=args)
