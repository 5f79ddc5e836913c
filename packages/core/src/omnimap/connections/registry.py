from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from omnimap.common.errors import ConnectionExistsError, ConnectionUnknownError
from omnimap.common.logger import get_logger
from omnimap.connections.models import ConnectionConfig, ConnectionType
from omnimap_adapter_sdk import DocumentAdapter

logger = get_logger(__name__)

DEFAULT_CONNECTION = "default"


class ConnectionBuilder:
    """Staged registration returned by ``ConnectionRegistry.create``."""

    def __init__(self, registry: "ConnectionRegistry", name: str, type: ConnectionType):
        self._registry = registry
        self._name = name
        self._type = type

    def key(self, settings: Optional[Mapping[str, Any]] = None, default: bool = False) -> ConnectionConfig:
        """Finalizes the registration with the backend settings."""
        return self._registry.register(
            ConnectionConfig(name=self._name, type=self._type, key=dict(settings or {}), is_default=default)
        )


class ConnectionRegistry:
    """
    Owns the named connections and the adapter bound to each of them.

    Registration order is preserved; it decides the fallback default.
    """

    def __init__(self):
        self._connections: Dict[str, ConnectionConfig] = {}
        self._adapters: Dict[str, DocumentAdapter] = {}

    def create(self, name: str, type: Any) -> ConnectionBuilder:
        """
        Starts registering a connection. Fails early when the name is taken;
        the final check happens again atomically in ``register``.
        """
        if name in self._connections:
            raise ConnectionExistsError(name)
        return ConnectionBuilder(self, name, ConnectionType.parse(type))

    def register(self, config: ConnectionConfig) -> ConnectionConfig:
        stored = self._connections.setdefault(config.name, config)
        if stored is not config:
            raise ConnectionExistsError(config.name)
        logger.debug(f"Registered connection '{config.name}' ({config.type.value})")
        return config

    def attach_adapter(self, name: str, adapter: DocumentAdapter) -> None:
        """Binds an adapter to a registered connection, replacing any previous one."""
        if name not in self._connections:
            raise ConnectionUnknownError(name)
        self._adapters[name] = adapter

    def get(self, name: str) -> Optional[ConnectionConfig]:
        return self._connections.get(name)

    def get_adapter(self, name: str) -> Optional[DocumentAdapter]:
        return self._adapters.get(name)

    def get_default(self) -> Optional[ConnectionConfig]:
        """The connection flagged default, else the first registered one."""
        for config in self._connections.values():
            if config.is_default:
                return config
        return next(iter(self._connections.values()), None)

    def resolve(self, name: Optional[str] = None) -> Optional[ConnectionConfig]:
        """
        Looks up a connection, routing ``None`` and the reserved name 'default'
        to ``get_default()`` unless a connection is literally named 'default'.
        """
        if name is None:
            return self.get_default()
        config = self._connections.get(name)
        if config is None and name == DEFAULT_CONNECTION:
            return self.get_default()
        return config

    def list(self) -> List[ConnectionConfig]:
        return list(self._connections.values())

    def __contains__(self, name: str) -> bool:
        return name in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    async def close_all(self) -> None:
        """Closes every bound adapter; errors are logged so every adapter gets closed."""
        for name, adapter in list(self._adapters.items()):
            try:
                await adapter.close()
            except Exception as e:
                logger.warning(f"Failed to close adapter for '{name}': {e}")
