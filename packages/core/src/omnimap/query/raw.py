from typing import Any, Optional

from omnimap.common.errors import AdapterMissingError, CapabilityMissingError, ConnectionUnknownError
from omnimap.common.logger import get_logger
from omnimap.connections.registry import ConnectionRegistry
from omnimap_adapter_sdk import RawQueryable, TransactionHandle

logger = get_logger(__name__)


class RawQuery:
    """A backend-native statement bound to a connection (the default one when unset)."""

    def __init__(self, query: Any, connections: ConnectionRegistry, connection: Optional[str] = None):
        self._query = query
        self._connections = connections
        self._connection = connection
        self._bindings: Any = None

    def bind(self, bindings: Any) -> "RawQuery":
        self._bindings = bindings
        return self

    def on(self, connection: str) -> "RawQuery":
        self._connection = connection
        return self

    async def run(self, transaction: Optional[TransactionHandle] = None) -> Any:
        config = self._connections.resolve(self._connection)
        if config is None:
            raise ConnectionUnknownError(self._connection or "default")
        adapter = self._connections.get_adapter(config.name)
        if adapter is None:
            raise AdapterMissingError(config.name)
        if not isinstance(adapter, RawQueryable):
            raise CapabilityMissingError(config.name, "raw queries")
        return await adapter.raw(self._query, self._bindings, transaction=transaction)
