from typing import Any, Dict, Mapping, Optional

from omnimap.common.errors import AdapterMissingError, CapabilityMissingError, ConnectionUnknownError
from omnimap.connections.registry import ConnectionRegistry
from omnimap_adapter_sdk import Requestable


class ApiRequestBuilder:
    """Fluent request against a connection whose adapter is ``Requestable``."""

    def __init__(self, connections: ConnectionRegistry, connection: str, path: str = ""):
        self._connections = connections
        self._connection = connection
        self._path = path
        self._headers: Dict[str, str] = {}
        self._timeout: Optional[float] = None

    def path(self, path: str) -> "ApiRequestBuilder":
        self._path = path
        return self

    def header(self, key: str, value: Any) -> "ApiRequestBuilder":
        if isinstance(value, (list, tuple)):
            value = ", ".join(str(v) for v in value)
        self._headers[key] = str(value)
        return self

    def headers(self, values: Mapping[str, Any]) -> "ApiRequestBuilder":
        for key, value in values.items():
            self.header(key, value)
        return self

    def timeout(self, milliseconds: float) -> "ApiRequestBuilder":
        self._timeout = milliseconds
        return self

    async def _send(self, method: str, data: Any = None) -> Any:
        config = self._connections.resolve(self._connection)
        if config is None:
            raise ConnectionUnknownError(self._connection)
        adapter = self._connections.get_adapter(config.name)
        if adapter is None:
            raise AdapterMissingError(config.name)
        if not isinstance(adapter, Requestable):
            raise CapabilityMissingError(config.name, "requests")
        return await adapter.request(method, self._path, data=data, headers=self._headers or None, timeout=self._timeout)

    async def get(self) -> Any:
        return await self._send("GET")

    async def post(self, data: Any = None) -> Any:
        return await self._send("POST", data)

    async def put(self, data: Any = None) -> Any:
        return await self._send("PUT", data)

    async def patch(self, data: Any = None) -> Any:
        return await self._send("PATCH", data)

    async def delete(self) -> Any:
        return await self._send("DELETE")
