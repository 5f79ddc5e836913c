from __future__ import annotations

import pathlib
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Mapping, Optional, Union

from omnimap.common.errors import AdapterMissingError, CapabilityMissingError, ConnectionUnknownError
from omnimap.common.logger import get_logger
from omnimap.common.settings import Settings, settings as default_settings
from omnimap.configs.manager import ConfigManager
from omnimap.configs.models import MapperFileConfig
from omnimap.connections.factory import build_adapter
from omnimap.connections.registry import ConnectionRegistry
from omnimap.migrations.migrator import TableMigrator
from omnimap.migrations.runner import MigrationRunner
from omnimap.migrations.store import MigrationStore
from omnimap.query.api_request import ApiRequestBuilder
from omnimap.query.builder import QueryBuilder
from omnimap.query.dispatcher import Dispatcher
from omnimap.query.raw import RawQuery
from omnimap.schema.registry import SchemaRegistry
from omnimap_adapter_sdk import DocumentAdapter, TransactionHandle, Transactional

logger = get_logger(__name__)


class ConnectionScope:
    """Builders pinned to one connection: ``ctx.connection("analytics").query("events")``."""

    def __init__(self, context: "MapperContext", name: str):
        self._context = context
        self.name = name

    def query(self, collection: str) -> QueryBuilder:
        self._context.schemas.ensure(collection, connection=self.name)
        return QueryBuilder(collection, self._context.connections, self._context.schemas, connection=self.name)

    table = query
    collection = query

    def schema(self, table: str) -> TableMigrator:
        return self._context.schema(table, connection=self.name)

    def raw(self, query: Any) -> RawQuery:
        return self._context.raw(query, connection=self.name)

    def path(self, path: str) -> ApiRequestBuilder:
        return ApiRequestBuilder(self._context.connections, self.name, path)

    request = path

    def header(self, key: str, value: Any) -> ApiRequestBuilder:
        return self.path("").header(key, value)

    async def get(self, path: str = "") -> Any:
        return await self.path(path).get()

    async def post(self, path: str = "", data: Any = None) -> Any:
        return await self.path(path).post(data)

    async def put(self, path: str = "", data: Any = None) -> Any:
        return await self.path(path).put(data)

    async def patch(self, path: str = "", data: Any = None) -> Any:
        return await self.path(path).patch(data)

    async def delete(self, path: str = "") -> Any:
        return await self.path(path).delete()

    def transaction(self):
        return self._context.transaction(self.name)


class MapperContext:
    """
    Owns the connection and schema registries and hands out builders.

    Usage::

        async with MapperContext() as ctx:
            await ctx.connect("main", "sqlite", {"filename": "app.db"}, default=True)
            rows = await ctx.query("users").where("active", True).get()
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        connections: Optional[ConnectionRegistry] = None,
        schemas: Optional[SchemaRegistry] = None,
    ):
        self.settings = settings or default_settings
        self.connections = connections if connections is not None else ConnectionRegistry()
        self.schemas = schemas if schemas is not None else SchemaRegistry()

    async def init(
        self,
        config_path: Optional[Union[str, pathlib.Path]] = None,
        auto_attach: Optional[bool] = None,
    ) -> "MapperContext":
        """
        Loads the config file (``OMNIMAP_CONFIG`` when no path is given) and,
        unless disabled, builds, connects and attaches an adapter per connection.
        """
        path = config_path or self.settings.config_path
        if path is not None:
            self.load_config(path)
        attach = self.settings.auto_attach_adapters if auto_attach is None else auto_attach
        if attach:
            for config in self.connections.list():
                if self.connections.get_adapter(config.name) is None:
                    await self.attach(config.name, build_adapter(config, self.settings))
        return self

    async def shutdown(self) -> None:
        await self.connections.close_all()

    async def __aenter__(self) -> "MapperContext":
        return await self.init()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    def load_config(self, path: Union[str, pathlib.Path]) -> MapperFileConfig:
        """Registers the connections and schemas declared in a config file or directory."""
        file_config = ConfigManager(path).load()
        for entry in file_config.connections:
            self.connections.register(entry.to_config())
        for entry in file_config.schemas:
            builder = self.schemas.create(entry.name).use(
                connection=entry.connection, collection=entry.collection or entry.name
            )
            builder.options(
                insertable_fields=entry.insertable_fields,
                updatable_fields=entry.updatable_fields,
                delete_type=entry.delete_type,
                mass_delete_allowed=entry.mass_delete_allowed,
                mass_edit_allowed=entry.mass_edit_allowed,
                soft_delete_field=entry.soft_delete_field,
            )
            builder.structure(entry.structure)
        logger.info(
            f"Loaded {len(file_config.connections)} connection(s) and "
            f"{len(file_config.schemas)} schema(s) from {path}"
        )
        return file_config

    async def connect(
        self,
        name: str,
        type: Any,
        settings: Optional[Mapping[str, Any]] = None,
        default: bool = False,
        adapter: Optional[DocumentAdapter] = None,
    ) -> DocumentAdapter:
        """Registers a connection and attaches a connected adapter (built from entry points when not given)."""
        config = self.connections.create(name, type).key(settings, default=default)
        return await self.attach(config.name, adapter or build_adapter(config, self.settings))

    async def attach(self, name: str, adapter: DocumentAdapter) -> DocumentAdapter:
        if name not in self.connections:
            raise ConnectionUnknownError(name)
        await adapter.connect()
        self.connections.attach_adapter(name, adapter)
        logger.info(f"Attached adapter {adapter}")
        return adapter

    # builders

    def connection(self, name: str) -> ConnectionScope:
        if self.connections.resolve(name) is None:
            raise ConnectionUnknownError(name)
        return ConnectionScope(self, name)

    def query(self, name: str) -> QueryBuilder:
        return QueryBuilder(name, self.connections, self.schemas)

    table = query
    collection = query

    def base(self, target: str) -> Dispatcher:
        return Dispatcher(target, self.connections, self.schemas)

    def schema(self, table: str, connection: Optional[str] = None) -> TableMigrator:
        return TableMigrator(table, self.connections, self.schemas, connection=connection)

    def raw(self, query: Any, connection: Optional[str] = None) -> RawQuery:
        return RawQuery(query, self.connections, connection=connection)

    def migrations(self, path: Optional[Union[str, pathlib.Path]] = None) -> MigrationRunner:
        return MigrationRunner(self, MigrationStore(path or self.settings.migrations_path))

    @asynccontextmanager
    async def transaction(self, connection: Optional[str] = None) -> AsyncIterator[TransactionHandle]:
        """
        Commits when the block exits normally and rolls back when it raises.
        Pass the handle to ``QueryBuilder.using()`` to route work through it.
        """
        config = self.connections.resolve(connection)
        if config is None:
            raise ConnectionUnknownError(connection or "default")
        adapter = self.connections.get_adapter(config.name)
        if adapter is None:
            raise AdapterMissingError(config.name)
        if not isinstance(adapter, Transactional):
            raise CapabilityMissingError(config.name, "transactions")

        handle = await adapter.begin_transaction()
        try:
            yield handle
        except BaseException:
            await adapter.rollback_transaction(handle)
            raise
        await adapter.commit_transaction(handle)
