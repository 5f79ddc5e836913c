from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple

from omnimap.common.errors import (
    AdapterMissingError,
    ConnectionUnknownError,
    DocumentMissingIdError,
    FieldNotWritableError,
    MassMutationNotAllowedError,
    UpdatePayloadMissingError,
)
from omnimap.common.logger import get_logger, operation_scope
from omnimap.connections.registry import ConnectionRegistry
from omnimap.schema.models import CURRENT_DATETIME, DeleteType, SchemaDef
from omnimap.schema.registry import SchemaRegistry
from omnimap_adapter_sdk import DocumentAdapter, Filter, QueryOptions, SortSpec, TransactionHandle

logger = get_logger(__name__)

STAGES = ("select", "insert", "update", "delete")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QueryBuilder:
    """
    Fluent read / write builder for one schema.

    A builder is owned by a single in-flight operation: clause setters mutate
    it and a terminal method (``get``, ``insert``, ``update``, ``delete``...)
    resolves the schema, the connection and the adapter, then awaits the
    adapter once per affected document.
    """

    def __init__(
        self,
        name: str,
        connections: ConnectionRegistry,
        schemas: SchemaRegistry,
        connection: Optional[str] = None,
    ):
        self._name = name
        self._connections = connections
        self._schemas = schemas
        self._connection = connection
        self._filters: List[Filter] = []
        self._raw_where: Optional[str] = None
        self._sort: List[SortSpec] = []
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None
        self._fields: Optional[List[str]] = None
        self._pending: Optional[Dict[str, Any]] = None
        self._transaction: Optional[TransactionHandle] = None
        self._stage: Optional[Tuple[str, Any]] = None

    @property
    def name(self) -> str:
        return self._name

    # clauses

    def where(self, field: Any, value: Any = None, operator: Optional[str] = None) -> "QueryBuilder":
        """
        Adds AND-ed conditions. Accepts ``where("age", 18, ">")``,
        ``where(("name", "Ada"))`` or ``where({"name": "Ada", "active": True})``.
        """
        if isinstance(field, Mapping):
            for key, v in field.items():
                self._filters.append(Filter(field=key, value=v))
        elif isinstance(field, (tuple, list)):
            key, v = field
            self._filters.append(Filter(field=key, value=v))
        else:
            self._filters.append(Filter(field=field, operator=operator or "=", value=value))
        return self

    def where_complex(self, raw: str) -> "QueryBuilder":
        """Sets a backend-native condition passed through verbatim."""
        self._raw_where = raw
        return self

    where_raw = where_complex

    def order_by(self, field: str, direction: str = "asc") -> "QueryBuilder":
        self._sort.append(SortSpec(field=field, direction=direction))
        return self

    def limit(self, n: Optional[int]) -> "QueryBuilder":
        self._limit = n
        return self

    def offset(self, n: Optional[int]) -> "QueryBuilder":
        self._offset = n
        return self

    def select(self, *fields: str) -> "QueryBuilder":
        if len(fields) == 1 and isinstance(fields[0], (list, tuple)):
            fields = tuple(fields[0])
        self._fields = list(fields) or None
        return self

    select_fields = select

    def set(self, data: Mapping[str, Any]) -> "QueryBuilder":
        self._pending = dict(data)
        return self

    to = set

    def using(self, transaction: Optional[TransactionHandle]) -> "QueryBuilder":
        """Routes reads and writes of this builder through a transaction handle."""
        self._transaction = transaction
        return self

    def stage(self, action: str, data: Any = None) -> "QueryBuilder":
        """Stages the action executed by ``run()``."""
        if action not in STAGES:
            raise ValueError(f"Unknown action '{action}'. Expected one of {STAGES}")
        self._stage = (action, data)
        if action == "update" and data is not None:
            self.set(data)
        return self

    # resolution

    def _schema(self) -> SchemaDef:
        return self._schemas.use(self._name)

    def _adapter(self, schema: SchemaDef) -> DocumentAdapter:
        target = self._connection or schema.connection_name
        config = self._connections.resolve(target)
        if config is None:
            raise ConnectionUnknownError(target)
        adapter = self._connections.get_adapter(config.name)
        if adapter is None:
            raise AdapterMissingError(config.name)
        if self._transaction is not None and self._transaction.connection_name != config.name:
            raise ValueError(
                f"Transaction belongs to '{self._transaction.connection_name}', "
                f"but '{self._name}' routes to '{config.name}'"
            )
        return adapter

    def _options(self, schema: SchemaDef, projection: bool = True) -> QueryOptions:
        if self._raw_where and self._filters:
            logger.warning(
                f"Raw condition combined with structured filters on '{self._name}'; "
                f"backends differ in how they combine them"
            )
        return QueryOptions(
            collection=schema.collection_name,
            filters=list(self._filters),
            raw_where=self._raw_where,
            sort=list(self._sort),
            limit=self._limit,
            offset=self._offset,
            fields=self._fields if projection else None,
        )

    # reads

    async def get(self) -> List[Dict[str, Any]]:
        with operation_scope("select"):
            schema = self._schema()
            adapter = self._adapter(schema)
            return await adapter.get(self._options(schema), transaction=self._transaction)

    async def get_one(self) -> Optional[Dict[str, Any]]:
        with operation_scope("select"):
            schema = self._schema()
            adapter = self._adapter(schema)
            return await adapter.get_one(self._options(schema), transaction=self._transaction)

    # writes

    def _insert_payload(self, schema: SchemaDef, data: Mapping[str, Any]) -> Dict[str, Any]:
        payload = dict(data)
        if schema.insertable_fields:
            rejected = set(payload) - schema.insertable_fields
            if rejected:
                raise FieldNotWritableError(schema.name, rejected, "insertable")
        elif schema.has_structure and not schema.allow_undefined_fields:
            payload = {k: v for k, v in payload.items() if k in schema.fields_map}

        for field in schema.fields:
            if field.name not in payload and field.default_value is not None:
                payload[field.name] = utcnow() if field.default_value == CURRENT_DATETIME else field.default_value
        return payload

    def _update_payload(self, schema: SchemaDef, data: Mapping[str, Any]) -> Dict[str, Any]:
        payload = dict(data)
        if schema.updatable_fields:
            rejected = set(payload) - schema.updatable_fields
            if rejected:
                raise FieldNotWritableError(schema.name, rejected, "updatable")
        elif schema.has_structure and not schema.allow_undefined_fields:
            payload = {k: v for k, v in payload.items() if k in schema.fields_map}
        if not payload:
            raise UpdatePayloadMissingError(self._name)
        return payload

    def _guard(self, schema: SchemaDef, operation: str) -> None:
        if self._filters or self._raw_where:
            return
        allowed = schema.mass_edit_allowed if operation == "update" else schema.mass_delete_allowed
        if not allowed:
            raise MassMutationNotAllowedError(schema.name, operation)

    async def _for_each(
        self,
        schema: SchemaDef,
        action: Callable[[DocumentAdapter, Any], Awaitable[None]],
    ) -> int:
        adapter = self._adapter(schema)
        documents = await adapter.get(self._options(schema, projection=False), transaction=self._transaction)
        for document in documents:
            document_id = document.get(adapter.id_field)
            if document_id is None:
                raise DocumentMissingIdError(self._name, adapter.id_field)
            await action(adapter, document_id)
        return len(documents)

    async def insert(self, data: Optional[Mapping[str, Any]] = None) -> str:
        """Inserts one document and returns its id. Unknown schema names are auto-registered."""
        with operation_scope("insert"):
            schema = self._schemas.ensure(self._name)
            payload = self._insert_payload(schema, data if data is not None else (self._pending or {}))
            adapter = self._adapter(schema)
            document_id = await adapter.add_document(schema.collection_name, payload, transaction=self._transaction)
            logger.debug(f"Inserted '{document_id}' into '{self._name}'")
            return document_id

    add = insert

    async def update(self, data: Optional[Mapping[str, Any]] = None) -> int:
        """Updates every matching document; returns how many were updated."""
        with operation_scope("update"):
            if data is not None:
                self.set(data)
            if not self._pending:
                raise UpdatePayloadMissingError(self._name)
            schema = self._schema()
            changes = self._update_payload(schema, self._pending)
            self._guard(schema, "update")
            collection = schema.collection_name

            async def apply(adapter: DocumentAdapter, document_id: Any) -> None:
                await adapter.update_document(collection, document_id, changes, transaction=self._transaction)

            count = await self._for_each(schema, apply)
            logger.debug(f"Updated {count} document(s) in '{self._name}'")
            return count

    async def update_one(self, data: Optional[Mapping[str, Any]] = None) -> int:
        self._limit = 1
        return await self.update(data)

    async def delete(self) -> int:
        """
        Deletes every matching document; returns how many were affected.
        Soft-delete schemas get their marker field set instead.
        """
        with operation_scope("delete"):
            schema = self._schema()
            self._guard(schema, "delete")
            collection = schema.collection_name

            if schema.delete_type is DeleteType.SOFT:
                marker = {schema.soft_delete_field: utcnow()}

                async def apply(adapter: DocumentAdapter, document_id: Any) -> None:
                    await adapter.update_document(collection, document_id, marker, transaction=self._transaction)

            else:

                async def apply(adapter: DocumentAdapter, document_id: Any) -> None:
                    await adapter.delete_document(collection, document_id, transaction=self._transaction)

            count = await self._for_each(schema, apply)
            logger.debug(f"Deleted {count} document(s) from '{self._name}' ({schema.delete_type.value})")
            return count

    async def delete_one(self) -> int:
        self._limit = 1
        return await self.delete()

    async def run(self) -> Any:
        """Executes the staged action."""
        if self._stage is None:
            return await self.get()
        action, data = self._stage
        if action == "select":
            return await self.get()
        if action == "insert":
            return await self.insert(data)
        if action == "update":
            return await self.update()
        return await self.delete()
