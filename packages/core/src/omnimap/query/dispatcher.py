from typing import Any, Mapping, Optional

from omnimap.connections.registry import ConnectionRegistry
from omnimap.query.builder import QueryBuilder
from omnimap.schema.registry import SchemaRegistry


class Dispatcher:
    """Entry point of the statement-style API: ``ctx.base("users").select("name").where(...).run()``."""

    def __init__(
        self,
        target: str,
        connections: ConnectionRegistry,
        schemas: SchemaRegistry,
        connection: Optional[str] = None,
    ):
        self._target = target
        self._connections = connections
        self._schemas = schemas
        self._connection = connection

    def _builder(self) -> QueryBuilder:
        return QueryBuilder(self._target, self._connections, self._schemas, connection=self._connection)

    def select(self, *fields: str) -> QueryBuilder:
        return self._builder().select(*fields).stage("select")

    def insert(self, data: Mapping[str, Any]) -> QueryBuilder:
        return self._builder().stage("insert", dict(data))

    def update(self, data: Mapping[str, Any]) -> QueryBuilder:
        return self._builder().stage("update", dict(data))

    def delete(self) -> QueryBuilder:
        return self._builder().stage("delete")
