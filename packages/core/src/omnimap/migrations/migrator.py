from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from omnimap.common.errors import (
    AdapterMissingError,
    CapabilityMissingError,
    ConnectionUnknownError,
    SchemaConfigurationError,
)
from omnimap.common.logger import get_logger, operation_scope
from omnimap.connections.registry import DEFAULT_CONNECTION, ConnectionRegistry
from omnimap.migrations.actions import (
    AddColumn,
    DropColumn,
    DropPrimaryKey,
    DropTable,
    DropUnique,
    MigrationAction,
    ModifyColumn,
    Truncate,
)
from omnimap.migrations.column import ColumnBuilder, ColumnDefinition, ColumnMode
from omnimap.migrations.dialects import MigrationMode, get_dialect
from omnimap.schema.models import FieldDefinition, FieldType
from omnimap.schema.registry import SchemaRegistry
from omnimap_adapter_sdk import RawQueryable

logger = get_logger(__name__)

_FIELD_TYPES = {
    "string": FieldType.STRING,
    "text": FieldType.STRING,
    "int": FieldType.INT,
    "integer": FieldType.INT,
    "bigint": FieldType.INT,
    "number": FieldType.NUMBER,
    "float": FieldType.NUMBER,
    "decimal": FieldType.NUMBER,
    "boolean": FieldType.BOOLEAN,
    "bool": FieldType.BOOLEAN,
    "date": FieldType.DATE,
    "datetime": FieldType.DATE,
    "timestamp": FieldType.DATE,
}


def to_field(column: ColumnDefinition) -> FieldDefinition:
    """Maps a column definition onto the schema field it produces."""
    ref = column.foreign_key
    return FieldDefinition(
        name=column.name,
        type=_FIELD_TYPES.get(column.type.lower(), FieldType.STRING),
        nullable=not (column.not_null or column.is_primary),
        auto_increment=column.auto_increment,
        is_unique=column.is_unique or column.is_primary,
        is_foreign_key=ref is not None,
        foreign_ref=f"{ref.table}.{ref.column}" if ref is not None else None,
        default_value=column.default_value if column.has_default else None,
        enum_values=list(column.enum_values) or None,
    )


class TableMigrator:
    """
    Accumulates DDL intents for one table / collection.

    Nothing touches the backend until ``exec()``, which renders every queued
    action through the connection's dialect before running the first
    statement, then issues them in call order through the adapter's ``raw``.
    A statement failure propagates unchanged; statements already issued stay
    applied. On success the schema named after the table is synchronized and
    the queue is cleared.
    """

    def __init__(
        self,
        table: str,
        connections: ConnectionRegistry,
        schemas: SchemaRegistry,
        connection: Optional[str] = None,
    ):
        self._table = table
        self._connections = connections
        self._schemas = schemas
        self._connection = connection
        self._mode = MigrationMode.UPDATE
        self._actions: List[MigrationAction] = []

    @property
    def table(self) -> str:
        return self._table

    @property
    def mode(self) -> MigrationMode:
        return self._mode

    @property
    def actions(self) -> Tuple[MigrationAction, ...]:
        return tuple(self._actions)

    # stages

    def create(self) -> "TableMigrator":
        self._mode = MigrationMode.CREATE
        return self

    def update(self) -> "TableMigrator":
        self._mode = MigrationMode.UPDATE
        return self

    def drop(self) -> "TableMigrator":
        self._actions.append(DropTable())
        return self

    def truncate(self) -> "TableMigrator":
        self._actions.append(Truncate())
        return self

    def use_connection(self, name: str) -> "TableMigrator":
        self._connection = name
        return self

    # column actions

    def add_column(self, name: str) -> ColumnBuilder:
        column = ColumnBuilder(name, self, ColumnMode.CREATE)
        self._actions.append(AddColumn(column))
        return column

    def select_column(self, name: str) -> ColumnBuilder:
        """Starts modifying an existing column; the builder describes its new definition."""
        column = ColumnBuilder(name, self, ColumnMode.MODIFY)
        self._actions.append(ModifyColumn(column))
        return column

    modify_column = select_column

    def drop_column(self, name: str) -> "TableMigrator":
        self._actions.append(DropColumn(name))
        return self

    def drop_unique(self, name: str) -> "TableMigrator":
        self._actions.append(DropUnique(name))
        return self

    def drop_primary_key(self, name: str) -> "TableMigrator":
        self._actions.append(DropPrimaryKey(name))
        return self

    # execution

    def render(self) -> Tuple[str, List[Any]]:
        """Returns the resolved connection name and the statements ``exec()`` would issue."""
        added = [a.definition.name for a in self._actions if isinstance(a, AddColumn)]
        if len(set(added)) != len(added):
            duplicates = sorted({name for name in added if added.count(name) > 1})
            raise SchemaConfigurationError(f"Columns {duplicates} are added more than once to '{self._table}'")
        config = self._connections.resolve(self._connection)
        if config is None:
            raise ConnectionUnknownError(self._connection or DEFAULT_CONNECTION)
        statements = get_dialect(config.type).render(self._table, self._mode, self._actions)
        return config.name, statements

    async def exec(self) -> List[Any]:
        """Runs the queued actions; returns one backend result per statement."""
        with operation_scope("migrate"):
            connection_name, statements = self.render()
            adapter = self._connections.get_adapter(connection_name)
            if adapter is None:
                raise AdapterMissingError(connection_name)
            if statements and not isinstance(adapter, RawQueryable):
                raise CapabilityMissingError(connection_name, "raw statements")

            results = []
            for statement in statements:
                logger.info(f"Migrating '{self._table}' on '{connection_name}': {statement}")
                results.append(await adapter.raw(statement))

            self._sync_schema(connection_name)
            logger.info(
                f"Applied {len(self._actions)} action(s) to '{self._table}' "
                f"({len(statements)} statement(s))"
            )
            self._actions.clear()
            return results

    def _sync_schema(self, connection_name: str) -> None:
        schema = self._schemas.ensure(self._table, connection=connection_name)
        if any(isinstance(a, DropTable) for a in self._actions):
            schema.replace_fields(())
            return

        # Create mode renders every AddColumn into the CREATE statement ahead of the other actions.
        columns = [a.definition for a in self._actions if isinstance(a, AddColumn)]
        if self._mode is MigrationMode.CREATE and columns:
            fields: Dict[str, FieldDefinition] = {c.name: to_field(c) for c in columns}
            remaining = [a for a in self._actions if not isinstance(a, AddColumn)]
        else:
            fields = dict(schema.fields_map)
            remaining = list(self._actions)

        for action in remaining:
            if isinstance(action, (AddColumn, ModifyColumn)):
                field = to_field(action.definition)
                fields[field.name] = field
            elif isinstance(action, DropColumn):
                fields.pop(action.name, None)
            elif isinstance(action, DropUnique) and action.name in fields:
                fields[action.name] = fields[action.name].model_copy(update={"is_unique": False})
        schema.replace_fields(fields.values())
