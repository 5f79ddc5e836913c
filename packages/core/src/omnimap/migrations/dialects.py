"""
Renders queued migration actions into backend statements.

Relational dialects emit SQL strings, the Mongo dialect emits database
commands (dicts accepted by ``db.command``), Firestore is schemaless and emits
nothing. Rendering never touches a backend, so an unsupported action fails
before any statement runs.
"""
from enum import Enum
from typing import Any, Dict, List, Sequence

from omnimap.common.errors import UnsupportedMigrationError
from omnimap.connections.models import ConnectionType
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
from omnimap.migrations.column import ColumnDefinition
from omnimap.schema.models import CURRENT_DATETIME


class MigrationMode(str, Enum):
    CREATE = "create"
    UPDATE = "update"


class Dialect:
    """Base renderer; subclasses decide how each action is expressed."""

    name = "generic"

    def render(self, table: str, mode: MigrationMode, actions: Sequence[MigrationAction]) -> List[Any]:
        raise NotImplementedError


class SqlDialect(Dialect):
    quote_char = '"'
    type_map: Dict[str, str] = {}
    string_type = "VARCHAR({length})"
    default_length = 255

    def quote(self, identifier: str) -> str:
        q = self.quote_char
        return f"{q}{identifier.replace(q, q + q)}{q}"

    def literal(self, value: Any) -> str:
        if value is None:
            return "NULL"
        if value == CURRENT_DATETIME:
            return "CURRENT_TIMESTAMP"
        if isinstance(value, bool):
            return "TRUE" if value else "FALSE"
        if isinstance(value, (int, float)):
            return str(value)
        escaped = str(value).replace("'", "''")
        return f"'{escaped}'"

    def column_type(self, column: ColumnDefinition) -> str:
        key = column.type.lower()
        if key == "string":
            return self.string_type.format(length=column.length or self.default_length)
        if key in self.type_map:
            return self.type_map[key]
        # Native type names (JSON, UUID, BIGINT...) pass through.
        return column.type.upper()

    def enum_clause(self, column: ColumnDefinition) -> str:
        values = ", ".join(self.literal(v) for v in column.enum_values)
        return f"CHECK ({self.quote(column.name)} IN ({values}))"

    def auto_increment(self, column: ColumnDefinition, type_sql: str) -> str:
        raise NotImplementedError

    def column_sql(self, column: ColumnDefinition, inline_reference: bool = False) -> str:
        type_sql = self.column_type(column)
        parts = [self.quote(column.name)]
        if column.auto_increment:
            parts.append(self.auto_increment(column, type_sql))
        else:
            parts.append(type_sql)
            if column.is_primary:
                parts.append("PRIMARY KEY")
        if column.not_null and not column.is_primary:
            parts.append("NOT NULL")
        if column.is_unique and not column.is_primary:
            parts.append("UNIQUE")
        if column.has_default:
            parts.append(f"DEFAULT {self.literal(column.default_value)}")
        check = self.enum_clause(column) if column.enum_values else ""
        if check:
            parts.append(check)
        if inline_reference and column.foreign_key is not None:
            parts.append(self.references(column))
        return " ".join(parts)

    def references(self, column: ColumnDefinition) -> str:
        ref = column.foreign_key
        return f"REFERENCES {self.quote(ref.table)} ({self.quote(ref.column)})"

    def create_table(self, table: str, columns: List[ColumnDefinition]) -> str:
        lines = [self.column_sql(c) for c in columns]
        lines.extend(
            f"FOREIGN KEY ({self.quote(c.name)}) {self.references(c)}" for c in columns if c.foreign_key is not None
        )
        body = ",\n  ".join(lines)
        return f"CREATE TABLE IF NOT EXISTS {self.quote(table)} (\n  {body}\n)"

    def alter(self, table: str) -> str:
        return f"ALTER TABLE {self.quote(table)}"

    def add_column(self, table: str, column: ColumnDefinition) -> str:
        return f"{self.alter(table)} ADD COLUMN {self.column_sql(column, True)}"

    def modify_column(self, table: str, column: ColumnDefinition) -> List[str]:
        raise NotImplementedError

    def drop_unique(self, table: str, column: str) -> str:
        raise NotImplementedError

    def drop_primary_key(self, table: str, column: str) -> str:
        raise NotImplementedError

    def truncate(self, table: str) -> str:
        return f"TRUNCATE TABLE {self.quote(table)}"

    def render(self, table: str, mode: MigrationMode, actions: Sequence[MigrationAction]) -> List[Any]:
        statements: List[Any] = []
        created = False
        for action in actions:
            if isinstance(action, AddColumn) and mode is MigrationMode.CREATE:
                if not created:
                    columns = [a.definition for a in actions if isinstance(a, AddColumn)]
                    statements.append(self.create_table(table, columns))
                    created = True
            elif isinstance(action, AddColumn):
                statements.append(self.add_column(table, action.definition))
            elif isinstance(action, ModifyColumn):
                statements.extend(self.modify_column(table, action.definition))
            elif isinstance(action, DropColumn):
                statements.append(f"{self.alter(table)} DROP COLUMN {self.quote(action.name)}")
            elif isinstance(action, DropUnique):
                statements.append(self.drop_unique(table, action.name))
            elif isinstance(action, DropPrimaryKey):
                statements.append(self.drop_primary_key(table, action.name))
            elif isinstance(action, DropTable):
                statements.append(f"DROP TABLE IF EXISTS {self.quote(table)}")
            elif isinstance(action, Truncate):
                statements.append(self.truncate(table))
        return statements


class MysqlDialect(SqlDialect):
    name = "mysql"
    quote_char = "`"
    type_map = {
        "text": "TEXT",
        "int": "INT",
        "integer": "INT",
        "number": "DECIMAL(10,2)",
        "boolean": "TINYINT(1)",
        "date": "DATETIME",
        "datetime": "DATETIME",
    }

    def literal(self, value: Any) -> str:
        if isinstance(value, bool):
            return "1" if value else "0"
        return super().literal(value)

    def column_type(self, column: ColumnDefinition) -> str:
        if column.enum_values:
            return f"ENUM({', '.join(self.literal(v) for v in column.enum_values)})"
        return super().column_type(column)

    def enum_clause(self, column: ColumnDefinition) -> str:
        # ENUM already constrains the values.
        return ""

    def auto_increment(self, column: ColumnDefinition, type_sql: str) -> str:
        suffix = " PRIMARY KEY" if column.is_primary else ""
        return f"{type_sql} AUTO_INCREMENT{suffix}"

    def modify_column(self, table: str, column: ColumnDefinition) -> List[str]:
        return [f"{self.alter(table)} MODIFY COLUMN {self.column_sql(column)}"]

    def drop_unique(self, table: str, column: str) -> str:
        return f"{self.alter(table)} DROP INDEX {self.quote(column)}"

    def drop_primary_key(self, table: str, column: str) -> str:
        return f"{self.alter(table)} DROP PRIMARY KEY"


class PostgresDialect(SqlDialect):
    name = "postgres"
    type_map = {
        "text": "TEXT",
        "int": "INTEGER",
        "integer": "INTEGER",
        "number": "NUMERIC(10,2)",
        "boolean": "BOOLEAN",
        "date": "TIMESTAMP",
        "datetime": "TIMESTAMP",
    }

    def auto_increment(self, column: ColumnDefinition, type_sql: str) -> str:
        serial = "BIGSERIAL" if type_sql == "BIGINT" else "SERIAL"
        return f"{serial} PRIMARY KEY" if column.is_primary else serial

    def modify_column(self, table: str, column: ColumnDefinition) -> List[str]:
        prefix = f"{self.alter(table)} ALTER COLUMN {self.quote(column.name)}"
        type_sql = self.column_type(column)
        statements = [f"{prefix} TYPE {type_sql} USING {self.quote(column.name)}::{type_sql}"]
        statements.append(f"{prefix} SET NOT NULL" if column.not_null else f"{prefix} DROP NOT NULL")
        if column.has_default:
            statements.append(f"{prefix} SET DEFAULT {self.literal(column.default_value)}")
        if column.is_unique:
            statements.append(
                f"{self.alter(table)} ADD CONSTRAINT {self.quote(f'{table}_{column.name}_key')} "
                f"UNIQUE ({self.quote(column.name)})"
            )
        return statements

    def drop_unique(self, table: str, column: str) -> str:
        return f"{self.alter(table)} DROP CONSTRAINT {self.quote(f'{table}_{column}_key')}"

    def drop_primary_key(self, table: str, column: str) -> str:
        return f"{self.alter(table)} DROP CONSTRAINT {self.quote(f'{table}_pkey')}"


class SqliteDialect(SqlDialect):
    name = "sqlite"
    string_type = "TEXT"
    type_map = {
        "text": "TEXT",
        "int": "INTEGER",
        "integer": "INTEGER",
        "number": "REAL",
        "boolean": "INTEGER",
        "date": "TEXT",
        "datetime": "TEXT",
    }

    def literal(self, value: Any) -> str:
        if isinstance(value, bool):
            return "1" if value else "0"
        return super().literal(value)

    def auto_increment(self, column: ColumnDefinition, type_sql: str) -> str:
        if not column.is_primary:
            raise UnsupportedMigrationError(
                f"SQLite only auto-increments INTEGER PRIMARY KEY columns ('{column.name}' is not primary)"
            )
        return "INTEGER PRIMARY KEY AUTOINCREMENT"

    def add_column(self, table: str, column: ColumnDefinition) -> str:
        # SQLite restricts which columns ALTER TABLE ADD COLUMN accepts.
        where = f"'{table}.{column.name}'"
        if column.is_primary or column.is_unique:
            raise UnsupportedMigrationError(f"SQLite cannot add a PRIMARY KEY or UNIQUE column {where}")
        if column.not_null and (not column.has_default or column.default_value is None):
            raise UnsupportedMigrationError(f"SQLite cannot add a NOT NULL column without a default {where}")
        if column.has_default and column.default_value == CURRENT_DATETIME:
            raise UnsupportedMigrationError(f"SQLite cannot add a column with a non-constant default {where}")
        return super().add_column(table, column)

    def modify_column(self, table: str, column: ColumnDefinition) -> List[str]:
        raise UnsupportedMigrationError(f"SQLite cannot modify column '{table}.{column.name}' in place")

    def drop_unique(self, table: str, column: str) -> str:
        raise UnsupportedMigrationError(f"SQLite cannot drop the unique constraint of '{table}.{column}'")

    def drop_primary_key(self, table: str, column: str) -> str:
        raise UnsupportedMigrationError(f"SQLite cannot drop the primary key of '{table}'")

    def truncate(self, table: str) -> str:
        return f"DELETE FROM {self.quote(table)}"


class MongoDialect(Dialect):
    """Collections are schemaless; only collection-level actions produce commands."""

    name = "mongo"

    def render(self, table: str, mode: MigrationMode, actions: Sequence[MigrationAction]) -> List[Any]:
        commands: List[Any] = []
        if mode is MigrationMode.CREATE:
            commands.append({"create": table})
            unique = [a.definition.name for a in actions if isinstance(a, AddColumn) and a.definition.is_unique]
            if unique:
                commands.append(
                    {
                        "createIndexes": table,
                        "indexes": [{"key": {name: 1}, "name": f"{name}_1", "unique": True} for name in unique],
                    }
                )
        for action in actions:
            if isinstance(action, DropTable):
                commands.append({"drop": table})
            elif isinstance(action, Truncate):
                commands.append({"delete": table, "deletes": [{"q": {}, "limit": 0}]})
        return commands


class FirestoreDialect(Dialect):
    name = "firestore"

    def render(self, table: str, mode: MigrationMode, actions: Sequence[MigrationAction]) -> List[Any]:
        return []


class ApiDialect(Dialect):
    name = "api"

    def render(self, table: str, mode: MigrationMode, actions: Sequence[MigrationAction]) -> List[Any]:
        raise UnsupportedMigrationError(f"API connections do not support schema migrations (target '{table}')")


_DIALECTS = {
    ConnectionType.MYSQL: MysqlDialect,
    ConnectionType.POSTGRES: PostgresDialect,
    ConnectionType.SQLITE: SqliteDialect,
    ConnectionType.MONGO: MongoDialect,
    ConnectionType.FIRESTORE: FirestoreDialect,
    ConnectionType.API: ApiDialect,
}


def get_dialect(connection_type: ConnectionType) -> Dialect:
    return _DIALECTS[ConnectionType.parse(connection_type)]()
