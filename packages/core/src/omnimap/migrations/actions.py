"""Queued migration intents, rendered by a dialect on ``TableMigrator.exec()``."""
from dataclasses import dataclass
from typing import ClassVar, Union

from omnimap.migrations.column import ColumnBuilder, ColumnDefinition


@dataclass(frozen=True)
class AddColumn:
    column: ColumnBuilder
    kind: ClassVar[str] = "add_column"

    @property
    def definition(self) -> ColumnDefinition:
        return self.column.get_definition()


@dataclass(frozen=True)
class ModifyColumn:
    column: ColumnBuilder
    kind: ClassVar[str] = "modify_column"

    @property
    def name(self) -> str:
        return self.column.name

    @property
    def definition(self) -> ColumnDefinition:
        return self.column.get_definition()


@dataclass(frozen=True)
class DropColumn:
    name: str
    kind: ClassVar[str] = "drop_column"


@dataclass(frozen=True)
class DropUnique:
    name: str
    kind: ClassVar[str] = "drop_unique"


@dataclass(frozen=True)
class DropPrimaryKey:
    name: str
    kind: ClassVar[str] = "drop_primary_key"


@dataclass(frozen=True)
class DropTable:
    kind: ClassVar[str] = "drop_table"


@dataclass(frozen=True)
class Truncate:
    kind: ClassVar[str] = "truncate"


MigrationAction = Union[AddColumn, ModifyColumn, DropColumn, DropUnique, DropPrimaryKey, DropTable, Truncate]
