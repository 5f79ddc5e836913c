from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, List, Optional

from pydantic import BaseModel

if TYPE_CHECKING:
    from omnimap.migrations.migrator import TableMigrator


class ColumnMode(str, Enum):
    CREATE = "create"
    MODIFY = "modify"


class ForeignKeyRef(BaseModel):
    table: str
    column: str


class ColumnDefinition(BaseModel):
    """In-progress definition of one column."""

    name: str
    type: str = "string"
    length: Optional[int] = None
    is_primary: bool = False
    is_unique: bool = False
    not_null: bool = False
    auto_increment: bool = False
    has_default: bool = False
    default_value: Any = None
    enum_values: List[Any] = []
    foreign_key: Optional[ForeignKeyRef] = None


class ColumnBuilder:
    """
    Chainable column intent setters.

    The owning ``TableMigrator`` has already queued the matching action
    (``AddColumn`` for create mode, ``ModifyColumn`` for modify mode); the
    definition is read when the migrator renders, so setters may be chained
    any time before ``exec()``.
    """

    def __init__(self, name: str, migrator: Optional["TableMigrator"] = None, mode: ColumnMode = ColumnMode.CREATE):
        self._definition = ColumnDefinition(name=name)
        self._migrator = migrator
        self.mode = mode

    @property
    def name(self) -> str:
        return self._definition.name

    def type(self, column_type: str) -> "ColumnBuilder":
        self._definition.type = column_type
        return self

    def length(self, length: int) -> "ColumnBuilder":
        self._definition.length = length
        return self

    def is_primary(self) -> "ColumnBuilder":
        self._definition.is_primary = True
        return self

    def is_unique(self) -> "ColumnBuilder":
        self._definition.is_unique = True
        return self

    unique = is_unique

    def not_null(self) -> "ColumnBuilder":
        self._definition.not_null = True
        return self

    def is_nullable(self) -> "ColumnBuilder":
        self._definition.not_null = False
        return self

    def auto_increment(self) -> "ColumnBuilder":
        self._definition.auto_increment = True
        return self

    def default(self, value: Any) -> "ColumnBuilder":
        self._definition.has_default = True
        self._definition.default_value = value
        return self

    def values(self, enum_values: List[Any]) -> "ColumnBuilder":
        self._definition.enum_values = list(enum_values)
        return self

    def foreign_key(self, table: str, column: str) -> "ColumnBuilder":
        self._definition.foreign_key = ForeignKeyRef(table=table, column=column)
        return self

    def drop_unique(self) -> "ColumnBuilder":
        if self._migrator is not None:
            self._migrator.drop_unique(self.name)
        return self

    def drop_primary_key(self) -> "ColumnBuilder":
        if self._migrator is not None:
            self._migrator.drop_primary_key(self.name)
        return self

    def drop(self) -> "ColumnBuilder":
        if self._migrator is not None:
            self._migrator.drop_column(self.name)
        return self

    def get_definition(self) -> ColumnDefinition:
        """Returns a snapshot; later setter calls do not change it."""
        return self._definition.model_copy(deep=True)
