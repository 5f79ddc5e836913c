from .actions import (
    AddColumn,
    DropColumn,
    DropPrimaryKey,
    DropTable,
    DropUnique,
    MigrationAction,
    ModifyColumn,
    Truncate,
)
from .column import ColumnBuilder, ColumnDefinition, ColumnMode, ForeignKeyRef
from .dialects import MigrationMode, get_dialect
from .migrator import TableMigrator
from .runner import MigrationRunner
from .store import MigrationDocument, MigrationLog, MigrationRecord, MigrationStatus, MigrationStore

__all__ = [
    "AddColumn",
    "DropColumn",
    "DropPrimaryKey",
    "DropTable",
    "DropUnique",
    "MigrationAction",
    "ModifyColumn",
    "Truncate",
    "ColumnBuilder",
    "ColumnDefinition",
    "ColumnMode",
    "ForeignKeyRef",
    "MigrationMode",
    "get_dialect",
    "TableMigrator",
    "MigrationRunner",
    "MigrationDocument",
    "MigrationLog",
    "MigrationRecord",
    "MigrationStatus",
    "MigrationStore",
]
