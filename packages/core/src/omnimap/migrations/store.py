"""
JSON persistence of migration records and their execution log.

Layout (camelCase on disk)::

    {
      "migrations": {"<id>": {"id", "name", "timestamp", "status", "up", "down",
                              "executedAt"?, "checksum"?}},
      "logs": [{"migrationId", "timestamp", "action", "status", "duration", "message"}],
      "settings": {"migrationsDirectory", "migrationsTable", "autoRun"}
    }

``logs`` is append-only.
"""
import json
import os
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from omnimap.common.logger import get_logger

logger = get_logger(__name__)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MigrationStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


class MigrationRecord(_CamelModel):
    id: str
    name: str
    timestamp: str
    status: MigrationStatus = MigrationStatus.PENDING
    up: str
    down: str
    executed_at: Optional[str] = None
    checksum: Optional[str] = None


class MigrationLog(_CamelModel):
    migration_id: str
    timestamp: str = Field(default_factory=now_iso)
    action: str
    status: str
    duration: float = 0.0
    message: str = ""


class MigrationSettings(_CamelModel):
    migrations_directory: str = "migrations"
    migrations_table: str = "omnimap_migrations"
    auto_run: bool = False


class MigrationDocument(_CamelModel):
    migrations: Dict[str, MigrationRecord] = Field(default_factory=dict)
    logs: List[MigrationLog] = Field(default_factory=list)
    settings: MigrationSettings = Field(default_factory=MigrationSettings)


class MigrationStore:
    """Reads and writes the migration document; a missing file reads as empty."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> MigrationDocument:
        if not self.path.exists():
            return MigrationDocument()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return MigrationDocument.model_validate(json.load(f))
        except (json.JSONDecodeError, ValidationError) as e:
            raise ValueError(f"Invalid migrations file {self.path}: {e}") from e

    def save(self, document: MigrationDocument) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(document.model_dump(mode="json", by_alias=True, exclude_none=True), f, indent=2)
        os.replace(tmp, self.path)

    def put(self, record: MigrationRecord) -> MigrationDocument:
        document = self.load()
        document.migrations[record.id] = record
        self.save(document)
        return document

    def append_log(self, entry: MigrationLog) -> None:
        document = self.load()
        document.logs.append(entry)
        self.save(document)
