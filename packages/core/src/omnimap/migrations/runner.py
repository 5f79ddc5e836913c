from __future__ import annotations

import hashlib
import importlib
import inspect
import re
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, List, Optional

from omnimap.common.errors import MigrationNotFoundError
from omnimap.common.logger import get_logger, operation_context
from omnimap.migrations.store import (
    MigrationLog,
    MigrationRecord,
    MigrationStatus,
    MigrationStore,
    now_iso,
)

if TYPE_CHECKING:
    from omnimap.context import MapperContext

logger = get_logger(__name__)


def checksum(up: str, down: str) -> str:
    return hashlib.sha256(f"{up}\n{down}".encode("utf-8")).hexdigest()


def resolve_callable(reference: str) -> Callable[..., Any]:
    """Imports a ``"package.module:function"`` reference."""
    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Invalid migration reference '{reference}', expected 'module:function'")
    target: Any = importlib.import_module(module_name)
    for part in attr.split("."):
        target = getattr(target, part)
    if not callable(target):
        raise TypeError(f"Migration reference '{reference}' is not callable")
    return target


class MigrationRunner:
    """
    Applies and rolls back migrations recorded in a ``MigrationStore``.

    Each migration names an ``up`` and a ``down`` callable (``async def fn(ctx)``)
    receiving the ``MapperContext``. Every execution appends a log entry with its
    duration; a failing step marks the migration failed and re-raises.
    """

    def __init__(self, context: "MapperContext", store: MigrationStore):
        self.context = context
        self.store = store

    def create(self, name: str, up: str, down: str) -> MigrationRecord:
        created = datetime.now(timezone.utc)
        slug = re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_") or "migration"
        record = MigrationRecord(
            id=f"{created:%Y%m%d%H%M%S}_{slug}",
            name=name,
            timestamp=created.isoformat(),
            up=up,
            down=down,
            checksum=checksum(up, down),
        )
        document = self.store.load()
        if record.id in document.migrations:
            raise ValueError(f"Migration '{record.id}' already exists")
        self.store.put(record)
        logger.info(f"Created migration {record.id}")
        return record

    def status(self) -> List[MigrationRecord]:
        document = self.store.load()
        return [document.migrations[k] for k in sorted(document.migrations)]

    def pending(self) -> List[MigrationRecord]:
        return [r for r in self.status() if r.status is not MigrationStatus.COMPLETED]

    def completed(self) -> List[MigrationRecord]:
        return [r for r in self.status() if r.status is MigrationStatus.COMPLETED]

    def get(self, migration_id: str) -> MigrationRecord:
        record = self.store.load().migrations.get(migration_id)
        if record is None:
            raise MigrationNotFoundError(migration_id)
        return record

    async def _execute(self, record: MigrationRecord, action: str) -> MigrationRecord:
        reference = record.up if action == "up" else record.down
        start = time.perf_counter()
        with operation_context(f"migration-{record.id}-{action}"):
            logger.info(f"Running {action} of {record.id}")
            try:
                fn = resolve_callable(reference)
                result = fn(self.context)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                duration = (time.perf_counter() - start) * 1000
                logger.error(f"Migration {record.id} {action} failed after {duration:.1f}ms: {e}")
                failed = record.model_copy(update={"status": MigrationStatus.FAILED})
                self.store.put(failed)
                self.store.append_log(
                    MigrationLog(
                        migration_id=record.id, action=action, status="failed", duration=duration, message=str(e)
                    )
                )
                raise

        duration = (time.perf_counter() - start) * 1000
        status = MigrationStatus.COMPLETED if action == "up" else MigrationStatus.ROLLED_BACK
        updated = record.model_copy(
            update={"status": status, "executed_at": now_iso(), "checksum": checksum(record.up, record.down)}
        )
        self.store.put(updated)
        self.store.append_log(
            MigrationLog(migration_id=record.id, action=action, status="success", duration=duration)
        )
        logger.info(f"Completed {action} of {record.id} in {duration:.1f}ms")
        return updated

    async def run_pending(self) -> List[MigrationRecord]:
        """Applies every pending migration in id order, stopping at the first failure."""
        applied = []
        for record in self.pending():
            applied.append(await self._execute(record, "up"))
        if not applied:
            logger.info("No pending migrations")
        return applied

    async def up(self) -> Optional[MigrationRecord]:
        """Applies the next pending migration."""
        pending = self.pending()
        if not pending:
            logger.info("No pending migrations")
            return None
        return await self._execute(pending[0], "up")

    async def down(self) -> Optional[MigrationRecord]:
        """Rolls back the latest completed migration."""
        completed = self.completed()
        if not completed:
            logger.info("No migrations to roll back")
            return None
        return await self._execute(completed[-1], "down")

    async def refresh(self) -> List[MigrationRecord]:
        """Rolls every completed migration back, newest first, then applies all of them."""
        for record in reversed(self.completed()):
            await self._execute(record, "down")
        return await self.run_pending()
