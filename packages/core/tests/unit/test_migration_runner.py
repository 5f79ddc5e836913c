import json
import types
import uuid

import pytest

from omnimap.common.errors import MigrationNotFoundError
from omnimap.migrations import MigrationRunner, MigrationStatus, MigrationStore
from omnimap.migrations.runner import checksum, resolve_callable

STEPS = '''
async def create_users(ctx):
    ctx.events.append("up:users")

async def drop_users(ctx):
    ctx.events.append("down:users")

async def create_posts(ctx):
    ctx.events.append("up:posts")

async def drop_posts(ctx):
    ctx.events.append("down:posts")

def sync_step(ctx):
    ctx.events.append("sync")

async def broken(ctx):
    raise RuntimeError("table exists")
'''


@pytest.fixture
def steps_module(tmp_path, monkeypatch):
    """Writes an importable module of migration steps and returns its name."""
    name = f"steps_{uuid.uuid4().hex[:8]}"
    (tmp_path / f"{name}.py").write_text(STEPS)
    monkeypatch.syspath_prepend(str(tmp_path))
    return name


@pytest.fixture
def runner(tmp_path):
    context = types.SimpleNamespace(events=[])
    return MigrationRunner(context, MigrationStore(tmp_path / "omnimap.migrations.json"))


def _create(runner, steps_module, name, up, down, migration_id=None):
    record = runner.create(name, f"{steps_module}:{up}", f"{steps_module}:{down}")
    if migration_id:
        # Creation timestamps share a second in tests; pin ids to get a stable order.
        document = runner.store.load()
        del document.migrations[record.id]
        record = record.model_copy(update={"id": migration_id})
        document.migrations[migration_id] = record
        runner.store.save(document)
    return record


def test_store_writes_camel_case_document(tmp_path, runner, steps_module):
    # Validates the persisted layout because other tooling reads this file.
    record = _create(runner, steps_module, "Create users", "create_users", "drop_users")

    data = json.loads((tmp_path / "omnimap.migrations.json").read_text())

    entry = data["migrations"][record.id]
    assert record.id.endswith("_create_users")
    assert entry["status"] == "pending"
    assert entry["checksum"] == checksum(entry["up"], entry["down"])
    assert "executedAt" not in entry
    assert data["logs"] == []
    assert data["settings"] == {
        "migrationsDirectory": "migrations",
        "migrationsTable": "omnimap_migrations",
        "autoRun": False,
    }


def test_missing_store_reads_empty(tmp_path):
    document = MigrationStore(tmp_path / "missing.json").load()

    assert document.migrations == {} and document.logs == []


def test_invalid_store_raises_value_error(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json")

    with pytest.raises(ValueError):
        MigrationStore(path).load()


@pytest.mark.asyncio
async def test_run_pending_applies_in_order_and_logs(runner, steps_module):
    # Arrange
    _create(runner, steps_module, "users", "create_users", "drop_users", "001_users")
    _create(runner, steps_module, "posts", "create_posts", "drop_posts", "002_posts")

    # Act
    applied = await runner.run_pending()

    # Assert
    assert [r.id for r in applied] == ["001_users", "002_posts"]
    assert runner.context.events == ["up:users", "up:posts"]
    assert runner.pending() == []
    assert all(r.executed_at for r in runner.status())
    logs = runner.store.load().logs
    assert [(entry.migration_id, entry.action, entry.status) for entry in logs] == [
        ("001_users", "up", "success"),
        ("002_posts", "up", "success"),
    ]
    assert all(entry.duration >= 0 for entry in logs)


@pytest.mark.asyncio
async def test_up_down_and_refresh(runner, steps_module):
    _create(runner, steps_module, "users", "create_users", "drop_users", "001_users")
    _create(runner, steps_module, "posts", "create_posts", "drop_posts", "002_posts")

    assert (await runner.up()).id == "001_users"
    assert (await runner.down()).status is MigrationStatus.ROLLED_BACK
    assert await runner.down() is None

    await runner.run_pending()
    runner.context.events.clear()
    await runner.refresh()

    assert runner.context.events == ["down:posts", "down:users", "up:users", "up:posts"]


@pytest.mark.asyncio
async def test_failure_marks_migration_and_reraises(runner, steps_module):
    # Validates failure bookkeeping because a failed step must stay visible and retryable.
    _create(runner, steps_module, "bad", "broken", "drop_users", "001_bad")

    with pytest.raises(RuntimeError, match="table exists"):
        await runner.up()

    record = runner.get("001_bad")
    assert record.status is MigrationStatus.FAILED
    assert runner.pending() == [record]
    last = runner.store.load().logs[-1]
    assert (last.status, last.message) == ("failed", "table exists")


@pytest.mark.asyncio
async def test_sync_steps_are_supported(runner, steps_module):
    _create(runner, steps_module, "sync", "sync_step", "sync_step")

    await runner.up()

    assert runner.context.events == ["sync"]


def test_get_unknown_migration(runner):
    with pytest.raises(MigrationNotFoundError):
        runner.get("nope")


def test_resolve_callable_validates_reference():
    with pytest.raises(ValueError):
        resolve_callable("no_colon_here")
    assert resolve_callable("json:dumps") is json.dumps
