import pytest

from omnimap.common.errors import (
    AdapterMissingError,
    CapabilityMissingError,
    ConnectionUnknownError,
    SchemaConfigurationError,
    UnsupportedMigrationError,
)
from omnimap.connections.models import ConnectionType
from omnimap.migrations import (
    AddColumn,
    ColumnBuilder,
    DropColumn,
    MigrationMode,
    ModifyColumn,
    TableMigrator,
    get_dialect,
)
from omnimap.schema.models import FieldType


def _migrator(registries, table="users", connection=None):
    connections, schemas = registries
    return TableMigrator(table, connections, schemas, connection=connection)


def test_column_builder_snapshot_is_independent():
    column = ColumnBuilder("email").type("string").length(120).unique().not_null()

    snapshot = column.get_definition()
    column.is_nullable().default("n/a")

    assert snapshot.length == 120 and snapshot.is_unique and snapshot.not_null
    assert not snapshot.has_default
    assert column.get_definition().default_value == "n/a"


def test_actions_are_queued_in_call_order():
    # Validates FIFO queuing because statements must run in the order they were declared.
    migrator = TableMigrator("users", None, None)
    migrator.add_column("email").type("string")
    migrator.select_column("name").length(80)
    migrator.drop_column("legacy")

    kinds = [type(a) for a in migrator.actions]
    assert kinds == [AddColumn, ModifyColumn, DropColumn]
    assert isinstance(migrator.actions, tuple)


def test_column_drop_helpers_enqueue_on_owning_migrator():
    migrator = TableMigrator("users", None, None)

    migrator.select_column("email").drop_unique().drop_primary_key().drop()

    assert [a.kind for a in migrator.actions] == ["modify_column", "drop_unique", "drop_primary_key", "drop_column"]


def test_create_table_ddl_for_mysql():
    # Validates CREATE TABLE rendering because one statement must carry every column constraint.
    # Arrange
    migrator = TableMigrator("users", None, None).create()
    migrator.add_column("id").type("int").is_primary().auto_increment()
    migrator.add_column("email").type("string").unique().not_null()
    migrator.add_column("role").values(["admin", "member"]).default("member")
    migrator.add_column("team_id").type("int").foreign_key("teams", "id")

    # Act
    statements = get_dialect(ConnectionType.MYSQL).render("users", migrator.mode, migrator.actions)

    # Assert
    assert statements == [
        "CREATE TABLE IF NOT EXISTS `users` (\n"
        "  `id` INT AUTO_INCREMENT PRIMARY KEY,\n"
        "  `email` VARCHAR(255) NOT NULL UNIQUE,\n"
        "  `role` ENUM('admin', 'member') DEFAULT 'member',\n"
        "  `team_id` INT,\n"
        "  FOREIGN KEY (`team_id`) REFERENCES `teams` (`id`)\n"
        ")"
    ]


def test_create_table_ddl_for_postgres_and_sqlite():
    migrator = TableMigrator("users", None, None).create()
    migrator.add_column("id").type("int").is_primary().auto_increment()
    migrator.add_column("active").type("boolean").default(True)

    postgres = get_dialect("postgres").render("users", migrator.mode, migrator.actions)[0]
    sqlite = get_dialect("sqlite").render("users", migrator.mode, migrator.actions)[0]

    assert '"id" SERIAL PRIMARY KEY' in postgres
    assert '"active" BOOLEAN DEFAULT TRUE' in postgres
    assert '"id" INTEGER PRIMARY KEY AUTOINCREMENT' in sqlite
    assert '"active" INTEGER DEFAULT 1' in sqlite


def test_update_mode_renders_one_statement_per_action():
    migrator = TableMigrator("users", None, None).update()
    migrator.add_column("email").type("string")
    migrator.drop_column("legacy")
    migrator.drop_unique("email")
    migrator.drop_primary_key("id")

    statements = get_dialect("postgres").render("users", migrator.mode, migrator.actions)

    assert statements == [
        'ALTER TABLE "users" ADD COLUMN "email" VARCHAR(255)',
        'ALTER TABLE "users" DROP COLUMN "legacy"',
        'ALTER TABLE "users" DROP CONSTRAINT "users_email_key"',
        'ALTER TABLE "users" DROP CONSTRAINT "users_pkey"',
    ]


def test_modify_column_per_dialect():
    migrator = TableMigrator("users", None, None)
    migrator.select_column("name").type("string").length(80).not_null()

    mysql = get_dialect("mysql").render("users", migrator.mode, migrator.actions)
    postgres = get_dialect("postgres").render("users", migrator.mode, migrator.actions)

    assert mysql == ["ALTER TABLE `users` MODIFY COLUMN `name` VARCHAR(80) NOT NULL"]
    assert postgres[0] == 'ALTER TABLE "users" ALTER COLUMN "name" TYPE VARCHAR(80) USING "name"::VARCHAR(80)'
    assert postgres[1] == 'ALTER TABLE "users" ALTER COLUMN "name" SET NOT NULL'
    with pytest.raises(UnsupportedMigrationError):
        get_dialect("sqlite").render("users", migrator.mode, migrator.actions)


def test_drop_and_truncate_statements():
    migrator = TableMigrator("users", None, None).truncate().drop()

    assert get_dialect("mysql").render("users", migrator.mode, migrator.actions) == [
        "TRUNCATE TABLE `users`",
        "DROP TABLE IF EXISTS `users`",
    ]
    assert get_dialect("sqlite").render("users", migrator.mode, migrator.actions)[0] == 'DELETE FROM "users"'


def test_document_dialects():
    migrator = TableMigrator("events", None, None).create()
    migrator.add_column("key").unique()

    mongo = get_dialect("mongo").render("events", MigrationMode.CREATE, migrator.actions)

    assert mongo[0] == {"create": "events"}
    assert mongo[1]["indexes"][0] == {"key": {"key": 1}, "name": "key_1", "unique": True}
    assert get_dialect("firestore").render("events", MigrationMode.CREATE, migrator.actions) == []
    with pytest.raises(UnsupportedMigrationError):
        get_dialect("api").render("events", MigrationMode.CREATE, migrator.actions)


def test_string_defaults_are_escaped():
    migrator = TableMigrator("t", None, None).update()
    migrator.add_column("note").default("it's")

    statement = get_dialect("sqlite").render("t", migrator.mode, migrator.actions)[0]

    assert statement.endswith("DEFAULT 'it''s'")


@pytest.mark.asyncio
async def test_exec_issues_statements_and_syncs_schema(registries, memory_adapter):
    # Validates schema synchronization because the in-memory definition must follow the table.
    # Arrange
    migrator = _migrator(registries).create()
    migrator.add_column("id").type("int").is_primary().auto_increment()
    migrator.add_column("email").type("string").not_null()

    # Act
    await migrator.exec()

    # Assert
    schema = registries[1].use("users")
    assert len(memory_adapter.raw_calls) == 1
    assert schema.connection_name == "main"
    assert [f.name for f in schema.fields] == ["id", "email"]
    assert schema.fields_map["id"].type is FieldType.INT
    assert schema.fields_map["email"].nullable is False
    assert migrator.actions == ()


@pytest.mark.asyncio
async def test_exec_update_patches_registered_schema(registries, memory_adapter):
    # SQLite cannot drop unique constraints, so the queue targets a postgres connection.
    connections, schemas = registries
    connections.create("pg", "postgres").key({})
    connections.attach_adapter("pg", memory_adapter)
    schemas.create("users").use(connection="pg", collection="users").structure(
        {"id": "int", "legacy": "string", "email": "string unique"}
    )
    migrator = _migrator(registries, connection="pg").update()
    migrator.add_column("nickname").type("string")
    migrator.drop_column("legacy")
    migrator.drop_unique("email")

    await migrator.exec()

    schema = schemas.use("users")
    assert [f.name for f in schema.fields] == ["id", "email", "nickname"]
    assert schema.fields_map["email"].is_unique is False


@pytest.mark.asyncio
async def test_two_alters_with_failing_second_keep_first_applied(registries, memory_adapter):
    # Validates partial application because there is no multi-statement rollback.
    # Arrange
    memory_adapter.fail_on = "legacy"
    migrator = _migrator(registries).update()
    migrator.add_column("email").type("string")
    migrator.drop_column("legacy")

    # Act / Assert
    with pytest.raises(RuntimeError, match="backend rejected"):
        await migrator.exec()

    assert memory_adapter.raw_calls == ['ALTER TABLE "users" ADD COLUMN "email" TEXT']
    assert len(migrator.actions) == 2
    assert registries[1].get("users") is None


@pytest.mark.asyncio
async def test_unsupported_action_fails_before_anything_runs(registries, memory_adapter):
    migrator = _migrator(registries).update()
    migrator.add_column("email")
    migrator.drop_primary_key("id")

    with pytest.raises(UnsupportedMigrationError):
        await migrator.exec()

    assert memory_adapter.raw_calls == []


@pytest.mark.asyncio
async def test_sqlite_unique_added_column_fails_before_earlier_alters(registries, memory_adapter):
    # Validates render-time rejection because SQLite would fail mid-queue after the first ALTER.
    # Arrange
    migrator = _migrator(registries).update()
    migrator.add_column("nickname").type("string")
    migrator.add_column("code").type("string").unique()

    # Act
    with pytest.raises(UnsupportedMigrationError, match="users.code"):
        await migrator.exec()

    # Assert
    assert memory_adapter.raw_calls == []
    assert len(migrator.actions) == 2


@pytest.mark.parametrize(
    "configure",
    [
        lambda c: c.type("int").is_primary(),
        lambda c: c.type("string").unique(),
        lambda c: c.type("string").not_null(),
        lambda c: c.type("date").default("NOW()"),
    ],
    ids=["primary", "unique", "not-null-without-default", "non-constant-default"],
)
def test_sqlite_rejects_columns_alter_cannot_add(configure):
    migrator = TableMigrator("users", None, None).update()
    configure(migrator.add_column("extra"))

    with pytest.raises(UnsupportedMigrationError):
        get_dialect("sqlite").render("users", migrator.mode, migrator.actions)
    # Server databases add the same column with a plain ALTER.
    assert get_dialect("postgres").render("users", migrator.mode, migrator.actions)[0].startswith(
        'ALTER TABLE "users" ADD COLUMN "extra"'
    )


def test_sqlite_adds_not_null_column_with_constant_default():
    migrator = TableMigrator("users", None, None).update()
    migrator.add_column("active").type("boolean").not_null().default(True)

    statements = get_dialect("sqlite").render("users", migrator.mode, migrator.actions)

    assert statements == ['ALTER TABLE "users" ADD COLUMN "active" INTEGER NOT NULL DEFAULT 1']


@pytest.mark.asyncio
async def test_duplicate_added_columns_fail_before_anything_runs(registries, memory_adapter):
    # Validates the duplicate check because a CREATE with two same-named columns would desync the schema.
    # Arrange
    migrator = _migrator(registries).create()
    migrator.add_column("email").type("string")
    migrator.add_column("email").type("int")

    # Act
    with pytest.raises(SchemaConfigurationError, match="email"):
        await migrator.exec()

    # Assert
    assert memory_adapter.raw_calls == []
    assert registries[1].get("users") is None


@pytest.mark.asyncio
async def test_create_mode_sync_applies_drops_queued_with_added_columns(registries, memory_adapter):
    # Validates create-mode sync because drops render after the CREATE and must show in the schema.
    # Arrange
    connections, schemas = registries
    connections.create("pg", "postgres").key({})
    connections.attach_adapter("pg", memory_adapter)
    migrator = _migrator(registries, connection="pg").create()
    migrator.add_column("id").type("int").is_primary()
    migrator.add_column("email").type("string").unique()
    migrator.add_column("legacy").type("string")
    migrator.drop_column("legacy")
    migrator.drop_unique("email")

    # Act
    await migrator.exec()

    # Assert
    schema = schemas.use("users")
    assert len(memory_adapter.raw_calls) == 3
    assert [f.name for f in schema.fields] == ["id", "email"]
    assert schema.fields_map["email"].is_unique is False


@pytest.mark.asyncio
async def test_drop_empties_schema_structure(registries):
    registries[1].create("users").use(connection="main", collection="users").structure({"id": "int"})

    await _migrator(registries).drop().exec()

    assert registries[1].use("users").fields == ()


@pytest.mark.asyncio
async def test_exec_resolution_failures(registries):
    connections, schemas = registries
    connections.create("bare", "sqlite").key({})

    with pytest.raises(ConnectionUnknownError):
        await _migrator(registries, connection="ghost").drop().exec()
    with pytest.raises(AdapterMissingError):
        await _migrator(registries, connection="bare").drop().exec()


@pytest.mark.asyncio
async def test_exec_requires_raw_capability_only_when_statements_exist(registries):
    class _Schemaless:
        async def close(self):
            pass

    connections, schemas = registries
    connections.create("fs", "firestore").key({})
    connections.create("docs", "mongo").key({})
    connections.attach_adapter("fs", _Schemaless())
    connections.attach_adapter("docs", _Schemaless())

    create = _migrator(registries, "events", connection="fs").create()
    create.add_column("kind")
    assert await create.exec() == []
    assert [f.name for f in schemas.use("events").fields] == ["kind"]

    with pytest.raises(CapabilityMissingError):
        await _migrator(registries, "logs", connection="docs").drop().exec()
