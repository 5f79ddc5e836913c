import json

import pytest
from typer.testing import CliRunner

from omnimap_cli.commands.connection import parse_assignments
from omnimap_cli.main import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    # The CLI callback reconfigures the root logger; keep pytest's handlers intact.
    monkeypatch.setattr("omnimap_cli.main.configure_logging", lambda *args, **kwargs: None)


@pytest.fixture
def config_file(tmp_path):
    return tmp_path / "omnimap.config.json"


def _invoke(*args):
    return runner.invoke(app, [str(a) for a in args])


def test_parse_assignments_decodes_json_values():
    values = parse_assignments(["port=5432", "ssl=true", "host=db.local", "tags=[1, 2]", "empty="])

    assert values == {"port": 5432, "ssl": True, "host": "db.local", "tags": [1, 2], "empty": ""}


def test_connection_create_list_update_delete(config_file):
    # Validates the edit cycle because the CLI is the supported way to maintain the config file.
    # Act
    created = _invoke("connection", "create", "main", "sqlite", "--set", "filename=app.db", "--default", "-c", config_file)
    second = _invoke("connection", "create", "backup", "postgres", "-s", "host=db", "-s", "port=5432", "-c", config_file)
    listed = _invoke("connection", "list", "-c", config_file)
    updated = _invoke("connection", "update", "backup", "--default", "-c", config_file)
    deleted = _invoke("connection", "delete", "main", "-c", config_file)

    # Assert
    assert created.exit_code == 0, created.output
    assert second.exit_code == 0, second.output
    assert listed.exit_code == 0 and "main" in listed.output and "backup" in listed.output
    assert updated.exit_code == 0, updated.output
    assert deleted.exit_code == 0, deleted.output
    data = json.loads(config_file.read_text())
    assert data["connections"] == [
        {"name": "backup", "type": "relational-postgres", "isDefault": True, "host": "db", "port": 5432}
    ]


def test_duplicate_connection_fails(config_file):
    _invoke("connection", "create", "main", "sqlite", "-c", config_file)

    result = _invoke("connection", "create", "main", "sqlite", "-c", config_file)

    assert result.exit_code == 1
    assert "CONNECTION_EXISTS" in result.output


def test_unknown_connection_type_fails(config_file):
    result = _invoke("connection", "create", "main", "oracle", "-c", config_file)

    assert result.exit_code == 1
    assert not config_file.exists()


def test_update_without_changes_fails(config_file):
    _invoke("connection", "create", "main", "sqlite", "-c", config_file)

    result = _invoke("connection", "update", "main", "-c", config_file)

    assert result.exit_code == 1
    assert "Nothing to update" in result.output


def test_missing_arguments_are_rejected(config_file):
    result = _invoke("connection", "create", "main", "-c", config_file)

    assert result.exit_code != 0


def test_list_empty_config(config_file):
    result = _invoke("connection", "list", "-c", config_file)

    assert result.exit_code == 0
    assert "No connections configured" in result.output


def test_migrate_create_and_status(tmp_path):
    # Arrange
    store = tmp_path / "migrations.json"

    # Act
    created = _invoke("migrate", "create", "add users", "--up", "steps:up", "--down", "steps:down", "--file", store)
    status = _invoke("migrate", "status", "--file", store)

    # Assert
    assert created.exit_code == 0, created.output
    (record,) = json.loads(store.read_text())["migrations"].values()
    assert record["status"] == "pending"
    assert record["up"] == "steps:up"
    assert status.exit_code == 0
    assert "pending" in status.output


def test_migrate_status_without_records(tmp_path):
    result = _invoke("migrate", "status", "--file", tmp_path / "none.json")

    assert result.exit_code == 0
    assert "No migrations recorded" in result.output


def test_migrate_run_applies_against_configured_sqlite(tmp_path, monkeypatch):
    # Validates the run command because it must build adapters from the config before stepping.
    # Arrange
    (tmp_path / "cli_note_steps.py").write_text(
        "async def up(ctx):\n"
        "    m = ctx.schema('notes').create()\n"
        "    m.add_column('id').type('int').is_primary().auto_increment()\n"
        "    m.add_column('body').type('text')\n"
        "    await m.exec()\n"
        "\n"
        "async def down(ctx):\n"
        "    await ctx.schema('notes').drop().exec()\n"
    )
    monkeypatch.syspath_prepend(str(tmp_path))
    config = tmp_path / "omnimap.config.json"
    store = tmp_path / "migrations.json"
    _invoke("connection", "create", "main", "sqlite", "-s", f"filename={tmp_path / 'app.db'}", "--default", "-c", config)
    _invoke("migrate", "create", "notes", "--up", "cli_note_steps:up", "--down", "cli_note_steps:down", "-f", store)

    # Act
    applied = _invoke("migrate", "run", "-c", config, "-f", store)
    rolled_back = _invoke("migrate", "down", "-c", config, "-f", store)

    # Assert
    assert applied.exit_code == 0, applied.output
    assert rolled_back.exit_code == 0, rolled_back.output
    (record,) = json.loads(store.read_text())["migrations"].values()
    assert record["status"] == "rolled_back"
    assert [log["action"] for log in json.loads(store.read_text())["logs"]] == ["up", "down"]


def test_migrate_run_reports_failures(tmp_path, monkeypatch):
    monkeypatch.syspath_prepend(str(tmp_path))
    (tmp_path / "cli_broken_steps.py").write_text("async def up(ctx):\n    raise RuntimeError('nope')\n")
    store = tmp_path / "migrations.json"
    _invoke("migrate", "create", "broken", "--up", "cli_broken_steps:up", "--down", "cli_broken_steps:up", "-f", store)

    result = _invoke("migrate", "up", "-c", tmp_path / "absent.json", "-f", store)

    assert result.exit_code == 1
    assert "nope" in result.output
