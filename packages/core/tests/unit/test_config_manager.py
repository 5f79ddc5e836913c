import json

import pytest
import yaml

from omnimap.common.errors import ConnectionExistsError, ConnectionUnknownError
from omnimap.configs import ConfigManager, resolve_env
from omnimap.connections.models import ConnectionType


def _write_json(path, data):
    path.write_text(json.dumps(data))
    return path


def test_load_json_file_with_schemas(tmp_path):
    # Arrange
    path = _write_json(
        tmp_path / "omnimap.config.json",
        {
            "connections": [
                {"name": "main", "type": "sqlite", "filename": "app.db", "isDefault": True},
                {"name": "docs", "uri": "mongodb://localhost:27017", "database": "app"},
            ],
            "schemas": [{"name": "users", "connection": "main", "massDeleteAllowed": False}],
        },
    )

    # Act
    config = ConfigManager(path).load()
    connections = ConfigManager(path).load_connections()

    # Assert
    assert [c.name for c in config.connections] == ["main", "docs"]
    assert config.schemas[0].mass_delete_allowed is False
    assert connections[0].type is ConnectionType.SQLITE
    assert connections[0].key == {"filename": "app.db"}
    assert connections[0].is_default is True
    assert connections[1].type is ConnectionType.MONGO


def test_load_yaml_file(tmp_path):
    path = tmp_path / "omnimap.yaml"
    path.write_text(yaml.safe_dump({"connections": [{"name": "api", "type": "api", "baseUrl": "https://x.test"}]}))

    (entry,) = ConfigManager(path).load().connections

    assert entry.type == "api"
    assert entry.settings() == {"baseUrl": "https://x.test"}


def test_load_directory_names_connections_after_files(tmp_path):
    # Validates directory configs because each file describes one connection named by its stem.
    _write_json(tmp_path / "analytics.json", {"type": "postgres", "host": "db", "database": "events"})
    (tmp_path / "cache.yml").write_text("type: sqlite\nfilename: cache.db\n")
    (tmp_path / "notes.txt").write_text("ignored")

    connections = ConfigManager(tmp_path).load_connections()

    assert [(c.name, c.type) for c in connections] == [
        ("analytics", ConnectionType.POSTGRES),
        ("cache", ConnectionType.SQLITE),
    ]


def test_missing_file_reads_empty(tmp_path):
    config = ConfigManager(tmp_path / "absent.json").load()

    assert config.connections == [] and config.schemas == []


def test_env_references_resolve(tmp_path, monkeypatch):
    monkeypatch.setenv("DB_PASSWORD", "s3cret")
    path = _write_json(
        tmp_path / "c.json",
        {"connections": [{"name": "pg", "type": "postgres", "password": "${env:DB_PASSWORD}"}]},
    )

    (connection,) = ConfigManager(path).load_connections()

    assert connection.key["password"] == "s3cret"


def test_missing_env_variable_raises(monkeypatch):
    monkeypatch.delenv("OMNIMAP_TEST_UNSET", raising=False)

    with pytest.raises(ValueError, match="OMNIMAP_TEST_UNSET"):
        resolve_env({"a": ["x-${env:OMNIMAP_TEST_UNSET}"]})


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        json.dumps({"connections": [{"type": "sqlite"}]}),
    ],
    ids=["parse-error", "missing-name"],
)
def test_invalid_config_raises_value_error(tmp_path, content):
    # Validates error surfacing because the CLI reports ValueError as a clean failure.
    path = tmp_path / "bad.json"
    path.write_text(content)

    with pytest.raises(ValueError):
        ConfigManager(path).load()


def test_add_update_remove_connections(tmp_path):
    # Arrange
    manager = ConfigManager(tmp_path / "omnimap.config.json")

    # Act
    manager.add_connection("main", "sqlite", {"filename": "app.db"}, default=True)
    manager.add_connection("backup", "sqlite", {"filename": "backup.db"})
    manager.update_connection("backup", {"filename": "b2.db"}, default=True)

    # Assert
    data = json.loads(manager.path.read_text())
    assert "schemas" not in data
    assert data["connections"] == [
        {"name": "main", "type": "relational-sqlite", "isDefault": False, "filename": "app.db"},
        {"name": "backup", "type": "relational-sqlite", "isDefault": True, "filename": "b2.db"},
    ]


def test_removing_default_promotes_first_remaining(tmp_path):
    manager = ConfigManager(tmp_path / "omnimap.config.json")
    manager.add_connection("main", "sqlite", {"filename": "a.db"})
    manager.add_connection("other", "sqlite", {"filename": "b.db"}, default=True)

    manager.remove_connection("other")

    (remaining,) = manager.load().connections
    assert remaining.name == "main" and remaining.is_default is True


def test_editing_preserves_env_references(tmp_path, monkeypatch):
    monkeypatch.delenv("OMNIMAP_TEST_TOKEN", raising=False)
    manager = ConfigManager(tmp_path / "omnimap.config.json")
    manager.add_connection("api", "api", {"baseUrl": "https://x.test", "token": "${env:OMNIMAP_TEST_TOKEN}"})

    manager.update_connection("api", {"timeout": 5})

    (entry,) = manager.load(resolve=False).connections
    assert entry.settings()["token"] == "${env:OMNIMAP_TEST_TOKEN}"


def test_connection_edit_errors(tmp_path):
    manager = ConfigManager(tmp_path / "omnimap.config.json")
    manager.add_connection("main", "sqlite", {"filename": "a.db"})

    with pytest.raises(ConnectionExistsError):
        manager.add_connection("main", "sqlite")
    with pytest.raises(ConnectionUnknownError):
        manager.update_connection("nope", {"x": 1})
    with pytest.raises(ConnectionUnknownError):
        manager.remove_connection("nope")


def test_directory_is_read_only(tmp_path):
    with pytest.raises(ValueError):
        ConfigManager(tmp_path).add_connection("main", "sqlite")
