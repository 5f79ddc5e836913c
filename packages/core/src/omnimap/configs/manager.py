import json
import os
import pathlib
import re
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from omnimap.common.errors import ConnectionExistsError, ConnectionUnknownError
from omnimap.common.logger import get_logger
from omnimap.common.settings import settings
from omnimap.connections.models import ConnectionConfig, ConnectionType
from .models import ConnectionEntry, MapperFileConfig

logger = get_logger(__name__)

DEFAULT_CONFIG_FILE = "omnimap.config.json"
CONFIG_SUFFIXES = (".json", ".yaml", ".yml")
_ENV_REF = re.compile(r"\$\{env:([A-Za-z_][A-Za-z0-9_]*)\}")


def resolve_env(obj: Any) -> Any:
    """Recursively replaces ``${env:VAR}`` references with environment values."""
    if isinstance(obj, str):

        def _lookup(match: "re.Match[str]") -> str:
            value = os.environ.get(match.group(1))
            if value is None:
                raise ValueError(f"Environment variable not set: {match.group(1)}")
            return value

        return _ENV_REF.sub(_lookup, obj)
    if isinstance(obj, list):
        return [resolve_env(item) for item in obj]
    if isinstance(obj, dict):
        return {k: resolve_env(v) for k, v in obj.items()}
    return obj


class ConfigManager:
    """
    Reads and writes connection configuration.

    The config path is a JSON / YAML file with ``connections`` and ``schemas``
    lists, or a directory of single-connection files whose name defaults to
    the file stem. Directories are read-only.
    """

    def __init__(self, path: Optional[Union[str, pathlib.Path]] = None):
        self.path = pathlib.Path(path or settings.config_path or DEFAULT_CONFIG_FILE)

    def _read(self, path: pathlib.Path) -> Any:
        try:
            content = path.read_text(encoding="utf-8")
            if path.suffix in (".yaml", ".yml"):
                return yaml.safe_load(content) or {}
            return json.loads(content) if content.strip() else {}
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

    def _read_directory(self, path: pathlib.Path) -> Dict[str, Any]:
        raw: Dict[str, Any] = {"connections": [], "schemas": []}
        for file in sorted(p for p in path.iterdir() if p.suffix in CONFIG_SUFFIXES):
            data = self._read(file)
            if isinstance(data, Mapping) and "connections" in data:
                raw["connections"].extend(data.get("connections") or [])
                raw["schemas"].extend(data.get("schemas") or [])
            elif isinstance(data, Mapping):
                entry = dict(data)
                entry.setdefault("name", file.stem)
                raw["connections"].append(entry)
            else:
                logger.warning(f"Skipping config file {file}: expected a mapping")
        return raw

    def load(self, resolve: bool = True) -> MapperFileConfig:
        """
        Loads and validates the configuration. A missing file reads as empty.

        Args:
            resolve: Replace ``${env:VAR}`` references. Disabled when the file
                is loaded to be edited and written back.
        """
        if not self.path.exists():
            return MapperFileConfig()
        raw = self._read_directory(self.path) if self.path.is_dir() else self._read(self.path)
        if resolve:
            raw = resolve_env(raw)
        try:
            return MapperFileConfig.model_validate(raw)
        except ValidationError as e:
            raise ValueError(f"Configuration invalid ({self.path}): {e}") from e

    def load_connections(self) -> List[ConnectionConfig]:
        return [entry.to_config() for entry in self.load().connections]

    def save(self, config: MapperFileConfig) -> None:
        if self.path.is_dir():
            raise ValueError(f"Cannot write to config directory {self.path}; point to a single file")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = config.model_dump(mode="json", by_alias=True, exclude_none=True)
        if not data.get("schemas"):
            data.pop("schemas", None)
        if self.path.suffix in (".yaml", ".yml"):
            content = yaml.safe_dump(data, sort_keys=False)
        else:
            content = json.dumps(data, indent=2) + "\n"
        self.path.write_text(content, encoding="utf-8")

    # connection editing

    @staticmethod
    def _find(config: MapperFileConfig, name: str) -> Optional[ConnectionEntry]:
        return next((c for c in config.connections if c.name == name), None)

    @staticmethod
    def _set_default(config: MapperFileConfig, name: str) -> None:
        for entry in config.connections:
            entry.is_default = entry.name == name

    def add_connection(
        self,
        name: str,
        type: Any,
        values: Optional[Mapping[str, Any]] = None,
        default: bool = False,
    ) -> ConnectionEntry:
        config = self.load(resolve=False)
        if self._find(config, name) is not None:
            raise ConnectionExistsError(name)
        entry = ConnectionEntry.model_validate(
            {"name": name, "type": ConnectionType.parse(type).value, **dict(values or {})}
        )
        config.connections.append(entry)
        if default:
            self._set_default(config, name)
        self.save(config)
        logger.info(f"Added connection '{name}' to {self.path}")
        return entry

    def update_connection(
        self,
        name: str,
        values: Optional[Mapping[str, Any]] = None,
        default: bool = False,
    ) -> ConnectionEntry:
        config = self.load(resolve=False)
        entry = self._find(config, name)
        if entry is None:
            raise ConnectionUnknownError(name)
        merged = {**entry.model_dump(by_alias=True, exclude_none=True), **dict(values or {})}
        updated = ConnectionEntry.model_validate(merged)
        config.connections[config.connections.index(entry)] = updated
        if default:
            self._set_default(config, name)
        self.save(config)
        logger.info(f"Updated connection '{name}' in {self.path}")
        return updated

    def remove_connection(self, name: str) -> None:
        """Removes a connection; removing the default promotes the first remaining one."""
        config = self.load(resolve=False)
        entry = self._find(config, name)
        if entry is None:
            raise ConnectionUnknownError(name)
        config.connections.remove(entry)
        if entry.is_default and config.connections:
            config.connections[0].is_default = True
        self.save(config)
        logger.info(f"Removed connection '{name}' from {self.path}")
