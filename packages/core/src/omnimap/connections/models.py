from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ConnectionType(str, Enum):
    """Backend families a connection can point at."""

    MYSQL = "relational-mysql"
    POSTGRES = "relational-postgres"
    SQLITE = "relational-sqlite"
    MONGO = "document-mongo"
    FIRESTORE = "document-firestore"
    API = "api"

    @property
    def is_relational(self) -> bool:
        return self.value.startswith("relational-")

    @classmethod
    def parse(cls, value: Any) -> "ConnectionType":
        """Normalizes a type token, accepting the short aliases used in config files."""
        if isinstance(value, cls):
            return value
        token = str(value).strip().lower()
        try:
            return cls(token)
        except ValueError:
            pass
        if token in _TYPE_ALIASES:
            return _TYPE_ALIASES[token]
        raise ValueError(f"Unknown connection type: '{value}'. Known: {[t.value for t in cls]}")


_TYPE_ALIASES = {
    "mysql": ConnectionType.MYSQL,
    "mariadb": ConnectionType.MYSQL,
    "postgres": ConnectionType.POSTGRES,
    "postgresql": ConnectionType.POSTGRES,
    "sql": ConnectionType.POSTGRES,
    "sqlite": ConnectionType.SQLITE,
    "sqlite3": ConnectionType.SQLITE,
    "mongo": ConnectionType.MONGO,
    "mongodb": ConnectionType.MONGO,
    "firestore": ConnectionType.FIRESTORE,
    "firebase": ConnectionType.FIRESTORE,
    "rest": ConnectionType.API,
    "http": ConnectionType.API,
}


class ConnectionConfig(BaseModel):
    """Immutable description of a named connection.

    ``key`` holds the opaque, backend-specific settings (host, uri, base_url...).
    """

    name: str
    type: ConnectionType
    key: Dict[str, Any] = Field(default_factory=dict)
    is_default: bool = False

    model_config = ConfigDict(frozen=True)

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> ConnectionType:
        return ConnectionType.parse(value)

    def settings(self) -> Dict[str, Any]:
        """Returns a mutable copy of the backend settings."""
        return dict(self.key)
