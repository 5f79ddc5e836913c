from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from omnimap.connections.factory import infer_type
from omnimap.connections.models import ConnectionConfig, ConnectionType


class ConnectionEntry(BaseModel):
    """One connection as written in a config file; backend settings are the extra keys."""

    name: str
    type: Optional[str] = None
    is_default: bool = False

    model_config = ConfigDict(extra="allow", alias_generator=to_camel, populate_by_name=True)

    def settings(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})

    def to_config(self) -> ConnectionConfig:
        settings = self.settings()
        conn_type = ConnectionType.parse(self.type) if self.type else infer_type(settings)
        return ConnectionConfig(name=self.name, type=conn_type, key=settings, is_default=self.is_default)


class SchemaEntry(BaseModel):
    """Schema registration declared next to the connections."""

    name: str
    connection: str = "default"
    collection: Optional[str] = None
    structure: Any = None
    insertable_fields: Optional[List[str]] = None
    updatable_fields: Optional[List[str]] = None
    delete_type: Optional[str] = None
    soft_delete_field: Optional[str] = None
    mass_delete_allowed: Optional[bool] = None
    mass_edit_allowed: Optional[bool] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MapperFileConfig(BaseModel):
    """File-level schema of omnimap config files."""

    version: int = Field(1, description="Schema version")
    connections: List[ConnectionEntry] = Field(default_factory=list)
    schemas: List[SchemaEntry] = Field(default_factory=list)
