from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from omnimap.common.errors import SchemaConfigurationError, SchemaExistsError, SchemaUnknownError
from omnimap.common.logger import get_logger
from omnimap.connections.registry import DEFAULT_CONNECTION
from omnimap.schema.models import DeleteType, SchemaDef
from omnimap.schema.parser import Descriptor, parse_structure

logger = get_logger(__name__)


class SchemaBuilder:
    """Staged schema registration returned by ``SchemaRegistry.create``."""

    def __init__(self, registry: "SchemaRegistry", name: str):
        self._registry = registry
        self._name = name
        self._connection: Optional[str] = None
        self._collection: Optional[str] = None
        self._options: Dict[str, Any] = {}

    def use(self, connection: Optional[str] = None, collection: Optional[str] = None) -> "SchemaBuilder":
        if connection is not None:
            self._connection = connection
        if collection is not None:
            self._collection = collection
        return self

    def options(
        self,
        insertable_fields: Optional[Iterable[str]] = None,
        updatable_fields: Optional[Iterable[str]] = None,
        delete_type: Any = None,
        mass_delete_allowed: Optional[bool] = None,
        mass_edit_allowed: Optional[bool] = None,
        soft_delete_field: Optional[str] = None,
    ) -> "SchemaBuilder":
        values = {
            "insertable_fields": frozenset(insertable_fields) if insertable_fields is not None else None,
            "updatable_fields": frozenset(updatable_fields) if updatable_fields is not None else None,
            "delete_type": DeleteType.parse(delete_type) if delete_type is not None else None,
            "mass_delete_allowed": mass_delete_allowed,
            "mass_edit_allowed": mass_edit_allowed,
            "soft_delete_field": soft_delete_field,
        }
        self._options.update({k: v for k, v in values.items() if v is not None})
        return self

    def structure(self, descriptor: Optional[Descriptor] = None) -> SchemaDef:
        """Parses the structure and registers the schema."""
        if not self._connection or not self._collection:
            raise SchemaConfigurationError(
                f"Schema '{self._name}' needs a connection and a collection before its structure is set"
            )
        fields, allow_undefined = parse_structure(descriptor or {})
        schema = SchemaDef(
            name=self._name,
            connection_name=self._connection,
            collection_name=self._collection,
            fields=tuple(fields),
            allow_undefined_fields=allow_undefined,
            **self._options,
        )
        return self._registry.register(schema)

    set_structure = structure


class SchemaRegistry:
    """Owns every SchemaDef by name. Pure data and routing; policy lives in the query builder."""

    def __init__(self):
        self._schemas: Dict[str, SchemaDef] = {}

    def create(self, name: str) -> SchemaBuilder:
        if name in self._schemas:
            raise SchemaExistsError(name)
        return SchemaBuilder(self, name)

    def register(self, schema: SchemaDef) -> SchemaDef:
        stored = self._schemas.setdefault(schema.name, schema)
        if stored is not schema:
            raise SchemaExistsError(schema.name)
        logger.debug(f"Registered schema '{schema.name}' -> {schema.connection_name}.{schema.collection_name}")
        return schema

    def use(self, name: str) -> SchemaDef:
        schema = self._schemas.get(name)
        if schema is None:
            raise SchemaUnknownError(name)
        return schema

    def get(self, name: str) -> Optional[SchemaDef]:
        return self._schemas.get(name)

    def ensure(self, name: str, connection: str = DEFAULT_CONNECTION) -> SchemaDef:
        """Returns the schema, silently registering an empty one routed to ``connection``."""
        schema = self._schemas.get(name)
        if schema is not None:
            return schema
        candidate = SchemaDef(name=name, connection_name=connection, collection_name=name)
        return self._schemas.setdefault(name, candidate)

    def set_structure(self, name: str, descriptor: Descriptor) -> SchemaDef:
        """Replaces the structure of a registered schema."""
        schema = self.use(name)
        fields, allow_undefined = parse_structure(descriptor)
        schema.replace_fields(fields, allow_undefined)
        return schema

    def list(self) -> List[SchemaDef]:
        return list(self._schemas.values())

    def __contains__(self, name: str) -> bool:
        return name in self._schemas
