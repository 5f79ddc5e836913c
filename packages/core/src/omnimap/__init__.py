from omnimap.common.errors import (
    AdapterMissingError,
    CapabilityMissingError,
    ConnectionExistsError,
    ConnectionUnknownError,
    DocumentMissingIdError,
    ErrorCode,
    FieldNotWritableError,
    MapperError,
    MassMutationNotAllowedError,
    MigrationNotFoundError,
    SchemaConfigurationError,
    SchemaExistsError,
    SchemaUnknownError,
    UnsupportedMigrationError,
    UpdatePayloadMissingError,
)
from omnimap.connections import ConnectionConfig, ConnectionRegistry, ConnectionType
from omnimap.context import ConnectionScope, MapperContext
from omnimap.schema import DeleteType, FieldDefinition, FieldType, SchemaDef, SchemaRegistry

__all__ = [
    "AdapterMissingError",
    "CapabilityMissingError",
    "ConnectionExistsError",
    "ConnectionUnknownError",
    "DocumentMissingIdError",
    "ErrorCode",
    "FieldNotWritableError",
    "MapperError",
    "MassMutationNotAllowedError",
    "MigrationNotFoundError",
    "SchemaConfigurationError",
    "SchemaExistsError",
    "SchemaUnknownError",
    "UnsupportedMigrationError",
    "UpdatePayloadMissingError",
    "ConnectionConfig",
    "ConnectionRegistry",
    "ConnectionType",
    "ConnectionScope",
    "MapperContext",
    "DeleteType",
    "FieldDefinition",
    "FieldType",
    "SchemaDef",
    "SchemaRegistry",
]
