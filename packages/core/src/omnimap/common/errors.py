from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Standardized error codes raised by the mapper core."""

    ADAPTER_MISSING = "ADAPTER_MISSING"
    UPDATE_PAYLOAD_MISSING = "UPDATE_PAYLOAD_MISSING"
    DOCUMENT_MISSING_ID = "DOCUMENT_MISSING_ID"
    CONNECTION_EXISTS = "CONNECTION_EXISTS"
    CONNECTION_UNKNOWN = "CONNECTION_UNKNOWN"
    SCHEMA_EXISTS = "SCHEMA_EXISTS"
    SCHEMA_UNKNOWN = "SCHEMA_UNKNOWN"
    SCHEMA_CONFIG_ERROR = "SCHEMA_CONFIG_ERROR"
    FIELD_NOT_WRITABLE = "FIELD_NOT_WRITABLE"
    MASS_MUTATION_NOT_ALLOWED = "MASS_MUTATION_NOT_ALLOWED"
    CAPABILITY_MISSING = "CAPABILITY_MISSING"
    UNSUPPORTED_MIGRATION = "UNSUPPORTED_MIGRATION"
    MIGRATION_NOT_FOUND = "MIGRATION_NOT_FOUND"


ERROR_HINTS = {
    ErrorCode.ADAPTER_MISSING: "Attach an adapter with connections.attach_adapter() or configure the connection before querying.",
    ErrorCode.UPDATE_PAYLOAD_MISSING: "Call .set() / .to() with the fields to change before update().",
    ErrorCode.DOCUMENT_MISSING_ID: "Make sure the adapter returns its id field for every document.",
    ErrorCode.CONNECTION_EXISTS: "Use a unique connection name or reuse the registered one.",
    ErrorCode.CONNECTION_UNKNOWN: "Register the connection first, e.g. connections.create(name, type).key({...}).",
    ErrorCode.SCHEMA_EXISTS: "Use schemas.use(name) to reference the registered schema.",
    ErrorCode.SCHEMA_UNKNOWN: "Register the schema with schemas.create(name) before using it.",
    ErrorCode.SCHEMA_CONFIG_ERROR: "Call .use(connection=..., collection=...) before .structure().",
    ErrorCode.FIELD_NOT_WRITABLE: "Add the field to the schema's insertable / updatable fields or drop it from the payload.",
    ErrorCode.MASS_MUTATION_NOT_ALLOWED: "Add a where() clause or enable mass_edit_allowed / mass_delete_allowed on the schema.",
    ErrorCode.CAPABILITY_MISSING: "Use a connection whose adapter supports this operation.",
    ErrorCode.UNSUPPORTED_MIGRATION: "Run this change manually or target a backend that supports it.",
    ErrorCode.MIGRATION_NOT_FOUND: "List migrations with `omnimap migrate status`.",
}


class MapperError(Exception):
    """Base error of the mapper core.

    Attributes:
        message (str): Human-readable description.
        code (ErrorCode): Stable machine-readable code.
        hint (str): Suggested remediation.
    """

    code: Optional[ErrorCode] = None

    def __init__(self, message: str, code: Optional[ErrorCode] = None, hint: Optional[str] = None):
        if code is not None:
            self.code = code
        self.message = message
        self.hint = hint if hint is not None else ERROR_HINTS.get(self.code, "")
        super().__init__(message)

    def __str__(self):
        if self.code is None:
            return self.message
        return f"[{self.code.value}] {self.message}"


class AdapterMissingError(MapperError):
    code = ErrorCode.ADAPTER_MISSING

    def __init__(self, connection: str):
        self.connection = connection
        super().__init__(f"No adapter attached to connection '{connection}'")


class UpdatePayloadMissingError(MapperError):
    code = ErrorCode.UPDATE_PAYLOAD_MISSING

    def __init__(self, target: str):
        super().__init__(f"Update on '{target}' has no fields to set")


class DocumentMissingIdError(MapperError):
    code = ErrorCode.DOCUMENT_MISSING_ID

    def __init__(self, target: str, id_field: str):
        self.id_field = id_field
        super().__init__(f"Document from '{target}' has no '{id_field}' field")


class ConnectionExistsError(MapperError):
    code = ErrorCode.CONNECTION_EXISTS

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Connection '{name}' already exists")


class ConnectionUnknownError(MapperError):
    code = ErrorCode.CONNECTION_UNKNOWN

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Connection '{name}' is not registered")


class SchemaExistsError(MapperError):
    code = ErrorCode.SCHEMA_EXISTS

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Schema '{name}' already exists")


class SchemaUnknownError(MapperError):
    code = ErrorCode.SCHEMA_UNKNOWN

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Schema '{name}' is not registered")


class SchemaConfigurationError(MapperError):
    code = ErrorCode.SCHEMA_CONFIG_ERROR


class FieldNotWritableError(MapperError):
    code = ErrorCode.FIELD_NOT_WRITABLE

    def __init__(self, schema: str, fields, policy: str):
        self.fields = sorted(fields)
        super().__init__(f"Fields {self.fields} are not {policy} on '{schema}'")


class MassMutationNotAllowedError(MapperError):
    code = ErrorCode.MASS_MUTATION_NOT_ALLOWED

    def __init__(self, schema: str, operation: str):
        self.operation = operation
        super().__init__(f"Mass {operation} without filters is not allowed on '{schema}'")


class CapabilityMissingError(MapperError):
    code = ErrorCode.CAPABILITY_MISSING

    def __init__(self, connection: str, capability: str):
        self.capability = capability
        super().__init__(f"Adapter of connection '{connection}' does not support {capability}")


class UnsupportedMigrationError(MapperError):
    code = ErrorCode.UNSUPPORTED_MIGRATION


class MigrationNotFoundError(MapperError):
    code = ErrorCode.MIGRATION_NOT_FOUND

    def __init__(self, migration_id: str):
        super().__init__(f"Migration '{migration_id}' not found")
