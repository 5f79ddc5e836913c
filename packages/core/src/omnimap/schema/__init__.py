from .models import CURRENT_DATETIME, DeleteType, FieldDefinition, FieldType, SchemaDef
from .parser import parse_field, parse_structure
from .registry import SchemaBuilder, SchemaRegistry

__all__ = [
    "CURRENT_DATETIME",
    "DeleteType",
    "FieldDefinition",
    "FieldType",
    "SchemaDef",
    "parse_field",
    "parse_structure",
    "SchemaBuilder",
    "SchemaRegistry",
]
