from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from omnimap.common.errors import SchemaConfigurationError

CURRENT_DATETIME = "NOW()"


class FieldType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    INT = "int"


class DeleteType(str, Enum):
    SOFT = "soft"
    HARD = "hard"

    @classmethod
    def parse(cls, value: Any) -> "DeleteType":
        if isinstance(value, cls):
            return value
        token = str(value).strip().lower()
        if token in ("soft", "softdelete", "soft_delete", "soft-delete"):
            return cls.SOFT
        if token in ("hard", "harddelete", "hard_delete", "hard-delete"):
            return cls.HARD
        raise ValueError(f"Unknown delete type: '{value}'")


class FieldDefinition(BaseModel):
    """Declared field of a collection."""

    name: str
    type: FieldType = FieldType.STRING
    nullable: Optional[bool] = None
    auto_increment: bool = False
    is_unique: bool = False
    is_foreign_key: bool = False
    foreign_ref: Optional[str] = None
    default_value: Any = None
    enum_values: Optional[List[Any]] = None

    model_config = ConfigDict(frozen=True)


@dataclass
class SchemaDef:
    """
    Routing and mutation policy for one logical collection.

    ``fields_map`` is derived from ``fields``; only ``replace_fields`` may change
    either of them so the two never drift apart.
    """

    name: str
    connection_name: str
    collection_name: str
    fields: Tuple[FieldDefinition, ...] = ()
    allow_undefined_fields: bool = False
    insertable_fields: Optional[FrozenSet[str]] = None
    updatable_fields: Optional[FrozenSet[str]] = None
    delete_type: DeleteType = DeleteType.HARD
    soft_delete_field: str = "deleted_on"
    mass_delete_allowed: bool = False
    mass_edit_allowed: bool = False
    fields_map: Dict[str, FieldDefinition] = field(init=False, repr=False)

    def __post_init__(self):
        self.replace_fields(self.fields)
        if self.insertable_fields is not None:
            self.insertable_fields = frozenset(self.insertable_fields)
        if self.updatable_fields is not None:
            self.updatable_fields = frozenset(self.updatable_fields)
        self.delete_type = DeleteType.parse(self.delete_type)

    def replace_fields(self, fields: Iterable[FieldDefinition], allow_undefined_fields: Optional[bool] = None) -> None:
        fields = tuple(fields)
        fields_map = {f.name: f for f in fields}
        if len(fields_map) != len(fields):
            duplicates = sorted(name for name, count in Counter(f.name for f in fields).items() if count > 1)
            raise SchemaConfigurationError(f"Schema '{self.name}' declares duplicate fields {duplicates}")
        self.fields, self.fields_map = fields, fields_map
        if allow_undefined_fields is not None:
            self.allow_undefined_fields = allow_undefined_fields

    @property
    def has_structure(self) -> bool:
        return bool(self.fields)
