"""
Parses structure descriptors into field definitions.

A descriptor is either a list of field objects / FieldDefinitions, or a map of
field name to rules::

    {
        "id": "integer auto-increment",
        "email": "string unique",
        "role": ["string", ["admin", "member"]],
        "created_on": "datetime default.currentDatetime",
        "score": ["number", "default.value", 0],
        "team_id": "int foreignKey.teams.id",
        "?field": "",
    }

The first rule may name the type; ``?field`` allows fields outside the
structure to pass through writes.
"""
from typing import Any, Dict, Iterable, List, Mapping, Tuple, Union

from omnimap.schema.models import CURRENT_DATETIME, FieldDefinition, FieldType

ALLOW_UNDEFINED_KEY = "?field"

_TYPE_NAMES = {
    "string": FieldType.STRING,
    "text": FieldType.STRING,
    "integer": FieldType.INT,
    "int": FieldType.INT,
    "number": FieldType.NUMBER,
    "float": FieldType.NUMBER,
    "boolean": FieldType.BOOLEAN,
    "bool": FieldType.BOOLEAN,
    "datetime": FieldType.DATE,
    "date": FieldType.DATE,
}

Descriptor = Union[Mapping[str, Any], Iterable[Any]]


def _apply_rule(spec: Dict[str, Any], rule: Any) -> None:
    if isinstance(rule, (list, tuple)):
        spec["enum_values"] = list(rule)
        spec["type"] = FieldType.STRING
        return
    if not isinstance(rule, str):
        return
    if rule == "auto-increment":
        spec["auto_increment"] = True
    elif rule == "unique":
        spec["is_unique"] = True
    elif rule == "nullable":
        spec["nullable"] = True
    elif rule in ("required", "not-null"):
        spec["nullable"] = False
    elif rule in ("default_current_datetime", "default.currentDatetime"):
        spec["default_value"] = CURRENT_DATETIME
    elif rule.startswith("foreignKey."):
        spec["is_foreign_key"] = True
        spec["foreign_ref"] = rule[len("foreignKey."):]


def parse_field(name: str, descriptor: Any) -> FieldDefinition:
    rules: List[Any] = list(descriptor) if isinstance(descriptor, (list, tuple)) else str(descriptor or "").split()
    spec: Dict[str, Any] = {"name": name}

    if rules and isinstance(rules[0], str) and rules[0].lower() in _TYPE_NAMES:
        spec["type"] = _TYPE_NAMES[rules.pop(0).lower()]

    i = 0
    while i < len(rules):
        rule = rules[i]
        if rule == "default.value" and i + 1 < len(rules):
            spec["default_value"] = rules[i + 1]
            i += 2
            continue
        _apply_rule(spec, rule)
        i += 1
    return FieldDefinition(**spec)


def parse_structure(descriptor: Descriptor) -> Tuple[List[FieldDefinition], bool]:
    """Returns the parsed fields and whether undefined fields are allowed."""
    if isinstance(descriptor, Mapping):
        fields = []
        allow_undefined = False
        for name, rules in descriptor.items():
            if name == ALLOW_UNDEFINED_KEY:
                allow_undefined = True
                continue
            fields.append(parse_field(name, rules))
        return fields, allow_undefined

    fields = [f if isinstance(f, FieldDefinition) else FieldDefinition.model_validate(f) for f in descriptor]
    return fields, False
