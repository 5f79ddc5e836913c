from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FilterOperator(str, Enum):
    """
    Comparison operators.

    Every adapter understands the comparison, LIKE and IN families. The array
    operators are Firestore-only; other adapters reject them with ValueError.
    """

    EQ = "="
    NE = "!="
    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="
    LIKE = "LIKE"
    IN = "IN"
    NOT_IN = "NOT IN"
    ARRAY_CONTAINS = "ARRAY_CONTAINS"
    ARRAY_CONTAINS_ANY = "ARRAY_CONTAINS_ANY"

    @classmethod
    def parse(cls, value: Any) -> "FilterOperator":
        """Normalizes an operator token (symbol, keyword or alias)."""
        if isinstance(value, cls):
            return value
        token = str(value).strip()
        alias = _OPERATOR_ALIASES.get(token.lower())
        if alias is not None:
            return alias
        try:
            return cls(" ".join(token.upper().split()))
        except ValueError:
            raise ValueError(f"Unsupported filter operator: {value!r}") from None


_OPERATOR_ALIASES = {
    "==": FilterOperator.EQ,
    "eq": FilterOperator.EQ,
    "<>": FilterOperator.NE,
    "ne": FilterOperator.NE,
    "neq": FilterOperator.NE,
    "gt": FilterOperator.GT,
    "gte": FilterOperator.GTE,
    "lt": FilterOperator.LT,
    "lte": FilterOperator.LTE,
    "like": FilterOperator.LIKE,
    "in": FilterOperator.IN,
    "nin": FilterOperator.NOT_IN,
    "not_in": FilterOperator.NOT_IN,
    "array-contains": FilterOperator.ARRAY_CONTAINS,
    "array_contains": FilterOperator.ARRAY_CONTAINS,
    "array-contains-any": FilterOperator.ARRAY_CONTAINS_ANY,
    "array_contains_any": FilterOperator.ARRAY_CONTAINS_ANY,
}


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class Filter(BaseModel):
    """A single `field <operator> value` condition."""

    field: str
    operator: FilterOperator = FilterOperator.EQ
    value: Any = None

    model_config = ConfigDict(frozen=True)

    @field_validator("operator", mode="before")
    @classmethod
    def _normalize_operator(cls, value: Any) -> FilterOperator:
        return FilterOperator.parse(value)


class SortSpec(BaseModel):
    field: str
    direction: SortDirection = SortDirection.ASC

    model_config = ConfigDict(frozen=True)

    @field_validator("direction", mode="before")
    @classmethod
    def _normalize_direction(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class QueryOptions(BaseModel):
    """Normalized description of a read handed to an adapter.

    Filters are ANDed in declaration order. ``raw_where`` is an opaque,
    backend-native condition passed through verbatim. A ``limit`` or ``offset``
    of zero is treated as unset (unbounded / from the start).
    """

    collection: str
    filters: List[Filter] = Field(default_factory=list)
    raw_where: Optional[str] = None
    sort: List[SortSpec] = Field(default_factory=list)
    limit: Optional[int] = None
    offset: Optional[int] = None
    fields: Optional[List[str]] = None

    @field_validator("limit", "offset")
    @classmethod
    def _zero_means_unset(cls, value: Optional[int]) -> Optional[int]:
        if value is None or value == 0:
            return None
        if value < 0:
            raise ValueError("limit and offset must not be negative")
        return value

    @field_validator("fields")
    @classmethod
    def _empty_projection_means_all(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return value or None


class TransactionHandle:
    """Base class of the handles returned by ``Transactional.begin_transaction``.

    ``kind`` tags the variant; ``supports_isolated_reads`` tells callers whether
    reads issued through the handle observe its uncommitted writes.
    """

    kind: ClassVar[str] = "base"
    supports_isolated_reads: ClassVar[bool] = False
    connection_name: str


@dataclass
class ConnectionTransaction(TransactionHandle):
    """Relational transaction bound to one pooled connection."""

    kind: ClassVar[str] = "connection"
    supports_isolated_reads: ClassVar[bool] = True

    connection_name: str
    connection: Any
    transaction: Any


@dataclass
class BatchTransaction(TransactionHandle):
    """Write batch committed atomically; reads are not isolated."""

    kind: ClassVar[str] = "batch"

    connection_name: str
    batch: Any


@dataclass
class NoopTransaction(TransactionHandle):
    """Handle for backends whose writes apply immediately."""

    kind: ClassVar[str] = "noop"

    connection_name: str
