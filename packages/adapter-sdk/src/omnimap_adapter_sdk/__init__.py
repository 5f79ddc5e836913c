from .capabilities import AdapterCapability
from .errors import DocumentNotFoundError
from .interfaces import (
    DocumentAdapter,
    RawQueryable,
    Requestable,
    Transactional,
    capabilities_of,
)
from .models import (
    BatchTransaction,
    ConnectionTransaction,
    Filter,
    FilterOperator,
    NoopTransaction,
    QueryOptions,
    SortDirection,
    SortSpec,
    TransactionHandle,
)

__all__ = [
    "AdapterCapability",
    "DocumentNotFoundError",
    "DocumentAdapter",
    "RawQueryable",
    "Requestable",
    "Transactional",
    "capabilities_of",
    "BatchTransaction",
    "ConnectionTransaction",
    "Filter",
    "FilterOperator",
    "NoopTransaction",
    "QueryOptions",
    "SortDirection",
    "SortSpec",
    "TransactionHandle",
]
