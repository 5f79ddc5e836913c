from enum import Enum


class AdapterCapability(str, Enum):
    """Capability flags for storage adapters."""

    SUPPORTS_CRUD = "supports_crud"
    SUPPORTS_RAW = "supports_raw"
    SUPPORTS_TRANSACTIONS = "supports_transactions"
    SUPPORTS_REQUEST = "supports_request"
