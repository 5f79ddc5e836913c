from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Set

from .capabilities import AdapterCapability
from .models import QueryOptions, TransactionHandle


class DocumentAdapter(ABC):
    """Canonical interface every storage adapter must implement."""

    #: Name of the identifier field in documents returned by this adapter.
    id_field: str = "id"
    #: Normalized backend name (e.g. 'sqlite', 'mongo').
    dialect: str = "generic"

    def __init__(self, connection_name: str, connection_args: Optional[Mapping[str, Any]] = None):
        self.connection_name = connection_name
        self.connection_args: Dict[str, Any] = dict(connection_args or {})

    def __str__(self):
        return f"{self.connection_name} ({self.dialect})"

    @abstractmethod
    async def connect(self) -> None:
        """Initialize clients / pools. Must be idempotent."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release clients / pools."""
        pass

    @abstractmethod
    async def get(
        self, options: QueryOptions, transaction: Optional[TransactionHandle] = None
    ) -> List[Dict[str, Any]]:
        """Return every document matching the options."""
        pass

    async def get_one(
        self, options: QueryOptions, transaction: Optional[TransactionHandle] = None
    ) -> Optional[Dict[str, Any]]:
        """Return the first matching document or None."""
        rows = await self.get(options.model_copy(update={"limit": 1}), transaction=transaction)
        return rows[0] if rows else None

    @abstractmethod
    async def add_document(
        self,
        collection: str,
        data: Mapping[str, Any],
        transaction: Optional[TransactionHandle] = None,
    ) -> str:
        """Insert a document and return its identifier."""
        pass

    @abstractmethod
    async def update_document(
        self,
        collection: str,
        document_id: Any,
        data: Mapping[str, Any],
        transaction: Optional[TransactionHandle] = None,
    ) -> None:
        """Update one document; raises DocumentNotFoundError when it does not exist."""
        pass

    @abstractmethod
    async def delete_document(
        self,
        collection: str,
        document_id: Any,
        transaction: Optional[TransactionHandle] = None,
    ) -> None:
        """Delete one document; raises DocumentNotFoundError when it does not exist."""
        pass

    def capabilities(self) -> Set[AdapterCapability]:
        """Return the capabilities derived from the implemented interfaces."""
        return capabilities_of(self)


class RawQueryable(ABC):
    """Adapters that accept backend-native statements."""

    @abstractmethod
    async def raw(
        self,
        query: Any,
        bindings: Any = None,
        transaction: Optional[TransactionHandle] = None,
    ) -> Any:
        pass


class Transactional(ABC):
    """Adapters that can group writes."""

    @abstractmethod
    async def begin_transaction(self) -> TransactionHandle:
        pass

    @abstractmethod
    async def commit_transaction(self, handle: TransactionHandle) -> None:
        pass

    @abstractmethod
    async def rollback_transaction(self, handle: TransactionHandle) -> None:
        pass


class Requestable(ABC):
    """Adapters that can issue arbitrary requests against their endpoint."""

    @abstractmethod
    async def request(
        self,
        method: str,
        path: str,
        data: Any = None,
        headers: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        pass


def capabilities_of(adapter: Any) -> Set[AdapterCapability]:
    """Derives the capability set of an adapter (instance or class) from the interfaces it implements."""
    cls = adapter if isinstance(adapter, type) else type(adapter)
    caps: Set[AdapterCapability] = set()
    if issubclass(cls, DocumentAdapter):
        caps.add(AdapterCapability.SUPPORTS_CRUD)
    if issubclass(cls, RawQueryable):
        caps.add(AdapterCapability.SUPPORTS_RAW)
    if issubclass(cls, Transactional):
        caps.add(AdapterCapability.SUPPORTS_TRANSACTIONS)
    if issubclass(cls, Requestable):
        caps.add(AdapterCapability.SUPPORTS_REQUEST)
    return caps
