import fnmatch
import itertools
import operator

import pytest

from omnimap.connections.registry import ConnectionRegistry
from omnimap.schema.registry import SchemaRegistry
from omnimap_adapter_sdk import (
    DocumentAdapter,
    DocumentNotFoundError,
    FilterOperator,
    NoopTransaction,
    RawQueryable,
    SortDirection,
    Transactional,
)

_COMPARE = {
    FilterOperator.EQ: operator.eq,
    FilterOperator.NE: operator.ne,
    FilterOperator.GT: operator.gt,
    FilterOperator.GTE: operator.ge,
    FilterOperator.LT: operator.lt,
    FilterOperator.LTE: operator.le,
    FilterOperator.IN: lambda a, b: a in b,
    FilterOperator.NOT_IN: lambda a, b: a not in b,
    FilterOperator.LIKE: lambda a, b: fnmatch.fnmatch(str(a), str(b).replace("%", "*")),
}


class MemoryAdapter(DocumentAdapter, RawQueryable, Transactional):
    """Dict-backed adapter recording every call made by the core."""

    def __init__(self, connection_name="main", connection_args=None):
        super().__init__(connection_name, connection_args)
        self.collections = {}
        self.raw_calls = []
        self.calls = []
        self.fail_on = None
        self.connected = False
        self._ids = itertools.count(1)

    async def connect(self):
        self.connected = True

    async def close(self):
        self.connected = False

    async def get(self, options, transaction=None):
        self.calls.append(("get", options, transaction))
        rows = list(self.collections.get(options.collection, {}).values())
        for f in options.filters:
            rows = [r for r in rows if f.field in r and _COMPARE[f.operator](r[f.field], f.value)]
        for spec in reversed(options.sort):
            rows.sort(key=lambda r: r.get(spec.field), reverse=spec.direction is SortDirection.DESC)
        start = options.offset or 0
        rows = rows[start: start + options.limit] if options.limit else rows[start:]
        if options.fields:
            return [{k: r[k] for k in options.fields if k in r} for r in rows]
        return [dict(r) for r in rows]

    async def add_document(self, collection, data, transaction=None):
        self.calls.append(("add", collection, dict(data), transaction))
        document_id = str(data.get(self.id_field) or next(self._ids))
        self.collections.setdefault(collection, {})[document_id] = {**data, self.id_field: document_id}
        return document_id

    async def update_document(self, collection, document_id, data, transaction=None):
        self.calls.append(("update", collection, document_id, dict(data), transaction))
        documents = self.collections.get(collection, {})
        if document_id not in documents:
            raise DocumentNotFoundError(collection, document_id)
        documents[document_id].update(data)

    async def delete_document(self, collection, document_id, transaction=None):
        self.calls.append(("delete", collection, document_id, transaction))
        if self.collections.get(collection, {}).pop(document_id, None) is None:
            raise DocumentNotFoundError(collection, document_id)

    async def raw(self, query, bindings=None, transaction=None):
        if self.fail_on and self.fail_on in str(query):
            raise RuntimeError(f"backend rejected: {query}")
        self.raw_calls.append(query)
        return 0

    async def begin_transaction(self):
        self.calls.append(("begin",))
        return NoopTransaction(self.connection_name)

    async def commit_transaction(self, handle):
        self.calls.append(("commit", handle))

    async def rollback_transaction(self, handle):
        self.calls.append(("rollback", handle))


@pytest.fixture
def memory_adapter():
    return MemoryAdapter("main")


@pytest.fixture
def registries(memory_adapter):
    """Connection 'main' (sqlite type) with a MemoryAdapter attached, plus an empty schema registry."""
    connections = ConnectionRegistry()
    connections.create("main", "sqlite").key({"filename": ":memory:"})
    connections.attach_adapter("main", memory_adapter)
    return connections, SchemaRegistry()


@pytest.fixture
def adapter_factory():
    """Builds MemoryAdapters for tests that register several connections."""
    return MemoryAdapter
