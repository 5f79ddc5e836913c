import pytest

from omnimap.common.errors import AdapterMissingError, CapabilityMissingError, ConnectionUnknownError
from omnimap.context import MapperContext
from omnimap.query import ApiRequestBuilder, Dispatcher, RawQuery
from omnimap_adapter_sdk import DocumentAdapter, Requestable


class _ApiStub(DocumentAdapter, Requestable):
    def __init__(self, connection_name="svc", connection_args=None):
        super().__init__(connection_name, connection_args)
        self.requests = []

    async def connect(self):
        pass

    async def close(self):
        pass

    async def get(self, options, transaction=None):
        return []

    async def add_document(self, collection, data, transaction=None):
        return "1"

    async def update_document(self, collection, document_id, data, transaction=None):
        pass

    async def delete_document(self, collection, document_id, transaction=None):
        pass

    async def request(self, method, path, data=None, headers=None, timeout=None):
        self.requests.append((method, path, data, headers, timeout))
        return {"ok": True}


@pytest.mark.asyncio
async def test_dispatcher_stages_each_action(registries, memory_adapter):
    # Validates the statement-style surface because each verb must run its own action.
    # Arrange
    connections, schemas = registries
    schemas.create("users").use(connection="main", collection="users").structure({"name": "string", "age": "int"})
    base = Dispatcher("users", connections, schemas)

    # Act
    await base.insert({"name": "Ada", "age": 36}).run()
    await base.insert({"name": "Alan", "age": 41}).run()
    updated = await base.update({"age": 42}).where("name", "Alan").run()
    names = await base.select("name").order_by("name").run()
    deleted = await base.delete().where("name", "Ada").run()

    # Assert
    assert updated == 1
    assert names == [{"name": "Ada"}, {"name": "Alan"}]
    assert deleted == 1
    assert [r["age"] for r in memory_adapter.collections["users"].values()] == [42]


@pytest.mark.asyncio
async def test_raw_query_runs_on_default_connection(registries, memory_adapter):
    connections, _ = registries

    await RawQuery("VACUUM", connections).bind({"a": 1}).run()

    assert memory_adapter.raw_calls == ["VACUUM"]


@pytest.mark.asyncio
async def test_raw_query_requires_raw_capability(registries):
    connections, _ = registries
    connections.create("svc", "api").key({"base_url": "https://x"})
    connections.attach_adapter("svc", _ApiStub())

    with pytest.raises(CapabilityMissingError):
        await RawQuery("SELECT 1", connections, connection="svc").run()
    with pytest.raises(ConnectionUnknownError):
        await RawQuery("SELECT 1", connections, connection="ghost").run()


@pytest.mark.asyncio
async def test_raw_query_without_adapter_raises(registries):
    connections, _ = registries
    connections.create("bare", "sqlite").key({})

    with pytest.raises(AdapterMissingError):
        await RawQuery("SELECT 1", connections, connection="bare").run()


@pytest.mark.asyncio
async def test_api_request_builder_forwards_path_headers_and_timeout(registries):
    # Arrange
    connections, _ = registries
    stub = _ApiStub()
    connections.create("svc", "api").key({"base_url": "https://x"})
    connections.attach_adapter("svc", stub)

    # Act
    result = await (
        ApiRequestBuilder(connections, "svc")
        .path("/users/1")
        .headers({"X-Trace": "abc"})
        .header("Accept", ["application/json", "text/plain"])
        .timeout(500)
        .patch({"name": "Ada"})
    )

    # Assert
    assert result == {"ok": True}
    assert stub.requests == [
        (
            "PATCH",
            "/users/1",
            {"name": "Ada"},
            {"X-Trace": "abc", "Accept": "application/json, text/plain"},
            500,
        )
    ]


@pytest.mark.asyncio
async def test_api_request_requires_requestable(registries):
    connections, _ = registries

    with pytest.raises(CapabilityMissingError):
        await ApiRequestBuilder(connections, "main", "/x").get()


@pytest.mark.asyncio
async def test_transaction_commits_on_success(registries, memory_adapter):
    connections, schemas = registries
    ctx = MapperContext(connections=connections, schemas=schemas)
    schemas.create("users").use(connection="main", collection="users").structure()

    async with ctx.transaction() as handle:
        await ctx.query("users").using(handle).insert({"name": "Ada"})

    kinds = [c[0] for c in memory_adapter.calls]
    assert kinds == ["begin", "add", "commit"]
    assert memory_adapter.calls[-1][1] is handle


@pytest.mark.asyncio
async def test_transaction_rolls_back_and_reraises(registries, memory_adapter):
    ctx = MapperContext(connections=registries[0], schemas=registries[1])

    with pytest.raises(RuntimeError, match="boom"):
        async with ctx.transaction("main"):
            raise RuntimeError("boom")

    assert [c[0] for c in memory_adapter.calls] == ["begin", "rollback"]


@pytest.mark.asyncio
async def test_transaction_requires_transactional_adapter(registries):
    connections, schemas = registries
    connections.create("svc", "api").key({"base_url": "https://x"})
    connections.attach_adapter("svc", _ApiStub())
    ctx = MapperContext(connections=connections, schemas=schemas)

    with pytest.raises(CapabilityMissingError):
        async with ctx.transaction("svc"):
            pass
