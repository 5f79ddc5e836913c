"""
Standard Compliance Test Suite for omnimap adapters.
Any new adapter MUST pass these tests to be certified.

Subclass it, override the ``adapter`` fixture and, when the backend needs the
collection to exist up front, the ``prepare`` hook.
"""
import pytest

from omnimap_adapter_sdk import (
    AdapterCapability,
    DocumentAdapter,
    DocumentNotFoundError,
    Filter,
    QueryOptions,
    SortSpec,
)

PEOPLE = [
    {"name": "Alice", "age": 30},
    {"name": "Bob", "age": 25},
    {"name": "Carol", "age": 41},
]


class AdapterComplianceSuite:
    collection = "compliance_people"
    missing_id = "999999"

    @pytest.fixture
    def adapter(self) -> DocumentAdapter:
        """Override this fixture in subclass to return the adapter under test."""
        raise NotImplementedError

    async def prepare(self, adapter: DocumentAdapter) -> None:
        """Connects the adapter; override to also create the collection."""
        await adapter.connect()

    async def _seed(self, adapter: DocumentAdapter):
        await self.prepare(adapter)
        return [await adapter.add_document(self.collection, dict(p)) for p in PEOPLE]

    def test_capabilities_contract(self, adapter):
        """Verify that capabilities returns a set of known flags including CRUD."""
        caps = adapter.capabilities()
        assert isinstance(caps, set)
        assert all(isinstance(c, AdapterCapability) for c in caps)
        assert AdapterCapability.SUPPORTS_CRUD in caps

    @pytest.mark.asyncio
    async def test_add_document_returns_string_id(self, adapter):
        ids = await self._seed(adapter)
        try:
            assert all(isinstance(i, str) and i for i in ids)
            assert len(set(ids)) == len(PEOPLE)
        finally:
            await adapter.close()

    @pytest.mark.asyncio
    async def test_filters_are_anded(self, adapter):
        await self._seed(adapter)
        try:
            rows = await adapter.get(
                QueryOptions(
                    collection=self.collection,
                    filters=[Filter(field="age", operator=">", value=26), Filter(field="name", value="Carol")],
                )
            )
            assert [r["name"] for r in rows] == ["Carol"]

            rows = await adapter.get(
                QueryOptions(
                    collection=self.collection,
                    filters=[Filter(field="name", operator="IN", value=["Alice", "Bob"])],
                )
            )
            assert sorted(r["name"] for r in rows) == ["Alice", "Bob"]
        finally:
            await adapter.close()

    @pytest.mark.asyncio
    async def test_sort_limit_offset(self, adapter):
        await self._seed(adapter)
        try:
            rows = await adapter.get(
                QueryOptions(collection=self.collection, sort=[SortSpec(field="age")], limit=2, offset=1)
            )
            assert [r["name"] for r in rows] == ["Alice", "Carol"]
        finally:
            await adapter.close()

    @pytest.mark.asyncio
    async def test_get_one(self, adapter):
        ids = await self._seed(adapter)
        try:
            row = await adapter.get_one(
                QueryOptions(collection=self.collection, filters=[Filter(field="name", value="Bob")])
            )
            assert row is not None
            assert str(row[adapter.id_field]) == ids[1]

            missing = await adapter.get_one(
                QueryOptions(collection=self.collection, filters=[Filter(field="name", value="Zed")])
            )
            assert missing is None
        finally:
            await adapter.close()

    @pytest.mark.asyncio
    async def test_update_and_delete(self, adapter):
        ids = await self._seed(adapter)
        try:
            await adapter.update_document(self.collection, ids[0], {"age": 31})
            row = await adapter.get_one(
                QueryOptions(collection=self.collection, filters=[Filter(field="name", value="Alice")])
            )
            assert row["age"] == 31

            await adapter.delete_document(self.collection, ids[0])
            rows = await adapter.get(QueryOptions(collection=self.collection))
            assert sorted(r["name"] for r in rows) == ["Bob", "Carol"]
        finally:
            await adapter.close()

    @pytest.mark.asyncio
    async def test_missing_document_raises(self, adapter):
        await self._seed(adapter)
        try:
            with pytest.raises(DocumentNotFoundError):
                await adapter.update_document(self.collection, self.missing_id, {"age": 1})
            with pytest.raises(DocumentNotFoundError):
                await adapter.delete_document(self.collection, self.missing_id)
        finally:
            await adapter.close()
