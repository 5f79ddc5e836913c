import logging
from typing import Any, Dict, List, Mapping, Optional

from google.cloud import firestore
from google.cloud.firestore import FieldFilter
from google.oauth2 import service_account

from omnimap_adapter_sdk import (
    BatchTransaction,
    DocumentAdapter,
    DocumentNotFoundError,
    FilterOperator,
    QueryOptions,
    SortDirection,
    TransactionHandle,
    Transactional,
)

logger = logging.getLogger(__name__)

_FIRESTORE_OPERATORS = {
    FilterOperator.EQ: "==",
    FilterOperator.NE: "!=",
    FilterOperator.GT: ">",
    FilterOperator.GTE: ">=",
    FilterOperator.LT: "<",
    FilterOperator.LTE: "<=",
    FilterOperator.IN: "in",
    FilterOperator.NOT_IN: "not-in",
    FilterOperator.ARRAY_CONTAINS: "array_contains",
    FilterOperator.ARRAY_CONTAINS_ANY: "array_contains_any",
}


class FirestoreAdapter(DocumentAdapter, Transactional):
    """
    Google Cloud Firestore through the async client.

    Transactions are write batches: writes are applied atomically on commit,
    but reads issued meanwhile see committed data only. Firestore has no LIKE
    and no textual query language, so both are rejected.
    """

    dialect = "firestore"
    id_field = "id"

    def __init__(
        self,
        connection_name: str,
        connection_args: Optional[Mapping[str, Any]] = None,
        client: Optional[firestore.AsyncClient] = None,
    ):
        super().__init__(connection_name, connection_args)
        self.client = client

    def _credentials(self):
        account = self.connection_args.get("service_account")
        if isinstance(account, str):
            return service_account.Credentials.from_service_account_file(account)
        if isinstance(account, Mapping):
            return service_account.Credentials.from_service_account_info(dict(account))
        return None

    async def connect(self) -> None:
        if self.client is not None:
            return
        kwargs: Dict[str, Any] = {
            "project": self.connection_args.get("project_id"),
            "credentials": self._credentials(),
        }
        if self.connection_args.get("database"):
            kwargs["database"] = self.connection_args["database"]
        self.client = firestore.AsyncClient(**kwargs)
        logger.debug(f"Connected to {self}")

    async def close(self) -> None:
        self.client = None

    async def _client(self):
        if self.client is None:
            await self.connect()
        return self.client

    def build_query(self, collection, options: QueryOptions):
        if options.raw_where:
            raise ValueError(f"{self} does not support raw where clauses")
        query = collection
        for condition in options.filters:
            if condition.operator is FilterOperator.LIKE:
                raise ValueError(f"{self} does not support LIKE filters")
            query = query.where(
                filter=FieldFilter(condition.field, _FIRESTORE_OPERATORS[condition.operator], condition.value)
            )
        for spec in options.sort:
            direction = firestore.Query.DESCENDING if spec.direction is SortDirection.DESC else firestore.Query.ASCENDING
            query = query.order_by(spec.field, direction=direction)
        if options.fields:
            query = query.select(options.fields)
        if options.offset is not None:
            query = query.offset(options.offset)
        if options.limit is not None:
            query = query.limit(options.limit)
        return query

    async def get(self, options: QueryOptions, transaction: Optional[TransactionHandle] = None) -> List[Dict[str, Any]]:
        client = await self._client()
        query = self.build_query(client.collection(options.collection), options)
        rows = []
        async for snapshot in query.stream():
            data = snapshot.to_dict() or {}
            data[self.id_field] = snapshot.id
            rows.append(data)
        return rows

    def _batch_of(self, transaction: Optional[TransactionHandle]):
        if transaction is None:
            return None
        if not isinstance(transaction, BatchTransaction):
            raise TypeError(f"{self} expects a batch transaction, got '{transaction.kind}'")
        return transaction.batch

    async def add_document(
        self,
        collection: str,
        data: Mapping[str, Any],
        transaction: Optional[TransactionHandle] = None,
    ) -> str:
        client = await self._client()
        batch = self._batch_of(transaction)
        if batch is not None:
            ref = client.collection(collection).document()
            batch.set(ref, dict(data))
            return ref.id
        _, ref = await client.collection(collection).add(dict(data))
        return ref.id

    async def _existing(self, collection: str, document_id: Any):
        client = await self._client()
        ref = client.collection(collection).document(str(document_id))
        snapshot = await ref.get()
        if not snapshot.exists:
            raise DocumentNotFoundError(collection, document_id)
        return ref

    async def update_document(
        self,
        collection: str,
        document_id: Any,
        data: Mapping[str, Any],
        transaction: Optional[TransactionHandle] = None,
    ) -> None:
        ref = await self._existing(collection, document_id)
        changes = {k: v for k, v in data.items() if k != self.id_field}
        batch = self._batch_of(transaction)
        if batch is not None:
            batch.update(ref, changes)
        else:
            await ref.update(changes)

    async def delete_document(
        self,
        collection: str,
        document_id: Any,
        transaction: Optional[TransactionHandle] = None,
    ) -> None:
        ref = await self._existing(collection, document_id)
        batch = self._batch_of(transaction)
        if batch is not None:
            batch.delete(ref)
        else:
            await ref.delete()

    async def begin_transaction(self) -> BatchTransaction:
        client = await self._client()
        return BatchTransaction(connection_name=self.connection_name, batch=client.batch())

    async def commit_transaction(self, handle: TransactionHandle) -> None:
        await self._batch_of(handle).commit()

    async def rollback_transaction(self, handle: TransactionHandle) -> None:
        # Uncommitted batches are simply discarded.
        self._batch_of(handle)
