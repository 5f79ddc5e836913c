import json
import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, AsyncMongoClient

from omnimap_adapter_sdk import (
    DocumentAdapter,
    DocumentNotFoundError,
    Filter,
    FilterOperator,
    NoopTransaction,
    QueryOptions,
    RawQueryable,
    SortDirection,
    TransactionHandle,
    Transactional,
)

logger = logging.getLogger(__name__)

_MONGO_OPERATORS = {
    FilterOperator.EQ: "$eq",
    FilterOperator.NE: "$ne",
    FilterOperator.GT: "$gt",
    FilterOperator.GTE: "$gte",
    FilterOperator.LT: "$lt",
    FilterOperator.LTE: "$lte",
    FilterOperator.IN: "$in",
    FilterOperator.NOT_IN: "$nin",
}


def like_to_regex(pattern: str) -> str:
    """Converts a SQL LIKE pattern (``%`` / ``_`` wildcards) to an anchored regex."""
    return "^" + re.escape(str(pattern)).replace("%", ".*").replace("_", ".") + "$"


class MongoAdapter(DocumentAdapter, RawQueryable, Transactional):
    """
    MongoDB through pymongo's asyncio client.

    Documents are identified by ``_id``; ObjectIds are returned as strings and
    hex strings are converted back when used as ids or ``_id`` filters.
    """

    dialect = "mongo"
    id_field = "_id"

    def __init__(
        self,
        connection_name: str,
        connection_args: Optional[Mapping[str, Any]] = None,
        client: Optional[AsyncMongoClient] = None,
    ):
        super().__init__(connection_name, connection_args)
        self.client = client
        self.db = None

    async def connect(self) -> None:
        if self.db is not None:
            return
        args = self.connection_args
        if self.client is None:
            uri = args.get("uri") or args.get("url")
            if not uri:
                raise ValueError(f"Missing 'uri' in mongo settings for {self}")
            options = args.get("options") or {}
            self.client = AsyncMongoClient(
                uri,
                maxPoolSize=options.get("maxPoolSize", 10),
                minPoolSize=options.get("minPoolSize", 2),
                serverSelectionTimeoutMS=options.get("serverSelectionTimeoutMS", 5000),
            )
        database = args.get("database")
        self.db = self.client[database] if database else self.client.get_default_database()
        logger.debug(f"Connected to {self}")

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()
        self.client = None
        self.db = None

    async def _database(self):
        if self.db is None:
            await self.connect()
        return self.db

    def _object_id(self, value: Any) -> Any:
        if isinstance(value, str) and ObjectId.is_valid(value):
            return ObjectId(value)
        return value

    def _condition(self, condition: Filter) -> Dict[str, Any]:
        if condition.operator is not FilterOperator.LIKE and condition.operator not in _MONGO_OPERATORS:
            raise ValueError(f"{self} does not support {condition.operator.value} filters")
        value = condition.value
        if condition.field == self.id_field:
            if isinstance(value, (list, tuple, set)):
                value = [self._object_id(v) for v in value]
            else:
                value = self._object_id(value)
        if condition.operator is FilterOperator.LIKE:
            return {"$regex": like_to_regex(value), "$options": "i"}
        if condition.operator in (FilterOperator.IN, FilterOperator.NOT_IN) and not isinstance(value, list):
            value = list(value) if isinstance(value, (tuple, set)) else [value]
        return {_MONGO_OPERATORS[condition.operator]: value}

    def build_query(self, options: QueryOptions) -> Dict[str, Any]:
        """
        Translates filters into a Mongo query document.

        A ``raw_where`` (JSON query document) replaces the structured filters.
        Several conditions on one field are merged into one operator document.
        """
        if options.raw_where:
            return json.loads(options.raw_where)
        query: Dict[str, Dict[str, Any]] = {}
        for condition in options.filters:
            query.setdefault(condition.field, {}).update(self._condition(condition))
        return query

    def _normalize(self, document: Dict[str, Any]) -> Dict[str, Any]:
        if self.id_field in document:
            document[self.id_field] = str(document[self.id_field])
        return document

    async def get(self, options: QueryOptions, transaction: Optional[TransactionHandle] = None) -> List[Dict[str, Any]]:
        db = await self._database()
        projection = {f: 1 for f in options.fields} if options.fields else None
        cursor = db[options.collection].find(self.build_query(options), projection)
        if options.sort:
            cursor = cursor.sort(
                [(s.field, DESCENDING if s.direction is SortDirection.DESC else ASCENDING) for s in options.sort]
            )
        if options.offset is not None:
            cursor = cursor.skip(options.offset)
        if options.limit is not None:
            cursor = cursor.limit(options.limit)
        return [self._normalize(doc) for doc in await cursor.to_list(length=None)]

    async def add_document(
        self,
        collection: str,
        data: Mapping[str, Any],
        transaction: Optional[TransactionHandle] = None,
    ) -> str:
        db = await self._database()
        result = await db[collection].insert_one(dict(data))
        return str(result.inserted_id)

    async def update_document(
        self,
        collection: str,
        document_id: Any,
        data: Mapping[str, Any],
        transaction: Optional[TransactionHandle] = None,
    ) -> None:
        db = await self._database()
        changes = {k: v for k, v in data.items() if k != self.id_field}
        result = await db[collection].update_one({self.id_field: self._object_id(document_id)}, {"$set": changes})
        if result.matched_count == 0:
            raise DocumentNotFoundError(collection, document_id)

    async def delete_document(
        self,
        collection: str,
        document_id: Any,
        transaction: Optional[TransactionHandle] = None,
    ) -> None:
        db = await self._database()
        result = await db[collection].delete_one({self.id_field: self._object_id(document_id)})
        if result.deleted_count == 0:
            raise DocumentNotFoundError(collection, document_id)

    async def raw(
        self,
        query: Any,
        bindings: Any = None,
        transaction: Optional[TransactionHandle] = None,
    ) -> Any:
        """Runs a database command given as a dict or a JSON string."""
        command = json.loads(query) if isinstance(query, str) else dict(query)
        db = await self._database()
        logger.debug(f"Command on {self}: {next(iter(command), None)}")
        return await db.command(command)

    async def aggregate(self, collection: str, pipeline: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        db = await self._database()
        cursor = await db[collection].aggregate(list(pipeline))
        return [self._normalize(doc) for doc in await cursor.to_list(length=None)]

    async def create_index(self, collection: str, keys: Any, **kwargs: Any) -> str:
        db = await self._database()
        return await db[collection].create_index(keys, **kwargs)

    async def begin_transaction(self) -> NoopTransaction:
        return NoopTransaction(connection_name=self.connection_name)

    async def commit_transaction(self, handle: TransactionHandle) -> None:
        pass

    async def rollback_transaction(self, handle: TransactionHandle) -> None:
        logger.warning(f"Rollback requested on {self}; writes were already applied")
