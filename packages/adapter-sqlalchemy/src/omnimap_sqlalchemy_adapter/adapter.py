import logging
import operator
from abc import abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import column, literal_column, select, table, text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from omnimap_adapter_sdk import (
    ConnectionTransaction,
    DocumentAdapter,
    DocumentNotFoundError,
    Filter,
    FilterOperator,
    QueryOptions,
    RawQueryable,
    SortDirection,
    TransactionHandle,
    Transactional,
)

logger = logging.getLogger(__name__)


def _as_list(value: Any) -> List[Any]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        return [value]
    return list(value)


_OPERATORS: Dict[FilterOperator, Callable[[Any, Any], Any]] = {
    FilterOperator.EQ: operator.eq,
    FilterOperator.NE: operator.ne,
    FilterOperator.GT: operator.gt,
    FilterOperator.GTE: operator.ge,
    FilterOperator.LT: operator.lt,
    FilterOperator.LTE: operator.le,
    FilterOperator.LIKE: lambda c, v: c.like(v),
    FilterOperator.IN: lambda c, v: c.in_(_as_list(v)),
    FilterOperator.NOT_IN: lambda c, v: c.not_in(_as_list(v)),
}


class BaseSQLAlchemyAdapter(DocumentAdapter, RawQueryable, Transactional):
    """
    Base class for all SQLAlchemy-based adapters.
    Implements connection handling, CRUD translation, raw execution and
    connection-scoped transactions on top of the asyncio extension.
    """

    dialect = "sql"
    supports_returning = False

    def __init__(
        self,
        connection_name: str,
        connection_args: Optional[Mapping[str, Any]] = None,
        engine: Optional[AsyncEngine] = None,
    ):
        super().__init__(connection_name, connection_args)
        self.engine: Optional[AsyncEngine] = engine
        self.id_field = self.connection_args.get("id_field", self.id_field)

    @abstractmethod
    def construct_uri(self, args: Dict[str, Any]) -> str:
        """Builds the async SQLAlchemy URL from connection settings."""
        pass

    def engine_options(self) -> Dict[str, Any]:
        """Keyword arguments for create_async_engine; pool sizing comes from settings."""
        options: Dict[str, Any] = {"pool_pre_ping": True}
        for key in ("pool_size", "max_overflow", "pool_recycle"):
            if key in self.connection_args:
                options[key] = int(self.connection_args[key])
        return options

    async def connect(self) -> None:
        if self.engine is not None:
            return
        uri = self.construct_uri(self.connection_args)
        try:
            self.engine = create_async_engine(uri, **self.engine_options())
        except Exception as e:
            logger.error(f"Failed to create engine for {self}: {e}")
            raise
        logger.debug(f"Engine created for {self}")

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None

    async def _run(
        self,
        work: Callable[[AsyncConnection], Awaitable[Any]],
        transaction: Optional[TransactionHandle] = None,
    ) -> Any:
        """Runs ``work`` on the transaction's connection or on a fresh autocommitting one."""
        if transaction is not None:
            return await work(self._connection_of(transaction))
        if self.engine is None:
            await self.connect()
        async with self.engine.begin() as conn:
            return await work(conn)

    def _connection_of(self, transaction: TransactionHandle) -> AsyncConnection:
        if not isinstance(transaction, ConnectionTransaction):
            raise TypeError(f"{self} expects a connection transaction, got '{transaction.kind}'")
        return transaction.connection

    def _table(self, name: str, columns: Iterable[str] = ()):
        schema = None
        if "." in name:
            schema, name = name.rsplit(".", 1)
        return table(name, *[column(c) for c in columns], schema=schema)

    def _coerce_id(self, document_id: Any) -> Any:
        if isinstance(document_id, str) and document_id.isdigit():
            return int(document_id)
        return document_id

    def _clause(self, condition: Filter):
        build = _OPERATORS.get(condition.operator)
        if build is None:
            raise ValueError(f"{self} does not support {condition.operator.value} filters")
        return build(column(condition.field), condition.value)

    def build_select(self, options: QueryOptions):
        """Translates QueryOptions into a Core SELECT."""
        columns = [column(f) for f in options.fields] if options.fields else [literal_column("*")]
        stmt = select(*columns).select_from(self._table(options.collection))
        for condition in options.filters:
            stmt = stmt.where(self._clause(condition))
        if options.raw_where:
            stmt = stmt.where(text(options.raw_where))
        for spec in options.sort:
            col = column(spec.field)
            stmt = stmt.order_by(col.desc() if spec.direction is SortDirection.DESC else col.asc())
        if options.limit is not None:
            stmt = stmt.limit(options.limit)
        if options.offset is not None:
            stmt = stmt.offset(options.offset)
        return stmt

    async def get(self, options: QueryOptions, transaction: Optional[TransactionHandle] = None) -> List[Dict[str, Any]]:
        stmt = self.build_select(options)

        async def work(conn: AsyncConnection):
            result = await conn.execute(stmt)
            return [dict(row) for row in result.mappings().all()]

        return await self._run(work, transaction)

    async def add_document(
        self,
        collection: str,
        data: Mapping[str, Any],
        transaction: Optional[TransactionHandle] = None,
    ) -> str:
        values = dict(data)
        stmt = self._table(collection, values.keys()).insert().values(values)
        if self.supports_returning:
            stmt = stmt.returning(column(self.id_field))

        async def work(conn: AsyncConnection):
            result = await conn.execute(stmt)
            if self.supports_returning:
                return result.scalar()
            return result.lastrowid

        inserted = await self._run(work, transaction)
        if values.get(self.id_field) is not None:
            inserted = values[self.id_field]
        logger.debug(f"Inserted into {collection} on {self}: id={inserted}")
        return str(inserted)

    async def update_document(
        self,
        collection: str,
        document_id: Any,
        data: Mapping[str, Any],
        transaction: Optional[TransactionHandle] = None,
    ) -> None:
        values = dict(data)
        t = self._table(collection, values.keys())
        stmt = t.update().where(column(self.id_field) == self._coerce_id(document_id)).values(values)

        async def work(conn: AsyncConnection):
            return (await conn.execute(stmt)).rowcount

        if await self._run(work, transaction) == 0:
            raise DocumentNotFoundError(collection, document_id)

    async def delete_document(
        self,
        collection: str,
        document_id: Any,
        transaction: Optional[TransactionHandle] = None,
    ) -> None:
        stmt = self._table(collection).delete().where(column(self.id_field) == self._coerce_id(document_id))

        async def work(conn: AsyncConnection):
            return (await conn.execute(stmt)).rowcount

        if await self._run(work, transaction) == 0:
            raise DocumentNotFoundError(collection, document_id)

    async def raw(
        self,
        query: Any,
        bindings: Any = None,
        transaction: Optional[TransactionHandle] = None,
    ) -> Any:
        """
        Executes a backend-native statement.

        Mapping bindings are bound by name (``:name``); sequence bindings are
        passed positionally in the driver's own paramstyle. Row-returning
        statements yield a list of dicts, anything else the affected row count.
        """
        query = str(query)

        async def work(conn: AsyncConnection):
            if isinstance(bindings, Mapping):
                result = await conn.execute(text(query), dict(bindings))
            elif isinstance(bindings, Sequence) and not isinstance(bindings, str) and bindings:
                result = await conn.exec_driver_sql(query, tuple(bindings))
            else:
                result = await conn.exec_driver_sql(query)
            if result.returns_rows:
                return [dict(row) for row in result.mappings().all()]
            return result.rowcount

        logger.debug(f"Raw statement on {self}: {query}")
        return await self._run(work, transaction)

    async def begin_transaction(self) -> ConnectionTransaction:
        if self.engine is None:
            await self.connect()
        conn = await self.engine.connect()
        try:
            trans = await conn.begin()
        except Exception:
            await conn.close()
            raise
        return ConnectionTransaction(connection_name=self.connection_name, connection=conn, transaction=trans)

    async def commit_transaction(self, handle: TransactionHandle) -> None:
        conn = self._connection_of(handle)
        try:
            await handle.transaction.commit()
        finally:
            await conn.close()

    async def rollback_transaction(self, handle: TransactionHandle) -> None:
        conn = self._connection_of(handle)
        try:
            await handle.transaction.rollback()
        finally:
            await conn.close()


def build_url(drivername: str, args: Mapping[str, Any], default_port: Optional[int] = None) -> str:
    """
    Renders a server URL from connection settings.

    An explicit ``url`` setting wins; its driver is swapped for ``drivername``
    so plain ``mysql://`` / ``postgresql://`` URLs select the async driver.
    """
    if args.get("url"):
        return make_url(str(args["url"])).set(drivername=drivername).render_as_string(hide_password=False)
    port = args.get("port") or default_port
    return URL.create(
        drivername,
        username=args.get("user") or args.get("username"),
        password=args.get("password"),
        host=args.get("host", "localhost"),
        port=int(port) if port else None,
        database=args.get("database"),
    ).render_as_string(hide_password=False)
