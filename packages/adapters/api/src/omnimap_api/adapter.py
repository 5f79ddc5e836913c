import json
import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Tuple

import httpx

from omnimap_adapter_sdk import (
    DocumentAdapter,
    DocumentNotFoundError,
    FilterOperator,
    QueryOptions,
    Requestable,
    SortDirection,
    TransactionHandle,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30000

DEFAULT_ENDPOINTS = {
    "get": "/{collection}",
    "get_one": "/{collection}/{id}",
    "create": "/{collection}",
    "update": "/{collection}/{id}",
    "delete": "/{collection}/{id}",
}

DEFAULT_QUERY_PARAMS = {
    "filters": "filter",
    "limit": "limit",
    "offset": "offset",
    "sort": "sort",
    "fields": "fields",
}

_OPERATOR_NAMES = {
    FilterOperator.EQ: "eq",
    FilterOperator.NE: "ne",
    FilterOperator.GT: "gt",
    FilterOperator.GTE: "gte",
    FilterOperator.LT: "lt",
    FilterOperator.LTE: "lte",
    FilterOperator.LIKE: "like",
    FilterOperator.IN: "in",
    FilterOperator.NOT_IN: "nin",
}


def _snake(key: str) -> str:
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in key)


class ApiAdapter(DocumentAdapter, Requestable):
    """
    Generic REST resource API over httpx.

    Settings: ``base_url``, ``headers``, ``timeout`` (milliseconds),
    ``endpoints`` (path templates with ``{collection}`` / ``{id}``) and
    ``query_param_mapping`` (names of the filter / paging / sort / fields
    query parameters). camelCase keys are accepted as well.
    """

    dialect = "api"

    def __init__(
        self,
        connection_name: str,
        connection_args: Optional[Mapping[str, Any]] = None,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(connection_name, connection_args)
        args = {_snake(k): v for k, v in self.connection_args.items()}
        self.base_url = str(args.get("base_url") or args.get("url") or "").rstrip("/")
        if not self.base_url:
            raise ValueError(f"Missing 'base_url' in api settings for {self}")
        self.headers: Dict[str, str] = dict(args.get("headers") or {})
        self.timeout_ms = int(args.get("timeout") or DEFAULT_TIMEOUT_MS)
        self.endpoints = {**DEFAULT_ENDPOINTS, **{_snake(k): v for k, v in (args.get("endpoints") or {}).items()}}
        self.query_params = {**DEFAULT_QUERY_PARAMS, **dict(args.get("query_param_mapping") or {})}
        self.id_field = args.get("id_field", self.id_field)
        self.client = client
        self._transport = transport

    async def connect(self) -> None:
        if self.client is not None:
            return
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json", **self.headers},
            timeout=self.timeout_ms / 1000,
            transport=self._transport,
        )

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
        self.client = None

    def _path(self, endpoint: str, **values: Any) -> str:
        path = self.endpoints[endpoint]
        for key, value in values.items():
            path = path.replace("{" + key + "}", str(value))
        return path

    def build_params(self, options: QueryOptions) -> List[Tuple[str, str]]:
        """Maps QueryOptions onto query parameters; raw_where is sent alongside the filters."""
        names = self.query_params
        params: List[Tuple[str, str]] = []
        if options.filters:
            filters = {}
            for f in options.filters:
                if f.operator not in _OPERATOR_NAMES:
                    raise ValueError(f"{self} does not support {f.operator.value} filters")
                filters[f.field] = {_OPERATOR_NAMES[f.operator]: f.value}
            params.append((names["filters"], json.dumps(filters, default=str)))
        if options.raw_where:
            params.append((names["filters"], options.raw_where))
        if options.limit is not None:
            params.append((names["limit"], str(options.limit)))
        if options.offset is not None:
            params.append((names["offset"], str(options.offset)))
        if options.sort:
            params.append(
                (
                    names["sort"],
                    ",".join(f"{'-' if s.direction is SortDirection.DESC else ''}{s.field}" for s in options.sort),
                )
            )
        if options.fields:
            params.append((names["fields"], ",".join(options.fields)))
        return params

    async def _fetch(
        self,
        method: str,
        path: str,
        *,
        params: Any = None,
        data: Any = None,
        headers: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        if self.client is None:
            await self.connect()
        timeout_ms = timeout if timeout is not None else self.timeout_ms
        try:
            response = await self.client.request(
                method,
                path,
                params=params,
                json=data,
                headers=dict(headers) if headers else None,
                timeout=timeout_ms / 1000,
            )
        except httpx.TimeoutException:
            logger.error(f"{method} {path} on {self} timed out after {timeout_ms}ms")
            raise
        response.raise_for_status()
        if not response.content:
            return None
        if "application/json" in response.headers.get("content-type", ""):
            return response.json()
        return response.text

    def _unwrap(self, payload: Any) -> List[Dict[str, Any]]:
        if payload is None or payload == "":
            return []
        if isinstance(payload, list):
            return payload
        if isinstance(payload, dict):
            for key in ("data", "results"):
                if isinstance(payload.get(key), list):
                    return payload[key]
            return [payload]
        return [payload]

    async def get(self, options: QueryOptions, transaction: Optional[TransactionHandle] = None) -> List[Dict[str, Any]]:
        payload = await self._fetch(
            "GET",
            self._path("get", collection=options.collection),
            params=self.build_params(options),
        )
        rows = self._unwrap(payload)
        if options.fields:
            # Servers are free to ignore the fields parameter.
            rows = [{k: row[k] for k in options.fields if k in row} for row in rows]
        return rows

    async def add_document(
        self,
        collection: str,
        data: Mapping[str, Any],
        transaction: Optional[TransactionHandle] = None,
    ) -> str:
        payload = await self._fetch("POST", self._path("create", collection=collection), data=dict(data))
        if isinstance(payload, dict):
            nested = payload.get("data") if isinstance(payload.get("data"), dict) else {}
            for candidate in (payload.get(self.id_field), payload.get("_id"), nested.get(self.id_field)):
                if candidate is not None:
                    return str(candidate)
        logger.warning(f"{self} returned no id for new document in {collection}")
        return str(int(time.time() * 1000))

    async def _write(self, method: str, endpoint: str, collection: str, document_id: Any, data: Any = None) -> None:
        try:
            await self._fetch(method, self._path(endpoint, collection=collection, id=document_id), data=data)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise DocumentNotFoundError(collection, document_id) from e
            raise

    async def update_document(
        self,
        collection: str,
        document_id: Any,
        data: Mapping[str, Any],
        transaction: Optional[TransactionHandle] = None,
    ) -> None:
        await self._write("PUT", "update", collection, document_id, dict(data))

    async def delete_document(
        self,
        collection: str,
        document_id: Any,
        transaction: Optional[TransactionHandle] = None,
    ) -> None:
        await self._write("DELETE", "delete", collection, document_id)

    async def request(
        self,
        method: str,
        path: str,
        data: Any = None,
        headers: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Issues an arbitrary request relative to ``base_url``; ``timeout`` is in milliseconds."""
        return await self._fetch(method.upper(), path, data=data, headers=headers, timeout=timeout)
