"""
Client for the hosted-spreadsheet REST API (Airtable-compatible).

Reads follow continuation offsets until exhausted and raise UpstreamError on
any non-success page. Writes are split into sub-batches of at most ten
records; a failed sub-batch is logged and recorded in the returned
BatchResult while later sub-batches still run, unless the caller asks for
stop_on_error.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Sequence, Tuple
from urllib.parse import quote

import httpx

from packages.shared.errors import ConfigurationError, UpstreamError

from .records import Record

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.airtable.com/v0"
MAX_BATCH = 10
PAGE_SIZE = 100


@dataclass
class FailedBatch:
    """One sub-batch the store rejected (or that never reached it)."""

    payload: List[Any]
    status_code: Optional[int]
    detail: str = ""


@dataclass
class BatchResult:
    """Outcome of a batched write. `succeeded` holds the records the store echoed back."""

    succeeded: List[Record] = field(default_factory=list)
    failed: List[FailedBatch] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def failed_count(self) -> int:
        return sum(len(b.payload) for b in self.failed)

    def raise_for_failures(self, code: str) -> None:
        if self.failed:
            first = self.failed[0]
            raise UpstreamError(
                f"{len(self.failed)} batch(es) rejected by record store",
                code=code,
                status_code=first.status_code,
                details={"failed_records": self.failed_count},
            )


def chunked(items: Sequence[Any], size: int = MAX_BATCH) -> Iterator[List[Any]]:
    for i in range(0, len(items), size):
        yield list(items[i:i + size])


class RecordStoreClient:
    """Authenticated list/get/create/update/delete against one base."""

    def __init__(
        self,
        api_key: str,
        base_id: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key or ""
        self.base_id = base_id or ""
        self.api_url = (api_url or DEFAULT_API_URL).rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.base_id)

    def _require_configured(self, table: str) -> None:
        if not self.configured:
            raise ConfigurationError(
                "Record store not configured (AIRTABLE_API_KEY, AIRTABLE_BASE_ID)",
                code="airtable_config",
            )
        if not table:
            raise ConfigurationError("Record store table name missing", code="airtable_config")

    def _table_url(self, table: str) -> str:
        return f"{self.api_url}/{self.base_id}/{quote(table, safe='')}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )

    async def list_records(
        self,
        table: str,
        formula: Optional[str] = None,
        sort: Optional[Sequence[Tuple[str, str]]] = None,
        max_records: Optional[int] = None,
        page_size: int = PAGE_SIZE,
    ) -> List[Record]:
        """All records matching `formula`, following offsets. `sort` is [(field, "asc"|"desc")]."""
        self._require_configured(table)
        url = self._table_url(table)
        base_params: List[Tuple[str, str]] = [("pageSize", str(page_size))]
        if formula:
            base_params.append(("filterByFormula", formula))
        if max_records is not None:
            base_params.append(("maxRecords", str(max_records)))
        for i, (field_name, direction) in enumerate(sort or ()):
            base_params.append((f"sort[{i}][field]", field_name))
            base_params.append((f"sort[{i}][direction]", direction or "asc"))

        out: List[Record] = []
        offset: Optional[str] = None
        async with self._client() as client:
            while True:
                params = list(base_params)
                if offset:
                    params.append(("offset", offset))
                try:
                    r = await client.get(url, params=params)
                except httpx.HTTPError as e:
                    logger.error("Record store list %s failed: %s", table, e)
                    raise UpstreamError(f"Record store unreachable: {e}", code="airtable_list_failed") from e
                if not r.is_success:
                    logger.error("Record store list %s failed: %s %s", table, r.status_code, r.text[:300])
                    raise UpstreamError(
                        f"Record store list failed for {table}",
                        code="airtable_list_failed",
                        status_code=r.status_code,
                    )
                data = r.json()
                out.extend(Record.from_api(rec) for rec in data.get("records") or [])
                offset = data.get("offset")
                if not offset or (max_records is not None and len(out) >= max_records):
                    break
        return out if max_records is None else out[:max_records]

    async def get_record(self, table: str, record_id: str) -> Optional[Record]:
        """One record by id, or None when the store says 404."""
        self._require_configured(table)
        url = f"{self._table_url(table)}/{quote(record_id, safe='')}"
        async with self._client() as client:
            try:
                r = await client.get(url)
            except httpx.HTTPError as e:
                raise UpstreamError(f"Record store unreachable: {e}", code="airtable_list_failed") from e
        if r.status_code == 404:
            return None
        if not r.is_success:
            logger.error("Record store get %s/%s failed: %s %s", table, record_id, r.status_code, r.text[:300])
            raise UpstreamError(
                f"Record store get failed for {table}",
                code="airtable_list_failed",
                status_code=r.status_code,
            )
        return Record.from_api(r.json())

    async def create_records(
        self,
        table: str,
        rows: Sequence[Dict[str, Any]],
        typecast: bool = False,
        stop_on_error: bool = False,
    ) -> BatchResult:
        self._require_configured(table)
        url = self._table_url(table)

        async def send(client: httpx.AsyncClient, chunk: List[Dict[str, Any]]) -> httpx.Response:
            body: Dict[str, Any] = {"records": [{"fields": fields} for fields in chunk]}
            if typecast:
                body["typecast"] = True
            return await client.post(url, json=body)

        return await self._run_batches(table, "create", rows, send, "airtable_create_failed", stop_on_error)

    async def update_records(
        self,
        table: str,
        updates: Sequence[Tuple[str, Dict[str, Any]]],
        typecast: bool = False,
        stop_on_error: bool = False,
    ) -> BatchResult:
        """PATCH `(record_id, fields)` pairs; only the given fields change."""
        self._require_configured(table)
        url = self._table_url(table)

        async def send(client: httpx.AsyncClient, chunk: List[Tuple[str, Dict[str, Any]]]) -> httpx.Response:
            body: Dict[str, Any] = {"records": [{"id": rid, "fields": fields} for rid, fields in chunk]}
            if typecast:
                body["typecast"] = True
            return await client.patch(url, json=body)

        return await self._run_batches(table, "update", updates, send, "airtable_update_failed", stop_on_error)

    async def delete_records(
        self,
        table: str,
        record_ids: Sequence[str],
        stop_on_error: bool = False,
    ) -> BatchResult:
        self._require_configured(table)
        url = self._table_url(table)

        async def send(client: httpx.AsyncClient, chunk: List[str]) -> httpx.Response:
            return await client.delete(url, params=[("records[]", rid) for rid in chunk])

        return await self._run_batches(table, "delete", record_ids, send, "airtable_delete_failed", stop_on_error)

    async def _run_batches(
        self,
        table: str,
        action: str,
        items: Sequence[Any],
        send: Callable[[httpx.AsyncClient, List[Any]], Awaitable[httpx.Response]],
        code: str,
        stop_on_error: bool,
    ) -> BatchResult:
        result = BatchResult()
        if not items:
            return result
        async with self._client() as client:
            for chunk in chunked(items):
                try:
                    r = await send(client, chunk)
                except httpx.HTTPError as e:
                    logger.error("Record store %s on %s failed: %s", action, table, e)
                    result.failed.append(FailedBatch(payload=chunk, status_code=None, detail=str(e)))
                else:
                    if r.is_success:
                        result.succeeded.extend(
                            Record.from_api(rec) for rec in (r.json().get("records") or [])
                        )
                        continue
                    logger.error(
                        "Record store %s on %s failed: %s %s",
                        action, table, r.status_code, r.text[:300],
                    )
                    result.failed.append(
                        FailedBatch(payload=chunk, status_code=r.status_code, detail=r.text[:500])
                    )
                if stop_on_error:
                    result.raise_for_failures(code)
        if result.failed:
            logger.warning(
                "Record store %s on %s: %d ok, %d failed",
                action, table, len(result.succeeded), result.failed_count,
            )
        return result
