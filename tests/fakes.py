"""In-memory stand-ins for the record store, Stripe and Twilio."""

import itertools
from typing import Any, Dict, List, Optional, Sequence, Tuple

from packages.delivery.notifications import SmsDeliveryError, SmsReceipt
from packages.delivery.record_store import BatchResult, FailedBatch, chunked
from packages.delivery.records import Record
from packages.shared.errors import ConfigurationError, ValidationError


class FakeRecordStore:
    """
    Same surface as RecordStoreClient. Filter formulas are recorded but not
    evaluated, so callers' own Python-side filtering is what gets tested.
    """

    def __init__(self, configured: bool = True):
        self.configured = configured
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.formulas: List[str] = []
        # (action, table) -> status code returned for every sub-batch from the Nth call on
        self.fail: Dict[Tuple[str, str], int] = {}
        self.fail_first_only: Dict[Tuple[str, str], int] = {}
        self._ids = itertools.count(1)

    def _require_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError("Record store not configured", code="airtable_config")

    def add(self, table: str, fields: Dict[str, Any], record_id: Optional[str] = None) -> str:
        record_id = record_id or f"rec{next(self._ids):05d}"
        self.tables.setdefault(table, {})[record_id] = dict(fields)
        return record_id

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return [dict(f, id=rid) for rid, f in self.tables.get(table, {}).items()]

    def writes(self) -> List[Tuple[str, str]]:
        return [c for c in self.calls if c[0] in ("create", "update", "delete")]

    async def list_records(self, table, formula=None, sort=None, max_records=None, page_size=100):
        self._require_configured()
        self.calls.append(("list", table))
        if formula:
            self.formulas.append(formula)
        out = [Record(id=rid, fields=dict(f)) for rid, f in self.tables.get(table, {}).items()]
        return out if max_records is None else out[:max_records]

    async def get_record(self, table, record_id):
        self._require_configured()
        self.calls.append(("get", table))
        fields = self.tables.get(table, {}).get(record_id)
        return Record(id=record_id, fields=dict(fields)) if fields is not None else None

    def _status(self, action: str, table: str) -> Optional[int]:
        key = (action, table)
        if key in self.fail_first_only:
            return self.fail_first_only.pop(key)
        return self.fail.get(key)

    def _run(self, action, table, items, apply, stop_on_error, code):
        result = BatchResult()
        for chunk in chunked(list(items)):
            status = self._status(action, table)
            if status is not None:
                result.failed.append(FailedBatch(payload=chunk, status_code=status, detail="rejected"))
                if stop_on_error:
                    result.raise_for_failures(code)
                continue
            result.succeeded.extend(apply(chunk))
        return result

    async def create_records(self, table, rows, typecast=False, stop_on_error=False):
        self._require_configured()
        self.calls.append(("create", table))

        def apply(chunk):
            return [Record(id=self.add(table, fields), fields=dict(fields)) for fields in chunk]

        return self._run("create", table, rows, apply, stop_on_error, "airtable_create_failed")

    async def update_records(self, table, updates, typecast=False, stop_on_error=False):
        self._require_configured()
        self.calls.append(("update", table))

        def apply(chunk):
            out = []
            for rid, fields in chunk:
                row = self.tables.setdefault(table, {}).setdefault(rid, {})
                row.update(fields)
                out.append(Record(id=rid, fields=dict(row)))
            return out

        return self._run("update", table, updates, apply, stop_on_error, "airtable_update_failed")

    async def delete_records(self, table, record_ids, stop_on_error=False):
        self._require_configured()
        self.calls.append(("delete", table))

        def apply(chunk):
            out = []
            for rid in chunk:
                self.tables.get(table, {}).pop(rid, None)
                out.append(Record(id=rid, fields={}))
            return out

        return self._run("delete", table, record_ids, apply, stop_on_error, "airtable_delete_failed")


class FakeSms:
    def __init__(self, fail_for: Sequence[str] = ()):
        self.sent: List[Tuple[str, str]] = []
        self.fail_for = set(fail_for)

    async def send(self, to: str, body: str) -> SmsReceipt:
        if to in self.fail_for:
            raise SmsDeliveryError("Unreachable destination", code="twilio_21211", status=400)
        self.sent.append((to, body))
        return SmsReceipt(sid=f"SM{len(self.sent):04d}", status="queued")


class FakePayments:
    def __init__(self, sessions: Optional[Dict[str, Dict[str, Any]]] = None, configured: bool = True):
        self.sessions = sessions or {}
        self.configured = configured
        self.created: List[Dict[str, Any]] = []
        self.events: List[Dict[str, Any]] = []

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError("Stripe not configured", code="stripe_config")

    async def create_checkout_session(self, items, success_url, cancel_url, metadata=None):
        self.ensure_configured()
        self.created.append({
            "items": list(items),
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": dict(metadata or {}),
        })
        return {"id": "cs_test_1", "url": "https://checkout.stripe.test/cs_test_1"}

    async def retrieve_session(self, session_id: str) -> Dict[str, Any]:
        return self.sessions[session_id]

    def verify_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        if signature != "valid":
            raise ValidationError("Invalid signature", code="invalid_signature")
        return self.events.pop(0)
