"""Tests for the record store client against a mocked HTTP transport."""

import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from packages.delivery.record_store import MAX_BATCH, RecordStoreClient
from packages.shared.errors import ConfigurationError, UpstreamError


def make_client(handler) -> RecordStoreClient:
    return RecordStoreClient("key123", "appBase", transport=httpx.MockTransport(handler))


def record(rid, **fields):
    return {"id": rid, "createdTime": "2025-03-10T12:00:00.000Z", "fields": fields}


@pytest.mark.asyncio
async def test_unconfigured_store_never_touches_network():
    def handler(request):
        raise AssertionError("network must not be used")

    client = RecordStoreClient("", "", transport=httpx.MockTransport(handler))
    assert not client.configured
    with pytest.raises(ConfigurationError) as exc:
        await client.list_records("Orders")
    assert exc.value.code == "airtable_config"


@pytest.mark.asyncio
async def test_list_follows_offsets_and_sends_formula():
    seen = []

    def handler(request):
        qs = parse_qs(urlparse(str(request.url)).query)
        seen.append(qs)
        assert request.headers["Authorization"] == "Bearer key123"
        if "offset" not in qs:
            return httpx.Response(200, json={"records": [record("rec1")], "offset": "page2"})
        return httpx.Response(200, json={"records": [record("rec2")]})

    client = make_client(handler)
    rows = await client.list_records("Slot Table", formula="{Date}='2025-03-11'", sort=[("created", "asc")])

    assert [r.id for r in rows] == ["rec1", "rec2"]
    assert rows[0].created_time == "2025-03-10T12:00:00.000Z"
    assert seen[0]["filterByFormula"] == ["{Date}='2025-03-11'"]
    assert seen[0]["pageSize"] == ["100"]
    assert seen[0]["sort[0][field]"] == ["created"]
    assert seen[1]["offset"] == ["page2"]


@pytest.mark.asyncio
async def test_table_name_is_url_encoded():
    paths = []

    def handler(request):
        paths.append(request.url.raw_path.decode())
        return httpx.Response(200, json={"records": []})

    await make_client(handler).list_records("Slot Table")
    assert paths[0].startswith("/v0/appBase/Slot%20Table")


@pytest.mark.asyncio
async def test_list_failure_raises_upstream_error():
    client = make_client(lambda request: httpx.Response(503, text="busy"))
    with pytest.raises(UpstreamError) as exc:
        await client.list_records("Orders")
    assert exc.value.code == "airtable_list_failed"
    assert exc.value.details["upstream_status"] == 503


@pytest.mark.asyncio
async def test_get_record_404_is_none():
    client = make_client(lambda request: httpx.Response(404, json={"error": "NOT_FOUND"}))
    assert await client.get_record("Orders", "recMissing") is None


@pytest.mark.asyncio
async def test_create_splits_into_batches_of_ten():
    sizes = []

    def handler(request):
        body = json.loads(request.content)
        sizes.append(len(body["records"]))
        return httpx.Response(200, json={
            "records": [record(f"rec{len(sizes)}_{i}", **r["fields"]) for i, r in enumerate(body["records"])]
        })

    rows = [{"Items": 1} for _ in range(23)]
    result = await make_client(handler).create_records("Slots", rows)

    assert sizes == [MAX_BATCH, MAX_BATCH, 3]
    assert result.ok
    assert len(result.succeeded) == 23


@pytest.mark.asyncio
async def test_failed_batch_is_reported_and_later_batches_still_run():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(422, json={"error": {"type": "INVALID_VALUE_FOR_COLUMN"}})
        body = json.loads(request.content)
        return httpx.Response(200, json={"records": [record(r["id"], **r["fields"]) for r in body["records"]]})

    updates = [(f"rec{i}", {"status": "scheduled"}) for i in range(15)]
    result = await make_client(handler).update_records("Orders", updates)

    assert len(calls) == 2
    assert not result.ok
    assert result.failed[0].status_code == 422
    assert result.failed_count == 10
    assert [r.id for r in result.succeeded] == [f"rec{i}" for i in range(10, 15)]


@pytest.mark.asyncio
async def test_stop_on_error_raises_at_first_failed_batch():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500, text="boom")

    updates = [(f"rec{i}", {"status": "scheduled"}) for i in range(25)]
    with pytest.raises(UpstreamError) as exc:
        await make_client(handler).update_records("Orders", updates, stop_on_error=True)

    assert len(calls) == 1
    assert exc.value.code == "airtable_update_failed"


@pytest.mark.asyncio
async def test_delete_sends_record_ids_as_query():
    seen = []

    def handler(request):
        qs = parse_qs(urlparse(str(request.url)).query)
        seen.append(qs["records[]"])
        return httpx.Response(200, json={"records": [{"id": rid, "deleted": True} for rid in qs["records[]"]]})

    result = await make_client(handler).delete_records("Slots", ["recA", "recB"])
    assert seen == [["recA", "recB"]]
    assert [r.id for r in result.succeeded] == ["recA", "recB"]


@pytest.mark.asyncio
async def test_empty_write_is_a_no_op():
    def handler(request):
        raise AssertionError("no request expected")

    result = await make_client(handler).create_records("Slots", [])
    assert result.ok and result.succeeded == []
