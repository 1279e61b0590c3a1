"""Tests for visitor signal validation and delivery."""

import json

import httpx
import pytest

from packages.delivery.engagement import FLAVOR_MAX, LOG, STORE, WEBHOOK, deliver, flavor_vote, merch_signup
from packages.shared.errors import ValidationError

from fakes import FakeRecordStore


def test_flavor_is_trimmed_and_capped():
    signal = flavor_vote("  " + "m" * 200, ua="Mozilla", ip="10.0.0.1")
    assert len(signal.value) == FLAVOR_MAX
    assert signal.payload()["ua"] == "Mozilla"
    with pytest.raises(ValidationError):
        flavor_vote(None)


@pytest.mark.parametrize("email", ["", "a@b", "no spaces@x.io", None])
def test_merch_rejects_bad_email(email):
    with pytest.raises(ValidationError) as exc:
        merch_signup(email)
    assert exc.value.code == "invalid_email"


@pytest.mark.asyncio
async def test_webhook_preferred_over_store():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200)

    store = FakeRecordStore()
    sink = await deliver(
        merch_signup("dana@example.com"),
        webhook_url="https://hooks.test/merch",
        store=store,
        table="Merch",
        transport=httpx.MockTransport(handler),
    )
    assert sink == WEBHOOK
    assert seen[0]["type"] == "merch_waitlist"
    assert seen[0]["email"] == "dana@example.com"
    assert store.calls == []


@pytest.mark.asyncio
async def test_webhook_failure_is_swallowed():
    def handler(request):
        raise httpx.ConnectError("down", request=request)

    sink = await deliver(flavor_vote("Banana"), webhook_url="https://hooks.test/v", transport=httpx.MockTransport(handler))
    assert sink == WEBHOOK


@pytest.mark.asyncio
async def test_store_then_log():
    store = FakeRecordStore()
    assert await deliver(flavor_vote("Banana"), store=store, table="Votes") == STORE
    assert store.rows("Votes")[0]["Flavor"] == "Banana"

    offline = FakeRecordStore(configured=False)
    assert await deliver(flavor_vote("Banana"), store=offline, table="Votes") == LOG
