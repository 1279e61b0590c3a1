"""Tests for route assignment."""

from unittest.mock import patch

import pytest
import requests

from packages.delivery.notifications import TwilioSmsSender
from packages.delivery.records import Order
from packages.delivery.routing import RouteAssignmentEngine, plan_route
from packages.shared.errors import UpstreamError, ValidationError

from fakes import FakeSms

DAY = "2025-03-11"


def add_order(store, window, status="unassigned", date=DAY, **extra):
    fields = {"delivery_date": date, "preferred_window": window, "status": status}
    fields.update(extra)
    return store.add("Orders", fields)


def test_plan_route_sorts_and_assigns_etas():
    orders = [
        Order(id="nine", preferred_window="9:00–10:00 AM"),
        Order(id="seven", preferred_window="7:00–8:00 AM"),
        Order(id="eight", preferred_window="8:00–9:00 AM"),
    ]
    stops = plan_route(orders, 12)
    assert [s.order.id for s in stops] == ["seven", "eight", "nine"]
    assert [s.route_position for s in stops] == [1, 2, 3]
    assert [s.delivery_time for s in stops] == ["7:00 AM", "7:12 AM", "7:24 AM"]


def test_plan_route_never_starts_after_eight():
    orders = [Order(id="a", preferred_window="10:00–11:00 AM"), Order(id="b", preferred_window="9:00 AM")]
    stops = plan_route(orders, 15)
    assert [s.order.id for s in stops] == ["b", "a"]
    assert [s.delivery_time for s in stops] == ["8:00 AM", "8:15 AM"]


def test_plan_route_is_stable_and_defaults_unparsable_to_nine():
    orders = [
        Order(id="x", preferred_window="anytime"),
        Order(id="y", preferred_window="9:00–10:00 AM"),
        Order(id="z", preferred_window="6:00–7:00 AM"),
    ]
    stops = plan_route(orders, 10)
    assert [s.order.id for s in stops] == ["z", "x", "y"]
    assert stops[0].delivery_time == "6:00 AM"


def test_plan_route_empty():
    assert plan_route([], 12) == []


@pytest.mark.asyncio
async def test_schedule_day_writes_back_and_texts(store, config):
    a = add_order(store, "9:00–10:00 AM", customer_name="Ana Lopez", phone="+15551230001")
    b = add_order(store, "7:00–8:00 AM", customer_name="Ben", phone="+15551230002")
    c = add_order(store, "8:00–9:00 AM")
    add_order(store, "6:00–7:00 AM", status="scheduled")
    add_order(store, "6:00–7:00 AM", date="2025-03-12")
    sms = FakeSms()

    result = await RouteAssignmentEngine(store, config, sms=sms).schedule_day(DAY, 12)

    assert result.scheduled == 3
    assert result.notifications_sent == 2
    orders = store.tables["Orders"]
    assert orders[b]["status"] == "scheduled"
    assert orders[b]["route_position"] == 1 and orders[b]["delivery_time"] == "7:00 AM"
    assert orders[c]["route_position"] == 2 and orders[c]["delivery_time"] == "7:12 AM"
    assert orders[a]["route_position"] == 3 and orders[a]["delivery_time"] == "7:24 AM"
    assert sms.sent[0] == (
        "+15551230002",
        "Hi Ben, Sean’s Muffins here! Your delivery is scheduled for ~7:00 AM on 2025-03-11. "
        "Reply STOP to opt out.",
    )
    assert sms.sent[1][1].startswith("Hi Ana, ")
    assert result.to_dict()["stops"][0]["id"] == b


@pytest.mark.asyncio
async def test_schedule_day_without_work_performs_no_writes(store, config):
    add_order(store, "7:00–8:00 AM", status="scheduled")

    result = await RouteAssignmentEngine(store, config).schedule_day(DAY)

    assert result.scheduled == 0
    assert result.to_dict()["message"] == "No unassigned orders for 2025-03-11."
    assert store.writes() == []


@pytest.mark.asyncio
async def test_sms_failure_does_not_abort(store, config):
    add_order(store, "7:00–8:00 AM", customer_name="Ann", phone="+15550000001")
    add_order(store, "8:00–9:00 AM", customer_name="Bo", phone="+15550000002")
    sms = FakeSms(fail_for=["+15550000001"])

    result = await RouteAssignmentEngine(store, config, sms=sms).schedule_day(DAY)

    assert result.scheduled == 2
    assert result.notifications_sent == 1
    assert sms.sent[0][0] == "+15550000002"


@pytest.mark.asyncio
async def test_unreachable_sms_provider_does_not_abort(store, config):
    ann = add_order(store, "7:00–8:00 AM", customer_name="Ann", phone="+15550000001")
    bo = add_order(store, "8:00–9:00 AM", customer_name="Bo", phone="+15550000002")
    sender = TwilioSmsSender("ACtest", "token", "+15550000000")

    with patch.object(
        sender._client.http_client,
        "request",
        side_effect=requests.exceptions.ConnectionError("connection refused"),
    ) as request:
        result = await RouteAssignmentEngine(store, config, sms=sender).schedule_day(DAY)

    assert result.scheduled == 2
    assert result.notifications_sent == 0
    assert request.call_count == 2
    assert store.tables["Orders"][ann]["status"] == "scheduled"
    assert store.tables["Orders"][bo]["route_position"] == 2


@pytest.mark.asyncio
async def test_write_back_failure_is_fatal(store, config):
    for _ in range(3):
        add_order(store, "7:00–8:00 AM", phone="+15550000001")
    store.fail[("update", "Orders")] = 422
    sms = FakeSms()

    with pytest.raises(UpstreamError) as exc:
        await RouteAssignmentEngine(store, config, sms=sms).schedule_day(DAY)

    assert exc.value.code == "airtable_update_failed"
    assert sms.sent == []


@pytest.mark.asyncio
async def test_invalid_stop_rejected(store, config):
    with pytest.raises(ValidationError) as exc:
        await RouteAssignmentEngine(store, config).schedule_day(DAY, 0)
    assert exc.value.code == "invalid_stop"
    assert store.calls == []
