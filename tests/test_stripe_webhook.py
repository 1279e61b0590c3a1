"""Webhook endpoint tests: verification first, then a 200 whatever the handler does."""

from packages.delivery.checkout import SESSION_COMPLETED, SESSION_EXPIRED

from test_checkout import paid_session

DAY = "2025-03-11"
W6 = "6:00–7:00 AM"


def post_event(client, signature="valid"):
    return client.post("/api/stripe-webhook", content=b'{"id": "evt_1"}', headers={"Stripe-Signature": signature})


def test_bad_signature_is_400(client, store):
    r = post_event(client, signature="forged")
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_signature"
    assert store.calls == []


def test_completed_records_order_and_confirms_slot(client, store, payments):
    slot_id = store.add("Slots", {"Date": DAY, "Window": W6, "Status": "pending", "Items": 1, "ReservationId": "res-1"})
    payments.sessions["cs_paid"] = paid_session()
    payments.events.append({
        "id": "evt_1",
        "type": SESSION_COMPLETED,
        "data": {"object": {"id": "cs_paid", "metadata": {"reservationId": "res-1"}}},
    })

    r = post_event(client)

    assert r.status_code == 200
    assert r.json() == {"received": True}
    (order,) = store.rows("Orders")
    assert order["customer_name"] == "Dana Reyes"
    assert order["preferred_window"] == W6
    assert store.tables["Slots"][slot_id]["Status"] == "confirmed"


def test_expired_releases_reservation(client, store, payments):
    slot_id = store.add("Slots", {"Date": DAY, "Window": W6, "Status": "pending", "Items": 1, "ReservationId": "res-2"})
    payments.events.append({
        "id": "evt_2",
        "type": SESSION_EXPIRED,
        "data": {"object": {"id": "cs_gone", "metadata": {"reservationId": "res-2"}}},
    })

    assert post_event(client).status_code == 200
    assert store.tables["Slots"][slot_id]["Status"] == "expired"


def test_store_failure_still_acknowledged(client, store, payments):
    store.fail[("create", "Orders")] = 500
    payments.sessions["cs_paid"] = paid_session()
    payments.events.append({"id": "evt_3", "type": SESSION_COMPLETED, "data": {"object": {"id": "cs_paid"}}})

    r = post_event(client)

    assert r.status_code == 200
    assert store.rows("Orders") == []
