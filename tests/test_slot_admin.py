"""Tests for admin holds, SlotCap overrides and DriverCap upserts."""

import pytest

from packages.delivery.capacity import CapacityResolver
from packages.delivery.slot_admin import SlotAdmin, parse_capacity
from packages.shared.errors import ValidationError

DAY = "2025-03-11"
W6 = "6:00–7:00 AM"


@pytest.fixture
def admin(store, config):
    return SlotAdmin(store, config)


class TestAdminHold:
    @pytest.mark.asyncio
    async def test_hold_creates_admin_rows(self, store, admin):
        result = await admin.admin_hold(DAY, W6, 3, "hold")

        assert result.to_dict() == {"action": "hold", "requested": 3, "created": 3}
        rows = store.rows("Slots")
        assert len(rows) == 3
        for row in rows:
            assert row["Status"] == "confirmed"
            assert row["Items"] == 1
            assert row["AdminHold"] is True
            assert row["Note"] == "admin_hold"
            assert row["Window"] == W6

    @pytest.mark.asyncio
    async def test_hold_reduces_availability(self, store, config, admin, now):
        await admin.admin_hold(DAY, "6:00-7:00 AM", 2)
        result = await CapacityResolver(store, config).availability(DAY, [W6])
        assert result[W6].current == 2
        assert result[W6].available == 3

    @pytest.mark.asyncio
    async def test_qty_floor_is_one(self, store, admin):
        result = await admin.admin_hold(DAY, W6, 0)
        assert result.created == 1

    @pytest.mark.asyncio
    async def test_release_deletes_only_admin_holds(self, store, admin):
        await admin.admin_hold(DAY, W6, 3)
        customer = store.add("Slots", {"Date": DAY, "Window": W6, "Status": "confirmed", "Items": 1})

        result = await admin.admin_hold(DAY, W6, 2, "release")

        assert result.deleted == 2
        remaining = store.rows("Slots")
        assert len(remaining) == 2
        assert customer in store.tables["Slots"]

    @pytest.mark.asyncio
    async def test_release_with_nothing_held(self, store, admin):
        result = await admin.admin_hold(DAY, W6, 1, "release")
        assert result.deleted == 0
        assert ("delete", "Slots") not in store.calls

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "date,window,action,code",
        [
            ("03/11/2025", W6, "hold", "invalid_date"),
            (DAY, "noon", "hold", "invalid_window"),
            (DAY, W6, "steal", "invalid_action"),
        ],
    )
    async def test_validation(self, store, admin, date, window, action, code):
        with pytest.raises(ValidationError) as exc:
            await admin.admin_hold(date, window, 1, action)
        assert exc.value.code == code
        assert store.calls == []


class TestSlotCapacity:
    @pytest.mark.asyncio
    async def test_set_twice_keeps_one_row(self, store, admin):
        first = await admin.set_slot_capacity(DAY, W6, 4)
        second = await admin.set_slot_capacity(DAY, W6, 4)

        assert first.created and not first.updated
        assert second.updated and not second.created
        rows = store.rows("SlotCaps")
        assert len(rows) == 1
        assert rows[0]["Capacity"] == 4

    @pytest.mark.asyncio
    async def test_window_suffix_and_dash_are_normalized(self, store, admin):
        change = await admin.set_slot_capacity(DAY, "6:00-7:00 AM — 3 left", 2)
        assert change.window == W6
        assert store.rows("SlotCaps")[0]["Window"] == W6

    @pytest.mark.asyncio
    async def test_null_capacity_removes_override(self, store, admin):
        await admin.set_slot_capacity(DAY, W6, 4)
        removed = await admin.set_slot_capacity(DAY, W6, None)
        again = await admin.set_slot_capacity(DAY, W6, None)

        assert removed.removed
        assert not again.removed
        assert store.rows("SlotCaps") == []

    @pytest.mark.asyncio
    async def test_invalid_inputs(self, admin):
        with pytest.raises(ValidationError) as exc:
            await admin.set_slot_capacity(DAY, W6, -1)
        assert exc.value.code == "invalid_capacity"
        with pytest.raises(ValidationError) as exc:
            await admin.set_slot_capacity(DAY, "9:00–10:00 AM", 3)
        assert exc.value.code == "invalid_window"

    def test_parse_capacity(self):
        assert parse_capacity(None) is None
        assert parse_capacity("3") == 3
        assert parse_capacity(0) == 0
        for bad in ("x", -2, True, float("nan"), float("inf")):
            with pytest.raises(ValidationError):
                parse_capacity(bad)


class TestDriverCaps:
    @pytest.mark.asyncio
    async def test_upsert_creates_then_updates(self, store, admin):
        first = await admin.set_driver_caps(DAY, [
            {"driver": "Sean", "window": W6, "capacity": 5},
            {"driver": "Kim", "window": "6:00-7:00 AM", "capacity": 3},
        ])
        assert len(first.created) == 2 and first.updated == []

        second = await admin.set_driver_caps(DAY, [{"driver": "Sean", "window": "6:00—7:00 AM", "capacity": 2}])

        assert second.created == []
        assert second.updated == [{"driver": "Sean", "window": W6, "capacity": 2}]
        rows = {r["Driver"]: r for r in store.rows("DriverCaps")}
        assert len(rows) == 2
        assert rows["Sean"]["Capacity"] == 2
        assert rows["Kim"]["Window"] == W6

    @pytest.mark.asyncio
    async def test_skips_incomplete_rows_and_clamps(self, store, admin):
        result = await admin.set_driver_caps(DAY, [
            {"driver": "", "window": W6, "capacity": 1},
            {"driver": "Sean", "capacity": 1},
            {"driver": "Sean", "window": W6, "capacity": -4},
        ])
        assert result.skipped == 2
        assert result.created == [{"driver": "Sean", "window": W6, "capacity": 0}]

    @pytest.mark.asyncio
    async def test_empty_caps_rejected(self, admin):
        with pytest.raises(ValidationError) as exc:
            await admin.set_driver_caps(DAY, [])
        assert exc.value.code == "empty_caps"

    @pytest.mark.asyncio
    async def test_failed_create_is_counted(self, store, admin):
        store.fail[("create", "DriverCaps")] = 422
        result = await admin.set_driver_caps(DAY, [{"driver": "Sean", "window": W6, "capacity": 5}])
        assert result.failed == 1
        assert result.created == []
