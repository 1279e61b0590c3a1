"""Configuration from environment variables."""

import os
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

from packages.delivery.config import DeliveryConfig, StoreTables
from packages.delivery.record_store import DEFAULT_API_URL
from packages.delivery.windows import parse_window_list

_project_root = Path(__file__).resolve().parents[2]
load_dotenv(_project_root / ".env")


def get_env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(key, default)


def get_int(key: str, default: int) -> int:
    try:
        return int(get_env(key) or default)
    except ValueError:
        return default


class Settings:
    airtable_api_key: str = get_env("AIRTABLE_API_KEY") or ""
    airtable_base_id: str = get_env("AIRTABLE_BASE_ID") or ""
    airtable_api_url: str = get_env("AIRTABLE_API_URL") or DEFAULT_API_URL
    table_orders: str = get_env("AIRTABLE_TABLE_NAME") or "Orders"
    table_slots: str = get_env("AIRTABLE_TABLE_SLOTS") or "Slots"
    table_slot_caps: str = get_env("AIRTABLE_TABLE_SLOT_CAPS") or "SlotCaps"
    table_driver_caps: str = get_env("AIRTABLE_TABLE_DRIVER_CAPS") or "DriverCaps"
    table_votes: str = get_env("AIRTABLE_TABLE_VOTES") or ""
    table_merch: str = get_env("AIRTABLE_TABLE_MERCH") or ""

    windows_list: str = get_env("WINDOWS_LIST") or ""
    slot_capacity_default: int = get_int("SLOT_CAPACITY_DEFAULT", 5)
    pending_fresh_minutes: int = get_int("PENDING_FRESH_MIN", 60)
    route_stop_minutes: int = get_int("ROUTE_STOP_MINUTES", 12)
    shop_timezone: str = get_env("SHOP_TIMEZONE") or "America/New_York"
    shop_name: str = get_env("SHOP_NAME") or "Sean’s Muffins"

    admin_api_token: str = get_env("ADMIN_API_TOKEN") or ""

    stripe_secret_key: str = get_env("STRIPE_SECRET_KEY") or ""
    stripe_webhook_secret: str = get_env("STRIPE_WEBHOOK_SECRET") or ""

    twilio_account_sid: str = get_env("TWILIO_ACCOUNT_SID") or ""
    twilio_auth_token: str = get_env("TWILIO_AUTH_TOKEN") or ""
    twilio_from_number: str = get_env("TWILIO_FROM_NUMBER") or get_env("TWILIO_FROM") or ""

    vote_webhook_url: str = get_env("VOTE_WEBHOOK_URL") or ""
    merch_webhook_url: str = get_env("MERCH_WEBHOOK_URL") or ""

    log_level: str = get_env("LOG_LEVEL") or "INFO"
    log_json: bool = (get_env("LOG_JSON") or "true").lower() in ("1", "true", "yes")

    @property
    def store_configured(self) -> bool:
        return bool(self.airtable_api_key and self.airtable_base_id)

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key)

    @property
    def twilio_configured(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token and self.twilio_from_number)

    @property
    def admin_tokens(self) -> List[str]:
        return [t.strip() for t in self.admin_api_token.split(",") if t.strip()]

    def delivery_config(self) -> DeliveryConfig:
        return DeliveryConfig(
            windows=parse_window_list(self.windows_list),
            default_capacity=self.slot_capacity_default,
            pending_fresh_minutes=self.pending_fresh_minutes,
            stop_minutes=self.route_stop_minutes,
            timezone=self.shop_timezone,
            shop_name=self.shop_name,
            tables=StoreTables(
                orders=self.table_orders,
                slots=self.table_slots,
                slot_caps=self.table_slot_caps,
                driver_caps=self.table_driver_caps,
                votes=self.table_votes,
                merch=self.table_merch,
            ),
        )

    def today(self) -> date:
        """Calendar date in the shop's timezone."""
        return datetime.now(ZoneInfo(self.shop_timezone)).date()


settings = Settings()
