"""System settings catalogue, typed lookups and validated updates."""

from __future__ import annotations

import logging
import math

from sqlalchemy.orm import Session

from backoffice.analytics import DEFAULT_EXPIRY_WINDOW_DAYS, DEFAULT_REPORT_MONTHS
from backoffice.models import SystemSetting

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = [
    {
        "setting_key": "company_name",
        "setting_value": "Insurance Agency",
        "description": "Trading name shown on receipts and reports.",
        "category": "company",
        "data_type": "string",
        "is_public": True,
    },
    {
        "setting_key": "company_phone",
        "setting_value": "+254 700 123 456",
        "description": "Main contact and emergency line.",
        "category": "company",
        "data_type": "string",
        "is_public": True,
    },
    {
        "setting_key": "company_address",
        "setting_value": "Nairobi, Kenya",
        "description": "Postal and physical address of the agency.",
        "category": "company",
        "data_type": "string",
        "is_public": True,
    },
    {
        "setting_key": "currency",
        "setting_value": "KES",
        "description": "Currency code used for all monetary amounts.",
        "category": "billing",
        "data_type": "string",
        "is_public": True,
    },
    {
        "setting_key": "mpesa_paybill",
        "setting_value": "",
        "description": "M-Pesa paybill number for premium collection.",
        "category": "billing",
        "data_type": "string",
        "is_public": False,
    },
    {
        "setting_key": "expiry_window_days",
        "setting_value": str(DEFAULT_EXPIRY_WINDOW_DAYS),
        "description": "Days ahead in which an active policy counts as expiring soon.",
        "category": "policies",
        "data_type": "number",
        "is_public": False,
    },
    {
        "setting_key": "report_period_months",
        "setting_value": str(DEFAULT_REPORT_MONTHS),
        "description": "Default trailing window for the analytics report.",
        "category": "reports",
        "data_type": "number",
        "is_public": False,
    },
    {
        "setting_key": "sms_provider",
        "setting_value": "africastalking",
        "description": "Provider used for renewal reminders by SMS.",
        "category": "notifications",
        "data_type": "string",
        "is_public": False,
    },
    {
        "setting_key": "renewal_reminders_enabled",
        "setting_value": "true",
        "description": "Send reminders for policies about to expire.",
        "category": "notifications",
        "data_type": "boolean",
        "is_public": False,
    },
]

# Inclusive limits for number settings that feed date arithmetic.
NUMBER_BOUNDS = {
    "expiry_window_days": (1, 3650),
    "report_period_months": (1, 60),
}


def ensure_default_settings(db: Session) -> int:
    existing = {row.setting_key for row in db.query(SystemSetting.setting_key).all()}
    added = 0
    for item in DEFAULT_SETTINGS:
        if item["setting_key"] in existing:
            continue
        db.add(SystemSetting(**item))
        added += 1
    db.commit()
    return added


def list_settings(db: Session, category: str | None = None) -> list[SystemSetting]:
    query = db.query(SystemSetting)
    if category:
        query = query.filter(SystemSetting.category == category)
    return query.order_by(SystemSetting.category.asc(), SystemSetting.setting_key.asc()).all()


def get_setting(db: Session, setting_key: str) -> SystemSetting | None:
    return db.query(SystemSetting).filter(SystemSetting.setting_key == setting_key.strip()).first()


def get_int_setting(db: Session, setting_key: str, default: int) -> int:
    setting = get_setting(db, setting_key)
    if setting is None:
        return default
    try:
        value = int(float(setting.setting_value))
    except (TypeError, ValueError, OverflowError):
        logger.warning("Setting %s has non-numeric value %r; using %s", setting_key, setting.setting_value, default)
        return default

    bounds = NUMBER_BOUNDS.get(setting_key)
    if bounds and not bounds[0] <= value <= bounds[1]:
        logger.warning("Setting %s value %s is out of range; using %s", setting_key, value, default)
        return default
    return value


def _validate_value(setting_key: str, data_type: str, value: str) -> str:
    value = value.strip()
    if data_type == "boolean":
        lowered = value.lower()
        if lowered not in ("true", "false"):
            raise ValueError("Boolean settings accept 'true' or 'false'")
        return lowered
    if data_type == "number":
        try:
            number = float(value)
        except ValueError as exc:
            raise ValueError("Number settings require a numeric value") from exc
        if not math.isfinite(number):
            raise ValueError("Number settings require a finite value")
        bounds = NUMBER_BOUNDS.get(setting_key)
        if bounds:
            low, high = bounds
            if not number.is_integer() or not low <= number <= high:
                raise ValueError(f"{setting_key} must be a whole number between {low} and {high}")
            return str(int(number))
    return value


def update_setting(db: Session, setting: SystemSetting, value: str) -> SystemSetting:
    setting.setting_value = _validate_value(setting.setting_key, setting.data_type, value)
    db.commit()
    db.refresh(setting)
    logger.info("Setting %s updated", setting.setting_key)
    return setting


def group_settings(settings: list[SystemSetting]) -> dict[str, list[dict]]:
    grouped: dict[str, list[dict]] = {}
    for setting in settings:
        grouped.setdefault(setting.category, []).append(serialize_setting(setting))
    return grouped


def serialize_setting(setting: SystemSetting) -> dict:
    return {
        "setting_key": setting.setting_key,
        "setting_value": setting.setting_value,
        "description": setting.description,
        "category": setting.category,
        "data_type": setting.data_type,
        "is_public": setting.is_public,
    }
