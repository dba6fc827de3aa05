"""Helpers shared by the record services: reference numbers, search and updates."""

from __future__ import annotations

import secrets
from datetime import date

from sqlalchemy.orm import Session

REFERENCE_ATTEMPTS = 100


def generate_reference(db: Session, column, prefix: str, today: date | None = None) -> str:
    """Return an unused ``<PREFIX><YEAR><NNNN>`` number for ``column``."""
    year = (today or date.today()).year
    for _ in range(REFERENCE_ATTEMPTS):
        candidate = f"{prefix}{year}{secrets.randbelow(10000):04d}"
        exists = db.query(column).filter(column == candidate).first()
        if not exists:
            return candidate
    raise ValueError(f"Unable to generate a unique {prefix} number")


def normalize_reference(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip().upper()
    return value or None


def matches_search(term: str | None, *values: str | None) -> bool:
    """Case-insensitive substring match of ``term`` against any non-empty value."""
    if not term or not term.strip():
        return True
    needle = term.strip().lower()
    return any(value and needle in value.lower() for value in values)


def full_name(person) -> str | None:
    if person is None:
        return None
    return person.full_name


def apply_fields(instance, fields: dict) -> None:
    for key, value in fields.items():
        setattr(instance, key, value)


def isoformat(value) -> str | None:
    return value.isoformat() if value else None
