"""Database configuration and CSV seeding utilities for the agency back office."""

from __future__ import annotations

import csv
import logging
import os
from datetime import date, datetime
from pathlib import Path

from passlib.context import CryptContext
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_DB_PATH = BASE_DIR / "agency.db"
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DEFAULT_DB_PATH.as_posix()}")

engine_kwargs = {"future": True}
if DATABASE_URL.startswith("sqlite"):
    engine_kwargs["connect_args"] = {"check_same_thread": False}

engine = create_engine(DATABASE_URL, **engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_db() -> Session:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    # Imported lazily to avoid circular imports.
    from backoffice import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def _parse_date(value: str):
    if not value:
        return None
    return datetime.strptime(value.strip(), "%Y-%m-%d").date()


def _parse_datetime(value: str):
    if not value:
        return None
    return datetime.fromisoformat(value.strip())


def _safe_float(value: str, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _optional_float(value: str) -> float | None:
    if value is None or str(value).strip() == "":
        return None
    return _safe_float(value)


def _safe_int(value: str, default: int | None = None) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _hash_if_needed(raw_password: str) -> str:
    if not raw_password:
        return pwd_context.hash("ChangeMe123!")
    raw_password = raw_password.strip()
    if raw_password.startswith("$2"):
        return raw_password
    return pwd_context.hash(raw_password)


def _iter_csv_rows(csv_path: Path):
    with csv_path.open("r", encoding="utf-8-sig", newline="") as handle:
        reader = csv.DictReader(handle)
        if reader.fieldnames:
            reader.fieldnames = [
                (field_name or "").replace("\ufeff", "").strip()
                for field_name in reader.fieldnames
            ]

        for row in reader:
            normalized = {}
            for key, value in row.items():
                clean_key = (key or "").replace("\ufeff", "").strip()
                if isinstance(value, str):
                    normalized[clean_key] = value.strip()
                else:
                    normalized[clean_key] = value
            yield normalized


def _created_at(row: dict) -> dict:
    created_at = _parse_datetime(row.get("created_at", ""))
    return {"created_at": created_at} if created_at else {}


def _seed_users(db: Session, path: Path) -> int:
    from backoffice.models import User

    added = 0
    for row in _iter_csv_rows(path):
        if not row.get("email"):
            continue
        db.add(
            User(
                user_id=_safe_int(row.get("user_id")),
                name=(row.get("name") or "Unknown User").strip(),
                email=row["email"].strip().lower(),
                password=_hash_if_needed(row.get("password", "")),
            )
        )
        added += 1
    return added


def _seed_clients(db: Session, path: Path) -> int:
    from backoffice.models import Client

    added = 0
    for row in _iter_csv_rows(path):
        if not row.get("first_name") or not row.get("phone"):
            continue
        db.add(
            Client(
                id=_safe_int(row.get("id")),
                first_name=row["first_name"],
                last_name=row.get("last_name") or "",
                phone=row["phone"],
                email=(row.get("email") or "").lower() or None,
                id_number=row.get("id_number") or None,
                date_of_birth=_parse_date(row.get("date_of_birth", "")),
                gender=row.get("gender") or None,
                address=row.get("address") or None,
                city=row.get("city") or None,
                postal_code=row.get("postal_code") or None,
                status=(row.get("status") or "active").lower(),
                **_created_at(row),
            )
        )
        added += 1
    return added


def _seed_vehicles(db: Session, path: Path) -> int:
    from backoffice.models import Vehicle

    added = 0
    for row in _iter_csv_rows(path):
        if not row.get("registration_number") or not row.get("client_id"):
            continue
        db.add(
            Vehicle(
                id=_safe_int(row.get("id")),
                client_id=int(row["client_id"]),
                make=row.get("make") or "Unknown",
                model=row.get("model") or "Unknown",
                year=_safe_int(row.get("year"), 0),
                registration_number=row["registration_number"].upper(),
                chassis_number=row.get("chassis_number") or None,
                engine_number=row.get("engine_number") or None,
                vehicle_value=_safe_float(row.get("vehicle_value")),
                color=row.get("color") or None,
                fuel_type=(row.get("fuel_type") or "").lower() or None,
                transmission=(row.get("transmission") or "").lower() or None,
                body_type=row.get("body_type") or None,
                seating_capacity=_safe_int(row.get("seating_capacity")),
                engine_capacity=row.get("engine_capacity") or None,
                status=(row.get("status") or "active").lower(),
                **_created_at(row),
            )
        )
        added += 1
    return added


def _seed_policies(db: Session, path: Path) -> int:
    from backoffice.models import Policy

    added = 0
    for row in _iter_csv_rows(path):
        if not row.get("policy_number") or not row.get("client_id") or not row.get("vehicle_id"):
            continue
        db.add(
            Policy(
                id=_safe_int(row.get("id")),
                policy_number=row["policy_number"].upper(),
                client_id=int(row["client_id"]),
                vehicle_id=int(row["vehicle_id"]),
                policy_type=(row.get("policy_type") or "comprehensive").lower(),
                start_date=_parse_date(row.get("start_date", "")),
                end_date=_parse_date(row.get("end_date", "")),
                premium_amount=_safe_float(row.get("premium_amount")),
                sum_insured=_safe_float(row.get("sum_insured")),
                excess_amount=_optional_float(row.get("excess_amount")),
                agent_commission=_optional_float(row.get("agent_commission")),
                renewal_date=_parse_date(row.get("renewal_date", "")),
                notes=row.get("notes") or None,
                status=(row.get("status") or "active").lower(),
                **_created_at(row),
            )
        )
        added += 1
    return added


def _seed_claims(db: Session, path: Path) -> int:
    from backoffice.models import Claim

    added = 0
    for row in _iter_csv_rows(path):
        if not row.get("claim_number") or not row.get("policy_id"):
            continue
        db.add(
            Claim(
                id=_safe_int(row.get("id")),
                claim_number=row["claim_number"].upper(),
                policy_id=int(row["policy_id"]),
                claim_type=(row.get("claim_type") or "other").lower(),
                incident_date=_parse_date(row.get("incident_date", "")),
                reported_date=_parse_date(row.get("reported_date", "")) or _parse_date(row.get("incident_date", "")),
                description=row.get("description") or "",
                location_of_incident=row.get("location_of_incident") or None,
                police_report_number=row.get("police_report_number") or None,
                claim_amount=_optional_float(row.get("claim_amount")),
                settled_amount=_optional_float(row.get("settled_amount")),
                settlement_date=_parse_date(row.get("settlement_date", "")),
                status=(row.get("status") or "pending").lower(),
                **_created_at(row),
            )
        )
        added += 1
    return added


def _seed_payments(db: Session, path: Path) -> int:
    from backoffice.models import Payment

    added = 0
    for row in _iter_csv_rows(path):
        if not row.get("policy_id") or not row.get("client_id"):
            continue
        db.add(
            Payment(
                id=_safe_int(row.get("id")),
                policy_id=int(row["policy_id"]),
                client_id=int(row["client_id"]),
                amount=_safe_float(row.get("amount")),
                payment_method=(row.get("payment_method") or "cash").lower(),
                payment_type=(row.get("payment_type") or "premium").lower(),
                payment_reference=row.get("payment_reference") or None,
                mpesa_transaction_id=row.get("mpesa_transaction_id") or None,
                payment_date=_parse_date(row.get("payment_date", "")) or date.today(),
                due_date=_parse_date(row.get("due_date", "")),
                receipt_number=(row.get("receipt_number") or "").upper() or None,
                description=row.get("description") or None,
                status=(row.get("status") or "pending").lower(),
                **_created_at(row),
            )
        )
        added += 1
    return added


def seed_data_from_csv(data_dir: Path | None = None, session_factory=None) -> dict[str, int]:
    """Load sample rows from ``data_dir`` into every table that is still empty.

    Files are read in dependency order so foreign keys resolve. A missing file
    is skipped. Returns the number of rows added per table.
    """
    from backoffice.models import Claim, Client, Payment, Policy, User, Vehicle

    seed_dir = data_dir or (BASE_DIR / "data")
    steps = [
        ("users", User, _seed_users),
        ("clients", Client, _seed_clients),
        ("vehicles", Vehicle, _seed_vehicles),
        ("policies", Policy, _seed_policies),
        ("claims", Claim, _seed_claims),
        ("payments", Payment, _seed_payments),
    ]

    added: dict[str, int] = {}
    db = (session_factory or SessionLocal)()
    try:
        for name, model, loader in steps:
            csv_path = seed_dir / f"{name}.csv"
            if not csv_path.exists() or db.query(model).count() > 0:
                added[name] = 0
                continue
            added[name] = loader(db, csv_path)
            db.commit()
            logger.info("Seeded %s %s from %s", added[name], name, csv_path.name)
    finally:
        db.close()
    return added


def bootstrap_database(load_seed_data: bool = True) -> None:
    init_db()
    if load_seed_data:
        seed_data_from_csv()


if __name__ == "__main__":
    bootstrap_database(load_seed_data=True)
    print("Database initialized and sample data seeded.")
