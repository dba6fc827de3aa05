"""Load entity snapshots from the database and hand them to the analytics engine."""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from backoffice.analytics import (
    DEFAULT_EXPIRY_WINDOW_DAYS,
    DEFAULT_REPORT_MONTHS,
    DEFAULT_TOP_CLIENTS,
    AnalyticsReport,
    ClaimRecord,
    ClientRecord,
    DashboardSummary,
    PaymentRecord,
    PolicyRecord,
    Snapshot,
    VehicleRecord,
    build_dashboard,
    build_report,
)
from backoffice.models import Claim, Client, Payment, Policy, Vehicle
from backoffice.settings_service import get_int_setting

logger = logging.getLogger(__name__)


class ReportLoadError(RuntimeError):
    """Raised when any collection needed for a report cannot be fetched."""


def client_record(client: Client | None) -> ClientRecord | None:
    if client is None:
        return None
    return ClientRecord(
        id=client.id,
        first_name=client.first_name,
        last_name=client.last_name or "",
        status=client.status,
        phone=client.phone or "",
        created_at=client.created_at,
    )


def vehicle_record(vehicle: Vehicle | None) -> VehicleRecord | None:
    if vehicle is None:
        return None
    return VehicleRecord(
        id=vehicle.id,
        client_id=vehicle.client_id,
        registration_number=vehicle.registration_number,
        make=vehicle.make,
        model=vehicle.model,
        status=vehicle.status,
        vehicle_value=vehicle.vehicle_value or 0.0,
        created_at=vehicle.created_at,
    )


def policy_record(policy: Policy | None) -> PolicyRecord | None:
    if policy is None:
        return None
    return PolicyRecord(
        id=policy.id,
        policy_number=policy.policy_number,
        client_id=policy.client_id,
        vehicle_id=policy.vehicle_id,
        policy_type=policy.policy_type,
        status=policy.status,
        premium_amount=policy.premium_amount or 0.0,
        sum_insured=policy.sum_insured or 0.0,
        start_date=policy.start_date,
        end_date=policy.end_date,
        created_at=policy.created_at,
        client=client_record(policy.client),
        vehicle=vehicle_record(policy.vehicle),
    )


def claim_record(claim: Claim) -> ClaimRecord:
    return ClaimRecord(
        id=claim.id,
        claim_number=claim.claim_number,
        policy_id=claim.policy_id,
        claim_type=claim.claim_type,
        status=claim.status,
        claim_amount=claim.claim_amount,
        settled_amount=claim.settled_amount,
        incident_date=claim.incident_date,
        created_at=claim.created_at,
        policy=policy_record(claim.policy),
    )


def payment_record(payment: Payment) -> PaymentRecord:
    return PaymentRecord(
        id=payment.id,
        policy_id=payment.policy_id,
        client_id=payment.client_id,
        amount=payment.amount or 0.0,
        payment_method=payment.payment_method,
        status=payment.status,
        payment_date=payment.payment_date,
        receipt_number=payment.receipt_number,
        created_at=payment.created_at,
    )


def load_snapshot(db: Session) -> Snapshot:
    """Fetch all five collections; any failure aborts the whole load."""
    try:
        clients = db.query(Client).order_by(Client.id.asc()).all()
        vehicles = db.query(Vehicle).order_by(Vehicle.id.asc()).all()
        policies = (
            db.query(Policy)
            .options(joinedload(Policy.client), joinedload(Policy.vehicle))
            .order_by(Policy.id.asc())
            .all()
        )
        claims = (
            db.query(Claim)
            .options(
                joinedload(Claim.policy).joinedload(Policy.client),
                joinedload(Claim.policy).joinedload(Policy.vehicle),
            )
            .order_by(Claim.id.asc())
            .all()
        )
        payments = db.query(Payment).order_by(Payment.id.asc()).all()
    except SQLAlchemyError as exc:
        logger.exception("Failed to load report data: %s", exc)
        raise ReportLoadError("Failed to load analytics data") from exc

    return Snapshot(
        clients=tuple(client_record(client) for client in clients),
        vehicles=tuple(vehicle_record(vehicle) for vehicle in vehicles),
        policies=tuple(policy_record(policy) for policy in policies),
        claims=tuple(claim_record(claim) for claim in claims),
        payments=tuple(payment_record(payment) for payment in payments),
    )


def _report_setting(db: Session, setting_key: str, default: int) -> int:
    try:
        return get_int_setting(db, setting_key, default)
    except SQLAlchemyError as exc:
        logger.exception("Failed to read setting %s: %s", setting_key, exc)
        raise ReportLoadError("Failed to load analytics data") from exc


def dashboard_summary(db: Session, today: date, window_days: int | None = None) -> DashboardSummary:
    if window_days is None:
        window_days = _report_setting(db, "expiry_window_days", DEFAULT_EXPIRY_WINDOW_DAYS)
    return build_dashboard(load_snapshot(db), today, window_days=window_days)


def analytics_report(
    db: Session,
    today: date,
    months: int | None = None,
    top_n: int = DEFAULT_TOP_CLIENTS,
    window_days: int | None = None,
) -> AnalyticsReport:
    """Build the analytics report; unset windows come from system settings."""
    if months is None:
        months = _report_setting(db, "report_period_months", DEFAULT_REPORT_MONTHS)
    if window_days is None:
        window_days = _report_setting(db, "expiry_window_days", DEFAULT_EXPIRY_WINDOW_DAYS)
    return build_report(load_snapshot(db), today, months=months, top_n=top_n, window_days=window_days)
