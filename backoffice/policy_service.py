"""Policy lookup, validation and serialization helpers."""

from __future__ import annotations

from datetime import date

from sqlalchemy.orm import Session, joinedload

from backoffice.analytics import DEFAULT_EXPIRY_WINDOW_DAYS, is_expiring
from backoffice.common import (
    apply_fields,
    full_name,
    generate_reference,
    isoformat,
    matches_search,
    normalize_reference,
)
from backoffice.models import Client, Policy, Vehicle
from backoffice.report_service import policy_record

POLICY_PREFIX = "POL"


def _prepare(db: Session, fields: dict, policy_id: int | None = None) -> dict:
    data = dict(fields)
    client = db.query(Client).filter(Client.id == data["client_id"]).first()
    if not client:
        raise ValueError("Client not found")

    vehicle = db.query(Vehicle).filter(Vehicle.id == data["vehicle_id"]).first()
    if not vehicle:
        raise ValueError("Vehicle not found")
    if vehicle.client_id != client.id:
        raise ValueError("Vehicle does not belong to this client")

    if data["end_date"] <= data["start_date"]:
        raise ValueError("Policy end date must be after the start date")

    number = normalize_reference(data.get("policy_number"))
    if number is None:
        number = generate_reference(db, Policy.policy_number, POLICY_PREFIX)
    duplicate = db.query(Policy).filter(Policy.policy_number == number)
    if policy_id is not None:
        duplicate = duplicate.filter(Policy.id != policy_id)
    if duplicate.first():
        raise ValueError("Policy number already exists")
    data["policy_number"] = number
    return data


def get_policy(db: Session, policy_id: int) -> Policy | None:
    return (
        db.query(Policy)
        .options(joinedload(Policy.client), joinedload(Policy.vehicle))
        .filter(Policy.id == policy_id)
        .first()
    )


def list_policies(
    db: Session,
    search: str | None = None,
    status: str | None = None,
    client_id: int | None = None,
) -> list[Policy]:
    query = db.query(Policy).options(joinedload(Policy.client), joinedload(Policy.vehicle))
    if status:
        query = query.filter(Policy.status == status)
    if client_id is not None:
        query = query.filter(Policy.client_id == client_id)
    policies = query.order_by(Policy.created_at.desc(), Policy.id.desc()).all()
    return [
        policy
        for policy in policies
        if matches_search(
            search,
            policy.policy_number,
            full_name(policy.client),
            policy.vehicle.registration_number if policy.vehicle else None,
        )
    ]


def create_policy(db: Session, fields: dict) -> Policy:
    policy = Policy(**_prepare(db, fields))
    db.add(policy)
    db.commit()
    db.refresh(policy)
    return policy


def update_policy(db: Session, policy: Policy, fields: dict) -> Policy:
    if not fields.get("policy_number"):
        fields = {**fields, "policy_number": policy.policy_number}
    data = _prepare(db, fields, policy_id=policy.id)
    if data["client_id"] != policy.client_id and policy.payments:
        raise ValueError("Policy has payments and cannot move to another client")
    apply_fields(policy, data)
    db.commit()
    db.refresh(policy)
    return policy


def delete_policy(db: Session, policy: Policy) -> None:
    db.delete(policy)
    db.commit()


def is_policy_expired(policy: Policy, today: date | None = None) -> bool:
    if policy.end_date is None:
        return False
    return policy.end_date < (today or date.today()) or policy.status == "expired"


def serialize_policy(
    policy: Policy,
    today: date | None = None,
    window_days: int = DEFAULT_EXPIRY_WINDOW_DAYS,
) -> dict:
    today = today or date.today()
    vehicle = policy.vehicle
    return {
        "id": policy.id,
        "policy_number": policy.policy_number,
        "client_id": policy.client_id,
        "client_name": full_name(policy.client),
        "vehicle_id": policy.vehicle_id,
        "registration_number": vehicle.registration_number if vehicle else None,
        "vehicle": f"{vehicle.make} {vehicle.model}" if vehicle else None,
        "policy_type": policy.policy_type,
        "start_date": isoformat(policy.start_date),
        "end_date": isoformat(policy.end_date),
        "premium_amount": policy.premium_amount,
        "sum_insured": policy.sum_insured,
        "excess_amount": policy.excess_amount,
        "agent_commission": policy.agent_commission,
        "renewal_date": isoformat(policy.renewal_date),
        "notes": policy.notes,
        "status": policy.status,
        "is_expired": is_policy_expired(policy, today),
        "is_expiring": is_expiring(policy_record(policy), today, window_days),
        "days_remaining": (policy.end_date - today).days if policy.end_date else None,
        "created_at": isoformat(policy.created_at),
        "updated_at": isoformat(policy.updated_at),
    }
