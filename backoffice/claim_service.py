"""Claim filing, status transitions and serialization."""

from __future__ import annotations

from datetime import date

from sqlalchemy.orm import Session, joinedload

from backoffice.common import (
    apply_fields,
    full_name,
    generate_reference,
    isoformat,
    matches_search,
    normalize_reference,
)
from backoffice.models import CLAIM_STATUSES, Claim, Policy

CLAIM_PREFIX = "CLM"


def _claim_query(db: Session):
    return db.query(Claim).options(
        joinedload(Claim.policy).joinedload(Policy.client),
        joinedload(Claim.policy).joinedload(Policy.vehicle),
    )


def _prepare(db: Session, fields: dict, claim_id: int | None = None) -> dict:
    data = dict(fields)
    if not db.query(Policy).filter(Policy.id == data["policy_id"]).first():
        raise ValueError("Policy not found")

    number = normalize_reference(data.get("claim_number"))
    if number is None:
        number = generate_reference(db, Claim.claim_number, CLAIM_PREFIX)
    duplicate = db.query(Claim).filter(Claim.claim_number == number)
    if claim_id is not None:
        duplicate = duplicate.filter(Claim.id != claim_id)
    if duplicate.first():
        raise ValueError("Claim number already exists")
    data["claim_number"] = number

    if data.get("reported_date") is None:
        data["reported_date"] = date.today()
    return data


def get_claim(db: Session, claim_id: int) -> Claim | None:
    return _claim_query(db).filter(Claim.id == claim_id).first()


def list_claims(db: Session, search: str | None = None, status: str | None = None) -> list[Claim]:
    query = _claim_query(db)
    if status:
        query = query.filter(Claim.status == status)
    claims = query.order_by(Claim.created_at.desc(), Claim.id.desc()).all()

    matched = []
    for claim in claims:
        policy = claim.policy
        if matches_search(
            search,
            claim.claim_number,
            policy.policy_number if policy else None,
            full_name(policy.client) if policy else None,
            policy.vehicle.registration_number if policy and policy.vehicle else None,
        ):
            matched.append(claim)
    return matched


def create_claim(db: Session, fields: dict) -> Claim:
    claim = Claim(**_prepare(db, fields))
    db.add(claim)
    db.commit()
    db.refresh(claim)
    return claim


def update_claim(db: Session, claim: Claim, fields: dict) -> Claim:
    if not fields.get("claim_number"):
        fields = {**fields, "claim_number": claim.claim_number}
    if fields.get("reported_date") is None:
        fields = {**fields, "reported_date": claim.reported_date}
    apply_fields(claim, _prepare(db, fields, claim_id=claim.id))
    db.commit()
    db.refresh(claim)
    return claim


def update_claim_status(
    db: Session,
    claim: Claim,
    status: str,
    settled_amount: float | None = None,
    today: date | None = None,
) -> Claim:
    """Move a claim to ``status``; settling with an amount stamps the settlement."""
    if status not in CLAIM_STATUSES:
        raise ValueError(f"Invalid claim status: {status}")

    claim.status = status
    if status == "settled" and settled_amount is not None:
        claim.settled_amount = settled_amount
        claim.settlement_date = today or date.today()
    db.commit()
    db.refresh(claim)
    return claim


def delete_claim(db: Session, claim: Claim) -> None:
    db.delete(claim)
    db.commit()


def serialize_claim(claim: Claim) -> dict:
    policy = claim.policy
    return {
        "id": claim.id,
        "claim_number": claim.claim_number,
        "policy_id": claim.policy_id,
        "policy_number": policy.policy_number if policy else None,
        "client_name": full_name(policy.client) if policy else None,
        "registration_number": (
            policy.vehicle.registration_number if policy and policy.vehicle else None
        ),
        "claim_type": claim.claim_type,
        "incident_date": isoformat(claim.incident_date),
        "reported_date": isoformat(claim.reported_date),
        "description": claim.description,
        "location_of_incident": claim.location_of_incident,
        "police_report_number": claim.police_report_number,
        "claim_amount": claim.claim_amount,
        "settled_amount": claim.settled_amount,
        "settlement_date": isoformat(claim.settlement_date),
        "assessor_name": claim.assessor_name,
        "assessor_contact": claim.assessor_contact,
        "garage_name": claim.garage_name,
        "garage_contact": claim.garage_contact,
        "notes": claim.notes,
        "status": claim.status,
        "created_at": isoformat(claim.created_at),
        "updated_at": isoformat(claim.updated_at),
    }
