"""Payment recording, receipt numbers and status updates."""

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
from backoffice.models import PAYMENT_STATUSES, Client, Payment, Policy

RECEIPT_PREFIX = "RCP"


def _payment_query(db: Session):
    return db.query(Payment).options(joinedload(Payment.client), joinedload(Payment.policy))


def _prepare(db: Session, fields: dict, payment_id: int | None = None) -> dict:
    data = dict(fields)
    if not db.query(Client).filter(Client.id == data["client_id"]).first():
        raise ValueError("Client not found")

    policy = db.query(Policy).filter(Policy.id == data["policy_id"]).first()
    if not policy:
        raise ValueError("Policy not found")
    if policy.client_id != data["client_id"]:
        raise ValueError("Policy does not belong to this client")

    receipt = normalize_reference(data.get("receipt_number"))
    if receipt is None:
        receipt = generate_reference(db, Payment.receipt_number, RECEIPT_PREFIX)
    duplicate = db.query(Payment).filter(Payment.receipt_number == receipt)
    if payment_id is not None:
        duplicate = duplicate.filter(Payment.id != payment_id)
    if duplicate.first():
        raise ValueError("Receipt number already exists")
    data["receipt_number"] = receipt
    if data.get("payment_date") is None:
        data["payment_date"] = date.today()
    return data


def get_payment(db: Session, payment_id: int) -> Payment | None:
    return _payment_query(db).filter(Payment.id == payment_id).first()


def list_payments(db: Session, search: str | None = None, status: str | None = None) -> list[Payment]:
    query = _payment_query(db)
    if status:
        query = query.filter(Payment.status == status)
    payments = query.order_by(Payment.payment_date.desc(), Payment.id.desc()).all()
    return [
        payment
        for payment in payments
        if matches_search(
            search,
            payment.receipt_number,
            payment.policy.policy_number if payment.policy else None,
            full_name(payment.client),
            payment.mpesa_transaction_id,
        )
    ]


def create_payment(db: Session, fields: dict) -> Payment:
    payment = Payment(**_prepare(db, fields))
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment


def update_payment(db: Session, payment: Payment, fields: dict) -> Payment:
    if not fields.get("receipt_number"):
        fields = {**fields, "receipt_number": payment.receipt_number}
    apply_fields(payment, _prepare(db, fields, payment_id=payment.id))
    db.commit()
    db.refresh(payment)
    return payment


def update_payment_status(db: Session, payment: Payment, status: str) -> Payment:
    if status not in PAYMENT_STATUSES:
        raise ValueError(f"Invalid payment status: {status}")
    payment.status = status
    db.commit()
    db.refresh(payment)
    return payment


def delete_payment(db: Session, payment: Payment) -> None:
    db.delete(payment)
    db.commit()


def serialize_payment(payment: Payment) -> dict:
    return {
        "id": payment.id,
        "receipt_number": payment.receipt_number,
        "client_id": payment.client_id,
        "client_name": full_name(payment.client),
        "policy_id": payment.policy_id,
        "policy_number": payment.policy.policy_number if payment.policy else None,
        "amount": payment.amount,
        "payment_method": payment.payment_method,
        "payment_type": payment.payment_type,
        "payment_reference": payment.payment_reference,
        "mpesa_transaction_id": payment.mpesa_transaction_id,
        "payment_date": isoformat(payment.payment_date),
        "due_date": isoformat(payment.due_date),
        "description": payment.description,
        "status": payment.status,
        "created_at": isoformat(payment.created_at),
        "updated_at": isoformat(payment.updated_at),
    }
