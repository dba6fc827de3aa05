"""Client lookup, search and persistence helpers."""

from __future__ import annotations

from sqlalchemy.orm import Session

from backoffice.common import apply_fields, isoformat, matches_search
from backoffice.models import Client


def _normalize(fields: dict) -> dict:
    data = dict(fields)
    data["first_name"] = data["first_name"].strip()
    data["last_name"] = (data.get("last_name") or "").strip()
    data["phone"] = data["phone"].strip()
    if data.get("email"):
        data["email"] = data["email"].lower().strip()
    return data


def get_client(db: Session, client_id: int) -> Client | None:
    return db.query(Client).filter(Client.id == client_id).first()


def list_clients(db: Session, search: str | None = None, status: str | None = None) -> list[Client]:
    query = db.query(Client)
    if status:
        query = query.filter(Client.status == status)
    clients = query.order_by(Client.created_at.desc(), Client.id.desc()).all()
    return [
        client
        for client in clients
        if matches_search(search, client.full_name, client.phone, client.email, client.id_number)
    ]


def create_client(db: Session, fields: dict) -> Client:
    client = Client(**_normalize(fields))
    db.add(client)
    db.commit()
    db.refresh(client)
    return client


def update_client(db: Session, client: Client, fields: dict) -> Client:
    apply_fields(client, _normalize(fields))
    db.commit()
    db.refresh(client)
    return client


def delete_client(db: Session, client: Client) -> None:
    db.delete(client)
    db.commit()


def serialize_client(client: Client) -> dict:
    return {
        "id": client.id,
        "first_name": client.first_name,
        "last_name": client.last_name,
        "full_name": client.full_name,
        "phone": client.phone,
        "email": client.email,
        "id_number": client.id_number,
        "date_of_birth": isoformat(client.date_of_birth),
        "gender": client.gender,
        "address": client.address,
        "city": client.city,
        "postal_code": client.postal_code,
        "status": client.status,
        "vehicle_count": len(client.vehicles or []),
        "policy_count": len(client.policies or []),
        "created_at": isoformat(client.created_at),
        "updated_at": isoformat(client.updated_at),
    }
