"""Vehicle lookup, search and persistence helpers."""

from __future__ import annotations

from sqlalchemy.orm import Session, joinedload

from backoffice.common import apply_fields, full_name, isoformat, matches_search
from backoffice.models import Client, Vehicle


def _prepare(db: Session, fields: dict, vehicle_id: int | None = None) -> dict:
    data = dict(fields)
    if not db.query(Client).filter(Client.id == data["client_id"]).first():
        raise ValueError("Client not found")

    data["registration_number"] = data["registration_number"].strip().upper()
    duplicate = db.query(Vehicle).filter(Vehicle.registration_number == data["registration_number"])
    if vehicle_id is not None:
        duplicate = duplicate.filter(Vehicle.id != vehicle_id)
    if duplicate.first():
        raise ValueError("Registration number already registered")
    return data


def get_vehicle(db: Session, vehicle_id: int) -> Vehicle | None:
    return (
        db.query(Vehicle)
        .options(joinedload(Vehicle.client))
        .filter(Vehicle.id == vehicle_id)
        .first()
    )


def list_vehicles(
    db: Session,
    search: str | None = None,
    status: str | None = None,
    client_id: int | None = None,
) -> list[Vehicle]:
    query = db.query(Vehicle).options(joinedload(Vehicle.client))
    if status:
        query = query.filter(Vehicle.status == status)
    if client_id is not None:
        query = query.filter(Vehicle.client_id == client_id)
    vehicles = query.order_by(Vehicle.created_at.desc(), Vehicle.id.desc()).all()
    return [
        vehicle
        for vehicle in vehicles
        if matches_search(
            search,
            vehicle.registration_number,
            vehicle.make,
            vehicle.model,
            full_name(vehicle.client),
        )
    ]


def create_vehicle(db: Session, fields: dict) -> Vehicle:
    vehicle = Vehicle(**_prepare(db, fields))
    db.add(vehicle)
    db.commit()
    db.refresh(vehicle)
    return vehicle


def update_vehicle(db: Session, vehicle: Vehicle, fields: dict) -> Vehicle:
    data = _prepare(db, fields, vehicle_id=vehicle.id)
    # Policies carry the owner's client_id, so an insured vehicle stays with its owner.
    if data["client_id"] != vehicle.client_id and vehicle.policies:
        raise ValueError("Vehicle has policies and cannot move to another client")
    apply_fields(vehicle, data)
    db.commit()
    db.refresh(vehicle)
    return vehicle


def delete_vehicle(db: Session, vehicle: Vehicle) -> None:
    db.delete(vehicle)
    db.commit()


def serialize_vehicle(vehicle: Vehicle) -> dict:
    client = vehicle.client
    return {
        "id": vehicle.id,
        "client_id": vehicle.client_id,
        "client_name": full_name(client),
        "client_phone": client.phone if client else None,
        "make": vehicle.make,
        "model": vehicle.model,
        "year": vehicle.year,
        "registration_number": vehicle.registration_number,
        "chassis_number": vehicle.chassis_number,
        "engine_number": vehicle.engine_number,
        "vehicle_value": vehicle.vehicle_value,
        "color": vehicle.color,
        "fuel_type": vehicle.fuel_type,
        "transmission": vehicle.transmission,
        "body_type": vehicle.body_type,
        "seating_capacity": vehicle.seating_capacity,
        "engine_capacity": vehicle.engine_capacity,
        "status": vehicle.status,
        "created_at": isoformat(vehicle.created_at),
        "updated_at": isoformat(vehicle.updated_at),
    }
