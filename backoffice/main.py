"""FastAPI entrypoint for the insurance agency back office."""

from __future__ import annotations

import logging
import os
from datetime import date
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Query, Response, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

from backoffice import (  # noqa: E402
    claim_service,
    client_service,
    payment_service,
    policy_service,
    settings_service,
    vehicle_service,
)
from backoffice.analytics import (  # noqa: E402
    DEFAULT_EXPIRY_WINDOW_DAYS,
    DEFAULT_TOP_CLIENTS,
)
from backoffice.auth import (  # noqa: E402
    authenticate_user,
    get_current_user,
    hash_password,
    issue_token,
    serialize_user,
)
from backoffice.database import SessionLocal, bootstrap_database, get_db  # noqa: E402
from backoffice.models import User  # noqa: E402
from backoffice.report_service import (  # noqa: E402
    ReportLoadError,
    analytics_report,
    dashboard_summary,
)

logger = logging.getLogger(__name__)

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

ClientStatus = Literal["active", "inactive", "suspended"]
VehicleStatus = Literal["active", "inactive", "written_off"]
PolicyStatus = Literal["active", "expired", "cancelled"]
PolicyType = Literal["comprehensive", "third_party", "third_party_fire_theft"]
ClaimStatus = Literal["pending", "investigating", "approved", "rejected", "settled"]
ClaimType = Literal["accident", "theft", "fire", "vandalism", "natural_disaster", "other"]
PaymentStatus = Literal["pending", "completed", "failed", "reversed"]
PaymentMethod = Literal["mpesa", "bank_transfer", "cash", "cheque", "card"]
PaymentType = Literal["premium", "renewal", "installment", "claim_settlement"]

app = FastAPI(
    title="Insurance Agency Back Office",
    version="1.0.0",
    description="Client, vehicle, policy, claim and payment records with dashboard analytics",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class SignupRequest(BaseModel):
    name: str = Field(min_length=2, max_length=120)
    email: EmailStr
    password: str = Field(min_length=6, max_length=72)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ClientPayload(BaseModel):
    first_name: str = Field(min_length=1, max_length=80)
    last_name: str = Field(default="", max_length=80)
    phone: str = Field(min_length=7, max_length=32)
    email: EmailStr | None = None
    id_number: str | None = Field(default=None, max_length=32)
    date_of_birth: date | None = None
    gender: str | None = None
    address: str | None = None
    city: str | None = None
    postal_code: str | None = None
    status: ClientStatus = "active"


class VehiclePayload(BaseModel):
    client_id: int
    make: str = Field(min_length=1, max_length=60)
    model: str = Field(min_length=1, max_length=60)
    year: int = Field(ge=1900, le=2100)
    registration_number: str = Field(min_length=2, max_length=20)
    chassis_number: str | None = None
    engine_number: str | None = None
    vehicle_value: float = Field(ge=0)
    color: str | None = None
    fuel_type: Literal["petrol", "diesel", "hybrid", "electric"] | None = "petrol"
    transmission: Literal["manual", "automatic"] | None = "manual"
    body_type: str | None = None
    seating_capacity: int | None = Field(default=None, ge=1)
    engine_capacity: str | None = None
    status: VehicleStatus = "active"


class PolicyPayload(BaseModel):
    client_id: int
    vehicle_id: int
    policy_number: str | None = Field(default=None, max_length=32)
    policy_type: PolicyType = "comprehensive"
    start_date: date
    end_date: date
    premium_amount: float = Field(ge=0)
    sum_insured: float = Field(ge=0)
    excess_amount: float | None = Field(default=None, ge=0)
    agent_commission: float | None = Field(default=None, ge=0)
    renewal_date: date | None = None
    notes: str | None = None
    status: PolicyStatus = "active"


class ClaimPayload(BaseModel):
    policy_id: int
    claim_number: str | None = Field(default=None, max_length=32)
    claim_type: ClaimType = "accident"
    incident_date: date
    reported_date: date | None = None
    description: str = Field(min_length=1)
    location_of_incident: str | None = None
    police_report_number: str | None = None
    claim_amount: float | None = Field(default=None, ge=0)
    settled_amount: float | None = Field(default=None, ge=0)
    settlement_date: date | None = None
    assessor_name: str | None = None
    assessor_contact: str | None = None
    garage_name: str | None = None
    garage_contact: str | None = None
    notes: str | None = None
    status: ClaimStatus = "pending"


class PaymentPayload(BaseModel):
    client_id: int
    policy_id: int
    amount: float = Field(ge=0)
    payment_method: PaymentMethod = "mpesa"
    payment_type: PaymentType = "premium"
    payment_reference: str | None = None
    mpesa_transaction_id: str | None = None
    payment_date: date | None = None
    due_date: date | None = None
    receipt_number: str | None = Field(default=None, max_length=32)
    description: str | None = None
    status: PaymentStatus = "pending"


class ClaimStatusRequest(BaseModel):
    status: ClaimStatus
    settled_amount: float | None = Field(default=None, ge=0)


class PaymentStatusRequest(BaseModel):
    status: PaymentStatus


class SettingUpdateRequest(BaseModel):
    setting_value: str


def _found(row, label: str):
    if row is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return row


def _run(action, *args):
    try:
        return action(*args)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _serialize_policies(db: Session, policies: list) -> list[dict]:
    window_days = settings_service.get_int_setting(db, "expiry_window_days", DEFAULT_EXPIRY_WINDOW_DAYS)
    today = date.today()
    return [policy_service.serialize_policy(policy, today=today, window_days=window_days) for policy in policies]


@app.on_event("startup")
def startup_event() -> None:
    try:
        bootstrap_database(load_seed_data=True)
    except Exception as exc:
        logger.exception("Database bootstrap failed: %s", exc)
        raise

    db = SessionLocal()
    try:
        settings_service.ensure_default_settings(db)
    except Exception as exc:
        logger.exception("System settings initialization failed: %s", exc)
        raise
    finally:
        db.close()


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/signup", status_code=status.HTTP_201_CREATED)
def signup(payload: SignupRequest, db: Session = Depends(get_db)):
    existing = db.query(User).filter(User.email == payload.email.lower().strip()).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        name=payload.name.strip(),
        email=payload.email.lower().strip(),
        password=hash_password(payload.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return {"message": "Signup successful", **issue_token(user)}


@app.post("/login")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate_user(db, payload.email, payload.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return {"message": "Login successful", **issue_token(user)}


@app.get("/profile")
def get_profile(user: User = Depends(get_current_user)):
    return {"user": serialize_user(user)}


# Clients


@app.get("/clients")
def list_clients(
    search: str | None = None,
    status_filter: ClientStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    clients = client_service.list_clients(db, search=search, status=status_filter)
    return {"clients": [client_service.serialize_client(client) for client in clients]}


@app.get("/clients/{client_id}")
def fetch_client(client_id: int, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    client = _found(client_service.get_client(db, client_id), "Client")
    return client_service.serialize_client(client)


@app.post("/clients", status_code=status.HTTP_201_CREATED)
def create_client(payload: ClientPayload, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    client = _run(client_service.create_client, db, payload.model_dump())
    return client_service.serialize_client(client)


@app.put("/clients/{client_id}")
def update_client(
    client_id: int,
    payload: ClientPayload,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    client = _found(client_service.get_client(db, client_id), "Client")
    client = _run(client_service.update_client, db, client, payload.model_dump())
    return client_service.serialize_client(client)


@app.delete("/clients/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_client(client_id: int, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    client = _found(client_service.get_client(db, client_id), "Client")
    client_service.delete_client(db, client)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Vehicles


@app.get("/vehicles")
def list_vehicles(
    search: str | None = None,
    status_filter: VehicleStatus | None = Query(default=None, alias="status"),
    client_id: int | None = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    vehicles = vehicle_service.list_vehicles(db, search=search, status=status_filter, client_id=client_id)
    return {"vehicles": [vehicle_service.serialize_vehicle(vehicle) for vehicle in vehicles]}


@app.get("/vehicles/{vehicle_id}")
def fetch_vehicle(vehicle_id: int, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    vehicle = _found(vehicle_service.get_vehicle(db, vehicle_id), "Vehicle")
    return vehicle_service.serialize_vehicle(vehicle)


@app.post("/vehicles", status_code=status.HTTP_201_CREATED)
def create_vehicle(payload: VehiclePayload, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    vehicle = _run(vehicle_service.create_vehicle, db, payload.model_dump())
    return vehicle_service.serialize_vehicle(vehicle)


@app.put("/vehicles/{vehicle_id}")
def update_vehicle(
    vehicle_id: int,
    payload: VehiclePayload,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    vehicle = _found(vehicle_service.get_vehicle(db, vehicle_id), "Vehicle")
    vehicle = _run(vehicle_service.update_vehicle, db, vehicle, payload.model_dump())
    return vehicle_service.serialize_vehicle(vehicle)


@app.delete("/vehicles/{vehicle_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_vehicle(vehicle_id: int, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    vehicle = _found(vehicle_service.get_vehicle(db, vehicle_id), "Vehicle")
    vehicle_service.delete_vehicle(db, vehicle)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Policies


@app.get("/policies")
def list_policies(
    search: str | None = None,
    status_filter: PolicyStatus | None = Query(default=None, alias="status"),
    client_id: int | None = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    policies = policy_service.list_policies(db, search=search, status=status_filter, client_id=client_id)
    return {"policies": _serialize_policies(db, policies)}


@app.get("/policies/{policy_id}")
def fetch_policy(policy_id: int, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    policy = _found(policy_service.get_policy(db, policy_id), "Policy")
    return _serialize_policies(db, [policy])[0]


@app.post("/policies", status_code=status.HTTP_201_CREATED)
def create_policy(payload: PolicyPayload, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    policy = _run(policy_service.create_policy, db, payload.model_dump())
    return _serialize_policies(db, [policy])[0]


@app.put("/policies/{policy_id}")
def update_policy(
    policy_id: int,
    payload: PolicyPayload,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    policy = _found(policy_service.get_policy(db, policy_id), "Policy")
    policy = _run(policy_service.update_policy, db, policy, payload.model_dump())
    return _serialize_policies(db, [policy])[0]


@app.delete("/policies/{policy_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_policy(policy_id: int, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    policy = _found(policy_service.get_policy(db, policy_id), "Policy")
    policy_service.delete_policy(db, policy)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Claims


@app.get("/claims")
def list_claims(
    search: str | None = None,
    status_filter: ClaimStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    claims = claim_service.list_claims(db, search=search, status=status_filter)
    return {"claims": [claim_service.serialize_claim(claim) for claim in claims]}


@app.get("/claims/{claim_id}")
def fetch_claim(claim_id: int, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    claim = _found(claim_service.get_claim(db, claim_id), "Claim")
    return claim_service.serialize_claim(claim)


@app.post("/claims", status_code=status.HTTP_201_CREATED)
def create_claim(payload: ClaimPayload, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    claim = _run(claim_service.create_claim, db, payload.model_dump())
    return claim_service.serialize_claim(claim)


@app.put("/claims/{claim_id}")
def update_claim(
    claim_id: int,
    payload: ClaimPayload,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    claim = _found(claim_service.get_claim(db, claim_id), "Claim")
    claim = _run(claim_service.update_claim, db, claim, payload.model_dump())
    return claim_service.serialize_claim(claim)


@app.post("/claims/{claim_id}/status")
def change_claim_status(
    claim_id: int,
    payload: ClaimStatusRequest,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    claim = _found(claim_service.get_claim(db, claim_id), "Claim")
    claim = _run(claim_service.update_claim_status, db, claim, payload.status, payload.settled_amount)
    return claim_service.serialize_claim(claim)


@app.delete("/claims/{claim_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_claim(claim_id: int, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    claim = _found(claim_service.get_claim(db, claim_id), "Claim")
    claim_service.delete_claim(db, claim)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Payments


@app.get("/payments")
def list_payments(
    search: str | None = None,
    status_filter: PaymentStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    payments = payment_service.list_payments(db, search=search, status=status_filter)
    return {"payments": [payment_service.serialize_payment(payment) for payment in payments]}


@app.get("/payments/{payment_id}")
def fetch_payment(payment_id: int, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    payment = _found(payment_service.get_payment(db, payment_id), "Payment")
    return payment_service.serialize_payment(payment)


@app.post("/payments", status_code=status.HTTP_201_CREATED)
def create_payment(payload: PaymentPayload, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    payment = _run(payment_service.create_payment, db, payload.model_dump())
    return payment_service.serialize_payment(payment)


@app.put("/payments/{payment_id}")
def update_payment(
    payment_id: int,
    payload: PaymentPayload,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    payment = _found(payment_service.get_payment(db, payment_id), "Payment")
    payment = _run(payment_service.update_payment, db, payment, payload.model_dump())
    return payment_service.serialize_payment(payment)


@app.post("/payments/{payment_id}/status")
def change_payment_status(
    payment_id: int,
    payload: PaymentStatusRequest,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    payment = _found(payment_service.get_payment(db, payment_id), "Payment")
    payment = _run(payment_service.update_payment_status, db, payment, payload.status)
    return payment_service.serialize_payment(payment)


@app.delete("/payments/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_payment(payment_id: int, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    payment = _found(payment_service.get_payment(db, payment_id), "Payment")
    payment_service.delete_payment(db, payment)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Settings


@app.get("/settings")
def list_settings(
    category: str | None = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return {"settings": settings_service.group_settings(settings_service.list_settings(db, category))}


@app.put("/settings/{setting_key}")
def update_setting(
    setting_key: str,
    payload: SettingUpdateRequest,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    setting = _found(settings_service.get_setting(db, setting_key), "Setting")
    setting = _run(settings_service.update_setting, db, setting, payload.setting_value)
    return settings_service.serialize_setting(setting)


# Dashboard and reports


@app.get("/dashboard")
def dashboard(
    as_of: date | None = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    try:
        return dashboard_summary(db, as_of or date.today())
    except ReportLoadError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@app.get("/reports/analytics")
def reports_analytics(
    months: int | None = Query(default=None, ge=1, le=60),
    top: int = Query(default=DEFAULT_TOP_CLIENTS, ge=1, le=100),
    as_of: date | None = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    try:
        return analytics_report(db, as_of or date.today(), months=months, top_n=top)
    except ReportLoadError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
