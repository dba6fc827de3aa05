"""SQLAlchemy ORM models for staff users, clients, vehicles, policies, claims, payments and settings."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from backoffice.database import Base

CLAIM_STATUSES = ("pending", "investigating", "approved", "rejected", "settled")
PAYMENT_STATUSES = ("pending", "completed", "failed", "reversed")


class TimestampMixin:
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class User(Base):
    __tablename__ = "users"

    user_id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=False)


class Client(TimestampMixin, Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(80), nullable=False)
    last_name = Column(String(80), nullable=False, default="")
    phone = Column(String(32), nullable=False)
    email = Column(String(255), nullable=True)
    id_number = Column(String(32), nullable=True, index=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(16), nullable=True)
    address = Column(Text, nullable=True)
    city = Column(String(80), nullable=True)
    postal_code = Column(String(16), nullable=True)
    status = Column(String(20), nullable=False, default="active", index=True)

    vehicles = relationship("Vehicle", back_populates="client", cascade="all, delete-orphan")
    policies = relationship("Policy", back_populates="client", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="client", cascade="all, delete-orphan")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Vehicle(TimestampMixin, Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    make = Column(String(60), nullable=False)
    model = Column(String(60), nullable=False)
    year = Column(Integer, nullable=False)
    registration_number = Column(String(20), unique=True, nullable=False, index=True)
    chassis_number = Column(String(40), nullable=True)
    engine_number = Column(String(40), nullable=True)
    vehicle_value = Column(Float, nullable=False, default=0.0)
    color = Column(String(30), nullable=True)
    fuel_type = Column(String(20), nullable=True)
    transmission = Column(String(20), nullable=True)
    body_type = Column(String(40), nullable=True)
    seating_capacity = Column(Integer, nullable=True)
    engine_capacity = Column(String(20), nullable=True)
    status = Column(String(20), nullable=False, default="active", index=True)

    client = relationship("Client", back_populates="vehicles")
    policies = relationship("Policy", back_populates="vehicle", cascade="all, delete-orphan")


class Policy(TimestampMixin, Base):
    __tablename__ = "policies"

    id = Column(Integer, primary_key=True, index=True)
    policy_number = Column(String(32), unique=True, nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False, index=True)
    policy_type = Column(String(40), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False, index=True)
    premium_amount = Column(Float, nullable=False)
    sum_insured = Column(Float, nullable=False)
    excess_amount = Column(Float, nullable=True)
    agent_commission = Column(Float, nullable=True)
    renewal_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="active", index=True)

    client = relationship("Client", back_populates="policies")
    vehicle = relationship("Vehicle", back_populates="policies")
    claims = relationship("Claim", back_populates="policy", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="policy", cascade="all, delete-orphan")


class Claim(TimestampMixin, Base):
    __tablename__ = "claims"

    id = Column(Integer, primary_key=True, index=True)
    claim_number = Column(String(32), unique=True, nullable=False, index=True)
    policy_id = Column(Integer, ForeignKey("policies.id"), nullable=False, index=True)
    claim_type = Column(String(40), nullable=False)
    incident_date = Column(Date, nullable=False)
    reported_date = Column(Date, nullable=False, default=date.today)
    description = Column(Text, nullable=False, default="")
    location_of_incident = Column(String(255), nullable=True)
    police_report_number = Column(String(64), nullable=True)
    claim_amount = Column(Float, nullable=True)
    settled_amount = Column(Float, nullable=True)
    settlement_date = Column(Date, nullable=True)
    assessor_name = Column(String(120), nullable=True)
    assessor_contact = Column(String(64), nullable=True)
    garage_name = Column(String(120), nullable=True)
    garage_contact = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending", index=True)

    policy = relationship("Policy", back_populates="claims")


class Payment(TimestampMixin, Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    policy_id = Column(Integer, ForeignKey("policies.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    payment_method = Column(String(30), nullable=False)
    payment_type = Column(String(30), nullable=False)
    payment_reference = Column(String(64), nullable=True)
    mpesa_transaction_id = Column(String(32), nullable=True)
    payment_date = Column(Date, nullable=False, default=date.today)
    due_date = Column(Date, nullable=True)
    receipt_number = Column(String(32), unique=True, nullable=True, index=True)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending", index=True)

    policy = relationship("Policy", back_populates="payments")
    client = relationship("Client", back_populates="payments")


class SystemSetting(TimestampMixin, Base):
    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, index=True)
    setting_key = Column(String(80), unique=True, nullable=False, index=True)
    setting_value = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(40), nullable=False, default="general", index=True)
    data_type = Column(String(20), nullable=False, default="string")
    is_public = Column(Boolean, nullable=False, default=False)
