"""Shared pytest fixtures for back-office tests."""

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backoffice import models  # noqa: F401
from backoffice.auth import create_access_token, hash_password
from backoffice.database import Base, get_db
from backoffice.models import Client, Policy, User, Vehicle


@pytest.fixture
def engine():
    """Create an in-memory SQLite engine shared across threads."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def session(session_factory):
    """Create a database session for testing."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def api(session_factory):
    """TestClient wired to the in-memory database (startup hooks are not run)."""
    from backoffice.main import app

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def staff_user(session):
    user = User(name="James Kiprotich", email="james@agency.co.ke", password=hash_password("secret123"))
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def auth_headers(staff_user):
    token = create_access_token(staff_user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def insured_client(session):
    """A client owning one vehicle with one active comprehensive policy."""
    client = Client(first_name="Grace", last_name="Njeri", phone="+254711000001", email="grace@mail.co.ke")
    session.add(client)
    session.flush()
    vehicle = Vehicle(
        client_id=client.id,
        make="Toyota",
        model="Axio",
        year=2016,
        registration_number="KCA 987Z",
        vehicle_value=1250000.0,
    )
    session.add(vehicle)
    session.flush()
    policy = Policy(
        policy_number="POL20260001",
        client_id=client.id,
        vehicle_id=vehicle.id,
        policy_type="comprehensive",
        start_date=date(2026, 1, 15),
        end_date=date(2027, 1, 14),
        premium_amount=45000.0,
        sum_insured=1250000.0,
    )
    session.add(policy)
    session.commit()
    return client, vehicle, policy
