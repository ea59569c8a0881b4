"""
Pytest configuration and fixtures
"""
import hashlib
import hmac
import os
import time
from typing import Optional

# Settings are read at import time, so they must be in place first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.pop("REDIS_URL", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from clinicportal import models
from clinicportal.auth import create_access_token
from clinicportal.database import Base, get_db

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db() -> Session:
    """Create a database session on a fresh schema"""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session):
    """Create test client with database dependency override"""
    from clinicportal.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_tenant(db: Session):
    def _make(tenant_id: str = "tenant-1", seats: int = 0, stripe_id=None, **fields):
        tenant = models.Tenant(
            id=tenant_id,
            name=fields.pop("name", f"Clinic {tenant_id}"),
            number_of_seats=seats,
            stripe_id=stripe_id,
            **fields,
        )
        db.add(tenant)
        db.commit()
        db.refresh(tenant)
        return tenant

    return _make


@pytest.fixture
def make_practitioner(db: Session):
    def _make(first_name: str = "Alex", last_name: str = "Smith", **fields):
        practitioner = models.Practitioner(first_name=first_name, last_name=last_name, **fields)
        db.add(practitioner)
        db.commit()
        db.refresh(practitioner)
        return practitioner

    return _make


@pytest.fixture
def make_patient(db: Session):
    def _make(tenant_id: str = "tenant-1", first_name: str = "Pat", **fields):
        patient = models.Patient(tenant_id=tenant_id, first_name=first_name, **fields)
        db.add(patient)
        db.commit()
        db.refresh(patient)
        return patient

    return _make


@pytest.fixture
def make_appointment(db: Session):
    def _make(patient, practitioners, tenant_id: str = "tenant-1", **fields):
        appointment = models.Appointment(tenant_id=tenant_id, patient_id=patient.id, **fields)
        appointment.practitioners = list(practitioners)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make


@pytest.fixture
def make_license(db: Session):
    counter = {"n": 0}

    def _make(tenant_id: str = "tenant-1", status: str = models.LicenseStatus.AVAILABLE, practitioner=None, **fields):
        counter["n"] += 1
        license = models.License(
            tenant_id=tenant_id,
            license_key=fields.pop("license_key", f"LIC-TEST-{counter['n']:04d}"),
            status=status,
            **fields,
        )
        if practitioner is not None:
            license.assignments.append(models.LicenseAssignment(practitioner_id=practitioner.id))
        db.add(license)
        db.commit()
        db.refresh(license)
        return license

    return _make


@pytest.fixture
def auth_headers():
    """Bearer headers for a session in the given tenant and role"""

    def _headers(role: str = "admin", tenant_id: str = "tenant-1", patient_id=None, subject: str = "user-1"):
        token = create_access_token(subject, tenant_id, role, patient_id=patient_id)
        return {"Authorization": f"Bearer {token}"}

    return _headers


def create_stripe_signature(secret: str, payload: bytes, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header value ("t=<timestamp>,v1=<hmac>") for a payload"""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed_payload = f"{timestamp}.{payload.decode('utf-8')}"
    signature = hmac.new(secret.encode("utf-8"), signed_payload.encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"
