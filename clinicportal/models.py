from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class LicenseStatus:
    AVAILABLE = "available"
    ASSIGNED = "assigned"
    REVOKED = "revoked"


# Statuses that occupy a seat
ACTIVE_LICENSE_STATUSES = (LicenseStatus.AVAILABLE, LicenseStatus.ASSIGNED)


class BillingStatus:
    PENDING = "pending"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(String(64), primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    # Stripe customer id
    stripe_id = Column(String(255), unique=True, index=True, nullable=True)
    stripe_subscription_id = Column(String(255), nullable=True)
    number_of_seats = Column(Integer, default=0, nullable=False)
    billing_status = Column(String(20), default=BillingStatus.PENDING, nullable=False)
    on_trial = Column(Boolean, default=False, nullable=False)
    trial_ends_at = Column(DateTime, nullable=True)
    subscription_ends_at = Column(DateTime, nullable=True)
    total_amount_paid = Column(Float, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    licenses = relationship("License", back_populates="tenant")


class Practitioner(Base):
    """Central practitioner record, shared across tenants"""

    __tablename__ = "practitioners"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False, default="")
    email = Column(String(255), unique=True, index=True, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name or ''}".strip()


class Patient(Base):
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), ForeignKey("tenants.id"), index=True, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class License(Base):
    __tablename__ = "licenses"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), ForeignKey("tenants.id"), index=True, nullable=False)
    # Stripe subscription item the seat was bought through; null for seat-count licenses
    subscription_item_id = Column(String(255), index=True, nullable=True)
    license_key = Column(String(64), unique=True, index=True, nullable=False)
    status = Column(String(20), default=LicenseStatus.AVAILABLE, index=True, nullable=False)
    notes = Column(Text, nullable=True)
    assigned_at = Column(DateTime, nullable=True)
    revoked_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    tenant = relationship("Tenant", back_populates="licenses")
    assignments = relationship(
        "LicenseAssignment", back_populates="license", cascade="all, delete-orphan"
    )

    def is_available(self) -> bool:
        return self.status == LicenseStatus.AVAILABLE

    def __repr__(self):
        return f"<License {self.license_key} ({self.status})>"


class LicenseAssignment(Base):
    """Link between a license and the practitioner holding it"""

    __tablename__ = "license_practitioner"
    __table_args__ = (UniqueConstraint("license_id", "practitioner_id", name="uq_license_practitioner"),)

    id = Column(Integer, primary_key=True, index=True)
    license_id = Column(Integer, ForeignKey("licenses.id"), index=True, nullable=False)
    practitioner_id = Column(Integer, ForeignKey("practitioners.id"), index=True, nullable=False)
    assigned_by = Column(String(255), nullable=True)
    assigned_at = Column(DateTime, server_default=func.now())
    notes = Column(Text, nullable=True)

    license = relationship("License", back_populates="assignments")
    practitioner = relationship("Practitioner")


appointment_practitioner = Table(
    "appointment_practitioner",
    Base.metadata,
    Column("appointment_id", Integer, ForeignKey("appointments.id"), primary_key=True),
    Column("practitioner_id", Integer, ForeignKey("practitioners.id"), primary_key=True),
)


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), ForeignKey("tenants.id"), index=True, nullable=False)
    patient_id = Column(Integer, ForeignKey("patients.id"), index=True, nullable=False)
    scheduled_at = Column(DateTime, nullable=True)
    status = Column(String(30), default="scheduled", nullable=False)  # scheduled, completed, cancelled
    created_at = Column(DateTime, server_default=func.now())

    patient = relationship("Patient")
    practitioners = relationship("Practitioner", secondary=appointment_practitioner)
    feedback = relationship("AppointmentFeedback", back_populates="appointment", uselist=False)


class AppointmentFeedback(Base):
    __tablename__ = "appointment_feedback"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), ForeignKey("tenants.id"), index=True, nullable=False)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), unique=True, nullable=False)
    patient_id = Column(Integer, ForeignKey("patients.id"), index=True, nullable=False)
    visit_rating = Column(Float, nullable=False)
    visit_led_by_id = Column(Integer, nullable=True)  # lead practitioner
    call_out_person_id = Column(Integer, nullable=True)  # called-out practitioner
    additional_feedback = Column(Text, nullable=True)
    is_editable = Column(Boolean, default=True, nullable=False)
    submitted_at = Column(DateTime, nullable=True)
    last_edited_at = Column(DateTime, nullable=True)

    appointment = relationship("Appointment", back_populates="feedback")


class PractitionerRating(Base):
    """One practitioner's share of an appointment's feedback rating"""

    __tablename__ = "practitioner_ratings"
    __table_args__ = (
        UniqueConstraint("appointment_id", "practitioner_id", name="uq_rating_appointment_practitioner"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), ForeignKey("tenants.id"), index=True, nullable=False)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), index=True, nullable=False)
    practitioner_id = Column(Integer, ForeignKey("practitioners.id"), index=True, nullable=False)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    rating_points = Column(Float, nullable=False)
    rating_percentage = Column(Float, nullable=False)
    is_lead_practitioner = Column(Boolean, default=False, nullable=False)
    is_called_out = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
