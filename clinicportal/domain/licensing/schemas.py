"""Licensing domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...models import LicenseStatus

LICENSE_STATUSES = {LicenseStatus.AVAILABLE, LicenseStatus.ASSIGNED, LicenseStatus.REVOKED}


class AttachLicenseRequest(BaseModel):
    """Schema for assigning a license to a practitioner"""

    practitioner_id: int
    notes: Optional[str] = Field(default=None, max_length=1000)


class ReconcileRequest(BaseModel):
    """Manual reconciliation; seats defaults to the tenant's purchased seat count"""

    seats: Optional[int] = None
    subscription_item_id: Optional[str] = None

    @field_validator("seats")
    @classmethod
    def validate_seats(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("seats must be zero or more")
        return v


class AssignedPractitioner(BaseModel):
    practitioner_id: int
    name: Optional[str] = None
    assigned_at: Optional[datetime] = None


class LicenseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    license_key: str
    status: str
    subscription_item_id: Optional[str] = None
    notes: Optional[str] = None
    assigned_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    practitioners: list[AssignedPractitioner] = []

    @classmethod
    def from_license(cls, license) -> "LicenseResponse":
        return cls(
            id=license.id,
            license_key=license.license_key,
            status=license.status,
            subscription_item_id=license.subscription_item_id,
            notes=license.notes,
            assigned_at=license.assigned_at,
            revoked_at=license.revoked_at,
            created_at=license.created_at,
            practitioners=[
                AssignedPractitioner(
                    practitioner_id=a.practitioner_id,
                    name=a.practitioner.full_name if a.practitioner else None,
                    assigned_at=a.assigned_at,
                )
                for a in license.assignments
            ],
        )


class LicenseListResponse(BaseModel):
    items: list[LicenseResponse]
    total: int
    page: int
    per_page: int


class ReconcileResponse(BaseModel):
    tenant_id: str
    subscription_item_id: Optional[str] = None
    target: int
    existing_count: int
    created: list[str]
    revoked: list[str]
    changed: bool
