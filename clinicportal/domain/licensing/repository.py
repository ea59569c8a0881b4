"""License repository - Database operations for licenses"""

from datetime import datetime
from typing import Optional

from sqlalchemy import case, or_
from sqlalchemy.orm import Session, selectinload

from ...models import (
    ACTIVE_LICENSE_STATUSES,
    License,
    LicenseAssignment,
    LicenseStatus,
    Practitioner,
    Tenant,
)

# Revocation priority: unassigned seats go first
_STATUS_PRIORITY = case(
    (License.status == LicenseStatus.AVAILABLE, 0),
    (License.status == LicenseStatus.ASSIGNED, 1),
    else_=2,
)


class LicenseRepository:
    """Repository for license database operations.

    Methods only flush; the calling service owns the transaction.
    """

    @staticmethod
    def lock_tenant(db: Session, tenant_id: str) -> Optional[Tenant]:
        """Load the tenant row with FOR UPDATE so reconciliations per tenant serialize"""
        return db.query(Tenant).filter(Tenant.id == tenant_id).with_for_update().first()

    @staticmethod
    def active_licenses_query(db: Session, tenant_id: str, subscription_item_id: Optional[str] = None):
        query = db.query(License).filter(
            License.tenant_id == tenant_id,
            License.status.in_(ACTIVE_LICENSE_STATUSES),
        )
        if subscription_item_id is not None:
            query = query.filter(License.subscription_item_id == subscription_item_id)
        return query

    @classmethod
    def count_active(cls, db: Session, tenant_id: str, subscription_item_id: Optional[str] = None) -> int:
        return cls.active_licenses_query(db, tenant_id, subscription_item_id).count()

    @classmethod
    def revocation_candidates(
        cls, db: Session, tenant_id: str, limit: int, subscription_item_id: Optional[str] = None
    ) -> list[License]:
        """Available licenses before assigned ones, oldest first within each group"""
        return (
            cls.active_licenses_query(db, tenant_id, subscription_item_id)
            .options(selectinload(License.assignments))
            .order_by(_STATUS_PRIORITY, License.created_at.asc(), License.id.asc())
            .limit(limit)
            .all()
        )

    @classmethod
    def all_active(cls, db: Session, tenant_id: str, subscription_item_id: Optional[str] = None) -> list[License]:
        return (
            cls.active_licenses_query(db, tenant_id, subscription_item_id)
            .options(selectinload(License.assignments))
            .order_by(License.created_at.asc(), License.id.asc())
            .all()
        )

    @staticmethod
    def create_license(
        db: Session, tenant_id: str, license_key: str, subscription_item_id: Optional[str] = None
    ) -> License:
        license = License(
            tenant_id=tenant_id,
            subscription_item_id=subscription_item_id,
            license_key=license_key,
            status=LicenseStatus.AVAILABLE,
        )
        db.add(license)
        db.flush()
        return license

    @staticmethod
    def revoke_license(db: Session, license: License, revoked_at: datetime) -> License:
        """Detach every practitioner, then mark the license revoked"""
        license.assignments.clear()
        license.status = LicenseStatus.REVOKED
        license.revoked_at = revoked_at
        license.assigned_at = None
        db.flush()
        return license

    @staticmethod
    def get_license(db: Session, tenant_id: str, license_id: int) -> Optional[License]:
        return (
            db.query(License)
            .filter(License.id == license_id, License.tenant_id == tenant_id)
            .first()
        )

    @staticmethod
    def list_licenses(
        db: Session,
        tenant_id: str,
        status: Optional[str] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> tuple[list[License], int]:
        """Newest first, filtered by status and key/notes search"""
        query = db.query(License).filter(License.tenant_id == tenant_id)
        if status:
            query = query.filter(License.status == status)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(License.license_key.ilike(pattern), License.notes.ilike(pattern)))

        total = query.count()
        items = (
            query.options(selectinload(License.assignments).selectinload(LicenseAssignment.practitioner))
            .order_by(License.created_at.desc(), License.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return items, total

    @staticmethod
    def get_practitioner(db: Session, practitioner_id: int) -> Optional[Practitioner]:
        return db.query(Practitioner).filter(Practitioner.id == practitioner_id).first()

    @staticmethod
    def get_assignment(db: Session, license_id: int, practitioner_id: int) -> Optional[LicenseAssignment]:
        return (
            db.query(LicenseAssignment)
            .filter(
                LicenseAssignment.license_id == license_id,
                LicenseAssignment.practitioner_id == practitioner_id,
            )
            .first()
        )
