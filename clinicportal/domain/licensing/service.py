"""License service - seat reconciliation and manual license management"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import License, LicenseAssignment, LicenseStatus
from .keys import generate_license_key
from .repository import LicenseRepository

logger = logging.getLogger(__name__)


class TenantNotFoundError(Exception):
    """Raised when a tenant id does not resolve"""

    pass


class LicenseNotFoundError(Exception):
    """Raised when a license id does not resolve within the tenant"""

    pass


class LicenseStateError(Exception):
    """Raised when a manual operation does not fit the license's current status"""

    pass


@dataclass
class ReconcileResult:
    tenant_id: str
    target: int
    existing_count: int
    subscription_item_id: Optional[str] = None
    created: list[License] = field(default_factory=list)
    revoked: list[License] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.created or self.revoked)


class LicenseService:
    """Keeps non-revoked licenses in line with purchased seats"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = LicenseRepository()

    # ------------------------------------------------------------------
    # Seat reconciliation
    # ------------------------------------------------------------------

    def reconcile_tenant_seats(self, tenant_id: str, target_seats: Optional[int] = None) -> ReconcileResult:
        """Match the tenant's non-revoked licenses to ``target_seats``.

        ``target_seats`` defaults to the tenant's ``number_of_seats``.
        """
        return self._reconcile(tenant_id, target_seats, subscription_item_id=None)

    def reconcile_subscription_item(
        self, tenant_id: str, subscription_item_id: str, quantity: Optional[int]
    ) -> ReconcileResult:
        """Match licenses bought through one subscription item to its quantity"""
        if not subscription_item_id:
            raise ValueError("subscription_item_id is required")
        return self._reconcile(tenant_id, quantity or 0, subscription_item_id=subscription_item_id)

    def _reconcile(
        self, tenant_id: str, target: Optional[int], subscription_item_id: Optional[str]
    ) -> ReconcileResult:
        try:
            tenant = self.repo.lock_tenant(self.db, tenant_id)
            if tenant is None:
                raise TenantNotFoundError(f"Tenant {tenant_id} not found")

            if target is None:
                target = tenant.number_of_seats or 0
            if target < 0:
                raise ValueError(f"Seat target must be >= 0, got {target}")

            existing_count = self.repo.count_active(self.db, tenant_id, subscription_item_id)
            result = ReconcileResult(
                tenant_id=tenant_id,
                target=target,
                existing_count=existing_count,
                subscription_item_id=subscription_item_id,
            )
            scope = {"tenant_id": tenant_id, "subscription_item_id": subscription_item_id}

            if existing_count == target:
                logger.info(f"License count matches seats: {scope} seats={target}")
            elif target == 0:
                result.revoked = self._revoke_all(tenant_id, subscription_item_id)
                logger.info(f"🔒 All licenses revoked (seats is 0): {scope} revoked={len(result.revoked)}")
            elif existing_count < target:
                result.created = self._create(tenant_id, target - existing_count, subscription_item_id)
                logger.info(
                    f"🆕 Additional licenses created: {scope} target={target} "
                    f"existing={existing_count} created={len(result.created)}"
                )
            else:
                excess = existing_count - target
                logger.info(
                    f"Seats decreased - revoking excess licenses: {scope} "
                    f"old={existing_count} new={target} excess={excess}"
                )
                result.revoked = self._revoke_excess(tenant_id, excess, subscription_item_id)
                logger.info(f"🔒 Excess licenses revoked: {scope} revoked={len(result.revoked)}")

            self.db.commit()
            return result
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to reconcile licenses for tenant {tenant_id}: {e}")
            raise

    def _create(self, tenant_id: str, count: int, subscription_item_id: Optional[str]) -> list[License]:
        return [
            self.repo.create_license(self.db, tenant_id, generate_license_key(), subscription_item_id)
            for _ in range(count)
        ]

    def _revoke_excess(self, tenant_id: str, excess: int, subscription_item_id: Optional[str]) -> list[License]:
        candidates = self.repo.revocation_candidates(self.db, tenant_id, excess, subscription_item_id)
        return self._revoke_each(candidates)

    def _revoke_all(self, tenant_id: str, subscription_item_id: Optional[str]) -> list[License]:
        return self._revoke_each(self.repo.all_active(self.db, tenant_id, subscription_item_id))

    def _revoke_each(self, licenses: list[License]) -> list[License]:
        now = datetime.utcnow()
        for license in licenses:
            if license.status == LicenseStatus.ASSIGNED and license.assignments:
                logger.info(
                    f"Detaching {len(license.assignments)} practitioner(s) from license {license.id}"
                )
            self.repo.revoke_license(self.db, license, now)
        return licenses

    # ------------------------------------------------------------------
    # Manual management
    # ------------------------------------------------------------------

    def list_licenses(
        self,
        tenant_id: str,
        status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> dict:
        page = max(page, 1)
        items, total = self.repo.list_licenses(
            self.db, tenant_id, status=status, search=search, offset=(page - 1) * per_page, limit=per_page
        )
        return {"items": items, "total": total, "page": page, "per_page": per_page}

    def get_license(self, tenant_id: str, license_id: int) -> License:
        license = self.repo.get_license(self.db, tenant_id, license_id)
        if not license:
            raise LicenseNotFoundError(f"License {license_id} not found")
        return license

    def attach(
        self,
        tenant_id: str,
        license_id: int,
        practitioner_id: int,
        assigned_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> License:
        """Assign an available license to a practitioner"""
        license = self.get_license(tenant_id, license_id)
        if not license.is_available():
            raise LicenseStateError("This license is not available for assignment.")
        if not self.repo.get_practitioner(self.db, practitioner_id):
            raise LicenseStateError(f"Practitioner {practitioner_id} does not exist.")
        if self.repo.get_assignment(self.db, license.id, practitioner_id):
            raise LicenseStateError("This practitioner already has this license assigned.")

        now = datetime.utcnow()
        try:
            license.assignments.append(
                LicenseAssignment(
                    practitioner_id=practitioner_id,
                    assigned_by=assigned_by,
                    assigned_at=now,
                    notes=notes,
                )
            )
            license.status = LicenseStatus.ASSIGNED
            license.assigned_at = now
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(license)
        logger.info(f"✅ License {license.id} assigned to practitioner {practitioner_id}")
        return license

    def detach(self, tenant_id: str, license_id: int, practitioner_id: int) -> License:
        """Remove a practitioner; the license returns to available when nobody holds it"""
        license = self.get_license(tenant_id, license_id)
        assignment = self.repo.get_assignment(self.db, license.id, practitioner_id)
        if not assignment:
            raise LicenseStateError("This license is not assigned to this practitioner.")

        try:
            license.assignments.remove(assignment)
            if not license.assignments:
                license.status = LicenseStatus.AVAILABLE
                license.assigned_at = None
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(license)
        logger.info(f"License {license.id} detached from practitioner {practitioner_id}")
        return license

    def revoke(self, tenant_id: str, license_id: int) -> License:
        license = self.get_license(tenant_id, license_id)
        if license.status == LicenseStatus.REVOKED:
            raise LicenseStateError("This license is already revoked.")

        try:
            self.repo.revoke_license(self.db, license, datetime.utcnow())
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(license)
        logger.info(f"🔒 License {license.id} revoked manually")
        return license
