"""Billing repository - Database operations for tenant billing state"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Tenant


class BillingRepository:
    """Repository for billing database operations"""

    @staticmethod
    def get_tenant_by_id(db: Session, tenant_id: str) -> Optional[Tenant]:
        """Get tenant by ID"""
        return db.query(Tenant).filter(Tenant.id == tenant_id).first()

    @staticmethod
    def get_tenant_by_stripe_id(db: Session, stripe_id: str) -> Optional[Tenant]:
        """Get tenant by Stripe customer ID"""
        return db.query(Tenant).filter(Tenant.stripe_id == stripe_id).first()

    @staticmethod
    def update_tenant(db: Session, tenant: Tenant, **updates) -> Tenant:
        """Apply billing fields and commit"""
        for key, value in updates.items():
            if hasattr(tenant, key):
                setattr(tenant, key, value)
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(tenant)
        return tenant
