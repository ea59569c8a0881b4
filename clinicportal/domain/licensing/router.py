"""Licensing router - FastAPI endpoints for license management"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...auth import Principal, require_admin
from ...database import get_db
from .schemas import (
    LICENSE_STATUSES,
    AttachLicenseRequest,
    LicenseListResponse,
    LicenseResponse,
    ReconcileRequest,
    ReconcileResponse,
)
from .service import LicenseNotFoundError, LicenseService, LicenseStateError, TenantNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/licenses", tags=["Licenses"])


def get_license_service(db: Session = Depends(get_db)) -> LicenseService:
    """Dependency injection for LicenseService"""
    return LicenseService(db)


@router.get("", response_model=LicenseListResponse)
async def list_licenses(
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    principal: Principal = Depends(require_admin),
    service: LicenseService = Depends(get_license_service),
):
    """List the tenant's licenses, newest first"""
    if status and status not in LICENSE_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status: {status}")
    result = service.list_licenses(principal.tenant_id, status=status, search=search, page=page, per_page=per_page)
    return LicenseListResponse(
        items=[LicenseResponse.from_license(lic) for lic in result["items"]],
        total=result["total"],
        page=result["page"],
        per_page=result["per_page"],
    )


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile_licenses(
    body: ReconcileRequest,
    principal: Principal = Depends(require_admin),
    service: LicenseService = Depends(get_license_service),
):
    """Manually re-run seat reconciliation (retry path after a failed webhook)"""
    try:
        if body.subscription_item_id:
            if body.seats is None:
                raise HTTPException(status_code=400, detail="seats is required for a subscription item")
            result = service.reconcile_subscription_item(principal.tenant_id, body.subscription_item_id, body.seats)
        else:
            result = service.reconcile_tenant_seats(principal.tenant_id, body.seats)
    except TenantNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    return ReconcileResponse(
        tenant_id=result.tenant_id,
        subscription_item_id=result.subscription_item_id,
        target=result.target,
        existing_count=result.existing_count,
        created=[lic.license_key for lic in result.created],
        revoked=[lic.license_key for lic in result.revoked],
        changed=result.changed,
    )


@router.post("/{license_id}/attach", response_model=LicenseResponse)
async def attach_license(
    license_id: int,
    body: AttachLicenseRequest,
    principal: Principal = Depends(require_admin),
    service: LicenseService = Depends(get_license_service),
):
    """Assign a license to a practitioner"""
    try:
        license = service.attach(
            principal.tenant_id,
            license_id,
            body.practitioner_id,
            assigned_by=principal.subject,
            notes=body.notes,
        )
    except LicenseNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except LicenseStateError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return LicenseResponse.from_license(license)


@router.post("/{license_id}/detach/{practitioner_id}", response_model=LicenseResponse)
async def detach_license(
    license_id: int,
    practitioner_id: int,
    principal: Principal = Depends(require_admin),
    service: LicenseService = Depends(get_license_service),
):
    """Detach a license from a practitioner"""
    try:
        license = service.detach(principal.tenant_id, license_id, practitioner_id)
    except LicenseNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except LicenseStateError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return LicenseResponse.from_license(license)


@router.post("/{license_id}/revoke", response_model=LicenseResponse)
async def revoke_license(
    license_id: int,
    principal: Principal = Depends(require_admin),
    service: LicenseService = Depends(get_license_service),
):
    """Revoke a license and detach every practitioner"""
    try:
        license = service.revoke(principal.tenant_id, license_id)
    except LicenseNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except LicenseStateError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return LicenseResponse.from_license(license)
