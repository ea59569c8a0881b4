"""
Tests for LicenseService
"""
from datetime import datetime

import pytest
from sqlalchemy.exc import IntegrityError

from clinicportal.domain.licensing.keys import generate_license_key, is_well_formed
from clinicportal.domain.licensing.service import (
    LicenseNotFoundError,
    LicenseService,
    LicenseStateError,
    TenantNotFoundError,
)
from clinicportal.models import License, LicenseAssignment, LicenseStatus


def _statuses(db, tenant_id="tenant-1"):
    licenses = db.query(License).filter(License.tenant_id == tenant_id).order_by(License.id).all()
    return [lic.status for lic in licenses]


def test_reconcile_creates_missing_licenses(db, make_tenant):
    """Test that a seat increase creates available licenses with unique keys"""
    make_tenant(seats=3)

    result = LicenseService(db).reconcile_tenant_seats("tenant-1")

    assert result.existing_count == 0
    assert result.target == 3
    assert len(result.created) == 3
    assert result.revoked == []
    assert result.changed
    assert _statuses(db) == [LicenseStatus.AVAILABLE] * 3
    keys = [lic.license_key for lic in result.created]
    assert len(set(keys)) == 3
    assert all(is_well_formed(key) for key in keys)


def test_reconcile_is_idempotent(db, make_tenant):
    make_tenant(seats=2)
    service = LicenseService(db)

    service.reconcile_tenant_seats("tenant-1")
    second = service.reconcile_tenant_seats("tenant-1")

    assert not second.changed
    assert second.existing_count == 2
    assert db.query(License).count() == 2


def test_reconcile_tops_up_existing_licenses(db, make_tenant, make_license):
    make_tenant(seats=4)
    make_license()
    make_license(status=LicenseStatus.REVOKED)

    result = LicenseService(db).reconcile_tenant_seats("tenant-1")

    assert result.existing_count == 1
    assert len(result.created) == 3
    assert _statuses(db).count(LicenseStatus.REVOKED) == 1


def test_reconcile_revokes_available_before_assigned(db, make_tenant, make_license, make_practitioner):
    """Test that unassigned licenses are revoked first, oldest first"""
    make_tenant(seats=3)
    available = [make_license(), make_license()]
    practitioners = [make_practitioner(first_name=f"P{i}", email=f"p{i}@example.com") for i in range(3)]
    assigned = [make_license(status=LicenseStatus.ASSIGNED, practitioner=p) for p in practitioners]

    result = LicenseService(db).reconcile_tenant_seats("tenant-1")

    assert sorted(lic.id for lic in result.revoked) == sorted(lic.id for lic in available)
    for lic in available:
        db.refresh(lic)
        assert lic.status == LicenseStatus.REVOKED
        assert lic.revoked_at is not None
    for lic in assigned:
        db.refresh(lic)
        assert lic.status == LicenseStatus.ASSIGNED
    assert db.query(LicenseAssignment).count() == 3


def test_reconcile_revokes_oldest_assigned_when_needed(db, make_tenant, make_license, make_practitioner):
    make_tenant(seats=1)
    first = make_license(status=LicenseStatus.ASSIGNED, practitioner=make_practitioner(email="a@example.com"))
    second = make_license(status=LicenseStatus.ASSIGNED, practitioner=make_practitioner(email="b@example.com"))

    result = LicenseService(db).reconcile_tenant_seats("tenant-1")

    assert [lic.id for lic in result.revoked] == [first.id]
    db.refresh(second)
    assert second.status == LicenseStatus.ASSIGNED
    assert db.query(LicenseAssignment).filter(LicenseAssignment.license_id == first.id).count() == 0


def test_reconcile_revokes_available_even_when_assigned_is_older(db, make_tenant, make_license, make_practitioner):
    """Test that status priority wins over creation time"""
    make_tenant(seats=1)
    assigned = make_license(
        status=LicenseStatus.ASSIGNED, practitioner=make_practitioner(), created_at=datetime(2020, 1, 1)
    )
    available = make_license(created_at=datetime(2020, 1, 2))

    result = LicenseService(db).reconcile_tenant_seats("tenant-1")

    assert [lic.id for lic in result.revoked] == [available.id]
    db.refresh(assigned)
    assert assigned.status == LicenseStatus.ASSIGNED


def test_reconcile_revokes_oldest_created_first(db, make_tenant, make_license):
    """Test that creation time orders revocation, not insertion order"""
    make_tenant(seats=1)
    newest = make_license(created_at=datetime(2021, 6, 1))
    oldest = make_license(created_at=datetime(2020, 1, 1))
    middle = make_license(created_at=datetime(2021, 1, 1))

    result = LicenseService(db).reconcile_tenant_seats("tenant-1")

    assert [lic.id for lic in result.revoked] == [oldest.id, middle.id]
    db.refresh(newest)
    assert newest.status == LicenseStatus.AVAILABLE


def test_reconcile_to_zero_revokes_and_detaches_everything(db, make_tenant, make_license, make_practitioner):
    make_tenant(seats=0)
    make_license()
    make_license(status=LicenseStatus.ASSIGNED, practitioner=make_practitioner())

    result = LicenseService(db).reconcile_tenant_seats("tenant-1")

    assert len(result.revoked) == 2
    assert _statuses(db) == [LicenseStatus.REVOKED, LicenseStatus.REVOKED]
    assert db.query(LicenseAssignment).count() == 0


def test_reconcile_explicit_target_overrides_seat_count(db, make_tenant):
    make_tenant(seats=5)

    result = LicenseService(db).reconcile_tenant_seats("tenant-1", target_seats=2)

    assert len(result.created) == 2


def test_reconcile_rejects_negative_target(db, make_tenant):
    make_tenant(seats=1)

    with pytest.raises(ValueError):
        LicenseService(db).reconcile_tenant_seats("tenant-1", target_seats=-1)


def test_reconcile_unknown_tenant(db):
    with pytest.raises(TenantNotFoundError):
        LicenseService(db).reconcile_tenant_seats("missing")


def test_reconcile_is_scoped_to_tenant(db, make_tenant, make_license):
    make_tenant("tenant-1", seats=1)
    make_tenant("tenant-2", seats=0)
    make_license(tenant_id="tenant-2")
    make_license(tenant_id="tenant-2")

    result = LicenseService(db).reconcile_tenant_seats("tenant-1")

    assert result.existing_count == 0
    assert len(result.created) == 1
    assert _statuses(db, "tenant-2") == [LicenseStatus.AVAILABLE, LicenseStatus.AVAILABLE]


def test_reconcile_subscription_item_counts_only_its_licenses(db, make_tenant, make_license):
    make_tenant(seats=10)
    make_license(subscription_item_id="si_a")
    make_license(subscription_item_id="si_a", status=LicenseStatus.REVOKED)
    make_license(subscription_item_id="si_b")
    make_license()

    result = LicenseService(db).reconcile_subscription_item("tenant-1", "si_a", 3)

    assert result.existing_count == 1
    assert len(result.created) == 2
    assert all(lic.subscription_item_id == "si_a" for lic in result.created)

    shrink = LicenseService(db).reconcile_subscription_item("tenant-1", "si_a", 0)
    assert len(shrink.revoked) == 3
    assert db.query(License).filter(License.subscription_item_id == "si_b").one().status == LicenseStatus.AVAILABLE


def test_duplicate_license_key_is_rejected(db, make_tenant):
    make_tenant()
    key = generate_license_key()
    db.add(License(tenant_id="tenant-1", license_key=key))
    db.commit()

    db.add(License(tenant_id="tenant-1", license_key=key))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_attach_and_detach(db, make_tenant, make_license, make_practitioner):
    make_tenant()
    license = make_license()
    practitioner = make_practitioner()
    service = LicenseService(db)

    attached = service.attach("tenant-1", license.id, practitioner.id, assigned_by="admin-1", notes="front desk")

    assert attached.status == LicenseStatus.ASSIGNED
    assert attached.assigned_at is not None
    assert [a.practitioner_id for a in attached.assignments] == [practitioner.id]
    assert attached.assignments[0].assigned_by == "admin-1"

    detached = service.detach("tenant-1", license.id, practitioner.id)

    assert detached.status == LicenseStatus.AVAILABLE
    assert detached.assigned_at is None
    assert detached.assignments == []


def test_attach_requires_available_license(db, make_tenant, make_license, make_practitioner):
    make_tenant()
    license = make_license(status=LicenseStatus.ASSIGNED, practitioner=make_practitioner(email="a@example.com"))
    other = make_practitioner(email="b@example.com")

    with pytest.raises(LicenseStateError, match="not available"):
        LicenseService(db).attach("tenant-1", license.id, other.id)


def test_attach_unknown_practitioner(db, make_tenant, make_license):
    make_tenant()
    license = make_license()

    with pytest.raises(LicenseStateError, match="does not exist"):
        LicenseService(db).attach("tenant-1", license.id, 999)


def test_detach_without_assignment(db, make_tenant, make_license, make_practitioner):
    make_tenant()
    license = make_license()

    with pytest.raises(LicenseStateError, match="not assigned"):
        LicenseService(db).detach("tenant-1", license.id, make_practitioner().id)


def test_license_from_other_tenant_is_not_found(db, make_tenant, make_license, make_practitioner):
    make_tenant("tenant-1")
    make_tenant("tenant-2")
    license = make_license(tenant_id="tenant-2")

    with pytest.raises(LicenseNotFoundError):
        LicenseService(db).attach("tenant-1", license.id, make_practitioner().id)


def test_revoke(db, make_tenant, make_license, make_practitioner):
    make_tenant()
    license = make_license(status=LicenseStatus.ASSIGNED, practitioner=make_practitioner())
    service = LicenseService(db)

    revoked = service.revoke("tenant-1", license.id)

    assert revoked.status == LicenseStatus.REVOKED
    assert revoked.revoked_at is not None
    assert revoked.assignments == []

    with pytest.raises(LicenseStateError, match="already revoked"):
        service.revoke("tenant-1", license.id)


def test_list_licenses_filters_and_paginates(db, make_tenant, make_license):
    make_tenant()
    for _ in range(3):
        make_license()
    make_license(status=LicenseStatus.REVOKED, notes="former locum")
    service = LicenseService(db)

    page = service.list_licenses("tenant-1", page=1, per_page=2)
    assert page["total"] == 4
    assert len(page["items"]) == 2

    revoked = service.list_licenses("tenant-1", status=LicenseStatus.REVOKED)
    assert revoked["total"] == 1

    found = service.list_licenses("tenant-1", search="locum")
    assert [lic.notes for lic in found["items"]] == ["former locum"]
