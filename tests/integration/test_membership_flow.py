"""Integration tests for society registration, signup, profiles and approval."""

import pytest
from sqlalchemy import UniqueConstraint, select
from sqlalchemy.exc import IntegrityError

from society_portal.errors import NotFoundError, ValidationError
from society_portal.models.audit_log import AuditAction, AuditEntity, AuditLog
from society_portal.models.resident import ApprovalState
from society_portal.models.society import Society
from society_portal.schemas.residents import (
    ProfileUpdatePayload,
    RegisterSocietyPayload,
    SignupPayload,
)
from society_portal.services.audit_service import AuditService
from society_portal.services.resident_service import DEFAULT_FEE_SCHEDULE, ResidentService

pytestmark = pytest.mark.integration


def _register_payload(**overrides) -> RegisterSocietyPayload:
    data = {
        "username": "admin@greenmeadows.in",
        "password": "admin-password",
        "societyName": "Green Meadows",
        "unitId": "A-101",
        "firstName": "Meera",
        "lastName": "Iyer",
        "city": "Pune",
    }
    data.update(overrides)
    return RegisterSocietyPayload(**data)


def _signup_payload(**overrides) -> SignupPayload:
    data = {
        "username": "ravi@example.com",
        "password": "resident-password",
        "societyName": "Green Meadows",
        "unitId": "B-202",
        "firstName": "Ravi",
        "lastName": "Kumar",
    }
    data.update(overrides)
    return SignupPayload(**data)


@pytest.mark.asyncio
async def test_register_society_creates_approved_admin(session):
    society, admin = await ResidentService(session).register_society(_register_payload())

    assert society.admin_resident_id == admin.id
    assert society.fee_schedule == DEFAULT_FEE_SCHEDULE
    assert admin.is_admin is True
    assert admin.approval_state == ApprovalState.APPROVED
    assert admin.password_hash != "admin-password"


@pytest.mark.asyncio
async def test_register_society_with_fee_schedule(session):
    society, _ = await ResidentService(session).register_society(
        _register_payload(feeSchedule={"societyCharges": 500, "waterCharges": 100})
    )

    assert society.fee_schedule == {"societyCharges": 500, "waterCharges": 100}


@pytest.mark.asyncio
async def test_register_duplicate_society_rejected(session):
    service = ResidentService(session)
    await service.register_society(_register_payload())

    with pytest.raises(ValidationError, match="already registered"):
        await service.register_society(_register_payload(username="other@example.com"))


@pytest.mark.asyncio
async def test_signup_joins_as_applied(session):
    service = ResidentService(session)
    society, _ = await service.register_society(_register_payload())

    resident = await service.signup(_signup_payload())

    assert resident.society_id == society.id
    assert resident.approval_state == ApprovalState.APPLIED
    assert resident.is_admin is False


@pytest.mark.asyncio
async def test_signup_unknown_society(session):
    with pytest.raises(NotFoundError, match="not registered"):
        await ResidentService(session).signup(_signup_payload(societyName="Nowhere"))


@pytest.mark.asyncio
async def test_signup_duplicate_username_or_unit(session):
    service = ResidentService(session)
    await service.register_society(_register_payload())
    await service.signup(_signup_payload())

    with pytest.raises(ValidationError, match="username"):
        await service.signup(_signup_payload(unitId="C-303"))
    with pytest.raises(ValidationError, match="Unit B-202"):
        await service.signup(_signup_payload(username="someone@example.com"))


@pytest.mark.asyncio
async def test_authenticate(session):
    service = ResidentService(session)
    _, admin = await service.register_society(_register_payload())

    assert await service.authenticate("admin@greenmeadows.in", "admin-password") is admin
    assert await service.authenticate("admin@greenmeadows.in", "wrong-password") is None
    assert await service.authenticate("nobody@example.com", "admin-password") is None


@pytest.mark.asyncio
async def test_approval_updates_state_and_audit(session):
    service = ResidentService(session)
    society, admin = await service.register_society(_register_payload())
    applicant = await service.signup(_signup_payload())

    approved = await service.set_approval_state(admin, applicant.id, ApprovalState.APPROVED)

    assert approved.is_approved is True
    audit = (await session.execute(select(AuditLog))).scalar_one()
    assert audit.entity_id == applicant.id
    assert audit.action == AuditAction.APPROVED
    assert audit.entity_type == AuditEntity.RESIDENT
    assert audit.changes["approval_state"] == {"before": "applied", "after": "approved"}

    applied = await service.list_residents(society.id, ApprovalState.APPLIED)
    assert applied == []
    everyone = await service.list_residents(society.id)
    assert [r.unit_id for r in everyone] == ["A-101", "B-202"]


@pytest.mark.asyncio
async def test_approval_rejects_applied_state(session):
    service = ResidentService(session)
    _, admin = await service.register_society(_register_payload())
    applicant = await service.signup(_signup_payload())

    with pytest.raises(ValidationError):
        await service.set_approval_state(admin, applicant.id, ApprovalState.APPLIED)


@pytest.mark.asyncio
async def test_approval_scoped_to_admin_society(session):
    service = ResidentService(session)
    _, admin = await service.register_society(_register_payload())
    _, other_admin = await service.register_society(
        _register_payload(username="admin@lakeview.in", societyName="Lake View")
    )

    with pytest.raises(NotFoundError):
        await service.set_approval_state(admin, other_admin.id, ApprovalState.DECLINED)


@pytest.mark.asyncio
async def test_decline_is_recorded_in_history(session):
    service = ResidentService(session)
    _, admin = await service.register_society(_register_payload())
    applicant = await service.signup(_signup_payload())

    await service.set_approval_state(admin, applicant.id, ApprovalState.DECLINED)

    history = await AuditService.history(session, AuditEntity.RESIDENT, applicant.id)
    assert [entry.action for entry in history] == [AuditAction.DECLINED]
    assert history[0].actor_id == admin.id
    assert await AuditService.history(session, AuditEntity.RESIDENT, admin.id) == []


@pytest.mark.asyncio
async def test_update_profile_changes_details_and_audits(session):
    service = ResidentService(session)
    _, admin = await service.register_society(_register_payload())
    resident = await service.signup(_signup_payload())
    await service.set_approval_state(admin, resident.id, ApprovalState.APPROVED)
    version = resident.version_id

    updated, _ = await service.update_profile(
        resident.id, ProfileUpdatePayload(firstName="Ravindra", phoneNumber="+91 98450 00000")
    )

    assert updated.first_name == "Ravindra"
    assert updated.last_name == "Kumar"
    assert updated.phone_number == "+91 98450 00000"
    assert updated.version_id == version + 1
    history = await AuditService.history(session, AuditEntity.RESIDENT, resident.id)
    assert history[-1].action == AuditAction.PROFILE_UPDATED
    assert history[-1].changes["first_name"] == {"before": "Ravi", "after": "Ravindra"}


@pytest.mark.asyncio
async def test_update_profile_without_changes_writes_nothing(session):
    service = ResidentService(session)
    _, admin = await service.register_society(_register_payload())

    await service.update_profile(admin.id, ProfileUpdatePayload(firstName="Meera"))

    assert await AuditService.history(session, AuditEntity.RESIDENT, admin.id) == []


@pytest.mark.asyncio
async def test_update_profile_rejects_taken_unit(session):
    service = ResidentService(session)
    await service.register_society(_register_payload())
    resident = await service.signup(_signup_payload())

    with pytest.raises(ValidationError, match="A-101"):
        await service.update_profile(resident.id, ProfileUpdatePayload(unitId="A-101"))


@pytest.mark.asyncio
async def test_update_profile_rejects_cleared_name(session):
    service = ResidentService(session)
    _, admin = await service.register_society(_register_payload())

    with pytest.raises(ValidationError):
        await service.update_profile(admin.id, ProfileUpdatePayload(lastName=None))


@pytest.mark.asyncio
async def test_admin_updates_society_address(session):
    service = ResidentService(session)
    society, admin = await service.register_society(_register_payload())

    _, updated = await service.update_profile(
        admin.id, ProfileUpdatePayload(address="12 MG Road", postalCode="411001")
    )

    assert updated.id == society.id
    assert updated.address == "12 MG Road"
    assert updated.postal_code == "411001"
    assert updated.city == "Pune"
    stored = await session.get(Society, society.id)
    assert stored.address == "12 MG Road"


@pytest.mark.asyncio
async def test_resident_cannot_update_society_address(session):
    service = ResidentService(session)
    await service.register_society(_register_payload())
    resident = await service.signup(_signup_payload())

    with pytest.raises(ValidationError, match="administrator"):
        await service.update_profile(resident.id, ProfileUpdatePayload(city="Mumbai"))


def test_society_name_has_one_unique_constraint():
    table = Society.__table__
    name_indexes = [index for index in table.indexes if "name" in index.columns.keys()]
    name_uniques = [
        c
        for c in table.constraints
        if isinstance(c, UniqueConstraint) and c.columns.keys() == ["name"]
    ]

    assert name_indexes == []
    assert len(name_uniques) == 1


@pytest.mark.asyncio
async def test_duplicate_society_name_rejected_by_store(session, make_society):
    await make_society(name="Green Meadows")

    session.add(Society(name="Green Meadows", fee_schedule={}))
    with pytest.raises(IntegrityError):
        await session.commit()
    await session.rollback()
