"""Resident service for society registration, signup, profiles and approval workflows."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from society_portal.errors import (
    ConcurrentUpdateError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from society_portal.models.audit_log import AuditAction, AuditEntity
from society_portal.models.resident import ApprovalState, Resident
from society_portal.models.society import Society
from society_portal.schemas.residents import (
    ProfileUpdatePayload,
    RegisterSocietyPayload,
    SignupPayload,
)
from society_portal.services.audit_service import AuditService
from society_portal.services.billing_service import validate_fee_schedule
from society_portal.services.identity import hash_password, verify_password

logger = logging.getLogger(__name__)

# Charge categories a new society starts with; the admin fills in amounts later
DEFAULT_FEE_SCHEDULE = {
    "societyCharges": 0,
    "repairsAndMaintenance": 0,
    "sinkingFund": 0,
    "waterCharges": 0,
    "insuranceCharges": 0,
    "parkingCharges": 0,
}


class ResidentService:
    """Service for resident membership operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_society_by_name(self, name: str) -> Society | None:
        result = await self.session.execute(select(Society).where(Society.name == name))
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> Resident | None:
        result = await self.session.execute(select(Resident).where(Resident.username == username))
        return result.scalar_one_or_none()

    async def _unit_taken(self, society_id: int, unit_id: str) -> bool:
        result = await self.session.execute(
            select(Resident.id).where(
                Resident.society_id == society_id,
                Resident.unit_id == unit_id,
            )
        )
        return result.first() is not None

    async def register_society(self, payload: RegisterSocietyPayload) -> tuple[Society, Resident]:
        """Create a society and its first resident as an approved administrator.

        Raises:
            ValidationError: Society name or username already registered, bad fee schedule
            PersistenceError: Store write failed
        """
        if await self.get_society_by_name(payload.society_name):
            raise ValidationError(
                "Society is already registered, please double-check the society name"
            )
        if await self.get_by_username(payload.username):
            raise ValidationError("This username is not available")

        fee_schedule = (
            validate_fee_schedule(payload.fee_schedule)
            if payload.fee_schedule
            else dict(DEFAULT_FEE_SCHEDULE)
        )

        society = Society(
            name=payload.society_name,
            address=payload.address,
            city=payload.city,
            district=payload.district,
            postal_code=payload.postal_code,
            fee_schedule=fee_schedule,
        )
        resident = Resident(
            username=payload.username,
            password_hash=hash_password(payload.password),
            unit_id=payload.unit_id,
            first_name=payload.first_name,
            last_name=payload.last_name,
            phone_number=payload.phone_number,
            approval_state=ApprovalState.APPROVED,
            is_admin=True,
            payments=[],
        )
        try:
            self.session.add(society)
            await self.session.flush()
            resident.society_id = society.id
            self.session.add(resident)
            await self.session.flush()
            society.admin_resident_id = resident.id
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning("Society registration conflict for %s: %s", payload.society_name, e)
            raise ValidationError("Society or username is already registered") from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to register society %s: %s", payload.society_name, e)
            raise PersistenceError() from e

        logger.info(
            "Society registered: society_id=%d name=%s admin_resident_id=%d",
            society.id,
            society.name,
            resident.id,
        )
        return society, resident

    async def signup(self, payload: SignupPayload) -> Resident:
        """Create a resident applying to join an existing society.

        Raises:
            NotFoundError: Society not registered
            ValidationError: Username or unit already registered
            PersistenceError: Store write failed
        """
        society = await self.get_society_by_name(payload.society_name)
        if society is None:
            raise NotFoundError("Society is not registered, please double-check the society name")
        if await self.get_by_username(payload.username):
            raise ValidationError("This username is not available")
        if await self._unit_taken(society.id, payload.unit_id):
            raise ValidationError(f"Unit {payload.unit_id} is already registered in this society")

        resident = Resident(
            username=payload.username,
            password_hash=hash_password(payload.password),
            society_id=society.id,
            unit_id=payload.unit_id,
            first_name=payload.first_name,
            last_name=payload.last_name,
            phone_number=payload.phone_number,
            approval_state=ApprovalState.APPLIED,
            payments=[],
        )
        self.session.add(resident)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning("Signup conflict for %s: %s", payload.username, e)
            raise ValidationError("Username or unit is already registered") from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to sign up %s: %s", payload.username, e)
            raise PersistenceError() from e

        logger.info(
            "Resident applied: resident_id=%d society_id=%d unit_id=%s",
            resident.id,
            society.id,
            resident.unit_id,
        )
        return resident

    async def authenticate(self, username: str, password: str) -> Resident | None:
        """Return the resident if the credentials match, None otherwise."""
        resident = await self.get_by_username(username)
        if resident is None or not verify_password(password, resident.password_hash):
            logger.info("Failed login for username=%s", username)
            return None
        return resident

    async def update_profile(
        self, resident_id: int, payload: ProfileUpdatePayload
    ) -> tuple[Resident, Society]:
        """Update a resident's own details; administrators may also edit the society address.

        Raises:
            ValidationError: Required field cleared, unit taken, or address edit by a non-admin
            NotFoundError: Resident missing
            ConcurrentUpdateError: Resident modified concurrently
            PersistenceError: Store write failed
        """
        resident = await self.session.get(Resident, resident_id)
        if resident is None:
            raise NotFoundError(f"Resident {resident_id} not found")
        society = await self.session.get(Society, resident.society_id)

        resident_changes = payload.resident_changes()
        society_changes = payload.society_changes()
        for field in ("first_name", "last_name", "unit_id"):
            if field in resident_changes and resident_changes[field] is None:
                raise ValidationError(f"{field} cannot be empty")
        if society_changes and not resident.is_admin:
            raise ValidationError("Only the society administrator can change the address")

        new_unit = resident_changes.get("unit_id")
        if new_unit and new_unit != resident.unit_id and await self._unit_taken(
            resident.society_id, new_unit
        ):
            raise ValidationError(f"Unit {new_unit} is already registered in this society")

        changes = {}
        for field, value in resident_changes.items():
            if getattr(resident, field) != value:
                changes[field] = {"before": getattr(resident, field), "after": value}
                setattr(resident, field, value)
        for field, value in society_changes.items():
            if getattr(society, field) != value:
                changes[f"society.{field}"] = {"before": getattr(society, field), "after": value}
                setattr(society, field, value)
        if not changes:
            return resident, society

        AuditService.log(
            self.session,
            entity_type=AuditEntity.RESIDENT,
            entity_id=resident_id,
            action=AuditAction.PROFILE_UPDATED,
            actor_id=resident_id,
            changes=changes,
        )
        try:
            await self.session.commit()
        except StaleDataError as e:
            await self.session.rollback()
            raise ConcurrentUpdateError() from e
        except IntegrityError as e:
            await self.session.rollback()
            raise ValidationError("Unit is already registered in this society") from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to update profile for resident %d: %s", resident_id, e)
            raise PersistenceError() from e

        logger.info("Profile updated: resident_id=%d fields=%s", resident_id, sorted(changes))
        return resident, society

    async def list_residents(
        self, society_id: int, state: ApprovalState | None = None
    ) -> list[Resident]:
        """List a society's residents ordered by unit, optionally filtered by state."""
        stmt = select(Resident).where(Resident.society_id == society_id)
        if state is not None:
            stmt = stmt.where(Resident.approval_state == state)
        result = await self.session.execute(stmt.order_by(Resident.unit_id))
        return list(result.scalars().all())

    async def set_approval_state(
        self, admin: Resident, resident_id: int, state: ApprovalState
    ) -> Resident:
        """Approve or decline a resident of the admin's society.

        Raises:
            ValidationError: state is not approved/declined
            NotFoundError: Resident missing or in another society
            ConcurrentUpdateError: Resident modified concurrently
            PersistenceError: Store write failed
        """
        if state not in (ApprovalState.APPROVED, ApprovalState.DECLINED):
            raise ValidationError("Approval state must be approved or declined")

        admin_id = admin.id
        resident = await self.session.get(Resident, resident_id)
        if resident is None or resident.society_id != admin.society_id:
            raise NotFoundError(f"Resident {resident_id} not found")

        previous = resident.approval_state
        resident.approval_state = state
        action = AuditAction.APPROVED if state == ApprovalState.APPROVED else AuditAction.DECLINED
        AuditService.log(
            self.session,
            entity_type=AuditEntity.RESIDENT,
            entity_id=resident.id,
            action=action,
            actor_id=admin_id,
            changes={"approval_state": {"before": previous.value, "after": state.value}},
        )
        try:
            await self.session.commit()
        except StaleDataError as e:
            await self.session.rollback()
            raise ConcurrentUpdateError() from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to update approval for resident %d: %s", resident_id, e)
            raise PersistenceError() from e

        logger.info(
            "Resident %s: resident_id=%d by admin_id=%d", state.value, resident_id, admin_id
        )
        return resident


__all__ = ["DEFAULT_FEE_SCHEDULE", "ResidentService"]
