"""Audit trail of membership decisions, fee schedule edits and settlements."""

from enum import Enum as PyEnum
from typing import Any

from sqlalchemy import JSON, Enum, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from society_portal.models import Base, BaseModel


class AuditEntity(PyEnum):
    """Kind of record an audit entry refers to."""

    RESIDENT = "resident"
    SOCIETY = "society"
    PAYMENT = "payment"


class AuditAction(PyEnum):
    """Recorded event."""

    APPROVED = "approved"
    DECLINED = "declined"
    PROFILE_UPDATED = "profile_updated"
    FEE_SCHEDULE_UPDATED = "fee_schedule_updated"
    SETTLED = "settled"


class AuditLog(Base, BaseModel):
    """One audited event.

    Approvals and declines point at the resident, fee schedule edits at the
    society, settlements at the payment record they created. The actor is
    the administrator (approvals, fee edits) or the paying resident.
    """

    __tablename__ = "audit_logs"

    entity_type: Mapped[AuditEntity] = mapped_column(
        Enum(AuditEntity, native_enum=False),
        nullable=False,
        comment="Entity kind: resident/society/payment",
    )
    entity_id: Mapped[int] = mapped_column(nullable=False)

    action: Mapped[AuditAction] = mapped_column(
        Enum(AuditAction, native_enum=False),
        nullable=False,
        index=True,
    )

    actor_id: Mapped[int | None] = mapped_column(
        ForeignKey("residents.id"),
        nullable=True,
        comment="Resident who performed the action",
    )

    # {"approval_state": {"before": "applied", "after": "approved"}}
    changes: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    __table_args__ = (Index("idx_audit_entity", "entity_type", "entity_id"),)

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, {self.entity_type.value}:{self.entity_id} "
            f"{self.action.value} by={self.actor_id})>"
        )


__all__ = ["AuditAction", "AuditEntity", "AuditLog"]
