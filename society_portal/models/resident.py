"""Resident ORM model: a unit-occupant account scoped to one society."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import Boolean, Enum, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from society_portal.models import Base, BaseModel


def _as_utc_naive(value: datetime) -> datetime:
    # SQLite hands back naive UTC; freshly created rows still carry tzinfo
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class ApprovalState(PyEnum):
    """Membership approval state, changed by the society admin."""

    APPLIED = "applied"
    APPROVED = "approved"
    DECLINED = "declined"


class Resident(Base, BaseModel):
    """
    Resident account for one unit of one society.

    Lifecycle:
    - Created at signup (approval_state=applied) or at society registration
      (approval_state=approved, is_admin=True)
    - approval_state changed by the society admin
    - amount_due rewritten every time the bill is computed
    - payments appended on every verified settlement; last_payment is the
      most recent of them

    version_id guards read-modify-write cycles: a stale write raises
    StaleDataError instead of silently overwriting a concurrent change.
    """

    __tablename__ = "residents"

    # Identity fields
    username: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True, comment="Login name (e-mail address)"
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    society_id: Mapped[int] = mapped_column(
        ForeignKey("societies.id"),
        nullable=False,
        index=True,
        comment="Society this resident belongs to",
    )
    unit_id: Mapped[str] = mapped_column(
        String(50), nullable=False, comment="Flat/unit number, unique per society"
    )

    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Membership
    approval_state: Mapped[ApprovalState] = mapped_column(
        Enum(ApprovalState, native_enum=False),
        default=ApprovalState.APPLIED,
        nullable=False,
        index=True,
        comment="Status: applied/approved/declined",
    )
    is_admin: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, comment="Society administrator"
    )

    # Billing scratch field
    amount_due: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        default=Decimal("0.00"),
        nullable=False,
        comment="Total payable computed by the last bill view",
    )

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    society: Mapped["Society"] = relationship(  # noqa: F821
        "Society",
        back_populates="residents",
        foreign_keys=[society_id],
    )
    payments: Mapped[list["PaymentRecord"]] = relationship(  # noqa: F821
        "PaymentRecord",
        back_populates="resident",
        order_by="PaymentRecord.paid_at",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("society_id", "unit_id", name="uq_resident_society_unit"),
        Index("idx_resident_society_state", "society_id", "approval_state"),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_approved(self) -> bool:
        return self.approval_state == ApprovalState.APPROVED

    @property
    def last_payment(self) -> "PaymentRecord | None":  # noqa: F821
        """Most recent payment by date, or None if the resident never paid."""
        if not self.payments:
            return None
        return max(self.payments, key=lambda record: _as_utc_naive(record.paid_at))

    def __repr__(self) -> str:
        return (
            f"<Resident(id={self.id}, username={self.username}, society_id={self.society_id}, "
            f"unit_id={self.unit_id}, approval_state={self.approval_state.value})>"
        )


__all__ = ["Resident", "ApprovalState"]
