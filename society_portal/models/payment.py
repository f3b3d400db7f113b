"""Payment ORM models: gateway orders and the append-only payment ledger."""

from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from society_portal.models import Base, BaseModel


class OrderStatus(PyEnum):
    """Gateway order lifecycle."""

    CREATED = "created"
    SETTLED = "settled"


class PaymentOrder(Base, BaseModel):
    """Gateway order created for a resident's bill.

    Captures the amount at order creation so settlement records exactly what
    the resident was charged, independent of later bill recomputations.
    """

    __tablename__ = "payment_orders"

    order_id: Mapped[str] = mapped_column(
        String(100), nullable=False, unique=True, comment="Gateway order identifier"
    )
    resident_id: Mapped[int] = mapped_column(
        ForeignKey("residents.id"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, comment="Amount in major currency units"
    )
    amount_minor: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="Amount sent to the gateway in minor units"
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    receipt: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus, native_enum=False),
        default=OrderStatus.CREATED,
        nullable=False,
        index=True,
    )
    settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("idx_order_resident_status", "resident_id", "status"),)

    def __repr__(self) -> str:
        return (
            f"<PaymentOrder(id={self.id}, order_id={self.order_id}, resident_id={self.resident_id}, "
            f"amount={self.amount}, status={self.status.value})>"
        )


class PaymentRecord(Base, BaseModel):
    """A verified payment recorded against a resident.

    Rows are never updated; the resident's last payment is the newest row.
    """

    __tablename__ = "payment_records"

    resident_id: Mapped[int] = mapped_column(
        ForeignKey("residents.id"), nullable=False, index=True
    )
    paid_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True, comment="Settlement time"
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    invoice_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
        comment="Gateway order id; unique so an order is settled at most once",
    )
    payment_id: Mapped[str] = mapped_column(String(100), nullable=False)

    resident: Mapped["Resident"] = relationship(  # noqa: F821
        "Resident",
        back_populates="payments",
        foreign_keys=[resident_id],
    )

    __table_args__ = (Index("idx_payment_resident_date", "resident_id", "paid_at"),)

    @property
    def date(self) -> datetime:
        return self.paid_at

    def __repr__(self) -> str:
        return (
            f"<PaymentRecord(id={self.id}, resident_id={self.resident_id}, "
            f"invoice_id={self.invoice_id}, amount={self.amount}, paid_at={self.paid_at})>"
        )


__all__ = ["PaymentOrder", "PaymentRecord", "OrderStatus"]
