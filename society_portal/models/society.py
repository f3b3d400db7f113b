"""Society ORM model: a managed residential community and its fee schedule."""

from typing import Any

from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from society_portal.models import Base, BaseModel


class Society(Base, BaseModel):
    """
    A residential society owning a fee schedule and a roster of residents.

    The fee schedule maps a charge category (e.g. "societyCharges",
    "waterCharges") to a fixed monthly amount. The monthly bill is the sum of
    its numeric entries.
    """

    __tablename__ = "societies"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        comment="Society name - unique identifier used at signup",
    )

    # Postal address
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    city: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    district: Mapped[str | None] = mapped_column(String(255), nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(20), nullable=True)

    admin_resident_id: Mapped[int | None] = mapped_column(
        ForeignKey("residents.id", use_alter=True, name="fk_societies_admin_resident_id"),
        nullable=True,
        comment="Resident who registered the society and administers it",
    )

    fee_schedule: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        comment="Charge category -> fixed monthly amount",
    )

    # Relationships
    residents: Mapped[list["Resident"]] = relationship(  # noqa: F821
        "Resident",
        back_populates="society",
        foreign_keys="Resident.society_id",
    )

    def __repr__(self) -> str:
        return f"<Society(id={self.id}, name={self.name!r})>"


__all__ = ["Society"]
