"""Pydantic schemas for membership: signup, society registration, approval."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ResidentDetails(BaseModel):
    """Fields shared by signup and society registration."""

    username: str = Field(..., min_length=3, max_length=255, description="Login e-mail address")
    password: str = Field(..., min_length=8, description="Account password")
    society_name: str = Field(..., min_length=1, max_length=255, alias="societyName")
    unit_id: str = Field(..., min_length=1, max_length=50, alias="unitId")
    first_name: str = Field(..., min_length=1, max_length=255, alias="firstName")
    last_name: str = Field(..., min_length=1, max_length=255, alias="lastName")
    phone_number: str | None = Field(None, max_length=50, alias="phoneNumber")

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class SignupPayload(ResidentDetails):
    """Request payload for POST /signup (join an existing society)."""


class RegisterSocietyPayload(ResidentDetails):
    """Request payload for POST /register (create a society and become its admin)."""

    address: str | None = Field(None, max_length=500)
    city: str | None = Field(None, max_length=255)
    district: str | None = Field(None, max_length=255)
    postal_code: str | None = Field(None, max_length=20, alias="postalCode")
    fee_schedule: dict[str, float] | None = Field(None, alias="feeSchedule")


class LoginPayload(BaseModel):
    """Request payload for POST /login."""

    username: str
    password: str


class ApprovalPayload(BaseModel):
    """Request payload for POST /residents/{id}/approval."""

    state: Literal["approved", "declined"]


class ResidentResponse(BaseModel):
    """Public view of a resident."""

    id: int
    username: str
    society_id: int
    unit_id: str
    first_name: str
    last_name: str
    phone_number: str | None = None
    approval_state: str
    is_admin: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_resident(cls, resident) -> "ResidentResponse":
        return cls(
            id=resident.id,
            username=resident.username,
            society_id=resident.society_id,
            unit_id=resident.unit_id,
            first_name=resident.first_name,
            last_name=resident.last_name,
            phone_number=resident.phone_number,
            approval_state=resident.approval_state.value,
            is_admin=resident.is_admin,
            created_at=resident.created_at,
        )


PROFILE_RESIDENT_FIELDS = ("first_name", "last_name", "phone_number", "unit_id")
PROFILE_SOCIETY_FIELDS = ("address", "city", "district", "postal_code")


class ProfileUpdatePayload(BaseModel):
    """Request payload for PUT /profile.

    Omitted fields keep their value. The address fields are accepted only
    from the society administrator and update the society record.
    """

    first_name: str | None = Field(None, min_length=1, max_length=255, alias="firstName")
    last_name: str | None = Field(None, min_length=1, max_length=255, alias="lastName")
    phone_number: str | None = Field(None, max_length=50, alias="phoneNumber")
    unit_id: str | None = Field(None, min_length=1, max_length=50, alias="unitId")
    address: str | None = Field(None, max_length=500)
    city: str | None = Field(None, max_length=255)
    district: str | None = Field(None, max_length=255)
    postal_code: str | None = Field(None, max_length=20, alias="postalCode")

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    def resident_changes(self) -> dict[str, str | None]:
        return self.model_dump(include=set(PROFILE_RESIDENT_FIELDS), exclude_unset=True)

    def society_changes(self) -> dict[str, str | None]:
        return self.model_dump(include=set(PROFILE_SOCIETY_FIELDS), exclude_unset=True)


class SocietyResponse(BaseModel):
    """Public view of a society and its postal address."""

    id: int
    name: str
    address: str | None = None
    city: str | None = None
    district: str | None = None
    postal_code: str | None = None

    model_config = ConfigDict(from_attributes=True)


class ProfileResponse(BaseModel):
    """Response schema for /profile."""

    resident: ResidentResponse
    society: SocietyResponse


class ResidentListResponse(BaseModel):
    """Response schema for the society roster."""

    residents: list[ResidentResponse]
    total_count: int
