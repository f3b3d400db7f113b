"""Membership endpoints: society registration, signup, login, profile and approvals."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from society_portal.errors import AppError, raise_app_error
from society_portal.models.resident import ApprovalState, Resident
from society_portal.models.society import Society
from society_portal.schemas.residents import (
    ApprovalPayload,
    LoginPayload,
    ProfileResponse,
    ProfileUpdatePayload,
    RegisterSocietyPayload,
    ResidentListResponse,
    ResidentResponse,
    SignupPayload,
    SocietyResponse,
)
from society_portal.services import get_async_session
from society_portal.services.identity import (
    get_current_resident,
    login,
    logout,
    require_admin,
    require_approved_resident,
)
from society_portal.services.resident_service import ResidentService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["residents"])


@router.post("/register", response_model=ResidentResponse, status_code=status.HTTP_201_CREATED)
async def register_society(
    request: Request,
    payload: RegisterSocietyPayload,
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
) -> ResidentResponse:
    """
    Register a new society; the caller becomes its approved administrator.

    The new administrator is logged in on success.

    Raises:
        400: Society name or username already registered
        500: Server error
    """
    try:
        _, admin = await ResidentService(session).register_society(payload)
        login(request, admin)
        return ResidentResponse.from_resident(admin)
    except AppError as e:
        logger.warning(f"Society registration rejected: {e.message}")
        raise_app_error(e)
    except Exception as e:
        logger.error(f"Error in /register: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Server error") from e


@router.post("/signup", response_model=ResidentResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    request: Request,
    payload: SignupPayload,
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
) -> ResidentResponse:
    """
    Apply to join an existing society.

    The resident starts in the applied state and can log in, but sees no
    bill until an administrator approves the membership.

    Raises:
        400: Username or unit already registered
        404: Society not registered
        500: Server error
    """
    try:
        resident = await ResidentService(session).signup(payload)
        login(request, resident)
        return ResidentResponse.from_resident(resident)
    except AppError as e:
        logger.warning(f"Signup rejected: {e.message}")
        raise_app_error(e)
    except Exception as e:
        logger.error(f"Error in /signup: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Server error") from e


@router.post("/login", response_model=ResidentResponse)
async def login_resident(
    request: Request,
    payload: LoginPayload,
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
) -> ResidentResponse:
    """Log in with username and password."""
    resident = await ResidentService(session).authenticate(payload.username, payload.password)
    if resident is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password"
        )
    login(request, resident)
    return ResidentResponse.from_resident(resident)


@router.post("/logout")
async def logout_resident(request: Request) -> dict:
    logout(request)
    return {"ok": True}


@router.get("/me", response_model=ResidentResponse)
async def current_resident(
    resident: Resident = Depends(get_current_resident),  # noqa: B008
) -> ResidentResponse:
    """Return the logged-in resident, whatever the approval state."""
    return ResidentResponse.from_resident(resident)


def _profile_response(resident: Resident, society: Society) -> ProfileResponse:
    return ProfileResponse(
        resident=ResidentResponse.from_resident(resident),
        society=SocietyResponse.model_validate(society),
    )


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(
    resident: Resident = Depends(require_approved_resident),  # noqa: B008
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
) -> ProfileResponse:
    """Return the approved resident's details and their society's address."""
    society = await session.get(Society, resident.society_id)
    return _profile_response(resident, society)


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    payload: ProfileUpdatePayload,
    resident: Resident = Depends(require_approved_resident),  # noqa: B008
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
) -> ProfileResponse:
    """
    Edit name, phone number and unit; the administrator may also edit the society address.

    Raises:
        400: Unit already taken, required field cleared, or address edit by a non-admin
        403: Membership not approved
        409: Resident modified concurrently
        500: Server error
    """
    resident_id = resident.id
    try:
        resident, society = await ResidentService(session).update_profile(resident_id, payload)
        return _profile_response(resident, society)
    except AppError as e:
        logger.warning(f"Profile update rejected for resident_id={resident_id}: {e.message}")
        raise_app_error(e)
    except Exception as e:
        logger.error(f"Error in /profile: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Server error") from e


@router.get("/residents", response_model=ResidentListResponse)
async def list_residents(
    state: ApprovalState | None = Query(None, description="Filter by approval state"),  # noqa: B008
    admin: Resident = Depends(require_admin),  # noqa: B008
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
) -> ResidentListResponse:
    """
    List residents of the administrator's society.

    Raises:
        401: Not logged in
        403: Not an administrator
        500: Server error
    """
    try:
        residents = await ResidentService(session).list_residents(admin.society_id, state)
        return ResidentListResponse(
            residents=[ResidentResponse.from_resident(r) for r in residents],
            total_count=len(residents),
        )
    except Exception as e:
        logger.error(f"Error in /residents: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Server error") from e


@router.post("/residents/{resident_id}/approval", response_model=ResidentResponse)
async def set_approval(
    resident_id: int,
    payload: ApprovalPayload,
    admin: Resident = Depends(require_admin),  # noqa: B008
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
) -> ResidentResponse:
    """
    Approve or decline a resident's membership.

    Raises:
        403: Not an administrator
        404: Resident not found in the administrator's society
        409: Resident modified concurrently
        500: Server error
    """
    try:
        resident = await ResidentService(session).set_approval_state(
            admin, resident_id, ApprovalState(payload.state)
        )
        return ResidentResponse.from_resident(resident)
    except AppError as e:
        logger.warning(f"Approval rejected for resident_id={resident_id}: {e.message}")
        raise_app_error(e)
    except Exception as e:
        logger.error(f"Error in /residents/{resident_id}/approval: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Server error") from e


__all__ = ["router"]
