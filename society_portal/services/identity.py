"""Identity helpers: password hashing, session login and access dependencies.

The signed session cookie (Starlette SessionMiddleware) carries only the
resident id; everything else is read from the database on each request.
"""

import logging

import bcrypt
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from society_portal.models.resident import Resident
from society_portal.services import get_async_session

logger = logging.getLogger(__name__)

SESSION_KEY = "resident_id"

# bcrypt only looks at the first 72 bytes
BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    """Hash a password with a fresh bcrypt salt."""
    password_bytes = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its bcrypt hash."""
    password_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def login(request: Request, resident: Resident) -> None:
    """Bind the resident to the current session."""
    request.session.clear()
    request.session[SESSION_KEY] = resident.id


def logout(request: Request) -> None:
    request.session.clear()


def is_authenticated(request: Request) -> bool:
    return SESSION_KEY in request.session


async def get_current_resident(
    request: Request,
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
) -> Resident:
    """Resolve the logged-in resident.

    Raises:
        HTTPException 401: No session, or the resident no longer exists
    """
    resident_id = request.session.get(SESSION_KEY)
    if resident_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="NOT_AUTHORIZED")

    resident = await session.get(Resident, resident_id)
    if resident is None:
        logger.warning("Session refers to missing resident_id=%s", resident_id)
        request.session.clear()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="NOT_AUTHORIZED")

    return resident


async def require_approved_resident(
    resident: Resident = Depends(get_current_resident),  # noqa: B008
) -> Resident:
    """Resolve the logged-in resident and require an approved membership.

    Raises:
        HTTPException 403: Membership applied or declined
    """
    if not resident.is_approved:
        logger.warning(
            "Unapproved resident attempted restricted access: resident_id=%d state=%s",
            resident.id,
            resident.approval_state.value,
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="APPROVAL_PENDING")
    return resident


async def require_admin(
    resident: Resident = Depends(require_approved_resident),  # noqa: B008
) -> Resident:
    """Resolve the logged-in resident and require society admin rights.

    Raises:
        HTTPException 403: Not an administrator
    """
    if not resident.is_admin:
        logger.warning("Non-admin attempted restricted access: resident_id=%d", resident.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="NOT_AUTHORIZED")
    return resident


__all__ = [
    "SESSION_KEY",
    "get_current_resident",
    "hash_password",
    "is_authenticated",
    "login",
    "logout",
    "require_admin",
    "require_approved_resident",
    "verify_password",
]
