"""Billing calculation service for monthly society maintenance dues.

Bill formula, for a resident and their society's fee schedule:
    monthly_total = sum of numeric fee schedule entries
    elapsed       = whole calendar months since last payment (or since joining, +1
                    because the joining month itself is billable)
    elapsed == 0  -> credit = monthly_total, due = 0
    elapsed == 1  -> credit = 0, due = 0
    elapsed  > 1  -> credit = 0, due = (elapsed - 1) * monthly_total
    total_amount  = monthly_total + due - credit

The pure functions here are reused by BillingService, which also persists the
computed total on the resident record so it is known when the resident pays.
"""

import logging
import math
from datetime import date, datetime, timezone, tzinfo
from decimal import Decimal
from typing import Any, Mapping, NamedTuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from society_portal.errors import (
    ConcurrentUpdateError,
    InvalidScheduleError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from society_portal.models.audit_log import AuditAction, AuditEntity
from society_portal.models.resident import Resident
from society_portal.models.society import Society
from society_portal.services.audit_service import AuditService
from society_portal.services.locale_service import get_local_timezone, to_local_date

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class BillSummary(NamedTuple):
    """Bill calculation result."""

    monthly_total: Decimal
    months_owed: int
    due: Decimal
    credit: Decimal
    total_amount: Decimal


def _is_numeric(value: Any) -> bool:
    # bool is an int subclass but never a charge amount
    if isinstance(value, bool):
        return False
    if isinstance(value, float):
        return math.isfinite(value)
    return isinstance(value, (int, Decimal))


def month_diff(start: date | datetime, end: date | datetime, tz: tzinfo | None = None) -> int:
    """Whole calendar months from start to end.

    Difference in month number, minus one when end's day-of-month is before
    start's. Time of day is ignored; datetimes are first converted to the
    billing timezone (default: configured zone) so months follow the local
    calendar.

    Examples:
        2024-01-15 -> 2024-02-15 = 1
        2024-01-15 -> 2024-02-14 = 0
        2024-01-31 -> 2024-02-29 = 0
    """
    start_day = to_local_date(start, tz)
    end_day = to_local_date(end, tz)
    months = (end_day.year - start_day.year) * 12 + (end_day.month - start_day.month)
    if end_day.day < start_day.day:
        months -= 1
    return months


def numeric_charges(fee_schedule: Mapping[str, Any] | None) -> dict[str, Decimal]:
    """Charge categories with numeric amounts; notes and other values are skipped."""
    return {
        category: Decimal(str(value))
        for category, value in (fee_schedule or {}).items()
        if _is_numeric(value)
    }


def monthly_total(fee_schedule: Mapping[str, Any] | None) -> Decimal:
    """Sum the numeric entries of a fee schedule.

    Raises:
        InvalidScheduleError: If the schedule has no numeric entry at all
    """
    amounts = numeric_charges(fee_schedule)
    if not amounts:
        raise InvalidScheduleError()
    return sum(amounts.values(), ZERO)


def calculate_bill(
    base_date: date | datetime,
    has_prior_payment: bool,
    fee_schedule: Mapping[str, Any] | None,
    now: date | datetime,
    tz: tzinfo | None = None,
) -> BillSummary:
    """Compute the bill from a base date and a fee schedule.

    Args:
        base_date: Last payment date, or the resident's join date if never paid
        has_prior_payment: Whether base_date is a payment date
        fee_schedule: Charge category -> monthly amount
        now: Current time
        tz: Billing timezone for calendar months (default: configured zone)

    Returns:
        BillSummary

    Raises:
        InvalidScheduleError: If the schedule has no numeric entries
    """
    total = monthly_total(fee_schedule)

    months_owed = month_diff(base_date, now, tz)
    if not has_prior_payment:
        months_owed += 1

    credit = ZERO
    due = ZERO
    if months_owed == 0:
        credit = total
    elif months_owed > 1:
        due = (months_owed - 1) * total

    return BillSummary(
        monthly_total=total,
        months_owed=months_owed,
        due=due,
        credit=credit,
        total_amount=total + due - credit,
    )


def compute_bill(
    resident: Resident, society: Society, now: date | datetime, tz: tzinfo | None = None
) -> BillSummary:
    """Compute a resident's bill against their society's fee schedule."""
    last_payment = resident.last_payment
    if last_payment is not None:
        return calculate_bill(last_payment.paid_at, True, society.fee_schedule, now, tz)
    if resident.created_at is None:
        raise ValidationError("Resident has no join date")
    return calculate_bill(resident.created_at, False, society.fee_schedule, now, tz)


def validate_fee_schedule(schedule: Mapping[str, Any]) -> dict[str, Any]:
    """Validate an admin-submitted fee schedule.

    Returns:
        Cleaned schedule suitable for the JSON column

    Raises:
        ValidationError: Empty schedule, blank category or non-numeric/negative amount
    """
    if not isinstance(schedule, Mapping) or not schedule:
        raise ValidationError("Fee schedule must contain at least one charge")

    cleaned: dict[str, Any] = {}
    for category, amount in schedule.items():
        if not isinstance(category, str) or not category.strip():
            raise ValidationError("Charge category must be a non-empty string")
        if not _is_numeric(amount):
            raise ValidationError(f"Charge '{category}' must be a number")
        if amount < 0:
            raise ValidationError(f"Charge '{category}' must not be negative")
        cleaned[category.strip()] = float(amount) if isinstance(amount, Decimal) else amount
    return cleaned


class BillingService:
    """Compute and persist resident bills."""

    def __init__(self, session: AsyncSession, tz: tzinfo | None = None):
        """Initialize with database session.

        Args:
            session: AsyncSession for database operations
            tz: Billing timezone (default: configured zone)
        """
        self.session = session
        self.tz = tz or get_local_timezone()

    async def get_resident(self, resident_id: int) -> Resident:
        resident = await self.session.get(Resident, resident_id)
        if resident is None:
            raise NotFoundError(f"Resident {resident_id} not found")
        return resident

    async def get_society(self, society_id: int) -> Society:
        society = await self.session.get(Society, society_id)
        if society is None:
            raise NotFoundError(f"Society {society_id} not found")
        return society

    async def prepare_bill(
        self, resident_id: int, now: datetime | None = None
    ) -> tuple[Resident, Society, BillSummary]:
        """Compute a resident's bill and store the total as amount_due.

        Args:
            resident_id: Resident to bill
            now: Billing time (default: current UTC time)

        Returns:
            Tuple of (resident, society, summary)

        Raises:
            NotFoundError: Resident or society missing
            InvalidScheduleError: Society fee schedule has no numeric charges
            ConcurrentUpdateError: Resident modified by a concurrent request
            PersistenceError: Store write failed
        """
        now = now or datetime.now(timezone.utc)
        resident = await self.get_resident(resident_id)
        society = await self.get_society(resident.society_id)

        summary = compute_bill(resident, society, now, self.tz)
        resident.amount_due = summary.total_amount

        try:
            await self.session.commit()
        except StaleDataError as e:
            await self.session.rollback()
            logger.warning("Concurrent update while billing resident %d", resident_id)
            raise ConcurrentUpdateError() from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to store amount due for resident %d: %s", resident_id, e)
            raise PersistenceError() from e

        logger.info(
            "Bill computed: resident_id=%d months_owed=%d monthly_total=%s due=%s credit=%s total=%s",
            resident_id,
            summary.months_owed,
            summary.monthly_total,
            summary.due,
            summary.credit,
            summary.total_amount,
        )
        return resident, society, summary

    async def update_fee_schedule(
        self,
        society_id: int,
        schedule: Mapping[str, Any],
        actor_id: int | None = None,
    ) -> Society:
        """Replace a society's fee schedule.

        Raises:
            ValidationError: Invalid schedule
            NotFoundError: Society missing
            PersistenceError: Store write failed
        """
        cleaned = validate_fee_schedule(schedule)
        society = await self.get_society(society_id)

        previous = dict(society.fee_schedule or {})
        society.fee_schedule = cleaned
        AuditService.log(
            self.session,
            entity_type=AuditEntity.SOCIETY,
            entity_id=society.id,
            action=AuditAction.FEE_SCHEDULE_UPDATED,
            actor_id=actor_id,
            changes={"before": previous, "after": cleaned},
        )

        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to update fee schedule for society %d: %s", society_id, e)
            raise PersistenceError() from e

        logger.info("Fee schedule updated: society_id=%d categories=%d", society_id, len(cleaned))
        return society


__all__ = [
    "BillSummary",
    "BillingService",
    "calculate_bill",
    "compute_bill",
    "month_diff",
    "monthly_total",
    "numeric_charges",
    "validate_fee_schedule",
]
