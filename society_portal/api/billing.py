"""Billing and payment endpoints: bill page, checkout and gateway callback."""

import logging
import time
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError as PayloadValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from society_portal.config import Settings, get_settings
from society_portal.errors import AppError, InvalidScheduleError, SignatureVerificationError, raise_app_error
from society_portal.models.resident import ApprovalState, Resident
from society_portal.schemas.billing import (
    CheckoutResponse,
    FeeSchedulePayload,
    FeeScheduleResponse,
    PaymentCallbackPayload,
)
from society_portal.services import get_async_session
from society_portal.services.billing_service import BillingService, monthly_total, numeric_charges
from society_portal.services.gateway import PaymentGateway, get_payment_gateway
from society_portal.services.identity import get_current_resident, require_admin, require_approved_resident
from society_portal.services.locale_service import format_amount, format_local_date, get_local_timezone
from society_portal.services.resident_service import ResidentService
from society_portal.services.settlement_service import SettlementService

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent.parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["money"] = format_amount
templates.env.filters["local_date"] = format_local_date


def _log_debug(endpoint: str, start_time: float, resident: Any, **kwargs: Any) -> None:
    """Log request with timing and resident context at DEBUG level."""
    duration_ms = int((time.time() - start_time) * 1000)
    resident_id = getattr(resident, "id", "?")
    extra = " ".join(f"{k}={v}" for k, v in kwargs.items())
    logger.debug(
        "billing.%s: resident_id=%s %sduration_ms=%d",
        endpoint,
        resident_id,
        f"{extra} " if extra else "",
        duration_ms,
    )


router = APIRouter(tags=["billing"])


@router.get("/bill", response_class=HTMLResponse)
async def bill(
    request: Request,
    resident: Resident = Depends(require_approved_resident),  # noqa: B008
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
) -> HTMLResponse:
    """
    Render the resident's maintenance bill.

    Recomputes the bill and stores the total on the resident as amount_due.
    Administrators also see the approved residents of their society. The
    page carries the gateway key id so the browser can open checkout.

    Raises:
        401: Not logged in
        403: Membership not approved
        500: Server error
    """
    start_time = time.time()
    try:
        tz = get_local_timezone(settings.timezone)
        resident, society, summary = await BillingService(session, tz).prepare_bill(resident.id)

        society_residents = None
        if resident.is_admin:
            society_residents = await ResidentService(session).list_residents(
                society.id, ApprovalState.APPROVED
            )

        _log_debug(
            "bill",
            start_time,
            resident,
            months_owed=summary.months_owed,
            total=summary.total_amount,
        )
        return templates.TemplateResponse(
            request,
            "bill.html",
            {
                "resident": resident,
                "society": society,
                "charges": numeric_charges(society.fee_schedule),
                "totalAmount": summary.total_amount,
                "pendingDue": summary.due,
                "creditBalance": summary.credit,
                "monthlyTotal": summary.monthly_total,
                "monthsOwed": summary.months_owed,
                "receipt": resident.last_payment,
                "societyResidents": society_residents,
                "razorpayKeyId": settings.razorpay_key_id,
                "currency": settings.currency,
                "locale": settings.locale,
                "tz": tz,
            },
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error in /bill: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Server error") from e


@router.post("/checkout-session", response_model=CheckoutResponse)
async def checkout_session(
    resident: Resident = Depends(get_current_resident),  # noqa: B008
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
    gateway: PaymentGateway = Depends(get_payment_gateway),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
) -> CheckoutResponse:
    """
    Create a gateway order for the resident's current bill total.

    The bill is recomputed here and its total handed straight to the order,
    so the charged amount never depends on an earlier page view.

    Returns:
        CheckoutResponse with orderId, amount (minor units) and currency

    Raises:
        401: Not logged in
        500: Order could not be created
    """
    start_time = time.time()
    try:
        resident, society, summary = await BillingService(
            session, get_local_timezone(settings.timezone)
        ).prepare_bill(resident.id)

        settlement = SettlementService(
            session,
            secret=settings.razorpay_key_secret,
            gateway=gateway,
            currency=settings.currency,
        )
        handle = await settlement.create_order(resident, summary.total_amount, society.name)

        _log_debug("checkout", start_time, resident, order_id=handle.order_id)
        return CheckoutResponse(order_id=handle.order_id, amount=handle.amount, currency=handle.currency)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error in /checkout-session: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error creating order") from e


async def read_callback_payload(request: Request) -> PaymentCallbackPayload:
    """Parse the gateway callback from a form post or a JSON body.

    Checkout's handler posts a form with razorpay_order_id,
    razorpay_payment_id and razorpay_signature; API clients may send the
    same fields as JSON.

    Raises:
        RequestValidationError: Missing fields or unreadable body (422)
    """
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
            data = dict(await request.form())
        else:
            data = await request.json()
        return PaymentCallbackPayload.model_validate(data)
    except PayloadValidationError as e:
        raise RequestValidationError(e.errors()) from e
    except ValueError as e:
        raise RequestValidationError(
            [{"type": "json_invalid", "loc": ("body",), "msg": "Malformed callback body"}]
        ) from e


@router.post("/payment-success", response_class=HTMLResponse)
async def payment_success(
    request: Request,
    resident: Resident = Depends(get_current_resident),  # noqa: B008
    payload: PaymentCallbackPayload = Depends(read_callback_payload),  # noqa: B008
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
) -> HTMLResponse:
    """
    Verify the gateway callback and record the payment.

    Raises:
        400: Signature does not match (nothing recorded)
        401: Not logged in
        500: Server error
    """
    start_time = time.time()
    try:
        settlement = SettlementService(
            session,
            secret=settings.razorpay_key_secret,
            currency=settings.currency,
        )
        result = await settlement.confirm_payment(
            payload.order_id,
            payload.payment_id,
            payload.signature,
            resident,
        )

        _log_debug(
            "payment_success",
            start_time,
            resident,
            order_id=result.invoice_id,
            replayed=result.replayed,
        )
        return templates.TemplateResponse(
            request,
            "success.html",
            {
                "invoice": result.invoice_id,
                "amount": result.amount,
                "date": result.paid_at,
                "replayed": result.replayed,
                "currency": settings.currency,
                "locale": settings.locale,
                "tz": get_local_timezone(settings.timezone),
            },
        )

    except SignatureVerificationError as e:
        raise HTTPException(status_code=400, detail="Payment verification failed") from e
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error in /payment-success: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Server error") from e


def _fee_schedule_response(society) -> FeeScheduleResponse:
    try:
        total = float(monthly_total(society.fee_schedule))
    except InvalidScheduleError:
        total = None
    return FeeScheduleResponse(
        society_id=society.id,
        fee_schedule=society.fee_schedule or {},
        monthly_total=total,
    )


@router.get("/fee-schedule", response_model=FeeScheduleResponse)
async def get_fee_schedule(
    admin: Resident = Depends(require_admin),  # noqa: B008
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
) -> FeeScheduleResponse:
    """Return the admin's society fee schedule and its monthly total."""
    try:
        society = await BillingService(session).get_society(admin.society_id)
        return _fee_schedule_response(society)
    except AppError as e:
        raise_app_error(e)


@router.put("/fee-schedule", response_model=FeeScheduleResponse)
async def update_fee_schedule(
    payload: FeeSchedulePayload,
    admin: Resident = Depends(require_admin),  # noqa: B008
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
) -> FeeScheduleResponse:
    """
    Replace the admin's society fee schedule.

    Raises:
        400: Empty schedule, blank category, non-numeric or negative amount
        403: Not an administrator
    """
    try:
        society = await BillingService(session).update_fee_schedule(
            admin.society_id, payload.fee_schedule, actor_id=admin.id
        )
        return _fee_schedule_response(society)
    except AppError as e:
        logger.warning(f"Fee schedule update rejected: {e.message}")
        raise_app_error(e)


__all__ = ["router", "templates"]
