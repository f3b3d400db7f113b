"""Payment settlement service.

Two phases:
- create_order(): request a gateway order for a freshly computed bill total and
  remember it as a PaymentOrder
- confirm_payment(): verify the gateway callback signature and record the
  payment against the resident

An unverified callback never touches the store. An order is settled at most
once: the created -> settled transition is a compare-and-swap UPDATE and
PaymentRecord.invoice_id is unique, so replays return the first receipt.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from society_portal.errors import (
    ConcurrentUpdateError,
    GatewayError,
    NotFoundError,
    PersistenceError,
    SignatureVerificationError,
    ValidationError,
)
from society_portal.models.audit_log import AuditAction, AuditEntity
from society_portal.models.payment import OrderStatus, PaymentOrder, PaymentRecord
from society_portal.models.resident import Resident
from society_portal.services.audit_service import AuditService
from society_portal.services.gateway import (
    OrderHandle,
    PaymentGateway,
    to_minor_units,
    verify_payment_signature,
)

logger = logging.getLogger(__name__)


@dataclass
class SettlementResult:
    """Receipt fields of a settled payment."""

    invoice_id: str
    payment_id: str
    amount: Decimal
    paid_at: datetime
    replayed: bool = False
    """True when the order had already been settled by an earlier callback."""


class SettlementService:
    """Create gateway orders and settle verified payments."""

    def __init__(
        self,
        session: AsyncSession,
        secret: str,
        gateway: PaymentGateway | None = None,
        currency: str = "INR",
    ):
        """Initialize settlement service.

        Args:
            session: AsyncSession for database operations
            secret: Shared secret used to sign gateway callbacks
            gateway: Payment gateway client (only needed for create_order)
            currency: ISO currency code for orders
        """
        self.session = session
        self.gateway = gateway
        self.secret = secret
        self.currency = currency

    async def create_order(
        self,
        resident: Resident,
        total_amount: Decimal,
        society_name: str | None = None,
    ) -> OrderHandle:
        """Create a gateway order for the resident's bill total.

        Args:
            resident: Resident paying the bill
            total_amount: Bill total in major units, as just computed
            society_name: Included in the order notes when given

        Returns:
            OrderHandle with gateway order id, minor-unit amount and currency

        Raises:
            ValidationError: total_amount is not positive
            GatewayError: Gateway rejected the order (not retried)
            PersistenceError: Order could not be stored
        """
        resident_id = resident.id
        total = Decimal(total_amount)
        if total <= 0:
            raise ValidationError("Nothing to pay: bill total is not positive")

        receipt = f"rcpt_{int(time.time() * 1000)}"
        notes = {"unit_id": resident.unit_id}
        if society_name:
            notes["society_name"] = society_name

        if self.gateway is None:
            raise GatewayError("Payment gateway not configured")

        handle = await self.gateway.create_order(
            amount_minor=to_minor_units(total),
            currency=self.currency,
            receipt=receipt,
            notes=notes,
        )

        self.session.add(
            PaymentOrder(
                order_id=handle.order_id,
                resident_id=resident_id,
                amount=total,
                amount_minor=handle.amount,
                currency=handle.currency,
                receipt=handle.receipt or receipt,
                status=OrderStatus.CREATED,
            )
        )
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to store order %s for resident %d: %s", handle.order_id, resident_id, e)
            raise PersistenceError() from e

        logger.info(
            "Order created: resident_id=%d order_id=%s amount_minor=%d currency=%s",
            resident_id,
            handle.order_id,
            handle.amount,
            handle.currency,
        )
        return handle

    async def confirm_payment(
        self,
        order_id: str,
        payment_id: str,
        signature: str,
        resident: Resident,
        now: datetime | None = None,
    ) -> SettlementResult:
        """Verify a gateway callback and record the payment.

        Args:
            order_id: Gateway order id
            payment_id: Gateway payment id
            signature: Hex HMAC-SHA256 of "order_id|payment_id"
            resident: Resident who owns the order
            now: Settlement time (default: current UTC time)

        Returns:
            SettlementResult (replayed=True if the order was already settled)

        Raises:
            SignatureVerificationError: Signature mismatch, nothing is written
            NotFoundError: No such order for this resident
            ConcurrentUpdateError: Order is being settled by another request
            PersistenceError: Store write failed
        """
        resident_id = resident.id
        if not verify_payment_signature(order_id, payment_id, signature, self.secret):
            logger.warning(
                "Payment signature mismatch: resident_id=%d order_id=%s", resident_id, order_id
            )
            raise SignatureVerificationError()

        now = now or datetime.now(timezone.utc)
        order = await self._get_order(order_id, resident_id)
        if order.status == OrderStatus.SETTLED:
            return await self._existing_settlement(order_id)

        try:
            result = await self.session.execute(
                update(PaymentOrder)
                .where(PaymentOrder.id == order.id, PaymentOrder.status == OrderStatus.CREATED)
                .values(status=OrderStatus.SETTLED, settled_at=now)
            )
            if result.rowcount != 1:
                await self.session.rollback()
                return await self._existing_settlement(order_id)

            record = PaymentRecord(
                resident_id=resident_id,
                paid_at=now,
                amount=order.amount,
                invoice_id=order_id,
                payment_id=payment_id,
            )
            resident.payments.append(record)
            self.session.add(record)
            await self.session.flush()

            AuditService.log(
                self.session,
                entity_type=AuditEntity.PAYMENT,
                entity_id=record.id,
                action=AuditAction.SETTLED,
                actor_id=resident_id,
                changes={"invoice_id": order_id, "amount": str(order.amount)},
            )
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            return await self._existing_settlement(order_id)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error("Failed to settle order %s for resident %d: %s", order_id, resident_id, e)
            raise PersistenceError() from e

        logger.info(
            "Payment settled: resident_id=%d order_id=%s payment_id=%s amount=%s",
            resident_id,
            order_id,
            payment_id,
            record.amount,
        )
        return SettlementResult(
            invoice_id=record.invoice_id,
            payment_id=record.payment_id,
            amount=record.amount,
            paid_at=record.paid_at,
        )

    async def _get_order(self, order_id: str, resident_id: int) -> PaymentOrder:
        result = await self.session.execute(
            select(PaymentOrder).where(
                PaymentOrder.order_id == order_id,
                PaymentOrder.resident_id == resident_id,
            )
        )
        order = result.scalar_one_or_none()
        if order is None:
            logger.warning("Order %s not found for resident %d", order_id, resident_id)
            raise NotFoundError(f"Order {order_id} not found")
        return order

    async def _existing_settlement(self, order_id: str) -> SettlementResult:
        result = await self.session.execute(
            select(PaymentRecord).where(PaymentRecord.invoice_id == order_id)
        )
        record = result.scalar_one_or_none()
        if record is None:
            raise ConcurrentUpdateError(f"Order {order_id} is being settled")

        logger.warning("Replayed settlement ignored: order_id=%s", order_id)
        return SettlementResult(
            invoice_id=record.invoice_id,
            payment_id=record.payment_id,
            amount=record.amount,
            paid_at=record.paid_at,
            replayed=True,
        )


__all__ = ["SettlementResult", "SettlementService"]
