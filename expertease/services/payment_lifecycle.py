# expertease/services/payment_lifecycle.py
"""
Escrow lifecycle of a Payment.

    pending --capture--> escrowed --complete--> completed --release--> (fully transferred)
       |                    |                       |
       +--cancel-->  cancelled <--full refund-------+

Every transition validates first and only then writes to the record, so a
failed call leaves the payment exactly as it was.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import ValidationError

from ..errors import (
    AlreadyAuthorized,
    InsufficientEscrowBalance,
    InvalidAmount,
    InvalidTransition,
    PaymentError,
)
from ..models.payment import Payment, PaymentStatus, amount_violation
from ..models.protection_fee import PaymentAmountBreakdown, ProtectionFeeCalculation
from ..utils.money import ZERO, Number, to_money

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    PaymentStatus.PENDING: "În așteptare",
    PaymentStatus.ESCROWED: "În siguranță",
    PaymentStatus.COMPLETED: "Finalizată - În siguranță",
    PaymentStatus.CANCELLED: "Anulată",
}


def status_message(status: PaymentStatus) -> str:
    return STATUS_MESSAGES.get(status, "Status necunoscut")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _commit(payment: Payment, **changes) -> Payment:
    candidate = payment.model_copy(update=changes)
    problem = amount_violation(
        candidate.service_amount,
        candidate.protection_fee,
        candidate.total_amount,
        candidate.transferred_amount,
        candidate.refunded_amount,
    )
    if problem:
        raise PaymentError(f"Payment {payment.id} would become inconsistent: {problem}")
    for field, value in changes.items():
        setattr(payment, field, value)
    return payment


def _positive_amount(amount: Number) -> Decimal:
    value = to_money(amount)
    if value <= 0:
        raise InvalidAmount(f"Amount must be greater than zero, got {value}")
    return value


def authorize(payment: Payment, service_amount: Number, fee_calc: ProtectionFeeCalculation) -> Payment:
    """Price a freshly created payment from the accepted reply and its fee calculation."""
    if payment.authorized_at is not None:
        raise AlreadyAuthorized(f"Payment {payment.id} has already been authorized")
    if payment.status != PaymentStatus.PENDING or payment.cancelled_at is not None:
        raise InvalidTransition(
            f"Only a new payment can be authorized. Current status: {status_message(payment.status)}"
        )

    amount = to_money(service_amount)
    if amount < 0:
        raise InvalidAmount(f"Service amount cannot be negative: {amount}")
    if fee_calc.base_amount != amount:
        raise InvalidAmount(
            f"Fee was calculated for {fee_calc.base_amount} but the service amount is {amount}"
        )

    fee = fee_calc.final_fee
    _commit(
        payment,
        service_amount=amount,
        protection_fee=fee,
        total_amount=amount + fee,
        status=PaymentStatus.PENDING,
        authorized_at=_now(),
        protection_fee_details=fee_calc.model_dump_json(),
    )
    logger.info(f"Payment {payment.id} authorized: service={amount} fee={fee} total={payment.total_amount}")
    return payment


def capture_to_escrow(payment: Payment, charge_id: Optional[str] = None) -> Payment:
    """Funds were captured by the processor. Replayed callbacks are no-ops."""
    if payment.is_escrowed:
        logger.info(f"Payment {payment.id} already {payment.status.value}; capture ignored")
        return payment
    if payment.status != PaymentStatus.PENDING:
        raise InvalidTransition(
            f"Payment cannot be captured. Current status: {status_message(payment.status)}"
        )
    if payment.authorized_at is None:
        raise InvalidTransition(f"Payment {payment.id} must be authorized before capture")

    changes = {"status": PaymentStatus.ESCROWED, "paid_at": _now()}
    if not payment.fee_collected:
        changes["fee_collected"] = True
    if charge_id:
        changes["charge_id"] = charge_id
    _commit(payment, **changes)
    logger.info(f"Payment {payment.id} escrowed: {payment.total_amount} {payment.currency}")
    return payment


def complete(payment: Payment, service_task_id: Optional[UUID] = None) -> Payment:
    """The linked service task finished successfully."""
    if payment.status == PaymentStatus.COMPLETED:
        return payment
    if payment.status != PaymentStatus.ESCROWED:
        raise InvalidTransition(
            f"Only escrowed payments can be completed. Current status: {status_message(payment.status)}"
        )
    changes = {"status": PaymentStatus.COMPLETED}
    if service_task_id is not None:
        changes["service_task_id"] = service_task_id
    _commit(payment, **changes)
    logger.info(f"Payment {payment.id} completed")
    return payment


def release(payment: Payment, amount: Number, transfer_reference: Optional[str] = None) -> Payment:
    """Transfer escrowed funds to the specialist; partial releases may follow the first one."""
    if payment.status != PaymentStatus.COMPLETED:
        raise InvalidTransition(
            f"Payment cannot be released. Current status: {status_message(payment.status)}"
        )
    if payment.is_refunded:
        raise InvalidTransition(f"Payment {payment.id} was refunded and cannot be released")
    value = _positive_amount(amount)
    if value > payment.pending_amount:
        raise InsufficientEscrowBalance(
            f"Cannot release {value}: only {payment.pending_amount} {payment.currency} left in escrow"
        )

    now = _now()
    changes = {
        "transferred_amount": payment.transferred_amount + value,
        "transferred_at": now,
    }
    if payment.escrow_released_at is None:
        changes["escrow_released_at"] = now
    if transfer_reference:
        changes["transfer_reference"] = transfer_reference
    _commit(payment, **changes)
    logger.info(
        f"Payment {payment.id} released {value} {payment.currency} "
        f"({payment.transferred_amount}/{payment.total_amount} transferred)"
    )
    return payment


def refund(payment: Payment, amount: Number, refund_reference: Optional[str] = None) -> Payment:
    """Return escrowed funds to the client. A full refund cancels the payment."""
    if not payment.can_be_refunded:
        raise InvalidTransition(
            f"Payment cannot be refunded. Current status: {status_message(payment.status)}"
        )
    if payment.is_transferred:
        raise InvalidTransition(f"Payment {payment.id} was already released to the specialist")
    value = _positive_amount(amount)
    pending = payment.pending_amount
    if value > pending:
        raise InsufficientEscrowBalance(
            f"Cannot refund {value}: only {pending} {payment.currency} left in escrow"
        )

    now = _now()
    changes = {
        "refunded_amount": payment.refunded_amount + value,
        "refunded_at": now,
    }
    if refund_reference:
        changes["refund_reference"] = refund_reference
    if value == pending:
        changes["status"] = PaymentStatus.CANCELLED
        changes["cancelled_at"] = now
    _commit(payment, **changes)
    logger.info(f"Payment {payment.id} refunded {value} {payment.currency}; status={payment.status.value}")
    return payment


def cancel(payment: Payment, refund_reference: Optional[str] = None) -> Payment:
    if payment.status == PaymentStatus.PENDING:
        _commit(payment, status=PaymentStatus.CANCELLED, cancelled_at=_now())
        logger.info(f"Payment {payment.id} cancelled before capture")
        return payment
    if payment.status == PaymentStatus.ESCROWED:
        return refund(payment, payment.pending_amount, refund_reference=refund_reference)
    raise InvalidTransition(
        f"Payment cannot be cancelled. Current status: {status_message(payment.status)}"
    )


def get_protection_fee_details(payment: Payment) -> Optional[ProtectionFeeCalculation]:
    if not payment.protection_fee_details:
        logger.warning(f"Payment {payment.id} has no protection fee details")
        return None
    try:
        return ProtectionFeeCalculation.model_validate_json(payment.protection_fee_details)
    except ValidationError as e:
        logger.warning(f"Failed to read protection fee details for payment {payment.id}: {e}")
        return None


def releasable_amount(payment: Payment) -> Decimal:
    """Specialist share still held in escrow. The protection fee is not part of it."""
    return max(payment.service_amount - payment.transferred_amount, ZERO)


def specialist_earnings(payment: Payment) -> Decimal:
    """What the specialist received, or will receive once the escrow is released."""
    if payment.is_transferred:
        return payment.transferred_amount
    if payment.is_escrowed and not payment.is_refunded:
        return payment.service_amount
    return ZERO


def amount_breakdown(payment: Payment) -> PaymentAmountBreakdown:
    return PaymentAmountBreakdown(
        service_amount=payment.service_amount,
        protection_fee=payment.protection_fee,
        total_amount=payment.total_amount,
        transferred_amount=payment.transferred_amount,
        refunded_amount=payment.refunded_amount,
        pending_amount=payment.pending_amount,
        platform_revenue=payment.platform_revenue,
        protection_fee_calculation=get_protection_fee_details(payment),
    )
