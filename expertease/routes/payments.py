# expertease/routes/payments.py
import hashlib
import hmac
import io
import json
import logging
from functools import partial
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from ..config import settings
from ..database import get_payment_store
from ..errors import AlreadyAuthorized, InvalidAmount, PaymentNotFound
from ..models.payment import (
    Payment,
    PaymentComplete,
    PaymentConfirm,
    PaymentCreate,
    PaymentHistoryItem,
    PaymentHistoryPage,
    PaymentOut,
    PaymentRefund,
    PaymentRelease,
    PaymentStatus,
    PaymentStatusOut,
)
from ..services import get_payment_ledger, get_protection_fee_service
from ..services.payment_ledger import PaymentLedger, PaymentStore
from ..services.payment_lifecycle import (
    amount_breakdown,
    authorize,
    cancel,
    capture_to_escrow,
    complete,
    get_protection_fee_details,
    refund,
    releasable_amount,
    release,
    status_message,
)
from ..services.protection_fee import ProtectionFeeService
from ..utils.auth import get_current_user, require_roles
from ..utils.money import to_minor_units

logger = logging.getLogger(__name__)

payments_router = APIRouter(prefix="/payments", tags=["Payments"])


def payment_out(payment: Payment) -> PaymentOut:
    return PaymentOut(
        **payment.model_dump(),
        platform_revenue=payment.platform_revenue,
        status_message=status_message(payment.status),
        is_escrowed=payment.is_escrowed,
    )


def cancel_from_processor(payment: Payment) -> Payment:
    # Redelivered cancel callbacks are no-ops
    if payment.status == PaymentStatus.CANCELLED:
        logger.info(f"Payment {payment.id} already cancelled; cancel callback ignored")
        return payment
    return cancel(payment)


async def get_owned_payment(store: PaymentStore, payment_id: UUID, current_user: dict) -> Payment:
    payment = await store.get(payment_id)
    if payment is None:
        raise PaymentNotFound(f"Payment {payment_id} not found")

    if current_user["type"] == "client" and payment.client_id != str(current_user["id"]):
        raise HTTPException(status_code=403, detail="Not your payment")
    if current_user["type"] == "specialist" and payment.specialist_id != str(current_user["id"]):
        raise HTTPException(status_code=403, detail="Not your payment")

    return payment


@payments_router.post("/", response_model=PaymentOut, status_code=201)
async def create_payment(
    payment_in: PaymentCreate,
    current_user: dict = Depends(require_roles("client")),
    store: PaymentStore = Depends(get_payment_store),
    fee_service: ProtectionFeeService = Depends(get_protection_fee_service)
):
    # One live payment per accepted reply
    existing = await store.get_by_reply(payment_in.reply_id)
    if existing and existing.status != PaymentStatus.CANCELLED:
        raise AlreadyAuthorized(f"Reply {payment_in.reply_id} already has payment {existing.id}")

    fee_calc = fee_service.calculate(payment_in.service_amount)
    payment = Payment(
        reply_id=payment_in.reply_id,
        client_id=str(current_user["id"]),
        specialist_id=payment_in.specialist_id,
        processor_account_id=payment_in.processor_account_id,
        payment_intent_id=payment_in.payment_intent_id,
        currency=settings.default_currency,
    )
    authorize(payment, payment_in.service_amount, fee_calc)
    saved = await store.add(payment)
    return payment_out(saved)


@payments_router.get("/", response_model=PaymentHistoryPage)
async def get_payment_history(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None),
    current_user: dict = Depends(get_current_user),
    store: PaymentStore = Depends(get_payment_store)
):
    # Admins see every payment, everyone else their own
    user_id = None if current_user["type"] == "admin" else str(current_user["id"])
    payments, total = await store.list_for_user(user_id, page, per_page, search)
    return PaymentHistoryPage(
        payments=[
            PaymentHistoryItem(
                **p.model_dump(),
                status_message=status_message(p.status),
                is_escrowed=p.is_escrowed,
            )
            for p in payments
        ],
        total_payments=total,
        page=page,
        per_page=per_page,
    )


@payments_router.post("/webhook")
async def processor_webhook(
    request: Request,
    x_signature: str = Header(None),
    store: PaymentStore = Depends(get_payment_store),
    ledger: PaymentLedger = Depends(get_payment_ledger)
):
    payload = await request.body()
    secret = settings.payment_webhook_secret.encode("utf-8")
    computed = hmac.new(secret, payload, hashlib.sha256).hexdigest()

    if not x_signature or not hmac.compare_digest(computed, x_signature):
        logger.warning("Invalid webhook signature received")
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        event = json.loads(payload)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    event_type = event.get("type")
    data = event.get("data") or {}
    intent_id = data.get("payment_intent_id")
    logger.info(f"Received processor webhook: {event_type}")

    if not intent_id:
        return {"status": "ignored"}

    try:
        if event_type == "payment_intent.succeeded":
            amount_received = data.get("amount_received")
            if amount_received is not None:
                try:
                    amount_received = int(amount_received)
                except (TypeError, ValueError):
                    raise HTTPException(status_code=400, detail="Invalid amount_received in webhook payload")
                payment = await store.get_by_intent(intent_id)
                if payment is not None and to_minor_units(payment.total_amount) != amount_received:
                    raise InvalidAmount(
                        f"Processor captured {amount_received} but payment {payment.id} "
                        f"expects {to_minor_units(payment.total_amount)}"
                    )
            payment = await ledger.transition_by_intent(
                store, intent_id, partial(capture_to_escrow, charge_id=data.get("charge_id"))
            )
        elif event_type == "payment_intent.canceled":
            payment = await ledger.transition_by_intent(store, intent_id, cancel_from_processor)
        elif event_type == "payment_intent.payment_failed":
            logger.warning(f"Payment failed at processor for intent {intent_id}: {data.get('reason')}")
            return {"status": "received"}
        else:
            logger.info(f"Unhandled webhook event type: {event_type}")
            return {"status": "ignored"}
    except PaymentNotFound:
        logger.warning(f"Webhook {event_type} for unknown intent {intent_id}")
        return {"status": "ignored"}

    return {"status": "processed", "payment_status": payment.status.value}


@payments_router.get("/{payment_id}", response_model=PaymentOut)
async def get_payment_by_id(
    payment_id: UUID,
    current_user: dict = Depends(get_current_user),
    store: PaymentStore = Depends(get_payment_store)
):
    payment = await get_owned_payment(store, payment_id, current_user)
    return payment_out(payment)


@payments_router.get("/{payment_id}/status", response_model=PaymentStatusOut)
async def get_payment_status(
    payment_id: UUID,
    current_user: dict = Depends(get_current_user),
    store: PaymentStore = Depends(get_payment_store)
):
    payment = await get_owned_payment(store, payment_id, current_user)
    return PaymentStatusOut(
        payment_id=payment.id,
        service_task_id=payment.service_task_id,
        status=payment.status,
        status_message=status_message(payment.status),
        is_escrowed=payment.is_escrowed,
        can_be_released=payment.can_be_released,
        can_be_refunded=payment.can_be_refunded,
        amount_breakdown=amount_breakdown(payment),
        protection_fee_details=get_protection_fee_details(payment),
    )


@payments_router.post("/{payment_id}/confirm", response_model=PaymentOut)
async def confirm_payment(
    payment_id: UUID,
    body: PaymentConfirm,
    current_user: dict = Depends(require_roles("client", "admin")),
    store: PaymentStore = Depends(get_payment_store),
    ledger: PaymentLedger = Depends(get_payment_ledger)
):
    await get_owned_payment(store, payment_id, current_user)
    payment = await ledger.transition(store, payment_id, partial(capture_to_escrow, charge_id=body.charge_id))
    return payment_out(payment)


@payments_router.post("/{payment_id}/complete", response_model=PaymentOut)
async def complete_payment(
    payment_id: UUID,
    body: PaymentComplete,
    current_user: dict = Depends(require_roles("specialist", "admin")),
    store: PaymentStore = Depends(get_payment_store),
    ledger: PaymentLedger = Depends(get_payment_ledger)
):
    await get_owned_payment(store, payment_id, current_user)
    payment = await ledger.transition(store, payment_id, partial(complete, service_task_id=body.service_task_id))
    return payment_out(payment)


@payments_router.post("/{payment_id}/release", response_model=PaymentOut)
async def release_payment(
    payment_id: UUID,
    body: PaymentRelease,
    current_user: dict = Depends(require_roles("admin")),
    store: PaymentStore = Depends(get_payment_store),
    ledger: PaymentLedger = Depends(get_payment_ledger)
):
    def operation(payment: Payment) -> Payment:
        amount = body.amount if body.amount is not None else releasable_amount(payment)
        return release(payment, amount, transfer_reference=body.transfer_reference)

    payment = await ledger.transition(store, payment_id, operation)
    logger.info(f"Release on {payment_id} by admin {current_user['id']}: {body.reason or 'Service completed successfully'}")
    return payment_out(payment)


@payments_router.post("/{payment_id}/refund", response_model=PaymentOut)
async def refund_payment(
    payment_id: UUID,
    body: PaymentRefund,
    current_user: dict = Depends(require_roles("client", "admin")),
    store: PaymentStore = Depends(get_payment_store),
    ledger: PaymentLedger = Depends(get_payment_ledger)
):
    await get_owned_payment(store, payment_id, current_user)

    def operation(payment: Payment) -> Payment:
        amount = body.amount if body.amount is not None else payment.pending_amount
        return refund(payment, amount, refund_reference=body.refund_reference)

    payment = await ledger.transition(store, payment_id, operation)
    logger.info(f"Refund on {payment_id} by {current_user['type']}: {body.reason or 'Service refund requested'}")
    return payment_out(payment)


@payments_router.post("/{payment_id}/cancel", response_model=PaymentOut)
async def cancel_payment(
    payment_id: UUID,
    current_user: dict = Depends(get_current_user),
    store: PaymentStore = Depends(get_payment_store),
    ledger: PaymentLedger = Depends(get_payment_ledger)
):
    await get_owned_payment(store, payment_id, current_user)
    payment = await ledger.transition(store, payment_id, cancel)
    return payment_out(payment)


@payments_router.get("/{payment_id}/receipt")
async def download_receipt(
    payment_id: UUID,
    current_user: dict = Depends(get_current_user),
    store: PaymentStore = Depends(get_payment_store)
):
    payment = await get_owned_payment(store, payment_id, current_user)

    # Create PDF receipt in memory
    buffer = io.BytesIO()
    p = canvas.Canvas(buffer, pagesize=letter)

    p.setTitle(f"Receipt for Payment {payment_id}")
    p.setAuthor("ExpertEase")
    p.setSubject("Service Payment Receipt")

    p.setFont("Helvetica-Bold", 16)
    p.drawString(100, 720, "ExpertEase - Service Receipt")
    p.setFont("Helvetica", 12)
    p.setStrokeColorRGB(0.8, 0.8, 0.8)
    p.rect(50, 50, 500, 700)

    currency = payment.currency
    lines = [
        f"Payment ID: {payment.id}",
        f"Date: {(payment.paid_at or payment.created_at).isoformat()}",
        f"Service amount: {payment.service_amount:.2f} {currency}",
        f"Protection fee: {payment.protection_fee:.2f} {currency}",
        f"Total paid: {payment.total_amount:.2f} {currency}",
        f"Status: {status_message(payment.status)}",
        f"Reply ID: {payment.reply_id}",
    ]
    if payment.is_transferred:
        lines.append(f"Transferred to specialist: {payment.transferred_amount:.2f} {currency}")
    if payment.is_refunded:
        lines.append(f"Refunded: {payment.refunded_amount:.2f} {currency}")

    fee_details = get_protection_fee_details(payment)
    if fee_details:
        lines.append(f"Fee basis: {fee_details.justification}")

    y_position = 690
    for line in lines:
        p.drawString(100, y_position, line)
        y_position -= 30

    # Add footer
    p.setFont("Helvetica-Oblique", 10)
    p.drawString(100, 60, "Thank you for using ExpertEase!")

    p.showPage()
    p.save()

    buffer.seek(0)
    headers = {
        'Content-Disposition': f'attachment; filename="receipt_{payment_id}.pdf"'
    }
    return Response(
        content=buffer.getvalue(),
        media_type='application/pdf',
        headers=headers
    )


__all__ = ["payments_router"]
