# expertease/models/payment.py
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, model_validator

from .protection_fee import PaymentAmountBreakdown, ProtectionFeeCalculation

ZERO = Decimal("0.00")


class PaymentStatus(str, Enum):
    PENDING = "pending"
    ESCROWED = "escrowed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def amount_violation(
    service_amount: Decimal,
    protection_fee: Decimal,
    total_amount: Decimal,
    transferred_amount: Decimal,
    refunded_amount: Decimal,
) -> Optional[str]:
    """Return a description of the first broken amount invariant, or None."""
    for name, value in (
        ("service_amount", service_amount),
        ("protection_fee", protection_fee),
        ("total_amount", total_amount),
        ("transferred_amount", transferred_amount),
        ("refunded_amount", refunded_amount),
    ):
        if value < 0:
            return f"{name} cannot be negative"
    if total_amount != service_amount + protection_fee:
        return (
            f"Total amount mismatch. Expected: {service_amount + protection_fee:.2f}, "
            f"Actual: {total_amount:.2f}"
        )
    if transferred_amount + refunded_amount > total_amount:
        return "Transferred and refunded amounts exceed the total amount"
    if transferred_amount > 0 and refunded_amount > 0:
        return "A payment cannot be both transferred and refunded"
    return None


class Payment(BaseModel):
    """Ledger record for the money a client pays for one accepted reply."""

    id: UUID = Field(default_factory=uuid4)
    reply_id: UUID
    service_task_id: Optional[UUID] = None
    client_id: Optional[str] = None
    specialist_id: Optional[str] = None

    service_amount: Decimal = ZERO
    protection_fee: Decimal = ZERO
    total_amount: Decimal = ZERO
    transferred_amount: Decimal = ZERO
    refunded_amount: Decimal = ZERO
    fee_collected: bool = False
    status: PaymentStatus = PaymentStatus.PENDING
    currency: str = "RON"

    # written by the payment processor integration, opaque here
    processor_account_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    charge_id: Optional[str] = None
    transfer_reference: Optional[str] = None
    refund_reference: Optional[str] = None

    created_at: datetime = Field(default_factory=_utcnow)
    authorized_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    escrow_released_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    transferred_at: Optional[datetime] = None

    protection_fee_details: Optional[str] = None
    version: int = 1

    @model_validator(mode="after")
    def check_amounts(self):
        problem = amount_violation(
            self.service_amount,
            self.protection_fee,
            self.total_amount,
            self.transferred_amount,
            self.refunded_amount,
        )
        if problem:
            raise ValueError(problem)
        return self

    @property
    def can_be_released(self) -> bool:
        return self.status == PaymentStatus.COMPLETED and self.transferred_amount == 0

    @property
    def can_be_refunded(self) -> bool:
        return self.status in (PaymentStatus.COMPLETED, PaymentStatus.ESCROWED)

    @property
    def is_escrowed(self) -> bool:
        return self.status in (PaymentStatus.ESCROWED, PaymentStatus.COMPLETED)

    @property
    def pending_amount(self) -> Decimal:
        return self.total_amount - self.transferred_amount - self.refunded_amount

    @property
    def is_transferred(self) -> bool:
        return self.transferred_amount > 0

    @property
    def is_refunded(self) -> bool:
        return self.refunded_amount > 0

    @property
    def platform_revenue(self) -> Decimal:
        # No clawback: a refunded fee still counts once it was collected.
        return self.protection_fee if self.fee_collected else ZERO


# Request / response DTOs

class PaymentCreate(BaseModel):
    reply_id: UUID
    specialist_id: str
    service_amount: Decimal = Field(..., ge=0)
    processor_account_id: Optional[str] = None
    payment_intent_id: Optional[str] = None


class PaymentConfirm(BaseModel):
    charge_id: Optional[str] = None


class PaymentComplete(BaseModel):
    service_task_id: Optional[UUID] = None


class PaymentRelease(BaseModel):
    amount: Optional[Decimal] = None
    transfer_reference: Optional[str] = None
    reason: Optional[str] = None


class PaymentRefund(BaseModel):
    amount: Optional[Decimal] = None
    refund_reference: Optional[str] = None
    reason: Optional[str] = None


class PaymentOut(BaseModel):
    id: UUID
    reply_id: UUID
    service_task_id: Optional[UUID]
    client_id: Optional[str]
    specialist_id: Optional[str]
    service_amount: Decimal
    protection_fee: Decimal
    total_amount: Decimal
    transferred_amount: Decimal
    refunded_amount: Decimal
    platform_revenue: Decimal
    currency: str
    status: PaymentStatus
    status_message: str
    is_escrowed: bool
    payment_intent_id: Optional[str]
    transfer_reference: Optional[str]
    refund_reference: Optional[str]
    created_at: datetime
    paid_at: Optional[datetime]
    escrow_released_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    refunded_at: Optional[datetime]


class PaymentStatusOut(BaseModel):
    payment_id: UUID
    service_task_id: Optional[UUID]
    status: PaymentStatus
    status_message: str
    is_escrowed: bool
    can_be_released: bool
    can_be_refunded: bool
    amount_breakdown: PaymentAmountBreakdown
    protection_fee_details: Optional[ProtectionFeeCalculation]


class PaymentReport(BaseModel):
    period: str
    total_service_revenue: Decimal
    total_protection_fees: Decimal
    total_platform_revenue: Decimal
    total_transactions: int
    completed_services: int
    refunded_services: int
    escrowed_payments: int
    refund_rate: Decimal
    average_service_value: Decimal
    average_protection_fee: Decimal
    total_escrowed_amount: Decimal


class PaymentHistoryItem(BaseModel):
    id: UUID
    reply_id: UUID
    client_id: Optional[str]
    specialist_id: Optional[str]
    service_amount: Decimal
    protection_fee: Decimal
    total_amount: Decimal
    transferred_amount: Decimal
    refunded_amount: Decimal
    currency: str
    status: PaymentStatus
    status_message: str
    is_escrowed: bool
    created_at: datetime
    paid_at: Optional[datetime]
    escrow_released_at: Optional[datetime]


class PaymentHistoryPage(BaseModel):
    payments: List[PaymentHistoryItem]
    total_payments: int
    page: int
    per_page: int
