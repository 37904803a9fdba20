# expertease/services/revenue_report.py
from datetime import datetime
from decimal import Decimal
from typing import List

from ..models.payment import Payment, PaymentReport
from ..utils.money import ZERO, to_money
from .payment_lifecycle import releasable_amount


def build_revenue_report(payments: List[Payment], from_date: datetime, to_date: datetime) -> PaymentReport:
    """Aggregate platform revenue and escrow figures for the admin report."""
    count = len(payments)
    completed = [p for p in payments if p.is_transferred and releasable_amount(p) == 0]
    refunded = [p for p in payments if p.is_refunded]
    escrowed = [p for p in payments if p.is_escrowed and releasable_amount(p) > 0]

    total_service = sum((p.service_amount for p in payments), ZERO)
    total_fees = sum((p.protection_fee for p in payments), ZERO)

    return PaymentReport(
        period=f"{from_date:%Y-%m-%d} to {to_date:%Y-%m-%d}",
        total_service_revenue=total_service,
        total_protection_fees=total_fees,
        total_platform_revenue=sum((p.platform_revenue for p in payments), ZERO),
        total_transactions=count,
        completed_services=len(completed),
        refunded_services=len(refunded),
        escrowed_payments=len(escrowed),
        refund_rate=to_money(Decimal(len(refunded)) / count * 100) if count else ZERO,
        average_service_value=to_money(total_service / count) if count else ZERO,
        average_protection_fee=to_money(total_fees / count) if count else ZERO,
        total_escrowed_amount=sum((p.pending_amount for p in escrowed), ZERO),
    )
