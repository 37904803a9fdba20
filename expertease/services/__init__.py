from functools import lru_cache

from ..config import settings
from .payment_ledger import PaymentLedger
from .protection_fee import ProtectionFeeService

# Export all service instances
payment_ledger = PaymentLedger(max_retries=settings.payment_max_retries)


@lru_cache()
def get_protection_fee_service() -> ProtectionFeeService:
    """Fee settings are read once, on first use."""
    return ProtectionFeeService()


def get_payment_ledger() -> PaymentLedger:
    return payment_ledger


__all__ = [
    "payment_ledger",
    "get_payment_ledger",
    "get_protection_fee_service"
]
