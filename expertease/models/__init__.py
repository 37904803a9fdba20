from .protection_fee import (
    FeeType,
    ProtectionFeeConfig,
    ProtectionFeeCalculation,
    PaymentAmountBreakdown,
    ProtectionFeeConfigurationOut,
    CalculateProtectionFeeRequest,
    DetailedProtectionFeeResponse
)
from .payment import (
    PaymentStatus,
    Payment,
    PaymentCreate,
    PaymentConfirm,
    PaymentComplete,
    PaymentRelease,
    PaymentRefund,
    PaymentOut,
    PaymentStatusOut,
    PaymentReport,
    PaymentHistoryItem,
    PaymentHistoryPage
)

__all__ = [
    'FeeType', 'ProtectionFeeConfig', 'ProtectionFeeCalculation', 'PaymentAmountBreakdown',
    'ProtectionFeeConfigurationOut', 'CalculateProtectionFeeRequest', 'DetailedProtectionFeeResponse',
    'PaymentStatus', 'Payment', 'PaymentCreate', 'PaymentConfirm', 'PaymentComplete',
    'PaymentRelease', 'PaymentRefund', 'PaymentOut', 'PaymentStatusOut', 'PaymentReport',
    'PaymentHistoryItem', 'PaymentHistoryPage'
]
