# expertease/services/protection_fee.py
import logging
from decimal import Decimal
from typing import Optional

from ..config import ProtectionFeeSettings, settings_loaded_at
from ..errors import InvalidAmount, InvalidConfiguration
from ..models.protection_fee import (
    FeeType,
    PaymentAmountBreakdown,
    ProtectionFeeCalculation,
    ProtectionFeeConfig,
    ProtectionFeeConfigurationOut,
)
from ..utils.money import ZERO, Number, to_decimal, to_money

logger = logging.getLogger(__name__)

STANDARD_CALCULATION = "Standard calculation"
MINIMUM_APPLIED = "Minimum fee applied"
MAXIMUM_APPLIED = "Maximum fee applied"
FEE_DISABLED = "Protection fee disabled"


def _fmt(value: Decimal) -> str:
    return f"{to_money(value)} RON"


def calculate_protection_fee(base_amount: Number, config: ProtectionFeeConfig) -> ProtectionFeeCalculation:
    """
    Compute the protection fee charged on top of a service amount.

    Rounding (half up, 2 decimals) happens once, after the min/max clamp has
    been decided on the unrounded fee.
    """
    base = to_decimal(base_amount)
    if base < 0:
        raise InvalidAmount(f"Base amount cannot be negative: {base}")

    if not config.is_enabled:
        return ProtectionFeeCalculation(
            base_amount=to_money(base),
            fee_type=config.fee_type,
            percentage_rate=config.percentage_rate,
            fixed_amount=config.fixed_amount,
            minimum_fee=config.minimum_fee,
            maximum_fee=config.maximum_fee,
            calculated_fee=ZERO,
            final_fee=ZERO,
            justification=FEE_DISABLED,
        )

    rate = config.percentage_rate
    if config.fee_type == FeeType.PERCENTAGE:
        calculated = base * rate / 100
        rule = f"{rate}% of service amount"
    elif config.fee_type == FeeType.FIXED:
        calculated = config.fixed_amount
        rule = f"Fixed fee of {_fmt(config.fixed_amount)}"
    elif config.fee_type == FeeType.HYBRID:
        calculated = base * rate / 100 + config.fixed_amount
        rule = f"{rate}% of service amount plus fixed {_fmt(config.fixed_amount)}"
    else:
        raise InvalidConfiguration(f"Unrecognized protection fee type: {config.fee_type!r}")

    final = calculated
    minimum_applied = maximum_applied = False
    if calculated < config.minimum_fee:
        final = config.minimum_fee
        minimum_applied = True
        note = f"{MINIMUM_APPLIED} ({_fmt(config.minimum_fee)})"
    elif config.maximum_fee is not None and calculated > config.maximum_fee:
        final = config.maximum_fee
        maximum_applied = True
        note = f"{MAXIMUM_APPLIED} ({_fmt(config.maximum_fee)})"
    else:
        note = STANDARD_CALCULATION

    return ProtectionFeeCalculation(
        base_amount=to_money(base),
        fee_type=config.fee_type,
        percentage_rate=config.percentage_rate,
        fixed_amount=config.fixed_amount,
        minimum_fee=config.minimum_fee,
        maximum_fee=config.maximum_fee,
        calculated_fee=to_money(calculated),
        final_fee=to_money(final),
        justification=f"{rule}. {note}",
        minimum_applied=minimum_applied,
        maximum_applied=maximum_applied,
    )


def calculate_payment_breakdown(service_amount: Number, config: ProtectionFeeConfig) -> PaymentAmountBreakdown:
    calculation = calculate_protection_fee(service_amount, config)
    return PaymentAmountBreakdown(
        service_amount=calculation.base_amount,
        protection_fee=calculation.final_fee,
        total_amount=calculation.base_amount + calculation.final_fee,
        pending_amount=calculation.base_amount + calculation.final_fee,
        protection_fee_calculation=calculation,
    )


def summarize(calculation: ProtectionFeeCalculation) -> str:
    """One line shown to the client next to the price."""
    if calculation.final_fee == 0:
        return f"No protection fee. You pay {_fmt(calculation.base_amount)}."
    total = calculation.base_amount + calculation.final_fee
    return (
        f"Service {_fmt(calculation.base_amount)} + protection fee {_fmt(calculation.final_fee)} "
        f"= {_fmt(total)}. The amount is held safely until the service is completed."
    )


class ProtectionFeeService:
    """Serves the fee configuration loaded from the environment."""

    def __init__(self, fee_settings: Optional[ProtectionFeeSettings] = None):
        self.settings = fee_settings or ProtectionFeeSettings.load()
        self.config = self.settings.to_config()
        logger.info(
            f"Protection fee loaded: type={self.config.fee_type.value} rate={self.config.percentage_rate} "
            f"min={self.config.minimum_fee} max={self.config.maximum_fee} enabled={self.config.is_enabled}"
        )

    def get_current_configuration(self) -> ProtectionFeeConfig:
        return self.config

    def calculate(self, service_amount: Number) -> ProtectionFeeCalculation:
        return calculate_protection_fee(service_amount, self.config)

    def calculate_breakdown(self, service_amount: Number) -> PaymentAmountBreakdown:
        return calculate_payment_breakdown(service_amount, self.config)

    def describe(self) -> ProtectionFeeConfigurationOut:
        return ProtectionFeeConfigurationOut(
            **self.config.model_dump(),
            description=self.settings.description,
            last_updated=settings_loaded_at,
        )

    def validate_configuration(self) -> bool:
        """Re-read the environment and report whether it still yields a valid config."""
        try:
            ProtectionFeeSettings.load().to_config()
        except InvalidConfiguration as e:
            logger.error(f"Protection fee configuration is invalid: {e.detail}")
            return False
        logger.info("Protection fee configuration validated successfully")
        return True
