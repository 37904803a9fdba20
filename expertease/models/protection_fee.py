# expertease/models/protection_fee.py
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..errors import InvalidConfiguration


class FeeType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    HYBRID = "hybrid"

    @classmethod
    def parse(cls, value: Any) -> "FeeType":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower() if value is not None else ""
        try:
            return cls(normalized)
        except ValueError:
            raise InvalidConfiguration(
                f"Unrecognized protection fee type: {value!r} "
                f"(expected one of: {', '.join(t.value for t in cls)})"
            )


class ProtectionFeeConfig(BaseModel):
    """Fee policy. Invalid combinations are rejected here, never clamped."""

    model_config = ConfigDict(frozen=True)

    fee_type: FeeType = FeeType.PERCENTAGE
    percentage_rate: Decimal = Decimal("10.0")
    fixed_amount: Decimal = Decimal("25.0")
    minimum_fee: Decimal = Decimal("5.0")
    maximum_fee: Optional[Decimal] = Decimal("100.0")
    is_enabled: bool = True

    @field_validator("fee_type", mode="before")
    @classmethod
    def parse_fee_type(cls, v):
        return FeeType.parse(v)

    @model_validator(mode="after")
    def check_limits(self):
        if self.percentage_rate < 0 or self.percentage_rate > 100:
            raise InvalidConfiguration(
                f"Invalid percentage rate: {self.percentage_rate}. Must be between 0 and 100."
            )
        if self.fixed_amount < 0:
            raise InvalidConfiguration(f"Invalid fixed amount: {self.fixed_amount}. Must be >= 0.")
        if self.minimum_fee < 0:
            raise InvalidConfiguration(f"Invalid minimum fee: {self.minimum_fee}. Must be >= 0.")
        if self.maximum_fee is not None and self.maximum_fee < self.minimum_fee:
            raise InvalidConfiguration(
                f"Invalid fee range: Min={self.minimum_fee}, Max={self.maximum_fee}. Max must be >= Min."
            )
        return self

    @classmethod
    def load(cls, **values) -> "ProtectionFeeConfig":
        """Build a config from raw values, reporting any problem as InvalidConfiguration."""
        try:
            return cls(**values)
        except ValidationError as e:
            raise InvalidConfiguration(f"Invalid protection fee configuration: {e}")


class ProtectionFeeCalculation(BaseModel):
    """Snapshot of one fee calculation. `calculated_at` does not take part in equality."""

    model_config = ConfigDict(frozen=True)

    base_amount: Decimal
    fee_type: FeeType
    percentage_rate: Decimal
    fixed_amount: Decimal
    minimum_fee: Decimal
    maximum_fee: Optional[Decimal]
    calculated_fee: Decimal
    final_fee: Decimal
    justification: str
    minimum_applied: bool = False
    maximum_applied: bool = False
    calculated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def _comparable(self) -> dict:
        return self.model_dump(exclude={"calculated_at"})

    def __eq__(self, other):
        if not isinstance(other, ProtectionFeeCalculation):
            return NotImplemented
        return self._comparable() == other._comparable()

    def __hash__(self):
        return hash((self.base_amount, self.fee_type, self.final_fee, self.justification))


class PaymentAmountBreakdown(BaseModel):
    service_amount: Decimal
    protection_fee: Decimal
    total_amount: Decimal
    transferred_amount: Decimal = Decimal("0.00")
    refunded_amount: Decimal = Decimal("0.00")
    pending_amount: Decimal = Decimal("0.00")
    platform_revenue: Decimal = Decimal("0.00")
    protection_fee_calculation: Optional[ProtectionFeeCalculation] = None


class ProtectionFeeConfigurationOut(BaseModel):
    fee_type: FeeType
    percentage_rate: Decimal
    fixed_amount: Decimal
    minimum_fee: Decimal
    maximum_fee: Optional[Decimal]
    is_enabled: bool
    description: str
    last_updated: datetime


class CalculateProtectionFeeRequest(BaseModel):
    service_amount: Decimal = Field(..., ge=0, description="Service price agreed in the accepted reply")


class DetailedProtectionFeeResponse(BaseModel):
    service_amount: Decimal
    protection_fee: Decimal
    total_amount: Decimal
    breakdown: ProtectionFeeCalculation
    configuration: ProtectionFeeConfigurationOut
    summary: str
