# expertease/config.py
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from pydantic import ValidationError
from pydantic_settings import BaseSettings

from .errors import InvalidConfiguration
from .models.protection_fee import ProtectionFeeConfig


class Settings(BaseSettings):
    # Database
    database_username: str
    database_password: str
    database_hostname: str
    database_port: str
    database_name: str

    # Auth
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # Payments
    payment_webhook_secret: str
    payment_max_retries: int = 3
    default_currency: str = "RON"

    log_level: str = "INFO"

    # CORS
    allowed_origins: List[str] = ["*"]

    class Config:
        env_file = ".env"
        extra = "ignore"


class ProtectionFeeSettings(BaseSettings):
    fee_type: str = "percentage"
    percentage_rate: Decimal = Decimal("10.0")
    fixed_amount: Decimal = Decimal("25.0")
    minimum_fee: Decimal = Decimal("5.0")
    maximum_fee: Optional[Decimal] = Decimal("100.0")
    is_enabled: bool = True
    description: str = "Client protection fee"

    class Config:
        env_prefix = "PROTECTION_FEE_"
        env_file = ".env"
        extra = "ignore"

    @classmethod
    def load(cls) -> "ProtectionFeeSettings":
        try:
            return cls()
        except ValidationError as e:
            raise InvalidConfiguration(f"Invalid protection fee settings: {e}")

    def to_config(self) -> ProtectionFeeConfig:
        return ProtectionFeeConfig.load(
            fee_type=self.fee_type,
            percentage_rate=self.percentage_rate,
            fixed_amount=self.fixed_amount,
            minimum_fee=self.minimum_fee,
            maximum_fee=self.maximum_fee,
            is_enabled=self.is_enabled,
        )


# Loaded alongside the fee settings; shown to admins as "last updated".
settings_loaded_at = datetime.now(timezone.utc)

settings = Settings()
