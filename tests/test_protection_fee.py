"""
Tests: protection fee configuration and calculation.

Run with:
    pytest tests/test_protection_fee.py -v
"""

from decimal import Decimal

import pytest

from expertease.config import ProtectionFeeSettings
from expertease.errors import InvalidAmount, InvalidConfiguration
from expertease.models.protection_fee import FeeType, ProtectionFeeConfig
from expertease.services.protection_fee import (
    FEE_DISABLED,
    MAXIMUM_APPLIED,
    MINIMUM_APPLIED,
    STANDARD_CALCULATION,
    ProtectionFeeService,
    calculate_payment_breakdown,
    calculate_protection_fee,
    summarize,
)


class TestProtectionFeeConfig:
    def test_defaults(self):
        config = ProtectionFeeConfig()
        assert config.fee_type == FeeType.PERCENTAGE
        assert config.percentage_rate == Decimal("10")
        assert config.minimum_fee == Decimal("5")
        assert config.maximum_fee == Decimal("100")
        assert config.is_enabled is True

    def test_fee_type_parsed_case_insensitively(self):
        assert ProtectionFeeConfig(fee_type=" Hybrid ").fee_type == FeeType.HYBRID

    def test_unknown_fee_type_rejected(self):
        with pytest.raises(InvalidConfiguration):
            ProtectionFeeConfig(fee_type="tiered")

    def test_maximum_below_minimum_rejected(self):
        with pytest.raises(InvalidConfiguration):
            ProtectionFeeConfig(minimum_fee=Decimal("50"), maximum_fee=Decimal("10"))

    def test_negative_values_rejected(self):
        with pytest.raises(InvalidConfiguration):
            ProtectionFeeConfig(minimum_fee=Decimal("-1"))
        with pytest.raises(InvalidConfiguration):
            ProtectionFeeConfig(fixed_amount=Decimal("-5"))

    def test_rate_above_hundred_rejected(self):
        with pytest.raises(InvalidConfiguration):
            ProtectionFeeConfig(percentage_rate=Decimal("150"))

    def test_unparseable_number_reported_as_invalid_configuration(self):
        with pytest.raises(InvalidConfiguration):
            ProtectionFeeConfig.load(percentage_rate="ten")

    def test_config_is_immutable(self):
        config = ProtectionFeeConfig()
        with pytest.raises(Exception):
            config.minimum_fee = Decimal("1")


class TestCalculation:
    def test_standard_percentage(self, fee_config):
        calc = calculate_protection_fee(Decimal("200"), fee_config)
        assert calc.calculated_fee == Decimal("20.00")
        assert calc.final_fee == Decimal("20.00")
        assert STANDARD_CALCULATION in calc.justification
        assert not calc.minimum_applied and not calc.maximum_applied

    def test_minimum_applied(self, fee_config):
        calc = calculate_protection_fee(Decimal("10"), fee_config)
        assert calc.calculated_fee == Decimal("1.00")
        assert calc.final_fee == Decimal("5.00")
        assert MINIMUM_APPLIED in calc.justification
        assert calc.minimum_applied

    def test_maximum_applied(self, fee_config):
        calc = calculate_protection_fee(Decimal("2000"), fee_config)
        assert calc.calculated_fee == Decimal("200.00")
        assert calc.final_fee == Decimal("100.00")
        assert MAXIMUM_APPLIED in calc.justification
        assert calc.maximum_applied

    def test_fixed_fee(self):
        config = ProtectionFeeConfig(fee_type="fixed", fixed_amount=Decimal("25"))
        calc = calculate_protection_fee(Decimal("1000"), config)
        assert calc.final_fee == Decimal("25.00")
        assert "Fixed fee" in calc.justification

    def test_hybrid_adds_percentage_and_fixed(self):
        config = ProtectionFeeConfig(
            fee_type="hybrid",
            percentage_rate=Decimal("5"),
            fixed_amount=Decimal("10"),
            minimum_fee=Decimal("0"),
            maximum_fee=None,
        )
        calc = calculate_protection_fee(Decimal("300"), config)
        assert calc.calculated_fee == Decimal("25.00")
        assert calc.final_fee == Decimal("25.00")

    def test_disabled_fee_is_zero(self):
        config = ProtectionFeeConfig(is_enabled=False)
        for amount in ("0", "10", "2000", "99999.99"):
            calc = calculate_protection_fee(Decimal(amount), config)
            assert calc.final_fee == 0
            assert calc.calculated_fee == 0
            assert calc.justification == FEE_DISABLED

    def test_rounding_half_up_applied_once(self):
        config = ProtectionFeeConfig(minimum_fee=Decimal("0"), maximum_fee=None)
        calc = calculate_protection_fee(Decimal("10.05"), config)
        # 1.005 rounds up, not to even
        assert calc.final_fee == Decimal("1.01")

    def test_clamp_decided_before_rounding(self):
        config = ProtectionFeeConfig(minimum_fee=Decimal("1.00"), maximum_fee=None)
        # 9.99 * 10% = 0.999, below the minimum even though it rounds to 1.00
        calc = calculate_protection_fee(Decimal("9.99"), config)
        assert calc.minimum_applied
        assert calc.final_fee == Decimal("1.00")

    def test_uncapped_maximum(self):
        config = ProtectionFeeConfig(maximum_fee=None)
        calc = calculate_protection_fee(Decimal("5000"), config)
        assert calc.final_fee == Decimal("500.00")

    def test_final_fee_within_bounds(self, fee_config):
        for amount in range(0, 3001, 37):
            calc = calculate_protection_fee(Decimal(amount), fee_config)
            assert fee_config.minimum_fee <= calc.final_fee <= fee_config.maximum_fee

    def test_identical_inputs_give_equal_calculations(self, fee_config):
        first = calculate_protection_fee(Decimal("321.45"), fee_config)
        second = calculate_protection_fee(Decimal("321.45"), fee_config)
        assert first == second
        assert first.final_fee == second.final_fee
        assert first.justification == second.justification

    def test_equality_ignores_calculated_at(self, fee_config):
        calc = calculate_protection_fee(Decimal("100"), fee_config)
        later = calc.model_copy(update={"calculated_at": calc.calculated_at.replace(year=2000)})
        assert calc == later
        assert hash(calc) == hash(later)

    def test_negative_base_amount_rejected(self, fee_config):
        with pytest.raises(InvalidAmount):
            calculate_protection_fee(Decimal("-1"), fee_config)

    def test_unrecognized_fee_type_fails_at_calculation(self):
        config = ProtectionFeeConfig.model_construct(
            fee_type="tiered",
            percentage_rate=Decimal("10"),
            fixed_amount=Decimal("25"),
            minimum_fee=Decimal("5"),
            maximum_fee=Decimal("100"),
            is_enabled=True,
        )
        with pytest.raises(InvalidConfiguration):
            calculate_protection_fee(Decimal("100"), config)

    def test_breakdown_totals(self, fee_config):
        breakdown = calculate_payment_breakdown(Decimal("200"), fee_config)
        assert breakdown.service_amount == Decimal("200.00")
        assert breakdown.protection_fee == Decimal("20.00")
        assert breakdown.total_amount == Decimal("220.00")
        assert breakdown.protection_fee_calculation.final_fee == Decimal("20.00")

    def test_summary_mentions_total(self, fee_config):
        summary = summarize(calculate_protection_fee(Decimal("200"), fee_config))
        assert "220.00 RON" in summary


class TestProtectionFeeService:
    def test_settings_from_environment(self, monkeypatch):
        monkeypatch.setenv("PROTECTION_FEE_FEE_TYPE", "fixed")
        monkeypatch.setenv("PROTECTION_FEE_FIXED_AMOUNT", "30")
        service = ProtectionFeeService()
        assert service.get_current_configuration().fee_type == FeeType.FIXED
        assert service.calculate(Decimal("500")).final_fee == Decimal("30.00")

    def test_invalid_environment_rejected_at_load(self, monkeypatch):
        monkeypatch.setenv("PROTECTION_FEE_FEE_TYPE", "tiered")
        with pytest.raises(InvalidConfiguration):
            ProtectionFeeSettings.load().to_config()
        with pytest.raises(InvalidConfiguration):
            ProtectionFeeService()

    def test_validate_configuration_reports_problems(self, monkeypatch):
        service = ProtectionFeeService(ProtectionFeeSettings())
        assert service.validate_configuration() is True
        monkeypatch.setenv("PROTECTION_FEE_MINIMUM_FEE", "200")
        assert service.validate_configuration() is False

    def test_describe_includes_description(self):
        service = ProtectionFeeService(ProtectionFeeSettings())
        described = service.describe()
        assert described.description == "Client protection fee"
        assert described.fee_type == FeeType.PERCENTAGE
