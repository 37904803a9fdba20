"""
Tests: admin revenue report aggregation.

Run with:
    pytest tests/test_revenue_report.py -v
"""

from datetime import datetime, timezone
from decimal import Decimal

from expertease.services.payment_lifecycle import (
    cancel,
    capture_to_escrow,
    complete,
    refund,
    releasable_amount,
    release,
)
from expertease.services.revenue_report import build_revenue_report

FROM = datetime(2026, 1, 1, tzinfo=timezone.utc)
TO = datetime(2026, 1, 31, tzinfo=timezone.utc)


class TestRevenueReport:
    def test_empty_period(self):
        report = build_revenue_report([], FROM, TO)
        assert report.period == "2026-01-01 to 2026-01-31"
        assert report.total_transactions == 0
        assert report.refund_rate == 0
        assert report.average_service_value == 0

    def test_aggregates_by_outcome(self, make_payment):
        released = release(complete(capture_to_escrow(make_payment("200"))), Decimal("220"))
        refunded = refund(capture_to_escrow(make_payment("100")), Decimal("110"))
        held = capture_to_escrow(make_payment("300"))
        abandoned = cancel(make_payment("50"))

        report = build_revenue_report([released, refunded, held, abandoned], FROM, TO)

        assert report.total_transactions == 4
        assert report.completed_services == 1
        assert report.refunded_services == 1
        assert report.escrowed_payments == 1
        assert report.total_service_revenue == Decimal("650.00")
        # 20 + 10 + 30 + 5 (minimum fee on 50)
        assert report.total_protection_fees == Decimal("65.00")
        # the abandoned payment never collected its fee
        assert report.total_platform_revenue == Decimal("60.00")
        assert report.total_escrowed_amount == Decimal("330.00")
        assert report.refund_rate == Decimal("25.00")
        assert report.average_service_value == Decimal("162.50")
        assert report.average_protection_fee == Decimal("16.25")

    def test_specialist_share_released_counts_as_completed(self, make_payment):
        payment = complete(capture_to_escrow(make_payment("200")))
        release(payment, releasable_amount(payment))

        report = build_revenue_report([payment], FROM, TO)

        assert report.completed_services == 1
        assert report.escrowed_payments == 0
        assert report.total_escrowed_amount == 0
        assert report.total_platform_revenue == Decimal("20.00")

    def test_partial_release_still_escrowed(self, make_payment):
        payment = release(complete(capture_to_escrow(make_payment("200"))), Decimal("50"))

        report = build_revenue_report([payment], FROM, TO)

        assert report.completed_services == 0
        assert report.escrowed_payments == 1
        assert report.total_escrowed_amount == Decimal("170.00")
