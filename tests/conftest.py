import os
import re

# Settings are read at import time; give the test run its own environment.
os.environ.setdefault("DATABASE_USERNAME", "expertease")
os.environ.setdefault("DATABASE_PASSWORD", "expertease")
os.environ.setdefault("DATABASE_HOSTNAME", "localhost")
os.environ.setdefault("DATABASE_PORT", "5432")
os.environ.setdefault("DATABASE_NAME", "expertease_test")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "whsec_test")

from decimal import Decimal
from uuid import uuid4

import pytest

from expertease.errors import ConcurrentModification
from expertease.models.payment import Payment
from expertease.models.protection_fee import FeeType, ProtectionFeeConfig
from expertease.services.payment_lifecycle import authorize
from expertease.services.protection_fee import calculate_protection_fee


class InMemoryPaymentStore:
    """PaymentStore kept in a dict, with the same version check as the SQL store."""

    def __init__(self):
        self.rows = {}
        self.saves = 0
        self.rejected_saves = 0

    async def add(self, payment):
        self.rows[payment.id] = payment.model_copy(deep=True)
        return payment.model_copy(deep=True)

    async def get(self, payment_id):
        row = self.rows.get(payment_id)
        return row.model_copy(deep=True) if row else None

    async def get_by_intent(self, payment_intent_id):
        for row in self.rows.values():
            if row.payment_intent_id == payment_intent_id:
                return row.model_copy(deep=True)
        return None

    async def get_by_reply(self, reply_id):
        matches = [r for r in self.rows.values() if r.reply_id == reply_id]
        if not matches:
            return None
        return max(matches, key=lambda r: r.created_at).model_copy(deep=True)

    async def save(self, payment, expected_version):
        current = self.rows.get(payment.id)
        if current is None or current.version != expected_version:
            self.rejected_saves += 1
            raise ConcurrentModification(f"Payment {payment.id} version mismatch")
        stored = payment.model_copy(update={"version": expected_version + 1}, deep=True)
        self.rows[payment.id] = stored
        self.saves += 1
        return stored.model_copy(deep=True)

    async def list_between(self, from_date, to_date):
        return [
            r.model_copy(deep=True)
            for r in self.rows.values()
            if from_date <= r.created_at <= to_date
        ]

    async def list_for_user(self, user_id, page=1, per_page=10, search=None):
        rows = [
            r for r in self.rows.values()
            if user_id is None or user_id in (r.client_id, r.specialist_id)
        ]
        if search and search.strip():
            # same matching as ILIKE '%term%term%'
            pattern = re.compile(".*".join(re.escape(t) for t in search.split()), re.IGNORECASE)
            rows = [
                r for r in rows
                if any(
                    pattern.search(field)
                    for field in (r.status.value, str(r.total_amount), str(r.service_amount), str(r.reply_id))
                )
            ]
        rows.sort(key=lambda r: r.created_at, reverse=True)
        offset = (page - 1) * per_page
        return [r.model_copy(deep=True) for r in rows[offset:offset + per_page]], len(rows)


@pytest.fixture
def fee_config():
    return ProtectionFeeConfig(
        fee_type=FeeType.PERCENTAGE,
        percentage_rate=Decimal("10"),
        minimum_fee=Decimal("5"),
        maximum_fee=Decimal("100"),
    )


@pytest.fixture
def make_payment(fee_config):
    """Build an authorized (pending) payment for a service amount."""
    def factory(service_amount="200", **fields):
        payment = Payment(reply_id=uuid4(), **fields)
        calculation = calculate_protection_fee(Decimal(service_amount), fee_config)
        return authorize(payment, Decimal(service_amount), calculation)
    return factory


@pytest.fixture
def store():
    return InMemoryPaymentStore()
