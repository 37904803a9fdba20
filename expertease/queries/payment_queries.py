# expertease/queries/payment_queries.py
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

import asyncpg

from ..errors import ConcurrentModification
from ..models.payment import Payment

# Everything a transition may change; identity columns and version are handled separately.
MUTABLE_COLUMNS = (
    "service_task_id",
    "service_amount",
    "protection_fee",
    "total_amount",
    "transferred_amount",
    "refunded_amount",
    "fee_collected",
    "status",
    "currency",
    "processor_account_id",
    "payment_intent_id",
    "charge_id",
    "transfer_reference",
    "refund_reference",
    "authorized_at",
    "paid_at",
    "escrow_released_at",
    "cancelled_at",
    "refunded_at",
    "transferred_at",
    "protection_fee_details",
)

INSERT_COLUMNS = ("id", "reply_id", "client_id", "specialist_id", "created_at", "version") + MUTABLE_COLUMNS


def _values(payment: Payment, columns) -> list:
    data = payment.model_dump()
    data["status"] = payment.status.value
    return [data[c] for c in columns]


def _to_payment(row) -> Optional[Payment]:
    if row is None:
        return None
    return Payment.model_validate(dict(row))


async def create_payment(conn: asyncpg.Connection, payment: Payment) -> Payment:
    """Insert a new payment record"""
    placeholders = ", ".join(f"${i}" for i in range(1, len(INSERT_COLUMNS) + 1))
    row = await conn.fetchrow(
        f"""
        INSERT INTO payment ({", ".join(INSERT_COLUMNS)})
        VALUES ({placeholders})
        RETURNING *
        """,
        *_values(payment, INSERT_COLUMNS)
    )
    return _to_payment(row)


async def get_payment_by_id(conn: asyncpg.Connection, payment_id: UUID) -> Optional[Payment]:
    """Get a payment by its ID"""
    row = await conn.fetchrow("SELECT * FROM payment WHERE id = $1", payment_id)
    return _to_payment(row)


async def get_payment_by_intent_id(conn: asyncpg.Connection, payment_intent_id: str) -> Optional[Payment]:
    """Get a payment by the processor's payment intent id"""
    row = await conn.fetchrow("SELECT * FROM payment WHERE payment_intent_id = $1", payment_intent_id)
    return _to_payment(row)


async def get_payment_by_reply_id(conn: asyncpg.Connection, reply_id: UUID) -> Optional[Payment]:
    """Get the most recent payment for a reply"""
    row = await conn.fetchrow(
        """
        SELECT * FROM payment
        WHERE reply_id = $1
        ORDER BY created_at DESC
        LIMIT 1
        """,
        reply_id
    )
    return _to_payment(row)


async def update_payment(conn: asyncpg.Connection, payment: Payment, expected_version: int) -> Payment:
    """Write a payment back, only if nobody else changed it since it was read"""
    assignments = ", ".join(f"{c} = ${i}" for i, c in enumerate(MUTABLE_COLUMNS, start=1))
    n = len(MUTABLE_COLUMNS)
    row = await conn.fetchrow(
        f"""
        UPDATE payment
        SET {assignments}, version = version + 1
        WHERE id = ${n + 1} AND version = ${n + 2}
        RETURNING *
        """,
        *_values(payment, MUTABLE_COLUMNS), payment.id, expected_version
    )
    if row is None:
        raise ConcurrentModification(
            f"Payment {payment.id} was modified by another process (expected version {expected_version})"
        )
    return _to_payment(row)


async def get_payments_between(
    conn: asyncpg.Connection,
    from_date: datetime,
    to_date: datetime
) -> List[Payment]:
    """Get payments created in a date range"""
    rows = await conn.fetch(
        """
        SELECT * FROM payment
        WHERE created_at >= $1 AND created_at <= $2
        ORDER BY created_at DESC
        """,
        from_date, to_date
    )
    return [_to_payment(r) for r in rows]


def _search_pattern(search: str) -> str:
    return "%" + "%".join(search.split()) + "%"


async def get_payments_for_user(
    conn: asyncpg.Connection,
    user_id: Optional[str],
    page: int = 1,
    per_page: int = 10,
    search: Optional[str] = None
) -> Tuple[List[Payment], int]:
    """Paged payment history of a client or specialist, newest first. `user_id=None` lists everyone's."""
    conditions = []
    params = []
    if user_id is not None:
        params.append(user_id)
        conditions.append(f"(client_id = ${len(params)} OR specialist_id = ${len(params)})")
    if search and search.strip():
        params.append(_search_pattern(search))
        n = len(params)
        conditions.append(
            f"(status ILIKE ${n} OR total_amount::text ILIKE ${n} "
            f"OR service_amount::text ILIKE ${n} OR reply_id::text ILIKE ${n})"
        )
    where = " WHERE " + " AND ".join(conditions) if conditions else ""

    offset = (page - 1) * per_page
    rows = await conn.fetch(
        f"SELECT * FROM payment{where} ORDER BY created_at DESC LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}",
        *params, per_page, offset
    )
    total = await conn.fetchval(f"SELECT COUNT(*) FROM payment{where}", *params)
    return [_to_payment(r) for r in rows], total


class PostgresPaymentStore:
    """PaymentStore backed by the `payment` table."""

    def __init__(self, conn: asyncpg.Connection):
        self.conn = conn

    async def add(self, payment: Payment) -> Payment:
        return await create_payment(self.conn, payment)

    async def get(self, payment_id: UUID) -> Optional[Payment]:
        return await get_payment_by_id(self.conn, payment_id)

    async def get_by_intent(self, payment_intent_id: str) -> Optional[Payment]:
        return await get_payment_by_intent_id(self.conn, payment_intent_id)

    async def get_by_reply(self, reply_id: UUID) -> Optional[Payment]:
        return await get_payment_by_reply_id(self.conn, reply_id)

    async def save(self, payment: Payment, expected_version: int) -> Payment:
        return await update_payment(self.conn, payment, expected_version)

    async def list_between(self, from_date: datetime, to_date: datetime) -> List[Payment]:
        return await get_payments_between(self.conn, from_date, to_date)

    async def list_for_user(
        self,
        user_id: Optional[str],
        page: int = 1,
        per_page: int = 10,
        search: Optional[str] = None
    ) -> Tuple[List[Payment], int]:
        return await get_payments_for_user(self.conn, user_id, page, per_page, search)
