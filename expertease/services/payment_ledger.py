# expertease/services/payment_ledger.py
import asyncio
import logging
import weakref
from datetime import datetime
from typing import Callable, List, Optional, Protocol, Tuple
from uuid import UUID

from ..errors import ConcurrentModification, PaymentNotFound
from ..models.payment import Payment

logger = logging.getLogger(__name__)

Operation = Callable[[Payment], Payment]


class PaymentStore(Protocol):
    """Storage collaborator. `save` must reject a stale `expected_version`."""

    async def add(self, payment: Payment) -> Payment: ...

    async def get(self, payment_id: UUID) -> Optional[Payment]: ...

    async def get_by_intent(self, payment_intent_id: str) -> Optional[Payment]: ...

    async def get_by_reply(self, reply_id: UUID) -> Optional[Payment]: ...

    async def save(self, payment: Payment, expected_version: int) -> Payment: ...

    async def list_between(self, from_date: datetime, to_date: datetime) -> List[Payment]: ...

    async def list_for_user(
        self, user_id: Optional[str], page: int, per_page: int, search: Optional[str]
    ) -> Tuple[List[Payment], int]: ...


class PaymentLedger:
    """
    Runs lifecycle transitions against stored payments.

    Transitions on the same payment id are serialized by an in-process lock;
    writes from other processes are caught by the store's version check and
    retried against freshly loaded state.
    """

    def __init__(self, max_retries: int = 3):
        self.max_retries = max_retries
        self._locks: "weakref.WeakValueDictionary[UUID, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, payment_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(payment_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[payment_id] = lock
        return lock

    async def transition(self, store: PaymentStore, payment_id: UUID, operation: Operation) -> Payment:
        lock = self._lock_for(payment_id)
        async with lock:
            attempt = 0
            while True:
                attempt += 1
                payment = await store.get(payment_id)
                if payment is None:
                    raise PaymentNotFound(f"Payment {payment_id} not found")

                before = payment.model_copy()
                operation(payment)
                if payment == before:
                    return payment

                try:
                    return await store.save(payment, expected_version=before.version)
                except ConcurrentModification:
                    if attempt >= self.max_retries:
                        logger.error(f"Payment {payment_id} still conflicting after {attempt} attempts")
                        raise
                    logger.warning(f"Version conflict on payment {payment_id} (attempt {attempt}), retrying")

    async def transition_by_intent(self, store: PaymentStore, payment_intent_id: str, operation: Operation) -> Payment:
        payment = await store.get_by_intent(payment_intent_id)
        if payment is None:
            raise PaymentNotFound(f"No payment for intent {payment_intent_id}")
        return await self.transition(store, payment.id, operation)
