from .payment_queries import (
    create_payment,
    get_payment_by_id,
    get_payment_by_intent_id,
    get_payment_by_reply_id,
    update_payment,
    get_payments_between,
    get_payments_for_user,
    PostgresPaymentStore
)

__all__ = [
    'create_payment',
    'get_payment_by_id',
    'get_payment_by_intent_id',
    'get_payment_by_reply_id',
    'update_payment',
    'get_payments_between',
    'get_payments_for_user',
    'PostgresPaymentStore'
]
