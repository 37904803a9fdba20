# expertease/errors.py


class PaymentError(Exception):
    """Base class for every recoverable fee or payment failure."""

    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidConfiguration(PaymentError):
    """Unrecognized fee type or inconsistent fee limits."""

    status_code = 422


class AlreadyAuthorized(PaymentError):
    status_code = 409


class InvalidTransition(PaymentError):
    """The payment status does not allow the requested operation."""

    status_code = 400


class InsufficientEscrowBalance(PaymentError):
    status_code = 400


class InvalidAmount(PaymentError):
    status_code = 400


class ConcurrentModification(PaymentError):
    """A stale version was written; reload and retry."""

    status_code = 409


class PaymentNotFound(PaymentError):
    status_code = 404


__all__ = [
    "PaymentError",
    "InvalidConfiguration",
    "AlreadyAuthorized",
    "InvalidTransition",
    "InsufficientEscrowBalance",
    "InvalidAmount",
    "ConcurrentModification",
    "PaymentNotFound",
]
