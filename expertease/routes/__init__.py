from .payments import payments_router
from .protection_fee import protection_fee_router
from .admin_reports import admin_router

routers = [
    payments_router,
    protection_fee_router,
    admin_router
]

__all__ = ["routers"]
