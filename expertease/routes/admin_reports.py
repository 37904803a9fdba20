# expertease/routes/admin_reports.py
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ..database import get_payment_store
from ..models.payment import PaymentReport
from ..services.payment_ledger import PaymentStore
from ..services.revenue_report import build_revenue_report
from ..utils.auth import require_admin

admin_router = APIRouter(prefix="/admin", tags=["Admin Reports"])


@admin_router.get("/payments/revenue", response_model=PaymentReport)
async def revenue_report(
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    store: PaymentStore = Depends(get_payment_store),
    user=Depends(require_admin)
):
    # Default to the last 30 days
    to_date = to_date or datetime.now(timezone.utc)
    from_date = from_date or to_date - timedelta(days=30)
    if from_date > to_date:
        raise HTTPException(status_code=400, detail="from_date must be before to_date")

    payments = await store.list_between(from_date, to_date)
    return build_revenue_report(payments, from_date, to_date)


__all__ = ["admin_router"]
