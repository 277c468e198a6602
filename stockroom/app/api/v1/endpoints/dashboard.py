from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stockroom.app.api.deps import get_db
from stockroom.app.db import repository
from stockroom.app.schemas.purchase_order import DashboardRead, PurchaseOrderRead, StatusCount

router = APIRouter(prefix="/dashboard")

RECENT_LIMIT = 5


@router.get("", response_model=DashboardRead)
def get_dashboard(db: Session = Depends(get_db)):
    """Order count for every status, plus the most recent orders."""
    counts = repository.count_orders_by_status(db)
    recent = repository.list_orders(db, limit=RECENT_LIMIT)
    return DashboardRead(
        status_counts=[
            StatusCount(status=status, label=status.label, count=count)
            for status, count in counts.items()
        ],
        recent=[PurchaseOrderRead.model_validate(po) for po in recent],
    )
