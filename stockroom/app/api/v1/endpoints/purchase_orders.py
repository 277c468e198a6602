from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from stockroom.app.api.deps import get_db
from stockroom.app.db import repository
from stockroom.app.db.models.core_types import OrderAction
from stockroom.app.db.models.models_v1 import PurchaseOrder
from stockroom.app.exceptions import NotFoundError, ValidationError
from stockroom.app.schemas.purchase_order import (
    ItemDetail,
    LotRead,
    OrderActionRequest,
    PurchaseOrderCreate,
    PurchaseOrderDetail,
    PurchaseOrderRead,
)
from stockroom.services import lifecycle
from stockroom.services.reconciliation import compute_reconciliation

router = APIRouter(prefix="/purchase-orders")


def _get_order_or_404(db: Session, po_id: int) -> PurchaseOrder:
    po = repository.get_order(db, po_id)
    if po is None:
        raise NotFoundError("purchase_order", po_id)
    return po


def build_order_detail(db: Session, po: PurchaseOrder) -> PurchaseOrderDetail:
    items = repository.get_items(db, po.id)
    lots = repository.get_lots_for_items(db, [it.id for it in items])
    rec = compute_reconciliation(items, lots)

    details = []
    for it in items:
        r = rec.for_item(it.id)
        details.append(
            ItemDetail(
                id=it.id,
                item_code=it.item_code,
                item_name=it.item_name,
                quantity=it.quantity,
                lots=[LotRead.model_validate(lot) for lot in lots[it.id]],
                total_lot_quantity=r.total,
                quantity_matches=r.matches,
                lot_state=r.state,
            )
        )

    return PurchaseOrderDetail(
        id=po.id,
        unique_id=po.unique_id,
        create_date=po.create_date,
        status=po.status,
        items=details,
        all_match=rec.all_match,
        has_any_lots=rec.has_any_lots,
        available_actions=lifecycle.available_actions(po, rec),
    )


@router.get("", response_model=list[PurchaseOrderRead])
def list_pos(db: Session = Depends(get_db)):
    return repository.list_orders(db)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=PurchaseOrderDetail)
def create_po(payload: PurchaseOrderCreate, db: Session = Depends(get_db)):
    unique_id = payload.unique_id or lifecycle.generate_unique_id()
    po = lifecycle.create_order(
        db,
        unique_id,
        [lifecycle.NewItem(code=ln.code, name=ln.name, quantity=ln.quantity) for ln in payload.items],
    )
    return build_order_detail(db, po)


@router.get("/{po_id}", response_model=PurchaseOrderDetail)
def get_po(po_id: int, db: Session = Depends(get_db)):
    return build_order_detail(db, _get_order_or_404(db, po_id))


@router.post("/{po_id}/approve", response_model=PurchaseOrderDetail)
def approve_po(po_id: int, db: Session = Depends(get_db)):
    return build_order_detail(db, lifecycle.approve(db, po_id))


@router.post("/{po_id}/reject", response_model=PurchaseOrderDetail)
def reject_po(po_id: int, db: Session = Depends(get_db)):
    return build_order_detail(db, lifecycle.reject(db, po_id))


@router.post("/{po_id}/mark-received", response_model=PurchaseOrderDetail)
def mark_po_received(po_id: int, db: Session = Depends(get_db)):
    return build_order_detail(db, lifecycle.mark_received(db, po_id))


@router.post("/{po_id}/actions", response_model=PurchaseOrderDetail)
def apply_po_action(po_id: int, payload: OrderActionRequest, db: Session = Depends(get_db)):
    """Same transitions as above, the action named in the body (detail page form)."""
    try:
        action = OrderAction(payload.action)
    except ValueError:
        raise ValidationError(
            "Invalid action",
            errors=[{"field": "action", "message": f"Unknown action {payload.action}"}],
        )

    return build_order_detail(db, lifecycle.apply_action(db, po_id, action))
