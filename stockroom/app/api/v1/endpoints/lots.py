from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stockroom.app.api.deps import get_db
from stockroom.app.api.v1.endpoints.purchase_orders import build_order_detail
from stockroom.app.db import repository
from stockroom.app.db.models.core_types import OrderAction, POStatus
from stockroom.app.exceptions import InvalidTransitionError, NotFoundError
from stockroom.app.schemas.lots import (
    InventoryLotGroup,
    InventoryLotRow,
    InventoryLotsRead,
    LotEntryItem,
    LotEntryView,
    LotsReplace,
)
from stockroom.app.schemas.purchase_order import LotRead, PurchaseOrderDetail, PurchaseOrderRead
from stockroom.services.reconciliation import LotCandidate, replace_lots

router = APIRouter()


@router.get("/purchase-orders/{po_id}/lots", response_model=LotEntryView)
def get_lot_entry(po_id: int, db: Session = Depends(get_db)):
    """Current lots of every item, for the lot-entry form (pending_receive only)."""
    po = repository.get_order(db, po_id)
    if po is None:
        raise NotFoundError("purchase_order", po_id)
    if po.status != POStatus.pending_receive:
        raise InvalidTransitionError(OrderAction.edit_lots, po.status, POStatus.pending_receive)

    items = repository.get_items(db, po_id)
    lots = repository.get_lots_for_items(db, [it.id for it in items])
    return LotEntryView(
        order=PurchaseOrderRead.model_validate(po),
        items=[
            LotEntryItem(
                id=it.id,
                item_code=it.item_code,
                item_name=it.item_name,
                quantity=it.quantity,
                lots=[LotRead.model_validate(lot) for lot in lots[it.id]],
            )
            for it in items
        ],
    )


@router.put("/purchase-orders/{po_id}/lots", response_model=PurchaseOrderDetail)
def put_lots(po_id: int, payload: LotsReplace, db: Session = Depends(get_db)):
    replace_lots(
        db,
        po_id,
        {
            item_id: [LotCandidate(lot_number=c.lot_number, quantity=c.quantity) for c in candidates]
            for item_id, candidates in payload.lots.items()
        },
    )
    return build_order_detail(db, repository.get_order(db, po_id))


@router.get("/inventory-lots", response_model=InventoryLotsRead)
def list_inventory_lots(db: Session = Depends(get_db)):
    """Every recorded lot, grouped by purchase order (newest order first)."""
    rows = repository.list_inventory_lots(db)

    groups: dict[int, InventoryLotGroup] = {}
    for r in rows:
        group = groups.get(r.purchase_order_id)
        if group is None:
            group = InventoryLotGroup(
                purchase_order_id=r.purchase_order_id,
                purchase_order_unique_id=r.purchase_order_unique_id,
                purchase_order_status=r.purchase_order_status,
                create_date=r.create_date,
                lots=[],
            )
            groups[r.purchase_order_id] = group
        group.lots.append(
            InventoryLotRow(
                id=r.id,
                lot_number=r.lot_number,
                quantity=r.quantity,
                item_code=r.item_code,
                item_name=r.item_name,
            )
        )

    return InventoryLotsRead(total_lots=len(rows), groups=list(groups.values()))
