from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from stockroom.app.db.models.core_types import LotState, OrderAction, POStatus


class ItemCreate(BaseModel):
    code: str = Field(min_length=1)
    name: str = Field(min_length=1)
    quantity: int = Field(gt=0)


class PurchaseOrderCreate(BaseModel):
    # generated server-side when omitted
    unique_id: str | None = Field(default=None, max_length=64)
    items: list[ItemCreate] = Field(min_length=1)


class OrderActionRequest(BaseModel):
    action: str


class PurchaseOrderRead(BaseModel):
    id: int
    unique_id: str
    create_date: datetime
    status: POStatus

    class Config:
        from_attributes = True


class LotRead(BaseModel):
    id: int
    lot_number: str
    quantity: int

    class Config:
        from_attributes = True


class ItemDetail(BaseModel):
    id: int
    item_code: str
    item_name: str
    quantity: int
    lots: list[LotRead]

    # derived, recomputed on every read
    total_lot_quantity: int
    quantity_matches: bool
    lot_state: LotState


class PurchaseOrderDetail(PurchaseOrderRead):
    items: list[ItemDetail]
    all_match: bool
    has_any_lots: bool
    available_actions: list[OrderAction]


class StatusCount(BaseModel):
    status: POStatus
    label: str
    count: int


class DashboardRead(BaseModel):
    status_counts: list[StatusCount]
    recent: list[PurchaseOrderRead]
