from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from stockroom.app.db.models.core_types import POStatus
from stockroom.app.schemas.purchase_order import LotRead, PurchaseOrderRead


class LotCandidateIn(BaseModel):
    # blank rows of the entry form are accepted here and dropped on save
    lot_number: str | None = ""
    quantity: int | None = None

    @field_validator("quantity", mode="before")
    @classmethod
    def _blank_quantity(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class LotsReplace(BaseModel):
    lots: dict[int, list[LotCandidateIn]] = Field(default_factory=dict)


class LotEntryItem(BaseModel):
    id: int
    item_code: str
    item_name: str
    quantity: int
    lots: list[LotRead]

    class Config:
        from_attributes = True


class LotEntryView(BaseModel):
    order: PurchaseOrderRead
    items: list[LotEntryItem]


class InventoryLotRow(BaseModel):
    id: int
    lot_number: str
    quantity: int
    item_code: str
    item_name: str


class InventoryLotGroup(BaseModel):
    purchase_order_id: int
    purchase_order_unique_id: str
    purchase_order_status: POStatus
    create_date: datetime
    lots: list[InventoryLotRow]


class InventoryLotsRead(BaseModel):
    total_lots: int
    groups: list[InventoryLotGroup]
