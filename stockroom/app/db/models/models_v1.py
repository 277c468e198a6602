from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockroom.app.db.base import Base
from stockroom.app.db.models.core_types import POStatus

# BIGINT on Postgres, INTEGER on SQLite (rowid autoincrement)
PK = BigInteger().with_variant(Integer, "sqlite")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------- PROCUREMENT ----------
class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"
    id: Mapped[int] = mapped_column(PK, primary_key=True)
    unique_id: Mapped[str] = mapped_column(Text, nullable=False)
    create_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    status: Mapped[POStatus] = mapped_column(
        Enum(POStatus, name="purchase_order_status"),
        default=POStatus.pending_approval,
        server_default=POStatus.pending_approval.value,
        nullable=False,
    )

    items: Mapped[list["PurchaseOrderItem"]] = relationship(
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderItem.id",
    )

    __table_args__ = (
        UniqueConstraint("unique_id", name="uq_purchase_orders_unique_id"),
        Index("ix_purchase_orders_create_date", "create_date"),
    )


class PurchaseOrderItem(Base):
    __tablename__ = "purchase_order_items"
    id: Mapped[int] = mapped_column(PK, primary_key=True)
    purchase_order_id: Mapped[int] = mapped_column(
        ForeignKey("purchase_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    item_code: Mapped[str] = mapped_column(Text, nullable=False)
    item_name: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    purchase_order: Mapped[PurchaseOrder] = relationship(back_populates="items")
    lots: Mapped[list["InventoryLot"]] = relationship(
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="InventoryLot.id",
    )

    __table_args__ = (CheckConstraint("quantity > 0", name="ck_po_item_qty_pos"),)


# ---------- INVENTORY ----------
class InventoryLot(Base):
    __tablename__ = "inventory_lots"
    id: Mapped[int] = mapped_column(PK, primary_key=True)
    purchase_order_item_id: Mapped[int] = mapped_column(
        ForeignKey("purchase_order_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    lot_number: Mapped[str] = mapped_column(Text, nullable=False)  # pas unique
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    item: Mapped[PurchaseOrderItem] = relationship(back_populates="lots")

    __table_args__ = (CheckConstraint("quantity > 0", name="ck_inventory_lot_qty_pos"),)
