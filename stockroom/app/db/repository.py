"""
Storage access for purchase orders, items and lots.

Services only talk to the database through these functions. Every
SQLAlchemy failure surfaces as ``StorageError``; a duplicate order id as
``ConflictError``. Nothing here commits: the caller owns the transaction
(see ``unit_of_work``).
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator, NamedTuple, Protocol

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from stockroom.app.db.models.core_types import POStatus
from stockroom.app.db.models.models_v1 import InventoryLot, PurchaseOrder, PurchaseOrderItem
from stockroom.app.exceptions import ConflictError, NotFoundError, StockroomError, StorageError
from stockroom.app.logging_config import get_logger

logger = get_logger(__name__)


class ItemLine(Protocol):
    code: str
    name: str
    quantity: int


class LotLine(Protocol):
    lot_number: str
    quantity: int


class LotListing(NamedTuple):
    id: int
    lot_number: str
    quantity: int
    item_code: str
    item_name: str
    purchase_order_id: int
    purchase_order_unique_id: str
    purchase_order_status: POStatus
    create_date: datetime


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except StockroomError:
        raise
    except SQLAlchemyError as exc:
        logger.error("storage failure", extra={"operation": operation}, exc_info=exc)
        raise StorageError(operation) from exc


@contextmanager
def unit_of_work(db: Session, operation: str) -> Iterator[Session]:
    """
    One transaction per service operation.

    Commit on success, rollback on any error; SQLAlchemy errors are
    re-raised as ``StorageError``.
    """
    try:
        yield db
        db.commit()
    except StockroomError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("storage failure", extra={"operation": operation}, exc_info=exc)
        raise StorageError(operation) from exc


# ---------- ORDERS ----------
def _unique_id_taken(db: Session, unique_id: str) -> bool:
    return db.execute(
        select(PurchaseOrder.id).where(PurchaseOrder.unique_id == unique_id)
    ).scalar_one_or_none() is not None


def insert_order(db: Session, unique_id: str) -> PurchaseOrder:
    with storage_errors("insert_order"):
        if _unique_id_taken(db, unique_id):
            raise ConflictError(unique_id)

        po = PurchaseOrder(unique_id=unique_id, status=POStatus.pending_approval)
        db.add(po)
        try:
            db.flush()  # get po.id
        except IntegrityError as exc:
            # concurrent insert won the unique constraint
            raise ConflictError(unique_id) from exc
        return po


def get_order(db: Session, order_id: int, *, for_update: bool = False) -> PurchaseOrder | None:
    with storage_errors("get_order"):
        stmt = select(PurchaseOrder).where(PurchaseOrder.id == order_id)
        if for_update:
            stmt = stmt.with_for_update()
        return db.execute(stmt).scalar_one_or_none()


def update_order_status(db: Session, order_id: int, status: POStatus) -> PurchaseOrder:
    with storage_errors("update_order_status"):
        po = db.get(PurchaseOrder, order_id)
        if po is None:
            raise NotFoundError("purchase_order", order_id)
        po.status = status
        db.flush()
        return po


def list_orders(db: Session, *, limit: int | None = None) -> list[PurchaseOrder]:
    with storage_errors("list_orders"):
        stmt = select(PurchaseOrder).order_by(PurchaseOrder.create_date.desc(), PurchaseOrder.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(db.execute(stmt).scalars().all())


def count_orders_by_status(db: Session) -> dict[POStatus, int]:
    with storage_errors("count_orders_by_status"):
        rows = db.execute(
            select(PurchaseOrder.status, func.count(PurchaseOrder.id)).group_by(PurchaseOrder.status)
        ).all()

    counts = {status: 0 for status in POStatus}
    for status, count in rows:
        counts[POStatus(status)] = int(count)
    return counts


# ---------- ITEMS ----------
def insert_items(db: Session, order_id: int, items: Iterable[ItemLine]) -> list[PurchaseOrderItem]:
    with storage_errors("insert_items"):
        rows = [
            PurchaseOrderItem(
                purchase_order_id=order_id,
                item_code=item.code,
                item_name=item.name,
                quantity=item.quantity,
            )
            for item in items
        ]
        db.add_all(rows)
        db.flush()
        return rows


def get_items(db: Session, order_id: int) -> list[PurchaseOrderItem]:
    with storage_errors("get_items"):
        return list(
            db.execute(
                select(PurchaseOrderItem)
                .where(PurchaseOrderItem.purchase_order_id == order_id)
                .order_by(PurchaseOrderItem.id)
            )
            .scalars()
            .all()
        )


# ---------- LOTS ----------
def get_lots(db: Session, item_id: int) -> list[InventoryLot]:
    with storage_errors("get_lots"):
        return list(
            db.execute(
                select(InventoryLot)
                .where(InventoryLot.purchase_order_item_id == item_id)
                .order_by(InventoryLot.id)
            )
            .scalars()
            .all()
        )


def get_lots_for_items(db: Session, item_ids: Iterable[int]) -> dict[int, list[InventoryLot]]:
    item_ids = sorted({int(i) for i in item_ids})
    lots: dict[int, list[InventoryLot]] = {i: [] for i in item_ids}
    if not item_ids:
        return lots

    with storage_errors("get_lots_for_items"):
        rows = (
            db.execute(
                select(InventoryLot)
                .where(InventoryLot.purchase_order_item_id.in_(item_ids))
                .order_by(InventoryLot.purchase_order_item_id, InventoryLot.id)
            )
            .scalars()
            .all()
        )
    for lot in rows:
        lots[lot.purchase_order_item_id].append(lot)
    return lots


def replace_lots(db: Session, item_id: int, lots: Iterable[LotLine]) -> list[InventoryLot]:
    """Delete every lot of the item, then insert ``lots`` as given."""
    with storage_errors("replace_lots"):
        db.execute(
            delete(InventoryLot)
            .where(InventoryLot.purchase_order_item_id == item_id)
            .execution_options(synchronize_session="fetch")
        )
        rows = [
            InventoryLot(
                purchase_order_item_id=item_id,
                lot_number=lot.lot_number,
                quantity=lot.quantity,
            )
            for lot in lots
        ]
        db.add_all(rows)
        db.flush()
        return rows


def list_inventory_lots(db: Session) -> list[LotListing]:
    with storage_errors("list_inventory_lots"):
        rows = db.execute(
            select(
                InventoryLot.id,
                InventoryLot.lot_number,
                InventoryLot.quantity,
                PurchaseOrderItem.item_code,
                PurchaseOrderItem.item_name,
                PurchaseOrder.id,
                PurchaseOrder.unique_id,
                PurchaseOrder.status,
                PurchaseOrder.create_date,
            )
            .join(PurchaseOrderItem, PurchaseOrderItem.id == InventoryLot.purchase_order_item_id)
            .join(PurchaseOrder, PurchaseOrder.id == PurchaseOrderItem.purchase_order_id)
            .order_by(PurchaseOrder.create_date.desc(), PurchaseOrder.id.desc(), InventoryLot.lot_number)
        ).all()
    return [LotListing(*row) for row in rows]
