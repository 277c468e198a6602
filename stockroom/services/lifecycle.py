"""
Purchase-order lifecycle.

    pending_approval --approve--> pending_receive --mark_received--> received
           |
           +--------reject------> rejected

Each transition reads the order FOR UPDATE, checks its status, writes the
target status and commits, all in one transaction. A transition from any
other status raises ``InvalidTransitionError``; nothing is silently ignored,
so replaying a stale action fails instead of moving the order again.
"""

from __future__ import annotations

import secrets
import string
import time
from dataclasses import dataclass
from typing import Callable, Sequence

from sqlalchemy.orm import Session

from stockroom.app.db import repository
from stockroom.app.db.models.core_types import OrderAction, POStatus
from stockroom.app.db.models.models_v1 import PurchaseOrder
from stockroom.app.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    ReconciliationError,
    ValidationError,
)
from stockroom.app.logging_config import get_logger
from stockroom.services.reconciliation import OrderReconciliation, reconcile_order

logger = get_logger(__name__)

# action -> (required status, target status)
TRANSITIONS: dict[OrderAction, tuple[POStatus, POStatus]] = {
    OrderAction.approve: (POStatus.pending_approval, POStatus.pending_receive),
    OrderAction.reject: (POStatus.pending_approval, POStatus.rejected),
    OrderAction.mark_received: (POStatus.pending_receive, POStatus.received),
}

_ID_ALPHABET = string.ascii_lowercase + string.digits


@dataclass(frozen=True)
class NewItem:
    code: str
    name: str
    quantity: int


def generate_unique_id() -> str:
    """Default order id, ``PO-<epoch ms>-<5 chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(5))
    return f"PO-{int(time.time() * 1000)}-{suffix}"


def _validate_new_order(unique_id: str | None, items: Sequence[NewItem]) -> tuple[str, list[NewItem]]:
    errors: list[dict] = []

    uid = (unique_id or "").strip()
    if not uid:
        errors.append({"field": "unique_id", "message": "Purchase Order ID is required"})

    if not items:
        errors.append({"field": "items", "message": "At least one item is required"})

    cleaned: list[NewItem] = []
    for idx, item in enumerate(items or ()):
        code = (item.code or "").strip()
        name = (item.name or "").strip()
        qty = item.quantity
        if not code:
            errors.append({"field": f"items[{idx}].code", "message": "Item code is required"})
        if not name:
            errors.append({"field": f"items[{idx}].name", "message": "Item name is required"})
        if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
            errors.append({"field": f"items[{idx}].quantity", "message": "Quantity must be a positive number"})
        cleaned.append(NewItem(code=code, name=name, quantity=qty))

    if errors:
        raise ValidationError("Invalid purchase order", errors=errors)
    return uid, cleaned


def create_order(db: Session, unique_id: str, items: Sequence[NewItem]) -> PurchaseOrder:
    uid, lines = _validate_new_order(unique_id, items)

    with repository.unit_of_work(db, "create_order"):
        po = repository.insert_order(db, uid)
        repository.insert_items(db, po.id, lines)

    logger.info(
        "purchase order created",
        extra={"order_id": po.id, "unique_id": uid, "item_count": len(lines)},
    )
    return po


def _require_reconciled(db: Session, po: PurchaseOrder) -> None:
    result = reconcile_order(db, po.id)
    if not result.has_any_lots:
        raise ReconciliationError.no_lots()
    if not result.all_match:
        first = result.mismatches[0]
        raise ReconciliationError.mismatch(
            first.item_name,
            first.total,
            first.ordered_quantity,
            mismatches=[
                {
                    "item_id": m.item_id,
                    "item_name": m.item_name,
                    "total": m.total,
                    "expected": m.ordered_quantity,
                }
                for m in result.mismatches
            ],
        )


def _transition(
    db: Session,
    order_id: int,
    action: OrderAction,
    gate: Callable[[Session, PurchaseOrder], None] | None = None,
) -> PurchaseOrder:
    required, target = TRANSITIONS[action]

    try:
        with repository.unit_of_work(db, action.value):
            po = repository.get_order(db, order_id, for_update=True)
            if po is None:
                raise NotFoundError("purchase_order", order_id)
            if po.status != required:
                raise InvalidTransitionError(action, po.status, required)
            if gate is not None:
                gate(db, po)
            repository.update_order_status(db, po.id, target)
    except (InvalidTransitionError, ReconciliationError) as exc:
        logger.warning(
            "transition refused",
            extra={"order_id": order_id, "action": action.value, "error_code": exc.code},
        )
        raise

    logger.info(
        "purchase order transitioned",
        extra={"order_id": order_id, "action": action.value, "status": target.value},
    )
    return po


def approve(db: Session, order_id: int) -> PurchaseOrder:
    return _transition(db, order_id, OrderAction.approve)


def reject(db: Session, order_id: int) -> PurchaseOrder:
    return _transition(db, order_id, OrderAction.reject)


def mark_received(db: Session, order_id: int) -> PurchaseOrder:
    return _transition(db, order_id, OrderAction.mark_received, gate=_require_reconciled)


_HANDLERS: dict[OrderAction, Callable[[Session, int], PurchaseOrder]] = {
    OrderAction.approve: approve,
    OrderAction.reject: reject,
    OrderAction.mark_received: mark_received,
}


def apply_action(db: Session, order_id: int, action: OrderAction) -> PurchaseOrder:
    """Form-style dispatch: one endpoint, the action named in the payload."""
    handler = _HANDLERS.get(action)
    if handler is None:
        raise ValidationError("Invalid action", errors=[{"field": "action", "message": f"Unknown action {action.value}"}])
    return handler(db, order_id)


def available_actions(order: PurchaseOrder, reconciliation: OrderReconciliation) -> list[OrderAction]:
    actions: list[OrderAction] = []
    if order.status == POStatus.pending_approval:
        actions += [OrderAction.approve, OrderAction.reject]
    elif order.status == POStatus.pending_receive:
        if reconciliation.all_match and reconciliation.has_any_lots:
            actions.append(OrderAction.mark_received)
        actions.append(OrderAction.edit_lots)
    return actions
