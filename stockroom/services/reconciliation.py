"""
Lot reconciliation.

Règle métier :
    un item est réconcilié  <=>  SUM(quantity des lots de l'item) == quantity commandée

Comparaison entière exacte, sans tolérance. Un item sans lot n'est jamais
réconcilié (la quantité commandée est toujours > 0). Rien n'est stocké :
le résultat est recalculé à chaque lecture.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Protocol, Sequence

from sqlalchemy.orm import Session

from stockroom.app.db import repository
from stockroom.app.db.models.core_types import LotState, OrderAction, POStatus
from stockroom.app.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from stockroom.app.logging_config import get_logger

logger = get_logger(__name__)


class _Item(Protocol):
    id: int
    item_code: str
    item_name: str
    quantity: int


class _Lot(Protocol):
    quantity: int


@dataclass(frozen=True)
class LotCandidate:
    """A lot as submitted by the lot-entry form, before filtering."""

    lot_number: str | None
    quantity: int | None


@dataclass(frozen=True)
class ItemReconciliation:
    item_id: int
    item_code: str
    item_name: str
    ordered_quantity: int
    total: int
    lot_count: int

    @property
    def matches(self) -> bool:
        return self.total == self.ordered_quantity

    @property
    def difference(self) -> int:
        return self.total - self.ordered_quantity

    @property
    def state(self) -> LotState:
        if self.lot_count == 0:
            return LotState.no_lots
        return LotState.complete if self.matches else LotState.mismatch


@dataclass(frozen=True)
class OrderReconciliation:
    items: tuple[ItemReconciliation, ...]

    @property
    def all_match(self) -> bool:
        return all(item.matches for item in self.items)

    @property
    def has_any_lots(self) -> bool:
        return any(item.lot_count > 0 for item in self.items)

    @property
    def mismatches(self) -> tuple[ItemReconciliation, ...]:
        return tuple(item for item in self.items if not item.matches)

    def for_item(self, item_id: int) -> ItemReconciliation:
        for item in self.items:
            if item.item_id == item_id:
                return item
        raise KeyError(item_id)


def compute_reconciliation(
    items: Iterable[_Item],
    lots_by_item: Mapping[int, Sequence[_Lot]],
) -> OrderReconciliation:
    results = []
    for item in items:
        lots = lots_by_item.get(item.id, ())
        results.append(
            ItemReconciliation(
                item_id=item.id,
                item_code=item.item_code,
                item_name=item.item_name,
                ordered_quantity=item.quantity,
                total=sum(lot.quantity for lot in lots),
                lot_count=len(lots),
            )
        )
    return OrderReconciliation(items=tuple(results))


def reconcile_order(db: Session, order_id: int) -> OrderReconciliation:
    order = repository.get_order(db, order_id)
    if order is None:
        raise NotFoundError("purchase_order", order_id)

    items = repository.get_items(db, order_id)
    lots = repository.get_lots_for_items(db, [item.id for item in items])
    return compute_reconciliation(items, lots)


def filter_lot_candidates(candidates: Iterable[LotCandidate]) -> list[LotCandidate]:
    """Drop blank lot numbers and non-positive quantities."""
    kept = []
    for candidate in candidates:
        lot_number = (candidate.lot_number or "").strip()
        if not lot_number or candidate.quantity is None or candidate.quantity <= 0:
            continue
        kept.append(LotCandidate(lot_number=lot_number, quantity=int(candidate.quantity)))
    return kept


def replace_lots(
    db: Session,
    order_id: int,
    lots_by_item_id: Mapping[int, Sequence[LotCandidate]],
) -> OrderReconciliation:
    """
    Remplace en bloc les lots de toute la commande.

    Tous les lots de tous les items de la commande sont supprimés, puis les
    candidats valides sont insérés, dans une seule transaction. Un item
    absent du mapping se retrouve sans lot.
    """
    with repository.unit_of_work(db, "replace_lots"):
        order = repository.get_order(db, order_id, for_update=True)
        if order is None:
            raise NotFoundError("purchase_order", order_id)
        if order.status != POStatus.pending_receive:
            raise InvalidTransitionError(OrderAction.edit_lots, order.status, POStatus.pending_receive)

        items = repository.get_items(db, order_id)
        unknown = sorted(set(lots_by_item_id) - {item.id for item in items})
        if unknown:
            raise ValidationError(
                "Lots reference items that do not belong to this purchase order",
                errors=[{"field": "lots", "item_id": item_id, "message": "Unknown item"} for item_id in unknown],
            )

        new_lots = {}
        for item in items:
            survivors = filter_lot_candidates(lots_by_item_id.get(item.id, ()))
            new_lots[item.id] = repository.replace_lots(db, item.id, survivors)

        result = compute_reconciliation(items, new_lots)

    logger.info(
        "lots replaced",
        extra={
            "order_id": order_id,
            "lot_count": sum(len(lots) for lots in new_lots.values()),
            "all_match": result.all_match,
        },
    )
    return result
