import re

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from stockroom.app.db.models.core_types import OrderAction, POStatus
from stockroom.app.db.models.models_v1 import InventoryLot, PurchaseOrder, PurchaseOrderItem
from stockroom.app.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ReconciliationError,
    StorageError,
    ValidationError,
)
from stockroom.services import lifecycle
from stockroom.services.reconciliation import compute_reconciliation


def _status(db_session, po_id):
    db_session.expire_all()
    return db_session.get(PurchaseOrder, po_id).status


# ---------- create ----------
@pytest.mark.parametrize("count", [1, 2, 5])
def test_create_order_pending_approval_with_items(db_session, count):
    items = [lifecycle.NewItem(code=f"ITM{i}", name=f"Item {i}", quantity=i + 1) for i in range(count)]

    po = lifecycle.create_order(db_session, "PO-1", items)

    assert po.status == POStatus.pending_approval
    assert po.create_date is not None
    assert len(po.items) == count
    assert [it.quantity for it in po.items] == [i + 1 for i in range(count)]


@pytest.mark.parametrize(
    "unique_id, items, field",
    [
        ("", [lifecycle.NewItem("ITM1", "Widget", 1)], "unique_id"),
        ("   ", [lifecycle.NewItem("ITM1", "Widget", 1)], "unique_id"),
        ("PO-1", [], "items"),
        ("PO-1", [lifecycle.NewItem("", "Widget", 1)], "items[0].code"),
        ("PO-1", [lifecycle.NewItem("ITM1", "", 1)], "items[0].name"),
        ("PO-1", [lifecycle.NewItem("ITM1", "Widget", 0)], "items[0].quantity"),
        ("PO-1", [lifecycle.NewItem("ITM1", "Widget", -4)], "items[0].quantity"),
    ],
)
def test_create_order_validation(db_session, unique_id, items, field):
    with pytest.raises(ValidationError) as exc_info:
        lifecycle.create_order(db_session, unique_id, items)

    assert field in [e["field"] for e in exc_info.value.errors]
    assert db_session.scalar(select(func.count(PurchaseOrder.id))) == 0


def test_create_order_duplicate_unique_id(db_session, make_order):
    make_order(unique_id="PO-1")

    with pytest.raises(ConflictError) as exc_info:
        make_order(unique_id="PO-1", items=(("ITM9", "Other", 3),))

    assert exc_info.value.unique_id == "PO-1"
    # no orphan items from the failed attempt
    assert db_session.scalar(select(func.count(PurchaseOrderItem.id))) == 1


def test_generate_unique_id_format():
    uid = lifecycle.generate_unique_id()

    assert re.fullmatch(r"PO-\d{13,}-[a-z0-9]{5}", uid)
    assert uid != lifecycle.generate_unique_id()


# ---------- approve / reject ----------
def test_approve_moves_to_pending_receive(db_session, make_order):
    po = make_order()

    lifecycle.approve(db_session, po.id)

    assert _status(db_session, po.id) == POStatus.pending_receive


def test_approve_twice_fails(db_session, make_order):
    po = make_order()
    lifecycle.approve(db_session, po.id)

    with pytest.raises(InvalidTransitionError) as exc_info:
        lifecycle.approve(db_session, po.id)

    assert exc_info.value.current_status == POStatus.pending_receive
    assert exc_info.value.required_status == POStatus.pending_approval
    assert _status(db_session, po.id) == POStatus.pending_receive


def test_reject_is_terminal(db_session, make_order):
    po = make_order()
    lifecycle.reject(db_session, po.id)

    assert _status(db_session, po.id) == POStatus.rejected
    for action in (lifecycle.approve, lifecycle.reject, lifecycle.mark_received):
        with pytest.raises(InvalidTransitionError):
            action(db_session, po.id)
    assert _status(db_session, po.id) == POStatus.rejected


def test_reject_from_pending_receive_fails(db_session, make_order):
    po = make_order(approved=True)

    with pytest.raises(InvalidTransitionError):
        lifecycle.reject(db_session, po.id)

    assert _status(db_session, po.id) == POStatus.pending_receive


def test_transition_unknown_order(db_session):
    with pytest.raises(NotFoundError):
        lifecycle.approve(db_session, 12345)


# ---------- mark_received ----------
def test_mark_received_requires_pending_receive(db_session, make_order):
    po = make_order()

    with pytest.raises(InvalidTransitionError):
        lifecycle.mark_received(db_session, po.id)


def test_mark_received_without_lots_fails(db_session, make_order):
    po = make_order(approved=True)

    with pytest.raises(ReconciliationError) as exc_info:
        lifecycle.mark_received(db_session, po.id)

    assert exc_info.value.reason == ReconciliationError.NO_LOTS
    assert _status(db_session, po.id) == POStatus.pending_receive


def test_receive_scenario(db_session, make_order, enter_lots):
    po = make_order(unique_id="PO-1", items=(("ITM1", "Widget", 50),))
    lifecycle.approve(db_session, po.id)
    enter_lots(po, {0: [("L-A", 50)]})

    lifecycle.mark_received(db_session, po.id)

    assert _status(db_session, po.id) == POStatus.received


def test_receive_scenario_short_lots(db_session, make_order, enter_lots):
    po = make_order(unique_id="PO-1", items=(("ITM1", "Widget", 50),))
    lifecycle.approve(db_session, po.id)
    enter_lots(po, {0: [("L-A", 30)]})

    with pytest.raises(ReconciliationError) as exc_info:
        lifecycle.mark_received(db_session, po.id)

    err = exc_info.value
    assert err.reason == ReconciliationError.MISMATCH
    assert err.item_name == "Widget"
    assert err.total == 30
    assert err.expected == 50
    assert "Widget" in err.message and "30" in err.message and "50" in err.message
    assert _status(db_session, po.id) == POStatus.pending_receive


def test_mark_received_reports_every_mismatch(db_session, make_order, enter_lots):
    po = make_order(
        items=(("ITM1", "Widget", 10), ("ITM2", "Gasket", 20), ("ITM3", "Bracket", 5)),
        approved=True,
    )
    enter_lots(po, {0: [("L1", 10)], 1: [("L2", 15)]})

    with pytest.raises(ReconciliationError) as exc_info:
        lifecycle.mark_received(db_session, po.id)

    assert exc_info.value.item_name == "Gasket"
    assert [m["item_name"] for m in exc_info.value.mismatches] == ["Gasket", "Bracket"]
    assert exc_info.value.mismatches[1]["total"] == 0


def test_received_is_terminal(db_session, make_order, enter_lots):
    po = make_order(approved=True)
    enter_lots(po, {0: [("L-A", 50)]})
    lifecycle.mark_received(db_session, po.id)

    with pytest.raises(InvalidTransitionError):
        lifecycle.mark_received(db_session, po.id)
    with pytest.raises(InvalidTransitionError):
        lifecycle.reject(db_session, po.id)


# ---------- apply_action / available_actions ----------
def test_apply_action_dispatches(db_session, make_order):
    po = make_order()

    lifecycle.apply_action(db_session, po.id, OrderAction.approve)

    assert _status(db_session, po.id) == POStatus.pending_receive


def test_apply_action_rejects_edit_lots(db_session, make_order):
    po = make_order()

    with pytest.raises(ValidationError):
        lifecycle.apply_action(db_session, po.id, OrderAction.edit_lots)


def test_available_actions_follow_status_and_lots(db_session, make_order, enter_lots):
    po = make_order(items=(("ITM1", "Widget", 10),))
    empty = compute_reconciliation(po.items, {})
    assert lifecycle.available_actions(po, empty) == [OrderAction.approve, OrderAction.reject]

    lifecycle.approve(db_session, po.id)
    assert lifecycle.available_actions(po, empty) == [OrderAction.edit_lots]

    result = enter_lots(po, {0: [("L1", 10)]})
    assert lifecycle.available_actions(po, result) == [OrderAction.mark_received, OrderAction.edit_lots]

    lifecycle.mark_received(db_session, po.id)
    assert lifecycle.available_actions(po, result) == []


# ---------- storage ----------
def test_cascade_delete_removes_items_and_lots(db_session, make_order, enter_lots):
    po = make_order(items=(("ITM1", "Widget", 10), ("ITM2", "Gasket", 5)), approved=True)
    enter_lots(po, {0: [("L1", 10)], 1: [("L2", 5)]})

    db_session.delete(po)
    db_session.commit()

    assert db_session.scalar(select(func.count(PurchaseOrderItem.id))) == 0
    assert db_session.scalar(select(func.count(InventoryLot.id))) == 0


class _BrokenSession:
    def __init__(self):
        self.rolled_back = False

    def execute(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is down"))

    def rollback(self):
        self.rolled_back = True

    def commit(self):
        raise AssertionError("commit after failure")


def test_storage_failure_is_reported_and_rolled_back():
    db = _BrokenSession()

    with pytest.raises(StorageError) as exc_info:
        lifecycle.approve(db, 1)

    assert exc_info.value.operation == "get_order"
    assert db.rolled_back is True
