from __future__ import annotations

from sqlalchemy import select

from stockroom.app.db.models.models_v1 import PurchaseOrder
from stockroom.app.db.session import SessionLocal
from stockroom.app.logging_config import configure_logging, get_logger
from stockroom.services import lifecycle
from stockroom.services.reconciliation import LotCandidate, replace_lots

logger = get_logger(__name__)

DEMO_ORDERS = {
    "PO-DEMO-1": [lifecycle.NewItem(code="ITM1", name="Widget", quantity=50)],
    "PO-DEMO-2": [
        lifecycle.NewItem(code="ITM2", name="Gasket", quantity=100),
        lifecycle.NewItem(code="ITM3", name="Bracket", quantity=20),
    ],
}


def run_seed():
    db = SessionLocal()
    try:
        # 1) PO-DEMO-1 : en attente d'approbation
        if not db.scalar(select(PurchaseOrder).where(PurchaseOrder.unique_id == "PO-DEMO-1")):
            lifecycle.create_order(db, "PO-DEMO-1", DEMO_ORDERS["PO-DEMO-1"])

        # 2) PO-DEMO-2 : approuvé, lots partiels (60 + 30 sur 100, 20 sur 20)
        if not db.scalar(select(PurchaseOrder).where(PurchaseOrder.unique_id == "PO-DEMO-2")):
            po = lifecycle.create_order(db, "PO-DEMO-2", DEMO_ORDERS["PO-DEMO-2"])
            lifecycle.approve(db, po.id)
            gasket, bracket = po.items
            replace_lots(
                db,
                po.id,
                {
                    gasket.id: [LotCandidate("LOT-2024-001", 60), LotCandidate("LOT-2024-002", 30)],
                    bracket.id: [LotCandidate("LOT-2024-003", 20)],
                },
            )

        logger.info("seed ok", extra={"orders": sorted(DEMO_ORDERS)})
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging()
    run_seed()
