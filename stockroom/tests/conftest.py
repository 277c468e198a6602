import os

# must be set before stockroom.app.db.session builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from stockroom.app.api.deps import get_db
from stockroom.app.db.models.models_v1 import Base
from stockroom.app.db.session import make_engine
from stockroom.app.main import create_app
from stockroom.services import lifecycle
from stockroom.services.reconciliation import LotCandidate, replace_lots


@pytest.fixture(scope="function")
def engine():
    """
    Base SQLite en mémoire, recréée pour chaque test.

    Les services committent eux-mêmes : pas de SAVEPOINT, on jette la base.
    """
    eng = make_engine("sqlite://")
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        Base.metadata.drop_all(bind=eng)
        eng.dispose()


@pytest.fixture(scope="function")
def db_session(engine) -> Session:
    session = sessionmaker(bind=engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session):
    app = create_app()

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_order(db_session):
    """Create an order; ``approved=True`` moves it to pending_receive."""

    def _make(unique_id="PO-1", items=(("ITM1", "Widget", 50),), approved=False):
        po = lifecycle.create_order(
            db_session,
            unique_id,
            [lifecycle.NewItem(code=c, name=n, quantity=q) for c, n, q in items],
        )
        if approved:
            lifecycle.approve(db_session, po.id)
        return po

    return _make


@pytest.fixture
def enter_lots(db_session):
    """``enter_lots(po, {item_index: [(lot_number, qty), ...]})``"""

    def _enter(po, lots_by_index):
        items = list(po.items)
        return replace_lots(
            db_session,
            po.id,
            {
                items[idx].id: [LotCandidate(lot_number=n, quantity=q) for n, q in lots]
                for idx, lots in lots_by_index.items()
            },
        )

    return _enter
