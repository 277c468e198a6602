from __future__ import annotations

from typing import Generator

from sqlalchemy.orm import Session

from stockroom.app.db.session import SessionLocal


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        # services commit their own work; anything left open is discarded
        db.rollback()
        db.close()
