from __future__ import annotations

from fastapi import APIRouter

from stockroom.app import config

router = APIRouter(prefix="/health")


@router.get("")
def health():
    return {"status": "ok", "version": config.APP_VERSION}
