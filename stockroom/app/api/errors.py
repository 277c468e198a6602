from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from stockroom.app.exceptions import StockroomError, StorageError
from stockroom.app.logging_config import get_logger

logger = get_logger(__name__)


async def stockroom_error_handler(request: Request, exc: StockroomError) -> JSONResponse:
    extra = {"path": request.url.path, "error_code": exc.code}
    if isinstance(exc, StorageError):
        logger.error("request failed", extra=extra, exc_info=exc)
    else:
        logger.warning("request rejected: %s", exc.message, extra=extra)

    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})
