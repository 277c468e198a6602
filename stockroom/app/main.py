from fastapi import FastAPI

from stockroom.app import config
from stockroom.app.api.errors import stockroom_error_handler
from stockroom.app.api.v1.router import router as v1_router
from stockroom.app.exceptions import StockroomError
from stockroom.app.logging_config import configure_logging


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title=config.APP_TITLE, version=config.APP_VERSION)
    app.include_router(v1_router, prefix="/v1")
    app.add_exception_handler(StockroomError, stockroom_error_handler)
    return app


app = create_app()
