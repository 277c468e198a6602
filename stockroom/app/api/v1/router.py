from fastapi import APIRouter

from stockroom.app.api.v1.endpoints.health import router as health_router
from stockroom.app.api.v1.endpoints.dashboard import router as dashboard_router
from stockroom.app.api.v1.endpoints.purchase_orders import router as purchase_orders_router
from stockroom.app.api.v1.endpoints.lots import router as lots_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(dashboard_router, tags=["dashboard"])
router.include_router(purchase_orders_router, tags=["purchase_orders"])
router.include_router(lots_router, tags=["inventory_lots"])
