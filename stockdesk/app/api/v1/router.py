from fastapi import APIRouter

from stockdesk.app.api.v1.endpoints.health import router as health_router
from stockdesk.app.api.v1.endpoints.auth import router as auth_router
from stockdesk.app.api.v1.endpoints.users import router as users_router
from stockdesk.app.api.v1.endpoints.stock import router as stock_router
from stockdesk.app.api.v1.endpoints.orders import router as orders_router
from stockdesk.app.api.v1.endpoints.dashboard import router as dashboard_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(auth_router, tags=["auth"])
router.include_router(users_router, tags=["users"])
router.include_router(stock_router, tags=["stock"])
router.include_router(orders_router, tags=["orders"])
router.include_router(dashboard_router, tags=["dashboard"])
