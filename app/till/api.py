from fastapi import APIRouter

from app.till.core.config import settings
from app.till.routers.cart import router as cart_router
from app.till.routers.checkout import router as checkout_router
from app.till.routers.day_end import router as day_end_router
from app.till.routers.health import router as health_router
from app.till.routers.metrics import router as metrics_router
from app.till.routers.returns import router as returns_router
from app.till.routers.tiers import router as tiers_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(cart_router, tags=["cart"])
api_router.include_router(returns_router, tags=["returns"])
api_router.include_router(checkout_router, tags=["checkout"])
api_router.include_router(day_end_router, tags=["day-end"])
api_router.include_router(tiers_router, tags=["tiers"])
if settings.METRICS_ENABLED:
    api_router.include_router(metrics_router, tags=["ops"])
