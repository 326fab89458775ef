from fastapi import APIRouter

from .endpoints import health, orders, users

router = APIRouter()
router.include_router(health.router, tags=["Health"])
router.include_router(users.router)
router.include_router(orders.router)
