"""Store service routers package."""

from services.store_service.routers.admin_coupons import router as admin_coupons_router
from services.store_service.routers.admin_orders import router as admin_orders_router
from services.store_service.routers.cart import router as cart_router
from services.store_service.routers.checkout import router as checkout_router
from services.store_service.routers.orders import router as orders_router

__all__ = [
    "admin_coupons_router",
    "admin_orders_router",
    "cart_router",
    "checkout_router",
    "orders_router",
]
