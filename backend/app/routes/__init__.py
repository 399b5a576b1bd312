from app.routes.payment import router as payment_router
from app.routes.callback import router as callback_router
from app.routes.gateway import router as gateway_router
from app.routes.admin import router as admin_router

__all__ = ["payment_router", "callback_router", "gateway_router", "admin_router"]
