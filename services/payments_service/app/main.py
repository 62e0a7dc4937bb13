"""FastAPI application for the Payments Service."""

from fastapi import FastAPI
from libs.common.error_handler import add_exception_handlers
from libs.common.middleware import add_observability_middleware
from services.payments_service.routers import admin_router, intents_router


def create_app() -> FastAPI:
    """Create and configure the Payments Service FastAPI app."""
    app = FastAPI(
        title="Storefront Payments Service",
        version="0.1.0",
        description="Payment gateway intents and verification.",
    )
    add_observability_middleware(app)
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "payments"}

    app.include_router(intents_router)
    app.include_router(admin_router)

    return app


app = create_app()
