"""FastAPI application for the Learning Service."""

from fastapi import FastAPI
from libs.common.middleware import add_observability_middleware
from services.learning_service.routers import (
    admin_pathways_router,
    admin_router,
    coaching_router,
    listings_router,
    my_coaching_router,
    pages_router,
    reports_router,
    webhooks_router,
)


def create_app() -> FastAPI:
    """Create and configure the Learning Service FastAPI app."""
    app = FastAPI(
        title="Learning Service",
        version="0.1.0",
        description="Cohorts, pathways, gated activities and coaching for professional learning programs.",
    )
    add_observability_middleware(app, service_name="learning")

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "learning"}

    # Participant and leader pages (all prefixed /learning)
    app.include_router(pages_router, prefix="/learning")
    app.include_router(my_coaching_router, prefix="/learning")
    app.include_router(listings_router, prefix="/learning")
    app.include_router(reports_router, prefix="/learning")

    # Staff, admin and integration surfaces
    app.include_router(coaching_router, prefix="/learning")
    app.include_router(admin_router, prefix="/learning")
    app.include_router(admin_pathways_router, prefix="/learning")
    app.include_router(webhooks_router, prefix="/learning")

    return app


app = create_app()
