"""Learning service routers."""

from services.learning_service.routers.admin import router as admin_router
from services.learning_service.routers.admin_pathways import (
    router as admin_pathways_router,
)
from services.learning_service.routers.coaching import router as coaching_router
from services.learning_service.routers.listings import router as listings_router
from services.learning_service.routers.my_coaching import router as my_coaching_router
from services.learning_service.routers.pages import router as pages_router
from services.learning_service.routers.reports import router as reports_router
from services.learning_service.routers.webhooks import router as webhooks_router

__all__ = [
    "admin_pathways_router",
    "admin_router",
    "coaching_router",
    "listings_router",
    "my_coaching_router",
    "pages_router",
    "reports_router",
    "webhooks_router",
]
