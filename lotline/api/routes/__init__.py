from lotline.api.routes.admin import router as admin_router
from lotline.api.routes.license import router as license_router
from lotline.api.routes.organizations import router as organizations_router
from lotline.api.routes.subscriptions import router as subscriptions_router
from lotline.api.routes.webhooks import router as webhooks_router

__all__ = [
    "admin_router",
    "license_router",
    "organizations_router",
    "subscriptions_router",
    "webhooks_router",
]
