from rentals.routes.properties_routes import router as properties_router
from rentals.routes.tenants_routes import router as tenants_router
from rentals.routes.transactions_routes import router as transactions_router
from rentals.routes.subscription_routes import router as subscription_router

__all__ = [
    "properties_router",
    "tenants_router",
    "transactions_router",
    "subscription_router",
]
