from fastapi import APIRouter

from schemehub.api.v1.endpoints import (
    # Access Control
    auth,
    users,
    # Master Data
    products,
    distributors,
    data_sync,
    # Schemes
    schemes,
    dashboard,
    filter_presets,
)


# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Access Control ====================
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentication"]
)
api_router.include_router(
    users.router,
    prefix="/auth/users",
    tags=["Users"]
)

# ==================== Master Data ====================
api_router.include_router(
    products.router,
    prefix="/products",
    tags=["Products"]
)
api_router.include_router(
    distributors.router,
    prefix="/distributors",
    tags=["Distributors"]
)
api_router.include_router(
    data_sync.router,
    prefix="/sync",
    tags=["Data Sync"]
)

# ==================== Schemes ====================
api_router.include_router(
    schemes.router,
    prefix="/schemes",
    tags=["Schemes"]
)
api_router.include_router(
    dashboard.router,
    prefix="/dashboard",
    tags=["Dashboard"]
)
api_router.include_router(
    filter_presets.router,
    prefix="/filter-presets",
    tags=["Filter Presets"]
)
