from fastapi import APIRouter

from parrainage.api.v1.endpoints import parrain_pricing


# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Parrain Pricing ====================
api_router.include_router(
    parrain_pricing.router,
    prefix="/parrain-pricing",
    tags=["Parrain Pricing"]
)
