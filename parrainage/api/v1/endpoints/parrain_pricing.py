"""API endpoints for the parrain pricing tools: simulation, schema migration and stored schedules."""
from fastapi import APIRouter, HTTPException, Query, status

from parrainage.api.deps import DB, Calculator
from parrainage.core.exceptions import MigrationError
from parrainage.schemas.migration import (
    MigrationStatus, IntegrityReport, MigrationRunResponse, ModalMigrationStats,
)
from parrainage.schemas.pricing import (
    PricingSimulation, PricingScheduleResponse,
    PricingHistoryResponse, PricingHistoryListResponse,
)
from parrainage.services.modal_content_migrator import ModalContentMigrator
from parrainage.services.pricing_migration import ParrainPricingMigration
from parrainage.services.pricing_storage import ParrainPricingStorage

router = APIRouter()


# ==================== Simulation ====================

@router.get("/simulate", response_model=PricingSimulation)
async def simulate_pricing(
    calculator: Calculator,
    parrain_price: str = Query(..., description="Current parrain HT price"),
    filleul_price: str = Query(..., description="Filleul subscription HT price"),
):
    """Dry-run of the parrain reduction. Invalid prices come back as an error payload."""
    return calculator.simulate(parrain_price, filleul_price)


# ==================== Schema migration ====================

@router.get("/migration/status", response_model=MigrationStatus)
async def get_migration_status(db: DB):
    return await ParrainPricingMigration(db).get_status()


@router.get("/migration/integrity", response_model=IntegrityReport)
async def check_migration_integrity(db: DB):
    """Report anomalies in the schedule table. Nothing is repaired."""
    return await ParrainPricingMigration(db).check_data_integrity()


@router.post("/migration/run", response_model=MigrationRunResponse)
async def run_migration(db: DB):
    """Create the pricing tables up to the current schema version."""
    migration = ParrainPricingMigration(db)
    try:
        migrated = await migration.migrate()
    except MigrationError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=e.message,
        )

    return MigrationRunResponse(
        migrated=migrated,
        current_version=await migration.get_current_version(),
        target_version=migration.DB_VERSION,
    )


# ==================== Modal content ====================

@router.get("/modal-content/stats", response_model=ModalMigrationStats)
async def get_modal_content_stats(db: DB):
    return await ModalContentMigrator(db).get_stats()


# ==================== Stored schedules ====================

@router.get(
    "/subscriptions/{subscription_id}/pending",
    response_model=PricingScheduleResponse,
)
async def get_pending_pricing(subscription_id: int, db: DB):
    """Get the pending price change of a parrain subscription."""
    pricing = await ParrainPricingStorage(db).get_pending_pricing(subscription_id)
    if not pricing:
        raise HTTPException(status_code=404, detail="No pending price change for this subscription")
    return pricing


@router.get(
    "/subscriptions/{subscription_id}/history",
    response_model=PricingHistoryListResponse,
)
async def get_pricing_history(
    subscription_id: int,
    db: DB,
    limit: int = Query(20, ge=1, le=100),
):
    """Most recent audit entries first."""
    records = await ParrainPricingStorage(db).get_pricing_history(subscription_id, limit=limit)
    items = [PricingHistoryResponse.model_validate(record) for record in records]
    return PricingHistoryListResponse(items=items, total=len(items))
