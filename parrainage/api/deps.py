from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from parrainage.database import get_db
from parrainage.services.pricing_calculator import ParrainPricingCalculator


def get_calculator() -> ParrainPricingCalculator:
    return ParrainPricingCalculator()


# Type aliases for cleaner dependency injection
DB = Annotated[AsyncSession, Depends(get_db)]
Calculator = Annotated[ParrainPricingCalculator, Depends(get_calculator)]
