from parrainage.models.option import Option
from parrainage.models.pricing import PricingSchedule, PricingHistory

__all__ = ["Option", "PricingSchedule", "PricingHistory"]
