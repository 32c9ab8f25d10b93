# File: src/parkwash/domain/strategies.py
"""
Strategy Pattern Implementation for the ParkWash Engine

This module encapsulates the algorithms that the services pick at
construction time instead of branching inline.

Key Strategies:
1. Pricing Strategies - How elapsed time becomes a billable amount
2. Allocation Strategies - In which order free spaces are offered
"""

from abc import ABC, abstractmethod
from typing import Iterable, List, Union
from decimal import Decimal
import logging
import math

from .exceptions import ValidationError
from .models import Money, Space


# ============================================================================
# STRATEGY INTERFACES
# ============================================================================

class PricingStrategy(ABC):
    """
    Abstract base class for pricing strategies
    Turns an elapsed time and a per-unit price into a fee
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def billable_units(self, elapsed_minutes: Union[int, float], unit_minutes: int) -> int:
        """Number of whole units charged for the elapsed time"""
        pass

    def calculate_fee(
        self,
        unit_price: Money,
        unit_minutes: int,
        elapsed_minutes: Union[int, float]
    ) -> Money:
        """
        Calculate the fee for an elapsed time
        Returns: unit_price multiplied by the billable units
        """
        if elapsed_minutes < 0:
            raise ValidationError(
                "Elapsed time cannot be negative",
                {"elapsed_minutes": elapsed_minutes}
            )
        if unit_minutes <= 0:
            raise ValidationError("Tariff time unit must be positive", {"unit_minutes": unit_minutes})

        units = self.billable_units(elapsed_minutes, unit_minutes)
        fee = unit_price * units
        self.logger.debug(
            f"{elapsed_minutes} min at {unit_price.format()}/{unit_minutes} min -> "
            f"{units} unit(s) = {fee.format()}"
        )
        return fee

    def get_strategy_name(self) -> str:
        """Get human-readable strategy name"""
        return self.__class__.__name__.replace("PricingStrategy", "")

    def __str__(self) -> str:
        return f"{self.get_strategy_name()} Pricing"


class AllocationStrategy(ABC):
    """
    Abstract base class for allocation strategies
    Orders candidate spaces; the registry claims the first it can
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def rank(self, candidates: Iterable[Space]) -> List[Space]:
        """Return candidates in the order they should be tried"""
        pass


# ============================================================================
# PRICING STRATEGIES
# ============================================================================

class TariffUnitPricingStrategy(PricingStrategy):
    """
    Pricing by tariff unit
    Any started unit is billable: ceil(elapsed / unit)
    """

    def billable_units(self, elapsed_minutes: Union[int, float], unit_minutes: int) -> int:
        return math.ceil(Decimal(str(elapsed_minutes)) / Decimal(unit_minutes))


class HourlyFloorPricingStrategy(TariffUnitPricingStrategy):
    """
    Pricing for parking stays
    Same rounding as TariffUnitPricingStrategy but never below one unit
    """

    def __init__(self, minimum_units: int = 1):
        super().__init__()
        self.minimum_units = minimum_units

    def billable_units(self, elapsed_minutes: Union[int, float], unit_minutes: int) -> int:
        return max(self.minimum_units, super().billable_units(elapsed_minutes, unit_minutes))


# ============================================================================
# ALLOCATION STRATEGIES
# ============================================================================

class LowestNumberAllocationStrategy(AllocationStrategy):
    """
    Fill zones alphabetically, lowest space number first
    """

    def rank(self, candidates: Iterable[Space]) -> List[Space]:
        return sorted(candidates, key=lambda space: (space.zone_name or "", space.space_number))
