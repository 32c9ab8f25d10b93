# File: src/parkwash/domain/aggregates.py
"""
Aggregates for the ParkWash Engine
Following Domain-Driven Design (DDD) Aggregate Pattern

Aggregates:
1. ZoneLayout - a zone together with the spaces it owns

Key Concepts:
- Space numbering rules are enforced through the layout, not per space
- Occupancy figures are derived, never stored
"""

from dataclasses import dataclass
from typing import List, Optional, Dict, Any, Iterable
import logging

from .exceptions import DuplicateName, ValidationError
from .models import Zone, Space, SpaceStatus, VehicleType


@dataclass(frozen=True)
class Occupancy:
    """
    Value Object: Occupancy snapshot of one zone
    """
    zone_id: str
    zone_name: str
    total: int
    occupied: int
    available: int
    reserved: int
    maintenance: int

    @property
    def percentage(self) -> float:
        """Occupied share in percent, 0 for an empty zone"""
        if self.total == 0:
            return 0.0
        return round(self.occupied / self.total * 100, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "zone_id": self.zone_id,
            "zone_name": self.zone_name,
            "total": self.total,
            "occupied": self.occupied,
            "available": self.available,
            "reserved": self.reserved,
            "maintenance": self.maintenance,
            "percentage": self.percentage
        }


class ZoneLayout:
    """
    Aggregate Root: a zone and its spaces

    Responsibilities:
    - Hand out space numbers without collisions
    - Stamp new spaces with the zone's vehicle type
    - Summarize occupancy
    """

    def __init__(self, zone: Zone, spaces: Optional[Iterable[Space]] = None):
        self.zone = zone
        self._spaces: Dict[int, Space] = {}
        for space in spaces or []:
            self._spaces[space.space_number] = space
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def spaces(self) -> List[Space]:
        return [self._spaces[number] for number in sorted(self._spaces)]

    @property
    def total_spaces(self) -> int:
        return len(self._spaces)

    def next_space_number(self) -> int:
        return max(self._spaces, default=0) + 1

    def has_space_number(self, space_number: int) -> bool:
        return space_number in self._spaces

    def add_space(self, space_number: Optional[int] = None) -> Space:
        """Create a new available space in this zone"""
        number = space_number if space_number is not None else self.next_space_number()
        if number in self._spaces:
            raise DuplicateName(
                f"Space {self.zone.name}-{number:02d} already exists",
                {"zone_id": self.zone.id, "space_number": number}
            )
        space = Space(
            zone_id=self.zone.id,
            space_number=number,
            vehicle_type=self.zone.vehicle_type,
            status=SpaceStatus.AVAILABLE,
            zone_name=self.zone.name
        )
        self._spaces[number] = space
        self._logger.debug(f"Added space {space.code}")
        return space

    def add_spaces(self, count: int) -> List[Space]:
        """Append count spaces numbered after the highest existing one"""
        if count < 1:
            raise ValidationError("Space count must be at least 1", {"field": "count", "value": count})
        return [self.add_space() for _ in range(count)]

    def accepts(self, vehicle_type: VehicleType) -> bool:
        return self.zone.is_active and self.zone.vehicle_type == vehicle_type

    def occupancy(self) -> Occupancy:
        counts = {status: 0 for status in SpaceStatus}
        for space in self._spaces.values():
            counts[space.status] += 1
        return Occupancy(
            zone_id=self.zone.id,
            zone_name=self.zone.name,
            total=len(self._spaces),
            occupied=counts[SpaceStatus.OCCUPIED],
            available=counts[SpaceStatus.AVAILABLE],
            reserved=counts[SpaceStatus.RESERVED],
            maintenance=counts[SpaceStatus.MAINTENANCE]
        )
