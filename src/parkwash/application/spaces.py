# File: src/parkwash/application/spaces.py
"""
Space Registry Application Service

Owns the authoritative status of every physical space.

Responsibilities:
1. Allocate and release spaces for stays
2. Apply the remaining legal status moves (hold, maintenance)
3. Administer zones and spaces (admin role only)
4. Report occupancy

Status changes go through SpaceRepository.transition_status, an atomic
compare-and-set, so no lock is held across a request. Layout changes take
"zone-name:<NAME>" while checking a zone name and "zone-spaces:<id>" while
numbering spaces.
"""

from typing import List, Optional, Union
import logging

from ..domain.aggregates import ZoneLayout, Occupancy
from ..domain.clock import Clock
from ..domain.exceptions import (
    NotFound, InvalidTransition, SpaceUnavailable, NoCapacity, DuplicateName
)
from ..domain.models import (
    Zone, Space, SpaceStatus, VehicleType, RequestContext, parse_enum
)
from ..domain.strategies import AllocationStrategy, LowestNumberAllocationStrategy
from ..infrastructure.locking import LockProvider
from ..infrastructure.repositories import UnitOfWork
from .dtos import ZoneCreateDTO, ZoneUpdateDTO


class SpaceRegistry:
    """
    Space allocation and layout service
    """

    def __init__(
        self,
        uow_factory,
        clock: Clock,
        lock_provider: LockProvider,
        allocation_strategy: Optional[AllocationStrategy] = None
    ):
        self.uow_factory = uow_factory
        self.clock = clock
        self.lock_provider = lock_provider
        self.allocation_strategy = allocation_strategy or LowestNumberAllocationStrategy()
        self.logger = logging.getLogger(self.__class__.__name__)

    # ------------------------------------------------------------------
    # Allocation
    # ------------------------------------------------------------------

    def allocate(
        self,
        vehicle_type: Union[VehicleType, str],
        zone_id: Optional[str] = None,
        preferred_space_id: Optional[str] = None
    ) -> Space:
        """
        Claim a space for a vehicle

        Use Case: Vehicle Entry
        1. With a preferred space: it must exist, be available, sit in an
           active zone and match the vehicle type
        2. Otherwise: first available compatible space in the zone (or in
           any active zone), ordered by zone name then space number
        3. Status moves available -> occupied by compare-and-set

        Returns: the claimed space, now occupied
        """
        with self.uow_factory() as uow:
            return self.allocate_in(uow, vehicle_type, zone_id, preferred_space_id)

    def allocate_in(
        self,
        uow: UnitOfWork,
        vehicle_type: Union[VehicleType, str],
        zone_id: Optional[str] = None,
        preferred_space_id: Optional[str] = None
    ) -> Space:
        """Allocate inside an open unit of work"""
        vehicle_type = parse_enum(VehicleType, vehicle_type)

        if preferred_space_id is not None:
            return self._claim_preferred(uow, vehicle_type, preferred_space_id)

        if zone_id is not None:
            zone = self._get_zone(uow, zone_id)
            if not zone.is_active:
                self.logger.warning(f"Zone {zone.name} is inactive, nothing to allocate")
                raise NoCapacity(
                    f"Zone {zone.name} is not accepting vehicles",
                    {"zone_id": zone_id, "vehicle_type": vehicle_type.value}
                )

        candidates = self.allocation_strategy.rank(uow.spaces.find_available(vehicle_type, zone_id))
        for space in candidates:
            if uow.spaces.transition_status(space.id, SpaceStatus.AVAILABLE, SpaceStatus.OCCUPIED):
                space.status = SpaceStatus.OCCUPIED
                self.logger.info(f"Allocated space {space.code} to {vehicle_type.value}")
                return space
            self.logger.debug(f"Space {space.code} taken concurrently, trying next")

        self.logger.warning(f"No free {vehicle_type.value} space (zone={zone_id})")
        raise NoCapacity(
            f"No available space for {vehicle_type}",
            {"vehicle_type": vehicle_type.value, "zone_id": zone_id}
        )

    def _claim_preferred(self, uow: UnitOfWork, vehicle_type: VehicleType, space_id: str) -> Space:
        space = self._get_space(uow, space_id)
        zone = self._get_zone(uow, space.zone_id)

        reason = None
        if not zone.is_active:
            reason = f"zone {zone.name} is inactive"
        elif space.vehicle_type != vehicle_type:
            reason = f"space takes {space.vehicle_type.value}, not {vehicle_type.value}"
        elif not space.is_available:
            reason = f"space is {space.status.value}"
        elif not uow.spaces.transition_status(space.id, SpaceStatus.AVAILABLE, SpaceStatus.OCCUPIED):
            reason = "space was taken concurrently"

        if reason is not None:
            self.logger.warning(f"Space {space.code} unavailable: {reason}")
            raise SpaceUnavailable(
                f"Space {space.code} is unavailable: {reason}",
                {"space_id": space_id, "status": space.status.value}
            )

        space.status = SpaceStatus.OCCUPIED
        self.logger.info(f"Allocated requested space {space.code} to {vehicle_type.value}")
        return space

    def release(self, space_id: str) -> Space:
        """occupied -> available"""
        with self.uow_factory() as uow:
            return self.release_in(uow, space_id)

    def release_in(self, uow: UnitOfWork, space_id: str) -> Space:
        space = self._transition(uow, space_id, SpaceStatus.OCCUPIED, SpaceStatus.AVAILABLE)
        self.logger.info(f"Released space {space.code}")
        return space

    def hold(self, space_id: str) -> Space:
        """available -> reserved"""
        with self.uow_factory() as uow:
            return self._transition(uow, space_id, SpaceStatus.AVAILABLE, SpaceStatus.RESERVED)

    def unhold(self, space_id: str) -> Space:
        """reserved -> available"""
        with self.uow_factory() as uow:
            return self._transition(uow, space_id, SpaceStatus.RESERVED, SpaceStatus.AVAILABLE)

    def set_maintenance(self, actor: RequestContext, space_id: str, enabled: bool) -> Space:
        actor.require_admin("change space maintenance")
        with self.uow_factory() as uow:
            if enabled:
                return self._transition(uow, space_id, SpaceStatus.AVAILABLE, SpaceStatus.MAINTENANCE)
            return self._transition(uow, space_id, SpaceStatus.MAINTENANCE, SpaceStatus.AVAILABLE)

    def _transition(
        self,
        uow: UnitOfWork,
        space_id: str,
        expected: SpaceStatus,
        target: SpaceStatus
    ) -> Space:
        space = self._get_space(uow, space_id)
        if space.status != expected or not uow.spaces.transition_status(space_id, expected, target):
            current = uow.spaces.get(space_id)
            self.logger.warning(f"Space {space.code}: {current.status.value} -> {target.value} rejected")
            raise InvalidTransition("Space", current.status, target)
        space.status = target
        self.logger.debug(f"Space {space.code}: {expected.value} -> {target.value}")
        return space

    # ------------------------------------------------------------------
    # Zone administration
    # ------------------------------------------------------------------

    def create_zone(self, actor: RequestContext, request: ZoneCreateDTO) -> Zone:
        actor.require_admin("create zones")
        zone = Zone(
            name=request.name,
            vehicle_type=request.vehicle_type,
            color=request.color,
            description=request.description,
            created_at=self.clock.now()
        )
        with self.lock_provider.lock(f"zone-name:{zone.name}"):
            with self.uow_factory() as uow:
                self._ensure_unique_name(uow, zone.name)
                uow.zones.add(zone)
        self.logger.info(f"Zone {zone.name} created for {zone.vehicle_type.value}")
        return zone

    def update_zone(self, actor: RequestContext, zone_id: str, request: ZoneUpdateDTO) -> Zone:
        actor.require_admin("update zones")
        new_name = request.name.strip().upper() if request.name is not None else None
        with self.lock_provider.lock(f"zone-name:{new_name or zone_id}"):
            with self.uow_factory() as uow:
                zone = self._get_zone(uow, zone_id)
                if new_name is not None and new_name != zone.name:
                    self._ensure_unique_name(uow, new_name)
                zone.revise(
                    name=request.name,
                    color=request.color,
                    description=request.description,
                    is_active=request.is_active
                )
                uow.zones.update(zone)
        self.logger.info(f"Zone {zone.name} updated")
        return zone

    def deactivate_zone(self, actor: RequestContext, zone_id: str) -> Zone:
        actor.require_admin("deactivate zones")
        with self.uow_factory() as uow:
            zone = self._get_zone(uow, zone_id)
            zone.revise(is_active=False)
            uow.zones.update(zone)
        self.logger.info(f"Zone {zone.name} deactivated")
        return zone

    def _ensure_unique_name(self, uow: UnitOfWork, name: str) -> None:
        if uow.zones.find_by_name(name) is not None:
            self.logger.warning(f"Zone name {name} already in use")
            raise DuplicateName(f"Zone '{name.strip().upper()}' already exists", {"name": name})

    # ------------------------------------------------------------------
    # Space administration
    # ------------------------------------------------------------------

    def bulk_create_spaces(self, actor: RequestContext, zone_id: str, count: int) -> List[Space]:
        """Append count spaces numbered after the zone's highest number"""
        actor.require_admin("create spaces")
        with self.lock_provider.lock(f"zone-spaces:{zone_id}"):
            with self.uow_factory() as uow:
                layout = self._layout(uow, zone_id)
                spaces = layout.add_spaces(count)
                for space in spaces:
                    space.created_at = self.clock.now()
                    uow.spaces.add(space)
        self.logger.info(f"Created {len(spaces)} space(s) in zone {layout.zone.name}")
        return spaces

    def create_space(self, actor: RequestContext, zone_id: str, space_number: Optional[int] = None) -> Space:
        actor.require_admin("create spaces")
        with self.lock_provider.lock(f"zone-spaces:{zone_id}"):
            with self.uow_factory() as uow:
                layout = self._layout(uow, zone_id)
                space = layout.add_space(space_number)
                space.created_at = self.clock.now()
                uow.spaces.add(space)
        self.logger.info(f"Created space {space.code}")
        return space

    def delete_space(self, actor: RequestContext, space_id: str) -> None:
        actor.require_admin("delete spaces")
        with self.uow_factory() as uow:
            space = self._get_space(uow, space_id)
            if space.status == SpaceStatus.OCCUPIED:
                self.logger.warning(f"Refusing to delete occupied space {space.code}")
                raise InvalidTransition(
                    "Space", space.status, "deleted",
                    message=f"Space {space.code} is occupied and cannot be deleted"
                )
            uow.spaces.delete(space_id)
        self.logger.info(f"Deleted space {space.code}")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def occupancy(self, zone_id: str) -> Occupancy:
        with self.uow_factory() as uow:
            return self._layout(uow, zone_id).occupancy()

    def occupancy_all(self) -> List[Occupancy]:
        """Occupancy of every active zone"""
        with self.uow_factory() as uow:
            return [
                ZoneLayout(zone, uow.spaces.list_by_zone(zone.id)).occupancy()
                for zone in uow.zones.list()
            ]

    def count_active_spaces(self) -> int:
        with self.uow_factory() as uow:
            return self.count_active_spaces_in(uow)

    def count_active_spaces_in(self, uow: UnitOfWork) -> int:
        return uow.spaces.count_in_active_zones()

    def list_zones(self, include_inactive: bool = False) -> List[Zone]:
        with self.uow_factory() as uow:
            return uow.zones.list(include_inactive=include_inactive)

    def list_spaces(self, zone_id: Optional[str] = None) -> List[Space]:
        with self.uow_factory() as uow:
            if zone_id is not None:
                self._get_zone(uow, zone_id)
                return uow.spaces.list_by_zone(zone_id)
            return self.allocation_strategy.rank(uow.spaces.get_all())

    def get_space(self, space_id: str) -> Space:
        with self.uow_factory() as uow:
            return self._get_space(uow, space_id)

    def get_zone(self, zone_id: str) -> Zone:
        with self.uow_factory() as uow:
            return self._get_zone(uow, zone_id)

    def _layout(self, uow: UnitOfWork, zone_id: str) -> ZoneLayout:
        zone = self._get_zone(uow, zone_id)
        return ZoneLayout(zone, uow.spaces.list_by_zone(zone_id))

    def _get_space(self, uow: UnitOfWork, space_id: str) -> Space:
        space = uow.spaces.get(space_id)
        if space is None:
            raise NotFound("Space", space_id)
        return space

    def _get_zone(self, uow: UnitOfWork, zone_id: str) -> Zone:
        zone = uow.zones.get(zone_id)
        if zone is None:
            raise NotFound("Zone", zone_id)
        return zone
