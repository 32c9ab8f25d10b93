# File: src/parkwash/application/stays.py
"""
Stay Ledger Application Service

A stay is one vehicle's continuous presence in the facility.

Responsibilities:
1. Open stays (parking or wash-only) with at most one active stay per plate
2. Close stays, releasing the space they hold
3. Compute duration, parking fee and the bill handed to payment
4. Stay history and the daily entry/exit activity

Concurrency:
- The plate check and the insert run under the "stay-plate:<PLATE>" lock
- Closing a stay runs under "stay:<id>" so a double exit reports AlreadyClosed
"""

from typing import List, Optional, Union
from datetime import date, datetime, time, timedelta
import logging

from ..domain.clock import Clock
from ..domain.exceptions import NotFound, DuplicateActiveStay
from ..domain.models import (
    Stay, Money, LicensePlate, VehicleType, WashStatus,
    VehicleEnteredEvent, VehicleExitedEvent, DomainEvent, parse_enum
)
from ..domain.strategies import PricingStrategy, HourlyFloorPricingStrategy
from ..infrastructure.config import FacilitySettings
from ..infrastructure.locking import LockProvider
from ..infrastructure.messaging import EventBus
from ..infrastructure.repositories import UnitOfWork
from .dtos import StayBillDTO, WashChargeDTO, MoneyDTO, HourlyStatDTO, ActivityDTO
from .spaces import SpaceRegistry
from .tariffs import TariffTable

MINUTES_PER_HOUR = 60


class StayLedger:
    """
    Entry/exit bookkeeping service
    """

    def __init__(
        self,
        uow_factory,
        clock: Clock,
        settings: FacilitySettings,
        tariffs: TariffTable,
        spaces: SpaceRegistry,
        lock_provider: LockProvider,
        event_bus: Optional[EventBus] = None,
        pricing_strategy: Optional[PricingStrategy] = None
    ):
        self.uow_factory = uow_factory
        self.clock = clock
        self.settings = settings
        self.tariffs = tariffs
        self.spaces = spaces
        self.lock_provider = lock_provider
        self.event_bus = event_bus
        self.pricing_strategy = pricing_strategy or HourlyFloorPricingStrategy()
        self.logger = logging.getLogger(self.__class__.__name__)

    # ------------------------------------------------------------------
    # Entry
    # ------------------------------------------------------------------

    def open_stay(
        self,
        plate: str,
        vehicle_type: Union[VehicleType, str],
        space_id: Optional[str] = None,
        zone_id: Optional[str] = None,
        auto_allocate: bool = False
    ) -> Stay:
        """
        Register a vehicle entering the facility

        Use Case: Vehicle Entry
        1. Normalize the plate and reject it if it already has an active stay
        2. Allocate the requested space, a space in the requested zone, or
           any compatible space when auto_allocate is set
        3. Record the stay with entry_time = now

        Returns: the open stay
        """
        wants_space = space_id is not None or zone_id is not None or auto_allocate
        return self._open(plate, vehicle_type, is_wash_only=False, allocate=wants_space,
                          space_id=space_id, zone_id=zone_id)

    def open_wash_only_stay(self, plate: str, vehicle_type: Union[VehicleType, str]) -> Stay:
        """
        Register a vehicle that only comes for a wash
        Holds no space unless wash_only_consumes_space is configured
        """
        return self._open(plate, vehicle_type, is_wash_only=True,
                          allocate=self.settings.wash_only_consumes_space)

    def _open(
        self,
        plate: str,
        vehicle_type: Union[VehicleType, str],
        is_wash_only: bool,
        allocate: bool,
        space_id: Optional[str] = None,
        zone_id: Optional[str] = None
    ) -> Stay:
        plate = LicensePlate(plate)
        vehicle_type = parse_enum(VehicleType, vehicle_type)

        with self.lock_provider.lock(f"stay-plate:{plate.value}"):
            with self.uow_factory() as uow:
                if uow.stays.find_active_by_plate(plate.value) is not None:
                    self.logger.warning(f"Rejected entry for {plate}: already inside")
                    raise DuplicateActiveStay(plate.value)

                space = None
                if allocate:
                    space = self.spaces.allocate_in(uow, vehicle_type, zone_id, space_id)

                now = self.clock.now()
                stay = Stay(
                    plate=plate,
                    vehicle_type=vehicle_type,
                    entry_time=now,
                    space_id=space.id if space else None,
                    is_wash_only=is_wash_only,
                    created_at=now
                )
                uow.stays.add(stay)

        where = f"space {space.code}" if space else "no space"
        kind = "wash-only entry" if is_wash_only else "entry"
        self.logger.info(f"{kind.capitalize()} for {plate} ({vehicle_type.value}) at {where}")
        self._publish(VehicleEnteredEvent(stay, self.clock.now()))
        return stay

    # ------------------------------------------------------------------
    # Exit
    # ------------------------------------------------------------------

    def close_stay(self, stay_id: str) -> Stay:
        """
        Register a vehicle leaving

        Use Case: Vehicle Exit
        1. Reject a stay that is already closed
        2. Set exit_time = now
        3. Release the space the stay held, if any
        """
        with self.lock_provider.lock(f"stay:{stay_id}"):
            with self.uow_factory() as uow:
                stay = self._get(uow, stay_id)
                stay.close(self.clock.now())
                uow.stays.update(stay)
                if stay.space_id is not None:
                    self.spaces.release_in(uow, stay.space_id)

        minutes = self.duration(stay)
        self.logger.info(f"Exit for {stay.plate} after {minutes} min")
        self._publish(VehicleExitedEvent(stay, minutes, self.clock.now()))
        return stay

    # ------------------------------------------------------------------
    # Duration, fee and bill
    # ------------------------------------------------------------------

    def duration(self, stay: Stay) -> int:
        """Whole minutes from entry to exit (or now), never negative"""
        return stay.elapsed_minutes(self.clock.now())

    def fee(self, stay: Stay) -> Money:
        """
        max(1, ceil(elapsed / 60)) x hourly rate
        Zero for a wash-only stay that holds no space
        """
        if self._parks_free(stay):
            return Money.zero(self.settings.currency)
        rate = self.tariffs.hourly_rate(stay.vehicle_type)
        return self._parking_fee(stay, rate)

    def _parks_free(self, stay: Stay) -> bool:
        return stay.is_wash_only and stay.space_id is None

    def _parking_fee(self, stay: Stay, rate: Money) -> Money:
        elapsed_minutes = stay.elapsed_seconds(self.clock.now()) / 60
        return self.pricing_strategy.calculate_fee(rate, MINUTES_PER_HOUR, elapsed_minutes)

    def bill(self, stay_id: str) -> StayBillDTO:
        """
        Summary for the payment collaborator
        Wash-only stays without a space pay for washes only
        """
        with self.uow_factory() as uow:
            stay = self._get(uow, stay_id)
            if self._parks_free(stay):
                parking_fee = Money.zero(self.settings.currency)
            else:
                parking_fee = self._parking_fee(stay, self.tariffs.hourly_rate_in(uow, stay.vehicle_type))
            completed = [
                wash for wash in uow.washes.list_by_stay(stay_id)
                if wash.status == WashStatus.COMPLETADO
            ]

        wash_total = Money.zero(parking_fee.currency)
        for wash in completed:
            wash_total = wash_total + wash.price
        total = parking_fee + wash_total

        return StayBillDTO(
            stay_id=stay.id,
            plate=stay.plate.value,
            vehicle_type=stay.vehicle_type.value,
            entry_time=stay.entry_time,
            exit_time=stay.exit_time,
            duration_minutes=self.duration(stay),
            parking_fee=MoneyDTO.from_money(parking_fee),
            washes=[
                WashChargeDTO(wash_id=w.id, wash_type=w.wash_type.value, amount=MoneyDTO.from_money(w.price))
                for w in completed
            ],
            wash_total=MoneyDTO.from_money(wash_total),
            total=MoneyDTO.from_money(total)
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_stay(self, stay_id: str) -> Stay:
        with self.uow_factory() as uow:
            return self._get(uow, stay_id)

    def active_stays(self) -> List[Stay]:
        with self.uow_factory() as uow:
            return uow.stays.list_active()

    def find_active(self, plate: str) -> Optional[Stay]:
        with self.uow_factory() as uow:
            return uow.stays.find_active_by_plate(LicensePlate(plate).value)

    def history(self, plate: Optional[str] = None) -> List[Stay]:
        """Open and closed stays, latest first, optionally by plate fragment"""
        with self.uow_factory() as uow:
            return uow.stays.search(plate)

    def stays_between(self, start: datetime, end: datetime) -> List[Stay]:
        with self.uow_factory() as uow:
            return uow.stays.list_between(start, end)

    def stays_on(self, day: date) -> List[Stay]:
        """Stays that entered or left on day"""
        start = datetime.combine(day, time.min)
        return self.stays_between(start, start + timedelta(days=1))

    def hourly_stats(self, day: date) -> List[HourlyStatDTO]:
        """Entries and exits per hour of day, all 24 hours"""
        hours = [HourlyStatDTO(hour=hour) for hour in range(24)]
        for stay in self.stays_on(day):
            if stay.entry_time.date() == day:
                hours[stay.entry_time.hour].entries += 1
            if stay.exit_time is not None and stay.exit_time.date() == day:
                hours[stay.exit_time.hour].exits += 1
        return hours

    def recent_activity(self, day: date, limit: int = 10) -> List[ActivityDTO]:
        """Entries and exits of day, newest first"""
        activity = []
        for stay in self.stays_on(day):
            moments = [("entry", stay.entry_time), ("exit", stay.exit_time)]
            for activity_type, moment in moments:
                if moment is not None and moment.date() == day:
                    activity.append(ActivityDTO(
                        stay_id=stay.id,
                        plate=stay.plate.value,
                        vehicle_type=stay.vehicle_type.value,
                        activity_type=activity_type,
                        occurred_at=moment
                    ))
        activity.sort(key=lambda item: item.occurred_at, reverse=True)
        return activity[:limit]

    def _get(self, uow: UnitOfWork, stay_id: str) -> Stay:
        stay = uow.stays.get(stay_id)
        if stay is None:
            raise NotFound("Stay", stay_id)
        return stay

    def _publish(self, event: DomainEvent) -> None:
        if self.event_bus is not None:
            self.event_bus.publish(event)
