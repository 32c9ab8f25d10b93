# File: src/parkwash/application/washes.py
"""
Wash Queue Application Service

Lifecycle of a wash item:
    pendiente -> en_progreso -> completado
    pendiente | en_progreso -> cancelado

The price is captured when the item is queued. Completing an item raises
WashCompletedEvent carrying that snapshot; it is never recomputed.

Every transition runs under the "wash:<id>" lock, so of a racing complete
and cancel only one succeeds.
"""

from typing import List, Optional, Union
import logging

from ..domain.clock import Clock
from ..domain.exceptions import NotFound, ValidationError
from ..domain.models import (
    WashItem, WashStatus, WashType, WashCompletedEvent, parse_enum
)
from ..infrastructure.locking import LockProvider
from ..infrastructure.messaging import EventBus
from ..infrastructure.repositories import UnitOfWork
from .tariffs import TariffTable


class WashQueue:
    """
    Wash service queue
    """

    def __init__(
        self,
        uow_factory,
        clock: Clock,
        tariffs: TariffTable,
        lock_provider: LockProvider,
        event_bus: Optional[EventBus] = None
    ):
        self.uow_factory = uow_factory
        self.clock = clock
        self.tariffs = tariffs
        self.lock_provider = lock_provider
        self.event_bus = event_bus
        self.logger = logging.getLogger(self.__class__.__name__)

    def enqueue(self, stay_id: str, wash_type: Union[WashType, str]) -> WashItem:
        """
        Queue a wash for a vehicle that is on site

        Use Case: Wash Request
        1. The stay must exist and still be active
        2. Snapshot the price for the stay's vehicle type
        3. Queue the item as pendiente
        """
        with self.uow_factory() as uow:
            stay = uow.stays.get(stay_id)
            if stay is None or not stay.is_active:
                self.logger.warning(f"Rejected wash for stay {stay_id}: not an active stay")
                raise ValidationError(
                    f"Stay {stay_id} is not an active stay",
                    {"stay_id": stay_id}
                )

            price = self.tariffs.resolve_wash_price(stay.vehicle_type, wash_type)
            wash = WashItem(
                stay_id=stay.id,
                vehicle_type=stay.vehicle_type,
                wash_type=wash_type,
                price=price,
                created_at=self.clock.now()
            )
            uow.washes.add(wash)

        self.logger.info(f"Queued {wash.wash_type.value} wash for {stay.plate} at {price.format()}")
        return wash

    def start(self, wash_id: str) -> WashItem:
        with self.lock_provider.lock(f"wash:{wash_id}"):
            with self.uow_factory() as uow:
                wash = self._get(uow, wash_id)
                wash.start(self.clock.now())
                uow.washes.update(wash)
        self.logger.info(f"Wash {wash_id} started")
        return wash

    def complete(self, wash_id: str) -> WashItem:
        with self.lock_provider.lock(f"wash:{wash_id}"):
            with self.uow_factory() as uow:
                wash = self._get(uow, wash_id)
                amount = wash.complete(self.clock.now())
                uow.washes.update(wash)
        self.logger.info(f"Wash {wash_id} completed, billable {amount.format()}")
        if self.event_bus is not None:
            self.event_bus.publish(WashCompletedEvent(wash, self.clock.now()))
        return wash

    def cancel(self, wash_id: str) -> WashItem:
        with self.lock_provider.lock(f"wash:{wash_id}"):
            with self.uow_factory() as uow:
                wash = self._get(uow, wash_id)
                wash.cancel(self.clock.now())
                uow.washes.update(wash)
        self.logger.info(f"Wash {wash_id} cancelled")
        return wash

    # Queries

    def pending(self) -> List[WashItem]:
        return self.list(WashStatus.PENDIENTE)

    def in_progress(self) -> List[WashItem]:
        return self.list(WashStatus.EN_PROGRESO)

    def list(self, status: Optional[Union[WashStatus, str]] = None) -> List[WashItem]:
        """Items in FIFO order, optionally filtered by status"""
        status = parse_enum(WashStatus, status) if status is not None else None
        with self.uow_factory() as uow:
            return uow.washes.list(status)

    def for_stay(self, stay_id: str) -> List[WashItem]:
        with self.uow_factory() as uow:
            return uow.washes.list_by_stay(stay_id)

    def get(self, wash_id: str) -> WashItem:
        with self.uow_factory() as uow:
            return self._get(uow, wash_id)

    def _get(self, uow: UnitOfWork, wash_id: str) -> WashItem:
        wash = uow.washes.get(wash_id)
        if wash is None:
            raise NotFound("WashItem", wash_id)
        return wash
