# File: tests/fixtures.py
"""
Shared builders for the ParkWash test suites

Every builder returns a fully wired engine on in-memory storage with a
FixedClock, so tests control time explicitly.
"""

from datetime import datetime, date, time
from decimal import Decimal
from typing import List, Optional

from parkwash.application.dtos import (
    ZoneCreateDTO, TariffCreateDTO, ReservationRequestDTO, StayEntryRequestDTO
)
from parkwash.domain.clock import FixedClock
from parkwash.domain.models import RequestContext, Role
from parkwash.infrastructure.config import FacilitySettings
from parkwash.infrastructure.factories import ServiceFactory
from parkwash.infrastructure.messaging import EventBus, ALL_EVENTS

START = datetime(2024, 6, 1, 8, 0)
BOOKING_DAY = date(2024, 6, 1)

ADMIN = RequestContext("admin-1", Role.ADMIN)
OPERATOR = RequestContext("operador-1", Role.OPERADOR)
CLIENT = RequestContext("cliente-1", Role.CLIENTE)


class EventRecorder:
    """Subscribes to every event on a bus and keeps them in order"""

    def __init__(self, event_bus: EventBus):
        self.events = []
        event_bus.subscribe(ALL_EVENTS, self.events.append)

    def types(self) -> List[str]:
        return [event.event_type for event in self.events]


class FacilityHarness:
    """An engine plus the clock, bus and recorder it was built with"""

    def __init__(self, settings: Optional[FacilitySettings] = None, start: datetime = START):
        self.settings = settings or FacilitySettings(database_url="memory://")
        self.clock = FixedClock(start)
        self.event_bus = EventBus()
        self.recorder = EventRecorder(self.event_bus)
        self.factory = ServiceFactory.create_in_memory(
            self.settings, clock=self.clock, event_bus=self.event_bus
        )
        self.facility = self.factory.create_facility_service()

        self.tariffs = self.facility.tariffs
        self.spaces = self.facility.spaces
        self.stays = self.facility.stays
        self.washes = self.facility.washes
        self.reservations = self.facility.reservations

    def add_zone(self, name: str = "A", vehicle_type: str = "carro", spaces: int = 1):
        zone = self.spaces.create_zone(ADMIN, ZoneCreateDTO(name=name, vehicle_type=vehicle_type))
        if spaces:
            self.spaces.bulk_create_spaces(ADMIN, zone.id, spaces)
        return zone

    def add_hourly_tariff(self, vehicle_type: str = "carro", price: str = "5000", name: Optional[str] = None):
        return self.tariffs.create_tariff(
            ADMIN,
            TariffCreateDTO(
                name=name or f"Hora {vehicle_type}",
                vehicle_type=vehicle_type,
                service_type="hora",
                price=Decimal(price),
                time_unit_minutes=60
            )
        )

    def park(self, plate: str, vehicle_type: str = "carro", **kwargs):
        return self.facility.open_stay(StayEntryRequestDTO(plate=plate, vehicle_type=vehicle_type, **kwargs))


def reservation_request(
    start: time,
    end: time,
    reservation_type: str = "parqueadero",
    plate: str = "ABC123",
    client_id: str = "cliente-1",
    wash_type: Optional[str] = None,
    reservation_date: date = BOOKING_DAY
) -> ReservationRequestDTO:
    return ReservationRequestDTO(
        client_id=client_id,
        reservation_type=reservation_type,
        vehicle_type="carro",
        vehicle_plate=plate,
        wash_type=wash_type,
        reservation_date=reservation_date,
        start_time=start,
        end_time=end
    )
