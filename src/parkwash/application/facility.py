# File: src/parkwash/application/facility.py
"""
Facility Application Service

The single request/response boundary of the engine. It wires the five
component services together and converts their results to DTOs.

Responsibilities:
1. Entry, exit and payment summaries
2. Wash lifecycle
3. Reservations
4. Administration of zones, spaces and tariffs
5. Occupancy, activity and dashboard queries

Every engine error propagates as a FacilityError subclass; callers turn it
into a response body with ErrorResponseDTO.from_exception.
"""

from typing import Iterator, List, Optional, Union
from datetime import date
import logging

from ..domain.clock import Clock
from ..domain.exceptions import Forbidden
from ..domain.models import RequestContext, Role, VehicleType, ReservationType, ReservationStatus
from .dtos import (
    StayEntryRequestDTO, WashEntryRequestDTO, ReservationRequestDTO,
    ZoneCreateDTO, ZoneUpdateDTO, TariffCreateDTO, TariffUpdateDTO,
    StayDTO, WashItemDTO, WashEntryDTO, ReservationDTO, ZoneDTO, SpaceDTO, TariffDTO,
    MoneyDTO, StayBillDTO, FeeQuoteDTO, TimeSlotDTO, AgendaDTO, OccupancyDTO, DashboardDTO,
    HourlyStatDTO, ActivityDTO
)
from .reservations import ReservationScheduler, parse_date
from .spaces import SpaceRegistry
from .stays import StayLedger
from .tariffs import TariffTable
from .washes import WashQueue


class FacilityService:
    """
    Facade over the Tariff Table, Space Registry, Stay Ledger, Wash Queue
    and Reservation Scheduler
    """

    def __init__(
        self,
        clock: Clock,
        tariffs: TariffTable,
        spaces: SpaceRegistry,
        stays: StayLedger,
        washes: WashQueue,
        reservations: ReservationScheduler
    ):
        self.clock = clock
        self.tariffs = tariffs
        self.spaces = spaces
        self.stays = stays
        self.washes = washes
        self.reservations = reservations
        self.logger = logging.getLogger(self.__class__.__name__)

    # ========================================================================
    # ENTRY / EXIT / PAYMENT
    # ========================================================================

    def open_stay(self, request: StayEntryRequestDTO) -> StayDTO:
        stay = self.stays.open_stay(
            request.plate,
            request.vehicle_type,
            space_id=request.space_id,
            zone_id=request.zone_id,
            auto_allocate=request.auto_allocate
        )
        return StayDTO.from_domain(stay)

    def open_wash_only_stay(self, request: WashEntryRequestDTO) -> WashEntryDTO:
        """
        Wash-only entry: open the anchoring stay, then queue the wash
        The wash price is resolved first so an unknown wash type opens nothing
        """
        self.tariffs.resolve_wash_price(request.vehicle_type, request.wash_type)
        stay = self.stays.open_wash_only_stay(request.plate, request.vehicle_type)
        wash = self.washes.enqueue(stay.id, request.wash_type)
        return WashEntryDTO(stay=StayDTO.from_domain(stay), wash=WashItemDTO.from_domain(wash))

    def close_stay(self, stay_id: str) -> StayBillDTO:
        """Close the stay and return its bill"""
        self.stays.close_stay(stay_id)
        return self.stays.bill(stay_id)

    def fee(self, stay_id: str) -> MoneyDTO:
        return MoneyDTO.from_money(self.stays.fee(self.stays.get_stay(stay_id)))

    def bill(self, stay_id: str) -> StayBillDTO:
        return self.stays.bill(stay_id)

    def quote_fee(self, vehicle_type: Union[VehicleType, str], minutes: int) -> FeeQuoteDTO:
        return self.tariffs.quote(vehicle_type, minutes)

    def active_stays(self) -> List[StayDTO]:
        return [StayDTO.from_domain(stay) for stay in self.stays.active_stays()]

    def find_active_stay(self, plate: str) -> Optional[StayDTO]:
        stay = self.stays.find_active(plate)
        return StayDTO.from_domain(stay) if stay else None

    def stay_history(self, plate: Optional[str] = None) -> List[StayDTO]:
        return [StayDTO.from_domain(stay) for stay in self.stays.history(plate)]

    # ========================================================================
    # WASHES
    # ========================================================================

    def enqueue_wash(self, stay_id: str, wash_type: str) -> WashItemDTO:
        return WashItemDTO.from_domain(self.washes.enqueue(stay_id, wash_type))

    def start_wash(self, wash_id: str) -> WashItemDTO:
        return WashItemDTO.from_domain(self.washes.start(wash_id))

    def complete_wash(self, wash_id: str) -> WashItemDTO:
        return WashItemDTO.from_domain(self.washes.complete(wash_id))

    def cancel_wash(self, wash_id: str) -> WashItemDTO:
        return WashItemDTO.from_domain(self.washes.cancel(wash_id))

    def pending_washes(self) -> List[WashItemDTO]:
        return [WashItemDTO.from_domain(w) for w in self.washes.pending()]

    def washes_in_progress(self) -> List[WashItemDTO]:
        return [WashItemDTO.from_domain(w) for w in self.washes.in_progress()]

    # ========================================================================
    # RESERVATIONS
    # ========================================================================

    def available_slots(
        self,
        reservation_date: Union[date, str],
        service_type: Union[ReservationType, str]
    ) -> Iterator[TimeSlotDTO]:
        return self.reservations.available_slots(reservation_date, service_type)

    def create_reservation(self, actor: RequestContext, request: ReservationRequestDTO) -> ReservationDTO:
        """Clients may only book for themselves"""
        if actor.role == Role.CLIENTE and request.client_id != actor.user_id:
            raise Forbidden(
                "Clients can only book reservations for themselves",
                {"user_id": actor.user_id, "client_id": request.client_id}
            )
        return ReservationDTO.from_domain(self.reservations.create(request))

    def advance_reservation(
        self,
        actor: RequestContext,
        reservation_id: str,
        next_status: Union[ReservationStatus, str]
    ) -> ReservationDTO:
        """Staff only; clients can cancel but not advance"""
        if actor.role == Role.CLIENTE:
            raise Forbidden(
                "Clients cannot change reservation status",
                {"user_id": actor.user_id, "reservation_id": reservation_id}
            )
        return ReservationDTO.from_domain(self.reservations.advance_status(reservation_id, next_status))

    def cancel_reservation(self, actor: RequestContext, reservation_id: str) -> ReservationDTO:
        if actor.role == Role.CLIENTE:
            reservation = self.reservations.get(reservation_id)
            if reservation.client_id != actor.user_id:
                raise Forbidden(
                    "Clients can only cancel their own reservations",
                    {"user_id": actor.user_id, "reservation_id": reservation_id}
                )
        return ReservationDTO.from_domain(self.reservations.cancel(reservation_id))

    def agenda(self, reservation_date: Union[date, str]) -> AgendaDTO:
        return self.reservations.agenda(reservation_date)

    def client_reservations(self, actor: RequestContext, client_id: Optional[str] = None) -> List[ReservationDTO]:
        """A client sees their own bookings; staff may look up any client"""
        client_id = client_id or actor.user_id
        if actor.role == Role.CLIENTE and client_id != actor.user_id:
            raise Forbidden(
                "Clients can only list their own reservations",
                {"user_id": actor.user_id, "client_id": client_id}
            )
        return [ReservationDTO.from_domain(r) for r in self.reservations.for_client(client_id)]

    # ========================================================================
    # ADMINISTRATION
    # ========================================================================

    def create_zone(self, actor: RequestContext, request: ZoneCreateDTO) -> ZoneDTO:
        return ZoneDTO.from_domain(self.spaces.create_zone(actor, request))

    def update_zone(self, actor: RequestContext, zone_id: str, request: ZoneUpdateDTO) -> ZoneDTO:
        zone = self.spaces.update_zone(actor, zone_id, request)
        return ZoneDTO.from_domain(zone, self.spaces.occupancy(zone.id).total)

    def deactivate_zone(self, actor: RequestContext, zone_id: str) -> ZoneDTO:
        zone = self.spaces.deactivate_zone(actor, zone_id)
        return ZoneDTO.from_domain(zone, self.spaces.occupancy(zone.id).total)

    def list_zones(self, include_inactive: bool = False) -> List[ZoneDTO]:
        return [
            ZoneDTO.from_domain(zone, self.spaces.occupancy(zone.id).total)
            for zone in self.spaces.list_zones(include_inactive)
        ]

    def bulk_create_spaces(self, actor: RequestContext, zone_id: str, count: int) -> List[SpaceDTO]:
        return [SpaceDTO.from_domain(s) for s in self.spaces.bulk_create_spaces(actor, zone_id, count)]

    def create_space(self, actor: RequestContext, zone_id: str, space_number: Optional[int] = None) -> SpaceDTO:
        return SpaceDTO.from_domain(self.spaces.create_space(actor, zone_id, space_number))

    def delete_space(self, actor: RequestContext, space_id: str) -> None:
        self.spaces.delete_space(actor, space_id)

    def set_space_maintenance(self, actor: RequestContext, space_id: str, enabled: bool) -> SpaceDTO:
        return SpaceDTO.from_domain(self.spaces.set_maintenance(actor, space_id, enabled))

    def list_spaces(self, zone_id: Optional[str] = None) -> List[SpaceDTO]:
        return [SpaceDTO.from_domain(s) for s in self.spaces.list_spaces(zone_id)]

    def create_tariff(self, actor: RequestContext, request: TariffCreateDTO) -> TariffDTO:
        return TariffDTO.from_domain(self.tariffs.create_tariff(actor, request))

    def update_tariff(self, actor: RequestContext, tariff_id: str, request: TariffUpdateDTO) -> TariffDTO:
        return TariffDTO.from_domain(self.tariffs.update_tariff(actor, tariff_id, request))

    def delete_tariff(self, actor: RequestContext, tariff_id: str) -> None:
        self.tariffs.delete_tariff(actor, tariff_id)

    def list_tariffs(
        self,
        vehicle_type: Optional[str] = None,
        service_type: Optional[str] = None
    ) -> List[TariffDTO]:
        return [TariffDTO.from_domain(t) for t in self.tariffs.list_tariffs(vehicle_type, service_type)]

    def seed_default_tariffs(self, actor: RequestContext) -> List[TariffDTO]:
        return [TariffDTO.from_domain(t) for t in self.tariffs.seed_defaults(actor)]

    # ========================================================================
    # QUERIES
    # ========================================================================

    def occupancy(self, zone_id: Optional[str] = None) -> List[OccupancyDTO]:
        """One zone, or every active zone when zone_id is omitted"""
        if zone_id is not None:
            return [OccupancyDTO.from_occupancy(self.spaces.occupancy(zone_id))]
        return [OccupancyDTO.from_occupancy(o) for o in self.spaces.occupancy_all()]

    def hourly_stats(self, day: Optional[Union[date, str]] = None) -> List[HourlyStatDTO]:
        """Entries and exits per hour, today by default"""
        return self.stays.hourly_stats(parse_date(day) if day is not None else self.clock.now().date())

    def recent_activity(self, limit: int = 10) -> List[ActivityDTO]:
        return self.stays.recent_activity(self.clock.now().date(), limit)

    def dashboard(self) -> DashboardDTO:
        now = self.clock.now()
        zones = self.occupancy()
        total = sum(z.total for z in zones)
        occupied = sum(z.occupied for z in zones)
        today = now.date()
        agenda = self.reservations.agenda(today)
        entered_today = [s for s in self.stays.stays_on(today) if s.entry_time.date() == today]

        return DashboardDTO(
            timestamp=now,
            zones=zones,
            total_spaces=total,
            occupied_spaces=occupied,
            available_spaces=sum(z.available for z in zones),
            occupancy_percentage=round(occupied / total * 100, 2) if total else 0.0,
            active_stays=len(self.stays.active_stays()),
            pending_washes=len(self.washes.pending()),
            washes_in_progress=len(self.washes.in_progress()),
            reservations_today=agenda.total_parking + agenda.total_wash,
            vehicles_today=len(entered_today),
            hourly=self.stays.hourly_stats(today),
            recent_activity=self.stays.recent_activity(today)
        )
