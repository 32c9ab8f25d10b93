# File: src/parkwash/application/reservations.py
"""
Reservation Scheduler Application Service

Arbitrates future bookings against per-service capacity.

Responsibilities:
1. Publish the slot calendar of a day with availability per slot
2. Book reservations without ever exceeding capacity
3. Move reservations through their lifecycle
4. Daily agenda and per-client listings

Capacity:
- lavado: the wash_bays setting
- parqueadero: parking_reservation_capacity, or the number of spaces in
  active zones when that setting is unset

Two windows [s1, e1) and [s2, e2) overlap when s1 < e2 and s2 < e1.

A booking is accepted when every calendar slot it covers still shows a free
place, the same count available_slots reports.
"""

from typing import Iterator, List, Optional, Union
from datetime import date, datetime, timedelta
import logging

from ..domain.clock import Clock
from ..domain.exceptions import (
    NotFound, ValidationError, SlotNoLongerAvailable, DuplicateReservation
)
from ..domain.models import (
    Reservation, ReservationStatus, ReservationType, TimeWindow,
    ReservationBookedEvent, ReservationStatusChangedEvent, DomainEvent, parse_enum
)
from ..infrastructure.config import FacilitySettings
from ..infrastructure.locking import LockProvider
from ..infrastructure.messaging import EventBus
from ..infrastructure.repositories import UnitOfWork
from .dtos import ReservationRequestDTO, TimeSlotDTO, AgendaDTO, ReservationDTO
from .spaces import SpaceRegistry


def parse_date(value: Union[date, str]) -> date:
    """Accept a date or an ISO YYYY-MM-DD string"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD", {"field": "date"})


class ReservationScheduler:
    """
    Reservation booking service
    """

    def __init__(
        self,
        uow_factory,
        clock: Clock,
        settings: FacilitySettings,
        spaces: SpaceRegistry,
        lock_provider: LockProvider,
        event_bus: Optional[EventBus] = None
    ):
        self.uow_factory = uow_factory
        self.clock = clock
        self.settings = settings
        self.spaces = spaces
        self.lock_provider = lock_provider
        self.event_bus = event_bus
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def business_hours(self) -> TimeWindow:
        return TimeWindow(self.settings.opening_time, self.settings.closing_time)

    def capacity(self, reservation_type: Union[ReservationType, str]) -> int:
        with self.uow_factory() as uow:
            return self._capacity_in(uow, parse_enum(ReservationType, reservation_type))

    def _capacity_in(self, uow: UnitOfWork, reservation_type: ReservationType) -> int:
        if reservation_type == ReservationType.LAVADO:
            return self.settings.wash_bays
        if self.settings.parking_reservation_capacity is not None:
            return self.settings.parking_reservation_capacity
        return self.spaces.count_active_spaces_in(uow)

    # ------------------------------------------------------------------
    # Slot calendar
    # ------------------------------------------------------------------

    def available_slots(
        self,
        reservation_date: Union[date, str],
        service_type: Union[ReservationType, str]
    ) -> Iterator[TimeSlotDTO]:
        """
        Slots covering business hours for one day and service
        Each slot reports how many live reservations overlap it
        """
        reservation_date = parse_date(reservation_date)
        service_type = parse_enum(ReservationType, service_type)

        with self.uow_factory() as uow:
            capacity = self._capacity_in(uow, service_type)
            booked = [
                r.window for r in uow.reservations.list_by_date(reservation_date, service_type)
                if r.holds_capacity
            ]

        return self._slots(reservation_date, booked, capacity)

    def _slot_windows(self, day: date) -> Iterator[TimeWindow]:
        step = timedelta(minutes=self.settings.slot_minutes)
        cursor = datetime.combine(day, self.settings.opening_time)
        closing = datetime.combine(day, self.settings.closing_time)

        while cursor < closing:
            slot_end = min(cursor + step, closing)
            yield TimeWindow(cursor.time(), slot_end.time())
            cursor = slot_end

    def _slots(self, day: date, booked: List[TimeWindow], capacity: int) -> Iterator[TimeSlotDTO]:
        for window in self._slot_windows(day):
            count = sum(1 for other in booked if window.overlaps(other))
            yield TimeSlotDTO(
                start_time=window.start,
                end_time=window.end,
                is_available=count < capacity,
                booked=count,
                capacity=capacity
            )

    def _peak_load(self, day: date, window: TimeWindow, booked: List[TimeWindow]) -> int:
        """Highest booked count among the slots that window overlaps"""
        return max(
            (
                sum(1 for other in booked if slot.overlaps(other))
                for slot in self._slot_windows(day) if slot.overlaps(window)
            ),
            default=0
        )

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    def create(self, request: ReservationRequestDTO) -> Reservation:
        """
        Book a reservation

        Use Case: Reservation Booking
        1. Validate plate, window, business hours and wash type rules
        2. Under the (date, service) lock, reject an overlapping booking for
           the same vehicle
        3. Refuse when any slot the window covers is already at capacity
        4. Store the reservation as pendiente

        Returns: the new reservation
        """
        now = self.clock.now()
        reservation = Reservation(
            client_id=request.client_id,
            reservation_type=request.reservation_type,
            vehicle_type=request.vehicle_type,
            vehicle_plate=request.vehicle_plate,
            wash_type=request.wash_type,
            reservation_date=request.reservation_date,
            start_time=request.start_time,
            end_time=request.end_time,
            notes=request.notes,
            created_at=now
        )

        if not reservation.window.is_within(self.business_hours):
            raise ValidationError(
                f"Window {reservation.window} is outside business hours {self.business_hours}",
                {"start_time": reservation.start_time.isoformat(), "end_time": reservation.end_time.isoformat()}
            )

        key = f"reservation:{reservation.reservation_date.isoformat()}:{reservation.reservation_type.value}"
        with self.lock_provider.lock(key):
            with self.uow_factory() as uow:
                live = [
                    r for r in uow.reservations.list_by_date(
                        reservation.reservation_date, reservation.reservation_type
                    )
                    if r.holds_capacity and r.window.overlaps(reservation.window)
                ]

                if any(r.vehicle_plate == reservation.vehicle_plate for r in live):
                    self.logger.warning(
                        f"Duplicate booking for {reservation.vehicle_plate} on {reservation.reservation_date}"
                    )
                    raise DuplicateReservation(
                        f"Vehicle {reservation.vehicle_plate} already has an overlapping reservation",
                        {"vehicle_plate": reservation.vehicle_plate.value}
                    )

                capacity = self._capacity_in(uow, reservation.reservation_type)
                load = self._peak_load(reservation.reservation_date, reservation.window, [r.window for r in live])
                if load >= capacity:
                    self.logger.warning(
                        f"No {reservation.reservation_type.value} capacity left on "
                        f"{reservation.reservation_date} {reservation.window} ({load}/{capacity})"
                    )
                    raise SlotNoLongerAvailable(
                        f"The {reservation.window} slot is no longer available",
                        {
                            "reservation_date": reservation.reservation_date.isoformat(),
                            "window": str(reservation.window),
                            "capacity": capacity
                        }
                    )

                uow.reservations.add(reservation)

        self.logger.info(
            f"Booked {reservation.reservation_type.value} for {reservation.vehicle_plate} on "
            f"{reservation.reservation_date} {reservation.window}"
        )
        self._publish(ReservationBookedEvent(reservation, now))
        return reservation

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def advance_status(self, reservation_id: str, next_status: Union[ReservationStatus, str]) -> Reservation:
        """Only the next forward step, or cancelado from a non-terminal state"""
        with self.lock_provider.lock(f"reservation-status:{reservation_id}"):
            with self.uow_factory() as uow:
                reservation = self._get(uow, reservation_id)
                previous = reservation.status
                reservation.advance(next_status, self.clock.now())
                uow.reservations.update(reservation)

        self.logger.info(f"Reservation {reservation_id}: {previous.value} -> {reservation.status.value}")
        self._publish(ReservationStatusChangedEvent(reservation, previous, self.clock.now()))
        return reservation

    def cancel(self, reservation_id: str) -> Reservation:
        return self.advance_status(reservation_id, ReservationStatus.CANCELADO)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def agenda(self, reservation_date: Union[date, str]) -> AgendaDTO:
        """All reservations of the day by start time; totals count live ones"""
        reservation_date = parse_date(reservation_date)
        with self.uow_factory() as uow:
            reservations = uow.reservations.list_by_date(reservation_date)

        live = [r for r in reservations if r.holds_capacity]
        return AgendaDTO(
            reservation_date=reservation_date,
            reservations=[ReservationDTO.from_domain(r) for r in reservations],
            total_parking=sum(1 for r in live if r.reservation_type == ReservationType.PARQUEADERO),
            total_wash=sum(1 for r in live if r.reservation_type == ReservationType.LAVADO)
        )

    def for_client(self, client_id: str) -> List[Reservation]:
        with self.uow_factory() as uow:
            return uow.reservations.list_by_client(client_id)

    def get(self, reservation_id: str) -> Reservation:
        with self.uow_factory() as uow:
            return self._get(uow, reservation_id)

    def _get(self, uow: UnitOfWork, reservation_id: str) -> Reservation:
        reservation = uow.reservations.get(reservation_id)
        if reservation is None:
            raise NotFound("Reservation", reservation_id)
        return reservation

    def _publish(self, event: DomainEvent) -> None:
        if self.event_bus is not None:
            self.event_bus.publish(event)
