# File: src/parkwash/domain/models.py
"""
Domain Models for the ParkWash Scheduling Engine
Following Domain-Driven Design (DDD) principles with rich domain models

This module contains:
1. Value Objects: LicensePlate, Money, TimeWindow, RequestContext
2. Enums: vehicle, space, tariff, wash and reservation vocabularies
3. Entities: Zone, Space, Stay, WashItem, Reservation, Tariff
4. Domain Events: facts published after state changes

Entities validate themselves and own their state-machine rules; the
application services decide when a transition is attempted.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Dict, Any, Type, TypeVar, Union
from datetime import datetime, date, time
from decimal import Decimal, ROUND_HALF_UP
import re
import uuid
from enum import Enum

from .exceptions import (
    ValidationError, InvalidTransition, AlreadyClosed, Forbidden
)

E = TypeVar('E', bound=Enum)


def parse_enum(enum_class: Type[E], value: Union[E, str], error_class: Type[ValidationError] = ValidationError) -> E:
    """Coerce a raw string into an enum member or raise a domain error"""
    if isinstance(value, enum_class):
        return value
    try:
        raw = value.value if isinstance(value, Enum) else value
        return enum_class(str(raw).strip().lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_class)
        raise error_class(
            f"Invalid {enum_class.__name__} '{value}'. Allowed: {allowed}",
            {"field": enum_class.__name__, "value": str(value)}
        )


# ============================================================================
# ENUMS FOR DOMAIN TYPES
# ============================================================================

class VehicleType(Enum):
    """Vehicle classes served by the facility"""
    CARRO = "carro"
    MOTO = "moto"
    CICLA = "cicla"

    def __str__(self) -> str:
        names = {
            VehicleType.CARRO: "Carro",
            VehicleType.MOTO: "Moto",
            VehicleType.CICLA: "Bicicleta",
        }
        return names.get(self, self.value.title())


class SpaceStatus(Enum):
    """
    Parking space states
    Transitions are whitelisted in _SPACE_TRANSITIONS
    """
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    RESERVED = "reserved"
    MAINTENANCE = "maintenance"

    def can_transition_to(self, target: 'SpaceStatus') -> bool:
        return target in _SPACE_TRANSITIONS.get(self, set())


_SPACE_TRANSITIONS = {
    SpaceStatus.AVAILABLE: {SpaceStatus.OCCUPIED, SpaceStatus.RESERVED, SpaceStatus.MAINTENANCE},
    SpaceStatus.OCCUPIED: {SpaceStatus.AVAILABLE},
    SpaceStatus.RESERVED: {SpaceStatus.AVAILABLE},
    SpaceStatus.MAINTENANCE: {SpaceStatus.AVAILABLE},
}


class TariffServiceType(Enum):
    """Billing units a tariff can be expressed in"""
    FRACCION = "fraccion"
    HORA = "hora"
    DIA = "dia"
    SEMANA = "semana"
    MES = "mes"

    @property
    def default_unit_minutes(self) -> int:
        minutes = {
            TariffServiceType.FRACCION: 15,
            TariffServiceType.HORA: 60,
            TariffServiceType.DIA: 60 * 24,
            TariffServiceType.SEMANA: 60 * 24 * 7,
            TariffServiceType.MES: 60 * 24 * 30,
        }
        return minutes[self]


class WashType(Enum):
    """Wash services on offer"""
    SIMPLE = "simple"
    COMPLETO = "completo"


class WashStatus(Enum):
    """
    Wash item lifecycle
    pendiente -> en_progreso -> completado, or cancelado from a non-terminal state
    """
    PENDIENTE = "pendiente"
    EN_PROGRESO = "en_progreso"
    COMPLETADO = "completado"
    CANCELADO = "cancelado"

    @property
    def is_terminal(self) -> bool:
        return self in (WashStatus.COMPLETADO, WashStatus.CANCELADO)


class ReservationType(Enum):
    """Resources a reservation can be booked against"""
    PARQUEADERO = "parqueadero"
    LAVADO = "lavado"


class ReservationStatus(Enum):
    """
    Reservation lifecycle
    pendiente -> confirmado -> en_progreso -> completado, cancelado from any non-terminal state
    """
    PENDIENTE = "pendiente"
    CONFIRMADO = "confirmado"
    EN_PROGRESO = "en_progreso"
    COMPLETADO = "completado"
    CANCELADO = "cancelado"

    @property
    def is_terminal(self) -> bool:
        return self in (ReservationStatus.COMPLETADO, ReservationStatus.CANCELADO)

    @property
    def next_status(self) -> Optional['ReservationStatus']:
        """The single legal forward step, None for terminal states"""
        chain = {
            ReservationStatus.PENDIENTE: ReservationStatus.CONFIRMADO,
            ReservationStatus.CONFIRMADO: ReservationStatus.EN_PROGRESO,
            ReservationStatus.EN_PROGRESO: ReservationStatus.COMPLETADO,
        }
        return chain.get(self)


class Role(Enum):
    """Roles asserted by the external identity provider"""
    ADMIN = "admin"
    OPERADOR = "operador"
    CLIENTE = "cliente"


# ============================================================================
# DOMAIN PRIMITIVES / VALUE OBJECTS
# ============================================================================

@dataclass(frozen=True)  # Value objects are immutable
class LicensePlate:
    """
    Value Object: License plate number with validation
    Normalized to trimmed upper-case on creation
    """
    value: str

    def __post_init__(self):
        """Validate license plate after initialization"""
        if self.value is None or not str(self.value).strip():
            raise ValidationError("License plate cannot be empty", {"field": "plate"})

        object.__setattr__(self, 'value', str(self.value).strip().upper())

        if len(self.value) < 2 or len(self.value) > 10:
            raise ValidationError(
                f"License plate must be 2-10 characters, got: {self.value}",
                {"field": "plate", "value": self.value}
            )

        if not re.match(r'^[A-Z0-9\s\-]+$', self.value):
            raise ValidationError(
                f"License plate can only contain letters, numbers, spaces, and hyphens: {self.value}",
                {"field": "plate", "value": self.value}
            )

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Money:
    """
    Value Object: Monetary amount with currency
    Pesos are billed in whole units, so amounts are quantized to 0 decimals
    """
    amount: Decimal
    currency: str = "COP"

    def __post_init__(self):
        """Validate money amount"""
        amount = self.amount if isinstance(self.amount, Decimal) else Decimal(str(self.amount))
        if amount < Decimal('0'):
            raise ValidationError("Money amount cannot be negative", {"amount": str(amount)})

        if len(self.currency) != 3:
            raise ValidationError(f"Currency must be 3-letter code: {self.currency}")

        object.__setattr__(self, 'amount', amount.quantize(Decimal('1'), rounding=ROUND_HALF_UP))

    @classmethod
    def zero(cls, currency: str = "COP") -> 'Money':
        return cls(Decimal('0'), currency)

    def __add__(self, other: 'Money') -> 'Money':
        """Add two money amounts (same currency only)"""
        if self.currency != other.currency:
            raise ValidationError(f"Cannot add {self.currency} to {other.currency}")
        return Money(self.amount + other.amount, self.currency)

    def __mul__(self, multiplier: Union[int, Decimal]) -> 'Money':
        """Multiply money by a whole number of billing units"""
        if multiplier < 0:
            raise ValidationError("Multiplier cannot be negative")
        return Money(self.amount * Decimal(multiplier), self.currency)

    def format(self) -> str:
        """Format money for display"""
        return f"${self.amount:,.0f} {self.currency}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "amount": str(self.amount),
            "currency": self.currency
        }


@dataclass(frozen=True)
class TimeWindow:
    """
    Value Object: Half-open wall-clock window [start, end) within one day
    """
    start: time
    end: time

    def __post_init__(self):
        if self.end <= self.start:
            raise ValidationError(
                "End time must be after start time",
                {"start_time": self.start.isoformat(), "end_time": self.end.isoformat()}
            )

    def overlaps(self, other: 'TimeWindow') -> bool:
        """Half-open overlap: s1 < e2 and s2 < e1"""
        return self.start < other.end and other.start < self.end

    def is_within(self, other: 'TimeWindow') -> bool:
        return self.start >= other.start and self.end <= other.end

    @property
    def duration_minutes(self) -> int:
        return (self.end.hour * 60 + self.end.minute) - (self.start.hour * 60 + self.start.minute)

    def __str__(self) -> str:
        return f"{self.start.strftime('%H:%M')}-{self.end.strftime('%H:%M')}"


@dataclass(frozen=True)
class RequestContext:
    """
    Value Object: The acting user as asserted by the identity provider
    Passed explicitly with each request; the engine never authenticates
    """
    user_id: str
    role: Role

    def __post_init__(self):
        object.__setattr__(self, 'role', parse_enum(Role, self.role))

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def require_admin(self, action: str) -> None:
        """Raise Forbidden unless the caller holds the admin role"""
        if not self.is_admin:
            raise Forbidden(
                f"Role '{self.role.value}' may not {action}",
                {"user_id": self.user_id, "role": self.role.value, "action": action}
            )


# ============================================================================
# DOMAIN ENTITIES
# ============================================================================

class Entity:
    """
    Base class for all domain entities
    Provides common functionality for entities with identity
    """

    def __init__(self, id: Optional[str] = None, created_at: Optional[datetime] = None):
        self._id = id or str(uuid.uuid4())
        self.created_at = created_at

    @property
    def id(self) -> str:
        """Get entity ID"""
        return self._id

    def __eq__(self, other: object) -> bool:
        """Entities are equal if they have the same ID and type"""
        if not isinstance(other, Entity):
            return False
        return self.id == other.id and type(self) == type(other)

    def __hash__(self) -> int:
        return hash((self.id, type(self).__name__))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id})"


class Zone(Entity):
    """
    Entity: A named group of spaces serving one vehicle type
    Deactivated zones keep their history but take no new vehicles
    """

    def __init__(
        self,
        name: str,
        vehicle_type: VehicleType,
        color: str = "#22D3EE",
        description: Optional[str] = None,
        is_active: bool = True,
        id: Optional[str] = None,
        created_at: Optional[datetime] = None
    ):
        super().__init__(id, created_at)
        self.name = (name or "").strip().upper()
        self.vehicle_type = parse_enum(VehicleType, vehicle_type)
        self.color = color
        self.description = description
        self.is_active = is_active
        self._validate()

    def _validate(self) -> None:
        if not self.name:
            raise ValidationError("Zone name cannot be empty", {"field": "name"})
        if len(self.name) > 10:
            raise ValidationError("Zone name must be a short code (max 10 characters)", {"field": "name"})

    def revise(
        self,
        name: Optional[str] = None,
        color: Optional[str] = None,
        description: Optional[str] = None,
        is_active: Optional[bool] = None
    ) -> None:
        """Apply the given changes; omitted fields keep their value"""
        if name is not None:
            self.name = name.strip().upper()
        if color is not None:
            self.color = color
        if description is not None:
            self.description = description
        if is_active is not None:
            self.is_active = is_active
        self._validate()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "vehicle_type": self.vehicle_type.value,
            "color": self.color,
            "is_active": self.is_active
        }

    def __str__(self) -> str:
        return f"Zone {self.name} ({self.vehicle_type})"


class Space(Entity):
    """
    Entity: One physical parking space
    Status only changes through the Space Registry
    """

    def __init__(
        self,
        zone_id: str,
        space_number: int,
        vehicle_type: VehicleType,
        status: SpaceStatus = SpaceStatus.AVAILABLE,
        zone_name: Optional[str] = None,
        id: Optional[str] = None,
        created_at: Optional[datetime] = None
    ):
        super().__init__(id, created_at)
        self.zone_id = zone_id
        self.space_number = space_number
        self.vehicle_type = parse_enum(VehicleType, vehicle_type)
        self.status = parse_enum(SpaceStatus, status)
        self.zone_name = zone_name
        self._validate()

    def _validate(self) -> None:
        if self.space_number <= 0:
            raise ValidationError("Space number must be positive", {"field": "space_number"})

    @property
    def code(self) -> str:
        """Display code, e.g. A-07"""
        prefix = self.zone_name or "S"
        return f"{prefix}-{self.space_number:02d}"

    @property
    def is_available(self) -> bool:
        return self.status == SpaceStatus.AVAILABLE

    def check_transition(self, target: SpaceStatus) -> None:
        """Raise InvalidTransition unless the move is whitelisted"""
        if not self.status.can_transition_to(target):
            raise InvalidTransition("Space", self.status, target)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "zone_id": self.zone_id,
            "space_number": self.space_number,
            "code": self.code,
            "vehicle_type": self.vehicle_type.value,
            "status": self.status.value
        }

    def __str__(self) -> str:
        return f"Space {self.code} [{self.status.value}]"


class Stay(Entity):
    """
    Entity: One vehicle's continuous presence in the facility
    entry_time is immutable; exit_time is written exactly once
    """

    def __init__(
        self,
        plate: Union[LicensePlate, str],
        vehicle_type: VehicleType,
        entry_time: datetime,
        space_id: Optional[str] = None,
        exit_time: Optional[datetime] = None,
        is_wash_only: bool = False,
        id: Optional[str] = None,
        created_at: Optional[datetime] = None
    ):
        super().__init__(id, created_at or entry_time)
        self.plate = plate if isinstance(plate, LicensePlate) else LicensePlate(plate)
        self.vehicle_type = parse_enum(VehicleType, vehicle_type)
        self.space_id = space_id
        self._entry_time = entry_time
        self.exit_time = exit_time
        self.is_wash_only = is_wash_only

    @property
    def entry_time(self) -> datetime:
        return self._entry_time

    @property
    def is_active(self) -> bool:
        return self.exit_time is None

    def close(self, now: datetime) -> None:
        """Record the exit; a stay closes only once"""
        if not self.is_active:
            raise AlreadyClosed(self.id)
        self.exit_time = max(now, self._entry_time)

    def elapsed_seconds(self, now: datetime) -> float:
        """Seconds from entry to exit (or now), never negative"""
        end = self.exit_time or now
        return max(0.0, (end - self._entry_time).total_seconds())

    def elapsed_minutes(self, now: datetime) -> int:
        """Whole minutes, floored"""
        return int(self.elapsed_seconds(now) // 60)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "plate": self.plate.value,
            "vehicle_type": self.vehicle_type.value,
            "space_id": self.space_id,
            "entry_time": self._entry_time.isoformat(),
            "exit_time": self.exit_time.isoformat() if self.exit_time else None,
            "is_active": self.is_active,
            "is_wash_only": self.is_wash_only
        }

    def __str__(self) -> str:
        state = "active" if self.is_active else "closed"
        return f"Stay {self.plate} ({state})"


class WashItem(Entity):
    """
    Entity: One wash service anchored to a stay
    The price is a snapshot taken at creation and never recomputed
    """

    def __init__(
        self,
        stay_id: str,
        vehicle_type: VehicleType,
        wash_type: WashType,
        price: Money,
        status: WashStatus = WashStatus.PENDIENTE,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        id: Optional[str] = None,
        created_at: Optional[datetime] = None
    ):
        super().__init__(id, created_at)
        self.stay_id = stay_id
        self.vehicle_type = parse_enum(VehicleType, vehicle_type)
        self.wash_type = parse_enum(WashType, wash_type)
        self._price = price
        self.status = parse_enum(WashStatus, status)
        self.start_time = start_time
        self.end_time = end_time

    @property
    def price(self) -> Money:
        return self._price

    def start(self, now: datetime) -> None:
        if self.status != WashStatus.PENDIENTE:
            raise InvalidTransition("WashItem", self.status, WashStatus.EN_PROGRESO)
        self.status = WashStatus.EN_PROGRESO
        self.start_time = now

    def complete(self, now: datetime) -> Money:
        """Finish the wash and return the billable amount"""
        if self.status != WashStatus.EN_PROGRESO:
            raise InvalidTransition("WashItem", self.status, WashStatus.COMPLETADO)
        self.status = WashStatus.COMPLETADO
        self.end_time = now
        return self._price

    def cancel(self, now: datetime) -> None:
        if self.status.is_terminal:
            raise InvalidTransition("WashItem", self.status, WashStatus.CANCELADO)
        self.status = WashStatus.CANCELADO
        self.end_time = now

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "stay_id": self.stay_id,
            "vehicle_type": self.vehicle_type.value,
            "wash_type": self.wash_type.value,
            "status": self.status.value,
            "price": self._price.to_dict(),
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None
        }


class Reservation(Entity):
    """
    Entity: A future booking against parking or wash capacity
    """

    def __init__(
        self,
        client_id: str,
        reservation_type: ReservationType,
        vehicle_type: VehicleType,
        vehicle_plate: Union[LicensePlate, str],
        reservation_date: date,
        start_time: time,
        end_time: time,
        wash_type: Optional[WashType] = None,
        status: ReservationStatus = ReservationStatus.PENDIENTE,
        notes: Optional[str] = None,
        id: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None
    ):
        super().__init__(id, created_at)
        self.client_id = client_id
        self.reservation_type = parse_enum(ReservationType, reservation_type)
        self.vehicle_type = parse_enum(VehicleType, vehicle_type)
        self.vehicle_plate = (
            vehicle_plate if isinstance(vehicle_plate, LicensePlate) else LicensePlate(vehicle_plate)
        )
        self.reservation_date = reservation_date
        self.window = TimeWindow(start_time, end_time)
        self.wash_type = parse_enum(WashType, wash_type) if wash_type is not None else None
        self.status = parse_enum(ReservationStatus, status)
        self.notes = notes
        self.updated_at = updated_at or created_at
        self._validate()

    def _validate(self) -> None:
        if not self.client_id:
            raise ValidationError("Reservation requires a client reference", {"field": "client_id"})
        if self.reservation_type == ReservationType.LAVADO and self.wash_type is None:
            raise ValidationError("Wash reservations require a wash type", {"field": "wash_type"})
        if self.reservation_type == ReservationType.PARQUEADERO and self.wash_type is not None:
            raise ValidationError("Parking reservations cannot carry a wash type", {"field": "wash_type"})

    @property
    def start_time(self) -> time:
        return self.window.start

    @property
    def end_time(self) -> time:
        return self.window.end

    @property
    def holds_capacity(self) -> bool:
        """Every non-cancelled reservation counts against capacity"""
        return self.status != ReservationStatus.CANCELADO

    def advance(self, target: ReservationStatus, now: datetime) -> None:
        """Move one step forward, or cancel from a non-terminal state"""
        target = parse_enum(ReservationStatus, target)
        if self.status.is_terminal:
            raise InvalidTransition("Reservation", self.status, target)
        if target != ReservationStatus.CANCELADO and target != self.status.next_status:
            raise InvalidTransition("Reservation", self.status, target)
        self.status = target
        self.updated_at = now

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "client_id": self.client_id,
            "reservation_type": self.reservation_type.value,
            "vehicle_type": self.vehicle_type.value,
            "vehicle_plate": self.vehicle_plate.value,
            "wash_type": self.wash_type.value if self.wash_type else None,
            "reservation_date": self.reservation_date.isoformat(),
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "status": self.status.value,
            "notes": self.notes
        }


class Tariff(Entity):
    """
    Entity: Price per billing unit for one vehicle type
    """

    def __init__(
        self,
        name: str,
        vehicle_type: VehicleType,
        service_type: TariffServiceType,
        price: Money,
        time_unit_minutes: Optional[int] = None,
        is_active: bool = True,
        id: Optional[str] = None,
        created_at: Optional[datetime] = None
    ):
        super().__init__(id, created_at)
        self.name = (name or "").strip()
        self.vehicle_type = parse_enum(VehicleType, vehicle_type)
        self.service_type = parse_enum(TariffServiceType, service_type)
        self.price = price
        self.time_unit_minutes = (
            time_unit_minutes if time_unit_minutes is not None
            else self.service_type.default_unit_minutes
        )
        self.is_active = is_active
        self._validate()

    def _validate(self) -> None:
        if not self.name:
            raise ValidationError("Tariff name cannot be empty", {"field": "name"})
        if self.price.amount <= Decimal('0'):
            raise ValidationError("Tariff price must be positive", {"field": "price"})
        if self.time_unit_minutes <= 0:
            raise ValidationError("Tariff time unit must be positive", {"field": "time_unit_minutes"})

    def revise(
        self,
        name: Optional[str] = None,
        price: Optional[Money] = None,
        time_unit_minutes: Optional[int] = None,
        is_active: Optional[bool] = None
    ) -> None:
        """Apply the given changes; omitted fields keep their value"""
        if name is not None:
            self.name = name.strip()
        if price is not None:
            self.price = price
        if time_unit_minutes is not None:
            self.time_unit_minutes = time_unit_minutes
        if is_active is not None:
            self.is_active = is_active
        self._validate()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "vehicle_type": self.vehicle_type.value,
            "service_type": self.service_type.value,
            "price": self.price.to_dict(),
            "time_unit_minutes": self.time_unit_minutes,
            "is_active": self.is_active
        }


# ============================================================================
# DOMAIN EVENTS (for event-driven architecture)
# ============================================================================

class DomainEvent(ABC):
    """
    Base class for all domain events
    Events represent something that happened in the domain
    """
    event_type = "domain.event"

    def __init__(self, timestamp: datetime):
        self.event_id = str(uuid.uuid4())
        self.timestamp = timestamp
        self.version = "1.0"

    @abstractmethod
    def payload(self) -> Dict[str, Any]:
        """Event-specific data"""
        pass

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization"""
        return {
            "event_type": self.event_type,
            "event_id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "version": self.version,
            "data": self.payload()
        }

    def __str__(self) -> str:
        return f"{self.__class__.__name__} at {self.timestamp}"


class VehicleEnteredEvent(DomainEvent):
    """Event raised when a stay opens"""
    event_type = "vehicle.entered"

    def __init__(self, stay: Stay, timestamp: datetime):
        super().__init__(timestamp)
        self.stay_id = stay.id
        self.plate = stay.plate.value
        self.vehicle_type = stay.vehicle_type
        self.space_id = stay.space_id

    def payload(self) -> Dict[str, Any]:
        return {
            "stay_id": self.stay_id,
            "plate": self.plate,
            "vehicle_type": self.vehicle_type.value,
            "space_id": self.space_id
        }


class VehicleExitedEvent(DomainEvent):
    """Event raised when a stay closes"""
    event_type = "vehicle.exited"

    def __init__(self, stay: Stay, duration_minutes: int, timestamp: datetime):
        super().__init__(timestamp)
        self.stay_id = stay.id
        self.plate = stay.plate.value
        self.space_id = stay.space_id
        self.duration_minutes = duration_minutes

    def payload(self) -> Dict[str, Any]:
        return {
            "stay_id": self.stay_id,
            "plate": self.plate,
            "space_id": self.space_id,
            "duration_minutes": self.duration_minutes
        }


class WashCompletedEvent(DomainEvent):
    """Billing trigger for a finished wash; amount is the creation-time snapshot"""
    event_type = "wash.completed"

    def __init__(self, wash: WashItem, timestamp: datetime):
        super().__init__(timestamp)
        self.wash_id = wash.id
        self.stay_id = wash.stay_id
        self.wash_type = wash.wash_type
        self.amount = wash.price

    def payload(self) -> Dict[str, Any]:
        return {
            "wash_id": self.wash_id,
            "stay_id": self.stay_id,
            "wash_type": self.wash_type.value,
            "amount": self.amount.to_dict()
        }


class ReservationBookedEvent(DomainEvent):
    """Event raised when a reservation is created"""
    event_type = "reservation.booked"

    def __init__(self, reservation: Reservation, timestamp: datetime):
        super().__init__(timestamp)
        self.reservation_id = reservation.id
        self.reservation_type = reservation.reservation_type
        self.reservation_date = reservation.reservation_date
        self.window = reservation.window

    def payload(self) -> Dict[str, Any]:
        return {
            "reservation_id": self.reservation_id,
            "reservation_type": self.reservation_type.value,
            "reservation_date": self.reservation_date.isoformat(),
            "window": str(self.window)
        }


class ReservationStatusChangedEvent(DomainEvent):
    """Event raised on every reservation transition"""
    event_type = "reservation.status_changed"

    def __init__(
        self,
        reservation: Reservation,
        previous_status: ReservationStatus,
        timestamp: datetime
    ):
        super().__init__(timestamp)
        self.reservation_id = reservation.id
        self.previous_status = previous_status
        self.status = reservation.status

    def payload(self) -> Dict[str, Any]:
        return {
            "reservation_id": self.reservation_id,
            "previous_status": self.previous_status.value,
            "status": self.status.value
        }
