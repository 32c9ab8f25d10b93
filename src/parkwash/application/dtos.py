# File: src/parkwash/application/dtos.py
"""
Data Transfer Objects (DTOs) for the ParkWash Engine

This module defines DTOs for data crossing the FacilityService boundary:
1. Input DTOs - requests coming from the calling layer
2. Output DTOs - entities and derived views returned to the caller
3. Response DTOs - transport-agnostic error bodies

DTO Principles:
- Validation of shapes and types only; business rules live in the domain
- No business logic, only data
- Serialization/deserialization support
"""

from typing import Dict, List, Optional, Any
from datetime import datetime, date, time
from decimal import Decimal
from enum import Enum
import json

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..domain.aggregates import Occupancy
from ..domain.exceptions import FacilityError
from ..domain.models import (
    Money, Zone, Space, Stay, WashItem, Reservation, Tariff
)


# ============================================================================
# BASE DTO CLASSES
# ============================================================================

class BaseDTO(BaseModel):
    """Base DTO with common functionality"""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=True
    )

    def to_dict(self, exclude_none: bool = False, **kwargs) -> Dict[str, Any]:
        """Convert DTO to dictionary"""
        data = self.model_dump(**kwargs)
        if exclude_none:
            data = {k: v for k, v in data.items() if v is not None}
        return data

    def to_json(self, **kwargs) -> str:
        """Convert DTO to JSON string"""
        return self.model_dump_json(**kwargs)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BaseDTO':
        """Create DTO from dictionary"""
        return cls(**data)

    @classmethod
    def from_json(cls, json_str: str) -> 'BaseDTO':
        """Create DTO from JSON string"""
        return cls(**json.loads(json_str))


# ============================================================================
# ENUM DTOs
# ============================================================================

class VehicleTypeDTO(str, Enum):
    """Vehicle type DTO"""
    CARRO = "carro"
    MOTO = "moto"
    CICLA = "cicla"


class WashTypeDTO(str, Enum):
    """Wash type DTO"""
    SIMPLE = "simple"
    COMPLETO = "completo"


class ReservationTypeDTO(str, Enum):
    """Reservation type DTO"""
    PARQUEADERO = "parqueadero"
    LAVADO = "lavado"


class TariffServiceTypeDTO(str, Enum):
    """Tariff billing unit DTO"""
    FRACCION = "fraccion"
    HORA = "hora"
    DIA = "dia"
    SEMANA = "semana"
    MES = "mes"


# ============================================================================
# COMMON VALUE OBJECT DTOs
# ============================================================================

class MoneyDTO(BaseDTO):
    """Money value object DTO"""
    amount: Decimal = Field(ge=0, description="Amount")
    currency: str = Field(default="COP", min_length=3, max_length=3, description="Currency code (ISO 4217)")

    @classmethod
    def from_money(cls, money: Money) -> 'MoneyDTO':
        return cls(amount=money.amount, currency=money.currency)


# ============================================================================
# INPUT DTOs
# ============================================================================

class StayEntryRequestDTO(BaseDTO):
    """DTO for a parking entry"""
    plate: str = Field(min_length=1, max_length=20, description="License plate")
    vehicle_type: VehicleTypeDTO = Field(description="Vehicle type")
    space_id: Optional[str] = Field(default=None, description="Requested space")
    zone_id: Optional[str] = Field(default=None, description="Requested zone")
    auto_allocate: bool = Field(default=True, description="Pick any compatible space when none is requested")


class WashEntryRequestDTO(BaseDTO):
    """DTO for a wash-only entry"""
    plate: str = Field(min_length=1, max_length=20, description="License plate")
    vehicle_type: VehicleTypeDTO = Field(description="Vehicle type")
    wash_type: WashTypeDTO = Field(description="Wash service")


class ReservationRequestDTO(BaseDTO):
    """
    DTO for reservation request
    Window and wash-type rules are checked by the scheduler, not here
    """
    client_id: str = Field(min_length=1, description="External client identity")
    reservation_type: ReservationTypeDTO = Field(description="Parking or wash")
    vehicle_type: VehicleTypeDTO = Field(description="Vehicle type")
    vehicle_plate: str = Field(description="License plate")
    wash_type: Optional[WashTypeDTO] = Field(default=None, description="Required for wash bookings")
    reservation_date: date = Field(description="Day of the booking")
    start_time: time = Field(description="Window start (inclusive)")
    end_time: time = Field(description="Window end (exclusive)")
    notes: Optional[str] = Field(default=None, max_length=500)


class ZoneCreateDTO(BaseDTO):
    """DTO for creating a zone"""
    name: str = Field(description="Short zone code, e.g. A")
    vehicle_type: VehicleTypeDTO
    color: str = Field(default="#22D3EE")
    description: Optional[str] = None


class ZoneUpdateDTO(BaseDTO):
    """DTO for updating a zone"""
    name: Optional[str] = None
    color: Optional[str] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class TariffCreateDTO(BaseDTO):
    """DTO for creating a tariff"""
    name: str = Field(min_length=1, max_length=100)
    vehicle_type: VehicleTypeDTO
    service_type: TariffServiceTypeDTO = TariffServiceTypeDTO.HORA
    price: Decimal = Field(gt=0)
    time_unit_minutes: Optional[int] = Field(default=None, gt=0)
    is_active: bool = True


class TariffUpdateDTO(BaseDTO):
    """DTO for updating a tariff"""
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    price: Optional[Decimal] = Field(default=None, gt=0)
    time_unit_minutes: Optional[int] = Field(default=None, gt=0)
    is_active: Optional[bool] = None


# ============================================================================
# ENTITY OUTPUT DTOs
# ============================================================================

class ZoneDTO(BaseDTO):
    """Zone output DTO"""
    id: str
    name: str
    description: Optional[str] = None
    vehicle_type: str
    color: str
    is_active: bool
    total_spaces: int = 0

    @classmethod
    def from_domain(cls, zone: Zone, total_spaces: int = 0) -> 'ZoneDTO':
        return cls(
            id=zone.id,
            name=zone.name,
            description=zone.description,
            vehicle_type=zone.vehicle_type.value,
            color=zone.color,
            is_active=zone.is_active,
            total_spaces=total_spaces
        )


class SpaceDTO(BaseDTO):
    """Space output DTO"""
    id: str
    zone_id: str
    space_number: int
    code: str
    vehicle_type: str
    status: str

    @classmethod
    def from_domain(cls, space: Space) -> 'SpaceDTO':
        return cls(
            id=space.id,
            zone_id=space.zone_id,
            space_number=space.space_number,
            code=space.code,
            vehicle_type=space.vehicle_type.value,
            status=space.status.value
        )


class StayDTO(BaseDTO):
    """Stay output DTO"""
    id: str
    plate: str
    vehicle_type: str
    space_id: Optional[str] = None
    entry_time: datetime
    exit_time: Optional[datetime] = None
    is_active: bool
    is_wash_only: bool

    @classmethod
    def from_domain(cls, stay: Stay) -> 'StayDTO':
        return cls(
            id=stay.id,
            plate=stay.plate.value,
            vehicle_type=stay.vehicle_type.value,
            space_id=stay.space_id,
            entry_time=stay.entry_time,
            exit_time=stay.exit_time,
            is_active=stay.is_active,
            is_wash_only=stay.is_wash_only
        )


class WashItemDTO(BaseDTO):
    """Wash item output DTO"""
    id: str
    stay_id: str
    vehicle_type: str
    wash_type: str
    status: str
    price: MoneyDTO
    created_at: Optional[datetime] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @classmethod
    def from_domain(cls, wash: WashItem) -> 'WashItemDTO':
        return cls(
            id=wash.id,
            stay_id=wash.stay_id,
            vehicle_type=wash.vehicle_type.value,
            wash_type=wash.wash_type.value,
            status=wash.status.value,
            price=MoneyDTO.from_money(wash.price),
            created_at=wash.created_at,
            start_time=wash.start_time,
            end_time=wash.end_time
        )


class ReservationDTO(BaseDTO):
    """Reservation output DTO"""
    id: str
    client_id: str
    reservation_type: str
    vehicle_type: str
    vehicle_plate: str
    wash_type: Optional[str] = None
    reservation_date: date
    start_time: time
    end_time: time
    status: str
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, reservation: Reservation) -> 'ReservationDTO':
        return cls(
            id=reservation.id,
            client_id=reservation.client_id,
            reservation_type=reservation.reservation_type.value,
            vehicle_type=reservation.vehicle_type.value,
            vehicle_plate=reservation.vehicle_plate.value,
            wash_type=reservation.wash_type.value if reservation.wash_type else None,
            reservation_date=reservation.reservation_date,
            start_time=reservation.start_time,
            end_time=reservation.end_time,
            status=reservation.status.value,
            notes=reservation.notes,
            created_at=reservation.created_at,
            updated_at=reservation.updated_at
        )


class TariffDTO(BaseDTO):
    """Tariff output DTO"""
    id: str
    name: str
    vehicle_type: str
    service_type: str
    price: MoneyDTO
    time_unit_minutes: int
    is_active: bool

    @classmethod
    def from_domain(cls, tariff: Tariff) -> 'TariffDTO':
        return cls(
            id=tariff.id,
            name=tariff.name,
            vehicle_type=tariff.vehicle_type.value,
            service_type=tariff.service_type.value,
            price=MoneyDTO.from_money(tariff.price),
            time_unit_minutes=tariff.time_unit_minutes,
            is_active=tariff.is_active
        )


# ============================================================================
# DERIVED VIEW DTOs
# ============================================================================

class TimeSlotDTO(BaseDTO):
    """One bookable window of the reservation calendar"""
    start_time: time
    end_time: time
    is_available: bool
    booked: int = Field(ge=0, description="Overlapping non-cancelled reservations")
    capacity: int = Field(ge=0)


class OccupancyDTO(BaseDTO):
    """Occupancy of one zone"""
    zone_id: str
    zone_name: str
    total: int
    occupied: int
    available: int
    reserved: int = 0
    maintenance: int = 0
    percentage: float

    @classmethod
    def from_occupancy(cls, occupancy: Occupancy) -> 'OccupancyDTO':
        return cls(**occupancy.to_dict())


class AgendaDTO(BaseDTO):
    """Reservations of one day"""
    reservation_date: date
    reservations: List[ReservationDTO] = Field(default_factory=list)
    total_parking: int = 0
    total_wash: int = 0


class FeeQuoteDTO(BaseDTO):
    """Fee calculation without a stay"""
    vehicle_type: str
    minutes: int = Field(ge=0)
    tariff_id: str
    tariff_name: str
    unit_minutes: int
    unit_price: MoneyDTO
    units: int
    amount: MoneyDTO


class WashChargeDTO(BaseDTO):
    """One completed wash on a bill"""
    wash_id: str
    wash_type: str
    amount: MoneyDTO


class StayBillDTO(BaseDTO):
    """Receipt-style summary handed to the payment collaborator"""
    stay_id: str
    plate: str
    vehicle_type: str
    entry_time: datetime
    exit_time: Optional[datetime] = None
    duration_minutes: int = Field(ge=0)
    parking_fee: MoneyDTO
    washes: List[WashChargeDTO] = Field(default_factory=list)
    wash_total: MoneyDTO
    total: MoneyDTO


class HourlyStatDTO(BaseDTO):
    """Entries and exits within one hour of the day"""
    hour: int = Field(ge=0, le=23)
    entries: int = 0
    exits: int = 0


class ActivityDTO(BaseDTO):
    """One entry or exit in the recent activity feed"""
    stay_id: str
    plate: str
    vehicle_type: str
    activity_type: str = Field(description="entry or exit")
    occurred_at: datetime


class DashboardDTO(BaseDTO):
    """Operational snapshot of the facility"""
    timestamp: datetime
    zones: List[OccupancyDTO] = Field(default_factory=list)
    total_spaces: int = 0
    occupied_spaces: int = 0
    available_spaces: int = 0
    occupancy_percentage: float = 0.0
    active_stays: int = 0
    pending_washes: int = 0
    washes_in_progress: int = 0
    reservations_today: int = 0
    vehicles_today: int = 0
    hourly: List[HourlyStatDTO] = Field(default_factory=list)
    recent_activity: List[ActivityDTO] = Field(default_factory=list)


class WashEntryDTO(BaseDTO):
    """Result of a wash-only entry: the anchoring stay and its queued wash"""
    stay: StayDTO
    wash: WashItemDTO


# ============================================================================
# RESPONSE DTOs
# ============================================================================

class ErrorResponseDTO(BaseDTO):
    """Standard error response DTO"""
    success: bool = Field(default=False, description="Success flag")
    error: str = Field(description="Error message")
    error_code: Optional[str] = Field(default=None, description="Error code")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Error details")

    @field_validator('details')
    @classmethod
    def stringify_details(cls, v: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if v is None:
            return v
        return {key: value if isinstance(value, (str, int, float, bool)) or value is None else str(value)
                for key, value in v.items()}

    @classmethod
    def from_exception(cls, exc: Exception) -> 'ErrorResponseDTO':
        """Map an engine error to a response body; anything else is internal"""
        if isinstance(exc, FacilityError):
            return cls(error=exc.message, error_code=exc.code, details=exc.details or None)
        return cls(error="Internal error", error_code="internal_error")
