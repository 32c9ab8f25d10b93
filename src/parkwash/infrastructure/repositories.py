# File: src/parkwash/infrastructure/repositories.py
"""
Repository Pattern Implementation for the ParkWash Engine

Repositories provide a collection-like interface over the facility's
entities while hiding the storage technology from the services.

Repository Types:
1. Zone / Space repositories - physical layout and space status
2. Stay / Wash repositories - vehicles currently or previously on site
3. Reservation / Tariff repositories - bookings and the price list

Storage Implementations:
- InMemory* - a shared, thread-safe InMemoryStore (tests, single process)
- SQLAlchemy* - relational databases through SQLAlchemy 2 ORM models

Space status is the one contended field: both stores expose
``transition_status`` as an atomic compare-and-set so two requests can
never claim the same space.
"""

from abc import ABC, abstractmethod
from typing import (
    Type, TypeVar, Generic, Optional, List, Dict, Any, Callable, Tuple
)
from datetime import date, datetime
from decimal import Decimal
import copy
import logging
import threading

from sqlalchemy import (
    create_engine, Column, Integer, String, Boolean, Date, Time,
    DateTime, ForeignKey, Text, DECIMAL, UniqueConstraint, func, and_, or_
)
from sqlalchemy.orm import declarative_base, sessionmaker, Session, relationship
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from sqlalchemy.pool import StaticPool

from ..domain.models import (
    Zone, Space, Stay, WashItem, Reservation, Tariff,
    VehicleType, SpaceStatus, WashStatus, ReservationType, ReservationStatus,
    TariffServiceType, Money, LicensePlate
)

T = TypeVar('T')  # Entity type


# ============================================================================
# REPOSITORY INTERFACES
# ============================================================================

class Repository(ABC, Generic[T]):
    """Base repository interface"""

    @abstractmethod
    def add(self, entity: T) -> T:
        pass

    @abstractmethod
    def get(self, id: str) -> Optional[T]:
        pass

    @abstractmethod
    def get_all(self) -> List[T]:
        pass

    @abstractmethod
    def update(self, entity: T) -> T:
        pass

    @abstractmethod
    def delete(self, id: str) -> bool:
        pass

    def exists(self, id: str) -> bool:
        return self.get(id) is not None

    def count(self) -> int:
        return len(self.get_all())


class ZoneRepository(Repository[Zone], ABC):
    @abstractmethod
    def find_by_name(self, name: str) -> Optional[Zone]:
        """Case-insensitive lookup of a zone code"""
        pass

    @abstractmethod
    def list(self, include_inactive: bool = False) -> List[Zone]:
        """Zones ordered by name"""
        pass


class SpaceRepository(Repository[Space], ABC):
    @abstractmethod
    def list_by_zone(self, zone_id: str) -> List[Space]:
        """Spaces of one zone ordered by number"""
        pass

    @abstractmethod
    def find_available(self, vehicle_type: VehicleType, zone_id: Optional[str] = None) -> List[Space]:
        """Available spaces of a vehicle type that sit in active zones"""
        pass

    @abstractmethod
    def count_in_active_zones(self) -> int:
        pass

    @abstractmethod
    def transition_status(self, space_id: str, expected: SpaceStatus, target: SpaceStatus) -> bool:
        """
        Atomically move a space from expected to target
        Returns: False when the space was not in the expected status
        """
        pass


class StayRepository(Repository[Stay], ABC):
    @abstractmethod
    def find_active_by_plate(self, plate: str) -> Optional[Stay]:
        pass

    @abstractmethod
    def list_active(self) -> List[Stay]:
        """Open stays in entry order"""
        pass

    @abstractmethod
    def list_between(self, start: datetime, end: datetime) -> List[Stay]:
        """Stays that entered or left within [start, end), in entry order"""
        pass

    @abstractmethod
    def search(self, plate: Optional[str] = None) -> List[Stay]:
        """Open and closed stays, latest entry first; plate matches a fragment"""
        pass


class WashRepository(Repository[WashItem], ABC):
    @abstractmethod
    def list(self, status: Optional[WashStatus] = None) -> List[WashItem]:
        """Wash items in creation order, optionally filtered by status"""
        pass

    @abstractmethod
    def list_by_stay(self, stay_id: str) -> List[WashItem]:
        pass


class ReservationRepository(Repository[Reservation], ABC):
    @abstractmethod
    def list_by_date(
        self,
        reservation_date: date,
        reservation_type: Optional[ReservationType] = None
    ) -> List[Reservation]:
        """Reservations of one day ordered by start time"""
        pass

    @abstractmethod
    def list_by_client(self, client_id: str) -> List[Reservation]:
        """A client's reservations, latest date first"""
        pass


class TariffRepository(Repository[Tariff], ABC):
    @abstractmethod
    def list(
        self,
        vehicle_type: Optional[VehicleType] = None,
        service_type: Optional[TariffServiceType] = None,
        active_only: bool = False
    ) -> List[Tariff]:
        """Tariffs in creation order"""
        pass


# ============================================================================
# UNIT OF WORK PATTERN
# ============================================================================

class UnitOfWork(ABC):
    """
    Unit of Work pattern for transaction management
    Commits when the block exits cleanly, rolls back on any exception
    """

    def __init__(self):
        self._logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def _begin(self) -> None:
        pass

    @abstractmethod
    def _close(self) -> None:
        pass

    def __enter__(self) -> 'UnitOfWork':
        self._begin()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is not None:
                self._logger.debug(f"Rolling back after {exc_type.__name__}: {exc_val}")
                self.rollback()
            else:
                self.commit()
        finally:
            self._close()

    @abstractmethod
    def commit(self):
        """Commit the transaction"""
        pass

    @abstractmethod
    def rollback(self):
        """Rollback the transaction"""
        pass

    @property
    @abstractmethod
    def zones(self) -> ZoneRepository:
        pass

    @property
    @abstractmethod
    def spaces(self) -> SpaceRepository:
        pass

    @property
    @abstractmethod
    def stays(self) -> StayRepository:
        pass

    @property
    @abstractmethod
    def washes(self) -> WashRepository:
        pass

    @property
    @abstractmethod
    def reservations(self) -> ReservationRepository:
        pass

    @property
    @abstractmethod
    def tariffs(self) -> TariffRepository:
        pass


# ============================================================================
# IN-MEMORY STORE AND REPOSITORIES (For Testing)
# ============================================================================

class InMemoryStore:
    """
    Process-wide tables shared by every InMemoryUnitOfWork
    Entities are copied in and out so callers never alias stored state
    """

    TABLES = ("zones", "spaces", "stays", "washes", "reservations", "tariffs")

    def __init__(self):
        self.lock = threading.RLock()
        self._tables: Dict[str, Dict[str, Any]] = {name: {} for name in self.TABLES}

    def table(self, name: str) -> Dict[str, Any]:
        return self._tables[name]

    def clear(self):
        """Clear all data (for testing)"""
        with self.lock:
            for table in self._tables.values():
                table.clear()


class InMemoryRepository(Repository[T]):
    """In-memory repository with an undo journal owned by the unit of work"""

    table_name = ""

    def __init__(self, store: InMemoryStore, journal: List[Tuple[str, str, Optional[Any]]]):
        self._store = store
        self._journal = journal
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    def _rows(self) -> Dict[str, T]:
        return self._store.table(self.table_name)

    def _out(self, entity: T) -> T:
        return copy.deepcopy(entity)

    def _remember(self, id: str) -> None:
        previous = self._rows.get(id)
        self._journal.append((self.table_name, id, copy.deepcopy(previous)))

    def add(self, entity: T) -> T:
        with self._store.lock:
            if entity.id in self._rows:
                raise KeyError(f"Entity {entity.id} already exists")
            self._remember(entity.id)
            self._rows[entity.id] = copy.deepcopy(entity)
        self._logger.debug(f"Added entity {entity.id}")
        return entity

    def get(self, id: str) -> Optional[T]:
        with self._store.lock:
            entity = self._rows.get(id)
            return self._out(entity) if entity is not None else None

    def get_all(self) -> List[T]:
        with self._store.lock:
            return [self._out(entity) for entity in self._rows.values()]

    def update(self, entity: T) -> T:
        with self._store.lock:
            if entity.id not in self._rows:
                raise KeyError(f"Entity {entity.id} not found")
            self._remember(entity.id)
            self._rows[entity.id] = copy.deepcopy(entity)
        self._logger.debug(f"Updated entity {entity.id}")
        return entity

    def delete(self, id: str) -> bool:
        with self._store.lock:
            if id not in self._rows:
                return False
            self._remember(id)
            del self._rows[id]
        self._logger.debug(f"Deleted entity {id}")
        return True

    def _select(self, predicate: Callable[[T], bool]) -> List[T]:
        with self._store.lock:
            return [self._out(entity) for entity in self._rows.values() if predicate(entity)]


class InMemoryZoneRepository(InMemoryRepository[Zone], ZoneRepository):
    table_name = "zones"

    def find_by_name(self, name: str) -> Optional[Zone]:
        wanted = name.strip().upper()
        matches = self._select(lambda zone: zone.name == wanted)
        return matches[0] if matches else None

    def list(self, include_inactive: bool = False) -> List[Zone]:
        zones = self._select(lambda zone: include_inactive or zone.is_active)
        return sorted(zones, key=lambda zone: zone.name)


class InMemorySpaceRepository(InMemoryRepository[Space], SpaceRepository):
    table_name = "spaces"

    def _zone(self, zone_id: str) -> Optional[Zone]:
        return self._store.table("zones").get(zone_id)

    def _out(self, entity: Space) -> Space:
        space = copy.deepcopy(entity)
        zone = self._zone(space.zone_id)
        if zone is not None:
            space.zone_name = zone.name
        return space

    def _in_active_zone(self, space: Space) -> bool:
        zone = self._zone(space.zone_id)
        return zone is not None and zone.is_active

    def list_by_zone(self, zone_id: str) -> List[Space]:
        spaces = self._select(lambda space: space.zone_id == zone_id)
        return sorted(spaces, key=lambda space: space.space_number)

    def find_available(self, vehicle_type: VehicleType, zone_id: Optional[str] = None) -> List[Space]:
        return self._select(
            lambda space: space.status == SpaceStatus.AVAILABLE
            and space.vehicle_type == vehicle_type
            and (zone_id is None or space.zone_id == zone_id)
            and self._in_active_zone(space)
        )

    def count_in_active_zones(self) -> int:
        return len(self._select(self._in_active_zone))

    def transition_status(self, space_id: str, expected: SpaceStatus, target: SpaceStatus) -> bool:
        with self._store.lock:
            space = self._rows.get(space_id)
            if space is None or space.status != expected:
                return False
            self._remember(space_id)
            changed = copy.deepcopy(space)
            changed.status = target
            self._rows[space_id] = changed
        self._logger.debug(f"Space {space_id}: {expected.value} -> {target.value}")
        return True


class InMemoryStayRepository(InMemoryRepository[Stay], StayRepository):
    table_name = "stays"

    def find_active_by_plate(self, plate: str) -> Optional[Stay]:
        matches = self._select(lambda stay: stay.is_active and stay.plate.value == plate)
        return matches[0] if matches else None

    def list_active(self) -> List[Stay]:
        return sorted(self._select(lambda stay: stay.is_active), key=lambda stay: stay.entry_time)

    def list_between(self, start: datetime, end: datetime) -> List[Stay]:
        def touches(stay: Stay) -> bool:
            left = stay.exit_time is not None and start <= stay.exit_time < end
            return start <= stay.entry_time < end or left

        return sorted(self._select(touches), key=lambda stay: stay.entry_time)

    def search(self, plate: Optional[str] = None) -> List[Stay]:
        fragment = plate.strip().upper() if plate else ""
        stays = self._select(lambda stay: fragment in stay.plate.value)
        return sorted(stays, key=lambda stay: stay.entry_time, reverse=True)


class InMemoryWashRepository(InMemoryRepository[WashItem], WashRepository):
    table_name = "washes"

    def list(self, status: Optional[WashStatus] = None) -> List[WashItem]:
        items = self._select(lambda wash: status is None or wash.status == status)
        return sorted(items, key=lambda wash: wash.created_at)

    def list_by_stay(self, stay_id: str) -> List[WashItem]:
        return sorted(self._select(lambda wash: wash.stay_id == stay_id), key=lambda wash: wash.created_at)


class InMemoryReservationRepository(InMemoryRepository[Reservation], ReservationRepository):
    table_name = "reservations"

    def list_by_date(
        self,
        reservation_date: date,
        reservation_type: Optional[ReservationType] = None
    ) -> List[Reservation]:
        items = self._select(
            lambda r: r.reservation_date == reservation_date
            and (reservation_type is None or r.reservation_type == reservation_type)
        )
        return sorted(items, key=lambda r: r.start_time)

    def list_by_client(self, client_id: str) -> List[Reservation]:
        items = self._select(lambda r: r.client_id == client_id)
        return sorted(items, key=lambda r: (r.reservation_date, r.start_time), reverse=True)


class InMemoryTariffRepository(InMemoryRepository[Tariff], TariffRepository):
    table_name = "tariffs"

    def list(
        self,
        vehicle_type: Optional[VehicleType] = None,
        service_type: Optional[TariffServiceType] = None,
        active_only: bool = False
    ) -> List[Tariff]:
        items = self._select(
            lambda t: (vehicle_type is None or t.vehicle_type == vehicle_type)
            and (service_type is None or t.service_type == service_type)
            and (not active_only or t.is_active)
        )
        return sorted(items, key=lambda t: t.created_at)


class InMemoryUnitOfWork(UnitOfWork):
    """
    Unit of Work over an InMemoryStore
    Writes land in the store immediately; rollback replays the undo journal
    """

    def __init__(self, store: InMemoryStore):
        super().__init__()
        self.store = store
        self._journal: List[Tuple[str, str, Optional[Any]]] = []

    def _begin(self) -> None:
        self._journal = []
        self._zones = InMemoryZoneRepository(self.store, self._journal)
        self._spaces = InMemorySpaceRepository(self.store, self._journal)
        self._stays = InMemoryStayRepository(self.store, self._journal)
        self._washes = InMemoryWashRepository(self.store, self._journal)
        self._reservations = InMemoryReservationRepository(self.store, self._journal)
        self._tariffs = InMemoryTariffRepository(self.store, self._journal)

    def _close(self) -> None:
        self._journal.clear()

    def commit(self):
        self._journal.clear()
        self._logger.debug("Transaction committed")

    def rollback(self):
        with self.store.lock:
            for table_name, id, previous in reversed(self._journal):
                table = self.store.table(table_name)
                if previous is None:
                    table.pop(id, None)
                else:
                    table[id] = previous
        self._journal.clear()
        self._logger.debug("Transaction rolled back")

    @property
    def zones(self) -> InMemoryZoneRepository:
        return self._zones

    @property
    def spaces(self) -> InMemorySpaceRepository:
        return self._spaces

    @property
    def stays(self) -> InMemoryStayRepository:
        return self._stays

    @property
    def washes(self) -> InMemoryWashRepository:
        return self._washes

    @property
    def reservations(self) -> InMemoryReservationRepository:
        return self._reservations

    @property
    def tariffs(self) -> InMemoryTariffRepository:
        return self._tariffs


# ============================================================================
# SQLALCHEMY ORM MODELS
# ============================================================================

Base = declarative_base()


class ZoneModel(Base):
    """SQLAlchemy model for Zone"""
    __tablename__ = 'zones'

    id = Column(String(36), primary_key=True)
    name = Column(String(10), nullable=False, unique=True, index=True)
    description = Column(Text)
    vehicle_type = Column(String(10), nullable=False)
    color = Column(String(20), default='#22D3EE')
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime)

    spaces = relationship('SpaceModel', back_populates='zone')


class SpaceModel(Base):
    """SQLAlchemy model for Space"""
    __tablename__ = 'spaces'

    id = Column(String(36), primary_key=True)
    zone_id = Column(String(36), ForeignKey('zones.id'), nullable=False, index=True)
    space_number = Column(Integer, nullable=False)
    vehicle_type = Column(String(10), nullable=False)
    status = Column(String(20), nullable=False, default=SpaceStatus.AVAILABLE.value, index=True)
    created_at = Column(DateTime)

    zone = relationship('ZoneModel', back_populates='spaces')

    __table_args__ = (
        UniqueConstraint('zone_id', 'space_number', name='uq_space_zone_number'),
    )


class StayModel(Base):
    """SQLAlchemy model for Stay"""
    __tablename__ = 'stays'

    id = Column(String(36), primary_key=True)
    plate = Column(String(10), nullable=False, index=True)
    vehicle_type = Column(String(10), nullable=False)
    space_id = Column(String(36), ForeignKey('spaces.id', ondelete='SET NULL'), nullable=True)
    entry_time = Column(DateTime, nullable=False, index=True)
    exit_time = Column(DateTime, nullable=True)
    is_wash_only = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime)


class WashItemModel(Base):
    """SQLAlchemy model for WashItem"""
    __tablename__ = 'wash_items'

    id = Column(String(36), primary_key=True)
    stay_id = Column(String(36), ForeignKey('stays.id'), nullable=False, index=True)
    vehicle_type = Column(String(10), nullable=False)
    wash_type = Column(String(10), nullable=False)
    status = Column(String(20), nullable=False, index=True)
    price_amount = Column(DECIMAL(12, 2), nullable=False)
    price_currency = Column(String(3), default='COP')
    start_time = Column(DateTime)
    end_time = Column(DateTime)
    created_at = Column(DateTime, index=True)


class ReservationModel(Base):
    """SQLAlchemy model for Reservation"""
    __tablename__ = 'reservations'

    id = Column(String(36), primary_key=True)
    client_id = Column(String(64), nullable=False, index=True)
    reservation_type = Column(String(20), nullable=False)
    vehicle_type = Column(String(10), nullable=False)
    vehicle_plate = Column(String(10), nullable=False, index=True)
    wash_type = Column(String(10))
    reservation_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    status = Column(String(20), nullable=False, default=ReservationStatus.PENDIENTE.value)
    notes = Column(Text)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)


class TariffModel(Base):
    """SQLAlchemy model for Tariff"""
    __tablename__ = 'tariffs'

    id = Column(String(36), primary_key=True)
    name = Column(String(100), nullable=False)
    vehicle_type = Column(String(10), nullable=False, index=True)
    service_type = Column(String(10), nullable=False)
    price_amount = Column(DECIMAL(12, 2), nullable=False)
    price_currency = Column(String(3), default='COP')
    time_unit_minutes = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, index=True)


# ============================================================================
# DOMAIN <-> ORM MAPPERS
# ============================================================================

class Mapper:
    """Maps between domain models and ORM models"""

    @staticmethod
    def zone_to_orm(zone: Zone) -> ZoneModel:
        return ZoneModel(
            id=zone.id,
            name=zone.name,
            description=zone.description,
            vehicle_type=zone.vehicle_type.value,
            color=zone.color,
            is_active=zone.is_active,
            created_at=zone.created_at
        )

    @staticmethod
    def zone_to_domain(model: ZoneModel) -> Zone:
        return Zone(
            id=model.id,
            name=model.name,
            description=model.description,
            vehicle_type=VehicleType(model.vehicle_type),
            color=model.color,
            is_active=model.is_active,
            created_at=model.created_at
        )

    @staticmethod
    def space_to_orm(space: Space) -> SpaceModel:
        return SpaceModel(
            id=space.id,
            zone_id=space.zone_id,
            space_number=space.space_number,
            vehicle_type=space.vehicle_type.value,
            status=space.status.value,
            created_at=space.created_at
        )

    @staticmethod
    def space_to_domain(model: SpaceModel) -> Space:
        return Space(
            id=model.id,
            zone_id=model.zone_id,
            space_number=model.space_number,
            vehicle_type=VehicleType(model.vehicle_type),
            status=SpaceStatus(model.status),
            zone_name=model.zone.name if model.zone is not None else None,
            created_at=model.created_at
        )

    @staticmethod
    def stay_to_orm(stay: Stay) -> StayModel:
        return StayModel(
            id=stay.id,
            plate=stay.plate.value,
            vehicle_type=stay.vehicle_type.value,
            space_id=stay.space_id,
            entry_time=stay.entry_time,
            exit_time=stay.exit_time,
            is_wash_only=stay.is_wash_only,
            created_at=stay.created_at
        )

    @staticmethod
    def stay_to_domain(model: StayModel) -> Stay:
        return Stay(
            id=model.id,
            plate=LicensePlate(model.plate),
            vehicle_type=VehicleType(model.vehicle_type),
            space_id=model.space_id,
            entry_time=model.entry_time,
            exit_time=model.exit_time,
            is_wash_only=model.is_wash_only,
            created_at=model.created_at
        )

    @staticmethod
    def wash_to_orm(wash: WashItem) -> WashItemModel:
        return WashItemModel(
            id=wash.id,
            stay_id=wash.stay_id,
            vehicle_type=wash.vehicle_type.value,
            wash_type=wash.wash_type.value,
            status=wash.status.value,
            price_amount=wash.price.amount,
            price_currency=wash.price.currency,
            start_time=wash.start_time,
            end_time=wash.end_time,
            created_at=wash.created_at
        )

    @staticmethod
    def wash_to_domain(model: WashItemModel) -> WashItem:
        return WashItem(
            id=model.id,
            stay_id=model.stay_id,
            vehicle_type=VehicleType(model.vehicle_type),
            wash_type=model.wash_type,
            price=Money(Decimal(str(model.price_amount)), model.price_currency),
            status=WashStatus(model.status),
            start_time=model.start_time,
            end_time=model.end_time,
            created_at=model.created_at
        )

    @staticmethod
    def reservation_to_orm(reservation: Reservation) -> ReservationModel:
        return ReservationModel(
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

    @staticmethod
    def reservation_to_domain(model: ReservationModel) -> Reservation:
        return Reservation(
            id=model.id,
            client_id=model.client_id,
            reservation_type=ReservationType(model.reservation_type),
            vehicle_type=VehicleType(model.vehicle_type),
            vehicle_plate=LicensePlate(model.vehicle_plate),
            wash_type=model.wash_type,
            reservation_date=model.reservation_date,
            start_time=model.start_time,
            end_time=model.end_time,
            status=ReservationStatus(model.status),
            notes=model.notes,
            created_at=model.created_at,
            updated_at=model.updated_at
        )

    @staticmethod
    def tariff_to_orm(tariff: Tariff) -> TariffModel:
        return TariffModel(
            id=tariff.id,
            name=tariff.name,
            vehicle_type=tariff.vehicle_type.value,
            service_type=tariff.service_type.value,
            price_amount=tariff.price.amount,
            price_currency=tariff.price.currency,
            time_unit_minutes=tariff.time_unit_minutes,
            is_active=tariff.is_active,
            created_at=tariff.created_at
        )

    @staticmethod
    def tariff_to_domain(model: TariffModel) -> Tariff:
        return Tariff(
            id=model.id,
            name=model.name,
            vehicle_type=VehicleType(model.vehicle_type),
            service_type=TariffServiceType(model.service_type),
            price=Money(Decimal(str(model.price_amount)), model.price_currency),
            time_unit_minutes=model.time_unit_minutes,
            is_active=model.is_active,
            created_at=model.created_at
        )


# ============================================================================
# SQLALCHEMY REPOSITORIES
# ============================================================================

class SQLAlchemyRepository(Repository[T], ABC):
    """Base SQLAlchemy repository"""

    def __init__(self, session: Session):
        self.session = session
        self._logger = logging.getLogger(self.__class__.__name__)

    @property
    @abstractmethod
    def model_class(self) -> Type[Base]:
        """Return SQLAlchemy model class"""
        pass

    @abstractmethod
    def to_domain(self, model: Base) -> T:
        pass

    @abstractmethod
    def to_orm(self, entity: T) -> Base:
        pass

    def add(self, entity: T) -> T:
        try:
            model = self.to_orm(entity)
            self.session.add(model)
            self.session.flush()
            self._logger.debug(f"Added entity: {model.id}")
            return entity
        except IntegrityError as e:
            self.session.rollback()
            self._logger.error(f"Integrity error adding entity: {e}")
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            self._logger.error(f"Database error adding entity: {e}")
            raise

    def get(self, id: str) -> Optional[T]:
        try:
            model = self.session.get(self.model_class, str(id))
            if model:
                return self.to_domain(model)
            return None
        except SQLAlchemyError as e:
            self._logger.error(f"Database error getting entity {id}: {e}")
            raise

    def get_all(self) -> List[T]:
        try:
            models = self.session.query(self.model_class).all()
            return [self.to_domain(model) for model in models]
        except SQLAlchemyError as e:
            self._logger.error(f"Database error getting all entities: {e}")
            raise

    def update(self, entity: T) -> T:
        try:
            model = self.session.get(self.model_class, str(entity.id))
            if not model:
                raise KeyError(f"Entity {entity.id} not found")

            updated_model = self.to_orm(entity)
            for column in self.model_class.__table__.columns:
                if column.name != 'id':
                    setattr(model, column.name, getattr(updated_model, column.name))

            self.session.flush()
            self._logger.debug(f"Updated entity: {entity.id}")
            return entity
        except IntegrityError as e:
            self.session.rollback()
            self._logger.error(f"Integrity error updating entity: {e}")
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            self._logger.error(f"Database error updating entity: {e}")
            raise

    def delete(self, id: str) -> bool:
        try:
            model = self.session.get(self.model_class, str(id))
            if model:
                self.session.delete(model)
                self.session.flush()
                self._logger.debug(f"Deleted entity: {id}")
                return True
            return False
        except SQLAlchemyError as e:
            self.session.rollback()
            self._logger.error(f"Database error deleting entity {id}: {e}")
            raise

    def count(self) -> int:
        try:
            return self.session.query(self.model_class).count()
        except SQLAlchemyError as e:
            self._logger.error(f"Database error counting entities: {e}")
            raise

    def _fetch(self, query) -> List[T]:
        try:
            return [self.to_domain(model) for model in query.all()]
        except SQLAlchemyError as e:
            self._logger.error(f"Database error querying {self.model_class.__tablename__}: {e}")
            raise


class SQLAlchemyZoneRepository(SQLAlchemyRepository[Zone], ZoneRepository):
    @property
    def model_class(self) -> Type[Base]:
        return ZoneModel

    def to_domain(self, model: ZoneModel) -> Zone:
        return Mapper.zone_to_domain(model)

    def to_orm(self, entity: Zone) -> ZoneModel:
        return Mapper.zone_to_orm(entity)

    def find_by_name(self, name: str) -> Optional[Zone]:
        matches = self._fetch(
            self.session.query(ZoneModel).filter(func.upper(ZoneModel.name) == name.strip().upper())
        )
        return matches[0] if matches else None

    def list(self, include_inactive: bool = False) -> List[Zone]:
        query = self.session.query(ZoneModel)
        if not include_inactive:
            query = query.filter(ZoneModel.is_active.is_(True))
        return self._fetch(query.order_by(ZoneModel.name))


class SQLAlchemySpaceRepository(SQLAlchemyRepository[Space], SpaceRepository):
    @property
    def model_class(self) -> Type[Base]:
        return SpaceModel

    def to_domain(self, model: SpaceModel) -> Space:
        return Mapper.space_to_domain(model)

    def to_orm(self, entity: Space) -> SpaceModel:
        return Mapper.space_to_orm(entity)

    def list_by_zone(self, zone_id: str) -> List[Space]:
        return self._fetch(
            self.session.query(SpaceModel)
            .filter(SpaceModel.zone_id == zone_id)
            .order_by(SpaceModel.space_number)
        )

    def find_available(self, vehicle_type: VehicleType, zone_id: Optional[str] = None) -> List[Space]:
        query = (
            self.session.query(SpaceModel)
            .join(ZoneModel, SpaceModel.zone_id == ZoneModel.id)
            .filter(
                SpaceModel.status == SpaceStatus.AVAILABLE.value,
                SpaceModel.vehicle_type == vehicle_type.value,
                ZoneModel.is_active.is_(True)
            )
        )
        if zone_id is not None:
            query = query.filter(SpaceModel.zone_id == zone_id)
        return self._fetch(query.order_by(ZoneModel.name, SpaceModel.space_number))

    def count_in_active_zones(self) -> int:
        try:
            return (
                self.session.query(SpaceModel)
                .join(ZoneModel, SpaceModel.zone_id == ZoneModel.id)
                .filter(ZoneModel.is_active.is_(True))
                .count()
            )
        except SQLAlchemyError as e:
            self._logger.error(f"Database error counting spaces: {e}")
            raise

    def transition_status(self, space_id: str, expected: SpaceStatus, target: SpaceStatus) -> bool:
        try:
            result = self.session.query(SpaceModel).filter(
                SpaceModel.id == space_id,
                SpaceModel.status == expected.value
            ).update({'status': target.value}, synchronize_session='fetch')

            self.session.flush()
            return result > 0
        except SQLAlchemyError as e:
            self.session.rollback()
            self._logger.error(f"Database error changing space status: {e}")
            raise


class SQLAlchemyStayRepository(SQLAlchemyRepository[Stay], StayRepository):
    @property
    def model_class(self) -> Type[Base]:
        return StayModel

    def to_domain(self, model: StayModel) -> Stay:
        return Mapper.stay_to_domain(model)

    def to_orm(self, entity: Stay) -> StayModel:
        return Mapper.stay_to_orm(entity)

    def find_active_by_plate(self, plate: str) -> Optional[Stay]:
        matches = self._fetch(
            self.session.query(StayModel).filter(StayModel.plate == plate, StayModel.exit_time.is_(None))
        )
        return matches[0] if matches else None

    def list_active(self) -> List[Stay]:
        return self._fetch(
            self.session.query(StayModel)
            .filter(StayModel.exit_time.is_(None))
            .order_by(StayModel.entry_time)
        )

    def list_between(self, start: datetime, end: datetime) -> List[Stay]:
        return self._fetch(
            self.session.query(StayModel)
            .filter(or_(
                and_(StayModel.entry_time >= start, StayModel.entry_time < end),
                and_(StayModel.exit_time >= start, StayModel.exit_time < end)
            ))
            .order_by(StayModel.entry_time)
        )

    def search(self, plate: Optional[str] = None) -> List[Stay]:
        query = self.session.query(StayModel)
        if plate:
            query = query.filter(StayModel.plate.contains(plate.strip().upper()))
        return self._fetch(query.order_by(StayModel.entry_time.desc()))


class SQLAlchemyWashRepository(SQLAlchemyRepository[WashItem], WashRepository):
    @property
    def model_class(self) -> Type[Base]:
        return WashItemModel

    def to_domain(self, model: WashItemModel) -> WashItem:
        return Mapper.wash_to_domain(model)

    def to_orm(self, entity: WashItem) -> WashItemModel:
        return Mapper.wash_to_orm(entity)

    def list(self, status: Optional[WashStatus] = None) -> List[WashItem]:
        query = self.session.query(WashItemModel)
        if status is not None:
            query = query.filter(WashItemModel.status == status.value)
        return self._fetch(query.order_by(WashItemModel.created_at))

    def list_by_stay(self, stay_id: str) -> List[WashItem]:
        return self._fetch(
            self.session.query(WashItemModel)
            .filter(WashItemModel.stay_id == stay_id)
            .order_by(WashItemModel.created_at)
        )


class SQLAlchemyReservationRepository(SQLAlchemyRepository[Reservation], ReservationRepository):
    @property
    def model_class(self) -> Type[Base]:
        return ReservationModel

    def to_domain(self, model: ReservationModel) -> Reservation:
        return Mapper.reservation_to_domain(model)

    def to_orm(self, entity: Reservation) -> ReservationModel:
        return Mapper.reservation_to_orm(entity)

    def list_by_date(
        self,
        reservation_date: date,
        reservation_type: Optional[ReservationType] = None
    ) -> List[Reservation]:
        query = self.session.query(ReservationModel).filter(
            ReservationModel.reservation_date == reservation_date
        )
        if reservation_type is not None:
            query = query.filter(ReservationModel.reservation_type == reservation_type.value)
        return self._fetch(query.order_by(ReservationModel.start_time))

    def list_by_client(self, client_id: str) -> List[Reservation]:
        return self._fetch(
            self.session.query(ReservationModel)
            .filter(ReservationModel.client_id == client_id)
            .order_by(ReservationModel.reservation_date.desc(), ReservationModel.start_time.desc())
        )


class SQLAlchemyTariffRepository(SQLAlchemyRepository[Tariff], TariffRepository):
    @property
    def model_class(self) -> Type[Base]:
        return TariffModel

    def to_domain(self, model: TariffModel) -> Tariff:
        return Mapper.tariff_to_domain(model)

    def to_orm(self, entity: Tariff) -> TariffModel:
        return Mapper.tariff_to_orm(entity)

    def list(
        self,
        vehicle_type: Optional[VehicleType] = None,
        service_type: Optional[TariffServiceType] = None,
        active_only: bool = False
    ) -> List[Tariff]:
        query = self.session.query(TariffModel)
        if vehicle_type is not None:
            query = query.filter(TariffModel.vehicle_type == vehicle_type.value)
        if service_type is not None:
            query = query.filter(TariffModel.service_type == service_type.value)
        if active_only:
            query = query.filter(TariffModel.is_active.is_(True))
        return self._fetch(query.order_by(TariffModel.created_at))


class SQLAlchemyUnitOfWork(UnitOfWork):
    """Unit of Work implementation with SQLAlchemy"""

    def __init__(self, session_factory: Callable[[], Session]):
        super().__init__()
        self.session_factory = session_factory

    def _begin(self) -> None:
        self.session = self.session_factory()

        self._zones = SQLAlchemyZoneRepository(self.session)
        self._spaces = SQLAlchemySpaceRepository(self.session)
        self._stays = SQLAlchemyStayRepository(self.session)
        self._washes = SQLAlchemyWashRepository(self.session)
        self._reservations = SQLAlchemyReservationRepository(self.session)
        self._tariffs = SQLAlchemyTariffRepository(self.session)

    def _close(self) -> None:
        self.session.close()

    def commit(self):
        """Commit the transaction"""
        try:
            self.session.commit()
            self._logger.debug("Transaction committed")
        except SQLAlchemyError as e:
            self._logger.error(f"Error committing transaction: {e}")
            self.session.rollback()
            raise

    def rollback(self):
        """Rollback the transaction"""
        self.session.rollback()
        self._logger.debug("Transaction rolled back")

    @property
    def zones(self) -> SQLAlchemyZoneRepository:
        return self._zones

    @property
    def spaces(self) -> SQLAlchemySpaceRepository:
        return self._spaces

    @property
    def stays(self) -> SQLAlchemyStayRepository:
        return self._stays

    @property
    def washes(self) -> SQLAlchemyWashRepository:
        return self._washes

    @property
    def reservations(self) -> SQLAlchemyReservationRepository:
        return self._reservations

    @property
    def tariffs(self) -> SQLAlchemyTariffRepository:
        return self._tariffs


# ============================================================================
# REPOSITORY FACTORY
# ============================================================================

class RepositoryFactory:
    """Builds unit-of-work factories for each storage backend"""

    @staticmethod
    def create_in_memory_uow_factory(store: Optional[InMemoryStore] = None) -> Callable[[], UnitOfWork]:
        store = store or InMemoryStore()
        return lambda: InMemoryUnitOfWork(store)

    @staticmethod
    def create_sqlalchemy_uow_factory(database_url: str) -> Callable[[], UnitOfWork]:
        """Create SQLAlchemy Unit of Work factory, creating tables if missing"""
        engine_kwargs: Dict[str, Any] = {"echo": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            engine_kwargs["poolclass"] = StaticPool
        elif database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}

        engine = create_engine(database_url, **engine_kwargs)
        SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

        Base.metadata.create_all(bind=engine)

        return lambda: SQLAlchemyUnitOfWork(SessionLocal)
