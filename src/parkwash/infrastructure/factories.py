# File: src/parkwash/infrastructure/factories.py
"""
Factory Pattern Implementation

Assembles the engine from its parts:
1. ServiceFactory - builds the component services and the facility facade
2. Backend helpers - in-memory (tests, single process) or SQLAlchemy + Redis

Every service in one factory shares the same unit-of-work factory, clock,
lock provider and event bus.
"""

from typing import Callable, Optional
import logging

from ..domain.clock import Clock, SystemClock
from ..domain.strategies import AllocationStrategy, PricingStrategy
from .config import FacilitySettings
from .locking import LockProvider, InMemoryLockProvider, RedisLockProvider
from .messaging import EventBus, RedisEventForwarder, ALL_EVENTS
from .repositories import InMemoryStore, RepositoryFactory, UnitOfWork


# ============================================================================
# SERVICE FACTORY
# ============================================================================

class ServiceFactory:
    """Factory for creating application services"""

    def __init__(
        self,
        settings: FacilitySettings,
        uow_factory: Callable[[], UnitOfWork],
        clock: Optional[Clock] = None,
        lock_provider: Optional[LockProvider] = None,
        event_bus: Optional[EventBus] = None,
        tariff_pricing_strategy: Optional[PricingStrategy] = None,
        parking_pricing_strategy: Optional[PricingStrategy] = None,
        allocation_strategy: Optional[AllocationStrategy] = None
    ):
        self.settings = settings
        self.uow_factory = uow_factory
        self.clock = clock or SystemClock()
        self.lock_provider = lock_provider or InMemoryLockProvider(settings.lock_timeout_seconds)
        self.event_bus = event_bus if event_bus is not None else EventBus()
        self.tariff_pricing_strategy = tariff_pricing_strategy
        self.parking_pricing_strategy = parking_pricing_strategy
        self.allocation_strategy = allocation_strategy
        self.logger = logging.getLogger(self.__class__.__name__)

    def create_tariff_table(self) -> 'TariffTable':
        from ..application.tariffs import TariffTable
        return TariffTable(self.uow_factory, self.clock, self.settings, self.tariff_pricing_strategy)

    def create_space_registry(self) -> 'SpaceRegistry':
        from ..application.spaces import SpaceRegistry
        return SpaceRegistry(self.uow_factory, self.clock, self.lock_provider, self.allocation_strategy)

    def create_facility_service(self) -> 'FacilityService':
        """Create FacilityService with every component wired to shared dependencies"""
        from ..application.facility import FacilityService
        from ..application.reservations import ReservationScheduler
        from ..application.stays import StayLedger
        from ..application.washes import WashQueue

        tariffs = self.create_tariff_table()
        spaces = self.create_space_registry()
        stays = StayLedger(
            self.uow_factory, self.clock, self.settings, tariffs, spaces,
            self.lock_provider, self.event_bus, self.parking_pricing_strategy
        )
        washes = WashQueue(self.uow_factory, self.clock, tariffs, self.lock_provider, self.event_bus)
        reservations = ReservationScheduler(
            self.uow_factory, self.clock, self.settings, spaces, self.lock_provider, self.event_bus
        )

        self.logger.info("Facility service assembled")
        return FacilityService(self.clock, tariffs, spaces, stays, washes, reservations)

    # ------------------------------------------------------------------
    # Backends
    # ------------------------------------------------------------------

    @classmethod
    def create_in_memory(
        cls,
        settings: Optional[FacilitySettings] = None,
        clock: Optional[Clock] = None,
        store: Optional[InMemoryStore] = None,
        event_bus: Optional[EventBus] = None
    ) -> 'ServiceFactory':
        """Single-process engine with in-memory storage and thread locks"""
        settings = settings or FacilitySettings()
        return cls(
            settings,
            RepositoryFactory.create_in_memory_uow_factory(store),
            clock=clock,
            event_bus=event_bus
        )

    @classmethod
    def create_sqlalchemy(
        cls,
        settings: FacilitySettings,
        clock: Optional[Clock] = None,
        event_bus: Optional[EventBus] = None
    ) -> 'ServiceFactory':
        """
        Relational storage at settings.database_url
        With settings.redis_url, locks go through Redis and every event is
        forwarded to Redis Pub/Sub
        """
        uow_factory = RepositoryFactory.create_sqlalchemy_uow_factory(settings.database_url)
        event_bus = event_bus if event_bus is not None else EventBus()

        lock_provider: LockProvider
        if settings.redis_url:
            lock_provider = RedisLockProvider(
                settings.redis_url,
                lock_timeout_seconds=settings.lock_timeout_seconds
            )
            event_bus.subscribe(ALL_EVENTS, RedisEventForwarder(settings.redis_url))
        else:
            lock_provider = InMemoryLockProvider(settings.lock_timeout_seconds)

        return cls(settings, uow_factory, clock=clock, lock_provider=lock_provider, event_bus=event_bus)

    @classmethod
    def from_settings(cls, settings: Optional[FacilitySettings] = None) -> 'ServiceFactory':
        """Backend chosen by database_url: 'memory://' keeps everything in process"""
        settings = settings or FacilitySettings.from_env()
        if settings.database_url == "memory://":
            return cls.create_in_memory(settings)
        return cls.create_sqlalchemy(settings)
