#!/usr/bin/env python3
"""
Integration tests for the SQLAlchemy storage backend

Runs the full facility against an in-memory SQLite database; each test
builds its own engine.
"""

import unittest
from datetime import datetime, time
from decimal import Decimal
from unittest.mock import patch

from parkwash.application.dtos import StayEntryRequestDTO, WashEntryRequestDTO, ZoneCreateDTO, ZoneUpdateDTO
from parkwash.domain.aggregates import ZoneLayout
from parkwash.domain.clock import FixedClock
from parkwash.domain.exceptions import DuplicateActiveStay, NoCapacity, SlotNoLongerAvailable
from parkwash.domain.models import SpaceStatus, Zone, VehicleType
from parkwash.infrastructure.config import FacilitySettings
from parkwash.infrastructure.factories import ServiceFactory
from parkwash.infrastructure.locking import InMemoryLockProvider, RedisLockProvider
from parkwash.infrastructure.messaging import EventBus
from parkwash.infrastructure.repositories import RepositoryFactory

from tests.fixtures import ADMIN, CLIENT, reservation_request

START = datetime(2024, 6, 1, 8, 0)


class SQLAlchemyTestBase(unittest.TestCase):

    def setUp(self):
        self.settings = FacilitySettings(database_url="sqlite://", parking_reservation_capacity=1)
        self.clock = FixedClock(START)
        self.factory = ServiceFactory.create_sqlalchemy(self.settings, clock=self.clock)
        self.facility = self.factory.create_facility_service()

        self.zone = self.facility.create_zone(ADMIN, ZoneCreateDTO(name="A", vehicle_type="carro"))
        self.facility.bulk_create_spaces(ADMIN, self.zone.id, 2)
        self.facility.seed_default_tariffs(ADMIN)


class TestSQLAlchemyFacility(SQLAlchemyTestBase):

    def test_lock_provider_without_redis(self):
        self.assertIsInstance(self.factory.lock_provider, InMemoryLockProvider)

    def test_parking_round_trip(self):
        stay = self.facility.open_stay(StayEntryRequestDTO(plate="abc123", vehicle_type="carro"))
        self.assertEqual(self.facility.list_spaces(self.zone.id)[0].status, SpaceStatus.OCCUPIED.value)

        with self.assertRaises(DuplicateActiveStay):
            self.facility.open_stay(StayEntryRequestDTO(plate="ABC123", vehicle_type="carro"))

        self.clock.advance(minutes=90)
        bill = self.facility.close_stay(stay.id)
        self.assertEqual(bill.total.amount, Decimal("10000"))
        self.assertTrue(all(s.status == "available" for s in self.facility.list_spaces(self.zone.id)))

    def test_capacity_exhaustion_rolls_back(self):
        self.facility.open_stay(StayEntryRequestDTO(plate="AAA111", vehicle_type="carro"))
        self.facility.open_stay(StayEntryRequestDTO(plate="BBB222", vehicle_type="carro"))
        with self.assertRaises(NoCapacity):
            self.facility.open_stay(StayEntryRequestDTO(plate="CCC333", vehicle_type="carro"))
        self.assertEqual(len(self.facility.active_stays()), 2)
        self.assertIsNone(self.facility.find_active_stay("CCC333"))

    def test_wash_price_snapshot_persists(self):
        entry = self.facility.open_wash_only_stay(
            WashEntryRequestDTO(plate="XYZ987", vehicle_type="carro", wash_type="completo")
        )
        self.facility.start_wash(entry.wash.id)
        completed = self.facility.complete_wash(entry.wash.id)
        self.assertEqual(completed.price.amount, Decimal("35000"))
        self.assertEqual(self.facility.bill(entry.stay.id).total.amount, Decimal("35000"))

    def test_reservations(self):
        booked = self.facility.create_reservation(CLIENT, reservation_request(time(9), time(10)))
        with self.assertRaises(SlotNoLongerAvailable):
            self.facility.create_reservation(CLIENT, reservation_request(time(9, 30), time(10, 30), plate="XYZ987"))

        agenda = self.facility.agenda("2024-06-01")
        self.assertEqual([r.id for r in agenda.reservations], [booked.id])
        self.assertEqual(agenda.reservations[0].start_time, time(9))

        self.facility.cancel_reservation(CLIENT, booked.id)
        self.facility.create_reservation(CLIENT, reservation_request(time(9, 30), time(10, 30), plate="XYZ987"))

    def test_zone_rename_is_reflected_in_space_codes(self):
        self.facility.update_zone(ADMIN, self.zone.id, ZoneUpdateDTO(name="B"))
        self.assertEqual(self.facility.list_spaces(self.zone.id)[0].code, "B-01")

    def test_history_and_activity_queries(self):
        first = self.facility.open_stay(StayEntryRequestDTO(plate="ABC123", vehicle_type="carro"))
        self.clock.advance(minutes=45)
        self.facility.open_stay(StayEntryRequestDTO(plate="XYZ987", vehicle_type="carro"))
        self.clock.advance(hours=1)
        self.facility.close_stay(first.id)

        self.assertEqual([s.plate for s in self.facility.stay_history()], ["XYZ987", "ABC123"])
        self.assertEqual([s.plate for s in self.facility.stay_history("xyz")], ["XYZ987"])

        dashboard = self.facility.dashboard()
        self.assertEqual(dashboard.vehicles_today, 2)
        self.assertEqual((dashboard.hourly[8].entries, dashboard.hourly[9].exits), (2, 1))
        self.assertEqual(
            [(a.plate, a.activity_type) for a in dashboard.recent_activity],
            [("ABC123", "exit"), ("XYZ987", "entry"), ("ABC123", "entry")]
        )

    def test_tariff_order_by_creation(self):
        tariffs = self.factory.create_tariff_table()
        self.assertEqual(tariffs.resolve("carro").price.amount, Decimal("5000"))


class TestRepositoryCompareAndSet(unittest.TestCase):
    """transition_status only succeeds from the expected status"""

    def test_compare_and_set(self):
        uow_factory = RepositoryFactory.create_sqlalchemy_uow_factory("sqlite://")
        zone = Zone("A", VehicleType.CARRO)
        space = ZoneLayout(zone).add_space()

        with uow_factory() as uow:
            uow.zones.add(zone)
            uow.spaces.add(space)

        with uow_factory() as uow:
            self.assertTrue(uow.spaces.transition_status(space.id, SpaceStatus.AVAILABLE, SpaceStatus.OCCUPIED))
            self.assertFalse(uow.spaces.transition_status(space.id, SpaceStatus.AVAILABLE, SpaceStatus.OCCUPIED))

        with uow_factory() as uow:
            self.assertEqual(uow.spaces.get(space.id).status, SpaceStatus.OCCUPIED)
            self.assertEqual(uow.spaces.get(space.id).zone_name, "A")


class TestFactoryWiring(unittest.TestCase):

    def test_redis_url_switches_locks_and_forwarding(self):
        settings = FacilitySettings(database_url="sqlite://", redis_url="redis://localhost:6379/0")
        bus = EventBus()
        with patch("redis.Redis.from_url") as from_url:
            factory = ServiceFactory.create_sqlalchemy(settings, event_bus=bus)

        self.assertIsInstance(factory.lock_provider, RedisLockProvider)
        self.assertEqual(from_url.call_count, 2)
        self.assertEqual(len(bus._subscribers["*"]), 1)

    def test_from_settings_memory(self):
        factory = ServiceFactory.from_settings(FacilitySettings(database_url="memory://"))
        facility = factory.create_facility_service()
        self.assertEqual(facility.list_zones(), [])


if __name__ == '__main__':
    unittest.main()
