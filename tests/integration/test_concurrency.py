#!/usr/bin/env python3
"""
Concurrency tests for the contended resources

1. Space status - two entries never share a space
2. Active stay per plate - one winner among simultaneous entries
3. Reservation capacity - simultaneous bookings never overbook
4. Independent keys - different dates book in parallel
5. Wash transitions - a complete racing a cancel has one winner
6. Layout - zone names and space numbers stay unique
"""

import threading
import time as systime
import unittest
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, time, timedelta

from parkwash.application.dtos import ZoneCreateDTO
from parkwash.domain.clock import FixedClock
from parkwash.domain.exceptions import (
    NoCapacity, DuplicateActiveStay, SlotNoLongerAvailable, AlreadyClosed, InvalidTransition,
    DuplicateName
)
from parkwash.infrastructure.config import FacilitySettings

from tests.fixtures import FacilityHarness, ADMIN, BOOKING_DAY, reservation_request

WORKERS = 16


def run_concurrently(fn, arguments):
    """Start every call at once; return (results, errors)"""
    barrier = threading.Barrier(len(arguments))
    results, errors = [], []
    guard = threading.Lock()

    def call(argument):
        barrier.wait()
        try:
            value = fn(argument)
            with guard:
                results.append(value)
        except Exception as e:
            with guard:
                errors.append(e)

    with ThreadPoolExecutor(max_workers=len(arguments)) as pool:
        list(pool.map(call, arguments))
    return results, errors



class SlowClock(FixedClock):
    """Pauses on every read so a read-check-write section stays open longer"""

    def now(self) -> datetime:
        systime.sleep(0.02)
        return super().now()

class TestSpaceContention(unittest.TestCase):

    def test_no_double_allocation(self):
        harness = FacilityHarness()
        harness.add_zone("A", "carro", spaces=5)

        results, errors = run_concurrently(
            lambda i: harness.stays.open_stay(f"CAR{i:03d}", "carro", auto_allocate=True),
            list(range(WORKERS))
        )

        space_ids = [stay.space_id for stay in results]
        self.assertEqual(len(results), 5)
        self.assertEqual(len(set(space_ids)), 5)
        self.assertEqual(len(errors), WORKERS - 5)
        self.assertTrue(all(isinstance(e, NoCapacity) for e in errors))
        self.assertEqual(harness.spaces.occupancy(harness.spaces.list_zones()[0].id).occupied, 5)

    def test_same_plate_single_winner(self):
        harness = FacilityHarness()
        harness.add_zone("A", "carro", spaces=WORKERS)

        results, errors = run_concurrently(
            lambda _: harness.stays.open_stay("ABC123", "carro", auto_allocate=True),
            list(range(WORKERS))
        )

        self.assertEqual(len(results), 1)
        self.assertTrue(all(isinstance(e, DuplicateActiveStay) for e in errors))
        self.assertEqual(len(harness.stays.active_stays()), 1)
        zone_id = harness.spaces.list_zones()[0].id
        self.assertEqual(harness.spaces.occupancy(zone_id).occupied, 1)

    def test_double_exit_single_winner(self):
        harness = FacilityHarness()
        harness.add_zone("A", "carro", spaces=1)
        stay = harness.stays.open_stay("ABC123", "carro", auto_allocate=True)

        results, errors = run_concurrently(lambda _: harness.stays.close_stay(stay.id), list(range(4)))

        self.assertEqual(len(results), 1)
        self.assertTrue(all(isinstance(e, AlreadyClosed) for e in errors))
        self.assertEqual(len(errors), 3)


class TestReservationContention(unittest.TestCase):

    def test_capacity_never_exceeded(self):
        harness = FacilityHarness(FacilitySettings(database_url="memory://", wash_bays=3))

        results, errors = run_concurrently(
            lambda i: harness.reservations.create(
                reservation_request(time(9), time(9, 30), "lavado", f"WSH{i:03d}", wash_type="simple")
            ),
            list(range(WORKERS))
        )

        self.assertEqual(len(results), 3)
        self.assertTrue(all(isinstance(e, SlotNoLongerAvailable) for e in errors))
        slot = [s for s in harness.reservations.available_slots(BOOKING_DAY, "lavado") if s.start_time == time(9)][0]
        self.assertEqual(slot.booked, 3)
        self.assertFalse(slot.is_available)

    def test_different_dates_do_not_block_each_other(self):
        harness = FacilityHarness(FacilitySettings(database_url="memory://", parking_reservation_capacity=1))

        results, errors = run_concurrently(
            lambda offset: harness.reservations.create(
                reservation_request(time(9), time(10), reservation_date=BOOKING_DAY + timedelta(days=offset))
            ),
            list(range(8))
        )

        self.assertEqual(errors, [])
        self.assertEqual(len(results), 8)



class TestWashContention(unittest.TestCase):

    def test_complete_racing_cancel_has_one_winner(self):
        for _ in range(5):
            harness = FacilityHarness()
            stay = harness.stays.open_stay("ABC123", "carro")
            wash = harness.washes.enqueue(stay.id, "simple")
            harness.washes.start(wash.id)
            harness.washes.clock = SlowClock(harness.clock.now())

            actions = {"complete": harness.washes.complete, "cancel": harness.washes.cancel}
            results, errors = run_concurrently(lambda name: actions[name](wash.id), ["complete", "cancel"])

            self.assertEqual(len(results), 1)
            self.assertEqual(len(errors), 1)
            self.assertIsInstance(errors[0], InvalidTransition)

            stored = harness.washes.get(wash.id)
            self.assertEqual(stored.status, results[0].status)
            billed = harness.recorder.types().count("wash.completed")
            self.assertEqual(billed, 1 if stored.status.value == "completado" else 0)


class TestLayoutContention(unittest.TestCase):

    def test_same_zone_name_single_winner(self):
        harness = FacilityHarness()

        results, errors = run_concurrently(
            lambda name: harness.spaces.create_zone(ADMIN, ZoneCreateDTO(name=name, vehicle_type="carro")),
            ["a", "A", " a ", "A"]
        )

        self.assertEqual(len(results), 1)
        self.assertEqual(len(errors), 3)
        self.assertTrue(all(isinstance(e, DuplicateName) for e in errors))
        self.assertEqual([z.name for z in harness.spaces.list_zones()], ["A"])

    def test_bulk_creation_keeps_numbers_unique(self):
        harness = FacilityHarness()
        zone = harness.add_zone("A", "carro", spaces=0)

        results, errors = run_concurrently(
            lambda _: harness.spaces.bulk_create_spaces(ADMIN, zone.id, 3),
            list(range(8))
        )

        self.assertEqual(errors, [])
        numbers = [s.space_number for s in harness.spaces.list_spaces(zone.id)]
        self.assertEqual(numbers, list(range(1, 25)))

if __name__ == '__main__':
    unittest.main()
