#!/usr/bin/env python3
"""
Integration tests for the FacilityService facade

These tests drive the engine the way a calling layer would:
1. Parking entry, exit and bill
2. Wash-only visits and wash billing
3. Reservations with role checks
4. Administration and dashboard
"""

import unittest
from datetime import time
from decimal import Decimal

from parkwash.application.dtos import (
    StayEntryRequestDTO, WashEntryRequestDTO, ZoneCreateDTO, TariffCreateDTO, ErrorResponseDTO
)
from parkwash.domain.exceptions import (
    FacilityError, Forbidden, NoCapacity, InvalidWashType, DuplicateActiveStay, SlotNoLongerAvailable
)
from parkwash.domain.models import RequestContext, Role
from parkwash.infrastructure.config import FacilitySettings

from tests.fixtures import FacilityHarness, ADMIN, OPERATOR, CLIENT, reservation_request


class FacilityTestBase(unittest.TestCase):
    """Facility with zone A (2 carro spaces), zone M (1 moto space) and default tariffs"""

    settings = None

    def setUp(self):
        self.harness = FacilityHarness(self.settings)
        self.facility = self.harness.facility
        self.clock = self.harness.clock

        self.zone_a = self.facility.create_zone(ADMIN, ZoneCreateDTO(name="A", vehicle_type="carro"))
        self.zone_m = self.facility.create_zone(ADMIN, ZoneCreateDTO(name="M", vehicle_type="moto"))
        self.facility.bulk_create_spaces(ADMIN, self.zone_a.id, 2)
        self.facility.bulk_create_spaces(ADMIN, self.zone_m.id, 1)
        self.facility.seed_default_tariffs(ADMIN)


class TestParkingFlow(FacilityTestBase):

    def test_entry_exit_and_bill(self):
        stay = self.facility.open_stay(StayEntryRequestDTO(plate="abc123", vehicle_type="carro"))
        self.assertEqual(stay.plate, "ABC123")
        self.assertIsNotNone(stay.space_id)

        self.clock.advance(minutes=90)
        self.assertEqual(self.facility.fee(stay.id).amount, Decimal("10000"))

        bill = self.facility.close_stay(stay.id)
        self.assertEqual(bill.duration_minutes, 90)
        self.assertEqual(bill.total.amount, Decimal("10000"))
        self.assertEqual(bill.exit_time, self.clock.now())
        self.assertEqual(self.harness.recorder.types()[-2:], ["vehicle.entered", "vehicle.exited"])

    def test_entry_into_requested_zone(self):
        stay = self.facility.open_stay(
            StayEntryRequestDTO(plate="MOT12", vehicle_type="moto", zone_id=self.zone_m.id)
        )
        spaces = self.facility.list_spaces(self.zone_m.id)
        self.assertEqual(spaces[0].id, stay.space_id)
        self.assertEqual(spaces[0].status, "occupied")

    def test_full_facility_rejects_entry(self):
        self.facility.open_stay(StayEntryRequestDTO(plate="AAA111", vehicle_type="carro"))
        self.facility.open_stay(StayEntryRequestDTO(plate="BBB222", vehicle_type="carro"))
        with self.assertRaises(NoCapacity) as ctx:
            self.facility.open_stay(StayEntryRequestDTO(plate="CCC333", vehicle_type="carro"))
        self.assertEqual(ErrorResponseDTO.from_exception(ctx.exception).error_code, "no_capacity")

    def test_entry_without_space(self):
        stay = self.facility.open_stay(
            StayEntryRequestDTO(plate="CIC1", vehicle_type="cicla", auto_allocate=False)
        )
        self.assertIsNone(stay.space_id)
        self.assertEqual(self.facility.find_active_stay("cic1").id, stay.id)

    def test_quote(self):
        quote = self.facility.quote_fee("moto", 61)
        self.assertEqual(quote.amount.amount, Decimal("5000"))


class TestWashFlow(FacilityTestBase):

    def test_wash_only_visit(self):
        entry = self.facility.open_wash_only_stay(
            WashEntryRequestDTO(plate="XYZ987", vehicle_type="carro", wash_type="completo")
        )
        self.assertTrue(entry.stay.is_wash_only)
        self.assertIsNone(entry.stay.space_id)
        self.assertEqual(entry.wash.status, "pendiente")

        self.facility.start_wash(entry.wash.id)
        self.assertEqual(len(self.facility.washes_in_progress()), 1)
        self.clock.advance(minutes=40)
        self.facility.complete_wash(entry.wash.id)

        bill = self.facility.close_stay(entry.stay.id)
        self.assertEqual(bill.parking_fee.amount, Decimal("0"))
        self.assertEqual(bill.total.amount, Decimal("35000"))

    def test_unknown_wash_type_opens_no_stay(self):
        with self.assertRaises(InvalidWashType):
            self.facility.open_wash_only_stay(
                WashEntryRequestDTO.model_construct(plate="XYZ987", vehicle_type="carro", wash_type="encerado")
            )
        self.assertIsNone(self.facility.find_active_stay("XYZ987"))

    def test_wash_during_parking_stay(self):
        stay = self.facility.open_stay(StayEntryRequestDTO(plate="ABC123", vehicle_type="carro"))
        wash = self.facility.enqueue_wash(stay.id, "simple")
        self.assertEqual([w.id for w in self.facility.pending_washes()], [wash.id])
        self.facility.start_wash(wash.id)
        self.facility.complete_wash(wash.id)
        self.clock.advance(minutes=30)
        bill = self.facility.close_stay(stay.id)
        self.assertEqual(bill.total.amount, Decimal("20000"))

    def test_cancelled_wash_is_not_billed(self):
        stay = self.facility.open_stay(StayEntryRequestDTO(plate="ABC123", vehicle_type="carro"))
        wash = self.facility.enqueue_wash(stay.id, "completo")
        self.assertEqual(self.facility.cancel_wash(wash.id).status, "cancelado")
        self.assertEqual(self.facility.bill(stay.id).wash_total.amount, Decimal("0"))

    def test_wash_only_and_parking_share_plate_rule(self):
        self.facility.open_wash_only_stay(
            WashEntryRequestDTO(plate="XYZ987", vehicle_type="carro", wash_type="simple")
        )
        with self.assertRaises(DuplicateActiveStay):
            self.facility.open_stay(StayEntryRequestDTO(plate="XYZ987", vehicle_type="carro"))


class TestReservationFlow(FacilityTestBase):

    def test_client_books_for_self_only(self):
        booked = self.facility.create_reservation(CLIENT, reservation_request(time(9), time(10)))
        self.assertEqual(booked.status, "pendiente")
        with self.assertRaises(Forbidden):
            self.facility.create_reservation(
                CLIENT, reservation_request(time(11), time(12), plate="OTR111", client_id="someone-else")
            )

    def test_staff_books_for_anyone(self):
        booked = self.facility.create_reservation(
            OPERATOR, reservation_request(time(9), time(10), client_id="walk-in")
        )
        self.assertEqual(booked.client_id, "walk-in")

    def test_status_changes_are_staff_only(self):
        booked = self.facility.create_reservation(CLIENT, reservation_request(time(9), time(10)))
        with self.assertRaises(Forbidden):
            self.facility.advance_reservation(CLIENT, booked.id, "confirmado")
        confirmed = self.facility.advance_reservation(OPERATOR, booked.id, "confirmado")
        self.assertEqual(confirmed.status, "confirmado")

    def test_client_cancels_own_reservation(self):
        booked = self.facility.create_reservation(CLIENT, reservation_request(time(9), time(10)))
        stranger = RequestContext("cliente-2", Role.CLIENTE)
        with self.assertRaises(Forbidden):
            self.facility.cancel_reservation(stranger, booked.id)
        self.assertEqual(self.facility.cancel_reservation(CLIENT, booked.id).status, "cancelado")

    def test_parking_capacity_follows_active_spaces(self):
        self.facility.create_reservation(OPERATOR, reservation_request(time(9), time(10), plate="CAR001"))
        self.facility.create_reservation(OPERATOR, reservation_request(time(9), time(10), plate="CAR002"))
        self.facility.create_reservation(OPERATOR, reservation_request(time(9), time(10), plate="CAR003"))
        with self.assertRaises(SlotNoLongerAvailable):
            self.facility.create_reservation(OPERATOR, reservation_request(time(9), time(10), plate="CAR004"))

        slots = {s.start_time: s for s in self.facility.available_slots("2024-06-01", "parqueadero")}
        self.assertFalse(slots[time(9)].is_available)
        self.assertTrue(slots[time(10)].is_available)

    def test_agenda_and_client_listing(self):
        self.facility.create_reservation(CLIENT, reservation_request(time(9), time(10)))
        self.facility.create_reservation(
            CLIENT, reservation_request(time(9), time(9, 30), "lavado", "WSH111", wash_type="simple")
        )
        agenda = self.facility.agenda("2024-06-01")
        self.assertEqual((agenda.total_parking, agenda.total_wash), (1, 1))
        self.assertEqual(len(self.facility.client_reservations(CLIENT)), 2)
        with self.assertRaises(Forbidden):
            self.facility.client_reservations(CLIENT, "cliente-9")


class TestAdministration(FacilityTestBase):

    def test_operator_cannot_change_layout_or_prices(self):
        with self.assertRaises(Forbidden):
            self.facility.bulk_create_spaces(OPERATOR, self.zone_a.id, 1)
        with self.assertRaises(Forbidden):
            self.facility.create_tariff(
                OPERATOR, TariffCreateDTO(name="Dia", vehicle_type="carro", service_type="dia", price=Decimal("30000"))
            )
        with self.assertRaises(Forbidden):
            self.facility.seed_default_tariffs(CLIENT)

    def test_zone_listing_counts_spaces(self):
        zones = {z.name: z for z in self.facility.list_zones()}
        self.assertEqual(zones["A"].total_spaces, 2)
        self.assertEqual(zones["M"].total_spaces, 1)

    def test_deactivated_zone_leaves_dashboard(self):
        self.facility.deactivate_zone(ADMIN, self.zone_m.id)
        self.assertEqual([o.zone_name for o in self.facility.occupancy()], ["A"])

    def test_maintenance(self):
        space = self.facility.list_spaces(self.zone_m.id)[0]
        self.assertEqual(self.facility.set_space_maintenance(ADMIN, space.id, True).status, "maintenance")
        with self.assertRaises(NoCapacity):
            self.facility.open_stay(StayEntryRequestDTO(plate="MOT12", vehicle_type="moto"))

    def test_tariff_listing(self):
        self.assertEqual(len(self.facility.list_tariffs()), 3)
        self.assertEqual(self.facility.list_tariffs(vehicle_type="moto")[0].price.amount, Decimal("2500"))

    def test_dashboard(self):
        stay = self.facility.open_stay(StayEntryRequestDTO(plate="ABC123", vehicle_type="carro"))
        self.facility.enqueue_wash(stay.id, "simple")
        self.facility.create_reservation(CLIENT, reservation_request(time(15), time(16)))

        dashboard = self.facility.dashboard()
        self.assertEqual(dashboard.total_spaces, 3)
        self.assertEqual(dashboard.occupied_spaces, 1)
        self.assertEqual(dashboard.available_spaces, 2)
        self.assertEqual(dashboard.occupancy_percentage, 33.33)
        self.assertEqual(dashboard.active_stays, 1)
        self.assertEqual(dashboard.pending_washes, 1)
        self.assertEqual(dashboard.reservations_today, 1)

    def test_dashboard_activity(self):
        first = self.facility.open_stay(StayEntryRequestDTO(plate="ABC123", vehicle_type="carro"))
        self.clock.advance(minutes=30)
        self.facility.open_stay(StayEntryRequestDTO(plate="MOT12", vehicle_type="moto"))
        self.clock.advance(hours=2)
        self.facility.close_stay(first.id)

        dashboard = self.facility.dashboard()
        self.assertEqual(dashboard.vehicles_today, 2)
        self.assertEqual(dashboard.active_stays, 1)
        self.assertEqual(dashboard.hourly[8].entries, 2)
        self.assertEqual(dashboard.hourly[10].exits, 1)
        self.assertEqual(dashboard.recent_activity[0].plate, "ABC123")
        self.assertEqual(dashboard.recent_activity[0].activity_type, "exit")
        self.assertEqual(len(dashboard.recent_activity), 3)
        self.assertEqual(self.facility.recent_activity(limit=2), dashboard.recent_activity[:2])
        self.assertEqual(self.facility.hourly_stats("2024-06-01"), dashboard.hourly)

        self.clock.advance(days=1)
        self.assertEqual(self.facility.dashboard().vehicles_today, 0)

        history = self.facility.stay_history("abc")
        self.assertEqual(len(history), 1)
        self.assertFalse(history[0].is_active)

    def test_errors_share_one_base(self):
        with self.assertRaises(FacilityError):
            self.facility.close_stay("missing")


class TestWashOnlyConsumingSpace(FacilityTestBase):

    settings = FacilitySettings(database_url="memory://", wash_only_consumes_space=True)

    def test_wash_only_entry_takes_and_returns_a_space(self):
        entry = self.facility.open_wash_only_stay(
            WashEntryRequestDTO(plate="XYZ987", vehicle_type="moto", wash_type="simple")
        )
        self.assertIsNotNone(entry.stay.space_id)
        self.assertEqual(self.facility.occupancy(self.zone_m.id)[0].occupied, 1)

        self.clock.advance(minutes=10)
        bill = self.facility.close_stay(entry.stay.id)
        self.assertEqual(bill.parking_fee.amount, Decimal("2500"))
        self.assertEqual(self.facility.occupancy(self.zone_m.id)[0].occupied, 0)


if __name__ == '__main__':
    unittest.main()
