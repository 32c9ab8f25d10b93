#!/usr/bin/env python3
"""
Unit tests for the ParkWash domain layer

Covers value objects, entity state machines, aggregates and events in
isolation; no repositories or services are involved.
"""

import unittest
from datetime import datetime, date, time, timedelta
from decimal import Decimal

from parkwash.domain.aggregates import ZoneLayout, Occupancy
from parkwash.domain.exceptions import (
    ValidationError, InvalidTransition, AlreadyClosed, DuplicateName, Forbidden
)
from parkwash.domain.models import (
    LicensePlate, Money, TimeWindow, RequestContext, Role,
    VehicleType, SpaceStatus, TariffServiceType, WashType, WashStatus,
    ReservationType, ReservationStatus,
    Zone, Space, Stay, WashItem, Reservation, Tariff,
    WashCompletedEvent, ReservationStatusChangedEvent, parse_enum
)

NOW = datetime(2024, 6, 1, 8, 0)


# ============================================================================
# VALUE OBJECTS
# ============================================================================

class TestLicensePlate(unittest.TestCase):
    """License plate normalization and validation"""

    def test_plate_is_trimmed_and_upper_cased(self):
        self.assertEqual(LicensePlate("  abc123 ").value, "ABC123")

    def test_plates_compare_by_value(self):
        self.assertEqual(LicensePlate("abc-12"), LicensePlate("ABC-12"))

    def test_rejects_empty_plate(self):
        with self.assertRaises(ValidationError):
            LicensePlate("   ")

    def test_rejects_bad_characters(self):
        with self.assertRaises(ValidationError):
            LicensePlate("AB$12")

    def test_rejects_too_long_plate(self):
        with self.assertRaises(ValidationError):
            LicensePlate("ABCDEFGHIJK")


class TestMoney(unittest.TestCase):
    """Money arithmetic"""

    def test_amount_is_quantized_to_whole_pesos(self):
        self.assertEqual(Money(Decimal("1999.5")).amount, Decimal("2000"))

    def test_negative_amount_rejected(self):
        with self.assertRaises(ValidationError):
            Money(Decimal("-1"))

    def test_add_and_multiply(self):
        total = Money(Decimal("5000")) * 2 + Money(Decimal("15000"))
        self.assertEqual(total.amount, Decimal("25000"))

    def test_currency_mismatch_rejected(self):
        with self.assertRaises(ValidationError):
            Money(Decimal("1"), "COP") + Money(Decimal("1"), "USD")

    def test_format(self):
        self.assertEqual(Money(Decimal("10000")).format(), "$10,000 COP")


class TestTimeWindow(unittest.TestCase):
    """Half-open window overlap"""

    def test_overlapping_windows(self):
        self.assertTrue(TimeWindow(time(9), time(10)).overlaps(TimeWindow(time(9, 30), time(10, 30))))

    def test_touching_windows_do_not_overlap(self):
        self.assertFalse(TimeWindow(time(9), time(10)).overlaps(TimeWindow(time(10), time(11))))

    def test_end_must_follow_start(self):
        with self.assertRaises(ValidationError):
            TimeWindow(time(10), time(10))

    def test_within_and_duration(self):
        window = TimeWindow(time(6), time(7, 30))
        self.assertTrue(window.is_within(TimeWindow(time(6), time(20))))
        self.assertEqual(window.duration_minutes, 90)
        self.assertEqual(str(window), "06:00-07:30")


class TestRequestContext(unittest.TestCase):
    """Caller identity"""

    def test_role_parsed_from_string(self):
        self.assertEqual(RequestContext("u1", "ADMIN").role, Role.ADMIN)

    def test_require_admin(self):
        RequestContext("u1", Role.ADMIN).require_admin("seed tariffs")
        with self.assertRaises(Forbidden):
            RequestContext("u2", Role.OPERADOR).require_admin("seed tariffs")

    def test_unknown_role_rejected(self):
        with self.assertRaises(ValidationError):
            RequestContext("u1", "root")


class TestParseEnum(unittest.TestCase):

    def test_case_insensitive(self):
        self.assertEqual(parse_enum(VehicleType, " Carro "), VehicleType.CARRO)

    def test_unknown_value(self):
        with self.assertRaises(ValidationError) as ctx:
            parse_enum(WashType, "premium")
        self.assertIn("simple", ctx.exception.message)


# ============================================================================
# ENTITIES
# ============================================================================

class TestSpaceStatus(unittest.TestCase):
    """Whitelisted space transitions"""

    def test_available_can_go_anywhere(self):
        for target in (SpaceStatus.OCCUPIED, SpaceStatus.RESERVED, SpaceStatus.MAINTENANCE):
            self.assertTrue(SpaceStatus.AVAILABLE.can_transition_to(target))

    def test_occupied_only_returns_to_available(self):
        self.assertTrue(SpaceStatus.OCCUPIED.can_transition_to(SpaceStatus.AVAILABLE))
        self.assertFalse(SpaceStatus.OCCUPIED.can_transition_to(SpaceStatus.MAINTENANCE))

    def test_space_check_transition(self):
        space = Space("zone-1", 1, VehicleType.CARRO, status=SpaceStatus.MAINTENANCE)
        with self.assertRaises(InvalidTransition):
            space.check_transition(SpaceStatus.OCCUPIED)

    def test_space_code(self):
        self.assertEqual(Space("zone-1", 7, "carro", zone_name="A").code, "A-07")


class TestStay(unittest.TestCase):
    """Stay lifecycle and elapsed time"""

    def setUp(self):
        self.stay = Stay(" abc123 ", "carro", entry_time=NOW)

    def test_plate_normalized(self):
        self.assertEqual(self.stay.plate.value, "ABC123")

    def test_close_once(self):
        self.stay.close(NOW + timedelta(minutes=30))
        self.assertFalse(self.stay.is_active)
        with self.assertRaises(AlreadyClosed):
            self.stay.close(NOW + timedelta(minutes=31))

    def test_elapsed_minutes_floor(self):
        self.assertEqual(self.stay.elapsed_minutes(NOW + timedelta(minutes=59, seconds=59)), 59)

    def test_elapsed_never_negative(self):
        self.assertEqual(self.stay.elapsed_minutes(NOW - timedelta(minutes=5)), 0)

    def test_elapsed_frozen_after_exit(self):
        self.stay.close(NOW + timedelta(minutes=45))
        self.assertEqual(self.stay.elapsed_minutes(NOW + timedelta(hours=5)), 45)


class TestWashItem(unittest.TestCase):
    """Wash state machine"""

    def setUp(self):
        self.wash = WashItem("stay-1", "carro", "simple", Money(Decimal("15000")))

    def test_forward_path(self):
        self.wash.start(NOW)
        amount = self.wash.complete(NOW + timedelta(minutes=20))
        self.assertEqual(self.wash.status, WashStatus.COMPLETADO)
        self.assertEqual(amount.amount, Decimal("15000"))

    def test_cannot_complete_pending(self):
        with self.assertRaises(InvalidTransition):
            self.wash.complete(NOW)

    def test_cancel_from_in_progress(self):
        self.wash.start(NOW)
        self.wash.cancel(NOW)
        self.assertEqual(self.wash.status, WashStatus.CANCELADO)

    def test_no_transition_out_of_terminal(self):
        self.wash.cancel(NOW)
        with self.assertRaises(InvalidTransition):
            self.wash.start(NOW)
        with self.assertRaises(InvalidTransition):
            self.wash.cancel(NOW)


class TestReservation(unittest.TestCase):
    """Reservation rules and status chain"""

    def make(self, reservation_type="parqueadero", wash_type=None):
        return Reservation(
            client_id="cliente-1",
            reservation_type=reservation_type,
            vehicle_type="carro",
            vehicle_plate="abc123",
            reservation_date=date(2024, 6, 1),
            start_time=time(9),
            end_time=time(10),
            wash_type=wash_type,
            created_at=NOW
        )

    def test_wash_reservation_requires_wash_type(self):
        with self.assertRaises(ValidationError):
            self.make("lavado")

    def test_parking_reservation_rejects_wash_type(self):
        with self.assertRaises(ValidationError):
            self.make("parqueadero", "simple")

    def test_forward_chain(self):
        reservation = self.make()
        for target in ("confirmado", "en_progreso", "completado"):
            reservation.advance(target, NOW)
        self.assertEqual(reservation.status, ReservationStatus.COMPLETADO)

    def test_skip_rejected(self):
        with self.assertRaises(InvalidTransition):
            self.make().advance(ReservationStatus.EN_PROGRESO, NOW)

    def test_backward_rejected(self):
        reservation = self.make()
        reservation.advance(ReservationStatus.CONFIRMADO, NOW)
        with self.assertRaises(InvalidTransition):
            reservation.advance(ReservationStatus.PENDIENTE, NOW)

    def test_cancel_from_any_non_terminal(self):
        reservation = self.make()
        reservation.advance(ReservationStatus.CONFIRMADO, NOW)
        reservation.advance(ReservationStatus.CANCELADO, NOW)
        self.assertFalse(reservation.holds_capacity)
        with self.assertRaises(InvalidTransition):
            reservation.advance(ReservationStatus.CANCELADO, NOW)


class TestTariff(unittest.TestCase):

    def test_default_unit_follows_service_type(self):
        tariff = Tariff("Dia carro", "carro", "dia", Money(Decimal("30000")))
        self.assertEqual(tariff.time_unit_minutes, 1440)

    def test_price_must_be_positive(self):
        with self.assertRaises(ValidationError):
            Tariff("Gratis", "moto", TariffServiceType.HORA, Money(Decimal("0")))

    def test_revise_validates(self):
        tariff = Tariff("Hora carro", "carro", "hora", Money(Decimal("5000")))
        with self.assertRaises(ValidationError):
            tariff.revise(time_unit_minutes=0)


# ============================================================================
# AGGREGATES
# ============================================================================

class TestZoneLayout(unittest.TestCase):
    """Space numbering and occupancy"""

    def setUp(self):
        self.zone = Zone("a", VehicleType.CARRO)
        self.layout = ZoneLayout(self.zone)

    def test_zone_name_upper_cased(self):
        self.assertEqual(self.zone.name, "A")

    def test_add_spaces_numbers_sequentially(self):
        spaces = self.layout.add_spaces(3)
        self.assertEqual([s.space_number for s in spaces], [1, 2, 3])
        self.assertTrue(all(s.vehicle_type == VehicleType.CARRO for s in spaces))
        self.assertEqual(self.layout.add_space().space_number, 4)

    def test_numbering_continues_after_gap(self):
        self.layout.add_space(10)
        self.assertEqual(self.layout.next_space_number(), 11)

    def test_duplicate_number_rejected(self):
        self.layout.add_space(2)
        with self.assertRaises(DuplicateName):
            self.layout.add_space(2)

    def test_count_must_be_positive(self):
        with self.assertRaises(ValidationError):
            self.layout.add_spaces(0)

    def test_occupancy(self):
        spaces = self.layout.add_spaces(4)
        spaces[0].status = SpaceStatus.OCCUPIED
        spaces[1].status = SpaceStatus.MAINTENANCE
        occupancy = self.layout.occupancy()
        self.assertEqual((occupancy.total, occupancy.occupied, occupancy.available), (4, 1, 2))
        self.assertEqual(occupancy.maintenance, 1)
        self.assertEqual(occupancy.percentage, 25.0)

    def test_empty_zone_percentage_is_zero(self):
        self.assertEqual(self.layout.occupancy().percentage, 0.0)

    def test_accepts_only_matching_active_zone(self):
        self.assertTrue(self.layout.accepts(VehicleType.CARRO))
        self.assertFalse(self.layout.accepts(VehicleType.MOTO))
        self.zone.revise(is_active=False)
        self.assertFalse(self.layout.accepts(VehicleType.CARRO))

    def test_percentage_rounding(self):
        occupancy = Occupancy("z", "A", total=3, occupied=1, available=2, reserved=0, maintenance=0)
        self.assertEqual(occupancy.percentage, 33.33)


# ============================================================================
# DOMAIN EVENTS
# ============================================================================

class TestDomainEvents(unittest.TestCase):

    def test_wash_completed_carries_snapshot(self):
        wash = WashItem("stay-1", "carro", "completo", Money(Decimal("35000")))
        event = WashCompletedEvent(wash, NOW)
        data = event.to_dict()
        self.assertEqual(data["event_type"], "wash.completed")
        self.assertEqual(data["data"]["amount"], {"amount": "35000", "currency": "COP"})
        self.assertEqual(data["timestamp"], NOW.isoformat())

    def test_status_changed_payload(self):
        reservation = Reservation(
            "cliente-1", ReservationType.LAVADO, "carro", "XYZ987",
            date(2024, 6, 1), time(9), time(9, 30), wash_type="simple"
        )
        reservation.advance("confirmado", NOW)
        event = ReservationStatusChangedEvent(reservation, ReservationStatus.PENDIENTE, NOW)
        self.assertEqual(event.payload()["previous_status"], "pendiente")
        self.assertEqual(event.payload()["status"], "confirmado")


if __name__ == '__main__':
    unittest.main()
