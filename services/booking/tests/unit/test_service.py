"""
Tests for BookingService.

Every test here runs against both ledgers (memory and SQLite) through the
parametrized ``ledger`` fixture, so the two backends must agree.
"""

from datetime import date

import pytest

import config
from errors import (
    AuthenticationRequired,
    BookingNotFound,
    CredentialIssuanceFailed,
    InvalidSetting,
    MissingVoucherSelection,
    NotAuthorized,
    OutsideOpeningHours,
    RoomNotFound,
    SlotAlreadyBooked,
    UnknownRoom,
    VoucherExhausted,
    VoucherNotFound,
)
from models import BookingRequest, EnergyUpdate, PricingUpdate, RoomCreate, VoucherCreate
from service import BookingService

D = date(2025, 9, 15)


def req(**kw):
    kw.setdefault("date", D)
    kw.setdefault("room_id", "r1")
    kw.setdefault("hour", 10)
    return BookingRequest(**kw)


def slots(ledger, voucher_id):
    return ledger.vouchers.get(voucher_id).slots


class TestCreateBooking:

    def test_kulturskole_price(self, service, ledger):
        b = service.create_booking(req(group_code="kulturskole"), "alice")
        assert b.price == 139
        assert b.type == "solo"
        assert b.room_name == "R"
        assert b.created_by == "alice"
        assert ledger.bookings.get(D, "r1", 10).id == b.id

    def test_unknown_group_pays_base(self, service):
        assert service.create_booking(req(group_code="vip"), "alice").price == 199

    def test_slot_taken(self, service, ledger):
        service.create_booking(req(), "alice")
        with pytest.raises(SlotAlreadyBooked):
            service.create_booking(req(group_code="kulturskole"), "bob")
        kept = ledger.bookings.get(D, "r1", 10)
        assert kept.created_by == "alice"
        assert kept.price == 199

    def test_requires_identity(self, service):
        with pytest.raises(AuthenticationRequired):
            service.create_booking(req(), None)

    def test_local_identity_when_auth_not_required(self, ledger, rooms, events):
        svc = BookingService(ledger, rooms=rooms, require_auth=False, publish=events)
        assert svc.create_booking(req(), None).created_by == "local"

    def test_unknown_room(self, service):
        with pytest.raises(UnknownRoom):
            service.create_booking(req(room_id="x9"), "alice")

    def test_outside_opening_hours(self, service):
        with pytest.raises(OutsideOpeningHours):
            service.create_booking(req(hour=config.CLOSE_HOUR), "alice")

    def test_publishes_event(self, service, events):
        b = service.create_booking(req(), "alice")
        assert events.events == [("BookingCreated", {
            "bookingId": b.id, "date": "2025-09-15", "roomId": "r1",
            "hour": 10, "mode": "open", "price": 199,
        })]

    def test_publish_failure_does_not_block(self, ledger, rooms):
        def broken(event_type, payload):
            raise ConnectionError("broker down")

        svc = BookingService(ledger, rooms=rooms, require_auth=True, publish=broken)
        svc.create_booking(req(), "alice")
        assert ledger.bookings.get(D, "r1", 10) is not None


class TestVoucherMode:

    def test_debits_one_slot(self, service, ledger, voucher):
        b = service.create_booking(req(voucher_required=True, voucher_id=voucher.id), "alice")
        assert b.voucher_partner == "Ung Kultur Lerkendal"
        assert slots(ledger, voucher.id) == 1

    def test_missing_selection(self, service, ledger, voucher):
        with pytest.raises(MissingVoucherSelection):
            service.create_booking(req(voucher_required=True), "alice")
        assert ledger.bookings.get(D, "r1", 10) is None

    def test_exhausted_blocks_booking(self, service, ledger, voucher):
        service.create_booking(req(hour=10, voucher_required=True, voucher_id=voucher.id), "alice")
        service.create_booking(req(hour=11, voucher_required=True, voucher_id=voucher.id), "alice")
        with pytest.raises(VoucherExhausted):
            service.create_booking(req(hour=12, voucher_required=True, voucher_id=voucher.id), "alice")
        assert ledger.bookings.get(D, "r1", 12) is None
        assert slots(ledger, voucher.id) == 0

    def test_no_debit_when_slot_taken(self, service, ledger, voucher):
        service.create_booking(req(voucher_required=True, voucher_id=voucher.id), "alice")
        with pytest.raises(SlotAlreadyBooked):
            service.create_booking(req(voucher_required=True, voucher_id=voucher.id), "bob")
        assert slots(ledger, voucher.id) == 1

    def test_external_mode_never_debits(self, service, ledger, voucher):
        b = service.create_booking(req(
            book_for_others=True, booked_for="  Kari  ",
            voucher_required=True, voucher_id=voucher.id, group_code="kulturenheten",
        ), "alice")
        assert b.booked_for == "Kari"
        assert b.voucher_partner is None
        assert b.price == 149  # round(199 × 0.75)
        assert slots(ledger, voucher.id) == 2

    def test_delete_credits_partner(self, service, ledger, voucher):
        service.create_booking(req(voucher_required=True, voucher_id=voucher.id), "alice")
        service.delete_booking(D, "r1", 10, "alice")
        assert slots(ledger, voucher.id) == 2

    def test_delete_after_voucher_removed(self, service, ledger, voucher):
        service.create_booking(req(voucher_required=True, voucher_id=voucher.id), "alice")
        service.delete_voucher(voucher.id)
        service.delete_booking(D, "r1", 10, "alice")
        assert ledger.bookings.get(D, "r1", 10) is None
        assert ledger.vouchers.all() == []


class TestDeleteBooking:

    def test_only_creator(self, service, ledger):
        service.create_booking(req(), "alice")
        with pytest.raises(NotAuthorized):
            service.delete_booking(D, "r1", 10, "bob")
        assert ledger.bookings.get(D, "r1", 10) is not None

    def test_requires_identity(self, service):
        service.create_booking(req(), "alice")
        with pytest.raises(AuthenticationRequired):
            service.delete_booking(D, "r1", 10, None)

    def test_missing(self, service):
        with pytest.raises(BookingNotFound):
            service.delete_booking(D, "r1", 10, "alice")

    def test_without_voucher_leaves_ledger(self, service, ledger, voucher):
        b = service.create_booking(req(group_code="kulturskole"), "alice")
        assert b.price == 139
        service.delete_booking(D, "r1", 10, "alice")
        assert ledger.bookings.get(D, "r1", 10) is None
        assert slots(ledger, voucher.id) == 2

    def test_slot_free_again(self, service):
        service.create_booking(req(), "alice")
        service.delete_booking(D, "r1", 10, "alice")
        assert service.create_booking(req(), "bob").created_by == "bob"

    def test_revokes_access_grant(self, service, issuer, future_day):
        b = service.create_booking(req(date=future_day), "alice")
        g = service.issue_access(b.id)
        service.delete_booking(future_day, "r1", 10, "alice")
        assert g.status == "revoked"

    def test_revoke_failure_does_not_block(self, ledger, rooms, events):
        class BrokenIssuer:
            def revoke(self, booking_id):
                raise CredentialIssuanceFailed()

        svc = BookingService(ledger, issuer=BrokenIssuer(), rooms=rooms,
                             require_auth=True, publish=events)
        svc.create_booking(req(), "alice")
        svc.delete_booking(D, "r1", 10, "alice")
        assert ledger.bookings.get(D, "r1", 10) is None
        assert events.types == ["BookingCreated", "BookingDeleted"]


class TestAccess:

    def test_issue_is_idempotent(self, service, events, future_day):
        b = service.create_booking(req(date=future_day), "alice")
        g1 = service.issue_access(b.id)
        g2 = service.issue_access(b.id)
        assert (g1.id, g1.secret) == (g2.id, g2.secret)
        assert events.types.count("AccessGrantIssued") == 2

    def test_unknown_booking(self, service):
        with pytest.raises(BookingNotFound):
            service.issue_access("nope")

    def test_revoke_by_other_user(self, service, future_day):
        b = service.create_booking(req(date=future_day), "alice")
        service.issue_access(b.id)
        with pytest.raises(NotAuthorized):
            service.revoke_access(b.id, "bob")

    def test_no_access_provider(self, ledger, rooms, events, future_day):
        svc = BookingService(ledger, rooms=rooms, require_auth=True, publish=events)
        b = svc.create_booking(req(date=future_day), "alice")
        with pytest.raises(CredentialIssuanceFailed):
            svc.issue_access(b.id)
        with pytest.raises(CredentialIssuanceFailed):
            svc.revoke_access(b.id, "alice")
        assert "AccessGrantIssued" not in events.types


class TestStats:

    def test_day(self, service):
        service.create_booking(req(group_code="kulturskole"), "alice")
        service.create_booking(req(room_id="b1"), "alice")
        st = service.day_stats(D)
        assert st.booked == 2
        assert st.total == 3 * config.HOURS_PER_DAY
        assert st.revenue == 139 + 399
        assert st.kwh_per_booked_hour == pytest.approx((3.0 + 4.5) / 2)

    def test_week_and_month(self, service):
        service.create_booking(req(date=date(2025, 9, 15)), "alice")
        service.create_booking(req(date=date(2025, 9, 21), hour=22), "alice")
        service.create_booking(req(date=date(2025, 9, 22)), "alice")
        week = service.week_stats(date(2025, 9, 18))
        assert (week.start, week.end) == (date(2025, 9, 15), date(2025, 9, 21))
        assert week.booked == 2
        assert week.total == 3 * config.HOURS_PER_DAY * 7
        month = service.month_stats(date(2025, 9, 1))
        assert month.booked == 3
        assert month.total == 3 * config.HOURS_PER_DAY * 30

    def test_list_bookings(self, service):
        service.create_booking(req(hour=11), "alice")
        service.create_booking(req(hour=10), "alice")
        assert [b.hour for b in service.list_bookings(D)] == [10, 11]


class TestVoucherAdmin:

    def test_create_adjust_delete(self, service, ledger):
        v = service.create_voucher(VoucherCreate(partner=" Kulturhuset ", slots=10))
        assert v.partner == "Kulturhuset"
        assert service.adjust_voucher(v.id, +5).slots == 15
        assert service.adjust_voucher(v.id, -50).slots == 0
        service.delete_voucher(v.id)
        assert service.list_vouchers() == []

    def test_adjust_unknown(self, service):
        with pytest.raises(VoucherNotFound):
            service.adjust_voucher("nope", 1)


class TestSettings:

    def test_group_multiplier_applies_to_later_bookings(self, service):
        before = service.create_booking(req(group_code="kulturskole"), "alice")
        service.set_pricing(PricingUpdate(groups={"kulturskole": 0.5}))
        assert service.quote("solo", "kulturskole") == 100
        after = service.create_booking(req(hour=11, group_code="kulturskole"), "alice")
        assert after.price == 100
        assert service.get_booking(D, "r1", 10).price == before.price == 139

    def test_base_price_change_keeps_groups(self, service):
        pricing = service.set_pricing(PricingUpdate(base={"solo": 250}))
        assert pricing["base"] == {"solo": 250, "band": 399, "preprod": 799}
        assert pricing["groups"]["kulturskole"] == 0.7
        assert service.quote("solo") == 250
        assert service.pricing == pricing

    def test_negative_price_rejected(self, service):
        with pytest.raises(InvalidSetting):
            service.set_pricing(PricingUpdate(base={"band": -1}))
        assert service.quote("band") == 399

    def test_energy_change_used_by_day_stats(self, service):
        service.set_energy(EnergyUpdate(solo=5.0, optimizationFactor=0.5))
        service.create_booking(req(), "alice")
        st = service.day_stats(D)
        assert st.kwh_per_booked_hour == pytest.approx(5.0)
        assert st.kwh_optimized_per_hour == pytest.approx(2.5)
        assert service.energy["band"] == 4.5

    def test_add_room(self, service):
        r = service.add_room(RoomCreate(type="band"))
        assert (r.name, r.type) == ("Band 2", "band")
        assert r.id in {x.id for x in service.rooms}
        b = service.create_booking(req(room_id=r.id), "alice")
        assert (b.price, b.room_name) == (399, "Band 2")

    def test_add_room_with_name(self, service):
        assert service.add_room(RoomCreate(type="solo", name=" Studio A ")).name == "Studio A"

    def test_add_room_unknown_type(self, service):
        with pytest.raises(InvalidSetting):
            service.add_room(RoomCreate(type="hall"))
        assert len(service.rooms) == 3

    def test_remove_room_keeps_its_bookings(self, service):
        service.create_booking(req(room_id="b1"), "alice")
        service.remove_room("b1")
        assert "b1" not in {r.id for r in service.rooms}
        kept = service.get_booking(D, "b1", 10)
        assert (kept.type, kept.room_name, kept.price) == ("band", "Band 1", 399)
        with pytest.raises(UnknownRoom):
            service.create_booking(req(room_id="b1", hour=11), "alice")
        assert service.day_stats(D).total == 2 * config.HOURS_PER_DAY
        service.delete_booking(D, "b1", 10, "alice")
        assert service.list_bookings(D) == []

    def test_remove_unknown_room(self, service):
        with pytest.raises(RoomNotFound):
            service.remove_room("nope")
