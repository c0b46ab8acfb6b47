# ============================================================
# service.py — Orchestration des réservations
# ------------------------------------------------------------
# Création :
#   1) identité + salle + heure d’ouverture
#   2) admission (mode open / voucher / external) sur l’état des
#      vouchers relu au moment même de la réservation
#   3) prix = grille tarifaire × remise du groupe
#   4) insertion (SlotAlreadyBooked si le créneau est pris)
#   5) débit du voucher, puis commit : tout ou rien
# Suppression :
#   1) seul le créateur peut supprimer
#   2) suppression + recrédit du voucher, puis commit
#   3) après le commit seulement : révocation du code d’accès et
#      publication de l’événement, sans jamais bloquer la suppression
# Réglages :
#   salles, tarifs et énergie passent par le catalogue ; les
#   devis et statistiques suivants utilisent les nouvelles valeurs
# ============================================================
import logging

import config
import stats
from admission import BookingMode, admit
from catalogue import MemoryCatalogue, find_room
from errors import (
    AuthenticationRequired,
    BookingNotFound,
    CredentialIssuanceFailed,
    NotAuthorized,
    OutsideOpeningHours,
    RoomNotFound,
    UnknownRoom,
    VoucherNotFound,
)
from models import (
    Booking,
    BookingRequest,
    EnergyUpdate,
    PricingUpdate,
    Room,
    RoomCreate,
    Voucher,
    VoucherCreate,
)
from pricing import price
from publisher import publish_event

log = logging.getLogger("booking")

LOCAL_IDENTITY = "local"


class BookingService:
    def __init__(self, ledger, issuer=None, catalogue=None, rooms=None, pricing=None,
                 energy=None, require_auth=None, publish=publish_event):
        self.ledger = ledger
        self.issuer = issuer
        self.catalogue = catalogue or MemoryCatalogue(rooms, pricing, energy)
        self.require_auth = config.REQUIRE_AUTH if require_auth is None else require_auth
        self.publish = publish

    @property
    def rooms(self):
        return self.catalogue.rooms()

    @property
    def pricing(self):
        return self.catalogue.pricing()

    @property
    def energy(self):
        return self.catalogue.energy()

    # L’identité n’est comparée que par égalité (propriétaire ou non)
    def identity(self, user_id):
        if user_id:
            return user_id
        if self.require_auth:
            raise AuthenticationRequired()
        return LOCAL_IDENTITY

    def _notify(self, event_type: str, payload: dict):
        try:
            self.publish(event_type, payload)
        except Exception as e:
            log.warning("[booking] could not publish %s: %s", event_type, e)

    # ------------------------------------------------------------
    # Réservations
    # ------------------------------------------------------------
    def quote(self, room_type: str, group_code: str = None) -> int:
        return price(room_type, group_code, self.pricing)

    def create_booking(self, req: BookingRequest, user_id=None) -> Booking:
        created_by = self.identity(user_id)
        room = find_room(self.rooms, req.room_id)
        if not room:
            raise UnknownRoom()
        if req.hour not in stats.hours():
            raise OutsideOpeningHours()

        adm = admit(req, self.ledger.vouchers.all())
        group_code = req.group_code or "standard"
        b = Booking(
            date=req.date,
            room_id=room.id,
            hour=req.hour,
            type=room.type,
            room_name=room.name,
            voucher_partner=adm.voucher_partner,
            booked_for=adm.booked_for,
            group_code=group_code,
            price=self.quote(room.type, group_code),
            created_by=created_by,
        )

        try:
            self.ledger.bookings.create(b)
            if adm.mode is BookingMode.VOUCHER:
                self.ledger.vouchers.adjust(adm.voucher_id, -1)
            self.ledger.commit()
        except Exception:
            self.ledger.rollback()
            raise

        log.info("[booking] created %s %s h%s mode=%s price=%s",
                 b.date, b.room_id, b.hour, adm.mode.value, b.price)
        self._notify("BookingCreated", {
            "bookingId": b.id,
            "date": b.date.isoformat(),
            "roomId": b.room_id,
            "hour": b.hour,
            "mode": adm.mode.value,
            "price": b.price,
        })
        return b

    def delete_booking(self, date, room_id: str, hour: int, user_id=None) -> Booking:
        who = self.identity(user_id)
        existing = self.ledger.bookings.get(date, room_id, hour)
        if not existing:
            raise BookingNotFound()
        if existing.created_by != who:
            raise NotAuthorized()

        booking_id, partner = existing.id, existing.voucher_partner
        try:
            self.ledger.bookings.remove(date, room_id, hour)
            if partner:
                self.ledger.vouchers.adjust_partner(partner, +1)
            self.ledger.commit()
        except Exception:
            self.ledger.rollback()
            raise

        log.info("[booking] deleted %s %s h%s", date, room_id, hour)
        self._revoke_after_delete(booking_id)
        self._notify("BookingDeleted", {
            "bookingId": booking_id,
            "date": date.isoformat(),
            "roomId": room_id,
            "hour": hour,
        })
        return existing

    def _revoke_after_delete(self, booking_id: str):
        if not self.issuer:
            return
        try:
            self.issuer.revoke(booking_id)
        except Exception as e:
            log.warning("[booking] access revoke failed for %s: %s", booking_id, e)

    def get_booking(self, date, room_id: str, hour: int) -> Booking:
        b = self.ledger.bookings.get(date, room_id, hour)
        if not b:
            raise BookingNotFound()
        return b

    def list_bookings(self, start, end=None):
        return self.ledger.bookings.list_range(start, end or start)

    # ------------------------------------------------------------
    # Codes d’accès
    # ------------------------------------------------------------
    def _require_issuer(self):
        if self.issuer is None:
            raise CredentialIssuanceFailed("no access provider configured")
        return self.issuer

    def issue_access(self, booking_id: str):
        b = self.ledger.bookings.get_by_id(booking_id)
        if not b:
            raise BookingNotFound()
        g = self._require_issuer().get_or_issue(b)
        self._notify("AccessGrantIssued", {
            "bookingId": b.id, "grantId": g.id, "endAt": g.end_at.isoformat(),
        })
        return g

    def revoke_access(self, booking_id: str, user_id=None):
        who = self.identity(user_id)
        b = self.ledger.bookings.get_by_id(booking_id)
        if b and b.created_by != who:
            raise NotAuthorized()
        g = self._require_issuer().revoke(booking_id)
        self._notify("AccessGrantRevoked", {"bookingId": booking_id})
        return g

    # ------------------------------------------------------------
    # Statistiques
    # ------------------------------------------------------------
    def day_stats(self, day):
        rows = self.ledger.bookings.list_day(day)
        return stats.daily_stats(rows, day, self.rooms, self.energy, self.pricing)

    def range_stats(self, start, end):
        rows = self.ledger.bookings.list_range(start, end)
        return stats.utilization(rows, self.rooms, start, end)

    def week_stats(self, ref):
        rows = self.ledger.bookings.list_range(*stats.week_range(ref))
        return stats.week_utilization(rows, self.rooms, ref)

    def month_stats(self, ref):
        rows = self.ledger.bookings.list_range(*stats.month_range(ref))
        return stats.month_utilization(rows, self.rooms, ref)

    # ------------------------------------------------------------
    # Vouchers
    # ------------------------------------------------------------
    def list_vouchers(self):
        return self.ledger.vouchers.all()

    def create_voucher(self, data: VoucherCreate) -> Voucher:
        v = self.ledger.vouchers.add(Voucher(partner=data.partner.strip(), slots=data.slots))
        self.ledger.commit()
        log.info("[booking] voucher %s created for %s (%s)", v.id, v.partner, v.slots)
        return v

    def adjust_voucher(self, voucher_id: str, delta: int) -> Voucher:
        v = self.ledger.vouchers.adjust(voucher_id, delta)
        if not v:
            raise VoucherNotFound()
        self.ledger.commit()
        return v

    def delete_voucher(self, voucher_id: str):
        # les réservations gardent le nom du partenaire
        if not self.ledger.vouchers.delete(voucher_id):
            raise VoucherNotFound()
        self.ledger.commit()

    # ------------------------------------------------------------
    # Réglages : salles, tarifs, énergie
    # ------------------------------------------------------------
    def add_room(self, data: RoomCreate) -> Room:
        r = self.catalogue.add_room(data.type, data.name)
        log.info("[booking] room %s added (%s, %s)", r.id, r.name, r.type)
        return r

    def remove_room(self, room_id: str) -> Room:
        # les réservations existantes gardent type et nom figés
        r = self.catalogue.remove_room(room_id)
        if r is None:
            raise RoomNotFound()
        log.info("[booking] room %s removed", room_id)
        return r

    def set_pricing(self, data: PricingUpdate) -> dict:
        pricing = self.catalogue.set_pricing(data.base, data.groups)
        log.info("[booking] pricing updated: %s", pricing)
        return pricing

    def set_energy(self, data: EnergyUpdate) -> dict:
        energy = self.catalogue.set_energy(data.model_dump(exclude_none=True))
        log.info("[booking] energy coefficients updated: %s", energy)
        return energy
