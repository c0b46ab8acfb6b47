# ============================================================
# repository.py — Accès aux données (mode SQL)
# ------------------------------------------------------------
# Ce module implémente le design pattern "Repository" pour les
# tables bookings et vouchers. Les méthodes font flush sans
# commit : c’est SqlLedger qui valide l’unité de travail, ce qui
# garantit qu’un voucher n’est jamais débité sans réservation.
# ============================================================
from sqlalchemy import case, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from errors import SlotAlreadyBooked
from models import Booking, Voucher
from store import BookingStore

UNIQUE_VIOLATION = "23505"  # code PostgreSQL


def is_unique_violation(e: IntegrityError) -> bool:
    orig = getattr(e, "orig", None)
    if getattr(orig, "pgcode", None) == UNIQUE_VIOLATION:
        return True
    return "unique" in str(orig).lower()


# BookingRepository
# CRUD sur la table bookings ; l’index unique (date, room_id, hour)
# est la vraie exclusion mutuelle entre clients concurrents.
class BookingRepository:
    def __init__(self, session: Session):
        self.session = session

    def create(self, b: Booking):
        self.session.add(b)
        try:
            self.session.flush()
        except IntegrityError as e:
            self.session.rollback()
            if is_unique_violation(e):
                raise SlotAlreadyBooked() from e
            raise
        return b

    def get(self, date, room_id: str, hour: int):
        return self.session.exec(
            select(Booking).where(
                Booking.date == date, Booking.room_id == room_id, Booking.hour == hour
            )
        ).first()

    def get_by_id(self, booking_id: str):
        return self.session.get(Booking, booking_id)

    def remove(self, date, room_id: str, hour: int):
        b = self.get(date, room_id, hour)
        if b:
            self.session.delete(b)
            self.session.flush()
        return b

    def list_day(self, date):
        return self.list_range(date, date)

    def list_range(self, start, end):
        return list(self.session.exec(
            select(Booking)
            .where(Booking.date >= start, Booking.date <= end)
            .order_by(Booking.date, Booking.room_id, Booking.hour)
        ).all())


# VoucherRepository
# Le solde est ajusté par un UPDATE atomique borné à zéro,
# pas par lecture puis écriture.
class VoucherRepository:
    def __init__(self, session: Session):
        self.session = session

    def all(self):
        return list(self.session.exec(select(Voucher).order_by(Voucher.partner)).all())

    def get(self, voucher_id: str):
        return self.session.exec(
            select(Voucher)
            .where(Voucher.id == voucher_id)
            .execution_options(populate_existing=True)
        ).first()

    def add(self, v: Voucher):
        self.session.add(v)
        self.session.flush()
        return v

    def delete(self, voucher_id: str) -> bool:
        v = self.get(voucher_id)
        if not v:
            return False
        self.session.delete(v)
        self.session.flush()
        return True

    def adjust(self, voucher_id: str, delta: int):
        new_slots = Voucher.slots + delta
        self.session.exec(
            update(Voucher)
            .where(Voucher.id == voucher_id)
            .values(slots=case((new_slots < 0, 0), else_=new_slots))
        )
        return self.get(voucher_id)

    def adjust_partner(self, partner: str, delta: int):
        v = self.session.exec(select(Voucher).where(Voucher.partner == partner)).first()
        if not v:
            return None
        return self.adjust(v.id, delta)


# ------------------------------------------------------------
# SqlLedger — unité de travail du mode SQL
# ------------------------------------------------------------
class SqlLedger:
    def __init__(self, session: Session):
        self.session = session
        self.bookings: BookingStore = BookingRepository(session)
        self.vouchers = VoucherRepository(session)

    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()

    def close(self):
        self.session.close()
