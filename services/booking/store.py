# ============================================================
# store.py — Booking Store (mode local, en mémoire)
# ------------------------------------------------------------
# Un instantané = dict {(date, room_id, hour): Booking}.
# Les fonctions add/remove sont pures (copie à l’écriture) :
#   - add sur un créneau déjà pris   → instantané d’origine
#   - remove sur un créneau vide     → instantané d’origine
# MemoryBookingStore transforme la collision en SlotAlreadyBooked,
# comme le fait le store SQL avec son index unique.
# ============================================================
import threading
from typing import Dict, List, Optional, Protocol, Tuple, runtime_checkable

from errors import SlotAlreadyBooked
from models import Booking
from vouchers import MemoryVoucherStore

Slot = Tuple  # (date, room_id, hour)


def add_booking(snapshot: Dict[Slot, Booking], b: Booking) -> Dict[Slot, Booking]:
    if b.slot in snapshot:
        return snapshot
    out = dict(snapshot)
    out[b.slot] = b
    return out


def remove_booking(snapshot: Dict[Slot, Booking], date, room_id: str, hour: int) -> Dict[Slot, Booking]:
    key = (date, room_id, hour)
    if key not in snapshot:
        return snapshot
    out = dict(snapshot)
    del out[key]
    return out


def get_booking(snapshot, date, room_id: str, hour: int) -> Optional[Booking]:
    return snapshot.get((date, room_id, hour))


def filter_range(snapshot, start, end) -> List[Booking]:
    # intervalle fermé [start, end], sur des dates calendaires
    rows = [b for (d, _, _), b in snapshot.items() if start <= d <= end]
    return sorted(rows, key=lambda b: b.slot)


# Interface commune : MemoryBookingStore ici, BookingRepository en SQL
@runtime_checkable
class BookingStore(Protocol):
    def create(self, b: Booking) -> Booking: ...
    def remove(self, date, room_id: str, hour: int) -> Optional[Booking]: ...
    def get(self, date, room_id: str, hour: int) -> Optional[Booking]: ...
    def get_by_id(self, booking_id: str) -> Optional[Booking]: ...
    def list_day(self, date) -> List[Booking]: ...
    def list_range(self, start, end) -> List[Booking]: ...


class MemoryBookingStore:
    def __init__(self, snapshot=None):
        self._snapshot = dict(snapshot or {})
        self._lock = threading.Lock()

    @property
    def snapshot(self):
        return self._snapshot

    def create(self, b: Booking) -> Booking:
        with self._lock:
            new = add_booking(self._snapshot, b)
            if new is self._snapshot:
                raise SlotAlreadyBooked()
            self._snapshot = new
        return b

    def remove(self, date, room_id: str, hour: int) -> Optional[Booking]:
        with self._lock:
            existing = get_booking(self._snapshot, date, room_id, hour)
            self._snapshot = remove_booking(self._snapshot, date, room_id, hour)
        return existing

    def get(self, date, room_id: str, hour: int) -> Optional[Booking]:
        return get_booking(self._snapshot, date, room_id, hour)

    def get_by_id(self, booking_id: str) -> Optional[Booking]:
        return next((b for b in self._snapshot.values() if b.id == booking_id), None)

    def list_day(self, date) -> List[Booking]:
        return filter_range(self._snapshot, date, date)

    def list_range(self, start, end) -> List[Booking]:
        return filter_range(self._snapshot, start, end)


# ------------------------------------------------------------
# MemoryLedger — unité de travail du mode local
# ------------------------------------------------------------
# Même interface que SqlLedger (repository.py). commit/rollback
# sont sans effet : chaque écriture mémoire est déjà atomique.
# ------------------------------------------------------------
class MemoryLedger:
    def __init__(self, bookings=None, vouchers=None):
        self.bookings: BookingStore = bookings or MemoryBookingStore()
        self.vouchers = vouchers or MemoryVoucherStore()

    def commit(self):
        pass

    def rollback(self):
        pass

    def close(self):
        pass
