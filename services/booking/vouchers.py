# ============================================================
# vouchers.py — Registre des vouchers (klippekort)
# ------------------------------------------------------------
# Fonctions pures sur une liste de vouchers : elles renvoient
# une nouvelle liste et ne modifient jamais celle reçue.
# Le stockage (mémoire ou SQL) est à la charge des stores.
# ============================================================
import threading
from typing import List, Optional

from models import Voucher


def clamp_slots(current: int, delta: int) -> int:
    return max(0, (current or 0) + delta)


def is_available(vouchers, voucher_id: str) -> bool:
    v = find(vouchers, voucher_id)
    return bool(v and v.slots > 0)


def adjust(vouchers, voucher_id: str, delta: int) -> List[Voucher]:
    # id inconnu : la liste revient inchangée (course possible avec une suppression)
    return [
        Voucher(id=v.id, partner=v.partner, slots=clamp_slots(v.slots, delta))
        if v.id == voucher_id else v
        for v in vouchers
    ]


def find(vouchers, voucher_id: str) -> Optional[Voucher]:
    return next((v for v in vouchers if v.id == voucher_id), None)


def find_by_partner(vouchers, partner: str) -> Optional[Voucher]:
    return next((v for v in vouchers if v.partner == partner), None)


# ------------------------------------------------------------
# MemoryVoucherStore — mode local
# ------------------------------------------------------------
# Garde un instantané immuable ; chaque écriture le remplace.
# ------------------------------------------------------------
class MemoryVoucherStore:
    def __init__(self, vouchers=None):
        self._ledger = list(vouchers or [])
        self._lock = threading.Lock()

    def all(self) -> List[Voucher]:
        return list(self._ledger)

    def get(self, voucher_id: str):
        return find(self._ledger, voucher_id)

    def add(self, v: Voucher) -> Voucher:
        with self._lock:
            self._ledger = self._ledger + [v]
        return v

    def delete(self, voucher_id: str) -> bool:
        with self._lock:
            before = len(self._ledger)
            self._ledger = [v for v in self._ledger if v.id != voucher_id]
            return len(self._ledger) != before

    def adjust(self, voucher_id: str, delta: int):
        with self._lock:
            self._ledger = adjust(self._ledger, voucher_id, delta)
        return self.get(voucher_id)

    def adjust_partner(self, partner: str, delta: int):
        v = find_by_partner(self._ledger, partner)
        if not v:
            return None
        return self.adjust(v.id, delta)
