# ============================================================
# admission.py — Politique d’admission d’une réservation
# ------------------------------------------------------------
# Trois modes exclusifs, choisis dans cet ordre :
#   1. book_for_others   → external (aucun voucher débité)
#   2. voucher_required  → voucher  (voucher choisi et non vide)
#   3. sinon             → open
# La décision est pure : elle reçoit l’état des vouchers lu au
# moment même de l’admission et ne modifie rien.
# ============================================================
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import vouchers as ledger
from errors import MissingVoucherSelection, VoucherExhausted


class BookingMode(str, Enum):
    OPEN = "open"
    VOUCHER = "voucher"
    EXTERNAL = "external"


@dataclass(frozen=True)
class Admission:
    mode: BookingMode
    voucher_id: Optional[str] = None
    voucher_partner: Optional[str] = None
    booked_for: Optional[str] = None


def determine_mode(book_for_others: bool = False, voucher_required: bool = False) -> BookingMode:
    if book_for_others:
        return BookingMode.EXTERNAL
    if voucher_required:
        return BookingMode.VOUCHER
    return BookingMode.OPEN


def clean_label(label) -> Optional[str]:
    # nom vide ou seulement des espaces = absent
    if label is None:
        return None
    label = label.strip()
    return label or None


def admit(req, vouchers) -> Admission:
    mode = determine_mode(req.book_for_others, req.voucher_required)

    if mode is BookingMode.EXTERNAL:
        return Admission(mode=mode, booked_for=clean_label(req.booked_for))

    if mode is BookingMode.VOUCHER:
        if not req.voucher_id:
            raise MissingVoucherSelection()
        if not ledger.is_available(vouchers, req.voucher_id):
            raise VoucherExhausted()
        v = ledger.find(vouchers, req.voucher_id)
        return Admission(mode=mode, voucher_id=v.id, voucher_partner=v.partner)

    return Admission(mode=mode)
