# ============================================================
# errors.py — Erreurs métier du service Booking
# ------------------------------------------------------------
# Chaque erreur porte un message lisible (notice) et le code
# HTTP que l’API renvoie. Aucune n’est fatale : l’appelant
# affiche la notice et la tentative est abandonnée.
# ============================================================


class BookingError(Exception):
    status_code = 400
    notice = "booking error"

    def __init__(self, notice: str = None):
        self.notice = notice or self.notice
        super().__init__(self.notice)


class SlotAlreadyBooked(BookingError):
    status_code = 409
    notice = "slot already booked"


class MissingVoucherSelection(BookingError):
    status_code = 400
    notice = "select an active voucher before booking"


class VoucherExhausted(BookingError):
    status_code = 409
    notice = "no slots left on the selected voucher"


class NotAuthorized(BookingError):
    status_code = 403
    notice = "only the creator of the booking can delete it"


class AuthenticationRequired(BookingError):
    status_code = 401
    notice = "you must be signed in"


class CredentialIssuanceFailed(BookingError):
    status_code = 502
    notice = "access credential could not be issued"


class BookingNotFound(BookingError):
    status_code = 404
    notice = "not found"


class UnknownRoom(BookingError):
    status_code = 400
    notice = "unknown room"


class OutsideOpeningHours(BookingError):
    status_code = 400
    notice = "hour is outside opening hours"


class VoucherNotFound(BookingError):
    status_code = 404
    notice = "voucher not found"


class InvalidSetting(BookingError):
    status_code = 400
    notice = "invalid setting"


class RoomNotFound(BookingError):
    status_code = 404
    notice = "room not found"
