# ============================================================
# access.py — Codes d’accès aux salles (AccessGrant)
# ------------------------------------------------------------
# get_or_issue(booking) est idempotent : tant qu’un code "issued"
# non expiré existe pour la réservation, on le renvoie tel quel.
# Sinon on génère un code à 6 chiffres valable de
# (début du créneau - ACCESS_BEFORE_MIN) à (fin + ACCESS_AFTER_MIN).
# revoke(booking_id) passe les codes émis à "revoked".
# Au plus un code "issued" par réservation : verrou en mémoire,
# index unique partiel en base (access_grants_one_issued).
#
# Trois implémentations, choisies par configuration :
#   - MemoryAccessIssuer : mode local
#   - SqlAccessIssuer    : table access_grants
#   - RemoteAccessIssuer : service Access distant (HTTP, httpx)
# ============================================================
import logging
import secrets
import string
import threading
from datetime import datetime, time, timedelta, timezone

import httpx
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

import config
from errors import CredentialIssuanceFailed
from models import AccessGrant, Booking

log = logging.getLogger("booking.access")


# Génération aléatoire d’un code à 6 chiffres
def gen_code(n=6):
    return "".join(secrets.choice(string.digits) for _ in range(n))


def as_utc(dt: datetime) -> datetime:
    # SQLite rend des datetimes naïfs : on suppose UTC (stockage)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def slot_bounds(b: Booking):
    start = datetime.combine(b.date, time(b.hour), tzinfo=config.LOCAL_TZ)
    return as_utc(start), as_utc(start + timedelta(hours=1))


def grant_window(b: Booking, before_min: int = None, after_min: int = None):
    before_min = config.ACCESS_BEFORE_MIN if before_min is None else before_min
    after_min = config.ACCESS_AFTER_MIN if after_min is None else after_min
    start, end = slot_bounds(b)
    return start - timedelta(minutes=before_min), end + timedelta(minutes=after_min)


def doors_for(b: Booking):
    return ["main", b.room_id]


def is_active(g: AccessGrant, now: datetime = None) -> bool:
    now = now or datetime.now(timezone.utc)
    return g.status == "issued" and as_utc(now) <= as_utc(g.end_at)


def build_grant(b: Booking, provider: str = None) -> AccessGrant:
    start_at, end_at = grant_window(b)
    return AccessGrant(
        booking_id=b.id,
        provider=provider or config.ACCESS_PROVIDER,
        door_ids=doors_for(b),
        secret=gen_code(),
        start_at=start_at,
        end_at=end_at,
    )


def check_not_ended(b: Booking, now: datetime = None):
    now = as_utc(now or datetime.now(timezone.utc))
    if grant_window(b)[1] < now:
        raise CredentialIssuanceFailed("booking has already ended")


class MemoryAccessIssuer:
    def __init__(self):
        self._grants = {}
        self._lock = threading.Lock()

    def get_or_issue(self, b: Booking, now: datetime = None) -> AccessGrant:
        with self._lock:
            g = self._grants.get(b.id)
            if g and is_active(g, now):
                return g
            check_not_ended(b, now)
            g = build_grant(b)
            self._grants[b.id] = g
        log.info("[access] issued grant %s for booking %s", g.id, b.id)
        return g

    def revoke(self, booking_id: str):
        with self._lock:
            g = self._grants.get(booking_id)
            if not g or g.status != "issued":
                return None
            g.status = "revoked"
        log.info("[access] revoked grant %s for booking %s", g.id, booking_id)
        return g


class SqlAccessIssuer:
    def __init__(self, session: Session):
        self.session = session

    def _issued(self, booking_id: str):
        return self.session.exec(
            select(AccessGrant)
            .where(AccessGrant.booking_id == booking_id, AccessGrant.status == "issued")
            .order_by(AccessGrant.end_at.desc())
        ).all()

    def _active(self, booking_id: str, now: datetime = None):
        return next((g for g in self._issued(booking_id) if is_active(g, now)), None)

    def get_or_issue(self, b: Booking, now: datetime = None) -> AccessGrant:
        g = self._active(b.id, now)
        if g:
            return g
        check_not_ended(b, now)
        # un code échu reste "issued" : on le clôt avant d’en émettre un autre
        for stale in self._issued(b.id):
            stale.status = "expired"
            self.session.add(stale)
        self.session.flush()
        g = build_grant(b)
        self.session.add(g)
        try:
            self.session.commit()
        except IntegrityError:
            # une requête concurrente a émis le code entre-temps
            self.session.rollback()
            winner = self._active(b.id, now)
            if winner is None:
                raise
            return winner
        self.session.refresh(g)
        log.info("[access] issued grant %s for booking %s", g.id, b.id)
        return g

    def revoke(self, booking_id: str):
        revoked = None
        for g in self._issued(booking_id):
            g.status = "revoked"
            self.session.add(g)
            revoked = g
        self.session.commit()
        if revoked:
            log.info("[access] revoked grants for booking %s", booking_id)
        return revoked


# ------------------------------------------------------------
# RemoteAccessIssuer — délégation au service Access
# ------------------------------------------------------------
#   POST {ACCESS_URL}/v1/access/grants                      → Grant
#   POST {ACCESS_URL}/v1/access/grants/{bookingId}/revoke   → {}
# Toute erreur réseau ou HTTP devient CredentialIssuanceFailed.
# ------------------------------------------------------------
class RemoteAccessIssuer:
    def __init__(self, base_url: str, client: httpx.Client = None, timeout: float = 5):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.Client(timeout=timeout)

    def get_or_issue(self, b: Booking, now: datetime = None) -> AccessGrant:
        start_at, end_at = grant_window(b)
        try:
            r = self.client.post(f"{self.base_url}/v1/access/grants", json={
                "bookingId": b.id,
                "doorIds": doors_for(b),
                "start": start_at.isoformat(),
                "end": end_at.isoformat(),
            })
            r.raise_for_status()
            data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise CredentialIssuanceFailed() from e
        if data.get("status") == "error":
            raise CredentialIssuanceFailed()
        g = AccessGrant(
            booking_id=b.id,
            provider=data.get("provider", "remote"),
            door_ids=data.get("door_ids") or doors_for(b),
            secret=data.get("secret"),
            deep_link=data.get("deep_link"),
            start_at=datetime.fromisoformat(data.get("start_at") or start_at.isoformat()),
            end_at=datetime.fromisoformat(data.get("end_at") or end_at.isoformat()),
            status=data.get("status", "issued"),
        )
        if data.get("id"):
            g.id = data["id"]
        return g

    def revoke(self, booking_id: str):
        try:
            r = self.client.post(f"{self.base_url}/v1/access/grants/{booking_id}/revoke")
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise CredentialIssuanceFailed("access credential could not be revoked") from e
        return None
