# ============================================================
# Booking API Router
# ------------------------------------------------------------
# Expose les endpoints REST : réservations par créneau, vouchers,
# tarifs, statistiques (jour / semaine / mois), codes d’accès et
# réglages (salles, tarifs, énergie).
# L’identité de l’appelant arrive dans l’en-tête X-User-Id ; elle
# ne sert qu’à comparer avec le créateur d’une réservation.
# ============================================================
import datetime as dt
from dataclasses import fields
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Response
from sqlmodel import Session, create_engine

import config
from access import MemoryAccessIssuer, RemoteAccessIssuer, SqlAccessIssuer
from catalogue import MemoryCatalogue, SqlCatalogue
from models import (
    AccessGrant,
    Booking,
    BookingRequest,
    EnergyUpdate,
    PricingUpdate,
    Room,
    RoomCreate,
    Voucher,
    VoucherCreate,
)
from repository import SqlLedger
from service import BookingService
from store import MemoryLedger
from vouchers import MemoryVoucherStore

router = APIRouter()

# Moteur SQLModel si DATABASE_URL est défini, sinon mode local
engine = create_engine(config.DATABASE_URL, pool_pre_ping=True) if config.DATABASE_URL else None

_memory_ledger = MemoryLedger(vouchers=MemoryVoucherStore(
    [Voucher(**v) for v in config.SEED_VOUCHERS]
))
_memory_access = MemoryAccessIssuer()
_memory_catalogue = MemoryCatalogue()
_remote_access = RemoteAccessIssuer(config.ACCESS_URL) if config.ACCESS_URL else None


def make_issuer(session: Session = None):
    if _remote_access:
        return _remote_access
    if session is not None:
        return SqlAccessIssuer(session)
    return _memory_access


# Dépendance FastAPI : un service par requête (Session DB auto-close)
def get_service():
    if engine is None:
        yield BookingService(_memory_ledger, make_issuer(), _memory_catalogue)
        return
    with Session(engine, expire_on_commit=False) as s:
        yield BookingService(SqlLedger(s), make_issuer(s), SqlCatalogue(s))


def shallow(obj) -> dict:
    return {f.name: getattr(obj, f.name) for f in fields(obj)}


# ------------------------------------------------------------
# Catalogue
# ------------------------------------------------------------
@router.get("/v1/rooms", response_model=List[Room])
def list_rooms(svc: BookingService = Depends(get_service)):
    return svc.rooms


@router.post("/v1/rooms", response_model=Room, status_code=201)
def add_room(data: RoomCreate, svc: BookingService = Depends(get_service)):
    return svc.add_room(data)


# Les réservations de la salle restent valides
@router.delete("/v1/rooms/{room_id}", status_code=204)
def remove_room(room_id: str, svc: BookingService = Depends(get_service)):
    svc.remove_room(room_id)
    return Response(status_code=204)


@router.get("/v1/pricing")
def get_pricing(svc: BookingService = Depends(get_service)):
    return svc.pricing


@router.patch("/v1/pricing")
def set_pricing(data: PricingUpdate, svc: BookingService = Depends(get_service)):
    return svc.set_pricing(data)


@router.get("/v1/energy")
def get_energy(svc: BookingService = Depends(get_service)):
    return svc.energy


@router.patch("/v1/energy")
def set_energy(data: EnergyUpdate, svc: BookingService = Depends(get_service)):
    return svc.set_energy(data)


@router.get("/v1/pricing/quote")
def quote(room_type: str, group_code: str = "standard", svc: BookingService = Depends(get_service)):
    return {"room_type": room_type, "group_code": group_code, "price": svc.quote(room_type, group_code)}


# ------------------------------------------------------------
# Réservations
# ------------------------------------------------------------
@router.post("/v1/bookings", response_model=Booking, status_code=201)
def create_booking(
    req: BookingRequest,
    x_user_id: Optional[str] = Header(default=None),
    svc: BookingService = Depends(get_service),
):
    return svc.create_booking(req, x_user_id)


@router.get("/v1/bookings", response_model=List[Booking])
def list_bookings(
    date: Optional[dt.date] = None,
    start: Optional[dt.date] = None,
    end: Optional[dt.date] = None,
    svc: BookingService = Depends(get_service),
):
    if date:
        return svc.list_bookings(date)
    if not (start and end):
        raise HTTPException(400, "date or start/end required")
    if start > end:
        raise HTTPException(400, "start must be before end")
    return svc.list_bookings(start, end)


@router.get("/v1/bookings/{date}/{room_id}/{hour}", response_model=Booking)
def get_booking(date: dt.date, room_id: str, hour: int, svc: BookingService = Depends(get_service)):
    return svc.get_booking(date, room_id, hour)


@router.delete("/v1/bookings/{date}/{room_id}/{hour}", status_code=204)
def delete_booking(
    date: dt.date,
    room_id: str,
    hour: int,
    x_user_id: Optional[str] = Header(default=None),
    svc: BookingService = Depends(get_service),
):
    svc.delete_booking(date, room_id, hour, x_user_id)
    return Response(status_code=204)


# ------------------------------------------------------------
# Codes d’accès
# ------------------------------------------------------------
@router.post("/v1/bookings/{booking_id}/access", response_model=AccessGrant)
def issue_access(booking_id: str, svc: BookingService = Depends(get_service)):
    return svc.issue_access(booking_id)


@router.delete("/v1/bookings/{booking_id}/access", status_code=204)
def revoke_access(
    booking_id: str,
    x_user_id: Optional[str] = Header(default=None),
    svc: BookingService = Depends(get_service),
):
    svc.revoke_access(booking_id, x_user_id)
    return Response(status_code=204)


# ------------------------------------------------------------
# Statistiques
# ------------------------------------------------------------
@router.get("/v1/stats/day")
def stats_day(date: dt.date, svc: BookingService = Depends(get_service)):
    return shallow(svc.day_stats(date))


@router.get("/v1/stats/week")
def stats_week(date: dt.date, svc: BookingService = Depends(get_service)):
    return shallow(svc.week_stats(date))


@router.get("/v1/stats/month")
def stats_month(date: dt.date, svc: BookingService = Depends(get_service)):
    return shallow(svc.month_stats(date))


@router.get("/v1/stats/range")
def stats_range(start: dt.date, end: dt.date, svc: BookingService = Depends(get_service)):
    if start > end:
        raise HTTPException(400, "start must be before end")
    return shallow(svc.range_stats(start, end))


# ------------------------------------------------------------
# Vouchers
# ------------------------------------------------------------
@router.get("/v1/vouchers", response_model=List[Voucher])
def list_vouchers(svc: BookingService = Depends(get_service)):
    return svc.list_vouchers()


@router.post("/v1/vouchers", response_model=Voucher, status_code=201)
def create_voucher(data: VoucherCreate, svc: BookingService = Depends(get_service)):
    if not data.partner.strip():
        raise HTTPException(400, "partner is required")
    return svc.create_voucher(data)


@router.post("/v1/vouchers/{voucher_id}/adjust", response_model=Voucher)
def adjust_voucher(voucher_id: str, delta: int, svc: BookingService = Depends(get_service)):
    return svc.adjust_voucher(voucher_id, delta)


@router.delete("/v1/vouchers/{voucher_id}", status_code=204)
def delete_voucher(voucher_id: str, svc: BookingService = Depends(get_service)):
    svc.delete_voucher(voucher_id)
    return Response(status_code=204)
