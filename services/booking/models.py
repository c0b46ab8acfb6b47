# ============================================================
# models.py — Modèles de données SQLModel (Booking Service)
# ------------------------------------------------------------
# Tables :
#   1. Booking     : un créneau (date, salle, heure) réservé
#   2. Voucher     : crédit prépayé d’un partenaire (en créneaux)
#   3. AccessGrant : code d’accès borné dans le temps
#   4. Setting     : réglages modifiables (salles, tarifs, énergie)
# Schémas (sans table) : Room, BookingRequest, VoucherCreate,
#   RoomCreate, PricingUpdate, EnergyUpdate
# ============================================================
import uuid
import datetime as dt
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column, DateTime, Index, UniqueConstraint, text
from sqlmodel import SQLModel, Field


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Room(SQLModel):
    id: str
    name: str
    type: str  # solo | band | preprod


# ------------------------------------------------------------
# Booking
# ------------------------------------------------------------
# Clé naturelle (date, room_id, hour) : au plus une réservation
# par créneau, garantie par l’index unique en base.
# type/room_name sont des copies figées au moment de la réservation.
# Une réservation ne se modifie pas : on la crée ou on la supprime.
# ------------------------------------------------------------
class Booking(SQLModel, table=True):
    __tablename__ = "bookings"
    __table_args__ = (
        UniqueConstraint("date", "room_id", "hour", name="bookings_unique_slot"),
    )

    id: str = Field(default_factory=new_id, primary_key=True)
    date: dt.date = Field(index=True)
    room_id: str
    hour: int
    type: str
    room_name: str
    voucher_partner: Optional[str] = None
    booked_for: Optional[str] = None
    group_code: str = "standard"
    price: Optional[int] = None
    created_by: str
    inserted_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(timezone=True))
    )

    @property
    def slot(self):
        return (self.date, self.room_id, self.hour)


# ------------------------------------------------------------
# Voucher
# ------------------------------------------------------------
# Solde de créneaux d’un partenaire. Jamais négatif.
# Les réservations y font référence par le nom du partenaire.
# ------------------------------------------------------------
class Voucher(SQLModel, table=True):
    __tablename__ = "vouchers"

    id: str = Field(default_factory=new_id, primary_key=True)
    partner: str = Field(index=True)
    slots: int = 0


# ------------------------------------------------------------
# AccessGrant
# ------------------------------------------------------------
# Fenêtre de validité = [début créneau - tampon, fin créneau + tampon]
# status : issued | revoked | expired | error
# Un seul code "issued" par réservation (index unique partiel).
# ------------------------------------------------------------
class AccessGrant(SQLModel, table=True):
    __tablename__ = "access_grants"
    __table_args__ = (
        Index(
            "access_grants_one_issued", "booking_id", unique=True,
            sqlite_where=text("status = 'issued'"),
            postgresql_where=text("status = 'issued'"),
        ),
    )

    id: str = Field(default_factory=new_id, primary_key=True)
    booking_id: str = Field(index=True)
    provider: str = "local"
    door_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    secret: Optional[str] = None
    deep_link: Optional[str] = None
    start_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))
    end_at: datetime = Field(sa_column=Column(DateTime(timezone=True)))
    status: str = "issued"


# Corps de POST /v1/bookings
class BookingRequest(SQLModel):
    date: dt.date
    room_id: str
    hour: int = Field(ge=0, le=23)
    group_code: str = "standard"
    voucher_required: bool = False
    voucher_id: Optional[str] = None
    book_for_others: bool = False
    booked_for: Optional[str] = None


class VoucherCreate(SQLModel):
    partner: str
    slots: int = Field(default=10, ge=0)


# ------------------------------------------------------------
# Setting
# ------------------------------------------------------------
# key : rooms | pricing | energy. Absent → valeur de config.py.
# ------------------------------------------------------------
class Setting(SQLModel, table=True):
    __tablename__ = "settings"

    key: str = Field(primary_key=True)
    value: Any = Field(default=None, sa_column=Column(JSON))


class RoomCreate(SQLModel):
    type: str
    name: Optional[str] = None


# Mise à jour partielle : seules les clés fournies changent
class PricingUpdate(SQLModel):
    base: Optional[Dict[str, int]] = None
    groups: Optional[Dict[str, float]] = None


class EnergyUpdate(SQLModel):
    solo: Optional[float] = Field(default=None, ge=0)
    band: Optional[float] = Field(default=None, ge=0)
    preprod: Optional[float] = Field(default=None, ge=0)
    optimizationFactor: Optional[float] = Field(default=None, gt=0)
