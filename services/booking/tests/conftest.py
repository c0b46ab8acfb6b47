"""
Pytest configuration and fixtures for the booking service.

The ``ledger`` fixture is parametrized so every service test runs once
against the in-memory stores and once against SQLite through SQLModel.
"""

from datetime import date, timedelta

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from access import MemoryAccessIssuer
from catalogue import MemoryCatalogue, SqlCatalogue
from models import Booking, Room, Voucher
from repository import SqlLedger
from service import BookingService
from store import MemoryLedger

PRICING = {
    "base": {"solo": 199, "band": 399, "preprod": 799},
    "groups": {"standard": 1.0, "kulturskole": 0.7, "kulturenheten": 0.75},
}
ENERGY = {"solo": 3.0, "band": 4.5, "preprod": 7.0, "optimizationFactor": 0.88}


class EventRecorder:
    """Stands in for publisher.publish_event and keeps what was sent."""

    def __init__(self):
        self.events = []

    def __call__(self, event_type, payload):
        self.events.append((event_type, payload))
        return True

    @property
    def types(self):
        return [t for t, _ in self.events]


@pytest.fixture
def rooms():
    return [
        Room(id="r1", name="R", type="solo"),
        Room(id="b1", name="Band 1", type="band"),
        Room(id="p1", name="Preprod / Scene", type="preprod"),
    ]


@pytest.fixture
def day():
    return date(2025, 9, 15)  # a Monday


@pytest.fixture
def future_day():
    return date.today() + timedelta(days=30)


@pytest.fixture
def sql_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def ledger(request, sql_engine):
    if request.param == "memory":
        yield MemoryLedger()
    else:
        with Session(sql_engine, expire_on_commit=False) as s:
            yield SqlLedger(s)


@pytest.fixture
def voucher(ledger):
    v = ledger.vouchers.add(Voucher(partner="Ung Kultur Lerkendal", slots=2))
    ledger.commit()
    return v


@pytest.fixture
def events():
    return EventRecorder()


@pytest.fixture
def issuer():
    return MemoryAccessIssuer()


@pytest.fixture
def catalogue(ledger, rooms):
    if isinstance(ledger, SqlLedger):
        return SqlCatalogue(ledger.session, rooms, PRICING, ENERGY)
    return MemoryCatalogue(rooms, PRICING, ENERGY)


@pytest.fixture
def service(ledger, issuer, catalogue, events):
    return BookingService(
        ledger,
        issuer=issuer,
        catalogue=catalogue,
        require_auth=True,
        publish=events,
    )


def make_booking(d, room_id="r1", hour=10, type="solo", price=None, **kw):
    return Booking(
        date=d,
        room_id=room_id,
        hour=hour,
        type=type,
        room_name=kw.pop("room_name", room_id.upper()),
        price=price,
        created_by=kw.pop("created_by", "alice"),
        **kw,
    )


@pytest.fixture
def booking_factory():
    return make_booking
