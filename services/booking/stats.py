# ============================================================
# stats.py — Statistiques d’utilisation, revenu et énergie
# ------------------------------------------------------------
# Fonctions pures, sans I/O : elles reçoivent des réservations
# déjà chargées et ne lèvent jamais (division par zéro gardée).
# Les intervalles de dates sont fermés [start, end] et comparés
# en dates calendaires, jamais en instants.
# ============================================================
import calendar
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, timedelta

import config
from pricing import rate_card_price

ROOM_TYPES = ("solo", "band", "preprod")


def hours():
    return list(range(config.OPEN_HOUR, config.CLOSE_HOUR))


def days_inclusive(start: date, end: date) -> int:
    return max(0, (end - start).days + 1)


# lundi → dimanche de la semaine contenant ref
def week_range(ref: date):
    monday = ref - timedelta(days=ref.weekday())
    return monday, monday + timedelta(days=6)


def month_range(ref: date):
    last = calendar.monthrange(ref.year, ref.month)[1]
    return ref.replace(day=1), ref.replace(day=last)


@dataclass
class RangeStats:
    start: date
    end: date
    utilization: float
    booked: int
    total: int


@dataclass
class DailyStats:
    date: date
    utilization: float
    booked: int
    total: int
    revenue: int
    kwh_per_booked_hour: float
    kwh_optimized_per_hour: float
    break_even: float
    meets_break_even: bool
    bookings: list = field(default_factory=list)


def utilization(bookings, rooms, start: date, end: date, hours_per_day: int = None) -> RangeStats:
    hours_per_day = config.HOURS_PER_DAY if hours_per_day is None else hours_per_day
    total = len(rooms) * hours_per_day * days_inclusive(start, end)
    # un créneau compte une seule fois
    slots = {(b.date, b.room_id, b.hour) for b in bookings if start <= b.date <= end}
    booked = len(slots)
    pct = (booked / total) * 100 if total else 0.0
    return RangeStats(start=start, end=end, utilization=pct, booked=booked, total=total)


def week_utilization(bookings, rooms, ref: date) -> RangeStats:
    return utilization(bookings, rooms, *week_range(ref))


def month_utilization(bookings, rooms, ref: date) -> RangeStats:
    return utilization(bookings, rooms, *month_range(ref))


def baseline_energy(counts_by_type, energy: dict = None) -> float:
    energy = energy if energy is not None else config.ENERGY
    total = sum(counts_by_type.values())
    if not total:
        # journée vide : moyenne simple des trois types
        return sum(energy.get(t, 0) for t in ROOM_TYPES) / len(ROOM_TYPES)
    weighted = sum(n * energy.get(t, 0) for t, n in counts_by_type.items())
    return weighted / total


def slot_revenue(b, pricing: dict = None) -> int:
    # prix stocké, sinon tarif de base (données anciennes sans prix)
    if isinstance(b.price, int):
        return b.price
    return rate_card_price(b.type, pricing)


def daily_stats(bookings, day: date, rooms, energy: dict = None, pricing: dict = None) -> DailyStats:
    energy = energy if energy is not None else config.ENERGY
    room_ids = {r["id"] if isinstance(r, dict) else r.id for r in rooms}
    open_hours = set(hours())

    today = sorted(
        (b for b in bookings
         if b.date == day and b.room_id in room_ids and b.hour in open_hours),
        key=lambda b: (b.room_id, b.hour),
    )
    # un créneau compte une seule fois
    seen, unique = set(), []
    for b in today:
        if b.slot not in seen:
            seen.add(b.slot)
            unique.append(b)

    total = len(room_ids) * len(open_hours)
    booked = len(unique)
    pct = (booked / total) * 100 if total else 0.0
    revenue = sum(slot_revenue(b, pricing) for b in unique)
    baseline = baseline_energy(Counter(b.type for b in unique), energy)
    factor = energy.get("optimizationFactor", 1.0)

    return DailyStats(
        date=day,
        utilization=pct,
        booked=booked,
        total=total,
        revenue=revenue,
        kwh_per_booked_hour=baseline,
        kwh_optimized_per_hour=baseline * factor,
        break_even=config.BREAK_EVEN,
        meets_break_even=pct >= config.BREAK_EVEN,
        bookings=unique,
    )
