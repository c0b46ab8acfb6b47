# ============================================================
# catalogue.py — Salles, tarifs et coefficients d’énergie
# ------------------------------------------------------------
# Réglages modifiables à chaud par l’administration :
#   - ajout / suppression de salles
#   - prix de base par type et multiplicateurs de groupe
#   - kWh/h par type et facteur d’optimisation
# Valeurs initiales : config.py. Les fonctions de fusion sont
# pures et ne modifient jamais leurs arguments.
# Supprimer une salle ne touche pas aux réservations : elles
# gardent le type et le nom figés au moment de la réservation.
#
# Deux implémentations :
#   - MemoryCatalogue : mode local
#   - SqlCatalogue    : table settings (une ligne JSON par clé)
# ============================================================
import threading
from typing import List, Optional

from sqlmodel import Session, select

import config
from errors import InvalidSetting
from models import Room, Setting, new_id
from stats import ROOM_TYPES


def load_rooms(raw=None) -> List[Room]:
    rows = raw if raw is not None else config.ROOMS
    return [r if isinstance(r, Room) else Room(**r) for r in rows]


def dump_rooms(rooms) -> list:
    return [r.model_dump() for r in rooms]


def find_room(rooms, room_id: str) -> Optional[Room]:
    return next((r for r in rooms if r.id == room_id), None)


def check_room_type(room_type: str):
    if room_type not in ROOM_TYPES:
        raise InvalidSetting("unknown room type")


def new_room(rooms, room_type: str, name: str = None) -> Room:
    check_room_type(room_type)
    taken = {r.id for r in rooms}
    room_id = new_id()[:6]
    while room_id in taken:
        room_id = new_id()[:6]
    # "Band 3" si deux salles band existent déjà
    n = sum(1 for r in rooms if r.type == room_type) + 1
    name = (name or "").strip() or f"{room_type.capitalize()} {n}"
    return Room(id=room_id, name=name, type=room_type)


def without_room(rooms, room_id: str) -> List[Room]:
    return [r for r in rooms if r.id != room_id]


def _check_non_negative(values: dict, what: str):
    for k, v in values.items():
        if v is None or v < 0:
            raise InvalidSetting(f"{what} for {k} must be zero or more")


def check_pricing(base: dict = None, groups: dict = None):
    _check_non_negative(base or {}, "base price")
    _check_non_negative(groups or {}, "group multiplier")


def merge_pricing(current: dict, base: dict = None, groups: dict = None) -> dict:
    check_pricing(base, groups)
    return {
        **current,
        "base": {**current.get("base", {}), **(base or {})},
        "groups": {**current.get("groups", {}), **(groups or {})},
    }


def clean_energy(patch: dict) -> dict:
    patch = {k: v for k, v in patch.items() if v is not None}
    _check_non_negative(patch, "energy")
    if patch.get("optimizationFactor") == 0:
        raise InvalidSetting("optimizationFactor must be above zero")
    return patch


def merge_energy(current: dict, patch: dict) -> dict:
    return {**current, **clean_energy(patch)}


class MemoryCatalogue:
    def __init__(self, rooms=None, pricing=None, energy=None):
        self._rooms = load_rooms(rooms)
        self._pricing = pricing if pricing is not None else config.PRICING
        self._energy = energy if energy is not None else config.ENERGY
        self._lock = threading.Lock()

    def rooms(self) -> List[Room]:
        return list(self._rooms)

    def pricing(self) -> dict:
        return self._pricing

    def energy(self) -> dict:
        return self._energy

    def set_pricing(self, base: dict = None, groups: dict = None) -> dict:
        with self._lock:
            self._pricing = merge_pricing(self._pricing, base, groups)
            return self._pricing

    def set_energy(self, patch: dict) -> dict:
        with self._lock:
            self._energy = merge_energy(self._energy, patch)
            return self._energy

    def add_room(self, room_type: str, name: str = None) -> Room:
        with self._lock:
            r = new_room(self._rooms, room_type, name)
            self._rooms = self._rooms + [r]
        return r

    def remove_room(self, room_id: str) -> Optional[Room]:
        with self._lock:
            r = find_room(self._rooms, room_id)
            if r:
                self._rooms = without_room(self._rooms, room_id)
        return r


# ------------------------------------------------------------
# SqlCatalogue — réglages persistés
# ------------------------------------------------------------
# Lecture : ligne settings si elle existe, sinon valeur par défaut
# (config.py, ou celles passées au constructeur).
# Écriture : la ligne est verrouillée (FOR UPDATE) le temps de
# lire, fusionner et valider.
# ------------------------------------------------------------
class SqlCatalogue:
    def __init__(self, session: Session, rooms=None, pricing=None, energy=None):
        self.session = session
        self.defaults = {
            "rooms": dump_rooms(load_rooms(rooms)),
            "pricing": pricing if pricing is not None else config.PRICING,
            "energy": energy if energy is not None else config.ENERGY,
        }

    def _row(self, key: str, lock: bool = False):
        q = select(Setting).where(Setting.key == key).execution_options(populate_existing=True)
        if lock:
            q = q.with_for_update()
        return self.session.exec(q).first()

    def _value(self, key: str):
        row = self._row(key)
        return row.value if row else self.defaults[key]

    def _locked(self, key: str) -> Setting:
        return self._row(key, lock=True) or Setting(key=key, value=self.defaults[key])

    def _save(self, row: Setting, value):
        row.value = value
        self.session.add(row)
        self.session.commit()
        return value

    def rooms(self) -> List[Room]:
        return load_rooms(self._value("rooms"))

    def pricing(self) -> dict:
        return self._value("pricing")

    def energy(self) -> dict:
        return self._value("energy")

    def set_pricing(self, base: dict = None, groups: dict = None) -> dict:
        check_pricing(base, groups)
        row = self._locked("pricing")
        return self._save(row, merge_pricing(row.value, base, groups))

    def set_energy(self, patch: dict) -> dict:
        clean_energy(patch)
        row = self._locked("energy")
        return self._save(row, merge_energy(row.value, patch))

    def add_room(self, room_type: str, name: str = None) -> Room:
        check_room_type(room_type)
        row = self._locked("rooms")
        current = load_rooms(row.value)
        r = new_room(current, room_type, name)
        self._save(row, dump_rooms(current + [r]))
        return r

    def remove_room(self, room_id: str) -> Optional[Room]:
        row = self._locked("rooms")
        current = load_rooms(row.value)
        r = find_room(current, room_id)
        if r is None:
            self.session.rollback()
            return None
        self._save(row, dump_rooms(without_room(current, room_id)))
        return r
