# ============================================================
# config.py — Configuration du service Booking
# ------------------------------------------------------------
# Toutes les valeurs viennent de variables d’environnement, avec
# des valeurs par défaut adaptées au local :
#   - DATABASE_URL absent  → mode local (stores en mémoire)
#   - RABBITMQ_HOST absent → événements seulement journalisés
#   - ACCESS_URL absent    → codes d’accès émis en interne
# ============================================================
import os, json
from zoneinfo import ZoneInfo


def _json_env(name: str, default):
    raw = os.getenv(name)
    if not raw:
        return default
    return json.loads(raw)


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL") or None
RABBITMQ_HOST = os.getenv("RABBITMQ_HOST") or None
ACCESS_URL = os.getenv("ACCESS_URL") or None

LOCAL_TZ = ZoneInfo(os.getenv("LOCAL_TZ", "Europe/Oslo"))

# Heures d’ouverture : 10:00 → 23:00 (fin exclusive)
OPEN_HOUR = int(os.getenv("OPEN_HOUR", "10"))
CLOSE_HOUR = int(os.getenv("CLOSE_HOUR", "23"))
HOURS_PER_DAY = CLOSE_HOUR - OPEN_HOUR
BREAK_EVEN = float(os.getenv("BREAK_EVEN", "17.4"))  # % d’utilisation visé

# Fenêtre de validité des codes d’accès autour du créneau
ACCESS_BEFORE_MIN = int(os.getenv("ACCESS_BEFORE_MIN", "15"))
ACCESS_AFTER_MIN = int(os.getenv("ACCESS_AFTER_MIN", "10"))
ACCESS_PROVIDER = os.getenv("ACCESS_PROVIDER", "local")

# Exige l’en-tête d’identité pour créer/supprimer
REQUIRE_AUTH = _bool_env("REQUIRE_AUTH", True)

ROOMS = _json_env("ROOMS_JSON", [
    {"id": "s1", "name": "Solo 1", "type": "solo"},
    {"id": "s2", "name": "Solo 2", "type": "solo"},
    {"id": "b1", "name": "Band 1", "type": "band"},
    {"id": "b2", "name": "Band 2", "type": "band"},
    {"id": "b3", "name": "Band 3", "type": "band"},
    {"id": "b4", "name": "Band 4", "type": "band"},
    {"id": "b5", "name": "Band 5", "type": "band"},
    {"id": "p1", "name": "Preprod / Scene", "type": "preprod"},
])

RATECARD = {"solo": 199, "band": 399, "preprod": 799}

PRICING = _json_env("PRICING_JSON", {
    "base": RATECARD,
    "groups": {
        "standard": 1.0,
        "kulturskole": 0.7,     # 30 % de remise
        "kulturenheten": 0.75,  # 25 % de remise
    },
})

ENERGY = _json_env("ENERGY_JSON", {
    "solo": 3.0, "band": 4.5, "preprod": 7.0, "optimizationFactor": 0.88,
})

# Vouchers créés au premier démarrage si la table est vide
SEED_VOUCHERS = _json_env("SEED_VOUCHERS_JSON", [
    {"partner": "Ung Kultur Lerkendal", "slots": 40},
    {"partner": "Fritidsklubb Midtbyen", "slots": 30},
])
