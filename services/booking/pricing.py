# ============================================================
# pricing.py — Grille tarifaire
# ------------------------------------------------------------
# prix = arrondi(base[type de salle] × multiplicateur[groupe])
# Ne lève jamais d’erreur : type inconnu → base 0,
# groupe inconnu → multiplicateur 1.0.
# ============================================================
import math

import config


def price(room_type: str, group_code: str = None, pricing: dict = None) -> int:
    pricing = pricing if pricing is not None else config.PRICING
    base = (pricing.get("base") or {}).get(room_type, 0) or 0
    mult = (pricing.get("groups") or {}).get(group_code or "standard", 1.0)
    if mult is None:
        mult = 1.0
    # arrondi "half up" (pas l’arrondi bancaire de round())
    return int(math.floor(base * mult + 0.5))


def rate_card_price(room_type: str, pricing: dict = None) -> int:
    pricing = pricing if pricing is not None else config.PRICING
    return (pricing.get("base") or {}).get(room_type, 0) or 0
