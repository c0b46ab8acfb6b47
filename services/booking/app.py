# ============================================================
# app.py — Point d’entrée du service Booking
# ------------------------------------------------------------
# Ce module initialise l’application FastAPI du service Booking :
#   - Configure la journalisation
#   - Crée les tables et les vouchers de départ (mode SQL)
#   - Traduit les erreurs métier en réponses HTTP
#   - Monte les routes API
# ============================================================
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlmodel import Session, SQLModel, select

import config
import models
from api import engine, router
from errors import BookingError

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
log = logging.getLogger("booking")

app = FastAPI(title="Booking Service")


def seed_vouchers(e):
    with Session(e) as s:
        if s.exec(select(models.Voucher)).first() is None:
            for v in config.SEED_VOUCHERS:
                s.add(models.Voucher(**v))
            s.commit()


# Exécuté automatiquement par FastAPI au lancement du conteneur.
@app.on_event("startup")
def start():
    if engine is None:
        log.info("[booking] no DATABASE_URL, running on local in-memory stores")
        return
    # crée les tables (bookings + vouchers + access_grants)
    SQLModel.metadata.create_all(engine)
    seed_vouchers(engine)
    log.info("[booking] database ready")


# Erreur métier → notice lisible + code HTTP
@app.exception_handler(BookingError)
async def booking_error(request: Request, e: BookingError):
    return JSONResponse(status_code=e.status_code, content={"detail": e.notice})


@app.get("/health")
def health():
    return {"ok": True, "mode": "sql" if engine is not None else "local"}


app.include_router(router)
