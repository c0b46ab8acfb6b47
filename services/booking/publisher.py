# ============================================================
# publisher.py — Émission d'événements RabbitMQ
# ------------------------------------------------------------
# Publie les événements du service Booking sur l’échange fanout
# "events" : BookingCreated, BookingDeleted, AccessGrantIssued,
# AccessGrantRevoked. Sans RABBITMQ_HOST (mode local), l’événement
# est seulement journalisé.
# ============================================================
import json
import logging

import pika

import config

log = logging.getLogger("booking.events")


# Cette méthode publie un message sur l’échange "events" en mode fanout :
#
#   - event_type : nom de l’événement
#   - payload    : contenu du message
#
# Renvoie True si le message a été remis au broker.
def publish_event(event_type: str, payload: dict) -> bool:
    if not config.RABBITMQ_HOST:
        log.info("[event] %s %s (no broker)", event_type, payload)
        return False
    conn = pika.BlockingConnection(pika.ConnectionParameters(host=config.RABBITMQ_HOST))
    try:
        ch = conn.channel()
        # durable=True pour survivre aux redémarrages RabbitMQ
        ch.exchange_declare(exchange="events", exchange_type="fanout", durable=True)
        message = {"type": event_type, "payload": payload}
        ch.basic_publish(exchange="events", routing_key="", body=json.dumps(message, default=str))
    finally:
        conn.close()
    log.info("[event] %s %s", event_type, payload)
    return True
