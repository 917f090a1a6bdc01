"""
Public raffle notifications.

Each notification is written to the ``raffle_events`` log inside the
transaction of the operation that emits it, so a rolled back operation
leaves no notification behind.
"""

import logging

from .models import RaffleEvent

logger = logging.getLogger(__name__)

ENTERED = "entered"
DRAW_STARTED = "draw_started"
WINNER_PICKED = "winner_picked"


class Notifier:
    def __init__(self, db, raffle):
        self.db = db
        self.raffle = raffle

    def emit(self, kind: str, value: str, timestamp=None) -> RaffleEvent:
        event = RaffleEvent(
            raffle_id=self.raffle.id,
            round_number=self.raffle.round_number,
            kind=kind,
            value=str(value),
        )
        if timestamp is not None:
            event.timestamp = timestamp
        self.db.add(event)
        logger.info(f"Raffle #{self.raffle.id} round {self.raffle.round_number}: {kind} {value}")
        return event

    def entered(self, participant, timestamp=None):
        return self.emit(ENTERED, participant, timestamp)

    def draw_started(self, request_id, timestamp=None):
        return self.emit(DRAW_STARTED, request_id, timestamp)

    def winner_picked(self, winner, timestamp=None):
        return self.emit(WINNER_PICKED, winner, timestamp)


def list_events(db, raffle_id, kind=None, limit=100):
    query = db.query(RaffleEvent).filter(RaffleEvent.raffle_id == raffle_id)
    if kind:
        query = query.filter(RaffleEvent.kind == kind)
    return query.order_by(RaffleEvent.id.asc()).limit(limit).all()
