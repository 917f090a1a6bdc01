"""
Entry ledger for the current round.

Participants are the ``entries`` rows of the raffle's current round number in
insertion order. The same participant may hold several slots. A reset moves
the raffle to the next round number, so past entries stay recorded.
"""

import logging

from .errors import IndexOutOfRange, InsufficientFee, RoundNotOpen
from .models import Entry, PHASE_OPEN

logger = logging.getLogger(__name__)


class EntryLedger:
    def __init__(self, db, raffle, notifier):
        self.db = db
        self.raffle = raffle
        self.notifier = notifier

    def _current_entries(self):
        return self.db.query(Entry).filter(
            Entry.raffle_id == self.raffle.id,
            Entry.round_number == self.raffle.round_number,
        )

    def admit(self, participant: str, fee_paid: int, now=None) -> Entry:
        if self.raffle.phase != PHASE_OPEN:
            logger.warning(f"Raffle #{self.raffle.id}: entry by {participant} rejected, phase={self.raffle.phase}")
            raise RoundNotOpen()

        if fee_paid < self.raffle.entrance_fee:
            logger.warning(
                f"Raffle #{self.raffle.id}: entry by {participant} rejected, "
                f"paid {fee_paid} < fee {self.raffle.entrance_fee}"
            )
            raise InsufficientFee(fee_paid, self.raffle.entrance_fee)

        entry = Entry(
            raffle_id=self.raffle.id,
            round_number=self.raffle.round_number,
            participant=participant,
            fee_paid=fee_paid,
        )
        if now is not None:
            entry.created_at = now
        self.db.add(entry)
        self.raffle.pool_balance = self.raffle.pool_balance + fee_paid
        self.db.flush()

        self.notifier.entered(participant, now)
        return entry

    def participants(self):
        rows = self._current_entries().order_by(Entry.id.asc()).all()
        return [row.participant for row in rows]

    def count(self) -> int:
        return self._current_entries().count()

    def participant_at(self, index: int) -> str:
        count = self.count()
        if index < 0 or index >= count:
            raise IndexOutOfRange(index, count)
        row = self._current_entries().order_by(Entry.id.asc()).offset(index).limit(1).first()
        return row.participant

    @property
    def balance(self) -> int:
        return self.raffle.pool_balance

    def reset(self):
        self.raffle.round_number = self.raffle.round_number + 1
        self.raffle.pool_balance = 0
