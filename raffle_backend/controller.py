"""
Raffle state machine.

    OPEN --start_draw--> DRAWING --fulfill(matching request)--> OPEN

A RaffleController is built per operation around one session and the raffle
row it owns; it is the only code that mutates raffle state. Each operation
runs as one transaction: committed when it returns, rolled back when it
raises, so a rejected operation never leaves partial state behind.

Overlapping writers are caught by the version column on ``raffles``: the
writer whose snapshot went stale is rolled back with ConcurrentUpdate.
"""

import logging
from contextlib import contextmanager

from sqlalchemy.orm.exc import StaleDataError

from . import config
from .clock import RoundClock, utcnow
from .errors import ConcurrentUpdate, PayoutTransferFailed, RaffleNotFound, UpkeepNotNeeded
from .gate import DrawGate
from .ledger import EntryLedger
from .models import PAYOUT_PAID, PHASE_DRAWING, PHASE_OPEN, Raffle, RoundResult
from .notifications import Notifier
from .oracle import RandomnessBridge
from .payout import PayoutExecutor
from .resolver import WinnerResolver

logger = logging.getLogger(__name__)


def create_raffle(
    db,
    name=None,
    entrance_fee=None,
    interval_seconds=None,
    key_hash=None,
    subscription_id=None,
    callback_gas_limit=None,
    request_confirmations=None,
    deferred_payouts=False,
    now=None,
) -> Raffle:
    """Create a raffle; omitted settings fall back to the configured defaults."""
    now = now or utcnow()
    raffle = Raffle(
        name=name,
        entrance_fee=config.DEFAULT_ENTRANCE_FEE if entrance_fee is None else entrance_fee,
        interval_seconds=config.DEFAULT_INTERVAL_SECONDS if interval_seconds is None else interval_seconds,
        key_hash=key_hash or config.DEFAULT_KEY_HASH,
        subscription_id=str(subscription_id or config.DEFAULT_SUBSCRIPTION_ID),
        callback_gas_limit=callback_gas_limit or config.DEFAULT_CALLBACK_GAS_LIMIT,
        request_confirmations=request_confirmations or config.DEFAULT_REQUEST_CONFIRMATIONS,
        deferred_payouts=bool(deferred_payouts),
        phase=PHASE_OPEN,
        round_number=1,
        pool_balance=0,
        last_round_at=now,
        created_at=now,
    )
    db.add(raffle)
    db.commit()
    db.refresh(raffle)

    logger.info(
        f"Raffle #{raffle.id} created (fee={raffle.entrance_fee}, interval={raffle.interval_seconds}s, "
        f"deferred_payouts={raffle.deferred_payouts})"
    )
    return raffle


class RaffleController:
    def __init__(self, db, raffle, oracle=None, transfer=None, now=utcnow):
        self.db = db
        self.raffle = raffle
        self.now = now

        self.notifier = Notifier(db, raffle)
        self.ledger = EntryLedger(db, raffle, self.notifier)
        self.clock = RoundClock(raffle)
        self.gate = DrawGate(raffle, self.ledger, self.clock)
        self.bridge = RandomnessBridge(raffle, oracle)
        self.resolver = WinnerResolver()
        self.payouts = PayoutExecutor(db, raffle, transfer)

    @classmethod
    def load(cls, db, raffle_id, lock=False, **kwargs):
        query = db.query(Raffle).filter(Raffle.id == raffle_id)
        if lock:
            # Serialises writers on databases with row locks; SQLite relies on the version column
            query = query.with_for_update()
        raffle = query.first()
        if raffle is None:
            raise RaffleNotFound(f"Raffle {raffle_id} not found", raffle_id=raffle_id)
        return cls(db, raffle, **kwargs)

    @contextmanager
    def _transaction(self):
        raffle_id = self.raffle.id
        try:
            yield
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            logger.warning(f"Raffle #{raffle_id}: lost a concurrent update, rolled back")
            raise ConcurrentUpdate(raffle_id=raffle_id)
        except Exception:
            self.db.rollback()
            raise

    # --- Entry ---

    def enter(self, participant: str, fee_paid: int):
        with self._transaction():
            entry = self.ledger.admit(participant, fee_paid, now=self.now())
            result = {
                "participant": entry.participant,
                "fee_paid": entry.fee_paid,
                "round_number": entry.round_number,
                "participant_count": self.ledger.count(),
                "pool_balance": self.ledger.balance,
            }
        return result

    # --- Automation ---

    def check_upkeep(self) -> dict:
        return self.gate.evaluate(self.now())

    def start_draw(self) -> str:
        with self._transaction():
            now = self.now()
            check = self.gate.evaluate(now)
            if not check["can_draw"]:
                logger.warning(f"Raffle #{self.raffle.id}: draw not needed {check['diagnostics']}")
                raise UpkeepNotNeeded(check["diagnostics"])

            self.raffle.phase = PHASE_DRAWING
            # Claim the round before calling the oracle
            self.db.flush()
            request_id = self.bridge.request()
            self.notifier.draw_started(request_id, now)

        logger.info(f"Raffle #{self.raffle.id}: drawing, waiting on request {request_id}")
        return request_id

    # --- Oracle callback ---

    def fulfill(self, request_id, random_words) -> dict:
        with self._transaction():
            random_value = self.bridge.deliver(request_id, random_words)
            # Consume the request before paying out
            self.bridge.clear()
            self.db.flush()

            participants = self.ledger.participants()
            winner_index, winner = self.resolver.select(random_value, participants)
            prize = self.ledger.balance
            round_number = self.raffle.round_number
            now = self.now()

            # Strict raffles raise here and nothing below runs
            payout = self.payouts.settle(round_number, winner, prize, now)

            self.db.add(
                RoundResult(
                    raffle_id=self.raffle.id,
                    round_number=round_number,
                    request_id=str(request_id),
                    random_value=str(random_value),
                    participant_count=len(participants),
                    winner_index=winner_index,
                    winner=winner,
                    prize=prize,
                    drawn_at=now,
                )
            )

            self.raffle.recent_winner = winner
            self.notifier.winner_picked(winner, now)
            self.ledger.reset()
            self.clock.advance(now)
            self.raffle.phase = PHASE_OPEN

            result = {
                "round_number": round_number,
                "request_id": str(request_id),
                "random_value": str(random_value),
                "winner_index": winner_index,
                "winner": winner,
                "prize": prize,
                "participant_count": len(participants),
                "payout_status": payout.status,
            }

        logger.info(
            f"Raffle #{self.raffle.id} round {round_number} winner: {winner} (index {winner_index} of "
            f"{result['participant_count']}, prize {prize}, payout {result['payout_status']})"
        )
        return result

    # --- Deferred payouts ---

    def retry_payout(self, round_number: int):
        with self._transaction():
            payout = self.payouts.retry(round_number, self.now())
            status = payout.status
            recipient, amount, last_error = payout.recipient, payout.amount, payout.last_error

        # The failed attempt is committed before surfacing the failure
        if status != PAYOUT_PAID:
            raise PayoutTransferFailed(recipient, amount, last_error)
        return payout

    def redirect_payout(self, round_number: int, recipient: str):
        with self._transaction():
            payout = self.payouts.redirect(round_number, recipient)
        return payout

    # --- Queries ---

    def participant_at(self, index: int) -> str:
        return self.ledger.participant_at(index)

    def round_history(self, limit=20):
        return (
            self.db.query(RoundResult)
            .filter(RoundResult.raffle_id == self.raffle.id)
            .order_by(RoundResult.round_number.desc())
            .limit(limit)
            .all()
        )

    def state(self) -> dict:
        raffle = self.raffle
        return {
            "id": raffle.id,
            "name": raffle.name,
            "entrance_fee": raffle.entrance_fee,
            "interval_seconds": raffle.interval_seconds,
            "phase": raffle.phase,
            "round_number": raffle.round_number,
            "pool_balance": self.ledger.balance,
            "participant_count": self.ledger.count(),
            "recent_winner": raffle.recent_winner,
            "last_round_at": raffle.last_round_at,
            "pending_request_id": raffle.pending_request_id,
            "deferred_payouts": raffle.deferred_payouts,
            "num_words": config.NUM_WORDS,
            "request_confirmations": raffle.request_confirmations,
            "callback_gas_limit": raffle.callback_gas_limit,
            "key_hash": raffle.key_hash,
            "subscription_id": raffle.subscription_id,
        }
