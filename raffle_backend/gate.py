from .models import PHASE_OPEN


class DrawGate:
    """
    Decides whether a draw may start.

    All four conditions must hold: the interval has elapsed since the last
    round, the raffle is OPEN, the pool holds a balance and at least one
    participant has entered. Diagnostics are reported whatever the outcome.
    Reads only; safe to call speculatively.
    """

    def __init__(self, raffle, ledger, clock):
        self.raffle = raffle
        self.ledger = ledger
        self.clock = clock

    def evaluate(self, now) -> dict:
        participant_count = self.ledger.count()
        balance = self.ledger.balance

        time_passed = self.clock.is_due(now)
        is_open = self.raffle.phase == PHASE_OPEN
        has_balance = balance > 0
        has_players = participant_count > 0

        return {
            "can_draw": time_passed and is_open and has_balance and has_players,
            "diagnostics": {
                "balance": balance,
                "participant_count": participant_count,
                "phase": self.raffle.phase,
                "elapsed_seconds": int(self.clock.elapsed(now)),
                "interval_seconds": self.clock.interval_seconds,
            },
        }
