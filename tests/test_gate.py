from datetime import timedelta

import pytest

from raffle_backend.clock import RoundClock
from raffle_backend.gate import DrawGate
from raffle_backend.models import Raffle, PHASE_DRAWING, PHASE_OPEN

from .conftest import T0


class StubLedger:
    def __init__(self, count, balance):
        self._count = count
        self.balance = balance

    def count(self):
        return self._count


def make_gate(phase=PHASE_OPEN, count=1, balance=1):
    raffle = Raffle(
        id=1,
        entrance_fee=1,
        interval_seconds=100,
        phase=phase,
        pool_balance=balance,
        last_round_at=T0,
    )
    return DrawGate(raffle, StubLedger(count, balance), RoundClock(raffle)), raffle


def test_can_draw_when_all_conditions_hold():
    gate, _ = make_gate()

    check = gate.evaluate(T0 + timedelta(seconds=101))

    assert check["can_draw"] is True
    assert check["diagnostics"] == {
        "balance": 1,
        "participant_count": 1,
        "phase": PHASE_OPEN,
        "elapsed_seconds": 101,
        "interval_seconds": 100,
    }


def test_interval_boundary_is_inclusive():
    gate, _ = make_gate()

    assert gate.evaluate(T0 + timedelta(seconds=99))["can_draw"] is False
    assert gate.evaluate(T0 + timedelta(seconds=100))["can_draw"] is True


@pytest.mark.parametrize(
    "phase, count, balance, seconds",
    [
        (PHASE_OPEN, 1, 1, 50),  # interval not elapsed
        (PHASE_DRAWING, 1, 1, 101),  # already drawing
        (PHASE_OPEN, 1, 0, 101),  # empty pool
        (PHASE_OPEN, 0, 1, 101),  # no participants
        (PHASE_DRAWING, 0, 0, 0),
    ],
)
def test_cannot_draw_when_any_condition_fails(phase, count, balance, seconds):
    gate, _ = make_gate(phase=phase, count=count, balance=balance)

    check = gate.evaluate(T0 + timedelta(seconds=seconds))

    assert check["can_draw"] is False
    assert check["diagnostics"]["balance"] == balance
    assert check["diagnostics"]["participant_count"] == count
    assert check["diagnostics"]["phase"] == phase


def test_evaluate_does_not_mutate_the_raffle():
    gate, raffle = make_gate()

    gate.evaluate(T0 + timedelta(seconds=500))
    gate.evaluate(T0)

    assert raffle.phase == PHASE_OPEN
    assert raffle.last_round_at == T0
    assert raffle.pool_balance == 1
