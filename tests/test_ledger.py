import pytest

from raffle_backend.errors import IndexOutOfRange, InsufficientFee, RoundNotOpen
from raffle_backend.models import RaffleEvent
from raffle_backend.notifications import ENTERED


def test_enter_adds_one_slot_and_the_fee_paid(controller):
    result = controller.enter("0xalice", 1)

    assert result["participant_count"] == 1
    assert result["pool_balance"] == 1
    assert controller.ledger.count() == 1
    assert controller.ledger.balance == 1
    assert controller.participant_at(0) == "0xalice"


def test_overpayment_goes_to_the_pool(controller):
    controller.enter("0xalice", 1)
    controller.enter("0xbob", 5)

    assert controller.ledger.count() == 2
    assert controller.ledger.balance == 6


def test_same_participant_may_enter_repeatedly(controller):
    controller.enter("0xalice", 1)
    controller.enter("0xbob", 1)
    controller.enter("0xalice", 1)

    assert controller.ledger.participants() == ["0xalice", "0xbob", "0xalice"]
    assert controller.ledger.balance == 3


def test_underpaid_entry_is_rejected_without_side_effects(make_controller):
    controller = make_controller(entrance_fee=10)

    with pytest.raises(InsufficientFee) as exc_info:
        controller.enter("0xalice", 9)

    assert exc_info.value.detail == {"fee_paid": 9, "entrance_fee": 10}
    assert controller.ledger.count() == 0
    assert controller.ledger.balance == 0


def test_entry_while_drawing_fails_regardless_of_fee(controller, clock):
    controller.enter("0xalice", 1)
    clock.advance(101)
    controller.start_draw()

    with pytest.raises(RoundNotOpen):
        controller.enter("0xbob", 1)
    with pytest.raises(RoundNotOpen):
        controller.enter("0xbob", 0)

    assert controller.ledger.participants() == ["0xalice"]
    assert controller.ledger.balance == 1


@pytest.mark.parametrize("index", [-1, 2, 10])
def test_participant_index_out_of_range(controller, index):
    controller.enter("0xalice", 1)
    controller.enter("0xbob", 1)

    with pytest.raises(IndexOutOfRange):
        controller.participant_at(index)


def test_participant_query_on_empty_round(controller):
    with pytest.raises(IndexOutOfRange):
        controller.participant_at(0)


def test_entry_emits_entered_notification(controller, db):
    controller.enter("0xalice", 1)

    events = db.query(RaffleEvent).filter(RaffleEvent.kind == ENTERED).all()
    assert [e.value for e in events] == ["0xalice"]
    assert events[0].round_number == 1


def test_rejected_entry_emits_nothing(controller, db):
    with pytest.raises(InsufficientFee):
        controller.enter("0xalice", 0)

    assert db.query(RaffleEvent).count() == 0
