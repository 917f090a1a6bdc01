import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from raffle_backend.controller import RaffleController, create_raffle
from raffle_backend.database import Base
from raffle_backend.errors import ConcurrentUpdate
from raffle_backend.models import Entry, Raffle, PHASE_DRAWING

from .conftest import T0


@pytest.fixture
def file_sessions(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'raffle.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    sessions = []

    def _open():
        sessions.append(factory())
        return sessions[-1]

    yield _open
    for session in sessions:
        session.close()
    engine.dispose()


@pytest.fixture
def raffle_id(file_sessions):
    db = file_sessions()
    return create_raffle(db, entrance_fee=1, interval_seconds=100, now=T0).id


def load_pair(file_sessions, raffle_id, **kwargs):
    # Both writers read the row before either commits
    first = RaffleController.load(file_sessions(), raffle_id, lock=True, **kwargs)
    second = RaffleController.load(file_sessions(), raffle_id, lock=True, **kwargs)
    return first, second


def test_overlapping_entries_never_lose_a_fee(file_sessions, raffle_id, clock):
    first, second = load_pair(file_sessions, raffle_id, now=clock)

    first.enter("0xalice", 1)
    with pytest.raises(ConcurrentUpdate) as exc_info:
        second.enter("0xbob", 1)

    assert exc_info.value.status_code == 409
    fresh = file_sessions()
    raffle = fresh.get(Raffle, raffle_id)
    assert raffle.pool_balance == 1
    assert fresh.query(Entry).filter(Entry.raffle_id == raffle_id).count() == 1


def test_stale_writer_can_retry_after_reloading(file_sessions, raffle_id, clock):
    first, second = load_pair(file_sessions, raffle_id, now=clock)
    first.enter("0xalice", 1)
    with pytest.raises(ConcurrentUpdate):
        second.enter("0xbob", 1)

    RaffleController.load(file_sessions(), raffle_id, lock=True, now=clock).enter("0xbob", 1)

    raffle = file_sessions().get(Raffle, raffle_id)
    assert raffle.pool_balance == 2
    controller = RaffleController.load(file_sessions(), raffle_id, now=clock)
    assert controller.ledger.participants() == ["0xalice", "0xbob"]


def test_overlapping_draws_issue_one_oracle_request(file_sessions, raffle_id, clock, oracle):
    RaffleController.load(file_sessions(), raffle_id, now=clock).enter("0xalice", 1)
    clock.advance(101)
    first, second = load_pair(file_sessions, raffle_id, oracle=oracle, now=clock)

    request_id = first.start_draw()
    with pytest.raises(ConcurrentUpdate):
        second.start_draw()

    assert [r["request_id"] for r in oracle.requests] == [request_id]
    raffle = file_sessions().get(Raffle, raffle_id)
    assert raffle.phase == PHASE_DRAWING
    assert raffle.pending_request_id == request_id


def test_overlapping_fulfillments_pay_once(file_sessions, raffle_id, clock, oracle, wallet):
    RaffleController.load(file_sessions(), raffle_id, now=clock).enter("0xalice", 1)
    clock.advance(101)
    request_id = RaffleController.load(file_sessions(), raffle_id, oracle=oracle, now=clock).start_draw()
    first, second = load_pair(file_sessions, raffle_id, transfer=wallet, now=clock)

    first.fulfill(request_id, [0])
    with pytest.raises(ConcurrentUpdate):
        second.fulfill(request_id, [0])

    assert wallet.transfers == [("0xalice", 1, wallet.references[0])]
    assert len(wallet.references) == 1
