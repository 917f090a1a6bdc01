from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from raffle_backend.controller import RaffleController, create_raffle
from raffle_backend.database import Base
from raffle_backend.errors import TransferError

T0 = datetime(2026, 1, 1, 12, 0, 0)


class FakeClock:
    def __init__(self, start=T0):
        self.current = start

    def __call__(self):
        return self.current

    def advance(self, seconds):
        self.current = self.current + timedelta(seconds=seconds)


class FakeOracle:
    """Hands out sequential request ids; fulfillment is driven by the test."""

    def __init__(self, first_request_id=1):
        self.next_id = first_request_id
        self.requests = []

    def request_random_words(
        self,
        key_hash,
        subscription_id,
        request_confirmations,
        callback_gas_limit,
        num_words,
        callback_ref=None,
    ):
        request_id = str(self.next_id)
        self.next_id += 1
        self.requests.append(
            {
                "request_id": request_id,
                "key_hash": key_hash,
                "subscription_id": subscription_id,
                "request_confirmations": request_confirmations,
                "callback_gas_limit": callback_gas_limit,
                "num_words": num_words,
                "callback_ref": callback_ref,
            }
        )
        return request_id

    @property
    def last_request_id(self):
        return self.requests[-1]["request_id"] if self.requests else None


class FakeWallet:
    """Treasury stand-in; recipients in ``rejecting`` cannot receive funds."""

    def __init__(self):
        self.balances = {}
        self.transfers = []
        self.rejecting = set()
        self.references = []

    def send(self, recipient, amount, reference):
        self.references.append(reference)
        if recipient in self.rejecting:
            raise TransferError(f"{recipient} cannot receive funds")
        self.balances[recipient] = self.balances.get(recipient, 0) + amount
        self.transfers.append((recipient, amount, reference))
        return f"tx-{len(self.transfers)}"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def wallet():
    return FakeWallet()


@pytest.fixture
def raffle(db, clock):
    return create_raffle(db, name="test", entrance_fee=1, interval_seconds=100, now=clock())


@pytest.fixture
def controller(db, raffle, oracle, wallet, clock):
    return RaffleController(db, raffle, oracle=oracle, transfer=wallet, now=clock)


@pytest.fixture
def make_controller(db, oracle, wallet, clock):
    def _make(**raffle_kwargs):
        settings = {"entrance_fee": 1, "interval_seconds": 100, "now": clock()}
        settings.update(raffle_kwargs)
        raffle = create_raffle(db, **settings)
        return RaffleController(db, raffle, oracle=oracle, transfer=wallet, now=clock)

    return _make
