from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy import UniqueConstraint
from sqlalchemy.types import TypeDecorator
from datetime import datetime
from .database import Base

PHASE_OPEN = "OPEN"
PHASE_DRAWING = "DRAWING"

PAYOUT_PENDING = "pending"
PAYOUT_PAID = "paid"


class Amount(TypeDecorator):
    """Unbounded non-negative integer stored as decimal text (wei amounts overflow BIGINT)."""

    impl = String(78)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(int(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)


class Raffle(Base):
    __tablename__ = "raffles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=True)

    # Configuration (fixed at creation)
    entrance_fee = Column(Amount, nullable=False)
    interval_seconds = Column(Integer, nullable=False)
    key_hash = Column(String, nullable=False)
    subscription_id = Column(String, nullable=False)
    callback_gas_limit = Column(Integer, nullable=False)
    request_confirmations = Column(Integer, nullable=False)
    deferred_payouts = Column(Boolean, nullable=False, default=False)

    # Round state
    phase = Column(String, nullable=False, default=PHASE_OPEN)  # OPEN / DRAWING
    round_number = Column(Integer, nullable=False, default=1)
    pool_balance = Column(Amount, nullable=False, default=0)
    last_round_at = Column(DateTime, nullable=False)
    pending_request_id = Column(String, nullable=True)
    recent_winner = Column(String, nullable=True)

    # Bumped on every UPDATE; a writer holding a stale row gets StaleDataError
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}


class Entry(Base):
    __tablename__ = "entries"

    id = Column(Integer, primary_key=True, index=True)
    raffle_id = Column(Integer, ForeignKey("raffles.id"), nullable=False, index=True)
    round_number = Column(Integer, nullable=False, index=True)
    participant = Column(String, nullable=False)
    fee_paid = Column(Amount, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)


class RoundResult(Base):
    __tablename__ = "round_results"
    __table_args__ = (UniqueConstraint("raffle_id", "round_number"),)

    id = Column(Integer, primary_key=True)
    raffle_id = Column(Integer, ForeignKey("raffles.id"), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)

    # Audit trail of the draw
    request_id = Column(String, nullable=False)
    random_value = Column(String, nullable=False)
    participant_count = Column(Integer, nullable=False)
    winner_index = Column(Integer, nullable=False)
    winner = Column(String, nullable=False)
    prize = Column(Amount, nullable=False)

    drawn_at = Column(DateTime, nullable=False)


class Payout(Base):
    __tablename__ = "payouts"
    __table_args__ = (UniqueConstraint("raffle_id", "round_number"),)

    id = Column(Integer, primary_key=True)
    raffle_id = Column(Integer, ForeignKey("raffles.id"), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)

    winner = Column(String, nullable=False)
    recipient = Column(String, nullable=False)  # differs from winner once redirected
    amount = Column(Amount, nullable=False)
    status = Column(String, nullable=False, default=PAYOUT_PENDING)  # pending / paid
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    transfer_ref = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    paid_at = Column(DateTime, nullable=True)


class RaffleEvent(Base):
    __tablename__ = "raffle_events"

    id = Column(Integer, primary_key=True)
    raffle_id = Column(Integer, ForeignKey("raffles.id"), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)
    timestamp = Column(DateTime, default=datetime.utcnow)
    kind = Column(String)  # entered / draw_started / winner_picked
    value = Column(String)  # participant, request id or winner
