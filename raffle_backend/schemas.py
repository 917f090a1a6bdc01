from pydantic import BaseModel, Field, conint
from typing import List, Optional, Union
from datetime import datetime



class RaffleCreate(BaseModel):
    name: Optional[str] = None
    entrance_fee: Optional[int] = Field(None, ge=0)
    interval_seconds: Optional[int] = Field(None, gt=0)
    key_hash: Optional[str] = None
    subscription_id: Optional[str] = None
    callback_gas_limit: Optional[int] = Field(None, gt=0)
    request_confirmations: Optional[int] = Field(None, gt=0)
    deferred_payouts: bool = False


class RaffleOut(BaseModel):
    id: int
    name: Optional[str] = None
    entrance_fee: int
    interval_seconds: int
    phase: str
    round_number: int
    pool_balance: int
    participant_count: int
    recent_winner: Optional[str] = None
    last_round_at: datetime
    pending_request_id: Optional[str] = None
    deferred_payouts: bool
    num_words: int
    request_confirmations: int
    callback_gas_limit: int
    key_hash: str
    subscription_id: str


class EnterIn(BaseModel):
    participant: str = Field(..., min_length=1, description="Entrant address")
    amount: int = Field(..., ge=0, description="Amount paid, in the smallest currency unit")


class EnterOut(BaseModel):
    participant: str
    fee_paid: int
    round_number: int
    participant_count: int
    pool_balance: int


class UpkeepDiagnostics(BaseModel):
    balance: int
    participant_count: int
    phase: str
    elapsed_seconds: int
    interval_seconds: int


class UpkeepOut(BaseModel):
    can_draw: bool
    diagnostics: UpkeepDiagnostics


class DrawStartedOut(BaseModel):
    request_id: str
    phase: str


class FulfillIn(BaseModel):
    request_id: Union[int, str]
    random_words: List[conint(ge=0)] = Field(..., min_length=1)


class DrawResultOut(BaseModel):
    round_number: int
    request_id: str
    random_value: str
    winner_index: int
    winner: str
    prize: int
    participant_count: int
    payout_status: str


class RoundResultOut(BaseModel):
    round_number: int
    request_id: str
    random_value: str
    participant_count: int
    winner_index: int
    winner: str
    prize: int
    drawn_at: datetime

    class Config:
        from_attributes = True


class PayoutOut(BaseModel):
    round_number: int
    winner: str
    recipient: str
    amount: int
    status: str
    attempts: int
    last_error: Optional[str] = None
    transfer_ref: Optional[str] = None
    created_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RedirectIn(BaseModel):
    recipient: str = Field(..., min_length=1)


class EventOut(BaseModel):
    round_number: int
    kind: str
    value: str
    timestamp: datetime

    class Config:
        from_attributes = True
