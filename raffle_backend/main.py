from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .database import engine, SessionLocal, get_db
from .models import Base, Raffle
from .schemas import RaffleCreate, RaffleOut, EnterIn, EnterOut, UpkeepOut, DrawStartedOut
from .schemas import FulfillIn, DrawResultOut, RoundResultOut, PayoutOut, RedirectIn, EventOut
from fastapi import Header, HTTPException
from functools import lru_cache
from typing import List, Optional
import os

from . import config
from .clock import utcnow, iso_utc_z, pretty_utc
from .controller import RaffleController, create_raffle
from .errors import RaffleError
from .logging_config import setup_logging
from .models import PHASE_DRAWING
from .notifications import list_events
from .oracle import HttpRandomnessOracle
from .payout import HttpPayoutClient


app = FastAPI(title="Raffle Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(RaffleError)
async def raffle_error_handler(request, exc: RaffleError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


@app.on_event("startup")
def startup_event():
    setup_logging()
    Base.metadata.create_all(bind=engine)

    db: Session = SessionLocal()
    try:
        if db.query(Raffle).first() is None:
            create_raffle(db, name="default")
    finally:
        db.close()


# --- Collaborators (overridable in tests) ---

@lru_cache
def get_oracle():
    return HttpRandomnessOracle()


@lru_cache
def get_transfer():
    return HttpPayoutClient()


def get_clock():
    return utcnow


def get_controller(
    raffle_id: int,
    db: Session = Depends(get_db),
    oracle=Depends(get_oracle),
    transfer=Depends(get_transfer),
    now=Depends(get_clock),
):
    return RaffleController.load(db, raffle_id, oracle=oracle, transfer=transfer, now=now)


def get_writer(
    raffle_id: int,
    db: Session = Depends(get_db),
    oracle=Depends(get_oracle),
    transfer=Depends(get_transfer),
    now=Depends(get_clock),
):
    return RaffleController.load(db, raffle_id, lock=True, oracle=oracle, transfer=transfer, now=now)


def require_admin(x_admin_secret: str = Header(None)):
    expected = os.getenv("ADMIN_SECRET")
    if expected is None:
        raise HTTPException(status_code=500, detail="Admin secret not configured")
    if x_admin_secret != expected:
        raise HTTPException(status_code=403, detail="Forbidden")


def require_oracle(x_oracle_secret: str = Header(None)):
    expected = os.getenv("ORACLE_SECRET")
    if expected is None:
        raise HTTPException(status_code=500, detail="Oracle secret not configured")
    if x_oracle_secret != expected:
        raise HTTPException(status_code=403, detail="Forbidden")


@app.get("/health")
def health():
    return {"status": "ok"}


# --- Raffles ---

@app.post("/raffles", response_model=RaffleOut)
def create_raffle_endpoint(
    payload: RaffleCreate,
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
    now=Depends(get_clock),
):
    raffle = create_raffle(db, now=now(), **payload.model_dump())
    return RaffleController(db, raffle, now=now).state()


@app.get("/raffles/{raffle_id}")
def get_raffle(controller: RaffleController = Depends(get_controller)):
    state = RaffleOut(**controller.state()).model_dump()

    # JS-safe timestamps alongside the raw value
    state["last_round_at"] = iso_utc_z(controller.raffle.last_round_at)
    state["last_round_at_utc"] = pretty_utc(controller.raffle.last_round_at)
    state["server_time_utc"] = pretty_utc(controller.now())
    return state


@app.get("/raffles/{raffle_id}/participants/{index}")
def get_participant(index: int, controller: RaffleController = Depends(get_controller)):
    return {"index": index, "participant": controller.participant_at(index)}


@app.post("/raffles/{raffle_id}/enter", response_model=EnterOut)
def enter_raffle(payload: EnterIn, controller: RaffleController = Depends(get_writer)):
    return controller.enter(payload.participant, payload.amount)


# --- Automation ---

@app.get("/raffles/{raffle_id}/upkeep", response_model=UpkeepOut)
def check_upkeep(controller: RaffleController = Depends(get_controller)):
    return controller.check_upkeep()


@app.post("/raffles/{raffle_id}/upkeep", response_model=DrawStartedOut)
def perform_upkeep(controller: RaffleController = Depends(get_writer)):
    request_id = controller.start_draw()
    return {"request_id": request_id, "phase": PHASE_DRAWING}


# --- Oracle callback ---

@app.post("/raffles/{raffle_id}/fulfill", response_model=DrawResultOut)
def fulfill_random_words(
    payload: FulfillIn,
    _: None = Depends(require_oracle),
    controller: RaffleController = Depends(get_writer),
):
    return controller.fulfill(payload.request_id, payload.random_words)


# --- History / payouts / events ---

@app.get("/raffles/{raffle_id}/rounds", response_model=List[RoundResultOut])
def get_rounds(limit: int = 20, controller: RaffleController = Depends(get_controller)):
    return controller.round_history(limit=limit)


@app.get("/raffles/{raffle_id}/payouts", response_model=List[PayoutOut])
def get_payouts(status: Optional[str] = None, controller: RaffleController = Depends(get_controller)):
    return controller.payouts.list_payouts(status=status)


@app.post("/raffles/{raffle_id}/payouts/{round_number}/retry", response_model=PayoutOut)
def retry_payout(
    round_number: int,
    _: None = Depends(require_admin),
    controller: RaffleController = Depends(get_writer),
):
    return controller.retry_payout(round_number)


@app.post("/raffles/{raffle_id}/payouts/{round_number}/redirect", response_model=PayoutOut)
def redirect_payout(
    round_number: int,
    payload: RedirectIn,
    _: None = Depends(require_admin),
    controller: RaffleController = Depends(get_writer),
):
    return controller.redirect_payout(round_number, payload.recipient)


@app.get("/raffles/{raffle_id}/events", response_model=List[EventOut])
def get_events(
    kind: Optional[str] = None,
    limit: int = 100,
    controller: RaffleController = Depends(get_controller),
):
    return list_events(controller.db, controller.raffle.id, kind=kind, limit=limit)
