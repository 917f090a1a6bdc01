"""
Raffle keeper
An APScheduler interval job that polls every open raffle and starts the
draw for the ones that are due
"""

import logging

from apscheduler.schedulers.blocking import BlockingScheduler

from . import config
from .clock import utcnow
from .controller import RaffleController
from .database import SessionLocal, engine
from .errors import RaffleError
from .logging_config import setup_logging
from .models import Base, Raffle, PHASE_OPEN
from .oracle import HttpRandomnessOracle

logger = logging.getLogger(__name__)


def perform_due_upkeeps(db, oracle, now=utcnow):
    """
    Start a draw on every open raffle whose gate allows it

    Args:
        db: SQLAlchemy session
        oracle: Randomness oracle client
        now: Clock callable

    Returns:
        list: (raffle_id, request_id) for every draw started
    """
    raffle_ids = [
        row.id for row in db.query(Raffle.id).filter(Raffle.phase == PHASE_OPEN).order_by(Raffle.id)
    ]

    started = []
    for raffle_id in raffle_ids:
        controller = RaffleController.load(db, raffle_id, lock=True, oracle=oracle, now=now)
        check = controller.check_upkeep()
        if not check["can_draw"]:
            # Release the row lock taken by load()
            db.rollback()
            logger.debug(f"Raffle #{raffle_id} not due: {check['diagnostics']}")
            continue

        try:
            request_id = controller.start_draw()
        except RaffleError as e:
            logger.error(f"Upkeep failed for raffle #{raffle_id}: {e}")
            continue

        started.append((raffle_id, request_id))

    return started


def keeper_tick(oracle):
    db = SessionLocal()
    try:
        started = perform_due_upkeeps(db, oracle)
        if started:
            logger.info(f"Started {len(started)} draw(s): {started}")
    finally:
        db.close()


def build_scheduler(poll_seconds=None, oracle=None, scheduler=None):
    """
    Register the upkeep job on an APScheduler scheduler

    Errors raised by a tick are logged by the scheduler's executor and the
    job keeps its schedule.
    """
    poll_seconds = poll_seconds or config.KEEPER_POLL_SECONDS
    oracle = oracle or HttpRandomnessOracle()
    scheduler = scheduler or BlockingScheduler(timezone="UTC")

    scheduler.add_job(
        keeper_tick,
        "interval",
        seconds=poll_seconds,
        args=[oracle],
        id="raffle-upkeep",
        max_instances=1,
        coalesce=True,
    )
    return scheduler


def run_keeper(poll_seconds=None, oracle=None):
    scheduler = build_scheduler(poll_seconds, oracle)
    logger.info(f"Raffle keeper started (polling every {poll_seconds or config.KEEPER_POLL_SECONDS}s)")
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Raffle keeper stopped")


def main():
    app_logger = setup_logging()
    # Job failures are reported on the apscheduler logger
    scheduler_logger = logging.getLogger("apscheduler")
    scheduler_logger.setLevel(logging.WARNING)
    for handler in app_logger.handlers:
        scheduler_logger.addHandler(handler)
    Base.metadata.create_all(bind=engine)
    run_keeper()


if __name__ == "__main__":
    main()
