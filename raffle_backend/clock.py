from datetime import datetime


# --- UX / API time helpers ---

def utcnow() -> datetime:
    # Naive UTC everywhere in the DB; outbound timestamps go through iso_utc_z.
    return datetime.utcnow()


def iso_utc_z(dt: datetime):
    if not dt:
        return None
    return dt.replace(microsecond=0).isoformat() + "Z"


def pretty_utc(dt: datetime):
    if not dt:
        return None
    # Example: "2026-01-31 19:05:49 UTC"
    return dt.replace(microsecond=0).strftime("%Y-%m-%d %H:%M:%S UTC")


class RoundClock:
    """Tracks when the last round completed and whether the draw interval has elapsed."""

    def __init__(self, raffle):
        self.raffle = raffle

    @property
    def last_round_at(self) -> datetime:
        return self.raffle.last_round_at

    @property
    def interval_seconds(self) -> int:
        return self.raffle.interval_seconds

    def elapsed(self, now: datetime) -> float:
        return (now - self.raffle.last_round_at).total_seconds()

    def is_due(self, now: datetime) -> bool:
        return self.elapsed(now) >= self.raffle.interval_seconds

    def advance(self, now: datetime):
        # Only called on a committed round reset
        self.raffle.last_round_at = now
