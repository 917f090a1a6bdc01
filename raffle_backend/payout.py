"""
Prize disbursement.

Every round that picks a winner gets one ``payouts`` row keyed by
(raffle, round number). Strict raffles only write the row once the transfer
went through; a failed transfer raises PayoutTransferFailed and the caller
rolls the whole fulfillment back. Raffles with ``deferred_payouts`` keep the
row as ``pending`` instead, and ``retry`` / ``redirect`` work from that row
alone, never from the draw.
"""

import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util import Retry

from . import config
from .errors import PayoutAlreadyPaid, PayoutNotFound, PayoutTransferFailed, TransferError
from .models import Payout, PAYOUT_PAID, PAYOUT_PENDING

logger = logging.getLogger(__name__)


class HttpPayoutClient:
    """Sends prize transfers through the treasury service."""

    def __init__(self, base_url=None, api_key=None, timeout=None):
        self.base_url = base_url or config.PAYOUT_API_URL
        self.api_key = api_key or config.PAYOUT_API_KEY
        self.timeout = timeout or config.PAYOUT_TIMEOUT_SECONDS

        # Transfers carry an idempotency reference, so POST retries are safe
        self.session = requests.Session()
        retries = Retry(
            total=3,
            connect=3,
            read=3,
            backoff_factor=0.5,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["POST"],
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retries)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    def send(self, recipient: str, amount: int, reference: str) -> str:
        if not self.base_url:
            raise TransferError("PAYOUT_API_URL not configured")

        headers = {
            "Content-Type": "application/json",
            "Idempotency-Key": reference,
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            r = self.session.post(
                f"{self.base_url.rstrip('/')}/transfers",
                json={"recipient": recipient, "amount": str(amount), "reference": reference},
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransferError(f"Treasury request failed: {e}")

        if r.status_code not in (200, 201):
            raise TransferError(f"Treasury error {r.status_code}: {r.text}")

        try:
            data = r.json()
        except ValueError as e:
            raise TransferError(f"Treasury returned invalid JSON: {e}")
        if not isinstance(data, dict):
            raise TransferError(f"Unexpected treasury response: {r.text}")

        if data.get("status") == "failed":
            raise TransferError(data.get("error") or "Transfer rejected by treasury")

        return str(data.get("id") or reference)


class PayoutExecutor:
    def __init__(self, db, raffle, transfer):
        self.db = db
        self.raffle = raffle
        self.transfer = transfer

    def _reference(self, payout):
        # One idempotency key per (round, recipient); a redirect starts a new transfer
        return f"raffle-{self.raffle.id}-round-{payout.round_number}-{payout.recipient}"

    def _attempt(self, payout, now):
        payout.attempts = (payout.attempts or 0) + 1
        try:
            if self.transfer is None:
                raise TransferError("No payout transfer client configured")
            payout.transfer_ref = self.transfer.send(
                payout.recipient, payout.amount, self._reference(payout)
            )
        except TransferError as e:
            payout.last_error = str(e)
            logger.error(
                f"Raffle #{self.raffle.id} round {payout.round_number}: transfer of {payout.amount} "
                f"to {payout.recipient} failed (attempt {payout.attempts}): {e}"
            )
            return False

        payout.status = PAYOUT_PAID
        payout.last_error = None
        payout.paid_at = now
        logger.info(
            f"Raffle #{self.raffle.id} round {payout.round_number}: paid {payout.amount} to {payout.recipient}"
        )
        return True

    def settle(self, round_number: int, winner: str, amount: int, now) -> Payout:
        payout = Payout(
            raffle_id=self.raffle.id,
            round_number=round_number,
            winner=winner,
            recipient=winner,
            amount=amount,
            status=PAYOUT_PENDING,
            attempts=0,
            created_at=now,
        )

        if not self._attempt(payout, now) and not self.raffle.deferred_payouts:
            raise PayoutTransferFailed(winner, amount, payout.last_error)

        self.db.add(payout)
        self.db.flush()
        return payout

    def get(self, round_number: int) -> Payout:
        payout = (
            self.db.query(Payout)
            .filter(Payout.raffle_id == self.raffle.id, Payout.round_number == round_number)
            .first()
        )
        if payout is None:
            raise PayoutNotFound(
                f"No payout for raffle #{self.raffle.id} round {round_number}",
                raffle_id=self.raffle.id,
                round_number=round_number,
            )
        return payout

    def list_payouts(self, status=None):
        query = self.db.query(Payout).filter(Payout.raffle_id == self.raffle.id)
        if status:
            query = query.filter(Payout.status == status)
        return query.order_by(Payout.round_number.asc()).all()

    def retry(self, round_number: int, now) -> Payout:
        payout = self.get(round_number)
        if payout.status == PAYOUT_PAID:
            return payout

        self._attempt(payout, now)
        return payout

    def redirect(self, round_number: int, recipient: str) -> Payout:
        payout = self.get(round_number)
        if payout.status == PAYOUT_PAID:
            raise PayoutAlreadyPaid(
                f"Payout for round {round_number} already sent to {payout.recipient}",
                round_number=round_number,
            )

        logger.info(
            f"Raffle #{self.raffle.id} round {round_number}: payout redirected "
            f"from {payout.recipient} to {recipient}"
        )
        payout.recipient = recipient
        return payout
