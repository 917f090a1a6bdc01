import logging

import requests

from . import config
from .errors import OracleRequestFailed, RequestAlreadyPending, UnknownRequest
from .models import PHASE_DRAWING

logger = logging.getLogger(__name__)


# --- Oracle JSON-RPC client ---

class HttpRandomnessOracle:
    """
    Randomness oracle reached over JSON-RPC.

    ``request_random_words`` returns the oracle's request id synchronously; the
    random words arrive later through the raffle's fulfill endpoint.
    """

    def __init__(self, rpc_url=None, api_key=None, timeout=None):
        self.rpc_url = rpc_url or config.ORACLE_RPC_URL
        self.api_key = api_key or config.ORACLE_API_KEY
        self.timeout = timeout or config.ORACLE_TIMEOUT_SECONDS

    def _call(self, method: str, params: dict):
        if not self.rpc_url:
            raise OracleRequestFailed("ORACLE_RPC_URL not configured")

        payload = {
            "jsonrpc": "2.0",
            "id": method,
            "method": method,
            "params": params,
        }
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            r = requests.post(self.rpc_url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise OracleRequestFailed(f"Oracle RPC failed: {str(e)}")

        if r.status_code != 200:
            raise OracleRequestFailed(f"Oracle error {r.status_code}: {r.text}")

        try:
            data = r.json()
        except ValueError as e:
            raise OracleRequestFailed(f"Oracle returned invalid JSON: {str(e)}")
        if not isinstance(data, dict):
            raise OracleRequestFailed(f"Unexpected oracle response: {r.text}")

        if "error" in data:
            raise OracleRequestFailed(f"Oracle RPC error: {data['error']}")

        return data.get("result")

    def request_random_words(
        self,
        key_hash: str,
        subscription_id: str,
        request_confirmations: int,
        callback_gas_limit: int,
        num_words: int,
        callback_ref: str = None,
    ) -> str:
        result = self._call(
            "requestRandomWords",
            {
                "keyHash": key_hash,
                "subId": subscription_id,
                "requestConfirmations": request_confirmations,
                "callbackGasLimit": callback_gas_limit,
                "numWords": num_words,
                "callbackRef": callback_ref,
            },
        )

        if isinstance(result, dict):
            result = result.get("requestId")
        if result is None:
            raise OracleRequestFailed("Oracle returned no request id")

        return str(result)


# --- Request / fulfillment correlation ---

class RandomnessBridge:
    """Keeps at most one outstanding randomness request per raffle."""

    def __init__(self, raffle, oracle):
        self.raffle = raffle
        self.oracle = oracle

    @property
    def pending_request_id(self):
        return self.raffle.pending_request_id

    def request(self) -> str:
        if self.raffle.pending_request_id is not None:
            raise RequestAlreadyPending(
                f"Raffle #{self.raffle.id} already waiting on request {self.raffle.pending_request_id}",
                pending_request_id=self.raffle.pending_request_id,
            )
        if self.oracle is None:
            raise OracleRequestFailed("No randomness oracle configured")

        request_id = self.oracle.request_random_words(
            key_hash=self.raffle.key_hash,
            subscription_id=self.raffle.subscription_id,
            request_confirmations=self.raffle.request_confirmations,
            callback_gas_limit=self.raffle.callback_gas_limit,
            num_words=config.NUM_WORDS,
            callback_ref=f"raffle-{self.raffle.id}-round-{self.raffle.round_number}",
        )
        self.raffle.pending_request_id = str(request_id)
        logger.info(f"Raffle #{self.raffle.id}: randomness requested (request_id={request_id})")
        return self.raffle.pending_request_id

    def deliver(self, request_id, random_words) -> int:
        pending = self.raffle.pending_request_id
        if self.raffle.phase != PHASE_DRAWING or pending is None or str(request_id) != pending:
            logger.warning(
                f"Raffle #{self.raffle.id}: rejected fulfillment for request {request_id} (pending={pending})"
            )
            raise UnknownRequest(str(request_id), pending)

        if not random_words:
            raise ValueError("Fulfillment carried no random words")

        return int(random_words[0])

    def clear(self):
        self.raffle.pending_request_id = None
