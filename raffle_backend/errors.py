"""
Raffle error kinds.

Every rejection raised by the core is a RaffleError carrying the HTTP status
the API answers with and a JSON-safe ``detail`` payload. None of them leave
side effects behind: the controller rolls back the transaction they abort.
"""


class RaffleError(Exception):
    status_code = 400
    code = "raffle_error"

    def __init__(self, message=None, **detail):
        self.message = message or self.__class__.__doc__ or self.code
        self.detail = detail
        super().__init__(self.message)

    def to_dict(self):
        return {"error": self.code, "message": self.message, **self.detail}


class InsufficientFee(RaffleError):
    """Entrance fee not met"""

    code = "insufficient_fee"

    def __init__(self, fee_paid, entrance_fee):
        super().__init__(
            f"Sent {fee_paid}, entrance fee is {entrance_fee}",
            fee_paid=fee_paid,
            entrance_fee=entrance_fee,
        )


class RoundNotOpen(RaffleError):
    """Raffle is drawing a winner; entries are closed"""

    status_code = 409
    code = "round_not_open"


class UpkeepNotNeeded(RaffleError):
    """Draw conditions not met"""

    status_code = 409
    code = "upkeep_not_needed"

    def __init__(self, diagnostics):
        super().__init__(None, diagnostics=diagnostics)
        self.diagnostics = diagnostics


class UnknownRequest(RaffleError):
    """Fulfillment does not match the pending randomness request"""

    status_code = 409
    code = "unknown_request"

    def __init__(self, request_id, pending_request_id):
        super().__init__(
            f"Unknown randomness request {request_id}",
            request_id=request_id,
            pending_request_id=pending_request_id,
        )


class PayoutTransferFailed(RaffleError):
    """Transfer of the pool to the winner failed"""

    status_code = 502
    code = "payout_transfer_failed"

    def __init__(self, recipient, amount, reason):
        super().__init__(
            f"Transfer of {amount} to {recipient} failed: {reason}",
            recipient=recipient,
            amount=amount,
            reason=str(reason),
        )


class IndexOutOfRange(RaffleError):
    """Participant index out of range"""

    status_code = 404
    code = "index_out_of_range"

    def __init__(self, index, count):
        super().__init__(
            f"No participant at index {index} (count={count})",
            index=index,
            count=count,
        )


class RaffleNotFound(RaffleError):
    """Raffle not found"""

    status_code = 404
    code = "raffle_not_found"


class PayoutNotFound(RaffleError):
    """Payout record not found"""

    status_code = 404
    code = "payout_not_found"


class PayoutAlreadyPaid(RaffleError):
    """Payout already sent"""

    status_code = 409
    code = "payout_already_paid"


class RequestAlreadyPending(RaffleError):
    """Raffle is already waiting on a randomness request"""

    status_code = 409
    code = "request_already_pending"


class ConcurrentUpdate(RaffleError):
    """Raffle was changed by another request; retry the operation"""

    status_code = 409
    code = "concurrent_update"


class OracleRequestFailed(RaffleError):
    """Randomness oracle request failed"""

    status_code = 502
    code = "oracle_request_failed"


class TransferError(Exception):
    """Raised by transfer clients when funds could not be sent."""
