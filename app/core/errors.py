class SettlementError(Exception):
    """Base class for errors raised while entering a result and settling a round.

    Each subclass carries the HTTP status the API layer answers with and a
    message that is safe to show to the admin.
    """

    status_code = 500
    kind = "settlement_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SettlementError):
    status_code = 400
    kind = "validation_error"


class NotFoundError(SettlementError):
    status_code = 404
    kind = "not_found"


class ConflictError(SettlementError):
    status_code = 409
    kind = "conflict"


class IntegrityError(SettlementError):
    # referenced wallet/user missing, or a reversal would overdraw a wallet
    status_code = 500
    kind = "integrity_error"


class TransactionError(SettlementError):
    status_code = 500
    kind = "transaction_error"
