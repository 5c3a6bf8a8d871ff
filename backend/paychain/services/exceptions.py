"""
Charge engine exceptions

Every ChargeError carries a caller-safe message and the HTTP status it maps to.
The API layer renders them as {"success": false, "error": <message>}.
"""


class ChargeError(Exception):
    """Base class for classified charge failures"""

    code = "CHARGE_ERROR"
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class TransportError(ChargeError):
    """Wrong HTTP method"""
    code = "METHOD_NOT_ALLOWED"
    status_code = 405


class AuthError(ChargeError):
    """Missing or unknown credential"""
    code = "INVALID_API_KEY"
    status_code = 401


class LiveModeLockedError(AuthError):
    """Live credential is valid but the account is not APPROVED"""
    code = "COMPLIANCE_NOT_APPROVED"


class AccountSuspendedError(AuthError):
    """Account suspended by an operator"""
    code = "ACCOUNT_SUSPENDED"


class ValidationError(ChargeError):
    """Malformed or out-of-range payload"""
    code = "VALIDATION_ERROR"
    status_code = 400


class ClassificationError(ChargeError):
    """Phone number too short or not on a supported rail"""
    code = "UNSUPPORTED_PHONE"
    status_code = 400


class LiveSettlementUnavailableError(ChargeError):
    """Live charging is switched off for this deployment"""
    code = "LIVE_SETTLEMENT_UNAVAILABLE"
    status_code = 503


class PersistenceError(ChargeError):
    """Ledger write failed - detail is logged, never returned"""
    code = "PERSISTENCE_ERROR"
    status_code = 500

    def __init__(self, message: str = "Failed to create transaction"):
        super().__init__(message)


class InternalError(ChargeError):
    """Anything unclassified - logged with its trace id, returned generically"""
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)


class TransactionNotFoundError(Exception):
    """Raised when a transaction id does not exist in the ledger"""

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} not found")


class InvalidTransitionError(Exception):
    """Raised when a status transition is not allowed by the ledger state machine"""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Illegal transaction transition: {current} -> {target}")


class ComplianceStateError(Exception):
    """Raised when a KYC record is not in a state that allows the requested action"""

    def __init__(self, message: str):
        self.code = "COMPLIANCE_STATE_CONFLICT"
        self.message = message
        super().__init__(self.message)


class AccountNotFoundError(Exception):
    """Raised when an account id does not exist"""

    def __init__(self, account_id):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")
