"""
Engine error kinds.

Every engine operation either completes as a whole or raises one of these
before anything is written; the API layer maps them to HTTP status codes.
"""


class LedgerError(Exception):
    """Base class for all reconciliation engine errors."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Bad input: non-positive amount, unknown GST rate, future bill date …"""

    status_code = 422


class NotFound(LedgerError):
    """Referenced vendor / transaction / bill does not exist."""

    status_code = 404


class InvalidStateTransition(LedgerError):
    """Action not allowed in the transaction's current lifecycle state."""

    status_code = 409


class AccessDenied(LedgerError):
    """Actor is inactive, outside its district, or not an admin."""

    status_code = 403
