"""
Error kinds raised by the ledger and rendered by the API.

Each error carries a stable ``kind`` and HTTP status. Only ``message`` is
ever sent to the client; ``context`` is for server-side logs.
"""

from typing import Any, Dict


class LedgerError(Exception):
    status_code = 500
    kind = "internal_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_response(self) -> Dict[str, Any]:
        return {"error": {"kind": self.kind, "message": self.message}}


class ValidationError(LedgerError):
    """Missing or malformed input, detected before any mutation."""
    status_code = 400
    kind = "validation_error"


class NotFound(LedgerError):
    status_code = 404
    kind = "not_found"


class ConflictError(LedgerError):
    """Barcode already claimed, or referenced rows do not match what was asked for."""
    status_code = 409
    kind = "conflict"


class RequestTimeout(LedgerError):
    status_code = 504
    kind = "timeout"


class InternalError(LedgerError):
    status_code = 500
    kind = "internal_error"


class AuthenticationError(LedgerError):
    status_code = 401
    kind = "unauthorized"
