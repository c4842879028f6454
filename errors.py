"""
Typed outcomes raised by the ledger core and the store layer.

Each error carries an HTTP status and a machine-readable code so the web
layer can translate it in one place instead of matching on messages.
"""


class LedgerError(Exception):
    status_code = 500
    code = "LedgerError"

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.code)
        self.detail = detail or self.code


class BadRequest(LedgerError):
    status_code = 400
    code = "BadRequest"


class Unauthorized(LedgerError):
    status_code = 401
    code = "Unauthorized"


class Forbidden(LedgerError):
    status_code = 403
    code = "Forbidden"


class NotFound(LedgerError):
    status_code = 404
    code = "NotFound"


class Conflict(LedgerError):
    status_code = 409
    code = "Conflict"


class InvariantViolation(LedgerError):
    """Data that boundary validation should have excluded reached the core."""

    status_code = 500
    code = "InvariantViolation"
