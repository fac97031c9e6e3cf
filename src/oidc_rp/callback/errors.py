# Callback failure taxonomy.
# Created: 2026-10-19
#
# Every stage of the callback pipeline fails by raising one of these. The HTTP
# layer is the only place they are turned into responses (see api/errors.py).

from __future__ import annotations

__all__ = [
    "CallbackError",
    "MissingIssuer",
    "UnknownIssuer",
    "ClientLookupFailed",
    "ResponseValidationFailed",
    "RESUME_FAILED_BODY",
]

# Body sent when the callback completes without a pending workflow to resume.
RESUME_FAILED_BODY = "Resume User Flow (failed)"


class CallbackError(Exception):
    """Base class for terminal callback failures."""

    status_code: int = 500
    error_code: str = "callback_failed"

    def __init__(self, message: str, *, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class MissingIssuer(CallbackError):
    """The redirect path carried no issuer id (malformed or forged URL)."""

    status_code = 400
    error_code = "missing_issuer"


class UnknownIssuer(CallbackError):
    """No client is registered for the claimed issuer."""

    status_code = 400
    error_code = "unknown_issuer"

    def __init__(self, issuer_id: str):
        super().__init__(f"No client registered for issuer {issuer_id}")
        self.issuer_id = issuer_id


class ClientLookupFailed(CallbackError):
    """The client registry itself could not be read."""

    status_code = 503
    error_code = "client_lookup_failed"


class ResponseValidationFailed(CallbackError):
    """Code exchange or token validation failed.

    Always terminal for this attempt: the authorization code is single-use,
    so the user has to restart sign-in.
    """

    status_code = 400
    error_code = "response_validation_failed"

    def __init__(
        self,
        message: str,
        *,
        cause: BaseException | None = None,
        transport: bool = False,
    ):
        super().__init__(message, cause=cause)
        self.transport = transport
        if transport:
            self.status_code = 502
