# OIDC authorization-code callback for a multi-issuer relying party.
# Created: 2026-10-19

from oidc_rp.callback.errors import (
    CallbackError,
    ClientLookupFailed,
    MissingIssuer,
    ResponseValidationFailed,
    UnknownIssuer,
)
from oidc_rp.callback.handler import CallbackHandler, CallbackState
from oidc_rp.callback.models import AuthResponse, CallbackRequest, DecodedToken, Session

__all__ = [
    "AuthResponse",
    "CallbackError",
    "CallbackHandler",
    "CallbackRequest",
    "CallbackState",
    "ClientLookupFailed",
    "DecodedToken",
    "MissingIssuer",
    "ResponseValidationFailed",
    "Session",
    "UnknownIssuer",
]
