# Data model for the OIDC callback.
# Created: 2026-10-19

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol
from urllib.parse import quote, urlsplit, urlunsplit

from oidc_rp.callback.errors import MissingIssuer
from oidc_rp.callback.issuer import ISSUER_PARAM, resolve_issuer

if TYPE_CHECKING:
    from starlette.requests import Request


@dataclass
class Session:
    """Server-side user session.

    Owned by the session store; the callback only mutates fields.
    ``data`` holds values set when sign-in was initiated (state, nonce,
    code_verifier).
    """

    session_id: str
    return_to_url: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    user_id: str | None = None
    identified: bool = False
    data: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class DecodedToken:
    """A verified ID token split into header and claims."""

    header: dict[str, Any]
    payload: dict[str, Any]


@dataclass
class AuthResponse:
    """Result of a validated code exchange."""

    params: dict[str, Any]  # token endpoint response body
    decoded: DecodedToken

    @property
    def claims(self) -> dict[str, Any]:
        return self.decoded.payload


class RPClient(Protocol):
    """A client registered with one issuer."""

    issuer: str

    async def validate_response(self, request_uri: str, session: Session) -> AuthResponse:
        """Exchange the code in *request_uri* and validate the result.

        Raises ResponseValidationFailed on any failure.
        """
        ...


@dataclass(frozen=True)
class CallbackRequest:
    """One inbound redirect from an issuer.

    ``server_uri`` is this RP's public origin; ``request_uri`` is rebuilt on it.
    """

    request_uri: str
    issuer_id: str | None
    server_uri: str
    session: Session

    @classmethod
    def from_request(
        cls, request: Request, session: Session, server_uri: str
    ) -> CallbackRequest:
        """Build from a routed Starlette request.

        The redirect URI is rebuilt from *server_uri* plus the raw path and query,
        so it matches what the issuer redirected to even behind a proxy. A missing
        issuer is left as None and rejected by the handler.
        """
        raw_path = _raw_path(request)
        origin = urlsplit(server_uri)
        request_uri = urlunsplit(
            (origin.scheme, origin.netloc, raw_path, request.url.query, "")
        )
        try:
            issuer_id = resolve_issuer({ISSUER_PARAM: _raw_issuer_param(request, raw_path)})
        except MissingIssuer:
            issuer_id = None
        return cls(
            request_uri=request_uri,
            issuer_id=issuer_id,
            server_uri=server_uri,
            session=session,
        )


def _raw_path(request: Request) -> str:
    raw = request.scope.get("raw_path")
    if not raw:
        return quote(request.scope.get("path", ""), safe="/:@!$&'()*+,;=-._~")
    return raw.decode("latin-1").split("?", 1)[0]


def _raw_issuer_param(request: Request, raw_path: str) -> str:
    """The issuer segment as sent on the wire (still percent-encoded).

    The ASGI server has already decoded ``path_params``; decoding those again
    would corrupt issuer ids holding a literal ``%XX``.
    """
    decoded = request.path_params.get(ISSUER_PARAM) or ""
    if not decoded:
        return ""
    path = request.scope.get("path", "")
    prefix = path[: len(path) - len(decoded)]
    if raw_path.startswith(prefix):
        return raw_path[len(prefix):]
    return quote(decoded, safe="")
