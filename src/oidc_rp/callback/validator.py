# Token exchange + ID token validation for one registered issuer.
# Created: 2026-10-19
#
# OIDCClient redeems the authorization code at the issuer's token endpoint and
# verifies the returned ID token against the issuer's JWKS. Any failure is a
# ResponseValidationFailed; nothing is retried (codes are single-use).

from __future__ import annotations

import logging
import secrets
from collections import OrderedDict
from typing import Any
from urllib.parse import parse_qsl, urlsplit

import httpx
import jwt

from oidc_rp.callback.errors import ResponseValidationFailed
from oidc_rp.callback.models import AuthResponse, DecodedToken, RPClient, Session
from oidc_rp.callback.registry import RegisteredClient

logger = logging.getLogger(__name__)

# Bound on remembered authorization codes per client
MAX_REDEEMED_CODES = 1024

# Clock skew tolerated on exp/iat/nbf
LEEWAY_SECONDS = 60


async def validate_response(
    rp_client: RPClient, request_uri: str, session: Session
) -> AuthResponse:
    """Run *rp_client*'s exchange + validation for this redirect.

    Whatever the client raises is reported as ResponseValidationFailed so the
    orchestrator sees a single failure class for this stage.
    """
    try:
        return await rp_client.validate_response(request_uri, session)
    except ResponseValidationFailed:
        raise
    except Exception as exc:
        raise ResponseValidationFailed(
            f"Response validation failed for {rp_client.issuer}: {exc}", cause=exc
        ) from exc


class OIDCClient:
    """RP client for one issuer (authorization code flow, confidential client).

    Args:
        registration: Credentials and endpoints negotiated with the issuer.
        timeout: Seconds allowed for each HTTP call to the issuer.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        registration: RegisteredClient,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.registration = registration
        self.timeout = timeout
        self._transport = transport
        self._jwks: jwt.PyJWKSet | None = None
        self._redeemed: OrderedDict[str, None] = OrderedDict()

    @property
    def issuer(self) -> str:
        return self.registration.issuer

    async def validate_response(self, request_uri: str, session: Session) -> AuthResponse:
        query = dict(parse_qsl(urlsplit(request_uri).query))

        if "error" in query:
            detail = f"{query['error']} {query.get('error_description', '')}".strip()
            raise ResponseValidationFailed(f"Issuer returned error: {detail}")

        code = query.get("code")
        if not code:
            raise ResponseValidationFailed("Authorization code missing from redirect")

        expected_state = session.data.get("state")
        if not expected_state:
            raise ResponseValidationFailed("No pending authorization request for this session")
        if not secrets.compare_digest(
            query.get("state", "").encode(), str(expected_state).encode()
        ):
            raise ResponseValidationFailed("State parameter does not match session")

        if code in self._redeemed:
            logger.warning("Rejected replayed authorization code for %s", self.issuer)
            raise ResponseValidationFailed("Authorization code already redeemed")
        self._remember_code(code)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            tokens = await self._exchange_code(client, code, session)
            decoded = await self._verify_id_token(client, tokens.get("id_token"), session)

        logger.info("Validated authorization response from %s", self.issuer)
        return AuthResponse(params=tokens, decoded=decoded)

    def _remember_code(self, code: str) -> None:
        self._redeemed[code] = None
        while len(self._redeemed) > MAX_REDEEMED_CODES:
            self._redeemed.popitem(last=False)

    async def _exchange_code(
        self, client: httpx.AsyncClient, code: str, session: Session
    ) -> dict[str, Any]:
        reg = self.registration
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": reg.redirect_uri,
            "client_id": reg.client_id,
            "client_secret": reg.client_secret,
        }
        code_verifier = session.data.get("code_verifier")
        if code_verifier:
            data["code_verifier"] = code_verifier

        try:
            resp = await client.post(reg.token_endpoint, data=data)
            resp.raise_for_status()
            tokens = resp.json()
        except httpx.HTTPStatusError as exc:
            detail = _error_detail(exc.response)
            raise ResponseValidationFailed(
                f"Token endpoint rejected the code: {detail}", cause=exc
            ) from exc
        except httpx.HTTPError as exc:
            raise ResponseValidationFailed(
                f"Could not reach token endpoint of {self.issuer}: {exc}",
                cause=exc,
                transport=True,
            ) from exc
        except ValueError as exc:
            raise ResponseValidationFailed(
                "Token endpoint returned invalid JSON", cause=exc
            ) from exc

        if not isinstance(tokens, dict) or "access_token" not in tokens:
            raise ResponseValidationFailed("Token response carries no access_token")
        return tokens

    async def _fetch_jwks(self, client: httpx.AsyncClient) -> jwt.PyJWKSet:
        try:
            resp = await client.get(self.registration.jwks_uri)
            resp.raise_for_status()
            self._jwks = jwt.PyJWKSet.from_dict(resp.json())
        except httpx.HTTPError as exc:
            raise ResponseValidationFailed(
                f"Could not fetch JWKS of {self.issuer}: {exc}", cause=exc, transport=True
            ) from exc
        except (ValueError, jwt.PyJWKSetError) as exc:
            raise ResponseValidationFailed(
                f"Issuer {self.issuer} published an unusable JWKS", cause=exc
            ) from exc
        return self._jwks

    async def _signing_key(self, client: httpx.AsyncClient, kid: str | None) -> jwt.PyJWK:
        cached = self._jwks is not None
        jwks = self._jwks if cached else await self._fetch_jwks(client)
        key = _find_key(jwks, kid)
        if key is None and cached:
            # Issuer may have rotated keys since the last fetch
            key = _find_key(await self._fetch_jwks(client), kid)
        if key is None:
            raise ResponseValidationFailed(f"No signing key {kid!r} in JWKS of {self.issuer}")
        return key

    async def _verify_id_token(
        self, client: httpx.AsyncClient, id_token: str | None, session: Session
    ) -> DecodedToken:
        if not id_token:
            raise ResponseValidationFailed("Token response carries no id_token")

        try:
            header = jwt.get_unverified_header(id_token)
        except jwt.PyJWTError as exc:
            raise ResponseValidationFailed("Malformed id_token", cause=exc) from exc

        key = await self._signing_key(client, header.get("kid"))
        try:
            payload = jwt.decode(
                id_token,
                key=key.key,
                algorithms=[self.registration.id_token_signing_alg],
                audience=self.registration.client_id,
                issuer=self.issuer,
                leeway=LEEWAY_SECONDS,
                options={"require": ["iss", "aud", "exp", "sub"]},
            )
        except jwt.PyJWTError as exc:
            raise ResponseValidationFailed(f"id_token rejected: {exc}", cause=exc) from exc

        # A nonce is checked whenever either side carries one
        expected_nonce = session.data.get("nonce")
        token_nonce = payload.get("nonce")
        if (expected_nonce or token_nonce) and not secrets.compare_digest(
            str(token_nonce or "").encode(), str(expected_nonce or "").encode()
        ):
            raise ResponseValidationFailed("id_token nonce does not match session")

        return DecodedToken(header=header, payload=payload)


def _find_key(jwks: jwt.PyJWKSet, kid: str | None) -> jwt.PyJWK | None:
    if kid is None:
        return jwks.keys[0] if len(jwks.keys) == 1 else None
    for key in jwks.keys:
        if key.key_id == kid:
            return key
    return None


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("error"):
        return f"{body['error']} {body.get('error_description', '')}".strip()
    return f"HTTP {response.status_code}"
