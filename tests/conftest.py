# Shared fixtures: an in-process fake issuer (token endpoint + JWKS).
# Created: 2026-10-19

import json
import time
from urllib.parse import parse_qsl

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm

from oidc_rp.callback.models import Session
from oidc_rp.callback.registry import RegisteredClient
from oidc_rp.callback.validator import OIDCClient

ISSUER = "https://idp.example"
CLIENT_ID = "rp-client"
REDIRECT_URI = "https://rp.example/api/oidc/rp/https%3A%2F%2Fidp.example"


def _rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def _public_jwk(private_key, kid: str) -> dict:
    jwk = json.loads(RSAAlgorithm.to_jwk(private_key.public_key()))
    jwk.update({"kid": kid, "alg": "RS256", "use": "sig"})
    return jwk


@pytest.fixture(scope="session")
def signing_key():
    return _rsa_key()


@pytest.fixture(scope="session")
def other_key():
    return _rsa_key()


@pytest.fixture
def make_id_token(signing_key):
    def _make(key=None, kid: str = "k1", **overrides) -> str:
        now = int(time.time())
        claims = {
            "iss": ISSUER,
            "aud": CLIENT_ID,
            "sub": "https://alice.example/profile#me",
            "iat": now,
            "exp": now + 300,
        }
        claims.update(overrides)
        claims = {k: v for k, v in claims.items() if v is not None}
        return jwt.encode(claims, key or signing_key, algorithm="RS256", headers={"kid": kid})

    return _make


class FakeIssuer:
    """httpx MockTransport handler for the issuer's token and JWKS endpoints."""

    def __init__(self, signing_key, make_id_token):
        self.jwks = {"keys": [_public_jwk(signing_key, "k1")]}
        self.make_id_token = make_id_token
        self.id_token_claims: dict = {"nonce": "n-1"}
        self.token_status = 200
        self.token_body: dict | None = None
        self.fail_transport = False
        self.token_requests: list[dict] = []
        self.jwks_requests = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.fail_transport:
            raise httpx.ConnectError("connection refused", request=request)

        if request.url.path == "/jwks":
            self.jwks_requests += 1
            return httpx.Response(200, json=self.jwks)

        if request.url.path == "/token":
            form = dict(parse_qsl(request.content.decode()))
            self.token_requests.append(form)
            if self.token_status != 200:
                return httpx.Response(self.token_status, json=self.token_body or {})
            body = self.token_body or {
                "access_token": "at-123",
                "refresh_token": "rt-456",
                "token_type": "Bearer",
                "expires_in": 3600,
                "id_token": self.make_id_token(**self.id_token_claims),
            }
            return httpx.Response(200, json=body)

        return httpx.Response(404)


@pytest.fixture
def fake_issuer(signing_key, make_id_token):
    return FakeIssuer(signing_key, make_id_token)


@pytest.fixture
def registration():
    return RegisteredClient(
        issuer=ISSUER,
        client_id=CLIENT_ID,
        client_secret="s3cret",
        redirect_uri=REDIRECT_URI,
        token_endpoint=f"{ISSUER}/token",
        jwks_uri=f"{ISSUER}/jwks",
    )


@pytest.fixture
def oidc_client(registration, fake_issuer):
    return OIDCClient(registration, transport=httpx.MockTransport(fake_issuer))


@pytest.fixture
def session():
    return Session(session_id="sess-0123456789", data={"state": "st-1", "nonce": "n-1"})


@pytest.fixture
def public_jwk():
    return _public_jwk
