# Client registry - issuer id -> client negotiated with that issuer.
# Created: 2026-10-19
#
# Registrations are made out of band (dynamic registration, admin CLI); the
# callback only ever reads them.

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Protocol

from oidc_rp.callback.errors import ClientLookupFailed, UnknownIssuer
from oidc_rp.callback.models import RPClient

logger = logging.getLogger(__name__)


@dataclass
class RegisteredClient:
    """Client credentials and endpoints negotiated with one issuer."""

    issuer: str
    client_id: str
    client_secret: str
    redirect_uri: str
    token_endpoint: str
    jwks_uri: str
    scopes: list[str] = field(default_factory=lambda: ["openid", "profile"])
    id_token_signing_alg: str = "RS256"


class ClientRegistry(Protocol):
    """Looks up the RP client for an issuer."""

    async def client_for_issuer(self, issuer_id: str) -> RPClient:
        """Return the client, or raise UnknownIssuer / ClientLookupFailed."""
        ...


def _default_client_factory(registration: RegisteredClient) -> RPClient:
    from oidc_rp.callback.validator import OIDCClient

    return OIDCClient(registration)


class ClientStore:
    """JSON-file client registry.

    File layout: ``{"<issuer>": {<RegisteredClient fields>}, ...}``, chmod 0600.
    Built clients are cached per issuer so per-client state (JWKS cache,
    redeemed codes) survives across callbacks.
    """

    def __init__(
        self,
        path: Path,
        client_factory: Callable[[RegisteredClient], RPClient] | None = None,
    ):
        self.path = path
        self._client_factory = client_factory or _default_client_factory
        self._registrations: dict[str, RegisteredClient] | None = None
        self._clients: dict[str, RPClient] = {}

    def _load(self) -> dict[str, RegisteredClient]:
        if self._registrations is not None:
            return self._registrations
        if not self.path.exists():
            self._registrations = {}
            return self._registrations
        try:
            data = json.loads(self.path.read_text())
            self._registrations = {
                issuer: RegisteredClient(**entry) for issuer, entry in data.items()
            }
        except (OSError, json.JSONDecodeError, TypeError, AttributeError) as exc:
            raise ClientLookupFailed(
                f"Client registry unreadable: {self.path}", cause=exc
            ) from exc
        logger.debug("Loaded %d client registrations from %s", len(self._registrations), self.path)
        return self._registrations

    def _save(self) -> None:
        registrations = self._load()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {issuer: asdict(reg) for issuer, reg in registrations.items()}
        self.path.write_text(json.dumps(data, indent=2))
        try:
            self.path.chmod(0o600)
        except OSError:
            logger.warning("Could not restrict permissions on %s", self.path)

    async def client_for_issuer(self, issuer_id: str) -> RPClient:
        registration = self._load().get(issuer_id)
        if registration is None:
            raise UnknownIssuer(issuer_id)

        client = self._clients.get(issuer_id)
        if client is None:
            client = self._client_factory(registration)
            self._clients[issuer_id] = client
        return client

    def get(self, issuer_id: str) -> RegisteredClient | None:
        return self._load().get(issuer_id)

    def list_issuers(self) -> list[str]:
        return sorted(self._load())

    def register(self, registration: RegisteredClient) -> None:
        """Add or replace the registration for ``registration.issuer``."""
        self._load()[registration.issuer] = registration
        self._clients.pop(registration.issuer, None)
        self._save()
        logger.info("Registered client %s for %s", registration.client_id, registration.issuer)

    def remove(self, issuer_id: str) -> bool:
        """Remove a registration. Returns True if one existed."""
        registrations = self._load()
        if issuer_id not in registrations:
            return False
        del registrations[issuer_id]
        self._clients.pop(issuer_id, None)
        self._save()
        logger.info("Removed client registration for %s", issuer_id)
        return True
