# Callback orchestrator - one inbound redirect, start to finish.
# Created: 2026-10-19
#
# validate issuer -> load client -> validate response -> bind session -> resume
#
# Strictly linear: the first failing stage aborts the rest and its exception
# propagates to the caller. Errors outside the CallbackError taxonomy are
# wrapped in a plain CallbackError (500). Nothing is retried.

from __future__ import annotations

import logging
from enum import Enum

from oidc_rp.callback.errors import CallbackError, MissingIssuer
from oidc_rp.callback.models import AuthResponse, CallbackRequest, RPClient
from oidc_rp.callback.registry import ClientRegistry
from oidc_rp.callback.resume import ResponseSink, resume_user_workflow
from oidc_rp.callback.session import ClaimsMapper, bind_session, web_id_from_claims
from oidc_rp.callback.validator import validate_response

logger = logging.getLogger(__name__)


class CallbackState(str, Enum):
    """Progress of one callback."""

    START = "start"
    ISSUER_RESOLVED = "issuer_resolved"
    CLIENT_LOADED = "client_loaded"
    RESPONSE_VALIDATED = "response_validated"
    SESSION_BOUND = "session_bound"
    RESUMED = "resumed"
    FAILED = "failed"


class CallbackHandler:
    """Runs the authorization-code callback for one request.

    Collaborators are injected: the client registry, the claims -> user id
    mapper, and the sink that receives the final response.
    """

    def __init__(
        self,
        request: CallbackRequest,
        registry: ClientRegistry,
        sink: ResponseSink,
        claims_mapper: ClaimsMapper = web_id_from_claims,
    ):
        self.request = request
        self.registry = registry
        self.sink = sink
        self.claims_mapper = claims_mapper
        self.state = CallbackState.START
        self.failure: CallbackError | None = None

    async def handle(self) -> None:
        try:
            self.validate()
            self.state = CallbackState.ISSUER_RESOLVED

            rp_client = await self.load_client()
            self.state = CallbackState.CLIENT_LOADED

            auth_response = await self.validate_response(rp_client)
            self.state = CallbackState.RESPONSE_VALIDATED

            self.init_session_user_auth(auth_response)
            self.state = CallbackState.SESSION_BOUND

            self.resume_user_workflow()
            self.state = CallbackState.RESUMED
        except CallbackError as exc:
            self._fail(exc)
            raise
        except Exception as exc:
            failure = CallbackError(f"Callback failed unexpectedly: {exc}", cause=exc)
            self._fail(failure)
            raise failure from exc

    def _fail(self, exc: CallbackError) -> None:
        self.state = CallbackState.FAILED
        self.failure = exc
        logger.warning(
            "OIDC callback failed for issuer %s: %s", self.request.issuer_id or "-", exc
        )

    def validate(self) -> None:
        if not self.request.issuer_id:
            raise MissingIssuer("Issuer id is missing from request params")

    async def load_client(self) -> RPClient:
        return await self.registry.client_for_issuer(self.request.issuer_id)

    async def validate_response(self, rp_client: RPClient) -> AuthResponse:
        return await validate_response(rp_client, self.request.request_uri, self.request.session)

    def init_session_user_auth(self, auth_response: AuthResponse) -> None:
        bind_session(self.request.session, auth_response, self.claims_mapper)

    def resume_user_workflow(self) -> None:
        resume_user_workflow(self.request.session, self.sink)
