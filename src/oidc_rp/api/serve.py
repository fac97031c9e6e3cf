"""Relying party HTTP server.

``create_app()`` wires settings, the client registry, the session store and
the claims mapper onto a FastAPI app and mounts the callback route at
``settings.callback_prefix``. ``run_api_server()`` runs it under uvicorn.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import FastAPI

from oidc_rp.api.callback import router as callback_router
from oidc_rp.api.errors import add_exception_handlers
from oidc_rp.api.sessions import SessionMiddleware
from oidc_rp.callback.registry import ClientRegistry, ClientStore, RegisteredClient
from oidc_rp.callback.session import ClaimsMapper, SessionStore, web_id_from_claims
from oidc_rp.callback.validator import OIDCClient
from oidc_rp.config import Settings, get_settings

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    registry: ClientRegistry | None = None,
    claims_mapper: ClaimsMapper | None = None,
    session_store: SessionStore | None = None,
) -> FastAPI:
    """Build the FastAPI application."""
    if settings is None:
        settings = get_settings()

    if registry is None:

        def _client_factory(registration: RegisteredClient) -> OIDCClient:
            return OIDCClient(registration, timeout=settings.http_timeout_seconds)

        registry = ClientStore(settings.resolved_clients_path(), client_factory=_client_factory)

    if session_store is None:
        session_store = SessionStore(
            ttl=timedelta(seconds=settings.session_ttl_seconds),
            max_sessions=settings.session_max_count,
        )
    if claims_mapper is None:
        claims_mapper = web_id_from_claims

    app = FastAPI(
        title="OIDC Relying Party",
        description="Authorization-code callback for dynamically resolved issuers.",
        version="1.0.0",
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.claims_mapper = claims_mapper
    app.state.session_store = session_store

    app.add_middleware(
        SessionMiddleware,
        store=session_store,
        cookie_name=settings.session_cookie_name,
        secure=settings.session_cookie_secure,
        max_age=settings.session_ttl_seconds,
    )
    add_exception_handlers(app)
    app.include_router(callback_router, prefix=settings.callback_prefix)

    logger.debug("Callback route mounted at %s/{issuer_id}", settings.callback_prefix)
    return app


def run_api_server(host: str = "127.0.0.1", port: int = 8443, dev: bool = False) -> None:
    """Start the relying party under uvicorn."""
    import uvicorn

    settings = get_settings()
    logger.info(
        "Serving OIDC callback at %s%s/{issuer_id}", settings.server_uri, settings.callback_prefix
    )

    if dev:
        uvicorn.run(
            "oidc_rp.api.serve:create_app",
            factory=True,
            host=host,
            port=port,
            reload=True,
            log_level="debug",
        )
    else:
        uvicorn.run(create_app(settings), host=host, port=port)
