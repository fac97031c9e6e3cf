# Shared FastAPI dependencies for the API layer.
# Created: 2026-10-19
#
# Collaborators live on app.state (set by serve.create_app) so routes never
# reach for module globals.

from __future__ import annotations

from fastapi import HTTPException, Request

from oidc_rp.callback.models import Session
from oidc_rp.callback.registry import ClientRegistry
from oidc_rp.callback.session import ClaimsMapper
from oidc_rp.config import Settings


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_registry(request: Request) -> ClientRegistry:
    return request.app.state.registry


def get_claims_mapper(request: Request) -> ClaimsMapper:
    return request.app.state.claims_mapper


def get_session(request: Request) -> Session:
    """The session attached by SessionMiddleware."""
    session = getattr(request.state, "session", None)
    if session is None:
        raise HTTPException(status_code=500, detail="Session middleware not installed")
    return session
