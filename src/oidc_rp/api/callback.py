# Callback router - issuers redirect here with the authorization code.
# Created: 2026-10-19

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from oidc_rp.api.deps import get_app_settings, get_claims_mapper, get_registry, get_session
from oidc_rp.callback.handler import CallbackHandler
from oidc_rp.callback.models import CallbackRequest, Session
from oidc_rp.callback.registry import ClientRegistry
from oidc_rp.callback.resume import StarletteResponseSink
from oidc_rp.callback.session import ClaimsMapper
from oidc_rp.config import Settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["OIDC"])


@router.get("/{issuer_id:path}")
async def auth_callback(
    request: Request,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
    registry: ClientRegistry = Depends(get_registry),
    claims_mapper: ClaimsMapper = Depends(get_claims_mapper),
) -> Response:
    """Exchange the authorization code and resume the interrupted flow.

    Failures are raised as CallbackError and rendered by the app's exception
    handlers.
    """
    callback = CallbackRequest.from_request(request, session, settings.server_uri)
    sink = StarletteResponseSink()
    handler = CallbackHandler(callback, registry, sink, claims_mapper=claims_mapper)
    await handler.handle()
    return sink.response
