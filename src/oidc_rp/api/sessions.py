# Cookie session middleware.
# Created: 2026-10-19

from __future__ import annotations

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.types import ASGIApp

from oidc_rp.callback.session import SessionStore

logger = logging.getLogger(__name__)


class SessionMiddleware(BaseHTTPMiddleware):
    """Attach the server-side session for the request's cookie.

    Unknown or expired cookies get a fresh session. The session is exposed as
    ``request.state.session``.
    """

    def __init__(
        self,
        app: ASGIApp,
        store: SessionStore,
        cookie_name: str = "oidc_rp_session",
        secure: bool = False,
        max_age: int = 4 * 3600,
    ):
        super().__init__(app)
        self.store = store
        self.cookie_name = cookie_name
        self.secure = secure
        self.max_age = max_age

    async def dispatch(self, request: Request, call_next):
        session = self.store.get_or_create(request.cookies.get(self.cookie_name))
        request.state.session = session

        response = await call_next(request)
        response.set_cookie(
            self.cookie_name,
            session.session_id,
            max_age=self.max_age,
            httponly=True,
            secure=self.secure,
            samesite="lax",
            path="/",
        )
        return response
