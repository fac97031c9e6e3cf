# Resume the flow that sign-in interrupted.
# Created: 2026-10-19

from __future__ import annotations

import logging
from typing import Protocol

from starlette.responses import PlainTextResponse, RedirectResponse, Response

from oidc_rp.callback.errors import RESUME_FAILED_BODY
from oidc_rp.callback.models import Session

logger = logging.getLogger(__name__)


class ResponseSink(Protocol):
    """Where the callback writes its final HTTP response."""

    def redirect(self, status_code: int, url: str) -> None: ...

    def send(self, body: str) -> None: ...


class StarletteResponseSink:
    """Collects the callback's response for a Starlette/FastAPI route."""

    def __init__(self) -> None:
        self.response: Response | None = None

    def redirect(self, status_code: int, url: str) -> None:
        self.response = RedirectResponse(url, status_code=status_code)

    def send(self, body: str) -> None:
        self.response = PlainTextResponse(body)


def resume_user_workflow(session: Session, sink: ResponseSink) -> None:
    """Redirect to the URL stored before sign-in, consuming it.

    Without a stored URL there is nothing to resume; a plain failure body is
    sent instead of raising.
    """
    return_to_url = session.return_to_url
    if return_to_url:
        session.return_to_url = None
        logger.debug("Redirecting to %s", return_to_url)
        sink.redirect(302, return_to_url)
        return

    logger.warning("Callback completed with no return URL in session %s", session.session_id[:8])
    sink.send(RESUME_FAILED_BODY)
