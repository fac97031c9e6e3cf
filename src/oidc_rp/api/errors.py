# Error boundary: callback failures -> JSON error responses.
# Created: 2026-10-19

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from oidc_rp.callback.errors import CallbackError

logger = logging.getLogger(__name__)


async def callback_error_handler(request: Request, exc: CallbackError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Callback failed: %s %s - %s",
            request.method,
            request.url.path,
            exc,
            exc_info=exc.cause,
        )
    else:
        logger.info("Callback rejected: %s %s - %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "error": exc.error_code},
    )


def add_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CallbackError, callback_error_handler)
