# Issuer id extraction from the callback path.
# Created: 2026-10-19

from __future__ import annotations

from collections.abc import Mapping
from urllib.parse import unquote

from oidc_rp.callback.errors import MissingIssuer

ISSUER_PARAM = "issuer_id"


def resolve_issuer(path_params: Mapping[str, str] | None) -> str:
    """Return the percent-decoded issuer id from the routed path params.

    Raises MissingIssuer if the param is absent or decodes to "".
    """
    raw = (path_params or {}).get(ISSUER_PARAM)
    issuer_id = unquote(raw) if raw else ""
    if not issuer_id:
        raise MissingIssuer("Issuer id is missing from request params")
    return issuer_id
