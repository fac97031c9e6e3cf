# oidc-rp: OpenID Connect relying party callback for dynamically resolved issuers.
# Created: 2026-10-19
