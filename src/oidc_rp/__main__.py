"""oidc-rp entry point.

Subcommands:
  serve     Run the relying party (callback route) under uvicorn.
  clients   List, add or remove issuer client registrations.
"""

import argparse
import logging
import sys
from importlib.metadata import version as get_version

from oidc_rp.callback.registry import ClientStore, RegisteredClient
from oidc_rp.config import get_settings
from oidc_rp.logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _clients_command(args: argparse.Namespace) -> int:
    store = ClientStore(get_settings().resolved_clients_path())

    if args.action == "list":
        issuers = store.list_issuers()
        if not issuers:
            print("No clients registered.")
        for issuer in issuers:
            reg = store.get(issuer)
            print(f"{issuer}  client_id={reg.client_id}")
        return 0

    if args.action == "add":
        missing = [
            name
            for name in ("client_id", "client_secret", "redirect_uri", "token_endpoint", "jwks_uri")
            if not getattr(args, name)
        ]
        if missing:
            flags = ", ".join("--" + m.replace("_", "-") for m in missing)
            print(f"Missing required options: {flags}")
            return 2
        store.register(
            RegisteredClient(
                issuer=args.issuer,
                client_id=args.client_id,
                client_secret=args.client_secret,
                redirect_uri=args.redirect_uri,
                token_endpoint=args.token_endpoint,
                jwks_uri=args.jwks_uri,
            )
        )
        print(f"Registered client for {args.issuer}")
        return 0

    if store.remove(args.issuer):
        print(f"Removed client for {args.issuer}")
        return 0
    print(f"No client registered for {args.issuer}")
    return 1


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="oidc-rp",
        description="OpenID Connect relying party callback server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  oidc-rp serve --port 8443
  oidc-rp clients list
  oidc-rp clients add https://idp.example --client-id abc --client-secret s3cret \\
      --redirect-uri https://rp.example/api/oidc/rp/https%3A%2F%2Fidp.example \\
      --token-endpoint https://idp.example/token --jwks-uri https://idp.example/jwks
""",
    )
    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version=f"%(prog)s {get_version('oidc-rp')}",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the callback server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", "-p", type=int, default=8443)
    serve.add_argument("--dev", action="store_true", help="Development mode with auto-reload")

    clients = sub.add_parser("clients", help="Manage issuer client registrations")
    clients.add_argument("action", choices=["list", "add", "remove"])
    clients.add_argument("issuer", nargs="?")
    clients.add_argument("--client-id")
    clients.add_argument("--client-secret")
    clients.add_argument("--redirect-uri")
    clients.add_argument("--token-endpoint")
    clients.add_argument("--jwks-uri")

    args = parser.parse_args()
    setup_logging(level=get_settings().log_level)

    if args.command == "serve":
        from oidc_rp.api.serve import run_api_server

        run_api_server(host=args.host, port=args.port, dev=args.dev)
        return

    if args.action != "list" and not args.issuer:
        parser.error(f"clients {args.action} requires an issuer")
    sys.exit(_clients_command(args))


if __name__ == "__main__":
    main()
