#!/usr/bin/env python3
"""
Command-line interface for the art marketplace backend.

Usage:
    uv run python cli.py [command] [options]

Commands:
    serve           Start the API server
    cleanup-tokens  Run the push-token cleanup sweep once
    token-status    Show a user's push-token lease
    promote         Announce an artwork or art material to all token holders
    test            Run the test suite

Examples:
    uv run python cli.py serve --reload
    uv run python cli.py cleanup-tokens
    uv run python cli.py promote artwork art-001
"""

import argparse
import json
import logging
import subprocess
import sys

from shared.config import get_settings
from shared.data_store import get_data_store
from shared.errors import MarketplaceError
from shared.models import ProductType
from shared.push_gateway import create_push_gateway


def configure_logging() -> None:
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
        datefmt="%H:%M:%S",
    )


def build_gateway():
    settings = get_settings()
    return create_push_gateway(settings.push_gateway, settings.expo_access_token)


def run_cleanup() -> None:
    """Run one cleanup sweep against the configured store and gateway."""
    from workflows.services.push_tokens import PushTokenService

    service = PushTokenService(data_store=get_data_store(), gateway=build_gateway())
    report = service.cleanup_tokens()
    print(json.dumps(report.to_dict(), indent=2))


def run_token_status(user_id: str) -> None:
    from workflows.services.push_tokens import PushTokenService

    service = PushTokenService(data_store=get_data_store(), gateway=build_gateway())
    print(json.dumps(service.token_status(user_id), indent=2, default=str))


def run_promote(product_type: str, item_id: str) -> None:
    from workflows.notification_dispatcher import NotificationDispatcher

    dispatcher = NotificationDispatcher(data_store=get_data_store(), gateway=build_gateway())
    result = dispatcher.promote(ProductType(product_type), item_id)
    print(f"Notification {result.notification.id}: {result.notification.title}")
    print(f"Recipients: {result.recipient_count}, delivered: {result.delivered}, failed: {result.failed}")
    for error in result.errors:
        print(f"  {error}")


def run_tests(args: list[str]) -> None:
    """Run the test suite."""
    cmd = ["uv", "run", "pytest"] + args
    subprocess.run(cmd)


def run_server(host: str, port: int, reload: bool) -> None:
    """Start the API server."""
    cmd = ["uv", "run", "uvicorn", "api.main:app", f"--host={host}", f"--port={port}"]
    if reload:
        cmd.append("--reload")

    print(f"Starting server at http://{host}:{port}")
    print(f"API docs available at http://{host}:{port}/docs")
    subprocess.run(cmd)


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Art Marketplace Backend CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s serve --reload
  %(prog)s cleanup-tokens
  %(prog)s token-status user-001
  %(prog)s promote artmat mat-002
  %(prog)s test -v
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    # Token commands
    subparsers.add_parser("cleanup-tokens", help="Run the push-token cleanup sweep")
    status_parser = subparsers.add_parser("token-status", help="Show a user's push-token lease")
    status_parser.add_argument("user_id", help="User id")

    # Promote command
    promote_parser = subparsers.add_parser("promote", help="Announce a catalog item")
    promote_parser.add_argument(
        "product_type",
        choices=[p.value for p in ProductType],
        help="Which catalog the item belongs to",
    )
    promote_parser.add_argument("item_id", help="Catalog item id")

    # Test command
    test_parser = subparsers.add_parser("test", help="Run the test suite")
    test_parser.add_argument(
        "pytest_args",
        nargs="*",
        default=[],
        help="Arguments to pass to pytest",
    )

    args = parser.parse_args()

    try:
        if args.command == "serve":
            run_server(args.host, args.port, args.reload)
        elif args.command == "cleanup-tokens":
            configure_logging()
            run_cleanup()
        elif args.command == "token-status":
            run_token_status(args.user_id)
        elif args.command == "promote":
            configure_logging()
            run_promote(args.product_type, args.item_id)
        elif args.command == "test":
            run_tests(args.pytest_args)
        else:
            parser.print_help()
    except MarketplaceError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
