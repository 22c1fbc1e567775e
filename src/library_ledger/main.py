"""Library service entry point."""

from __future__ import annotations

import argparse
import os
import secrets
import sys

import uvicorn

from library_ledger.service.logging import configure_logging


def main() -> int:
    """Main entry point for the library service."""
    parser = argparse.ArgumentParser(
        prog="library-ledger",
        description="Library management REST API - books, users and loan history",
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host to bind to (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("LIBRARY_PORT", "8080")),
        help="Port to listen on (default: 8080)",
    )
    parser.add_argument(
        "--storage-dir",
        default=None,
        help="Directory for books.json, users.json and purchases.json (default: storage)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error", "critical"],
        help="Log level (default: info)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Force JSON log output (default: auto-detect)",
    )

    args = parser.parse_args()

    configure_logging(
        level=args.log_level.upper(),
        json_output=args.json_logs if args.json_logs else None,
    )

    if "LIBRARY_API_KEY" not in os.environ:
        # development only
        os.environ["LIBRARY_API_KEY"] = secrets.token_urlsafe(24)
        print(
            "Warning: Using auto-generated API key "
            f"{os.environ['LIBRARY_API_KEY']}. Set LIBRARY_API_KEY for production."
        )

    os.environ["LIBRARY_PORT"] = str(args.port)
    if args.storage_dir:
        os.environ["LIBRARY_STORAGE_DIR"] = args.storage_dir

    try:
        uvicorn.run(
            "library_ledger.service.app:create_app_from_env",
            host=args.host,
            port=args.port,
            reload=args.reload,
            log_level=args.log_level,
            factory=True,
        )
        return 0
    except KeyboardInterrupt:
        print("\nShutting down...")
        return 0


if __name__ == "__main__":
    sys.exit(main())
