"""quire - block-based page editor core.

Serves one owner's pages and blocks as newline-delimited JSON-RPC 2.0 over
stdin/stdout. Logs go to stderr and a rotating file.

Usage:
    python -m quire --owner alice
    python -m quire --owner alice --db ./notes.db

Environment Variables:
    QUIRE_DATA_DIR      Data directory (default: <repo>/.quire-data)
    QUIRE_DB_PATH       Database file (default: $QUIRE_DATA_DIR/quire.db)
    QUIRE_LOG_LEVEL     Logging level (default: INFO)
"""

from __future__ import annotations

import argparse
import logging
from typing import Sequence

from . import __version__
from .logging_setup import configure_logging
from .rpc_handlers import run_stdio_server
from .settings import db_path, settings
from .workspace import Workspace

logger = logging.getLogger(__name__)


def main(argv: Sequence[str] | None = None) -> None:
    """Main entry point for the stdio server."""
    parser = argparse.ArgumentParser(
        prog="quire",
        description="Block-based page editor over JSON-RPC (stdio)",
        epilog="""
Examples:
  quire --owner alice              Serve alice's pages from the default db
  quire --owner alice --db x.db    Use a specific database file
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--owner",
        required=True,
        help="Owner id every operation runs as",
    )
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite database path (default: QUIRE_DB_PATH or data dir)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=settings.log_level.upper(),
        help=f"Logging level (default: {settings.log_level})",
    )
    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    args = parser.parse_args(argv)

    configure_logging(level=args.log_level)

    path = args.db or db_path()
    workspace = Workspace.open(path, owner_id=args.owner)
    logger.info("Serving %d pages for %s from %s", len(workspace.pages), args.owner, path)
    try:
        run_stdio_server(workspace)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        workspace.close()


if __name__ == "__main__":
    main()
