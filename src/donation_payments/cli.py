#!/usr/bin/env python3
"""Command-line tools for operating the donation payments service.

Usage:
    donation-payments init-db
    donation-payments purge-ledger
    python -m donation_payments.cli purge-ledger --database-url sqlite+aiosqlite:///./donations.db
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from .config import configure_logging
from .database import (
    ProcessedEventRepository,
    create_async_engine,
    create_tables,
    get_db_context,
)

logger = logging.getLogger(__name__)


async def init_db_async(database_url: Optional[str] = None) -> int:
    engine = create_async_engine(database_url=database_url)
    try:
        await create_tables(engine)
        logger.info("Database tables created")
    finally:
        await engine.dispose()
    return 0


async def purge_ledger_async(database_url: Optional[str] = None) -> int:
    """Delete dedup ledger entries past their retention window.

    Args:
        database_url: Database URL, defaults to DATABASE_URL.

    Returns:
        Exit code.
    """
    engine = create_async_engine(database_url=database_url)
    try:
        await create_tables(engine)
        async with get_db_context(engine) as session:
            deleted = await ProcessedEventRepository(session).delete_expired()
        logger.info(f"Purged {deleted} expired ledger entries")
    finally:
        await engine.dispose()
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="donation-payments",
        description="Operational tools for the donation payments service.",
    )
    parser.add_argument(
        "--database-url",
        help="Database URL (default: DATABASE_URL or local SQLite)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    subparsers.add_parser("init-db", help="Create database tables")
    subparsers.add_parser("purge-ledger", help="Delete expired dedup ledger entries")

    return parser


COMMANDS = {
    "init-db": init_db_async,
    "purge-ledger": purge_ledger_async,
}


def main(args: Optional[list] = None) -> int:
    """Main entry point for the CLI.

    Args:
        args: Optional list of command-line arguments (for testing).

    Returns:
        Exit code.
    """
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    configure_logging()
    return asyncio.run(COMMANDS[parsed_args.command](parsed_args.database_url))


if __name__ == "__main__":
    sys.exit(main())
