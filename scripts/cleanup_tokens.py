#!/usr/bin/env python3
"""
Public Access Token Cleanup Script

Removes public access tokens that are both expired and already used.
Expired tokens that were never used are left in place.

Usage:
    # Show how many tokens are eligible:
    python scripts/cleanup_tokens.py --stats

    # Dry run (same count, nothing deleted):
    python scripts/cleanup_tokens.py --dry-run

    # Actual cleanup:
    python scripts/cleanup_tokens.py --run

Cron Entry (when the in-process scheduler is disabled, hourly):
    0 * * * * cd /app && python scripts/cleanup_tokens.py --run >> /var/log/token-cleanup.log 2>&1

Environment Variables:
    DATABASE_URL: PostgreSQL connection string (required)
    TOKEN_STORE: Must be "database" for this script to be useful
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone

from storefront.core.config import settings
from storefront.integrations.adapters.factory import get_token_store
from storefront.integrations.interfaces.base import TokenStoreError
from storefront.services.public_access_tokens import PublicAccessTokenService

# Configure logging for cron output
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("token_cleanup.cron")


def _service() -> PublicAccessTokenService:
    return PublicAccessTokenService(get_token_store())


async def show_stats(dry_run: bool = False) -> int:
    """Show cleanup candidates without making changes."""
    logger.info("Counting expired, used tokens...")
    try:
        eligible = await _service().count_cleanup_candidates()
    except TokenStoreError as e:
        logger.error(f"Token store unavailable: {e}")
        return 1

    print("\n" + "=" * 60)
    print("PUBLIC TOKEN CLEANUP " + ("DRY RUN" if dry_run else "STATISTICS"))
    print("=" * 60)
    print(f"Report generated: {datetime.now(timezone.utc).isoformat()}")
    print(f"Token store: {settings.TOKEN_STORE}")
    print(f"Tokens {'that would be deleted' if dry_run else 'eligible for cleanup'}: {eligible:,}")
    print("=" * 60)
    return 0


async def run_cleanup() -> int:
    """Delete expired, used tokens."""
    logger.info("Starting public token cleanup...")
    service = _service()

    # cleanup_expired_tokens reports store failures as 0, so probe first
    try:
        await service.count_cleanup_candidates()
    except TokenStoreError as e:
        logger.error(f"Token store unavailable: {e}")
        return 1

    deleted = await service.cleanup_expired_tokens()

    print("\n" + "=" * 60)
    print("PUBLIC TOKEN CLEANUP RESULTS")
    print("=" * 60)
    print(f"Completed: {datetime.now(timezone.utc).isoformat()}")
    print(f"Deleted: {deleted:,} tokens")
    print("=" * 60)

    logger.info("Token cleanup completed successfully")
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Delete public access tokens that are expired and already used.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument(
        "--run",
        action="store_true",
        help="Run actual cleanup (deletes tokens)",
    )
    group.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be deleted without making changes",
    )
    group.add_argument(
        "--stats",
        action="store_true",
        help="Show cleanup statistics only",
    )

    args = parser.parse_args()

    if settings.TOKEN_STORE != "database":
        logger.warning("TOKEN_STORE is not 'database'; the in-memory store starts empty")

    if args.run:
        exit_code = asyncio.run(run_cleanup())
    else:
        exit_code = asyncio.run(show_stats(dry_run=args.dry_run))

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
