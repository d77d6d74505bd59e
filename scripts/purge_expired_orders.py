#!/usr/bin/env python3
"""
Purge Expired Archived Orders

Deletes archived (soft-deleted) orders whose 30-day retention deadline has
passed. Meant to run on a daily schedule; running it more than once a day is
harmless.

Usage:
    python purge_expired_orders.py
    python purge_expired_orders.py --env virtual
    python purge_expired_orders.py --dry-run
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.errors import StoreUnavailableError
from domain.time import utc_now
from repositories.client import ENVIRONMENTS, load_store_settings
from repositories.supabase_store import SupabaseRecordStore
from services.lifecycle_service import LifecycleManager


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Delete archived orders past their retention deadline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Purge the regular environment
  python purge_expired_orders.py

  # Purge the virtual environment
  python purge_expired_orders.py --env virtual

  # Show what is due without deleting anything
  python purge_expired_orders.py --dry-run
        """
    )

    parser.add_argument(
        "--env",
        "-e",
        choices=sorted(ENVIRONMENTS),
        default="regular",
        help="Store environment (default: regular)"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List archived orders and their remaining days without deleting"
    )

    args = parser.parse_args()

    try:
        settings = load_store_settings(args.env)
        store = SupabaseRecordStore.from_settings(settings)
        manager = LifecycleManager(store, source_env=settings.source_env)
        now = utc_now()

        if args.dry_run:
            listings = manager.list_archived(now)
            due = [item for item in listings if item.remaining_days == 0]
            unreadable = [item for item in listings if item.archived is None]
            print(f"Archived orders: {len(listings)}")
            print(f"  Due for purge:  {len(due)}")
            print(f"  Unreadable:     {len(unreadable)}")
            for listing in due:
                print(f"    {listing.original_order_id}")
            return 0

        result = manager.purge_expired(now)

        print()
        print("=" * 60)
        print("PURGE SUMMARY")
        print("=" * 60)
        print(f"Environment:       {args.env}")
        print(f"Reference time:    {now.isoformat()}")
        print(f"Purged:            {result.purged_count}")
        print(f"Retained:          {result.kept_count}")
        print(f"Unreadable (kept): {len(result.unreadable)}")
        for key in result.unreadable:
            print(f"    {key}")
        print(f"Failed deletes:    {len(result.failures)}")
        for key in result.failures:
            print(f"    {key}")
        print("=" * 60)

        return 1 if result.failures else 0

    except StoreUnavailableError as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        return 2

    except KeyboardInterrupt:
        print("\n\nPurge interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
