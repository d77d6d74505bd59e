#!/usr/bin/env python3
"""
Legacy Profile Migration Script

Moves orders embedded in client profiles into canonical order documents and
rewrites each migrated profile without order data.

Idempotent: profiles that were already migrated are skipped, and a profile
with any failed order write is left untouched so the next run retries it.

Usage:
    python migrate_profiles.py
    python migrate_profiles.py --email ana@example.com
    python migrate_profiles.py --env virtual
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.errors import StoreUnavailableError
from repositories.client import ENVIRONMENTS, load_store_settings
from repositories.supabase_store import SupabaseRecordStore
from services.lifecycle_service import LifecycleManager


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Migrate legacy embedded orders into canonical order documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--env",
        "-e",
        choices=sorted(ENVIRONMENTS),
        default="regular",
        help="Store environment (default: regular)"
    )

    parser.add_argument(
        "--email",
        help="Migrate only this profile"
    )

    args = parser.parse_args()

    try:
        settings = load_store_settings(args.env)
        store = SupabaseRecordStore.from_settings(settings)
        manager = LifecycleManager(store, source_env=settings.source_env)

        if args.email:
            result = manager.migrate_profile(args.email)
            if result.skipped:
                print(f"Skipped {result.email}: {result.reason}")
                return 0
            print(f"Migrated {result.migrated_order_count} orders for {result.email}")
            print(f"  Already present: {result.already_present_count}")
            print(f"  Deleted skipped: {result.deleted_skipped_count}")
            for error in result.errors:
                print(f"  ERROR: {error}")
            return 0 if result.success else 1

        print(f"Migrating every legacy profile in '{args.env}'...")
        summary = manager.migrate_all()

        print()
        print("=" * 60)
        print("MIGRATION SUMMARY")
        print("=" * 60)
        print(f"Profiles scanned:  {summary.profiles_scanned}")
        print(f"  Migrated:        {summary.profiles_migrated}")
        print(f"  Skipped:         {summary.profiles_skipped}")
        print(f"  Failed:          {len(summary.failures)}")
        print(f"Orders migrated:   {summary.orders_migrated}")
        print(f"Already present:   {summary.orders_already_present}")
        print(f"Deleted skipped:   {summary.deleted_orders_skipped}")
        for failure in summary.failures:
            print(f"\n  {failure.email}:")
            for error in failure.errors:
                print(f"    {error}")
        print("=" * 60)

        return 1 if summary.failures else 0

    except StoreUnavailableError as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        return 2

    except KeyboardInterrupt:
        print("\n\nMigration interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
