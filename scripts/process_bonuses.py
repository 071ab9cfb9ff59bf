#!/usr/bin/env python3
"""
Process pending bonuses from the command line.

Credits every pending bonus whose availability date has passed. Intended for
an external scheduler (cron, systemd timer, CI job), e.g. once a day:

    0 3 * * * cd /srv/bonus-ledger && python scripts/process_bonuses.py

Exit codes:
- 0: all ready bonuses processed (or none were ready)
- 1: some bonuses failed and remain pending for the next run
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Add parent directory to path so we can import from services
sys.path.insert(0, str(Path(__file__).parent.parent))

from domain.phone import format_phone_number
from repositories.client import close_supabase_client, get_supabase_client
from services.bonus_processing_service import get_processing_stats, process_pending_bonuses
from settings import configure_logging, get_settings


def print_stats() -> None:
    """Print pending bonus statistics without changing anything."""

    stats = get_processing_stats(get_supabase_client())

    print("=" * 50)
    print("PENDING BONUSES")
    print("=" * 50)
    print(f"Pending records:           {stats.total_pending}")
    print(f"Ready for processing:      {stats.ready_for_processing}")
    print(f"Already processed:         {stats.total_processed}")
    print(f"Pending amount:            {stats.total_pending_amount}")
    print(f"Ready amount:              {stats.ready_amount}")
    print("=" * 50)

    for customer in stats.pending_customers:
        name = f" ({customer.full_name})" if customer.full_name else ""
        print(f"{format_phone_number(customer.phone_number)}{name}: {customer.total_bonuses} in {customer.total_purchases} purchase(s)")


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Credit pending bonuses whose availability date has passed",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Only print statistics, do not process anything"
    )

    args = parser.parse_args()
    configure_logging(get_settings().log_level)

    try:
        if args.stats:
            print_stats()
            return 0

        result = process_pending_bonuses(get_supabase_client())
        print(result.message)
        for item in result.processed_bonuses:
            print(f"  {item.phone_number}: {item.bonus_amount} bonuses (sale {item.sale_id})")

        return 1 if result.failed_count else 0

    except KeyboardInterrupt:
        print("\n\nBonus processing interrupted by user")
        return 130

    except Exception as e:
        print(f"\nFATAL ERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1

    finally:
        close_supabase_client()


if __name__ == "__main__":
    sys.exit(main())
