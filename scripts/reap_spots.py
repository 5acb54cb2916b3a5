"""Run spot lifecycle maintenance outside of a request.

Listing spots already reaps expired and hard-flagged rows lazily; this script
does the same sweep on demand and can repair counters from the vote ledger.

Usage:
    uv run python scripts/reap_spots.py --reap               # Purge expired / DELETE spots
    uv run python scripts/reap_spots.py --reap --today 2026-03-01
    uv run python scripts/reap_spots.py --recount            # Reset counters from the ledger
    uv run python scripts/reap_spots.py --stats              # Show trust-state counts
"""

import argparse
import datetime as dt
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from spotmap.config import get_config
from spotmap.database import SessionLocal, init_db
from spotmap.models import Location
from spotmap.spots import SpotStore, utc_today
from spotmap.votes import VoteLedger


def run_reap(today: dt.date) -> None:
    db = SessionLocal()
    try:
        store = SpotStore(db, get_config())
        stats = store.reaper.reap(today)
        print(f"Reaped spots as of {today}:")
        print(f"  Expired:   {stats.expired}")
        print(f"  Moderated: {stats.deleted}")
    finally:
        db.close()


def run_recount() -> None:
    db = SessionLocal()
    try:
        ledger = VoteLedger(db, get_config())
        fixed = 0
        for spot_id, upvotes, downvotes in db.execute(
            select(Location.id, Location.upvotes, Location.downvotes)
        ).all():
            location = ledger.recount(spot_id)
            if (location.upvotes, location.downvotes) != (upvotes, downvotes):
                fixed += 1
                print(f"  {spot_id}: +{upvotes}/-{downvotes} -> +{location.upvotes}/-{location.downvotes}")
        print(f"Recounted spots, {fixed} corrected")
    finally:
        db.close()


def show_stats(today: dt.date) -> None:
    db = SessionLocal()
    try:
        stats = SpotStore(db, get_config()).stats(today)
        print(f"\n=== Spot Statistics ({today}) ===")
        print(f"Visible spots: {stats.visible}")
        print(f"  Normal:      {stats.normal}")
        print(f"  Flagged:     {stats.flagged}")
        print(f"  Suppressed:  {stats.suppressed}")
        print(f"Votes:         {stats.votes}")
        print(f"Comments:      {stats.comments}")
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description="Spot lifecycle maintenance")
    parser.add_argument("--reap", action="store_true", help="Purge expired and hard-flagged spots")
    parser.add_argument("--recount", action="store_true", help="Reset vote counters from the ledger")
    parser.add_argument("--stats", action="store_true", help="Show trust-state counts")
    parser.add_argument("--today", type=dt.date.fromisoformat, help="Override the current day (YYYY-MM-DD)")

    args = parser.parse_args()

    if not any([args.reap, args.recount, args.stats]):
        parser.print_help()
        return

    init_db()
    today = args.today or utc_today()

    if args.reap:
        run_reap(today)
    if args.recount:
        run_recount()
    if args.stats:
        show_stats(today)


if __name__ == "__main__":
    main()
