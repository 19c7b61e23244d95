"""Recompute every denormalized counter from its join table.

Run: python scripts/recount_counters.py [--dry-run]
"""
import asyncio
import os
import sys

# Add project root to sys.path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from twilsta.db.session import async_session_maker
from twilsta.services.counter_service import find_drift, reconcile_counters


async def recount(dry_run: bool = False):
    async with async_session_maker() as db:
        if dry_run:
            drift = await find_drift(db)
        else:
            drift = await reconcile_counters(db)
            await db.commit()
    if not any(drift.values()):
        print("All counters are consistent.")
        return
    print("Drifted counters" + (" (not fixed, dry run):" if dry_run else " (fixed):"))
    for label, rows in drift.items():
        if rows:
            print(f"  - {label}: {rows} row(s)")


if __name__ == "__main__":
    asyncio.run(recount(dry_run="--dry-run" in sys.argv[1:]))
