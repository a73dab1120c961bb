"""Seed script for statutory contribution and withholding tax tables.

Run with:
    python scripts/seed_statutory_tables.py

Creates the SSS, PhilHealth, Pag-IBIG, and BIR withholding tax table
versions needed for payroll computation. Existing versions are left alone.
"""

from __future__ import annotations

import asyncio
import logging

from ph_payroll.database import dispose_db, get_session
from ph_payroll.seeds import seed_statutory_tables


async def main():
    """Run seed script."""
    print("Seeding statutory tables...")

    async with get_session() as session:
        created = await seed_statutory_tables(session)
    await dispose_db()

    print(f"\nDone! {created} table version(s) created.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    asyncio.run(main())
