"""Management CLI.

Usage:
    python -m palletrack.cli create-tables             # Create missing tables
    python -m palletrack.cli purge <actor>             # Delete all data
    python -m palletrack.cli export-movements [file]   # Movement log as CSV
"""

import asyncio
import sys

from palletrack.config import settings
from palletrack.database import Database
from palletrack.logging_setup import setup_logging
from palletrack.services import admin, movements


async def create_tables():
    database = Database.from_settings(settings)
    try:
        await database.create_all()
    finally:
        await database.dispose()
    print("Tables ready.")


async def purge(actor: str):
    database = Database.from_settings(settings)
    try:
        async with database.unit_of_work() as db:
            result = await admin.purge_all(db, actor)
    finally:
        await database.dispose()
    print(
        f"  Deleted {result.movements} movements, {result.discounts} discounts, "
        f"{result.tasks} tasks, {result.lots} lots"
    )


async def export_movements(path: str | None):
    database = Database.from_settings(settings)
    try:
        async with database.unit_of_work() as db:
            csv_text = movements.export_csv(await movements.query(db))
    finally:
        await database.dispose()

    if path:
        with open(path, "w", encoding="utf-8", newline="") as fh:
            fh.write(csv_text)
        print(f"  Written to {path}")
    else:
        sys.stdout.write(csv_text)


if __name__ == "__main__":
    setup_logging(settings)
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "create-tables":
        asyncio.run(create_tables())
    elif cmd == "purge" and len(sys.argv) > 2:
        asyncio.run(purge(sys.argv[2]))
    elif cmd == "export-movements":
        asyncio.run(export_movements(sys.argv[2] if len(sys.argv) > 2 else None))
    else:
        print("Usage: python -m palletrack.cli [create-tables|purge <actor>|export-movements [file]]")
