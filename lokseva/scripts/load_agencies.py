"""
LokSeva - Agency Catalog Loader
================================
Replaces the MongoDB ``agencies`` collection with the contents of a
static JSON file (default ``data/agencies.json``).

The file is validated first; an empty or malformed file aborts with
exit code 1 and leaves the database untouched.  Run the seeding script
afterwards so the vector index reflects the new catalog.

Usage:
    python -m lokseva.scripts.load_agencies
    python -m lokseva.scripts.load_agencies --file path/to/agencies.json
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="load_agencies", description="LokSeva - replace the agency catalog from a JSON file.")
    parser.add_argument("--file", type=Path, default=None, help="JSON array of agencies (defaults to settings.AGENCY_DATA_FILE).")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)

    try:
        from lokseva.config.settings import settings
    except Exception as exc:
        print(f"\n[FATAL] Configuration error - check your .env file:\n\n  {exc}\n")
        sys.exit(1)

    from lokseva.src.utils.logger import get_logger, quiet_third_party

    logger = get_logger(__name__)
    quiet_third_party()
    path = args.file or settings.AGENCY_DATA_FILE

    try:
        inserted = asyncio.run(_load(path))
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Catalog file rejected: %s", exc)
        sys.exit(1)
    except Exception:
        logger.exception("Catalog load failed.")
        sys.exit(1)

    logger.info("Database synced with %s (%d agencies).", path, inserted)


async def _load(path: Path) -> int:
    from lokseva.src.core.seeder import load_catalog
    from lokseva.src.database.agency_catalog import MongoAgencyCatalog
    from lokseva.src.database.mongo_store import close_mongo_client, get_mongo_database

    try:
        return await load_catalog(MongoAgencyCatalog(get_mongo_database()), path)
    finally:
        close_mongo_client()


if __name__ == "__main__":
    main()
