"""
LokSeva - Vector Index Seeding Script
======================================
CLI entry point that orchestrates:
    1. Load settings (fail-fast on missing ``MONGO_URI`` / Gemini keys).
    2. Initialise ``AgencyVectorStore`` (optionally drop the existing table).
    3. Run the ``VectorSeeder`` over the configured agency catalog.
    4. Print a structured execution summary with timing breakdown.

Flags:
    --drop       Drop the vector table before seeding (e.g. after changing
                 the embedding model, which changes the vector width).
    --drop-only  Drop the table and exit immediately (no seeding).

Usage:
    python -m lokseva.scripts.setup_db
    python -m lokseva.scripts.setup_db --drop
    python -m lokseva.scripts.setup_db --drop-only
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="setup_db", description="LokSeva - embed every agency into the vector index.")
    parser.add_argument("--drop", action="store_true", default=False, help="Drop the vector table before seeding.")
    parser.add_argument("--drop-only", action="store_true", default=False, help="Drop the vector table and exit (no seeding).")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    t_start = time.perf_counter()

    # ── 0. Load settings + .env (timed) ────────────────────────────────
    t_settings = time.perf_counter()
    try:
        from lokseva.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error - check your .env file:\n")
        print(f"  {exc}")
        print()
        sys.exit(1)
    settings_ms = (time.perf_counter() - t_settings) * 1000

    from lokseva.src.utils.logger import get_logger, quiet_third_party
    logger = get_logger(__name__)
    quiet_third_party()
    logger.info("Settings loaded in %.1fms", settings_ms)

    _print_header(settings)

    # ── 1. Vector store (timed) ────────────────────────────────────────
    from lokseva.src.core.llm_client import RotatingEmbedder
    from lokseva.src.database.vector_store import AgencyVectorStore

    t_lancedb = time.perf_counter()
    store = AgencyVectorStore(embedder=RotatingEmbedder())
    lancedb_ms = (time.perf_counter() - t_lancedb) * 1000
    logger.info("LanceDB connection established in %.1fms", lancedb_ms)

    if args.drop or args.drop_only:
        logger.warning("Dropping table '%s' as requested.", settings.LANCEDB_TABLE_NAME)
        store.drop_table()
        if args.drop_only:
            logger.info("--drop-only: Table dropped. Exiting.")
            _print_footer(0, 0, time.perf_counter() - t_start, settings_ms, lancedb_ms)
            return

    # ── 2. Catalog + seeding ───────────────────────────────────────────
    try:
        count = asyncio.run(_seed(settings, store))
    except Exception:
        logger.exception("Seeding aborted.")
        sys.exit(1)

    _print_footer(count, store.count(), time.perf_counter() - t_start, settings_ms, lancedb_ms)


async def _seed(settings: object, store: object) -> int:
    """Build the configured catalog inside the running loop and seed from it."""
    from lokseva.src.core.seeder import VectorSeeder
    from lokseva.src.database.agency_catalog import FileAgencyCatalog, MongoAgencyCatalog
    from lokseva.src.database.mongo_store import close_mongo_client, get_mongo_database

    if settings.AGENCY_SOURCE == "file":  # type: ignore[attr-defined]
        catalog = FileAgencyCatalog(settings.AGENCY_DATA_FILE)  # type: ignore[attr-defined]
    else:
        catalog = MongoAgencyCatalog(get_mongo_database())

    try:
        return await VectorSeeder(catalog, store).run()  # type: ignore[arg-type]
    finally:
        close_mongo_client()


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: object) -> None:
    mongo_uri_val = settings.MONGO_URI.get_secret_value()  # type: ignore[attr-defined]
    mongo_masked = mongo_uri_val.split("@")[-1] if "@" in mongo_uri_val else mongo_uri_val

    print()
    print("=" * 60)
    print("  LOKSEVA - Vector Index Seeding")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")                                   # type: ignore[attr-defined]
    print(f"  Embedding    : {settings.EMBEDDING_MODEL}")                       # type: ignore[attr-defined]
    print(f"  LanceDB      : {settings.LANCEDB_URI} (table: {settings.LANCEDB_TABLE_NAME})")  # type: ignore[attr-defined]
    print(f"  MongoDB      : {mongo_masked} (db: {settings.MONGO_DB_NAME})")    # type: ignore[attr-defined]
    print(f"  Catalog      : {settings.AGENCY_SOURCE}")                         # type: ignore[attr-defined]
    print(f"  Gemini keys  : {len(settings.gemini_api_keys)}")                  # type: ignore[attr-defined]
    print("=" * 60)
    print()


def _print_footer(embedded: int, rows: int, elapsed: float, settings_ms: float, lancedb_ms: float) -> None:
    print()
    print("=" * 60)
    print("  EXECUTION SUMMARY")
    print("-" * 60)
    print(f"  Agencies embedded    : {embedded}")
    print(f"  Rows in vector table : {rows}")
    print("-" * 60)
    print(f"  Settings + .env load : {settings_ms:>8.1f}ms")
    print(f"  LanceDB connection   : {lancedb_ms:>8.1f}ms")
    print(f"  Total elapsed        : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


if __name__ == "__main__":
    main()
