"""
LokSeva - Seeding Jobs
=======================
Two one-shot batch operations:

``VectorSeeder``
    catalog → descriptive sentence per agency → embedding → upsert into
    the vector index.  Runs to completion or aborts on the first error.
    Upserts are keyed on the agency's stable id and rows for agencies no
    longer in the catalog are pruned, so the index mirrors the catalog.

``load_catalog``
    Replace the MongoDB agency collection with the contents of the
    static JSON file.  The file is validated before anything is deleted.

Usage:
    from lokseva.src.core.seeder import VectorSeeder
    seeder = VectorSeeder(catalog, vector_store)
    count  = await seeder.run()
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path

from pydantic import ValidationError

from lokseva.src.api.schemas import Agency
from lokseva.src.database.agency_catalog import AgencyRecord, MongoAgencyCatalog, agency_key, read_agency_file
from lokseva.src.database.vector_store import AgencyMetadata, AgencyVectorStore
from lokseva.src.utils.logger import get_logger
from lokseva.src.utils.text_utils import describe_agency

logger = get_logger(__name__)


def agency_metadata(agency: AgencyRecord) -> AgencyMetadata:
    """Flatten an agency into the metadata stored beside its vector."""
    location = agency.get("location") or {}
    rating = agency.get("rating")
    return {
        "name": agency.get("name"),
        "area": location.get("area") if isinstance(location, dict) else None,
        "services": ", ".join(agency.get("services") or []),
        "rating": float(rating) if rating is not None else None,
    }


class VectorSeeder:
    """
    Re-embeds the whole agency catalog into the vector index.

    Parameters
    ----------
    catalog
        Any catalog exposing ``async list_all()``.
    vector_store
        An ``AgencyVectorStore``.
    """

    __slots__ = ("_catalog", "_store")

    def __init__(self, catalog: object, vector_store: AgencyVectorStore) -> None:
        self._catalog = catalog
        self._store = vector_store


    async def run(self) -> int:
        """Embed and upsert every agency.  Returns the number of agencies embedded."""
        t_start = time.perf_counter()
        agencies: list[AgencyRecord] = await self._catalog.list_all()  # type: ignore[attr-defined]
        logger.info("[SEED] Found %d agencies to process...", len(agencies))

        if not agencies:
            logger.warning("[SEED] Catalog is empty - nothing to embed.")
            return 0

        ids = [agency_key(agency) for agency in agencies]
        texts = [describe_agency(agency) for agency in agencies]
        metadatas = [agency_metadata(agency) for agency in agencies]

        count = await asyncio.to_thread(self._store.upsert, ids, texts, metadatas, prune=True)
        logger.info("[SEED] Embedded %d agencies in %.2fs.", count, time.perf_counter() - t_start)
        return count


async def load_catalog(catalog: MongoAgencyCatalog, path: Path) -> int:
    """
    Replace every stored agency with the records in *path*.

    Raises
    ------
    ValueError
        If the file is empty, malformed, or holds an invalid agency
        (nothing is deleted in that case).
    """
    agencies = read_agency_file(path)
    for position, agency in enumerate(agencies):
        try:
            Agency.model_validate(agency)
        except ValidationError as exc:
            raise ValueError(f"Agency #{position} in {path} is invalid: {exc}") from exc
    logger.info("[CATALOG] Loaded %d agencies from %s.", len(agencies), path)
    return await catalog.replace_all(agencies)
