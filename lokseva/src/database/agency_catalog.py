"""
LokSeva - Agency Catalog
=========================
Read-mostly list of care-provider records, served from either the
MongoDB ``agencies`` collection or the static ``data/agencies.json``
file (``settings.AGENCY_SOURCE``).

Both sources expose the same two reads:
  • ``list_all()`` - every agency as a JSON-ready dict
  • ``agency_key(agency)`` - the stable identifier mirrored into the vector index

Only the Mongo catalog is writable (``replace_all``), used by the
catalog loader script.
"""

from __future__ import annotations

import json
from pathlib import Path

from lokseva.src.utils.logger import get_logger

logger = get_logger(__name__)

AgencyRecord = dict[str, object]


def agency_key(agency: AgencyRecord) -> str:
    """
    Stable key of an agency: its catalog ``id``, else the Mongo ``_id``, else its name.

    The catalog loader re-inserts every record, so ``_id`` changes on each
    reload while ``id`` does not.
    """
    for field in ("id", "_id", "name"):
        if agency.get(field) not in (None, ""):
            return str(agency[field])
    raise ValueError("Agency has no id, _id or name.")


def read_agency_file(path: Path) -> list[AgencyRecord]:
    """
    Load the agency JSON array from *path*.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file is not a non-empty JSON array of objects.
    """
    raw = Path(path).read_text(encoding="utf-8")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"{path} is not valid JSON: {exc}") from exc

    if not isinstance(data, list) or not data:
        raise ValueError(f"{path} is empty or not a JSON array.")
    if not all(isinstance(item, dict) for item in data):
        raise ValueError(f"{path} must contain only JSON objects.")
    return data


class MongoAgencyCatalog:
    """Agencies stored in MongoDB."""

    __slots__ = ("_collection",)

    def __init__(self, database: object, collection_name: str = "agencies") -> None:
        self._collection = database[collection_name]  # type: ignore[index]


    async def list_all(self) -> list[AgencyRecord]:
        agencies = await self._collection.find({}).to_list(length=None)
        for agency in agencies:
            agency["_id"] = str(agency["_id"])
        logger.debug("[CATALOG] Loaded %d agencies from MongoDB.", len(agencies))
        return agencies


    async def replace_all(self, agencies: list[AgencyRecord]) -> int:
        """Delete every agency, then insert *agencies*.  Returns the inserted count."""
        deleted = await self._collection.delete_many({})
        logger.info("[CATALOG] Cleared %d old agencies.", deleted.deleted_count)
        result = await self._collection.insert_many([dict(agency) for agency in agencies])
        logger.info("[CATALOG] Inserted %d agencies.", len(result.inserted_ids))
        return len(result.inserted_ids)


class FileAgencyCatalog:
    """Agencies read straight from a JSON file on every call."""

    __slots__ = ("_path",)

    def __init__(self, path: Path) -> None:
        self._path = Path(path)


    async def list_all(self) -> list[AgencyRecord]:
        agencies = read_agency_file(self._path)
        logger.debug("[CATALOG] Loaded %d agencies from %s.", len(agencies), self._path.name)
        return agencies
