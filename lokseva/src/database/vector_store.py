"""
LokSeva - AgencyVectorStore
============================
OOP wrapper around LanceDB providing a clean interface for:
  • Lazy table creation with a strict PyArrow schema
  • Idempotent agency upserts (merge-insert keyed on ``id``), optionally
    pruning rows that are no longer in the catalog
  • Top-K nearest-agency search for a natural-language query

Design decisions:
  • **Singleton DB connection** - ``_get_connection()`` caches the
    ``lancedb.DBConnection`` per URI.
  • **Dependency Injection** - the embedder is injected, never
    hard-coded, so tests run against a deterministic fake.
  • **Schema from data** - the vector width depends on the embedding
    model, so the table is created on the first upsert with a
    fixed-size vector column of that width.
  • **Local or hosted** - a ``db://`` URI connects to LanceDB Cloud
    with ``LANCEDB_API_KEY``; anything else is a local directory.

Usage:
    from lokseva.src.core.llm_client import RotatingEmbedder
    from lokseva.src.database.vector_store import AgencyVectorStore

    store = AgencyVectorStore(RotatingEmbedder())
    store.upsert(ids=[...], texts=[...], metadatas=[...])
    matches = store.search("physiotherapy at home in Pune", limit=5)
"""

from __future__ import annotations

import threading

import lancedb
import pyarrow as pa

from lokseva.config.settings import settings
from lokseva.src.core.llm_client import Embedder
from lokseva.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type Aliases ──────────────────────────────────────────────────────
AgencyMetadata = dict[str, str | float | None]
SearchResult = dict[str, str | float | None]

# ── Constants ──────────────────────────────────────────────────────────
_EMBED_BATCH_SIZE = 64
_DB_LOCK = threading.Lock()
_db_connection_cache: dict[str, lancedb.DBConnection] = {}


def build_schema(dimension: int) -> pa.Schema:
    """Arrow schema of the agency table for vectors of *dimension* floats."""
    return pa.schema([
        pa.field("id", pa.utf8()),
        pa.field("vector", pa.list_(pa.float32(), dimension)),
        pa.field("name", pa.utf8()),
        pa.field("area", pa.utf8()),
        pa.field("services", pa.utf8()),
        pa.field("rating", pa.float64()),
    ])


def _get_connection(uri: str) -> lancedb.DBConnection:
    """
    Return a **singleton** ``lancedb.DBConnection`` for *uri*.

    Thread-safe via ``_DB_LOCK``.
    """
    if uri not in _db_connection_cache:
        with _DB_LOCK:
            if uri not in _db_connection_cache:
                if uri.startswith("db://"):
                    logger.info("Connecting to LanceDB Cloud: %s (%s)", uri, settings.LANCEDB_REGION)
                    api_key = settings.LANCEDB_API_KEY.get_secret_value() if settings.LANCEDB_API_KEY else None
                    _db_connection_cache[uri] = lancedb.connect(uri, api_key=api_key, region=settings.LANCEDB_REGION)
                else:
                    logger.info("Opening local LanceDB: %s", uri)
                    _db_connection_cache[uri] = lancedb.connect(uri)
    return _db_connection_cache[uri]


class AgencyVectorStore:
    """
    Nearest-neighbour index over agency descriptions.

    The table handle is re-resolved on every call, so a long-running API
    process sees tables created, re-seeded or dropped by the CLI.

    Parameters
    ----------
    embedder : Embedder
        Any object exposing ``embed_documents`` and ``embed_query``.
    uri
        Override the database location.  Defaults to ``settings.LANCEDB_URI``.
    table_name
        Override the table name.  Defaults to ``settings.LANCEDB_TABLE_NAME``.
    """

    __slots__ = ("embedder", "_uri", "_table_name", "db", "table")

    def __init__(self, embedder: Embedder, uri: str | None = None, table_name: str | None = None) -> None:
        self.embedder: Embedder = embedder
        self._uri: str = str(uri or settings.LANCEDB_URI)
        self._table_name: str = table_name or settings.LANCEDB_TABLE_NAME
        self.db: lancedb.DBConnection = _get_connection(self._uri)
        self.table: lancedb.table.Table | None = None
        if self._open() is None:
            logger.info("Table '%s' does not exist yet; it will be created on first upsert.", self._table_name)
        else:
            logger.info("Opened existing table '%s' (%d rows).", self._table_name, self.table.count_rows())


    def _table_exists(self) -> bool:
        page_token = None
        while True:
            response = self.db.list_tables(page_token=page_token)
            if self._table_name in response.tables:
                return True
            page_token = response.page_token
            if not page_token:
                return False


    def _open(self) -> lancedb.table.Table | None:
        """Open the latest version of the table, or ``None`` if it does not exist."""
        self.table = self.db.open_table(self._table_name) if self._table_exists() else None
        return self.table


    def upsert(self, ids: list[str], texts: list[str], metadatas: list[AgencyMetadata], prune: bool = False) -> int:
        """
        Embed *texts* and merge-insert them keyed on *ids*.

        Existing rows with the same id are overwritten, so re-running the
        same batch never creates duplicates.  With ``prune=True`` every row
        whose id is not in *ids* is deleted, leaving the table an exact
        mirror of the batch.

        Returns
        -------
        int
            Number of records written.

        Raises
        ------
        ValueError
            If ``ids``, ``texts`` and ``metadatas`` have mismatched lengths.
        """
        if not len(ids) == len(texts) == len(metadatas):
            raise ValueError(f"Length mismatch: {len(ids)} ids, {len(texts)} texts, {len(metadatas)} metadatas.")
        if not ids:
            return 0

        logger.info("Embedding %d agencies in batches of %d …", len(texts), _EMBED_BATCH_SIZE)

        vectors: list[list[float]] = []
        for i in range(0, len(texts), _EMBED_BATCH_SIZE):
            batch = texts[i : i + _EMBED_BATCH_SIZE]
            try:
                vectors.extend(self.embedder.embed_documents(batch))
            except Exception as exc:
                logger.error("Embedding batch %d–%d failed: %s", i, i + len(batch) - 1, exc)
                raise

        schema = build_schema(len(vectors[0]))
        records = [
            {"id": record_id, "vector": vec, "name": meta.get("name"), "area": meta.get("area"), "services": meta.get("services"), "rating": meta.get("rating")}
            for record_id, vec, meta in zip(ids, vectors, metadatas)
        ]
        data = pa.Table.from_pylist(records, schema=schema)

        table = self._open()
        if table is None:
            table = self.table = self.db.create_table(self._table_name, schema=schema)
            logger.info("Created table '%s' (dimension=%d).", self._table_name, len(vectors[0]))

        merge = table.merge_insert("id").when_matched_update_all().when_not_matched_insert_all()
        if prune:
            merge = merge.when_not_matched_by_source_delete()
        merge.execute(data)

        logger.info("Upserted %d agencies (prune=%s). Table '%s' now has %d rows.", len(records), prune, self._table_name, table.count_rows())
        return len(records)


    def search(self, query_text: str, limit: int = 5) -> list[SearchResult]:
        """
        Embed *query_text* and return the *limit* nearest agencies.

        An index that has never been seeded yields an empty list.

        Returns
        -------
        list[SearchResult]
            Metadata dicts (``id``, ``name``, ``area``, ``services``,
            ``rating``) plus a ``_distance`` score.
        """
        table = self._open()
        if table is None:
            logger.warning("Search on unseeded index '%s', returning no matches.", self._table_name)
            return []

        try:
            query_vector = self.embedder.embed_query(query_text)
        except Exception as exc:
            logger.error("Failed to embed query: %s", exc)
            raise

        rows = table.search(query_vector).limit(limit).to_list()
        results: list[SearchResult] = [{key: value for key, value in row.items() if key != "vector"} for row in rows]
        logger.info("Search returned %d results (limit=%d).", len(results), limit)
        return results


    def count(self) -> int:
        """Return the total number of rows in the table."""
        table = self._open()
        if table is None:
            return 0
        return table.count_rows()


    def drop_table(self) -> None:
        """Drop the vector table (used before a full re-seed)."""
        if not self._table_exists():
            logger.warning("Table '%s' does not exist, nothing to drop.", self._table_name)
            return
        self.db.drop_table(self._table_name)
        self.table = None
        logger.info("Dropped table '%s'.", self._table_name)


    def __repr__(self) -> str:
        return f"AgencyVectorStore(uri='{self._uri}', table='{self._table_name}', rows={self.count()})"
