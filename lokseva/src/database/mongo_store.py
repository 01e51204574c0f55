"""
LokSeva - MongoDB Stores
=========================
Async repositories backed by MongoDB via ``motor``.

``ProfileRepository`` (``users``)
    One document per email.  Upserts overwrite only the non-empty
    incoming fields, so a partial profile submission never erases data.

``ConversationRepository`` (``conversations``)
    Chat sessions as an append-only list of ``{sender, text, timestamp}``
    messages, plus a title and creation time.

Collection schemas::

    users:          {email, name, profilePic, phone, age, address, medicalHistory}
    conversations:  {user_email, title, createdAt, messages: [{sender, text, timestamp}]}

The client is a **module-level singleton**; every repository shares it.
Repositories take the database handle as a constructor argument so tests
can pass an in-memory stand-in.
"""

from __future__ import annotations

from datetime import datetime, timezone

import motor.motor_asyncio
from bson import ObjectId
from bson.errors import InvalidId

from lokseva.config.settings import settings
from lokseva.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type aliases ───────────────────────────────────────────────────────
Document = dict[str, object]

_mongo_client: motor.motor_asyncio.AsyncIOMotorClient | None = None


def get_mongo_client() -> motor.motor_asyncio.AsyncIOMotorClient:
    """Return (or create) the module-level async MongoDB client."""
    global _mongo_client
    if _mongo_client is None:
        _mongo_client = motor.motor_asyncio.AsyncIOMotorClient(settings.MONGO_URI.get_secret_value())
        logger.info("MongoDB async client created (singleton).")
    return _mongo_client


def get_mongo_database() -> motor.motor_asyncio.AsyncIOMotorDatabase:
    return get_mongo_client()[settings.MONGO_DB_NAME]


def close_mongo_client() -> None:
    global _mongo_client
    if _mongo_client is not None:
        _mongo_client.close()
        _mongo_client = None
        logger.info("MongoDB client closed.")


def to_object_id(value: str) -> ObjectId | None:
    """Parse a conversation id; malformed ids yield ``None``."""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ProfileRepository:
    """User profiles keyed by email."""

    __slots__ = ("_collection",)

    def __init__(self, database: object, collection_name: str = "users") -> None:
        self._collection = database[collection_name]  # type: ignore[index]


    async def ensure_indexes(self) -> None:
        await self._collection.create_index("email", unique=True)


    async def get(self, email: str) -> Document | None:
        return await self._collection.find_one({"email": email}, {"_id": 0})


    async def upsert(self, email: str, changes: dict[str, object]) -> Document:
        """
        Create the profile or overwrite the given fields.

        *changes* must already exclude empty values; fields absent from it
        keep whatever is stored.
        """
        update: dict[str, object] = {"$setOnInsert": {"email": email}}
        if changes:
            update["$set"] = changes
        await self._collection.update_one({"email": email}, update, upsert=True)
        logger.info("[PROFILE] Upserted '%s' (%d field(s) changed).", email, len(changes))
        return await self.get(email) or {"email": email, **changes}


class ConversationRepository:
    """Chat sessions with an append-only message list."""

    __slots__ = ("_collection",)

    def __init__(self, database: object, collection_name: str = "conversations") -> None:
        self._collection = database[collection_name]  # type: ignore[index]


    async def ensure_indexes(self) -> None:
        await self._collection.create_index([("user_email", 1), ("createdAt", -1)])


    async def get(self, conversation_id: str) -> Document | None:
        """Full conversation, or ``None`` if the id is malformed or unknown."""
        oid = to_object_id(conversation_id)
        if oid is None:
            return None
        return await self._collection.find_one({"_id": oid})


    async def get_recent(self, conversation_id: str, limit: int) -> Document | None:
        """
        A conversation with only its last *limit* messages loaded.

        Returns ``None`` when the conversation does not exist, so callers can
        tell "unknown id" from "empty history".
        """
        oid = to_object_id(conversation_id)
        if oid is None:
            return None
        return await self._collection.find_one({"_id": oid}, {"title": 1, "messages": {"$slice": -limit}})


    async def create(self, user_email: str, title: str, messages: list[tuple[str, str]]) -> str:
        """Insert a new conversation and return its id as a string."""
        now = _now()
        doc = {"user_email": user_email, "title": title, "createdAt": now, "messages": [{"sender": sender, "text": text, "timestamp": now} for sender, text in messages]}
        result = await self._collection.insert_one(doc)
        logger.info("[CONVERSATION] Created %s for '%s'.", result.inserted_id, user_email)
        return str(result.inserted_id)


    async def append(self, conversation_id: str, messages: list[tuple[str, str]], title: str | None = None) -> None:
        """Append messages in order; optionally (re)set the title."""
        now = _now()
        update: dict[str, object] = {"$push": {"messages": {"$each": [{"sender": sender, "text": text, "timestamp": now} for sender, text in messages]}}}
        if title is not None:
            update["$set"] = {"title": title}
        await self._collection.update_one({"_id": ObjectId(conversation_id)}, update)
        logger.info("[CONVERSATION] Appended %d message(s) to %s.", len(messages), conversation_id)


    async def list_for_user(self, user_email: str, page: int, limit: int) -> list[Document]:
        """One page of a user's conversations, newest first."""
        cursor = self._collection.find({"user_email": user_email}, {"title": 1, "createdAt": 1, "messages": 1}).sort("createdAt", -1).skip((page - 1) * limit).limit(limit)
        return await cursor.to_list(length=limit)
