"""
LokSeva - FastAPI Dependencies
===============================
Wires repositories, clients and engines into route handlers via
``Depends``.  Process-wide singletons (Gemini client, vector store) are
cached; repositories are cheap wrappers built per request around the
shared MongoDB client.

Tests replace any of these through ``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from lokseva.config.settings import settings
from lokseva.src.core.audit_engine import HomeSafetyAuditor
from lokseva.src.core.llm_client import GeminiClient, RotatingEmbedder
from lokseva.src.core.rag_engine import RAGManager
from lokseva.src.core.seeder import VectorSeeder
from lokseva.src.database.agency_catalog import FileAgencyCatalog, MongoAgencyCatalog
from lokseva.src.database.mongo_store import ConversationRepository, ProfileRepository, get_mongo_database
from lokseva.src.database.vector_store import AgencyVectorStore


def get_database() -> object:
    return get_mongo_database()


@lru_cache(maxsize=1)
def get_llm() -> GeminiClient:
    return GeminiClient()


@lru_cache(maxsize=1)
def get_vector_store() -> AgencyVectorStore:
    return AgencyVectorStore(embedder=RotatingEmbedder())


def get_profile_repository(database: object = Depends(get_database)) -> ProfileRepository:
    return ProfileRepository(database)


def get_conversation_repository(database: object = Depends(get_database)) -> ConversationRepository:
    return ConversationRepository(database)


def get_agency_catalog(database: object = Depends(get_database)) -> MongoAgencyCatalog | FileAgencyCatalog:
    if settings.AGENCY_SOURCE == "file":
        return FileAgencyCatalog(settings.AGENCY_DATA_FILE)
    return MongoAgencyCatalog(database)


def get_rag_manager(
    vector_store: AgencyVectorStore = Depends(get_vector_store),
    llm: GeminiClient = Depends(get_llm),
    profiles: ProfileRepository = Depends(get_profile_repository),
    conversations: ConversationRepository = Depends(get_conversation_repository),
) -> RAGManager:
    return RAGManager(vector_store, llm, profiles, conversations)


def get_auditor(llm: GeminiClient = Depends(get_llm), profiles: ProfileRepository = Depends(get_profile_repository)) -> HomeSafetyAuditor:
    return HomeSafetyAuditor(llm, profiles)


def get_seeder(catalog: MongoAgencyCatalog | FileAgencyCatalog = Depends(get_agency_catalog), vector_store: AgencyVectorStore = Depends(get_vector_store)) -> VectorSeeder:
    return VectorSeeder(catalog, vector_store)
