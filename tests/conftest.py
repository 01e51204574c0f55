"""Pytest configuration and shared fixtures."""

import copy
import hashlib
import os
from types import SimpleNamespace

# Settings are built at import time; give them what they require first.
os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")
os.environ.setdefault("GEMINI_API_KEY", "test-key")
os.environ.setdefault("ENV", "dev")

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from lokseva.src.api.dependencies import get_database, get_llm, get_vector_store
from lokseva.src.main import app


# ── MongoDB stand-in ───────────────────────────────────────────────────

def _matches(doc: dict, query: dict) -> bool:
    return all(doc.get(key) == value for key, value in query.items())


def _project(doc: dict, projection: dict | None) -> dict:
    doc = copy.deepcopy(doc)
    if not projection:
        return doc

    slices = {k: v["$slice"] for k, v in projection.items() if isinstance(v, dict) and "$slice" in v}
    included = {k for k, v in projection.items() if not isinstance(v, dict) and v == 1}
    excluded = {k for k, v in projection.items() if not isinstance(v, dict) and v == 0}

    if included:
        keep = (included | set(slices) | {"_id"}) - excluded
        doc = {k: v for k, v in doc.items() if k in keep}
    else:
        doc = {k: v for k, v in doc.items() if k not in excluded}

    for key, n in slices.items():
        if key in doc:
            doc[key] = doc[key][n:] if n < 0 else doc[key][:n]
    return doc


class FakeCursor:
    def __init__(self, docs: list[dict]) -> None:
        self._docs = docs

    def sort(self, key: str, direction: int) -> "FakeCursor":
        self._docs.sort(key=lambda d: d.get(key), reverse=direction < 0)
        return self

    def skip(self, n: int) -> "FakeCursor":
        self._docs = self._docs[n:]
        return self

    def limit(self, n: int) -> "FakeCursor":
        self._docs = self._docs[:n]
        return self

    async def to_list(self, length: int | None = None) -> list[dict]:
        return self._docs if length is None else self._docs[:length]


class FakeCollection:
    """Just enough of motor's collection API for the repositories."""

    def __init__(self) -> None:
        self.docs: list[dict] = []

    async def create_index(self, *args, **kwargs) -> str:
        return "fake_index"

    async def find_one(self, query: dict, projection: dict | None = None) -> dict | None:
        for doc in self.docs:
            if _matches(doc, query):
                return _project(doc, projection)
        return None

    def find(self, query: dict | None = None, projection: dict | None = None) -> FakeCursor:
        return FakeCursor([_project(doc, projection) for doc in self.docs if _matches(doc, query or {})])

    async def insert_one(self, doc: dict) -> SimpleNamespace:
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", ObjectId())
        self.docs.append(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    async def insert_many(self, docs: list[dict]) -> SimpleNamespace:
        ids = [(await self.insert_one(doc)).inserted_id for doc in docs]
        return SimpleNamespace(inserted_ids=ids)

    async def update_one(self, query: dict, update: dict, upsert: bool = False) -> SimpleNamespace:
        target = next((doc for doc in self.docs if _matches(doc, query)), None)
        if target is None:
            if not upsert:
                return SimpleNamespace(matched_count=0, upserted_id=None)
            target = {"_id": ObjectId(), **query, **update.get("$setOnInsert", {})}
            self.docs.append(target)

        target.update(copy.deepcopy(update.get("$set", {})))
        for key, value in update.get("$push", {}).items():
            items = value["$each"] if isinstance(value, dict) and "$each" in value else [value]
            target.setdefault(key, []).extend(copy.deepcopy(items))
        return SimpleNamespace(matched_count=1, upserted_id=target["_id"])

    async def delete_many(self, query: dict) -> SimpleNamespace:
        before = len(self.docs)
        self.docs = [doc for doc in self.docs if not _matches(doc, query)]
        return SimpleNamespace(deleted_count=before - len(self.docs))


class FakeDatabase:
    def __init__(self) -> None:
        self.collections: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection())


# ── Model / index stand-ins ────────────────────────────────────────────

class FakeLLM:
    """Records prompts; answers chat, title and vision calls with canned text."""

    def __init__(self) -> None:
        self.prompts: list[str] = []
        self.image_calls: list[dict] = []
        self.reply = '{"reply": "Here is what I found.", "recommendations": []}'
        self.title = "Home nursing in Pune"
        self.audit_report = '```json\n{"safety_score": 6, "hazards": ["Loose rug"], "recommendations": ["Fix rug edges"]}\n```'
        self.error: Exception | None = None

    async def generate(self, prompt: str) -> str:
        if self.error is not None:
            raise self.error
        self.prompts.append(prompt)
        if prompt.startswith("Generate a title"):
            return self.title
        return self.reply

    async def generate_with_image(self, prompt: str, image: bytes, mime_type: str = "image/jpeg") -> str:
        if self.error is not None:
            raise self.error
        self.image_calls.append({"prompt": prompt, "image": image, "mime_type": mime_type})
        return self.audit_report

    @property
    def chat_prompts(self) -> list[str]:
        return [p for p in self.prompts if not p.startswith("Generate a title")]


class FakeVectorStore:
    def __init__(self) -> None:
        self.matches: list[dict] = []
        self.queries: list[tuple[str, int]] = []

    def search(self, query_text: str, limit: int = 5) -> list[dict]:
        self.queries.append((query_text, limit))
        return self.matches[:limit]


class FakeEmbedder:
    """Deterministic 8-dimensional embeddings derived from a hash of the text."""

    dimension = 8

    def _vector(self, text: str) -> list[float]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [byte / 255 for byte in digest[: self.dimension]]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._vector(text) for text in texts]

    def embed_query(self, text: str) -> list[float]:
        return self._vector(text)


# ── Fixtures ───────────────────────────────────────────────────────────

@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def fake_store() -> FakeVectorStore:
    return FakeVectorStore()


@pytest.fixture
def sample_agencies() -> list[dict]:
    return [
        {"id": "AG001", "name": "Sahara Home Nursing", "location": {"city": "Pune", "area": "Kothrud"}, "services": ["24x7 nursing", "diabetes care"], "rating": 4.7, "contact": "+91-20-4000-1001", "policy": "Verified nurses."},
        {"id": "AG002", "name": "Aadhar Elder Care", "location": {"city": "Pune", "area": "Aundh"}, "services": ["physiotherapy"], "rating": 4.5, "contact": "+91-20-4000-1002", "policy": "Monthly plans."},
        {"id": "AG003", "name": "Sukoon Companions", "location": {"city": "Mumbai", "area": "Andheri West"}, "services": ["dementia care"], "rating": 4.2, "contact": "+91-22-4000-1003", "policy": "4 hour minimum."},
    ]


@pytest.fixture
def test_client(fake_db: FakeDatabase, fake_llm: FakeLLM, fake_store: FakeVectorStore) -> TestClient:
    """FastAPI test client wired to in-memory stand-ins (lifespan is not run)."""
    app.dependency_overrides[get_database] = lambda: fake_db
    app.dependency_overrides[get_llm] = lambda: fake_llm
    app.dependency_overrides[get_vector_store] = lambda: fake_store
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}
