"""
LokSeva - Centralized Configuration
====================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``MONGO_URI`` and every Gemini key are typed as ``SecretStr``.  The raw
  values are never exposed in repr, logs, or tracebacks.
- ``MONGO_URI`` has **no default value**.  If it is missing at startup,
  Pydantic raises a ``ValidationError`` with a clear error message.
- At least one of ``GEMINI_API_KEY`` / ``GEMINI_API_KEY_1..3`` must be set,
  otherwise the settings object refuses to build.

Key Rotation
------------
``gemini_api_keys`` collects every non-blank Gemini key.  The LLM client
picks one at random per call to spread load across quotas.

Vector Index
------------
``LANCEDB_URI`` is either a local directory or a LanceDB Cloud URI
(``db://<database>``).  Cloud URIs also need ``LANCEDB_API_KEY``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).
    Fields *without* a default are **required** - the app will refuse
    to start until they are provided.

    Attributes
    ----------
    MONGO_URI : SecretStr
        MongoDB connection string.  **Required.**
    MONGO_DB_NAME : str
        Database holding the ``users``, ``agencies`` and ``conversations``
        collections.
    GEMINI_API_KEY, GEMINI_API_KEY_1, GEMINI_API_KEY_2, GEMINI_API_KEY_3 : SecretStr | None
        Google AI Studio keys.  At least one is required.
    LANCEDB_URI : str
        Local directory or ``db://`` URI of the vector index.
    LANCEDB_TABLE_NAME : str
        Name of the agency vector table (the "index name").
    SEARCH_TOP_K : int
        Number of nearest agencies retrieved per chat message.
    HISTORY_WINDOW : int
        Number of most recent messages rendered into the chat prompt.
    TITLE_MAX_CHARS : int
        Maximum length of generated conversation titles.
    ENV : Literal["dev", "prod"]
        Picks the default log level (DEBUG in dev, WARNING in prod).
    LOG_LEVEL : str | None
        Overrides the level derived from ``ENV``.
    AGENCY_SOURCE : Literal["mongo", "file"]
        Where the agency catalog is read from.
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    AGENCY_DATA_FILE: Path = BASE_DIR / "data" / "agencies.json"

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None

    # ── HTTP Server ────────────────────────────────────────────────────
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    CORS_ORIGINS: list[str] = ["*"]

    # ── MongoDB (REQUIRED - no default) ────────────────────────────────
    MONGO_URI: SecretStr
    MONGO_DB_NAME: str = "lokseva"

    # ── Gemini API Keys (at least one REQUIRED) ────────────────────────
    GEMINI_API_KEY: SecretStr | None = None
    GEMINI_API_KEY_1: SecretStr | None = None
    GEMINI_API_KEY_2: SecretStr | None = None
    GEMINI_API_KEY_3: SecretStr | None = None

    # ── Model Configuration ────────────────────────────────────────────
    LLM_MODEL: str = "gemini-2.5-flash"
    VISION_MODEL: str = "gemini-2.5-flash"
    EMBEDDING_MODEL: str = "models/text-embedding-004"
    LLM_TEMPERATURE: float = 0.3

    # ── Vector Index (LanceDB) ─────────────────────────────────────────
    LANCEDB_URI: str = str(BASE_DIR / "data" / "lancedb")
    LANCEDB_API_KEY: SecretStr | None = None
    LANCEDB_REGION: str = "us-east-1"
    LANCEDB_TABLE_NAME: str = "lokseva-index"

    # ── Retrieval & Conversation ───────────────────────────────────────
    SEARCH_TOP_K: int = 5
    HISTORY_WINDOW: int = 30
    TITLE_MAX_CHARS: int = 50
    HISTORY_PREVIEW_CHARS: int = 50

    # ── Agency Catalog ─────────────────────────────────────────────────
    AGENCY_SOURCE: Literal["mongo", "file"] = "mongo"

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("SEARCH_TOP_K")
    @classmethod
    def _top_k_range(cls, v: int) -> int:
        if not 1 <= v <= 20:
            raise ValueError(f"SEARCH_TOP_K must be 1–20, got {v}")
        return v


    @field_validator("HISTORY_WINDOW", "TITLE_MAX_CHARS", "HISTORY_PREVIEW_CHARS")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be ≥ 1, got {v}")
        return v


    @field_validator("LLM_TEMPERATURE")
    @classmethod
    def _temperature_range(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError(f"LLM_TEMPERATURE must be 0.0–2.0, got {v}")
        return v


    @model_validator(mode="after")
    def _require_gemini_key(self) -> "Settings":
        if not self.gemini_api_keys:
            raise ValueError("No Gemini API keys found. Set GEMINI_API_KEY (or GEMINI_API_KEY_1..3).")
        if self.LANCEDB_URI.startswith("db://") and self.LANCEDB_API_KEY is None:
            raise ValueError("LANCEDB_API_KEY is required for a LanceDB Cloud URI.")
        return self

    # ── Derived ────────────────────────────────────────────────────────

    @property
    def gemini_api_keys(self) -> list[str]:
        """All configured, non-blank Gemini keys (raw values)."""
        candidates = (self.GEMINI_API_KEY, self.GEMINI_API_KEY_1, self.GEMINI_API_KEY_2, self.GEMINI_API_KEY_3)
        return [key.get_secret_value() for key in candidates if key is not None and key.get_secret_value().strip()]

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent.parent / ".env", env_file_encoding="utf-8", extra="ignore")


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from lokseva.config.settings import settings
settings = Settings()
