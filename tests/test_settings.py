"""Tests for configuration loading and API-key selection."""

import pytest
from pydantic import ValidationError

from lokseva.config.settings import Settings
from lokseva.src.core.llm_client import pick_api_key

_GEMINI_VARS = ("GEMINI_API_KEY", "GEMINI_API_KEY_1", "GEMINI_API_KEY_2", "GEMINI_API_KEY_3")


@pytest.fixture
def no_gemini_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _GEMINI_VARS:
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    def test_requires_a_gemini_key(self, no_gemini_env) -> None:
        with pytest.raises(ValidationError, match="No Gemini API keys"):
            Settings(_env_file=None, MONGO_URI="mongodb://localhost:27017")

    def test_blank_keys_are_ignored(self, no_gemini_env) -> None:
        settings = Settings(_env_file=None, MONGO_URI="mongodb://localhost:27017", GEMINI_API_KEY="  ", GEMINI_API_KEY_2="key-two")

        assert settings.gemini_api_keys == ["key-two"]

    def test_defaults(self) -> None:
        settings = Settings(_env_file=None, MONGO_URI="mongodb://localhost:27017", GEMINI_API_KEY="k")

        assert settings.SEARCH_TOP_K == 5
        assert settings.HISTORY_WINDOW == 30
        assert settings.TITLE_MAX_CHARS == 50
        assert settings.AGENCY_SOURCE == "mongo"

    @pytest.mark.parametrize("top_k", [0, 21])
    def test_top_k_range(self, top_k: int) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, MONGO_URI="mongodb://localhost:27017", GEMINI_API_KEY="k", SEARCH_TOP_K=top_k)

    def test_cloud_index_needs_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("LANCEDB_API_KEY", raising=False)

        with pytest.raises(ValidationError, match="LANCEDB_API_KEY"):
            Settings(_env_file=None, MONGO_URI="mongodb://localhost:27017", GEMINI_API_KEY="k", LANCEDB_URI="db://lokseva")


class TestPickApiKey:
    def test_picks_from_the_pool(self) -> None:
        keys = ["a", "b", "c"]

        assert {pick_api_key(keys) for _ in range(50)} <= set(keys)

    def test_empty_pool_raises(self) -> None:
        with pytest.raises(RuntimeError):
            pick_api_key([])
