"""Tests for environment-driven settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from character_memory.config import EmbeddingSettings, SearchSettings, Settings, VectorIndexSettings


class TestEmbeddingSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("CHARMEM_EMBEDDING_TIMEOUT_SECONDS", raising=False)
        s = EmbeddingSettings()
        assert s.timeout_seconds == 30.0
        assert s.openai_base_url == "https://api.openai.com/v1"
        assert s.ollama_base_url == "http://localhost:11434"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("CHARMEM_EMBEDDING_TIMEOUT_SECONDS", "5")
        monkeypatch.setenv("CHARMEM_EMBEDDING_OLLAMA_BASE_URL", "http://gpu-box:11434")
        s = EmbeddingSettings()
        assert s.timeout_seconds == 5.0
        assert s.ollama_base_url == "http://gpu-box:11434"

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValidationError):
            EmbeddingSettings(timeout_seconds=0)


class TestVectorIndexSettings:
    def test_env_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CHARMEM_VECTOR_BACKEND", "sqlite")
        monkeypatch.setenv("CHARMEM_VECTOR_SQLITE_PATH", str(tmp_path / "idx.db"))
        s = VectorIndexSettings()
        assert s.backend == "sqlite"
        assert s.sqlite_path == Path(tmp_path / "idx.db")

    def test_rejects_unknown_backend(self):
        with pytest.raises(ValidationError):
            VectorIndexSettings(backend="mongodb")


class TestSearchSettings:
    def test_defaults(self):
        s = SearchSettings()
        assert s.default_limit == 20
        assert s.overfetch_factor == 2
        assert s.duplicate_threshold == 0.85
        assert s.embed_batch_save_every == 10

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("CHARMEM_SEARCH_DEFAULT_LIMIT", "5")
        assert SearchSettings().default_limit == 5

    def test_threshold_bounds(self):
        with pytest.raises(ValidationError):
            SearchSettings(duplicate_threshold=1.5)


def test_aggregate_settings_reads_each_prefix(monkeypatch):
    monkeypatch.setenv("CHARMEM_SEARCH_OVERFETCH_FACTOR", "3")
    monkeypatch.setenv("CHARMEM_VECTOR_BACKEND", "memory")
    s = Settings()
    assert s.search.overfetch_factor == 3
    assert s.vector.backend == "memory"
    assert isinstance(s.embedding, EmbeddingSettings)
