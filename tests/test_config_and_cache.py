"""Tests for configuration loading, the expiring cache and cached search."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from thoughtforge.agents.search_agent import CachedSearch
from thoughtforge.pipelines.step_results import GatheringResult
from thoughtforge.utils.cache import ExpiringCache
from thoughtforge.utils.config import EngineConfig, load_config


CONFIG_PATH = Path(__file__).resolve().parent.parent / "configs" / "engine_config.yaml"


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestLoadConfig:
    """Tests for YAML loading."""

    def test_path_is_required(self):
        with pytest.raises(ValueError):
            load_config(None)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "absent.yaml"))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        with pytest.raises(ValueError):
            load_config(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("llm: [unclosed")

        with pytest.raises(RuntimeError):
            load_config(str(path))

    def test_environment_variables_are_expanded(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TF_TEST_KEY", "secret")
        monkeypatch.delenv("TF_TEST_MISSING", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text("llm:\n  api_key: ${TF_TEST_KEY}\n  model_name: ${TF_TEST_MISSING}\n  base_url: plain\n")

        config = load_config(str(path))

        assert config["llm"] == {"api_key": "secret", "model_name": "", "base_url": "plain"}


class TestEngineConfig:
    """Tests for the typed configuration tree."""

    def test_defaults(self):
        config = EngineConfig.from_dict({})

        assert config.beam_search.max_depth == 3
        assert config.aggregation.learning_rate == 0.1
        assert config.research_loop.max_iterations == 3
        assert config.retry.max_retries == 3
        assert not config.logging.debug

    def test_sections_and_unknown_keys(self):
        config = EngineConfig.from_dict({
            "beam_search": {"beam_width": 5, "not_a_field": True},
            "logging": {"level": "debug"},
        })

        assert config.beam_search.beam_width == 5
        assert config.logging.debug

    def test_shipped_config_loads(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "test-key")

        config = EngineConfig.from_file(str(CONFIG_PATH))

        assert config.llm.api_key == "test-key"
        assert config.beam_search.stage == "planning"
        assert config.research_loop.allow_forced_insufficient is False
        assert config.aggregation.cycles == 2


class TestExpiringCache:
    """Tests for ExpiringCache."""

    def test_entries_expire(self):
        clock = FakeClock()
        cache = ExpiringCache(ttl_seconds=10, clock=clock)
        cache.set("k", "v")

        clock.now = 9.9
        assert cache.get("k") == "v"
        clock.now = 10.0
        assert cache.get("k") is None
        assert len(cache) == 0
        assert (cache.hits, cache.misses) == (1, 1)

    def test_contains_respects_expiry(self):
        clock = FakeClock()
        cache = ExpiringCache(ttl_seconds=5, clock=clock)
        cache.set("k", "v", ttl_seconds=1)

        assert "k" in cache
        clock.now = 2
        assert "k" not in cache

    def test_capacity_evicts_soonest_expiring(self):
        clock = FakeClock()
        cache = ExpiringCache(ttl_seconds=100, max_entries=2, clock=clock)
        cache.set("a", 1, ttl_seconds=5)
        cache.set("b", 2)
        cache.set("c", 3)

        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3

    def test_evict_expired(self):
        clock = FakeClock()
        cache = ExpiringCache(ttl_seconds=1, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2, ttl_seconds=10)
        clock.now = 5

        assert cache.evict_expired() == 1
        assert len(cache) == 1


class TestCachedSearch:
    """Tests for search memoisation."""

    @pytest.mark.asyncio
    async def test_normalized_queries_hit_the_cache(self, logger):
        inner = AsyncMock(return_value=GatheringResult(query="kv cache", results=()))
        search = CachedSearch(inner, ExpiringCache(60), logger=logger)

        first = await search("KV  cache")
        second = await search("kv cache ")

        assert first is second
        inner.assert_awaited_once_with("KV  cache")
        assert search.stats() == {"hits": 1, "misses": 1, "entries": 1}

    @pytest.mark.asyncio
    async def test_fallback_results_are_not_cached(self, logger):
        inner = AsyncMock(return_value=GatheringResult.fallback("search down"))
        search = CachedSearch(inner, ExpiringCache(60), logger=logger)

        await search("q")
        await search("q")

        assert inner.await_count == 2

    @pytest.mark.asyncio
    async def test_expired_entries_are_refetched(self, logger):
        clock = FakeClock()
        inner = AsyncMock(return_value=GatheringResult(query="q"))
        search = CachedSearch(inner, ExpiringCache(60, clock=clock), logger=logger)

        await search("q")
        clock.now = 61
        await search("q")

        assert inner.await_count == 2
