"""Tests for LLMInterface retries and concurrency against a fake HTTP session."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from thoughtforge.agents.analysis_agent import AnalysisAgent
from thoughtforge.pipelines.research_loop import IterativeResearchLoop, LoopState
from thoughtforge.pipelines.step_results import GatheringResult
from thoughtforge.utils.config import ResearchLoopConfig, RetryConfig
from thoughtforge.utils.error_handling import NonRetryableError, ResearchLoopError, TransientCollaboratorError
from thoughtforge.utils.llm_interface import LLMInterface


LLM_CONFIG = {
    "api_key": "test-key",
    "model_name": "gpt-4o-mini",
    "base_url": "https://llm.example.org/v1",
}


class FakeResponse:
    def __init__(self, session):
        self.session = session
        self.status = session.status

    async def __aenter__(self):
        self.session.in_flight += 1
        self.session.peak = max(self.session.peak, self.session.in_flight)
        await asyncio.sleep(self.session.latency)
        return self

    async def __aexit__(self, *exc_info):
        self.session.in_flight -= 1
        return False

    async def text(self):
        return "upstream unavailable"


class FakeSession:
    """Stand-in for aiohttp.ClientSession that answers every POST with one status."""

    closed = False

    def __init__(self, status, latency=0.0):
        self.status = status
        self.latency = latency
        self.posts = 0
        self.in_flight = 0
        self.peak = 0

    def post(self, url, json=None):
        self.posts += 1
        return FakeResponse(self)


def llm_with_session(session, logger, sleep, config=None, **retry):
    llm = LLMInterface({**LLM_CONFIG, **(config or {})}, logger=logger,
                       retry_config=RetryConfig(**{"initial_delay": 1.0, **retry}), sleep=sleep)
    llm._session = session
    return llm


class TestRetryLayer:
    """Tests that model calls are retried exactly once per failure chain."""

    @pytest.mark.asyncio
    async def test_configured_retries_and_delays(self, logger, sleep_recorder):
        session = FakeSession(status=503)
        llm = llm_with_session(session, logger, sleep_recorder, max_retries=2)

        with pytest.raises(TransientCollaboratorError):
            await llm.generate_with_system_prompt("system", "user", caller="unit")

        assert session.posts == 3
        assert sleep_recorder.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self, logger, sleep_recorder):
        session = FakeSession(status=401)
        llm = llm_with_session(session, logger, sleep_recorder)

        with pytest.raises(NonRetryableError):
            await llm.generate_with_system_prompt("system", "user")

        assert session.posts == 1
        assert sleep_recorder.delays == []

    @pytest.mark.asyncio
    async def test_failing_analysis_in_loop_is_not_retried_twice(self, logger, sleep_recorder):
        session = FakeSession(status=503)
        llm = llm_with_session(session, logger, sleep_recorder, max_retries=3)
        search = AsyncMock(return_value=GatheringResult(query="q", results=()))
        loop_sleeps = []

        async def loop_sleep(delay):
            loop_sleeps.append(delay)

        loop = IterativeResearchLoop(
            search, AnalysisAgent(llm, ResearchLoopConfig(), logger=logger),
            retry_config=RetryConfig(max_retries=3, initial_delay=1.0),
            logger=logger, sleep=loop_sleep,
        )

        with pytest.raises(ResearchLoopError) as excinfo:
            await loop.run("q")

        assert session.posts == 4
        assert loop_sleeps == []
        assert excinfo.value.state == LoopState.FAILED
        assert isinstance(excinfo.value.cause, TransientCollaboratorError)


class TestConcurrency:
    """Tests for the per-client concurrency cap."""

    @pytest.mark.asyncio
    async def test_max_concurrent_calls_from_config(self, logger, sleep_recorder):
        session = FakeSession(status=400, latency=0.01)
        llm = llm_with_session(session, logger, sleep_recorder, config={"max_concurrent_calls": 2})

        results = await asyncio.gather(
            *(llm.generate_with_system_prompt("system", f"user {i}") for i in range(5)),
            return_exceptions=True,
        )

        assert all(isinstance(r, NonRetryableError) for r in results)
        assert session.posts == 5
        assert session.peak == 2
