"""Tests for error classification, reporting and retry helpers."""

import asyncio
from unittest.mock import MagicMock

import aiohttp
import pytest

from thoughtforge.utils.async_utils import (
    AsyncRateLimiter,
    limit_async_func_call,
    with_ai_model_backoff,
    with_exponential_backoff,
)
from thoughtforge.utils.error_handling import (
    NonRetryableError,
    TransientCollaboratorError,
    handle_json_parse_failure,
    is_retryable_error,
    report_error,
)


class Flaky:
    """Callable failing with the given errors before returning a value."""

    def __init__(self, errors, value="ok"):
        self.errors = list(errors)
        self.value = value
        self.attempts = 0

    async def __call__(self):
        self.attempts += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.value


class TestIsRetryableError:
    """Tests for retryability classification."""

    @pytest.mark.parametrize("error,expected", [
        (TransientCollaboratorError("slow down", status=429), True),
        (NonRetryableError("bad request", status=400), False),
        (asyncio.TimeoutError(), True),
        (ConnectionResetError("reset by peer"), True),
        (ValueError("Rate limit exceeded"), True),
        (RuntimeError("HTTP 503 from provider"), True),
        (RuntimeError("Too Many Requests"), True),
        (ValueError("invalid prompt"), False),
        (KeyError("choices"), False),
    ])
    def test_classification(self, error, expected):
        assert is_retryable_error(error) is expected

    def test_explicit_classification_wins_over_message(self):
        assert is_retryable_error(NonRetryableError("server error while validating")) is False

    def test_client_response_status(self):
        throttled = aiohttp.ClientResponseError(request_info=None, history=(), status=429)
        forbidden = aiohttp.ClientResponseError(request_info=None, history=(), status=403)

        assert is_retryable_error(throttled) is True
        assert is_retryable_error(forbidden) is False

    def test_custom_patterns(self):
        assert is_retryable_error(RuntimeError("flaky socket"), patterns=["flaky"]) is True
        assert is_retryable_error(RuntimeError("rate limit"), patterns=["flaky"]) is False


class TestReporting:
    """Tests for error reporting helpers."""

    def test_report_error_without_logger_is_silent(self):
        report_error("beam_search_expand_error", RuntimeError("boom"))

    def test_report_error_forwards_context(self):
        logger = MagicMock()

        report_error("beam_search_expand_error", RuntimeError("boom"), {"depth": 2}, logger=logger)

        logger.log_error_event.assert_called_once_with("beam_search_expand_error", "boom", {"depth": 2})

    def test_report_error_never_raises(self):
        logger = MagicMock()
        logger.log_error_event.side_effect = OSError("disk full")

        report_error("any", "message", logger=logger)

        logger.log_warning.assert_called_once()

    def test_parse_failure_marker(self):
        logger = MagicMock()

        marker = handle_json_parse_failure("bad json", "{oops", {"step": "analysis"}, logger=logger)

        assert marker["is_fallback"] is True
        assert marker["error"] == "bad json"
        assert "timestamp" in marker
        error_type, _, context = logger.log_error_event.call_args.args
        assert error_type == "json_parse_failure"
        assert context["raw_text"] == "{oops"
        assert context["step"] == "analysis"


class TestExponentialBackoff:
    """Tests for with_exponential_backoff."""

    @pytest.mark.asyncio
    async def test_retries_transient_errors_then_succeeds(self, sleep_recorder):
        fn = Flaky([TransientCollaboratorError("busy"), TransientCollaboratorError("busy")])

        result = await with_exponential_backoff(fn, max_retries=3, initial_delay=1.0,
                                                backoff_factor=2.0, sleep=sleep_recorder)

        assert result == "ok"
        assert fn.attempts == 3
        assert sleep_recorder.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, sleep_recorder):
        fn = Flaky([TransientCollaboratorError(f"busy {i}") for i in range(10)])

        with pytest.raises(TransientCollaboratorError, match="busy 2"):
            await with_exponential_backoff(fn, max_retries=2, initial_delay=1.0, sleep=sleep_recorder)

        assert fn.attempts == 3
        assert sleep_recorder.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_delay_is_capped(self, sleep_recorder):
        fn = Flaky([TransientCollaboratorError("busy")] * 4)

        await with_exponential_backoff(fn, max_retries=4, initial_delay=1.0, max_delay=3.0,
                                       backoff_factor=2.0, sleep=sleep_recorder)

        assert sleep_recorder.delays == [1.0, 2.0, 3.0, 3.0]

    @pytest.mark.asyncio
    async def test_non_retryable_error_is_raised_immediately(self, sleep_recorder):
        fn = Flaky([NonRetryableError("invalid api key", status=401)])

        with pytest.raises(NonRetryableError):
            await with_exponential_backoff(fn, max_retries=5, sleep=sleep_recorder)

        assert fn.attempts == 1
        assert sleep_recorder.delays == []

    @pytest.mark.asyncio
    async def test_timeout_is_treated_as_transient(self, sleep_recorder):
        attempts = []

        async def slow():
            attempts.append(1)
            if len(attempts) == 1:
                await asyncio.sleep(5)
            return "eventually"

        result = await with_exponential_backoff(slow, max_retries=1, timeout=0.01, sleep=sleep_recorder)

        assert result == "eventually"
        assert len(attempts) == 2
        assert len(sleep_recorder.delays) == 1

    @pytest.mark.asyncio
    async def test_ai_model_backoff_defaults(self, sleep_recorder):
        fn = Flaky([RuntimeError("model overloaded")] * 3)

        result = await with_ai_model_backoff(fn, sleep=sleep_recorder)

        assert result == "ok"
        assert sleep_recorder.delays == [2.0, 4.0, 8.0]

    @pytest.mark.asyncio
    async def test_logs_retries(self, sleep_recorder):
        logger = MagicMock()
        fn = Flaky([TransientCollaboratorError("busy")])

        await with_exponential_backoff(fn, sleep=sleep_recorder, logger=logger, caller="unit")

        assert "unit" in logger.log_warning.call_args.args[0]


class TestDecorators:
    """Tests for the concurrency and rate limiting helpers."""

    @pytest.mark.asyncio
    async def test_limit_async_func_call_bounds_concurrency(self):
        running = 0
        peak = 0

        @limit_async_func_call(max_size=2)
        async def work():
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1

        await asyncio.gather(*(work() for _ in range(6)))

        assert peak == 2

    @pytest.mark.asyncio
    async def test_rate_limiter_allows_calls_within_window(self):
        limiter = AsyncRateLimiter(max_calls=3, time_window=60)

        for _ in range(3):
            await limiter.acquire()

        assert len(limiter.calls) == 3
