"""Tests for DebugLogger session state and logger registration."""

import json
import logging

from thoughtforge.utils.debug_logger import DebugLogger, null_logger


class TestNullLogger:
    """Tests for the in-memory logger used when no session logger is supplied."""

    def test_repeated_construction_reuses_one_logger(self):
        null_logger()
        registered = len(logging.Logger.manager.loggerDict)

        loggers = [null_logger() for _ in range(200)]

        assert len(logging.Logger.manager.loggerDict) == registered
        assert len({id(l.logger) for l in loggers}) == 1
        assert len(loggers[0].logger.handlers) == 1

    def test_state_stays_per_instance(self):
        first, second = null_logger(), null_logger()

        first.log_error_event("json_parse_failure", "bad json", {"step": "analysis"})
        first.log_performance_metric("search", "latency", 0.5, "seconds")

        assert len(first.error_events) == 1
        assert second.error_events == []
        assert second.get_session_summary()["performance_metrics"] == {}

    def test_writes_nothing_to_disk(self, tmp_path):
        logger = DebugLogger(log_dir=str(tmp_path / "logs"), log_to_file=False)

        logger.log_info("hello")
        logger.finalize_session()

        assert not (tmp_path / "logs").exists()


class TestSessionLogger:
    """Tests for file-backed session logging."""

    def test_session_files(self, tmp_path):
        logger = DebugLogger(log_dir=str(tmp_path), topic="kv cache")

        logger.log_info("starting")
        logger.log_llm_conversation("analysis_agent", "system", "user", "response")
        logger.finalize_session()
        for handler in logger.logger.handlers:
            handler.flush()

        assert "starting" in logger.main_log_file.read_text()
        conversation = json.loads(logger.llm_log_file.read_text().splitlines()[0])
        assert conversation["agent_name"] == "analysis_agent"
        assert conversation["topic"] == "kv cache"
        summary_file = tmp_path / "session" / f"{logger.session_id}_summary.json"
        assert json.loads(summary_file.read_text())["llm_conversation_counts"] == {"analysis_agent": 1}
