#!/usr/bin/env python3
"""
Debug Logger for ThoughtForge

Provides session logging in a single consolidated file per session with line numbers,
plus a JSONL stream of LLM conversations.
"""

import logging
import json
import os
import sys
import inspect
from datetime import datetime
from typing import Dict, Any, Optional
from pathlib import Path


class DebugLogger:
    """Session logger with single file per session and line number tracking"""

    def __init__(self, debug_mode: bool = False, log_dir: str = "logs", topic: str = None,
                 log_to_file: bool = True):
        self.debug_mode = debug_mode
        self.base_log_dir = Path(log_dir)
        self.topic = topic
        self.log_to_file = log_to_file

        # Unified logs structure: logs/{session,llm,graph}
        self.session_log_dir = self.base_log_dir / "session"
        self.llm_log_dir = self.base_log_dir / "llm"
        self.graph_log_dir = self.base_log_dir / "graph"

        if self.log_to_file:
            for directory in [self.session_log_dir, self.llm_log_dir, self.graph_log_dir]:
                directory.mkdir(parents=True, exist_ok=True)

        self.session_id = datetime.now().strftime("%Y%m%d_%H%M%S")

        self.main_log_file = self.session_log_dir / f"{self.session_id}.log"
        self.llm_log_file = self.llm_log_dir / f"{self.session_id}.jsonl"

        # logging never releases named loggers, so in-memory loggers share fixed names
        if self.log_to_file:
            self.logger = logging.getLogger(f"thoughtforge_{self.session_id}")
        else:
            self.logger = logging.getLogger(f"thoughtforge.memory.{'debug' if debug_mode else 'quiet'}")
        self.logger.setLevel(logging.DEBUG if debug_mode else logging.INFO)
        self.logger.propagate = False
        self.logger.handlers.clear()

        formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        if self.log_to_file:
            file_handler = logging.FileHandler(self.main_log_file)
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)
        else:
            self.logger.addHandler(logging.NullHandler())

        if debug_mode:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(logging.WARNING)  # Only warnings and errors to console
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)

        self.llm_counters = {}
        self.performance_metrics = {}
        self.component_states = {}
        self.error_events = []

        self.logger.info(f"=== NEW SESSION STARTED ===")
        self.logger.info(f"Session ID: {self.session_id}")
        self.logger.info(f"Debug Mode: {debug_mode}")
        if self.log_to_file:
            self.logger.info(f"Log File: {self.main_log_file}")

    def _get_caller_info(self) -> tuple:
        """Get caller function and line number from actual source, not debug logger"""
        frame = inspect.currentframe()
        try:
            caller_frame = frame.f_back.f_back

            # Skip logger frames to get to real calling code
            while (caller_frame and
                   ('debug_logger.py' in caller_frame.f_code.co_filename or
                    caller_frame.f_code.co_name.startswith('log_'))):
                caller_frame = caller_frame.f_back

            if caller_frame:
                full_path = caller_frame.f_code.co_filename
                if '/src/' in full_path:
                    relative_path = 'src/' + full_path.split('/src/')[-1]
                else:
                    relative_path = os.path.basename(full_path)

                return relative_path, caller_frame.f_lineno, caller_frame.f_code.co_name
            else:
                return "unknown.py", 0, "unknown"
        finally:
            del frame

    def log_info(self, message: str, component: str = "main_system"):
        """Log informational message"""
        filename, line_no, func_name = self._get_caller_info()
        self.logger.info(f"[{filename}:{line_no}] {message}")

    def log_debug(self, message: str, component: str = "main_system"):
        """Log debug message"""
        if self.debug_mode:
            filename, line_no, func_name = self._get_caller_info()
            self.logger.debug(f"[{filename}:{line_no}] {message}")

    def log_error(self, message: str, component: str = "main_system", exception: Exception = None):
        """Log error message"""
        filename, line_no, func_name = self._get_caller_info()
        error_msg = f"[{filename}:{line_no}] {message}"
        if exception:
            error_msg += f" - Exception: {str(exception)}"

        self.logger.error(error_msg)

    def log_warning(self, message: str, component: str = "main_system"):
        """Log warning message"""
        filename, line_no, func_name = self._get_caller_info()
        self.logger.warning(f"[{filename}:{line_no}] {message}")

    def log_error_event(self, error_type: str, message: str, context: Dict[str, Any] = None):
        """Record a structured error event (type + context) and log it"""
        event = {
            "error_type": error_type,
            "message": message,
            "context": context or {},
            "timestamp": datetime.now().isoformat(),
        }
        self.error_events.append(event)
        self.log_error(f"[{error_type}] {message} | context={json.dumps(context or {}, default=str)}", "error_reporting")

    def log_llm_conversation(self, agent_name: str, system_prompt: str, user_prompt: str,
                             response: str, metadata: Dict[str, Any] = None):
        """Log LLM conversation to single shared file"""
        if agent_name not in self.llm_counters:
            self.llm_counters[agent_name] = 0

        self.llm_counters[agent_name] += 1
        counter = self.llm_counters[agent_name]

        filename, line_no, func_name = self._get_caller_info()

        conversation = {
            "session_id": self.session_id,
            "topic": self.topic,
            "agent_name": agent_name,
            "conversation_number": counter,
            "timestamp": datetime.now().isoformat(),
            "caller_info": {
                "file": filename,
                "line": line_no,
                "function": func_name
            },
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "response": response,
            "metadata": metadata or {},
            "cost_info": metadata.get("cost_info") if metadata else None
        }

        if self.log_to_file:
            with open(self.llm_log_file, 'a') as f:
                json.dump(conversation, f, ensure_ascii=False, default=str)
                f.write('\n')

        cost_summary = ""
        if conversation.get("cost_info"):
            cost_info = conversation["cost_info"]
            cost_summary = f", Tokens: {cost_info['tokens']['total_tokens']}, Cost: ${cost_info['costs_usd']['total_cost']:.6f}"

        self.log_info(f"LLM Conversation #{counter} - Agent: {agent_name}{cost_summary}", "llm_interface")

    def log_performance_metric(self, component: str, metric_name: str, value: float, unit: str = ""):
        """Log performance metrics"""
        if component not in self.performance_metrics:
            self.performance_metrics[component] = {}

        self.performance_metrics[component][metric_name] = {
            "value": value,
            "unit": unit,
            "timestamp": datetime.now().isoformat()
        }

        self.log_info(f"Performance - {metric_name}: {value} {unit}", component)

    def log_component_state(self, component: str, state: Dict[str, Any]):
        """Log component state"""
        self.component_states[component] = {
            "state": state,
            "timestamp": datetime.now().isoformat()
        }

        self.log_debug(f"Component state: {json.dumps(state, default=str)}", component)

    def get_session_summary(self) -> Dict[str, Any]:
        """Get summary of current session"""
        return {
            "session_id": self.session_id,
            "topic": self.topic,
            "log_files": {
                "main_log": str(self.main_log_file),
                "llm_log": str(self.llm_log_file)
            },
            "log_structure": {
                "session": str(self.session_log_dir),
                "llm": str(self.llm_log_dir),
                "graph": str(self.graph_log_dir)
            },
            "llm_conversation_counts": self.llm_counters.copy(),
            "performance_metrics": self.performance_metrics.copy(),
            "component_states": {k: v["state"] for k, v in self.component_states.items()},
            "error_event_count": len(self.error_events),
        }

    def finalize_session(self):
        """Finalize session and write summary"""
        summary = self.get_session_summary()

        if self.log_to_file:
            summary_file = self.session_log_dir / f"{self.session_id}_summary.json"
            with open(summary_file, 'w') as f:
                json.dump(summary, f, indent=2, ensure_ascii=False)
            self.logger.info(f"Session finalized - Summary: {summary_file}")

        self.logger.info(f"=== SESSION ENDED ===")


def init_debug_logger(debug_mode: bool = False, topic: str = None, log_dir: str = "logs") -> DebugLogger:
    """Initialize debug logger with topic"""
    return DebugLogger(debug_mode=debug_mode, topic=topic, log_dir=log_dir)


def null_logger() -> DebugLogger:
    """Logger that writes nothing to disk, used when no session logger is supplied"""
    return DebugLogger(debug_mode=False, log_to_file=False)
