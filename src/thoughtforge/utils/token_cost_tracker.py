#!/usr/bin/env python3
"""
Token Cost Tracker for ThoughtForge

Provides token counting and cost calculation for LLM invocations using tokencost library.
Statistics are scoped to the tracker instance; the running token total doubles as the
cost signal for budgeted beam search.
"""

import warnings
import os
import sys
import contextlib
from typing import List, Dict, Any, Union
from decimal import Decimal
from datetime import datetime
from io import StringIO

# Suppress tiktoken model update messages before importing tokencost/tiktoken
warnings.filterwarnings("ignore", message=".*may update over time.*", category=UserWarning)
warnings.filterwarnings("ignore", message=".*Returning num tokens assuming.*", category=UserWarning)

os.environ.setdefault('TIKTOKEN_CACHE_DIR', '/tmp/tiktoken_cache')


@contextlib.contextmanager
def suppress_stderr():
    """Context manager to suppress stderr output"""
    old_stderr = sys.stderr
    sys.stderr = StringIO()
    try:
        yield
    finally:
        sys.stderr = old_stderr


with warnings.catch_warnings(), suppress_stderr():
    warnings.simplefilter("ignore", UserWarning)
    import tokencost


FALLBACK_COST_MODEL = "gpt-4o"


class TokenCostTracker:
    """Track token usage and costs for LLM invocations"""

    def __init__(self, model_name: str, logger=None):
        """
        Initialize token cost tracker

        Args:
            model_name: Name of the model used for cost calculation
            logger: Debug logger instance for logging costs and metrics
        """
        self.model_name = model_name
        self.logger = logger

        if model_name in tokencost.TOKEN_COSTS:
            self.cost_model = model_name
        else:
            self.cost_model = FALLBACK_COST_MODEL
            if logger:
                logger.log_info(
                    f"Model '{model_name}' not found in tokencost, using '{self.cost_model}' for cost calculation",
                    "token_tracker"
                )

        self.session_stats = {
            "total_prompt_tokens": 0,
            "total_completion_tokens": 0,
            "total_prompt_cost": Decimal('0.0'),
            "total_completion_cost": Decimal('0.0'),
            "agent_stats": {},
            "conversation_count": 0
        }

    @property
    def total_tokens(self) -> int:
        return self.session_stats["total_prompt_tokens"] + self.session_stats["total_completion_tokens"]

    def count_tokens(self, text: Union[str, List[Dict]], is_messages: bool = False) -> int:
        """
        Count tokens in text or message list

        Args:
            text: String or list of message dictionaries
            is_messages: True if text is a list of message dictionaries

        Returns:
            Number of tokens
        """
        try:
            with warnings.catch_warnings(), suppress_stderr():
                warnings.simplefilter("ignore", UserWarning)
                if is_messages and isinstance(text, list):
                    return tokencost.count_message_tokens(text, self.cost_model)
                return tokencost.count_string_tokens(str(text), self.cost_model)
        except Exception as e:
            if self.logger:
                self.logger.log_warning(f"Error counting tokens, estimating from words: {e}", "token_tracker")
            # 1 token ≈ 0.75 words
            if is_messages and isinstance(text, list):
                text = " ".join(str(m.get("content", "")) for m in text)
            return int(len(str(text).split()) / 0.75)

    def calculate_total_cost(self, messages: List[Dict], response: str) -> Dict[str, Any]:
        """
        Calculate total cost for a conversation (prompt + response)

        Args:
            messages: List of message dictionaries for the prompt
            response: Response text from the model

        Returns:
            Dictionary with detailed token and cost information
        """
        prompt_tokens = self.count_tokens(messages, is_messages=True)
        response_tokens = self.count_tokens(response)

        try:
            with warnings.catch_warnings(), suppress_stderr():
                warnings.simplefilter("ignore", UserWarning)
                prompt_cost = Decimal(str(tokencost.calculate_prompt_cost(messages, self.cost_model)))
                response_cost = Decimal(str(tokencost.calculate_completion_cost(response, self.cost_model)))
        except Exception as e:
            if self.logger:
                self.logger.log_warning(f"Error calculating cost: {e}", "token_tracker")
            prompt_cost = response_cost = Decimal('0.0')

        return {
            "model_used": self.model_name,
            "cost_model": self.cost_model,
            "tokens": {
                "prompt_tokens": prompt_tokens,
                "completion_tokens": response_tokens,
                "total_tokens": prompt_tokens + response_tokens
            },
            "costs_usd": {
                "prompt_cost": float(prompt_cost),
                "completion_cost": float(response_cost),
                "total_cost": float(prompt_cost + response_cost)
            },
            "timestamp": datetime.now().isoformat()
        }

    def track_conversation(self, agent_name: str, messages: List[Dict], response: str) -> Dict[str, Any]:
        """
        Track a complete conversation with cost calculation and session statistics

        Returns:
            Dictionary with cost information
        """
        cost_info = self.calculate_total_cost(messages, response)

        stats = self.session_stats
        stats["total_prompt_tokens"] += cost_info["tokens"]["prompt_tokens"]
        stats["total_completion_tokens"] += cost_info["tokens"]["completion_tokens"]
        stats["total_prompt_cost"] += Decimal(str(cost_info["costs_usd"]["prompt_cost"]))
        stats["total_completion_cost"] += Decimal(str(cost_info["costs_usd"]["completion_cost"]))
        stats["conversation_count"] += 1

        agent_stats = stats["agent_stats"].setdefault(agent_name, {
            "conversations": 0,
            "total_tokens": 0,
            "total_cost": Decimal('0.0')
        })
        agent_stats["conversations"] += 1
        agent_stats["total_tokens"] += cost_info["tokens"]["total_tokens"]
        agent_stats["total_cost"] += Decimal(str(cost_info["costs_usd"]["total_cost"]))

        if self.logger:
            self.logger.log_debug(
                f"Token Cost - Agent: {agent_name}, Tokens: {cost_info['tokens']['total_tokens']}, "
                f"Cost: ${cost_info['costs_usd']['total_cost']:.6f}",
                "token_tracker"
            )

        cost_info["agent_name"] = agent_name
        return cost_info

    def get_session_summary(self) -> Dict[str, Any]:
        """Get session cost summary"""
        stats = self.session_stats
        total_cost = stats["total_prompt_cost"] + stats["total_completion_cost"]
        conversations = stats["conversation_count"]

        agent_summary = {}
        for agent, agent_stats in stats["agent_stats"].items():
            agent_summary[agent] = {
                "conversations": agent_stats["conversations"],
                "total_tokens": agent_stats["total_tokens"],
                "total_cost_usd": float(agent_stats["total_cost"]),
            }

        return {
            "model_used": self.model_name,
            "cost_model": self.cost_model,
            "session_totals": {
                "conversations": conversations,
                "total_tokens": self.total_tokens,
                "prompt_tokens": stats["total_prompt_tokens"],
                "completion_tokens": stats["total_completion_tokens"],
                "total_cost_usd": float(total_cost),
                "avg_tokens_per_conversation": self.total_tokens / conversations if conversations else 0,
            },
            "agent_breakdown": agent_summary,
            "timestamp": datetime.now().isoformat()
        }

    def log_session_summary(self):
        """Log final session cost summary"""
        if not self.logger:
            return
        totals = self.get_session_summary()["session_totals"]
        self.logger.log_info(
            f"SESSION COST SUMMARY - Total: ${totals['total_cost_usd']:.6f}, "
            f"Tokens: {totals['total_tokens']}, "
            f"Conversations: {totals['conversations']}",
            "token_tracker"
        )
