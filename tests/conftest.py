"""Shared fixtures for the ThoughtForge test suite."""

from typing import List

import pytest

from thoughtforge.utils.debug_logger import null_logger


class ScriptedLLM:
    """LLM stand-in that replays scripted responses in order and records prompts."""

    def __init__(self, responses: List[str]):
        self.responses = list(responses)
        self.calls: List[dict] = []

    async def generate_with_system_prompt(self, system_prompt: str, user_prompt: str,
                                          max_tokens: int = None, temperature: float = None,
                                          caller: str = "unknown") -> str:
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "max_tokens": max_tokens,
            "caller": caller,
        })
        if not self.responses:
            raise AssertionError(f"Unexpected LLM call from {caller}")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


class SleepRecorder:
    """Injectable sleep that records requested delays without waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


@pytest.fixture
def logger():
    return null_logger()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def scripted_llm():
    def build(*responses):
        return ScriptedLLM(list(responses))
    return build
