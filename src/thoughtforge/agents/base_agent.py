"""
Base Agent

Shared base class for LLM-backed collaborators (expansion oracle, relation proposer,
report and analysis agents). Each agent receives its LLM interface and logger at
construction time.
"""

from ..utils.debug_logger import null_logger


class BaseAgent:
    """Base class for agents with shared LLM and logger wiring"""

    # Model calls are retried by LLMInterface; callers must not add another retry layer
    retries_internally = True

    def __init__(self, name: str, llm_interface=None, logger=None):
        if llm_interface is None:
            raise ValueError(f"{name} requires an LLM interface")
        self.name = name
        self.llm = llm_interface
        self.logger = logger or null_logger()

    def get_name(self):
        return self.name
