"""
Configuration loading.

The YAML file is read once and turned into an immutable EngineConfig tree that is
passed explicitly into every entry point.
"""

import os
import re
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional

import yaml


_ENV_PATTERN = re.compile(r'^\$\{([A-Za-z_][A-Za-z0-9_]*)\}$')


def load_config(config_path: str = None) -> dict:
    """Load configuration from file - config is required"""
    if not config_path:
        raise ValueError("Configuration file path is required")

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, 'r') as file:
            config = yaml.safe_load(file)
    except yaml.YAMLError as e:
        raise RuntimeError(f"Failed to load configuration from {config_path}: {e}")

    if not config:
        raise ValueError(f"Configuration file is empty: {config_path}")
    return _expand_env(config)


def _expand_env(value: Any) -> Any:
    """Replace '${VAR}' string values with the environment variable"""
    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(v) for v in value]
    if isinstance(value, str):
        match = _ENV_PATTERN.match(value.strip())
        if match:
            return os.environ.get(match.group(1), "")
    return value


def _section(cls, data: Optional[Dict[str, Any]]):
    """Build a config dataclass from a dict, ignoring unknown keys"""
    data = data or {}
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})


@dataclass(frozen=True)
class LLMConfig:
    api_key: str = ""
    model_name: str = ""
    base_url: str = ""
    max_tokens: int = 4096
    temperature: float = 0.7
    timeout: float = 120.0
    max_concurrent_calls: int = 8

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class BeamSearchConfig:
    max_depth: int = 3
    beam_width: int = 3
    branching_factor: int = 5
    min_beam_width: int = 1
    cost_budget: Optional[float] = 100000
    stage: str = "planning"


@dataclass(frozen=True)
class AggregationConfig:
    learning_rate: float = 0.1
    pruning_threshold: float = 0.2
    inactivity_window_hours: float = 7 * 24
    decay_factor: float = 0.9
    default_node_score: float = 7.0
    cycles: int = 1


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 3
    initial_delay: float = 2.0
    max_delay: float = 15.0
    backoff_factor: float = 2.0
    timeout: Optional[float] = None


@dataclass(frozen=True)
class ResearchLoopConfig:
    max_iterations: int = 3
    sufficient_confidence: float = 0.8
    max_follow_up_queries: int = 3
    allow_forced_insufficient: bool = False
    cache_ttl_seconds: float = 24 * 60 * 60


@dataclass(frozen=True)
class SearchConfig:
    api_key: str = ""
    base_url: str = "https://api.semanticscholar.org/graph/v1"
    max_results: int = 10
    max_calls: int = 10
    time_window: float = 60.0
    timeout: float = 30.0


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    log_dir: str = "logs"

    @property
    def debug(self) -> bool:
        return self.level.upper() == "DEBUG"


@dataclass(frozen=True)
class EngineConfig:
    llm: LLMConfig = field(default_factory=LLMConfig)
    beam_search: BeamSearchConfig = field(default_factory=BeamSearchConfig)
    aggregation: AggregationConfig = field(default_factory=AggregationConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    research_loop: ResearchLoopConfig = field(default_factory=ResearchLoopConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "EngineConfig":
        raw = raw or {}
        return cls(
            llm=_section(LLMConfig, raw.get('llm')),
            beam_search=_section(BeamSearchConfig, raw.get('beam_search')),
            aggregation=_section(AggregationConfig, raw.get('aggregation')),
            retry=_section(RetryConfig, raw.get('retry')),
            research_loop=_section(ResearchLoopConfig, raw.get('research_loop')),
            search=_section(SearchConfig, raw.get('search')),
            logging=_section(LoggingConfig, raw.get('logging')),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "EngineConfig":
        return cls.from_dict(load_config(config_path))
