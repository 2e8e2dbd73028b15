"""
Iterative Research Loop

Search -> analyze -> decide, repeated until the analysis reports the information
as sufficient or the iteration ceiling is reached:

    SEARCHING -> ANALYZING -> {continue: SEARCHING, stop: DONE}
    any step  -> FAILED       (non-retryable error or retries exhausted)

Every collaborator call is wrapped in bounded exponential backoff unless the
collaborator is marked ``retries_internally`` (LLM-backed agents, whose requests are
retried by LLMInterface), so each call goes through exactly one retry layer. Responses that
cannot be parsed are replaced by tagged fallback results so the loop keeps going.
"""

import asyncio
import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from .step_results import AnalysisResult, GatheringResult, ReportResult, parse_step_result
from ..utils.async_utils import with_exponential_backoff
from ..utils.config import ResearchLoopConfig, RetryConfig
from ..utils.debug_logger import null_logger
from ..utils.error_handling import ResearchLoopError, report_error


SearchFn = Callable[[str], Awaitable[Any]]
AnalyzeFn = Callable[[str, Dict[str, Any]], Awaitable[Any]]
GenerateFn = Callable[[str, Dict[str, Any]], Awaitable[Any]]


class LoopState(Enum):
    PENDING = "pending"
    SEARCHING = "searching"
    ANALYZING = "analyzing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class IterationResult:
    iteration: int
    max_iterations: int
    is_information_sufficient: bool
    accumulated_state: Dict[str, Any]
    analysis: Optional[AnalysisResult] = None
    forced_done: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "iteration": self.iteration,
            "max_iterations": self.max_iterations,
            "is_information_sufficient": self.is_information_sufficient,
            "forced_done": self.forced_done,
            "analysis": self.analysis.to_dict() if self.analysis else None,
        }


@dataclass
class ResearchLoopOutcome:
    query: str
    state: LoopState
    iterations: List[IterationResult] = field(default_factory=list)
    accumulated_state: Dict[str, Any] = field(default_factory=dict)
    report: Optional[ReportResult] = None

    @property
    def forced_done(self) -> bool:
        return bool(self.iterations) and self.iterations[-1].forced_done

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "state": self.state.value,
            "forced_done": self.forced_done,
            "iterations": [it.to_dict() for it in self.iterations],
            "gathered": self.accumulated_state.get("gathered", []),
            "report": self.report.to_dict() if self.report else None,
        }


def retries_internally(fn: Callable[..., Any]) -> bool:
    """True for collaborators that already retry their own calls (LLM-backed agents)"""
    owner = getattr(fn, '__self__', fn)
    return (getattr(fn, 'retries_internally', False) is True
            or getattr(owner, 'retries_internally', False) is True)


class IterativeResearchLoop:
    """Bounded search/analyze loop over injected collaborators"""

    def __init__(self, search: SearchFn, analyze: AnalyzeFn, generate: GenerateFn = None,
                 config: ResearchLoopConfig = None, retry_config: RetryConfig = None,
                 logger=None, sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.search = search
        self.analyze = analyze
        self.generate = generate
        self.config = config or ResearchLoopConfig()
        self.retry_config = retry_config or RetryConfig()
        self.logger = logger or null_logger()
        self.sleep = sleep
        self.state = LoopState.PENDING
        self.iterations: List[IterationResult] = []

    async def _attempt(self, step: str, fn: Callable[..., Awaitable[Any]], *args) -> Any:
        if retries_internally(fn):
            return await fn(*args)
        retry = self.retry_config
        return await with_exponential_backoff(
            lambda: fn(*args),
            max_retries=retry.max_retries,
            initial_delay=retry.initial_delay,
            max_delay=retry.max_delay,
            backoff_factor=retry.backoff_factor,
            timeout=retry.timeout,
            sleep=self.sleep,
            logger=self.logger,
            caller=f"research_loop.{step}",
        )

    async def _call(self, step: str, fn: Callable[..., Awaitable[Any]], *args) -> Any:
        try:
            return await self._attempt(step, fn, *args)
        except Exception as e:
            failed_in = self.state
            self.state = LoopState.FAILED
            report_error('research_loop_failure', e, {
                'step': step,
                'state': failed_in.value,
                'iterations_completed': len(self.iterations),
            }, logger=self.logger)
            raise ResearchLoopError(
                f"Research loop failed during {step}: {e}",
                state=LoopState.FAILED,
                iterations=list(self.iterations),
                cause=e,
            ) from e

    async def run(self, query: str, initial_queries: Sequence[str] = None) -> ResearchLoopOutcome:
        """
        Run the loop for ``query``.

        Raises:
            ResearchLoopError: a collaborator failed with a non-retryable error or
                exhausted its retries. The error carries the iterations completed so far.
        """
        max_iterations = self.config.max_iterations
        self.iterations = []
        accumulated: Dict[str, Any] = {
            "query": query,
            "iteration": 0,
            "max_iterations": max_iterations,
            "gathered": [],
            "analyses": [],
        }
        queries = list(initial_queries or [query])

        self.logger.log_info(f"Research loop started: '{query}' (max {max_iterations} iterations)",
                             "research_loop")

        for iteration in range(1, max_iterations + 1):
            accumulated["iteration"] = iteration

            self.state = LoopState.SEARCHING
            for search_query in queries:
                raw = await self._call("search", self.search, search_query)
                gathering = parse_step_result(raw, "gathering", logger=self.logger,
                                              context={"query": search_query, "iteration": iteration})
                accumulated["gathered"].append(self._gathering_record(search_query, gathering))

            self.state = LoopState.ANALYZING
            raw = await self._call("analysis", self.analyze, query, accumulated)
            analysis = parse_step_result(raw, "analysis", logger=self.logger,
                                         context={"iteration": iteration})
            accumulated["analyses"].append(analysis.to_dict())

            sufficient = analysis.is_information_sufficient
            forced = not sufficient and iteration >= max_iterations
            self.iterations.append(IterationResult(
                iteration=iteration,
                max_iterations=max_iterations,
                is_information_sufficient=sufficient,
                accumulated_state=copy.deepcopy(accumulated),
                analysis=analysis,
                forced_done=forced,
            ))

            self.logger.log_info(
                f"Iteration {iteration}/{max_iterations}: sufficient={sufficient}"
                f"{' (fallback analysis)' if analysis.is_fallback else ''}"
                f"{' - iteration ceiling reached' if forced else ''}",
                "research_loop"
            )
            if sufficient or forced:
                break

            queries = list(analysis.follow_up_queries[:self.config.max_follow_up_queries]) or [query]

        report = None
        if self.generate is not None:
            raw = await self._call("generation", self.generate, query, accumulated)
            report = parse_step_result(raw, "report", logger=self.logger)

        self.state = LoopState.DONE
        self.logger.log_info(f"Research loop done after {len(self.iterations)} iterations", "research_loop")
        return ResearchLoopOutcome(
            query=query,
            state=self.state,
            iterations=list(self.iterations),
            accumulated_state=accumulated,
            report=report,
        )

    @staticmethod
    def _gathering_record(search_query: str, gathering: GatheringResult) -> Dict[str, Any]:
        return {
            "query": gathering.query or search_query,
            "results": [dict(r) for r in gathering.results],
            "is_fallback": gathering.is_fallback,
        }
