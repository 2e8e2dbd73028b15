"""
Analysis Agent

Judges whether the information gathered by the research loop is sufficient, and
proposes follow-up queries when it is not. The model's verdict is combined with a
deterministic continue/stop rule on iteration count, missing information and
confidence.
"""

from typing import Any, Dict, Sequence

from .base_agent import BaseAgent
from ..pipelines.step_results import AnalysisResult, parse_step_result
from ..prompts.research_prompts import ANALYSIS_SYSTEM_PROMPT, ANALYSIS_USER_PROMPT
from ..utils.config import ResearchLoopConfig
from ..utils.debug_logger import null_logger
from ..utils.text_utils import truncate_text


SUFFICIENT_CONFIDENCE = 0.8


def determine_if_should_continue(current_iteration: int, max_iterations: int,
                                 missing_information: Sequence[str], confidence: float,
                                 sufficient_confidence: float = SUFFICIENT_CONFIDENCE) -> bool:
    """Continue searching only while under the ceiling, something is missing and confidence is low"""
    if current_iteration >= max_iterations:
        return False
    if not missing_information:
        return False
    if confidence >= sufficient_confidence:
        return False
    return True


def explain_decision(should_continue: bool, current_iteration: int, max_iterations: int,
                     missing_information: Sequence[str], confidence: float,
                     sufficient_confidence: float = SUFFICIENT_CONFIDENCE) -> str:
    if should_continue:
        return (f"Missing information ({', '.join(missing_information)}) and confidence "
                f"{confidence:.2f} below {sufficient_confidence:.2f}; continuing search.")
    if current_iteration >= max_iterations:
        return f"Reached the maximum of {max_iterations} iterations; stopping search."
    if not missing_information:
        return "No information is missing; no further search needed."
    if confidence >= sufficient_confidence:
        return f"Confidence {confidence:.2f} is high enough; no further search needed."
    return "Enough information was gathered; stopping search."


def _format_gathered(accumulated_state: Dict[str, Any], limit: int = 4000) -> str:
    lines = []
    for gathering in accumulated_state.get("gathered", []):
        lines.append(f"Query: {gathering.get('query', '')}")
        for item in gathering.get("results", []):
            lines.append(f"- {item.get('title', '')}: {truncate_text(item.get('snippet', ''), 300)}")
    return truncate_text("\n".join(lines) or "(nothing gathered yet)", limit)


class AnalysisAgent(BaseAgent):
    """LLM-backed analysis collaborator for the research loop"""

    def __init__(self, llm_interface, config: ResearchLoopConfig = None, logger=None):
        super().__init__("AnalysisAgent", llm_interface, logger)
        self.config = config or ResearchLoopConfig()

    async def __call__(self, query: str, accumulated_state: Dict[str, Any]) -> AnalysisResult:
        return await self.analyze(query, accumulated_state)

    async def analyze(self, query: str, accumulated_state: Dict[str, Any]) -> AnalysisResult:
        iteration = accumulated_state.get("iteration", 1)
        max_iterations = accumulated_state.get("max_iterations", self.config.max_iterations)

        user_prompt = ANALYSIS_USER_PROMPT.format(
            query=query,
            iteration=iteration,
            max_iterations=max_iterations,
            gathered=_format_gathered(accumulated_state),
            max_follow_up_queries=self.config.max_follow_up_queries,
        )
        response = await self.llm.generate_with_system_prompt(
            ANALYSIS_SYSTEM_PROMPT, user_prompt, caller="analysis_agent"
        )

        analysis = parse_step_result(response, "analysis", logger=self.logger,
                                     context={"iteration": iteration})
        if analysis.is_fallback:
            return analysis

        should_continue = determine_if_should_continue(
            iteration, max_iterations, analysis.missing_information, analysis.confidence,
            self.config.sufficient_confidence
        )
        reason = explain_decision(
            should_continue, iteration, max_iterations, analysis.missing_information,
            analysis.confidence, self.config.sufficient_confidence
        )
        # At the ceiling the loop itself stops and flags the forced stop
        sufficient = analysis.is_information_sufficient or (
            not should_continue and iteration < max_iterations
        )
        self.logger.log_info(f"Iteration {iteration}/{max_iterations}: {reason}", "analysis_agent")

        return AnalysisResult(
            is_information_sufficient=sufficient,
            missing_information=analysis.missing_information,
            follow_up_queries=analysis.follow_up_queries[:self.config.max_follow_up_queries],
            confidence=analysis.confidence,
            summary=analysis.summary,
            reason=reason,
        )


class AlwaysInsufficientAnalyzer:
    """
    Analysis collaborator that always reports the information as insufficient.

    Only for exercising the iteration ceiling; construction is refused unless the
    configuration sets ``allow_forced_insufficient``.
    """

    def __init__(self, config: ResearchLoopConfig, logger=None):
        if not config.allow_forced_insufficient:
            raise ValueError(
                "AlwaysInsufficientAnalyzer requires research_loop.allow_forced_insufficient: true")
        self.config = config
        self.logger = logger or null_logger()
        self.calls = 0

    async def __call__(self, query: str, accumulated_state: Dict[str, Any]) -> AnalysisResult:
        self.calls += 1
        gathered = accumulated_state.get("gathered", [])
        result_count = sum(len(g.get("results", [])) for g in gathered)
        self.logger.log_warning(
            f"Forced insufficient analysis (call {self.calls}, {result_count} results gathered)",
            "analysis_agent"
        )
        return AnalysisResult(
            is_information_sufficient=False,
            missing_information=("forced by configuration",),
            follow_up_queries=(query,),
            confidence=0.0,
            summary=f"{result_count} results gathered",
            reason="Analysis forced to insufficient by configuration",
        )
