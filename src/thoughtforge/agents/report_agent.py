"""
Report Agent

Generation collaborator: turns the best explored thought into a research plan and
the research loop's accumulated state into a final report.
"""

from typing import Any, Dict, Sequence

from .base_agent import BaseAgent
from .beam_search import SearchNode, Thought
from ..pipelines.step_results import PlanningResult, ReportResult, parse_step_result
from ..prompts.research_prompts import (
    PLAN_SYSTEM_PROMPT, PLAN_USER_PROMPT, REPORT_SYSTEM_PROMPT, REPORT_USER_PROMPT
)
from ..utils.text_utils import truncate_text


class ReportAgent(BaseAgent):
    """Writes research plans and final reports"""

    def __init__(self, llm_interface, logger=None, max_subtopics: int = 5, max_queries: int = 5):
        super().__init__("ReportAgent", llm_interface, logger)
        self.max_subtopics = max_subtopics
        self.max_queries = max_queries

    async def plan(self, query: str, best_node: SearchNode) -> PlanningResult:
        """Research plan seeded by the highest scoring explored thought"""
        content = best_node.data.content if isinstance(best_node.data, Thought) else str(best_node.data)
        user_prompt = PLAN_USER_PROMPT.format(
            query=query,
            score=best_node.score,
            selected_thought=content,
            max_subtopics=self.max_subtopics,
            max_queries=self.max_queries,
        )
        response = await self.llm.generate_with_system_prompt(
            PLAN_SYSTEM_PROMPT, user_prompt, caller="report_agent_plan"
        )
        plan = parse_step_result(response, "planning", logger=self.logger)
        selected = {"id": best_node.id, "content": content, "score": best_node.score,
                    "depth": best_node.depth}
        if plan.is_fallback:
            # Without a usable plan the original query is the only search query
            return PlanningResult(is_fallback=True, error=plan.error, approach=content,
                                  queries=(query,), selected_thought=selected)
        return PlanningResult(
            approach=plan.approach,
            subtopics=plan.subtopics[:self.max_subtopics],
            queries=plan.queries[:self.max_queries],
            selected_thought=selected,
        )

    async def __call__(self, query: str, accumulated_state: Dict[str, Any]) -> ReportResult:
        return await self.report(query, accumulated_state)

    async def report(self, query: str, accumulated_state: Dict[str, Any],
                     insights: Sequence[str] = None) -> ReportResult:
        gathered_lines = []
        for gathering in accumulated_state.get("gathered", []):
            for item in gathering.get("results", []):
                gathered_lines.append(
                    f"- {item.get('title', '')} ({item.get('url', '')}): "
                    f"{truncate_text(item.get('snippet', ''), 400)}"
                )
        insights = list(insights or accumulated_state.get("insights", []))

        user_prompt = REPORT_USER_PROMPT.format(
            query=query,
            gathered=truncate_text("\n".join(gathered_lines) or "(none)", 8000),
            insights="\n".join(f"- {i}" for i in insights) or "(none)",
        )
        response = await self.llm.generate_with_system_prompt(
            REPORT_SYSTEM_PROMPT, user_prompt, caller="report_agent"
        )
        return parse_step_result(response, "report", logger=self.logger)
