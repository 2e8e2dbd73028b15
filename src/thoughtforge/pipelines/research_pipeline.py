"""
Research Pipeline

Runs the iterative search/analyze loop, seeded with the research plan's queries
when exploration produced one, and writes the final report.
"""

from typing import Any, Dict, List, Optional

from .base_pipeline import BasePipeline, PipelineResult, PipelineContext
from .research_loop import IterativeResearchLoop, SearchFn, AnalyzeFn
from ..agents.report_agent import ReportAgent
from ..utils.error_handling import ResearchLoopError


class ResearchPipeline(BasePipeline):
    """
    Pipeline for the iterative research loop and final report
    """

    def __init__(self, search: SearchFn, analyze: AnalyzeFn, report_agent: Optional[ReportAgent] = None,
                 sleep=None):
        super().__init__(
            name="Research",
            description="Phase 3: Iterative Research and Report"
        )
        self.search = search
        self.analyze = analyze
        self.report_agent = report_agent
        self.sleep = sleep
        self.add_output("research_outcome")

    def _insights(self, context: PipelineContext) -> List[str]:
        latest = context.latest_aggregation
        if latest is None:
            return []
        return [s.content for s in latest.synthesized_thoughts]

    def build_loop(self, context: PipelineContext) -> IterativeResearchLoop:
        insights = self._insights(context)

        generate = None
        if self.report_agent is not None:
            async def generate(query: str, accumulated_state: Dict[str, Any]):
                return await self.report_agent.report(query, accumulated_state, insights)
            generate.retries_internally = self.report_agent.retries_internally

        options = {}
        if self.sleep is not None:
            options['sleep'] = self.sleep
        return IterativeResearchLoop(
            self.search, self.analyze, generate,
            config=context.config.research_loop,
            retry_config=context.config.retry,
            logger=context.logger,
            **options
        )

    async def execute(self, context: PipelineContext) -> PipelineResult:
        print("Phase 3: Iterative Research and Report")
        print("-" * 40)

        plan = context.research_plan
        initial_queries = list(plan.queries) if plan is not None and plan.queries else None
        loop = self.build_loop(context)

        try:
            outcome = await loop.run(context.query, initial_queries)
        except ResearchLoopError as e:
            return PipelineResult(
                success=False,
                data={'iterations': [it.to_dict() for it in e.iterations], 'state': loop.state.value},
                metadata={'failed_step_error': str(e.cause)},
                error_message=str(e)
            )

        context.research_outcome = outcome
        print(f"Research loop finished after {len(outcome.iterations)} iterations"
              f"{' (iteration ceiling reached)' if outcome.forced_done else ''}")

        return PipelineResult(
            success=True,
            data=outcome.to_dict(),
            metadata={'iterations': len(outcome.iterations), 'forced_done': outcome.forced_done}
        )
