"""
Exploration Pipeline

Runs beam search from the user query and, when a report agent is available, turns
the best explored thought into a research plan.
"""

from typing import Optional

from .base_pipeline import BasePipeline, PipelineResult, PipelineContext
from ..agents.beam_search import BeamSearchExplorer, Thought, summarize_exploration
from ..agents.report_agent import ReportAgent


class ExplorationPipeline(BasePipeline):
    """
    Pipeline for tree-of-thought exploration with beam search
    """

    def __init__(self, explorer: BeamSearchExplorer, report_agent: Optional[ReportAgent] = None):
        super().__init__(
            name="Exploration",
            description="Phase 1: Beam Search Thought Exploration"
        )
        self.explorer = explorer
        self.report_agent = report_agent
        self.add_output("explored_nodes")
        self.add_output("research_plan")

    async def execute(self, context: PipelineContext) -> PipelineResult:
        print("Phase 1: Beam Search Thought Exploration")
        print("-" * 40)

        stage = context.config.beam_search.stage
        root = Thought(content=context.query, metadata={"stage": stage, "index": 0})
        nodes = await self.explorer.explore(root, 0.0)

        summary = summarize_exploration(nodes)
        context.explored_nodes = nodes
        context.exploration_summary = summary

        print(f"Explored {summary['nodes_explored']} nodes, max depth {summary['max_depth_reached']}, "
              f"best score {summary['best_score']:.2f}")

        plan = None
        if self.report_agent is not None and len(nodes) > 1:
            plan = await self.report_agent.plan(context.query, nodes[0])
            context.research_plan = plan
            context.logger.log_info(
                f"Research plan: {len(plan.subtopics)} subtopics, {len(plan.queries)} queries"
                f"{' (fallback)' if plan.is_fallback else ''}",
                "ExplorationPipeline"
            )

        return PipelineResult(
            success=True,
            data={
                'beam_search_stats': {
                    'nodes_explored': summary['nodes_explored'],
                    'max_depth_reached': summary['max_depth_reached'],
                    'best_score': summary['best_score'],
                    'fallback_nodes': sum(1 for n in nodes if n.is_fallback),
                },
                'selected_thought': summary['best_node'],
                'depths': summary['depths'],
                'thought_tree': summary['thought_tree'],
                'research_plan': plan.to_dict() if plan else None,
            },
            metadata={'execution_id': self.explorer.last_execution_id}
        )
