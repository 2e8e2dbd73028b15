"""
Aggregation Pipeline

Consolidates explored thoughts into a thought graph over several aggregation
cycles, threading connections, cycle count and persistent state between them.
"""

from typing import List

from .base_pipeline import BasePipeline, PipelineResult, PipelineContext
from ..agents.aggregation_engine import GraphAggregationEngine
from ..agents.beam_search import SearchNode, Thought
from ..graph.thought_graph import ThoughtGraph


def leaf_thoughts(nodes: List[SearchNode]) -> List[str]:
    """Contents of explored leaves; all non-root thoughts if fewer than two leaves"""
    parents = {n.parent_id for n in nodes if n.parent_id}
    non_root = [n for n in nodes if n.depth > 0]
    leaves = [n for n in non_root if n.id not in parents]
    chosen = leaves if len(leaves) >= 2 else non_root

    contents = []
    for node in chosen:
        contents.append(node.data.content if isinstance(node.data, Thought) else str(node.data))
    return contents


class AggregationPipeline(BasePipeline):
    """
    Pipeline for multi-cycle graph aggregation
    """

    def __init__(self, engine: GraphAggregationEngine, cycles: int = 1):
        super().__init__(
            name="Aggregation",
            description="Phase 2: Thought Graph Aggregation"
        )
        self.engine = engine
        self.cycles = max(1, cycles)
        self.add_dependency("explored_nodes")
        self.add_output("aggregation_results")

    async def execute(self, context: PipelineContext) -> PipelineResult:
        print("Phase 2: Thought Graph Aggregation")
        print("-" * 40)

        thoughts = leaf_thoughts(context.explored_nodes)
        connections = []
        cycle_count = 0
        persistent_state = {}
        degraded_cycles = 0

        for _ in range(self.cycles):
            result = await self.engine.run_cycle(
                thoughts, context.query, connections, cycle_count, persistent_state
            )
            context.aggregation_results.append(result)
            if result.degraded:
                degraded_cycles += 1

            connections = result.connections
            cycle_count = result.cycle_count
            persistent_state = result.persistent_state
            # Synthesized thoughts join the next cycle's batch
            thoughts = list(dict.fromkeys(thoughts + [s.content for s in result.synthesized_thoughts]))

            print(f"Cycle {cycle_count}: {len(result.connections)} connections, "
                  f"{len(result.synthesized_thoughts)} synthesized thoughts"
                  f"{' (degraded)' if result.degraded else ''}")

        final = context.latest_aggregation
        graph = ThoughtGraph.from_result(final)

        if context.config.logging.debug:
            export_path = graph.export_debug_json(context.config.logging.log_dir, label="aggregation")
            context.logger.log_debug(f"Graph exported to {export_path}", "AggregationPipeline")

        return PipelineResult(
            success=True,
            data={
                'graph_summary': graph.get_graph_summary(),
                'synthesized_thoughts': [s.to_dict() for s in final.synthesized_thoughts],
                'strongest_connections': [c.to_dict() for c in graph.strongest_connections()],
                'cycles_run': len(context.aggregation_results),
                'degraded_cycles': degraded_cycles,
                'persistent_state': final.persistent_state,
            },
            metadata={'cycle_count': final.cycle_count}
        )
