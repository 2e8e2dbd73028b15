"""
Graph Aggregation Engine

Turns a flat batch of thought strings plus carried-over connections into an updated
thought graph, one cycle per call:

1. Build one node per thought (stable content-derived ids)
2. From the second cycle on, reinforce prior connections by node activity and prune
3. Ask the relation proposer for new connections and synthesized thoughts
4. Normalize and filter the proposals (unknown nodes, self-loops, duplicates)
5. Materialize synthesized thoughts as nodes and recompute the network state

The engine keeps no state between calls. ``cycle_count`` and ``persistent_state``
are returned to the caller, who threads them into the next cycle.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Set

from .relation_proposer import RelationProposal
from ..graph.thought_graph import (
    NetworkState, NodeConnection, SynthesizedThought, ThoughtGraphNode,
    calculate_network_state, calculate_node_activity, create_node_connection,
    create_synthesized_thought, create_thought_node, prune_connections,
    thought_id_for, update_connection_strength_hebbian,
)
from ..utils.config import AggregationConfig
from ..utils.debug_logger import null_logger
from ..utils.error_handling import report_error
from ..utils.text_utils import coerce_float, get_field


ProposerFn = Callable[[Sequence[ThoughtGraphNode], str, Sequence[NodeConnection]], Awaitable[Any]]

DEFAULT_SYNTHESIS_CONFIDENCE = 0.5


@dataclass
class AggregationResult:
    nodes: List[ThoughtGraphNode]
    connections: List[NodeConnection]
    synthesized_thoughts: List[SynthesizedThought]
    network_state: NetworkState
    cycle_count: int
    persistent_state: Dict[str, Any] = field(default_factory=dict)
    degraded: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "connections": [c.to_dict() for c in self.connections],
            "synthesized_thoughts": [s.to_dict() for s in self.synthesized_thoughts],
            "network_state": self.network_state.to_dict(),
            "cycle_count": self.cycle_count,
            "persistent_state": self.persistent_state,
            "degraded": self.degraded,
            "error": self.error,
        }


class GraphAggregationEngine:
    """Runs aggregation cycles against an external relation proposer"""

    def __init__(self, proposer: ProposerFn, config: AggregationConfig = None, logger=None):
        self.proposer = proposer
        self.config = config or AggregationConfig()
        self.logger = logger or null_logger()

    @property
    def inactivity_window(self) -> timedelta:
        return timedelta(hours=self.config.inactivity_window_hours)

    def build_nodes(self, thoughts: Sequence[str], cycle_count: int) -> List[ThoughtGraphNode]:
        unique = [t for t in dict.fromkeys(thoughts) if isinstance(t, str) and t.strip()]
        return [
            create_thought_node(
                thought,
                self.config.default_node_score,
                {"type": "initial", "cycle": cycle_count},
                node_id=thought_id_for(thought),
            )
            for thought in unique
        ]

    async def run_cycle(self, thoughts: Sequence[str], query: str,
                        prior_connections: Sequence[NodeConnection] = (),
                        cycle_count: int = 0,
                        persistent_state: Dict[str, Any] = None,
                        now: datetime = None) -> AggregationResult:
        now = now or datetime.now()
        prior = list(prior_connections or [])
        state = dict(persistent_state or {})
        nodes = self.build_nodes(thoughts, cycle_count)

        self.logger.log_info(
            f"Aggregation cycle {cycle_count}: {len(nodes)} thoughts, {len(prior)} prior connections",
            "aggregation_engine"
        )

        if len(nodes) < 2:
            self.logger.log_info("Fewer than two thoughts, nothing to connect", "aggregation_engine")
            state.update(last_cycle_timestamp=now.isoformat(), total_cycles=cycle_count + 1)
            return AggregationResult(
                nodes=nodes,
                connections=[],
                synthesized_thoughts=[],
                network_state=calculate_network_state(nodes, [], now=now),
                cycle_count=cycle_count + 1,
                persistent_state=state,
            )

        activities = {
            node.id: calculate_node_activity(node, prior, nodes, self.config.decay_factor)
            for node in nodes
        }
        working = self._reinforce_and_prune(prior, activities, cycle_count, now)

        try:
            raw_proposal = await self.proposer(nodes, query, working)
            proposal = RelationProposal.from_value(raw_proposal)
        except Exception as e:
            return self._degraded_result(nodes, prior, cycle_count, state, e, now)

        node_ids = {n.id for n in nodes}
        new_connections = self._accept_connections(proposal.connections, working, node_ids, now)
        synthesized = self._accept_syntheses(proposal.synthesized_thoughts, node_ids, now)

        merged = working + new_connections
        all_nodes = nodes + [s.to_node() for s in synthesized]
        network_state = calculate_network_state(all_nodes, merged, now=now)

        self._log_changes(prior, merged)

        state.pop("last_error", None)
        state.update(
            last_cycle_timestamp=now.isoformat(),
            total_cycles=cycle_count + 1,
            node_activities=activities,
        )

        self.logger.log_info(
            f"Aggregation cycle {cycle_count} complete: {len(merged)} connections "
            f"({len(new_connections)} new), {len(synthesized)} synthesized thoughts, "
            f"density {network_state.connection_density:.3f}",
            "aggregation_engine"
        )
        return AggregationResult(
            nodes=all_nodes,
            connections=merged,
            synthesized_thoughts=synthesized,
            network_state=network_state,
            cycle_count=cycle_count + 1,
            persistent_state=state,
        )

    def _reinforce_and_prune(self, prior: List[NodeConnection], activities: Dict[str, float],
                             cycle_count: int, now: datetime) -> List[NodeConnection]:
        if cycle_count <= 0 or not prior:
            return list(prior)

        reinforced = []
        for conn in prior:
            source_activity = activities.get(conn.source_node_id, 0.0)
            target_activity = activities.get(conn.target_node_id, 0.0)
            if source_activity > 0 and target_activity > 0:
                conn = update_connection_strength_hebbian(
                    conn, source_activity, target_activity, self.config.learning_rate, now=now
                )
            reinforced.append(conn)

        kept = prune_connections(reinforced, self.config.pruning_threshold, self.inactivity_window, now=now)
        if len(kept) < len(reinforced):
            self.logger.log_info(f"Pruned {len(reinforced) - len(kept)} weak connections", "aggregation_engine")
        return kept

    def _accept_connections(self, proposed: List[Any], existing: List[NodeConnection],
                            node_ids: Set[str], now: datetime) -> List[NodeConnection]:
        seen = {c.pair for c in existing}
        accepted = []
        for item in proposed:
            if not isinstance(item, dict):
                self.logger.log_warning(f"Skipping malformed connection: {item!r}", "aggregation_engine")
                continue
            source = str(get_field(item, "source_node_id", default=""))
            target = str(get_field(item, "target_node_id", default=""))
            strength = coerce_float(get_field(item, "strength"))
            if source not in node_ids or target not in node_ids or strength is None:
                self.logger.log_warning(f"Skipping connection with unknown nodes or strength: {item}",
                                        "aggregation_engine")
                continue
            if source == target:
                continue
            pair = frozenset((source, target))
            if pair in seen:
                continue
            seen.add(pair)

            reasoning = get_field(item, "reasoning")
            accepted.append(create_node_connection(
                source, target, strength, reasoning=str(reasoning) if reasoning else None, now=now
            ))
        return accepted

    def _accept_syntheses(self, proposed: List[Any], node_ids: Set[str],
                          now: datetime) -> List[SynthesizedThought]:
        accepted = []
        for item in proposed:
            if not isinstance(item, dict):
                continue
            content = get_field(item, "content")
            source_ids = get_field(item, "node_ids", "source_node_ids") or []
            if not isinstance(content, str) or not content.strip() or not isinstance(source_ids, list):
                self.logger.log_warning(f"Skipping malformed synthesized thought: {item}", "aggregation_engine")
                continue
            known = [i for i in dict.fromkeys(map(str, source_ids)) if i in node_ids]
            if len(known) < 2:
                self.logger.log_warning("Skipping synthesized thought with fewer than two known sources",
                                        "aggregation_engine")
                continue
            confidence = coerce_float(get_field(item, "confidence"), DEFAULT_SYNTHESIS_CONFIDENCE)
            accepted.append(create_synthesized_thought(known, content.strip(), confidence, now=now))
        return accepted

    def _degraded_result(self, nodes: List[ThoughtGraphNode], prior: List[NodeConnection],
                         cycle_count: int, state: Dict[str, Any], error: Exception,
                         now: datetime) -> AggregationResult:
        """Proposer failure: keep the prior baseline so the cycle can be retried"""
        self.logger.log_error("Relation proposer failed, keeping prior connections",
                              "aggregation_engine", error)
        report_error('aggregation_proposal_failure', error, {
            'cycle_count': cycle_count,
            'node_count': len(nodes),
            'prior_connection_count': len(prior),
        }, logger=self.logger)

        state["last_error"] = str(error)
        return AggregationResult(
            nodes=nodes,
            connections=prior,
            synthesized_thoughts=[],
            network_state=calculate_network_state(nodes, prior, now=now),
            cycle_count=cycle_count,
            persistent_state=state,
            degraded=True,
            error=str(error),
        )

    def _log_changes(self, prior: List[NodeConnection], current: List[NodeConnection]):
        before = {c.id: c for c in prior}
        after = {c.id: c for c in current}

        for conn_id, conn in after.items():
            old = before.get(conn_id)
            if old is not None and conn.activation_count > old.activation_count:
                self.logger.log_debug(
                    f"Reinforced {conn.source_node_id} <-> {conn.target_node_id}: "
                    f"{old.strength:.3f} -> {conn.strength:.3f} (+{conn.strength - old.strength:.3f})",
                    "aggregation_engine"
                )
        for conn_id in before.keys() - after.keys():
            conn = before[conn_id]
            self.logger.log_debug(
                f"Pruned {conn.source_node_id} <-> {conn.target_node_id} (strength {conn.strength:.3f})",
                "aggregation_engine"
            )
