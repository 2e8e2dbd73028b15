"""
Thought Graph Model

Nodes, weighted connections and synthesized thoughts produced by the aggregation
engine, together with the rules that evolve the graph between cycles:

1. Hebbian reinforcement: strength grows with the product of endpoint activities
2. Pruning: weak connections that have been idle too long are removed
3. Node activity: a node's own score blended with its neighbourhood
4. Network state: aggregate metrics recomputed on demand

Nodes are never deleted; pruning only removes connections.
"""

import json
import uuid
from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import networkx as nx

from ..utils.text_utils import clamp, truncate_text


DEFAULT_LEARNING_RATE = 0.1
DEFAULT_PRUNING_THRESHOLD = 0.2
DEFAULT_INACTIVITY_WINDOW = timedelta(days=7)
DEFAULT_DECAY_FACTOR = 0.9

# Namespace for content-derived node ids
THOUGHT_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "thoughtforge/thought")


@dataclass(frozen=True)
class ThoughtGraphNode:
    id: str
    content: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "score": self.score,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class NodeConnection:
    """Weighted, undirected association between two thought nodes"""
    id: str
    source_node_id: str
    target_node_id: str
    strength: float
    reasoning: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    last_activated: Optional[datetime] = None
    activation_count: int = 1

    def __post_init__(self):
        object.__setattr__(self, "strength", clamp(float(self.strength)))
        if self.activation_count < 1:
            object.__setattr__(self, "activation_count", 1)

    @property
    def pair(self) -> frozenset:
        return frozenset((self.source_node_id, self.target_node_id))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source_node_id": self.source_node_id,
            "target_node_id": self.target_node_id,
            "strength": self.strength,
            "reasoning": self.reasoning,
            "created_at": self.created_at.isoformat(),
            "last_activated": self.last_activated.isoformat() if self.last_activated else None,
            "activation_count": self.activation_count,
        }


@dataclass(frozen=True)
class SynthesizedThought:
    id: str
    node_ids: Sequence[str]
    content: str
    confidence: float
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        object.__setattr__(self, "node_ids", tuple(dict.fromkeys(self.node_ids)))
        object.__setattr__(self, "confidence", clamp(float(self.confidence)))
        if len(self.node_ids) < 2:
            raise ValueError("A synthesized thought needs at least two distinct source nodes")

    def to_node(self) -> ThoughtGraphNode:
        """Materialize as a regular graph node with score = confidence * 10"""
        return ThoughtGraphNode(
            id=self.id,
            content=self.content,
            score=self.confidence * 10,
            metadata={"type": "synthesized", "source_node_ids": list(self.node_ids)},
            created_at=self.created_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "node_ids": list(self.node_ids),
            "content": self.content,
            "confidence": self.confidence,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class NetworkState:
    node_count: int = 0
    connection_count: int = 0
    average_strength: float = 0.0
    average_score: float = 0.0
    connection_density: float = 0.0
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_count": self.node_count,
            "connection_count": self.connection_count,
            "average_strength": self.average_strength,
            "average_score": self.average_score,
            "connection_density": self.connection_density,
            "timestamp": self.timestamp.isoformat(),
        }


def thought_id_for(content: str) -> str:
    """Stable id for a thought string, so the same thought keeps its identity across cycles"""
    return f"thought-{uuid.uuid5(THOUGHT_NAMESPACE, content)}"


def create_thought_node(content: str, score: float, metadata: Dict[str, Any] = None,
                        node_id: str = None) -> ThoughtGraphNode:
    return ThoughtGraphNode(
        id=node_id or str(uuid.uuid4()),
        content=content,
        score=max(0.0, min(10.0, float(score))),
        metadata=dict(metadata or {}),
    )


def create_node_connection(source_node_id: str, target_node_id: str, strength: float,
                           reasoning: str = None, now: datetime = None) -> NodeConnection:
    now = now or datetime.now()
    return NodeConnection(
        id=str(uuid.uuid4()),
        source_node_id=source_node_id,
        target_node_id=target_node_id,
        strength=strength,
        reasoning=reasoning,
        created_at=now,
        last_activated=now,
        activation_count=1,
    )


def create_synthesized_thought(node_ids: Sequence[str], content: str, confidence: float,
                               now: datetime = None) -> SynthesizedThought:
    return SynthesizedThought(
        id=f"synth-{uuid.uuid4()}",
        node_ids=node_ids,
        content=content,
        confidence=confidence,
        created_at=now or datetime.now(),
    )


def update_connection_strength_hebbian(connection: NodeConnection, source_activity: float,
                                       target_activity: float,
                                       learning_rate: float = DEFAULT_LEARNING_RATE,
                                       now: datetime = None) -> NodeConnection:
    """
    Reinforce a connection proportionally to the activity of both endpoints.

    delta = learning_rate * source_activity * target_activity. Strength is clamped to
    [0, 1]; there is no decay term here, decay only happens through pruning.
    Returns a new connection with last_activated refreshed and activation_count + 1.
    """
    delta = learning_rate * source_activity * target_activity
    return replace(
        connection,
        strength=clamp(connection.strength + delta),
        last_activated=now or datetime.now(),
        activation_count=connection.activation_count + 1,
    )


def prune_connections(connections: Iterable[NodeConnection],
                      pruning_threshold: float = DEFAULT_PRUNING_THRESHOLD,
                      inactivity_window: timedelta = DEFAULT_INACTIVITY_WINDOW,
                      now: datetime = None) -> List[NodeConnection]:
    """
    Drop connections that are both weak (strength < threshold) and idle for longer
    than the inactivity window. Strong or recently active connections always stay.
    """
    now = now or datetime.now()
    kept = []
    for conn in connections:
        last_seen = conn.last_activated or conn.created_at or now
        weak = conn.strength < pruning_threshold
        idle = (now - last_seen) > inactivity_window
        if not (weak and idle):
            kept.append(conn)
    return kept


def calculate_node_activity(node: ThoughtGraphNode, connections: Sequence[NodeConnection],
                            all_nodes: Sequence[ThoughtGraphNode],
                            decay_factor: float = DEFAULT_DECAY_FACTOR) -> float:
    """
    Activity of a node in [0, 1]-ish scale.

    Isolated nodes return score / 10 as is. Connected nodes blend their own score,
    the mean incident strength and the mean strength-weighted neighbour score, then
    apply the decay factor. A neighbour missing from all_nodes contributes 0.
    """
    base_activity = node.score / 10
    incident = [c for c in connections
                if c.source_node_id == node.id or c.target_node_id == node.id]
    if not incident:
        return base_activity

    scores = {n.id: n.score for n in all_nodes}
    avg_strength = sum(c.strength for c in incident) / len(incident)

    weighted_total = 0.0
    for conn in incident:
        neighbor_id = conn.target_node_id if conn.source_node_id == node.id else conn.source_node_id
        if neighbor_id in scores:
            weighted_total += (scores[neighbor_id] / 10) * conn.strength
    avg_neighbor = weighted_total / len(incident)

    return decay_factor * (0.4 * base_activity + 0.3 * avg_strength + 0.3 * avg_neighbor)


def calculate_network_state(nodes: Sequence[ThoughtGraphNode],
                            connections: Sequence[NodeConnection],
                            now: datetime = None) -> NetworkState:
    node_count = len(nodes)
    connection_count = len(connections)
    return NetworkState(
        node_count=node_count,
        connection_count=connection_count,
        average_strength=(sum(c.strength for c in connections) / connection_count
                          if connection_count else 0.0),
        average_score=(sum(n.score for n in nodes) / node_count if node_count else 0.0),
        connection_density=(connection_count / (node_count * (node_count - 1) / 2)
                            if node_count > 1 else 0.0),
        timestamp=now or datetime.now(),
    )


class ThoughtGraph:
    """
    Read-side container over one aggregation snapshot.

    Wraps nodes, connections and synthesized thoughts, converts them to networkx for
    analysis and exports them for debugging.
    """

    def __init__(self, nodes: Sequence[ThoughtGraphNode] = (),
                 connections: Sequence[NodeConnection] = (),
                 synthesized_thoughts: Sequence[SynthesizedThought] = ()):
        self.nodes: Dict[str, ThoughtGraphNode] = {n.id: n for n in nodes}
        self.connections: List[NodeConnection] = list(connections)
        self.synthesized_thoughts: List[SynthesizedThought] = list(synthesized_thoughts)

    @classmethod
    def from_result(cls, result) -> "ThoughtGraph":
        """Build from an AggregationResult (nodes already include synthesized nodes)"""
        return cls(result.nodes, result.connections, result.synthesized_thoughts)

    def to_networkx(self) -> nx.Graph:
        graph = nx.Graph()
        for node in self.nodes.values():
            graph.add_node(node.id, content=node.content, score=node.score,
                           node_type=node.metadata.get("type", "initial"))
        for conn in self.connections:
            # Connections may reference nodes from earlier cycles
            for endpoint in (conn.source_node_id, conn.target_node_id):
                if endpoint not in graph:
                    graph.add_node(endpoint, content=None, score=0.0, node_type="external")
            graph.add_edge(conn.source_node_id, conn.target_node_id,
                           weight=conn.strength, connection_id=conn.id,
                           activation_count=conn.activation_count)
        return graph

    def network_state(self, now: datetime = None) -> NetworkState:
        return calculate_network_state(list(self.nodes.values()), self.connections, now=now)

    def node_activities(self, decay_factor: float = DEFAULT_DECAY_FACTOR) -> Dict[str, float]:
        all_nodes = list(self.nodes.values())
        return {
            node.id: calculate_node_activity(node, self.connections, all_nodes, decay_factor)
            for node in all_nodes
        }

    def strongest_connections(self, limit: int = 5) -> List[NodeConnection]:
        return sorted(self.connections, key=lambda c: c.strength, reverse=True)[:limit]

    def get_graph_summary(self) -> Dict[str, Any]:
        """Get graph statistics"""
        node_types = defaultdict(int)
        for node in self.nodes.values():
            node_types[node.metadata.get("type", "initial")] += 1

        graph = self.to_networkx()
        return {
            "num_nodes": len(self.nodes),
            "num_connections": len(self.connections),
            "num_synthesized": len(self.synthesized_thoughts),
            "node_types": dict(node_types),
            "connected_components": nx.number_connected_components(graph) if len(graph) else 0,
            "network_state": self.network_state().to_dict(),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes.values()],
            "connections": [c.to_dict() for c in self.connections],
            "synthesized_thoughts": [s.to_dict() for s in self.synthesized_thoughts],
            "network_state": self.network_state().to_dict(),
        }

    def export_debug_json(self, log_dir: str = "logs", label: str = "graph") -> Path:
        """Export the graph to logs/graph/<timestamp>_<label>.json"""
        graph_dir = Path(log_dir) / "graph"
        graph_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        export_file = graph_dir / f"{timestamp}_{label}.json"

        payload = self.to_dict()
        payload["strongest_connections"] = [
            {
                "from": truncate_text(self.nodes[c.source_node_id].content, 80)
                if c.source_node_id in self.nodes else c.source_node_id,
                "to": truncate_text(self.nodes[c.target_node_id].content, 80)
                if c.target_node_id in self.nodes else c.target_node_id,
                "strength": c.strength,
            }
            for c in self.strongest_connections()
        ]
        with open(export_file, 'w', encoding='utf-8') as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        return export_file
