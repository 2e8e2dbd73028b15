"""
Thought graph data model and update rules.
"""

from .thought_graph import (
    ThoughtGraph,
    ThoughtGraphNode,
    NodeConnection,
    SynthesizedThought,
    NetworkState,
    create_thought_node,
    create_node_connection,
    create_synthesized_thought,
    update_connection_strength_hebbian,
    prune_connections,
    calculate_node_activity,
    calculate_network_state,
    thought_id_for,
)

__all__ = [
    'ThoughtGraph',
    'ThoughtGraphNode',
    'NodeConnection',
    'SynthesizedThought',
    'NetworkState',
    'create_thought_node',
    'create_node_connection',
    'create_synthesized_thought',
    'update_connection_strength_hebbian',
    'prune_connections',
    'calculate_node_activity',
    'calculate_network_state',
    'thought_id_for',
]
