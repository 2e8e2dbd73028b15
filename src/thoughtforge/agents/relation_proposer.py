"""
Relation Proposer

LLM-backed collaborator that proposes connections between thought nodes and new
thoughts synthesized from connected nodes. Output is returned as raw partial
records; the aggregation engine normalizes and filters them.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

from .base_agent import BaseAgent
from ..graph.thought_graph import NodeConnection, ThoughtGraphNode
from ..prompts.aggregation_prompts import RELATION_PROPOSAL_SYSTEM_PROMPT, RELATION_PROPOSAL_USER_PROMPT
from ..utils.error_handling import AggregationProposalError, report_error
from ..utils.text_utils import get_field, safe_json_parse


@dataclass
class RelationProposal:
    connections: List[Dict[str, Any]] = field(default_factory=list)
    synthesized_thoughts: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_value(cls, value: Any) -> "RelationProposal":
        """Accept a RelationProposal or a dict with camelCase or snake_case keys"""
        if isinstance(value, cls):
            return value
        if not isinstance(value, dict):
            raise AggregationProposalError(
                f"Relation proposal must be an object, got {type(value).__name__}")

        connections = get_field(value, "connections")
        synthesized = get_field(value, "synthesized_thoughts")
        if connections is None or synthesized is None:
            raise AggregationProposalError(
                "Relation proposal must contain 'connections' and 'synthesizedThoughts'")
        if not isinstance(connections, list) or not isinstance(synthesized, list):
            raise AggregationProposalError("Relation proposal fields must be lists")
        return cls(connections=connections, synthesized_thoughts=synthesized)


class LLMRelationProposer(BaseAgent):
    """Ask the model which thoughts belong together and what they add up to"""

    def __init__(self, llm_interface, logger=None, max_tokens: int = None):
        super().__init__("LLMRelationProposer", llm_interface, logger)
        self.max_tokens = max_tokens

    async def __call__(self, nodes: Sequence[ThoughtGraphNode], query: str,
                       prior_connections: Sequence[NodeConnection]) -> RelationProposal:
        return await self.propose(nodes, query, prior_connections)

    async def propose(self, nodes: Sequence[ThoughtGraphNode], query: str,
                      prior_connections: Sequence[NodeConnection]) -> RelationProposal:
        node_lines = "\n\n".join(
            f"Node ID: {n.id}\nContent: {n.content}\nScore: {n.score}" for n in nodes
        )
        existing = "\n".join(
            f"- {c.source_node_id} <-> {c.target_node_id} (strength {c.strength:.2f})"
            for c in prior_connections
        ) or "(none)"

        user_prompt = RELATION_PROPOSAL_USER_PROMPT.format(
            query=query, nodes=node_lines, existing_connections=existing
        )
        self.logger.log_info(f"Requesting relation proposals for {len(nodes)} nodes", "relation_proposer")

        response = await self.llm.generate_with_system_prompt(
            RELATION_PROPOSAL_SYSTEM_PROMPT, user_prompt,
            max_tokens=self.max_tokens, caller="relation_proposer"
        )

        parsed = safe_json_parse(response)
        if parsed is None:
            report_error('aggregation_proposal_parse_error', "Relation proposal is not valid JSON",
                         {'raw_text': (response or "")[:500]}, logger=self.logger)
            raise AggregationProposalError("Relation proposal is not valid JSON")

        proposal = RelationProposal.from_value(parsed)
        self.logger.log_info(
            f"Received {len(proposal.connections)} connections and "
            f"{len(proposal.synthesized_thoughts)} synthesized thoughts",
            "relation_proposer"
        )
        return proposal
