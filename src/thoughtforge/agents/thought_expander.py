"""
Thought Expander

LLM-backed expansion oracle for beam search. For a node it generates up to
``branching_factor`` follow-on thoughts for the configured stage and scores each one
as the mean of the stage's evaluation criteria (0-10).
"""

from typing import Dict, List, Optional, Sequence

from .base_agent import BaseAgent
from .beam_search import SearchNode, Thought
from ..prompts.expansion_prompts import (
    STAGE_CRITERIA, STAGE_INSTRUCTIONS, STAGE_THOUGHT_TYPES,
    THOUGHT_GENERATION_SYSTEM_PROMPT, THOUGHT_GENERATION_USER_PROMPT,
    THOUGHT_EVALUATION_SYSTEM_PROMPT, THOUGHT_EVALUATION_USER_PROMPT,
)
from ..utils.error_handling import ExpansionError, handle_json_parse_failure
from ..utils.text_utils import clamp, coerce_float, extract_bullet_points, safe_json_parse


NEUTRAL_SCORE = 5.0


class ThoughtExpander(BaseAgent):
    """Expansion oracle: generate, then evaluate, follow-on thoughts"""

    def __init__(self, llm_interface, query: str, stage: str = "planning", branching_factor: int = 5,
                 criteria: Sequence[str] = None, logger=None):
        super().__init__("ThoughtExpander", llm_interface, logger)
        if stage not in STAGE_CRITERIA:
            raise ValueError(f"Unknown stage '{stage}', expected one of {sorted(STAGE_CRITERIA)}")
        self.query = query
        self.stage = stage
        self.branching_factor = branching_factor
        self.criteria = list(criteria or STAGE_CRITERIA[stage])

    async def __call__(self, node: SearchNode) -> List[SearchNode]:
        return await self.expand(node)

    async def expand(self, node: SearchNode) -> List[SearchNode]:
        """Generate and score children of ``node``. Raises ExpansionError on unusable output."""
        contents = await self.generate_thoughts(node)
        if not contents:
            raise ExpansionError(f"No thoughts generated for node {node.id}")

        evaluations = await self.evaluate_thoughts(contents)

        children = []
        for index, (content, evaluation) in enumerate(zip(contents, evaluations)):
            metadata = {"stage": self.stage, "index": index}
            if evaluation.get("score_fallback"):
                metadata["score_fallback"] = True
            thought = Thought(
                content=content,
                score=evaluation["score"],
                metadata=metadata,
            )
            children.append(SearchNode(
                data=thought,
                score=evaluation["score"],
                depth=node.depth + 1,
                parent_id=node.id,
            ))

        self.logger.log_debug(
            f"Expanded node {node.id} at depth {node.depth} into {len(children)} thoughts "
            f"(scores: {', '.join(f'{c.score:.2f}' for c in children)})",
            "thought_expander"
        )
        return children

    async def generate_thoughts(self, node: SearchNode) -> List[str]:
        current = node.data.content if isinstance(node.data, Thought) else str(node.data)
        user_prompt = THOUGHT_GENERATION_USER_PROMPT.format(
            query=self.query,
            depth=node.depth,
            current_thought=current,
            max_thoughts=self.branching_factor,
            thought_type=STAGE_THOUGHT_TYPES[self.stage],
            stage_instructions=STAGE_INSTRUCTIONS[self.stage],
        )
        response = await self.llm.generate_with_system_prompt(
            THOUGHT_GENERATION_SYSTEM_PROMPT, user_prompt, caller="thought_expander"
        )
        return self._parse_thoughts(response)[:self.branching_factor]

    def _parse_thoughts(self, response: str) -> List[str]:
        parsed = safe_json_parse(response)
        if isinstance(parsed, dict):
            parsed = parsed.get("thoughts")
        if isinstance(parsed, list):
            contents = []
            for item in parsed:
                content = item.get("content") if isinstance(item, dict) else item
                if isinstance(content, str) and content.strip():
                    contents.append(content.strip())
            if contents:
                return contents

        # Numbered or bulleted prose is still usable
        points = extract_bullet_points(response or "", max_points=self.branching_factor)
        if points:
            self.logger.log_warning("Thought generation was not JSON, using bullet points", "thought_expander")
            return points
        raise ExpansionError(f"Could not parse generated thoughts: {(response or '')[:200]}")

    async def evaluate_thoughts(self, contents: List[str]) -> List[Dict]:
        """Score each thought; a response that cannot be parsed yields the neutral score"""
        candidates = "\n\n".join(f"[{i}] {content}" for i, content in enumerate(contents))
        user_prompt = THOUGHT_EVALUATION_USER_PROMPT.format(
            query=self.query,
            criteria="\n".join(f"- {c}" for c in self.criteria),
            candidates=candidates,
            criteria_example=", ".join(f'"{c}": 7' for c in self.criteria),
        )
        response = await self.llm.generate_with_system_prompt(
            THOUGHT_EVALUATION_SYSTEM_PROMPT, user_prompt, caller="thought_evaluator"
        )

        by_index = self._parse_evaluations(response)
        if by_index is None:
            handle_json_parse_failure(
                "Thought evaluation is not valid JSON", response,
                {"stage": self.stage, "candidates": len(contents)}, logger=self.logger
            )
            by_index = {}

        evaluations = []
        for index in range(len(contents)):
            score = by_index.get(index)
            if score is None:
                evaluations.append({"score": NEUTRAL_SCORE, "score_fallback": True})
            else:
                evaluations.append({"score": score})
        return evaluations

    def _parse_evaluations(self, response: str) -> Optional[Dict[int, float]]:
        parsed = safe_json_parse(response)
        if isinstance(parsed, dict):
            parsed = parsed.get("evaluations")
        if not isinstance(parsed, list):
            return None

        scores = {}
        for position, item in enumerate(parsed):
            if not isinstance(item, dict):
                continue
            index = item.get("index", position)
            if not isinstance(index, int):
                continue
            criteria_scores = item.get("criteria_scores") or item.get("criteriaScores") or {}
            if not isinstance(criteria_scores, dict):
                criteria_scores = {}
            values = [coerce_float(criteria_scores.get(c)) for c in self.criteria]
            values = [v for v in values if v is not None]
            if not values and coerce_float(item.get("score")) is not None:
                values = [coerce_float(item.get("score"))]
            if values:
                scores[index] = clamp(sum(values) / len(values), 0.0, 10.0)
        return scores

