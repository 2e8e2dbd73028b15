"""
Beam Search over a Tree of Thoughts

Depth- and width-bounded best-first exploration of a tree generated purely by an
expansion oracle. At every depth the whole frontier is expanded concurrently, the
children are ranked by score and only the top ``beam_width`` survive.

Key behaviours:
1. Failure isolation: one failing expansion never aborts the others
2. Fallback clones: if every expansion at a depth fails, the frontier is carried
   forward one level as ``is_fallback`` clones
3. Adaptive width: failures shrink the beam for that depth (never below
   ``min_beam_width``)
4. Cost budget: cooperative cutoff checked once per depth
"""

import asyncio
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, Sequence, TypeVar

from ..utils.debug_logger import null_logger
from ..utils.error_handling import report_error
from ..utils.text_utils import truncate_text


T = TypeVar("T")


def _short_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass(frozen=True)
class Thought:
    """Opaque thought content produced by an expansion oracle"""
    content: str
    score: Optional[float] = None
    confidence: Optional[float] = None
    evidence: Sequence[str] = ()
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=_short_id)


@dataclass(frozen=True)
class SearchNode(Generic[T]):
    """A point in the search tree. The root has depth 0 and no parent."""
    data: T
    score: float
    depth: int
    parent_id: Optional[str] = None
    is_fallback: bool = False
    id: str = field(default_factory=_short_id)

    def to_dict(self) -> Dict[str, Any]:
        data = self.data
        if isinstance(data, Thought):
            data = {"id": data.id, "content": data.content, "score": data.score,
                    "metadata": data.metadata}
        return {
            "id": self.id,
            "data": data,
            "score": self.score,
            "depth": self.depth,
            "parent_id": self.parent_id,
            "is_fallback": self.is_fallback,
        }


ExpandFn = Callable[[SearchNode], Awaitable[List[SearchNode]]]
ProgressCallback = Callable[[int, int, int, int], None]
CostFn = Callable[[List[SearchNode]], float]


@dataclass
class BeamSearchOptions:
    max_depth: int = 3
    beam_width: int = 3
    cost_budget: Optional[float] = None
    min_beam_width: int = 1
    progress_callback: Optional[ProgressCallback] = None
    logger: Optional[Callable[[str], None]] = None
    execution_id: Optional[str] = None
    # Cost charged per depth; defaults to one unit per frontier node advanced
    cost_fn: Optional[CostFn] = None


def _adopt(child: SearchNode, parent: SearchNode) -> SearchNode:
    """Force the tree invariants on a child returned by the oracle"""
    if child.depth == parent.depth + 1 and child.parent_id == parent.id:
        return child
    return replace(child, depth=parent.depth + 1, parent_id=parent.id)


async def beam_search(expand: ExpandFn, root_data: T, initial_score: float = 0.0,
                      options: BeamSearchOptions = None, error_logger=None) -> List[SearchNode]:
    """
    Run beam search from ``root_data`` and return every explored node (root included),
    sorted by score descending. Ties keep their discovery order.

    Oracle failures never propagate: they are reported and excluded; a depth where
    every expansion failed is bridged with fallback clones of the frontier.

    Args:
        expand: Async oracle returning scored children for a node
        root_data: Payload of the root node
        initial_score: Score of the root node
        options: BeamSearchOptions
        error_logger: DebugLogger receiving structured error events
    """
    options = options or BeamSearchOptions()
    execution_id = options.execution_id or uuid.uuid4().hex[:8]
    narrate = options.logger or (lambda message: None)
    cost_fn = options.cost_fn or (lambda frontier: len(frontier))

    root = SearchNode(data=root_data, score=initial_score, depth=0)
    explored: List[SearchNode] = [root]

    if options.max_depth <= 0 or options.beam_width <= 0:
        narrate(f"[Beam Search][{execution_id}] Nothing to explore (max_depth={options.max_depth}, "
                f"beam_width={options.beam_width})")
        return explored

    frontier: List[SearchNode] = [root]
    cumulative_cost = 0.0

    for depth in range(1, options.max_depth + 1):
        narrate(f"[Beam Search][{execution_id}] Exploring depth {depth}/{options.max_depth} "
                f"(frontier: {len(frontier)})")

        if not frontier:
            narrate(f"[Beam Search][{execution_id}] Stopping: frontier is empty")
            break

        if options.progress_callback:
            options.progress_callback(depth, options.max_depth, len(frontier), len(explored))

        results = await asyncio.gather(*(expand(node) for node in frontier), return_exceptions=True)

        candidates: List[SearchNode] = []
        failures = 0
        for parent, result in zip(frontier, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                failures += 1
                narrate(f"[Beam Search][{execution_id}] Expansion failed for {parent.id}: {result}")
                report_error('beam_search_expand_error', result, {
                    'depth': depth,
                    'max_depth': options.max_depth,
                    'execution_id': execution_id,
                    'frontier_size': len(frontier),
                    'node_id': parent.id,
                }, logger=error_logger)
                continue
            candidates.extend(_adopt(child, parent) for child in (result or []))

        narrate(f"[Beam Search][{execution_id}] Depth {depth} produced {len(candidates)} nodes "
                f"(failures: {failures})")

        if not candidates:
            narrate(f"[Beam Search][{execution_id}] No children produced, carrying the frontier forward")
            candidates = [
                replace(node, id=_short_id(), depth=depth, parent_id=node.id, is_fallback=True)
                for node in frontier
            ]

        # sorted() is stable, so equal scores keep discovery order
        ranked = sorted(candidates, key=lambda n: n.score, reverse=True)

        if failures:
            width = max(options.min_beam_width, options.beam_width - failures // 2)
        else:
            width = options.beam_width
        if width < options.beam_width:
            narrate(f"[Beam Search][{execution_id}] Beam narrowed {options.beam_width} -> {width} "
                    f"after {failures} failures")

        frontier = ranked[:width]
        explored.extend(frontier)

        if options.cost_budget is not None:
            cumulative_cost += cost_fn(frontier)
            if cumulative_cost > options.cost_budget:
                narrate(f"[Beam Search][{execution_id}] Cost budget exceeded ({cumulative_cost}), stopping")
                report_error('beam_search_budget_exceeded', "Cost budget exceeded", {
                    'depth': depth,
                    'max_depth': options.max_depth,
                    'execution_id': execution_id,
                    'cumulative_cost': cumulative_cost,
                    'budget': options.cost_budget,
                }, logger=error_logger)
                break

    narrate(f"[Beam Search][{execution_id}] Search finished: {len(explored)} nodes explored")
    return sorted(explored, key=lambda n: n.score, reverse=True)


class BeamSearchExplorer:
    """
    Configured entry point around ``beam_search``.

    Holds the BeamSearchConfig section and a DebugLogger, narrates the search into the
    session log and reports per-depth progress.
    """

    def __init__(self, expand: ExpandFn, config=None, logger=None, cost_fn: CostFn = None,
                 progress_callback: ProgressCallback = None):
        self.expand = expand
        self.config = config
        self.logger = logger or null_logger()
        self.cost_fn = cost_fn
        self.progress_callback = progress_callback
        self.last_execution_id: Optional[str] = None

    def _options(self, **overrides) -> BeamSearchOptions:
        cfg = self.config
        params = dict(
            max_depth=cfg.max_depth if cfg else 3,
            beam_width=cfg.beam_width if cfg else 3,
            min_beam_width=cfg.min_beam_width if cfg else 1,
            cost_budget=cfg.cost_budget if cfg else None,
            cost_fn=self.cost_fn,
            progress_callback=self._on_progress,
            logger=lambda message: self.logger.log_debug(message, "beam_search"),
        )
        params.update({k: v for k, v in overrides.items() if v is not None})
        return BeamSearchOptions(**params)

    def _on_progress(self, current_depth: int, max_depth: int, frontier_size: int, explored_count: int):
        self.logger.log_component_state("beam_search", {
            "current_depth": current_depth,
            "max_depth": max_depth,
            "frontier_size": frontier_size,
            "explored_nodes": explored_count,
        })
        if self.progress_callback:
            self.progress_callback(current_depth, max_depth, frontier_size, explored_count)

    async def explore(self, root_data: Any, initial_score: float = 0.0, **overrides) -> List[SearchNode]:
        """Explore from root_data; keyword overrides replace configured options"""
        options = self._options(**overrides)
        options.execution_id = options.execution_id or uuid.uuid4().hex[:8]
        self.last_execution_id = options.execution_id

        self.logger.log_info(
            f"Beam search {options.execution_id}: depth={options.max_depth}, width={options.beam_width}, "
            f"budget={options.cost_budget}",
            "beam_search"
        )
        nodes = await beam_search(self.expand, root_data, initial_score, options, error_logger=self.logger)

        fallback_count = sum(1 for n in nodes if n.is_fallback)
        if fallback_count:
            self.logger.log_warning(
                f"Beam search {options.execution_id} used {fallback_count} fallback nodes", "beam_search")
        self.logger.log_info(
            f"Beam search {options.execution_id} explored {len(nodes)} nodes, "
            f"best score {nodes[0].score:.2f}",
            "beam_search"
        )
        return nodes


def summarize_exploration(nodes: Sequence[SearchNode], top_per_depth: int = 3,
                          content_length: int = 100) -> Dict[str, Any]:
    """
    Summary of an explored node set: statistics, best node, the top nodes at each
    depth and a flattened thought tree.
    """
    if not nodes:
        return {
            "nodes_explored": 0,
            "max_depth_reached": 0,
            "best_score": None,
            "best_node": None,
            "depths": {},
            "thought_tree": [],
        }

    def content_of(node: SearchNode) -> str:
        data = node.data
        return data.content if isinstance(data, Thought) else str(data)

    ranked = sorted(nodes, key=lambda n: n.score, reverse=True)
    best = ranked[0]
    max_depth = max(n.depth for n in nodes)

    depths = {}
    for depth in range(1, max_depth + 1):
        at_depth = [n for n in ranked if n.depth == depth]
        if at_depth:
            depths[depth] = {
                "count": len(at_depth),
                "top": [
                    {"id": n.id, "score": n.score, "content": content_of(n), "is_fallback": n.is_fallback}
                    for n in at_depth[:top_per_depth]
                ],
            }

    return {
        "nodes_explored": len(nodes),
        "max_depth_reached": max_depth,
        "best_score": best.score,
        "best_node": {
            "id": best.id,
            "content": content_of(best),
            "score": best.score,
            "depth": best.depth,
        },
        "depths": depths,
        "thought_tree": [
            {
                "id": n.id,
                "content": truncate_text(content_of(n), content_length),
                "score": n.score,
                "depth": n.depth,
                "parent_id": n.parent_id,
            }
            for n in nodes
        ],
    }
