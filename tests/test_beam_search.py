"""Tests for beam search exploration."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from thoughtforge.agents.beam_search import (
    BeamSearchExplorer,
    BeamSearchOptions,
    SearchNode,
    Thought,
    beam_search,
    summarize_exploration,
)
from thoughtforge.utils.config import BeamSearchConfig


def scored_children(*scores):
    """Oracle that gives every node one child per score."""
    async def expand(node):
        return [
            SearchNode(data=f"{node.data}.{i}", score=score, depth=node.depth + 1, parent_id=node.id)
            for i, score in enumerate(scores)
        ]
    return expand


async def always_reject(node):
    raise RuntimeError("model unavailable")


def assert_tree_invariants(nodes):
    by_id = {n.id: n for n in nodes}
    roots = [n for n in nodes if n.depth == 0]
    assert len(roots) == 1
    assert roots[0].parent_id is None
    for node in nodes:
        if node.depth > 0:
            assert node.parent_id in by_id
            assert by_id[node.parent_id].depth == node.depth - 1


class StaggeredOracle:
    """Oracle whose earlier siblings finish last, recording overlap and completion order."""

    def __init__(self):
        self.in_flight = 0
        self.peak = 0
        self.completed = []

    async def __call__(self, node):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            if node.depth == 1:
                index = int(node.data.rsplit(".", 1)[1])
                await asyncio.sleep(0.01 * (3 - index))
        finally:
            self.in_flight -= 1
        self.completed.append(node.data)
        return [
            SearchNode(data=f"{node.data}.{i}", score=5.0, depth=node.depth + 1, parent_id=node.id)
            for i in range(3)
        ]


class TestBeamSearch:
    """Tests for the beam_search function."""

    @pytest.mark.asyncio
    async def test_keeps_top_scores_per_depth(self):
        nodes = await beam_search(scored_children(9, 7, 5), "root", 0.0,
                                  BeamSearchOptions(max_depth=2, beam_width=2))

        assert len(nodes) == 5
        assert [n.score for n in nodes] == [9, 9, 9, 7, 0.0]
        depth_two = [n for n in nodes if n.depth == 2]
        assert [n.score for n in depth_two] == [9, 9]
        depth_one = {n.id: n for n in nodes if n.depth == 1}
        assert {depth_one[n.parent_id].score for n in depth_two} == {9, 7}
        assert_tree_invariants(nodes)

    @pytest.mark.asyncio
    async def test_results_sorted_by_score_descending(self):
        nodes = await beam_search(scored_children(3, 8, 1, 6), "root", 2.0,
                                  BeamSearchOptions(max_depth=3, beam_width=3))

        scores = [n.score for n in nodes]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_equal_scores_keep_discovery_order(self):
        nodes = await beam_search(scored_children(5, 5, 5), "root", 0.0,
                                  BeamSearchOptions(max_depth=1, beam_width=2))

        assert [n.data for n in nodes if n.depth == 1] == ["root.0", "root.1"]

    @pytest.mark.asyncio
    async def test_completion_order_does_not_leak_into_results(self):
        oracle = StaggeredOracle()

        nodes = await beam_search(oracle, "root", 0.0, BeamSearchOptions(max_depth=2, beam_width=4))

        assert oracle.peak == 3
        assert oracle.completed[1:] == ["root.2", "root.1", "root.0"]
        assert [n.data for n in nodes if n.depth == 2] == ["root.0.0", "root.0.1", "root.0.2", "root.1.0"]
        assert_tree_invariants(nodes)

    @pytest.mark.asyncio
    async def test_children_are_restamped_onto_their_parent(self):
        async def sloppy(node):
            return [SearchNode(data="child", score=1.0, depth=42, parent_id="somewhere-else")]

        nodes = await beam_search(sloppy, "root", 0.0, BeamSearchOptions(max_depth=2, beam_width=1))

        assert [n.depth for n in sorted(nodes, key=lambda n: n.depth)] == [0, 1, 2]
        assert_tree_invariants(nodes)

    @pytest.mark.asyncio
    async def test_always_rejecting_oracle_yields_fallback_chain(self):
        nodes = await beam_search(always_reject, "root", 1.0, BeamSearchOptions(max_depth=3, beam_width=2))

        assert len(nodes) == 4
        by_depth = sorted(nodes, key=lambda n: n.depth)
        assert [n.depth for n in by_depth] == [0, 1, 2, 3]
        assert not by_depth[0].is_fallback
        assert all(n.is_fallback for n in by_depth[1:])
        assert all(n.data == "root" and n.score == 1.0 for n in by_depth)
        for parent, child in zip(by_depth, by_depth[1:]):
            assert child.parent_id == parent.id
            assert child.id != parent.id

    @pytest.mark.asyncio
    async def test_one_failure_does_not_abort_siblings(self):
        error_logger = MagicMock()

        async def expand(node):
            if node.depth == 1 and node.score == 9:
                raise RuntimeError("boom")
            return await scored_children(9, 4)(node)

        nodes = await beam_search(expand, "root", 0.0, BeamSearchOptions(max_depth=2, beam_width=2),
                                  error_logger=error_logger)

        depth_two = [n for n in nodes if n.depth == 2]
        depth_one = {n.id: n for n in nodes if n.depth == 1}
        assert depth_two
        assert all(depth_one[n.parent_id].score == 4 for n in depth_two)
        assert not any(n.is_fallback for n in nodes)
        error_types = [c.args[0] for c in error_logger.log_error_event.call_args_list]
        assert error_types == ["beam_search_expand_error"]

    @pytest.mark.asyncio
    async def test_failures_narrow_the_beam(self):
        async def expand(node):
            if node.depth == 1 and node.score >= 7:
                raise RuntimeError("overloaded")
            if node.depth == 0:
                return await scored_children(8, 7, 6, 5)(node)
            return await scored_children(3, 2, 1)(node)

        nodes = await beam_search(expand, "root", 0.0, BeamSearchOptions(max_depth=2, beam_width=4))

        # Two failures shrink the width from 4 to 3
        assert len([n for n in nodes if n.depth == 2]) == 3

    @pytest.mark.asyncio
    async def test_fallback_clones_respect_narrowed_beam(self):
        async def expand(node):
            if node.depth == 0:
                return await scored_children(9, 8, 7)(node)
            raise RuntimeError("down")

        nodes = await beam_search(expand, "root", 0.0,
                                  BeamSearchOptions(max_depth=2, beam_width=3, min_beam_width=1))

        fallbacks = [n for n in nodes if n.is_fallback]
        assert len(fallbacks) == 2
        assert sorted(n.score for n in fallbacks) == [8, 9]

    @pytest.mark.asyncio
    async def test_min_beam_width_is_a_floor(self):
        async def expand(node):
            if node.depth == 0:
                return await scored_children(9, 8, 7, 6)(node)
            raise RuntimeError("down")

        nodes = await beam_search(expand, "root", 0.0,
                                  BeamSearchOptions(max_depth=2, beam_width=4, min_beam_width=3))

        assert len([n for n in nodes if n.depth == 2]) == 3

    @pytest.mark.asyncio
    async def test_cost_budget_stops_early(self):
        error_logger = MagicMock()

        nodes = await beam_search(scored_children(5, 4), "root", 0.0,
                                  BeamSearchOptions(max_depth=5, beam_width=2, cost_budget=3),
                                  error_logger=error_logger)

        assert len(nodes) == 5
        assert max(n.depth for n in nodes) == 2
        error_types = [c.args[0] for c in error_logger.log_error_event.call_args_list]
        assert "beam_search_budget_exceeded" in error_types

    @pytest.mark.asyncio
    async def test_custom_cost_function(self):
        charged = []

        def cost(frontier):
            charged.append(len(frontier))
            return 10

        nodes = await beam_search(scored_children(5, 4), "root", 0.0,
                                  BeamSearchOptions(max_depth=5, beam_width=2, cost_budget=15, cost_fn=cost))

        assert charged == [2, 2]
        assert max(n.depth for n in nodes) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_depth,beam_width", [(0, 3), (3, 0), (-1, 2)])
    async def test_nothing_to_explore_returns_root(self, max_depth, beam_width):
        expand = AsyncMock(return_value=[])

        nodes = await beam_search(expand, "root", 4.0,
                                  BeamSearchOptions(max_depth=max_depth, beam_width=beam_width))

        assert len(nodes) == 1
        assert nodes[0].depth == 0
        assert nodes[0].score == 4.0
        expand.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_progress_callback_reports_each_depth(self):
        progress = []

        await beam_search(scored_children(5, 4), "root", 0.0,
                          BeamSearchOptions(max_depth=3, beam_width=2,
                                            progress_callback=lambda *args: progress.append(args)))

        assert [p[0] for p in progress] == [1, 2, 3]
        assert all(p[1] == 3 for p in progress)
        assert progress[0][2:] == (1, 1)
        assert progress[1][2:] == (2, 3)

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        async def cancelled(node):
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await beam_search(cancelled, "root", 0.0, BeamSearchOptions(max_depth=1, beam_width=1))


class TestBeamSearchExplorer:
    """Tests for the configured explorer wrapper."""

    @pytest.mark.asyncio
    async def test_uses_configured_limits(self, logger):
        explorer = BeamSearchExplorer(scored_children(9, 7, 5),
                                      config=BeamSearchConfig(max_depth=2, beam_width=2, cost_budget=None),
                                      logger=logger)

        nodes = await explorer.explore("root")

        assert len(nodes) == 5
        assert explorer.last_execution_id

    @pytest.mark.asyncio
    async def test_overrides_replace_config(self, logger):
        explorer = BeamSearchExplorer(scored_children(9, 7, 5),
                                      config=BeamSearchConfig(max_depth=3, beam_width=3, cost_budget=None),
                                      logger=logger)

        nodes = await explorer.explore("root", max_depth=1, beam_width=1)

        assert len(nodes) == 2

    @pytest.mark.asyncio
    async def test_forwards_progress(self, logger):
        progress = []
        explorer = BeamSearchExplorer(scored_children(1),
                                      config=BeamSearchConfig(max_depth=2, beam_width=1, cost_budget=None),
                                      logger=logger,
                                      progress_callback=lambda *args: progress.append(args))

        await explorer.explore("root")

        assert len(progress) == 2


class TestSummarizeExploration:
    """Tests for exploration summaries."""

    @pytest.mark.asyncio
    async def test_summary_of_explored_tree(self):
        async def expand(node):
            return [
                SearchNode(data=Thought(content=f"idea {score}"), score=score,
                           depth=node.depth + 1, parent_id=node.id)
                for score in (9, 7, 5)
            ]

        nodes = await beam_search(expand, Thought(content="query"), 0.0,
                                  BeamSearchOptions(max_depth=2, beam_width=2))
        summary = summarize_exploration(nodes, top_per_depth=1)

        assert summary["nodes_explored"] == 5
        assert summary["max_depth_reached"] == 2
        assert summary["best_score"] == 9
        assert summary["best_node"]["content"] == "idea 9"
        assert summary["depths"][1]["count"] == 2
        assert len(summary["depths"][1]["top"]) == 1
        assert len(summary["thought_tree"]) == 5

    def test_empty_summary(self):
        summary = summarize_exploration([])

        assert summary["nodes_explored"] == 0
        assert summary["best_node"] is None
        assert summary["thought_tree"] == []
