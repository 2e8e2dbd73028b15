"""Tests for the LLM-backed collaborators, using a scripted LLM."""

import json

import pytest

from thoughtforge.agents.analysis_agent import (
    AlwaysInsufficientAnalyzer,
    AnalysisAgent,
    determine_if_should_continue,
)
from thoughtforge.agents.base_agent import BaseAgent
from thoughtforge.agents.beam_search import SearchNode, Thought
from thoughtforge.agents.relation_proposer import LLMRelationProposer, RelationProposal
from thoughtforge.agents.report_agent import ReportAgent
from thoughtforge.agents.thought_expander import NEUTRAL_SCORE, ThoughtExpander
from thoughtforge.graph import create_thought_node
from thoughtforge.utils.config import ResearchLoopConfig
from thoughtforge.utils.error_handling import AggregationProposalError, ExpansionError


ROOT = SearchNode(data=Thought(content="How can we speed up inference?"), score=0.0, depth=0)


class TestBaseAgent:
    """Tests for shared agent wiring."""

    def test_requires_llm_interface(self):
        with pytest.raises(ValueError):
            BaseAgent("Nameless", None)

    def test_name(self, scripted_llm):
        assert BaseAgent("Named", scripted_llm()).get_name() == "Named"


class TestThoughtExpander:
    """Tests for the expansion oracle."""

    @pytest.mark.asyncio
    async def test_generates_and_scores_children(self, scripted_llm, logger):
        llm = scripted_llm(
            json.dumps({"thoughts": [{"content": "Quantize weights"}, {"content": "Cache KV"}]}),
            json.dumps({"evaluations": [
                {"index": 0, "criteria_scores": {"coverage": 8, "feasibility": 6, "uniqueness": 7, "efficiency": 7}},
                {"index": 1, "score": 9},
            ]}),
        )
        expander = ThoughtExpander(llm, "speed up inference", stage="planning", branching_factor=3, logger=logger)

        children = await expander(ROOT)

        assert [c.data.content for c in children] == ["Quantize weights", "Cache KV"]
        assert [c.score for c in children] == [pytest.approx(7.0), pytest.approx(9.0)]
        assert all(c.depth == 1 and c.parent_id == ROOT.id for c in children)
        assert children[0].data.metadata == {"stage": "planning", "index": 0}
        assert "speed up inference" in llm.calls[0]["user_prompt"]
        assert "coverage" in llm.calls[1]["user_prompt"]

    @pytest.mark.asyncio
    async def test_bullet_points_are_accepted(self, scripted_llm, logger):
        llm = scripted_llm("1. Prune attention heads\n2. Use speculative decoding", "[]")
        expander = ThoughtExpander(llm, "q", logger=logger)

        children = await expander.expand(ROOT)

        assert [c.data.content for c in children] == ["Prune attention heads", "Use speculative decoding"]

    @pytest.mark.asyncio
    async def test_unparseable_evaluation_uses_neutral_score(self, scripted_llm, logger):
        llm = scripted_llm('{"thoughts": ["Batch requests"]}', "I like it a lot")
        expander = ThoughtExpander(llm, "q", logger=logger)

        children = await expander.expand(ROOT)

        assert children[0].score == NEUTRAL_SCORE
        assert children[0].data.metadata["score_fallback"] is True

    @pytest.mark.asyncio
    async def test_branching_factor_caps_children(self, scripted_llm, logger):
        llm = scripted_llm(json.dumps({"thoughts": [f"idea {i}" for i in range(6)]}), "[]")
        expander = ThoughtExpander(llm, "q", branching_factor=2, logger=logger)

        children = await expander.expand(ROOT)

        assert len(children) == 2

    @pytest.mark.asyncio
    async def test_empty_generation_raises(self, scripted_llm, logger):
        expander = ThoughtExpander(scripted_llm('{"thoughts": []}'), "q", logger=logger)

        with pytest.raises(ExpansionError):
            await expander.expand(ROOT)

    def test_unknown_stage_is_rejected(self, scripted_llm):
        with pytest.raises(ValueError):
            ThoughtExpander(scripted_llm(), "q", stage="daydreaming")


class TestRelationProposer:
    """Tests for the LLM relation proposer."""

    def nodes(self):
        return [create_thought_node("first", 7.0, node_id="n1"), create_thought_node("second", 7.0, node_id="n2")]

    @pytest.mark.asyncio
    async def test_parses_proposal(self, scripted_llm, logger):
        llm = scripted_llm(
            '```json\n{"connections": [{"source_node_id": "n1", "target_node_id": "n2", "strength": 0.7}],'
            ' "synthesizedThoughts": []}\n```'
        )
        proposer = LLMRelationProposer(llm, logger=logger, max_tokens=512)

        proposal = await proposer(self.nodes(), "query", [])

        assert isinstance(proposal, RelationProposal)
        assert proposal.connections[0]["target_node_id"] == "n2"
        assert proposal.synthesized_thoughts == []
        assert "Node ID: n1" in llm.calls[0]["user_prompt"]
        assert llm.calls[0]["max_tokens"] == 512

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self, scripted_llm, logger):
        proposer = LLMRelationProposer(scripted_llm("no relations found"), logger=logger)

        with pytest.raises(AggregationProposalError):
            await proposer.propose(self.nodes(), "query", [])

    def test_proposal_requires_both_fields(self):
        with pytest.raises(AggregationProposalError):
            RelationProposal.from_value({"connections": []})
        with pytest.raises(AggregationProposalError):
            RelationProposal.from_value({"connections": {}, "synthesized_thoughts": []})


class TestContinueDecision:
    """Tests for the deterministic continue/stop rule."""

    @pytest.mark.parametrize("iteration,missing,confidence,expected", [
        (1, ["benchmarks"], 0.5, True),
        (3, ["benchmarks"], 0.5, False),
        (1, [], 0.5, False),
        (1, ["benchmarks"], 0.8, False),
        (2, ["benchmarks"], 0.79, True),
    ])
    def test_rule(self, iteration, missing, confidence, expected):
        assert determine_if_should_continue(iteration, 3, missing, confidence) is expected


class TestAnalysisAgent:
    """Tests for the LLM analysis collaborator."""

    @pytest.mark.asyncio
    async def test_low_confidence_with_gaps_continues(self, scripted_llm, logger):
        llm = scripted_llm(json.dumps({
            "is_information_sufficient": False,
            "missing_information": ["latency numbers"],
            "follow_up_queries": ["a", "b", "c", "d"],
            "confidence": 0.3,
        }))
        agent = AnalysisAgent(llm, ResearchLoopConfig(max_follow_up_queries=2), logger=logger)

        result = await agent("q", {"iteration": 1, "max_iterations": 3, "gathered": []})

        assert result.is_information_sufficient is False
        assert result.follow_up_queries == ("a", "b")
        assert "continuing" in result.reason

    @pytest.mark.asyncio
    async def test_high_confidence_stops_early(self, scripted_llm, logger):
        llm = scripted_llm(json.dumps({
            "is_information_sufficient": False,
            "missing_information": ["minor detail"],
            "confidence": 0.95,
        }))
        agent = AnalysisAgent(llm, ResearchLoopConfig(), logger=logger)

        result = await agent.analyze("q", {"iteration": 1, "max_iterations": 3, "gathered": []})

        assert result.is_information_sufficient is True

    @pytest.mark.asyncio
    async def test_ceiling_is_left_to_the_loop(self, scripted_llm, logger):
        llm = scripted_llm(json.dumps({
            "is_information_sufficient": False,
            "missing_information": ["more"],
            "confidence": 0.2,
        }))
        agent = AnalysisAgent(llm, ResearchLoopConfig(), logger=logger)

        result = await agent.analyze("q", {"iteration": 3, "max_iterations": 3, "gathered": []})

        assert result.is_information_sufficient is False

    @pytest.mark.asyncio
    async def test_unparseable_response_is_fallback(self, scripted_llm, logger):
        agent = AnalysisAgent(scripted_llm("cannot decide"), ResearchLoopConfig(), logger=logger)

        result = await agent.analyze("q", {"iteration": 1, "max_iterations": 3})

        assert result.is_fallback
        assert result.is_information_sufficient is False

    @pytest.mark.asyncio
    async def test_prompt_includes_gathered_results(self, scripted_llm, logger):
        llm = scripted_llm('{"is_information_sufficient": true}')
        agent = AnalysisAgent(llm, ResearchLoopConfig(), logger=logger)

        await agent.analyze("q", {
            "iteration": 1, "max_iterations": 3,
            "gathered": [{"query": "kv cache", "results": [{"title": "PagedAttention", "snippet": "memory"}]}],
        })

        assert "PagedAttention" in llm.calls[0]["user_prompt"]


class TestAlwaysInsufficientAnalyzer:
    """Tests for the forced-insufficient analyzer."""

    def test_refused_unless_enabled(self):
        with pytest.raises(ValueError):
            AlwaysInsufficientAnalyzer(ResearchLoopConfig())

    @pytest.mark.asyncio
    async def test_always_insufficient(self, logger):
        analyzer = AlwaysInsufficientAnalyzer(ResearchLoopConfig(allow_forced_insufficient=True), logger)

        result = await analyzer("q", {"gathered": [{"results": [{}, {}]}]})

        assert result.is_information_sufficient is False
        assert result.follow_up_queries == ("q",)
        assert analyzer.calls == 1


class TestReportAgent:
    """Tests for planning and reporting."""

    best = SearchNode(data=Thought(content="Quantize weights"), score=8.5, depth=2, parent_id="p")

    @pytest.mark.asyncio
    async def test_plan(self, scripted_llm, logger):
        llm = scripted_llm(json.dumps({
            "approach": "Quantization survey",
            "subtopics": ["int8", "int4", "gptq"],
            "queries": ["int8 quantization llm", "gptq", "awq"],
        }))
        agent = ReportAgent(llm, logger=logger, max_subtopics=2, max_queries=2)

        plan = await agent.plan("speed up inference", self.best)

        assert plan.approach == "Quantization survey"
        assert plan.subtopics == ("int8", "int4")
        assert plan.queries == ("int8 quantization llm", "gptq")
        assert plan.selected_thought["content"] == "Quantize weights"

    @pytest.mark.asyncio
    async def test_plan_fallback_searches_the_query(self, scripted_llm, logger):
        agent = ReportAgent(scripted_llm("no plan"), logger=logger)

        plan = await agent.plan("speed up inference", self.best)

        assert plan.is_fallback
        assert plan.queries == ("speed up inference",)
        assert plan.approach == "Quantize weights"

    @pytest.mark.asyncio
    async def test_report_includes_insights(self, scripted_llm, logger):
        llm = scripted_llm('{"title": "T", "content": "Body"}')
        agent = ReportAgent(llm, logger=logger)

        report = await agent.report("q", {"gathered": [{"results": [{"title": "Paper A", "url": "u"}]}]},
                                    insights=["caching and batching compound"])

        assert report.content == "Body"
        prompt = llm.calls[0]["user_prompt"]
        assert "Paper A" in prompt
        assert "caching and batching compound" in prompt
