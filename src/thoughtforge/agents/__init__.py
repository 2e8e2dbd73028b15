"""
Agents Package

Collaborators used by the reasoning engine:
- BeamSearchExplorer / beam_search: best-first exploration of thought trees
- ThoughtExpander: LLM expansion oracle (generate then evaluate thoughts)
- GraphAggregationEngine: Hebbian aggregation of thoughts into a graph
- LLMRelationProposer: proposes connections and synthesized thoughts
- AnalysisAgent: decides whether gathered information is sufficient
- SemanticScholarSearch / CachedSearch: paper search with a TTL cache
- ReportAgent: research plans and final reports
"""

from .beam_search import (
    Thought, SearchNode, BeamSearchOptions, BeamSearchExplorer, beam_search, summarize_exploration
)
from .thought_expander import ThoughtExpander
from .aggregation_engine import GraphAggregationEngine, AggregationResult
from .relation_proposer import LLMRelationProposer, RelationProposal
from .analysis_agent import AnalysisAgent, AlwaysInsufficientAnalyzer, determine_if_should_continue
from .search_agent import SemanticScholarSearch, CachedSearch
from .report_agent import ReportAgent

__all__ = [
    'Thought',
    'SearchNode',
    'BeamSearchOptions',
    'BeamSearchExplorer',
    'beam_search',
    'summarize_exploration',
    'ThoughtExpander',
    'GraphAggregationEngine',
    'AggregationResult',
    'LLMRelationProposer',
    'RelationProposal',
    'AnalysisAgent',
    'AlwaysInsufficientAnalyzer',
    'determine_if_should_continue',
    'SemanticScholarSearch',
    'CachedSearch',
    'ReportAgent'
]
