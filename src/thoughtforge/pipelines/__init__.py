"""
Pipeline Architecture for ThoughtForge

Core pipeline interfaces, typed step results and the iterative research loop.
The concrete stage pipelines and the orchestrator live in their own modules:

- exploration_pipeline: beam search over thoughts and research planning
- aggregation_pipeline: multi-cycle thought graph aggregation
- research_pipeline: iterative search/analyze loop and final report
- reasoning_pipeline_orchestrator: mode selection and result output
"""

from .base_pipeline import BasePipeline, PipelineResult, PipelineContext, PipelineExecutor
from .step_results import (
    StepResult, PlanningResult, GatheringResult, AnalysisResult, InsightResult, ReportResult,
    parse_step_result
)
from .research_loop import IterativeResearchLoop, LoopState, IterationResult, ResearchLoopOutcome

__all__ = [
    'BasePipeline',
    'PipelineResult',
    'PipelineContext',
    'PipelineExecutor',
    'StepResult',
    'PlanningResult',
    'GatheringResult',
    'AnalysisResult',
    'InsightResult',
    'ReportResult',
    'parse_step_result',
    'IterativeResearchLoop',
    'LoopState',
    'IterationResult',
    'ResearchLoopOutcome'
]
