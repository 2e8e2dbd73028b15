"""
Reasoning Pipeline Orchestrator

Main orchestrator that wires collaborators into the exploration, aggregation and
research pipelines and runs the ones selected by the execution mode.
"""

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from .base_pipeline import BasePipeline, PipelineResult, PipelineContext, PipelineExecutor
from .exploration_pipeline import ExplorationPipeline
from .aggregation_pipeline import AggregationPipeline
from .research_pipeline import ResearchPipeline

from ..agents.aggregation_engine import GraphAggregationEngine
from ..agents.analysis_agent import AnalysisAgent, AlwaysInsufficientAnalyzer
from ..agents.beam_search import BeamSearchExplorer
from ..agents.relation_proposer import LLMRelationProposer
from ..agents.report_agent import ReportAgent
from ..agents.search_agent import CachedSearch, SemanticScholarSearch
from ..agents.thought_expander import ThoughtExpander
from ..utils.cache import ExpiringCache
from ..utils.config import EngineConfig
from ..utils.debug_logger import DebugLogger
from ..utils.llm_interface import LLMInterface
from ..utils.phase_timer import PhaseTimer


MODES = {
    'explore': ['exploration'],
    'aggregate': ['exploration', 'aggregation'],
    'research': ['research'],
    'full': ['exploration', 'aggregation', 'research'],
}


def token_cost_fn(cost_tracker) -> Callable[[Sequence[Any]], int]:
    """Beam search cost function charging each depth the tokens spent since the last call"""
    last = {'tokens': cost_tracker.total_tokens}

    def cost(_frontier) -> int:
        current = cost_tracker.total_tokens
        spent = current - last['tokens']
        last['tokens'] = current
        return spent

    return cost


class ReasoningPipelineOrchestrator:
    """
    Orchestrator for reasoning pipeline execution
    """

    def __init__(self, config: EngineConfig, logger: DebugLogger, timer: PhaseTimer,
                 llm_interface=None, search=None):
        """
        Initialize the orchestrator

        Args:
            config: Engine configuration
            logger: Debug logger instance
            timer: Phase timer for performance tracking
            llm_interface: Optional pre-built LLM client (built from config.llm otherwise)
            search: Optional search collaborator (Semantic Scholar otherwise)
        """
        self.config = config
        self.logger = logger
        self.timer = timer

        self.llm = llm_interface
        self.search = search
        self.agents = {}
        self._owned_clients = []
        self._setup_complete = False

    async def setup_agents(self) -> bool:
        """
        Initialize the collaborators shared by all pipelines

        Returns:
            bool: True if setup successful, False otherwise
        """
        try:
            self.logger.log_info("Initializing agents for pipeline orchestrator")

            if self.llm is None:
                self.llm = LLMInterface(self.config.llm.to_dict(), logger=self.logger,
                                        retry_config=self.config.retry)
                self._owned_clients.append(self.llm)

            if self.search is None:
                scholar = SemanticScholarSearch(self.config.search, logger=self.logger)
                self._owned_clients.append(scholar)
                self.search = scholar

            loop_config = self.config.research_loop
            if loop_config.allow_forced_insufficient:
                analyzer = AlwaysInsufficientAnalyzer(loop_config, logger=self.logger)
            else:
                analyzer = AnalysisAgent(self.llm, loop_config, logger=self.logger)

            self.agents = {
                'report_agent': ReportAgent(self.llm, logger=self.logger),
                'relation_proposer': LLMRelationProposer(
                    self.llm, logger=self.logger, max_tokens=self.config.llm.max_tokens
                ),
                'analysis_agent': analyzer,
                'search': CachedSearch(
                    self.search, ExpiringCache(loop_config.cache_ttl_seconds), logger=self.logger
                ),
            }

            cost_tracker = getattr(self.llm, 'cost_tracker', None)
            if cost_tracker is not None:
                self.timer.cost_tracker = cost_tracker
            else:
                self.logger.log_warning("No cost tracker found on LLM interface", "ReasoningPipelineOrchestrator")

            self.logger.log_info("All agents initialized successfully")
            self._setup_complete = True
            return True

        except Exception as e:
            self.logger.log_error(f"Failed to setup agents: {str(e)}", "ReasoningPipelineOrchestrator", e)
            return False

    def setup_pipelines(self, query: str, mode: str = 'full', cycles: int = None) -> List[BasePipeline]:
        """
        Build the pipelines for ``mode`` in execution order
        """
        if not self._setup_complete:
            raise RuntimeError("Agents must be setup before configuring pipelines")
        if mode not in MODES:
            raise ValueError(f"Unknown mode '{mode}', expected one of {sorted(MODES)}")

        beam_config = self.config.beam_search
        cost_tracker = getattr(self.llm, 'cost_tracker', None)

        builders = {
            'exploration': lambda: ExplorationPipeline(
                BeamSearchExplorer(
                    ThoughtExpander(
                        self.llm, query,
                        stage=beam_config.stage,
                        branching_factor=beam_config.branching_factor,
                        logger=self.logger,
                    ),
                    config=beam_config,
                    logger=self.logger,
                    cost_fn=token_cost_fn(cost_tracker) if cost_tracker is not None else None,
                ),
                self.agents['report_agent'] if mode == 'full' else None,
            ),
            'aggregation': lambda: AggregationPipeline(
                GraphAggregationEngine(
                    self.agents['relation_proposer'], self.config.aggregation, logger=self.logger
                ),
                cycles=cycles or self.config.aggregation.cycles,
            ),
            'research': lambda: ResearchPipeline(
                self.agents['search'],
                self.agents['analysis_agent'],
                self.agents['report_agent'],
            ),
        }
        return [builders[name]() for name in MODES[mode]]

    async def execute(self, query: str, mode: str = 'full', cycles: int = None,
                      output: Optional[str] = None) -> Dict[str, Any]:
        """
        Execute the pipelines selected by ``mode`` for ``query``

        Returns:
            Dict[str, Any]: success flag, final output, output path and per-pipeline results
        """
        if not self._setup_complete and not await self.setup_agents():
            return {'success': False, 'error': "Agent setup failed", 'pipeline_results': {}}

        pipelines = self.setup_pipelines(query, mode, cycles)
        context = PipelineContext(
            query=query,
            config=self.config,
            logger=self.logger,
            timer=self.timer
        )

        pipeline_results: Dict[str, PipelineResult] = {}
        execution_summary = {
            'total_pipelines': len(pipelines),
            'executed_pipelines': 0,
            'successful_pipelines': 0,
            'failed_pipelines': 0,
        }

        try:
            self.logger.log_info(f"Starting {mode} execution for query: {query}")

            for i, pipeline in enumerate(pipelines):
                pipeline_name = pipeline.name.lower().replace(' ', '_')
                self.logger.log_info(f"Executing pipeline {i+1}/{len(pipelines)}: {pipeline.name}")

                result = await PipelineExecutor.execute_pipeline(
                    pipeline,
                    context,
                    f"phase{i+1}_{pipeline_name}"
                )
                pipeline_results[pipeline_name] = result
                execution_summary['executed_pipelines'] += 1

                if result.success:
                    execution_summary['successful_pipelines'] += 1
                    continue

                execution_summary['failed_pipelines'] += 1
                self.logger.log_error(f"Pipeline {pipeline.name} failed: {result.error_message}")
                if isinstance(pipeline, ExplorationPipeline):
                    # Later stages consume explored thoughts
                    raise RuntimeError(f"Critical pipeline failure: {pipeline.name}")

            final_output = self._generate_final_output(context, mode, pipeline_results)
            output_path = self._generate_output_filename(query, self.logger.session_id, output)
            self._save_results(output_path, final_output)

            self.logger.log_info("Reasoning pipeline execution completed")
            return {
                'success': execution_summary['failed_pipelines'] == 0,
                'results': final_output,
                'output_path': str(output_path),
                'pipeline_results': pipeline_results,
                'execution_summary': execution_summary,
                'context': context
            }

        except Exception as e:
            self.logger.log_error(f"Reasoning pipeline execution failed: {str(e)}", "ReasoningPipelineOrchestrator", e)
            return {
                'success': False,
                'error': str(e),
                'pipeline_results': pipeline_results,
                'execution_summary': execution_summary,
                'context': context
            }
        finally:
            await self.close()

    def _generate_final_output(self, context: PipelineContext, mode: str,
                               pipeline_results: Dict[str, PipelineResult]) -> Dict[str, Any]:
        output = {
            name: {
                'success': result.success,
                'data': result.data,
                'error': result.error_message,
                'execution_time': result.execution_time,
            }
            for name, result in pipeline_results.items()
        }
        cost_summary = {}
        if self.llm is not None and hasattr(self.llm, 'get_session_cost_summary'):
            cost_summary = self.llm.get_session_cost_summary()

        output['metadata'] = {
            'query': context.query,
            'mode': mode,
            'execution_time_seconds': round(context.timer.get_total_time(), 2),
            'timestamp': context.logger.session_id,
            'phases': context.timer.get_performance_data()['phases'],
            'cost': cost_summary,
        }
        return output

    def _generate_output_filename(self, query: str, session_id: str, custom_output: str = None) -> Path:
        outputs_dir = Path("outputs")
        clean_query = "".join(c if c.isalnum() else "_" for c in query.lower())[:30]

        if custom_output:
            custom_name = Path(custom_output).stem
            filename = f"{clean_query}_{session_id}_{custom_name}.json"
        else:
            filename = f"{clean_query}_{session_id}.json"

        return outputs_dir / filename

    def _save_results(self, output_path: Path, results: Dict[str, Any]):
        output_path.parent.mkdir(parents=True, exist_ok=True)
        self.logger.log_info(f"Saving results to {output_path}")

        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(results, f, indent=2, ensure_ascii=False, default=str)

        print(f"Results saved to {output_path}")

    async def close(self):
        """Close HTTP sessions of the clients this orchestrator created"""
        for client in self._owned_clients:
            closer = getattr(client, 'close', None) or getattr(client, 'close_session', None)
            if closer is not None:
                await closer()
        self._owned_clients = []
