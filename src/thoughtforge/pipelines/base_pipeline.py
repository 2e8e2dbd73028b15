"""
Base Pipeline Interface

Defines the pipeline architecture for the reasoning engine.
All pipelines inherit from BasePipeline and implement the execute method.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field
from datetime import datetime
import asyncio

from ..utils.config import EngineConfig
from ..utils.debug_logger import DebugLogger
from ..utils.phase_timer import PhaseTimer


@dataclass
class PipelineResult:
    """
    Standard result format for all pipelines
    """
    success: bool
    data: Any
    metadata: Dict[str, Any]
    error_message: Optional[str] = None
    execution_time: Optional[float] = None

    def __post_init__(self):
        if self.metadata is None:
            self.metadata = {}

        self.metadata['timestamp'] = datetime.now().isoformat()


@dataclass
class PipelineContext:
    """
    Shared context passed between pipelines
    """
    query: str
    config: EngineConfig
    logger: DebugLogger
    timer: PhaseTimer

    # Data that accumulates across pipelines
    explored_nodes: List = field(default_factory=list)
    exploration_summary: Dict[str, Any] = field(default_factory=dict)
    research_plan: Any = None
    aggregation_results: List = field(default_factory=list)
    research_outcome: Any = None

    @property
    def latest_aggregation(self):
        return self.aggregation_results[-1] if self.aggregation_results else None


class BasePipeline(ABC):
    """
    Base class for all reasoning pipeline stages
    """

    def __init__(self, name: str, description: str):
        self.name = name
        self.description = description
        self._dependencies = []
        self._outputs = []

    @abstractmethod
    async def execute(self, context: PipelineContext) -> PipelineResult:
        """
        Execute the pipeline stage

        Args:
            context: Shared pipeline context containing data and configuration

        Returns:
            PipelineResult: Result of pipeline execution
        """

    def add_dependency(self, context_field: str):
        """Declare a PipelineContext field that must be populated before this stage runs"""
        if context_field not in self._dependencies:
            self._dependencies.append(context_field)

    def add_output(self, output_name: str):
        """Add an output that this pipeline produces"""
        if output_name not in self._outputs:
            self._outputs.append(output_name)

    @property
    def dependencies(self) -> List[str]:
        return self._dependencies.copy()

    @property
    def outputs(self) -> List[str]:
        return self._outputs.copy()

    def validate_dependencies(self, context: PipelineContext) -> bool:
        """True when every declared dependency field on the context is non-empty"""
        return all(getattr(context, name, None) for name in self._dependencies)

    async def pre_execute(self, context: PipelineContext) -> bool:
        """
        Pre-execution hook for validation and setup

        Returns:
            bool: True if ready to execute, False to skip
        """
        if not self.validate_dependencies(context):
            context.logger.log_error(
                f"Pipeline {self.name} dependencies not satisfied: {self._dependencies}",
                self.__class__.__name__
            )
            return False

        context.logger.log_info(f"Starting pipeline: {self.name}", self.__class__.__name__)
        return True

    async def post_execute(self, context: PipelineContext, result: PipelineResult):
        status = "SUCCESS" if result.success else "FAILED"
        context.logger.log_info(
            f"Pipeline {self.name} {status} in {result.execution_time or 0.0:.2f}s",
            self.__class__.__name__
        )

        if not result.success and result.error_message:
            context.logger.log_error(
                f"Pipeline {self.name} error: {result.error_message}",
                self.__class__.__name__
            )


class PipelineExecutor:
    """
    Utility class for executing pipelines with timing and error handling
    """

    @staticmethod
    async def execute_pipeline(
        pipeline: BasePipeline,
        context: PipelineContext,
        phase_name: str = None
    ) -> PipelineResult:
        """
        Execute a pipeline with full timing and error handling

        Args:
            pipeline: Pipeline to execute
            context: Pipeline context
            phase_name: Optional phase name for timing (defaults to pipeline name)

        Returns:
            PipelineResult: Result of pipeline execution
        """
        phase_name = phase_name or pipeline.name.lower().replace(' ', '_')

        try:
            if not await pipeline.pre_execute(context):
                return PipelineResult(
                    success=False,
                    data=None,
                    metadata={'pipeline': pipeline.name},
                    error_message="Pre-execution validation failed"
                )

            with context.timer.time_phase(phase_name, pipeline.description):
                loop = asyncio.get_running_loop()
                start_time = loop.time()
                result = await pipeline.execute(context)
                result.execution_time = loop.time() - start_time
                result.metadata['pipeline'] = pipeline.name
                result.metadata['phase'] = phase_name

            await pipeline.post_execute(context, result)
            return result

        except Exception as e:
            error_msg = f"Pipeline {pipeline.name} failed with exception: {str(e)}"
            context.logger.log_error(error_msg, pipeline.__class__.__name__, e)

            return PipelineResult(
                success=False,
                data=None,
                metadata={'pipeline': pipeline.name, 'phase': phase_name},
                error_message=error_msg
            )
