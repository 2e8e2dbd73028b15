#!/usr/bin/env python3
"""
ThoughtForge Main Module

Runs the reasoning engine from the command line:
- explore: beam search over LLM-generated thoughts
- aggregate: exploration followed by multi-cycle thought graph aggregation
- research: iterative search/analyze loop with a final report
- full: all three, with the research loop seeded from the best explored thought
"""

import sys
import asyncio
import argparse
from dataclasses import replace

from .pipelines.reasoning_pipeline_orchestrator import ReasoningPipelineOrchestrator, MODES
from .utils.config import EngineConfig
from .utils.debug_logger import init_debug_logger
from .utils.phase_timer import PhaseTimer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='ThoughtForge - Reasoning Pipeline')
    parser.add_argument('--query', type=str, required=False,
                        help='Question or topic to reason about')
    parser.add_argument('--config', type=str, default='configs/engine_config.yaml',
                        help='Configuration file path')
    parser.add_argument('--mode', type=str, default='full', choices=sorted(MODES),
                        help='Which pipelines to run')
    parser.add_argument('--cycles', type=int, default=None,
                        help='Aggregation cycles (overrides aggregation.cycles)')
    parser.add_argument('--output', type=str, default=None,
                        help='Output file to save results')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug mode with comprehensive logging')
    return parser


async def main(argv=None):
    """Main function that runs the reasoning pipelines selected by --mode"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.query:
        print("Error: --query is required")
        parser.print_help()
        sys.exit(1)

    try:
        config = EngineConfig.from_file(args.config)
    except (ValueError, FileNotFoundError, RuntimeError) as e:
        print(f"Error: {e}")
        sys.exit(1)

    if args.debug:
        config = replace(config, logging=replace(config.logging, level="DEBUG"))

    logger = init_debug_logger(debug_mode=config.logging.debug, topic=args.query,
                               log_dir=config.logging.log_dir)
    timer = PhaseTimer(logger)

    print("ThoughtForge - Reasoning Pipeline")
    print("=" * 60)
    if config.logging.debug:
        print("DEBUG MODE ENABLED - Comprehensive logging active")
        print(f"Logs saved to: {config.logging.log_dir}/{{session,llm,graph}}/")
    print(f"Query: {args.query}")
    print(f"Mode: {args.mode}")
    print("=" * 60)

    orchestrator = ReasoningPipelineOrchestrator(config, logger, timer)
    try:
        execution_result = await orchestrator.execute(
            args.query, mode=args.mode, cycles=args.cycles, output=args.output
        )
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        logger.log_info("Execution interrupted by user")
        await orchestrator.close()
        sys.exit(1)

    summary = execution_result.get('execution_summary')
    if summary:
        print(f"\nPipeline Execution Summary")
        print("-" * 40)
        print(f"Total Pipelines: {summary['total_pipelines']}")
        print(f"Executed: {summary['executed_pipelines']}")
        print(f"Successful: {summary['successful_pipelines']}")
        print(f"Failed: {summary['failed_pipelines']}")

    timer.print_performance_summary()
    logger.finalize_session()

    if not execution_result['success']:
        error = execution_result.get('error', "one or more pipelines failed")
        print(f"\nPipeline execution failed: {error}")
        logger.log_error(f"Pipeline execution failed: {error}")
        sys.exit(1)

    print(f"\nOutput File: {execution_result['output_path']}")
    print(f"Total Execution Time: {timer.get_total_time():.2f} seconds")


if __name__ == "__main__":
    asyncio.run(main())
