#!/usr/bin/env python3
"""
Phase Timer Utility

Timing for the exploration, aggregation and research phases, with a console
performance report and optional token cost summary.
"""

import time
from typing import Dict
from contextlib import contextmanager


class PhaseTimer:
    """Unified timing system for tracking pipeline performance"""

    def __init__(self, logger=None, cost_tracker=None, verbose: bool = True):
        """
        Initialize the PhaseTimer

        Args:
            logger: Optional debug logger instance for integration
            cost_tracker: Optional TokenCostTracker instance for cost tracking
            verbose: Print phase start/finish lines to the console
        """
        self.logger = logger
        self.cost_tracker = cost_tracker
        self.verbose = verbose
        self.timings: Dict[str, float] = {}
        self.phase_order = []
        self.total_start_time = time.time()

    @contextmanager
    def time_phase(self, phase_name: str, description: str = None):
        """
        Context manager for timing a phase

        Usage:
            with timer.time_phase("exploration", "Beam Search Exploration"):
                ...
        """
        display_name = description or phase_name
        if self.verbose:
            print(f"\nStarting {display_name}...")

        if self.logger:
            self.logger.log_info(f"Starting {phase_name}")

        start_time = time.time()
        try:
            yield self
        finally:
            duration = time.time() - start_time
            self.timings[phase_name] = duration
            self.phase_order.append(phase_name)

            if self.logger:
                self.logger.log_performance_metric("main_system", f"{phase_name}_duration", duration, "seconds")

            if self.verbose:
                print(f"{display_name} completed in {duration:.2f} seconds")

    def get_total_time(self) -> float:
        return time.time() - self.total_start_time

    def print_performance_summary(self):
        """Print a phase-by-phase breakdown and token usage if a cost tracker is attached"""
        total_time = self.get_total_time()

        print(f"\nPerformance Summary")
        print("=" * 50)
        print(f"{'Phase':<25} {'Duration':<12} {'% of Total':<12}")
        print("-" * 50)

        for phase_name in self.phase_order:
            duration = self.timings[phase_name]
            percentage = (duration / total_time) * 100 if total_time > 0 else 0
            print(f"{phase_name:<25} {duration:<8.2f}s    {percentage:<8.1f}%")

        print("-" * 50)
        print(f"{'TOTAL EXECUTION':<25} {total_time:<8.2f}s    100.0%")

        if self.cost_tracker:
            totals = self.cost_tracker.get_session_summary()["session_totals"]
            print(f"\nToken Usage & Cost Summary")
            print("-" * 50)
            print(f"{'Total Tokens':<25} {totals['total_tokens']:,}")
            print(f"{'Total Conversations':<25} {totals['conversations']:,}")
            print(f"{'Total Cost (USD)':<25} ${totals['total_cost_usd']:.6f}")
            self.cost_tracker.log_session_summary()

    def get_performance_data(self) -> Dict:
        """Timing data as a dictionary for programmatic use"""
        total_time = self.get_total_time()
        return {
            'total_time': total_time,
            'phases': {
                name: {
                    'duration': self.timings[name],
                    'percentage': (self.timings[name] / total_time) * 100 if total_time > 0 else 0,
                }
                for name in self.phase_order
            },
        }
