from __future__ import annotations

from .app import FastMKSCLIOptions, main, run_search
from .benchmark import ModeBenchmarkResult, benchmark_mode, generate_points, results_match

__all__ = [
    "FastMKSCLIOptions",
    "ModeBenchmarkResult",
    "benchmark_mode",
    "generate_points",
    "main",
    "results_match",
    "run_search",
]
