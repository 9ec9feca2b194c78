"""
MongoDB benchmarking harness.

This package drives insert and find workloads against a MongoDB deployment
through a bounded-concurrency task runner, times every workload and writes the
results as JSON, CSV and presentation-ready charts.
"""

from .main import main
from .parallel import BoundedTaskRunner, run_parallel

__all__ = ["BoundedTaskRunner", "main", "run_parallel"]
