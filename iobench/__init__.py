"""
Multi-threaded storage throughput benchmark.

This package drives concurrent read/write workloads over a list of files,
reports aggregate and per-worker throughput at a fixed cadence, and checks the
numbers against host disk and CPU counters to flag cached or CPU-bound runs.
"""

from .main import main

__all__ = ["main"]
