"""
Acceleration Module

CPU parallelization of per-point work (normal/curvature estimation) over
contiguous index chunks.
"""

from .parallel_executor import ChunkParallelExecutor, split_indices

__all__ = [
    "ChunkParallelExecutor",
    "split_indices",
]
