"""
Parallel execution infrastructure for per-point processing.

Provides ChunkParallelExecutor for distributing contiguous chunks of point
indices across multiple CPU cores using multiprocessing. Results come back
in chunk order, so concatenating them preserves the input point order.
"""

from __future__ import annotations

import logging
import time
from multiprocessing import Pool, cpu_count
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)


def split_indices(n: int, chunk_size: int) -> List[np.ndarray]:
    """
    Split ``range(n)`` into contiguous index chunks of at most ``chunk_size``.

    Examples:
        >>> [c.tolist() for c in split_indices(5, 2)]
        [[0, 1], [2, 3], [4]]
    """
    chunk_size = max(1, int(chunk_size))
    return [np.arange(start, min(start + chunk_size, n)) for start in range(0, n, chunk_size)]


def _worker_wrapper(args: Tuple[int, Any, Callable, Dict[str, Any]]) -> Tuple[int, Any, Optional[str]]:
    """
    Worker wrapper function for parallel chunk processing.

    Must be at module level for pickling on Windows.

    Args:
        args: Tuple of (chunk_index, chunk, worker_fn, worker_kwargs)

    Returns:
        Tuple of (chunk_index, result, error_message)
    """
    idx, chunk, worker_fn, worker_kwargs = args
    try:
        result = worker_fn(chunk, **worker_kwargs)
        return (idx, result, None)
    except Exception as e:
        error_msg = f"{type(e).__name__}: {str(e)}"
        logger.error(f"Worker error on chunk {idx}: {error_msg}")
        return (idx, None, error_msg)


class ChunkParallelExecutor:
    """
    Parallel executor for chunked per-point processing.

    Manages the worker pool, distributes chunks to workers, and collects
    results while maintaining order.

    Example:
        executor = ChunkParallelExecutor(n_workers=4)
        results = executor.map_chunks(
            chunks=split_indices(len(points), 10_000),
            worker_fn=fit_chunk,
            worker_kwargs={'points': points, 'neighborhoods': neighborhoods},
        )
    """

    def __init__(self, n_workers: Optional[int] = None):
        """
        Initialize parallel executor.

        Args:
            n_workers: Number of worker processes. If None, uses cpu_count - 1
                to leave one core for system/coordination. Minimum is 1.
        """
        if n_workers is None:
            n_workers = max(1, cpu_count() - 1)
        else:
            n_workers = max(1, int(n_workers))

        self.n_workers = n_workers

        logger.debug(
            f"Initialized ChunkParallelExecutor with {self.n_workers} workers "
            f"(total CPUs: {cpu_count()})"
        )

    def map_chunks(
        self,
        chunks: List[Any],
        worker_fn: Callable,
        worker_kwargs: Dict[str, Any],
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> List[Any]:
        """
        Map worker function over chunks in parallel.

        Args:
            chunks: List of chunks to process (typically index arrays)
            worker_fn: Function to apply to each chunk. Must be picklable and
                have signature: worker_fn(chunk, **worker_kwargs) -> result
            worker_kwargs: Fixed keyword arguments passed to each worker call
            progress_callback: Optional callback function called after each chunk
                completes. Signature: callback(completed_count, total_count)

        Returns:
            List of results in same order as input chunks

        Raises:
            RuntimeError: If any chunk fails
        """
        n_chunks = len(chunks)

        if n_chunks == 0:
            logger.warning("No chunks to process")
            return []

        start_time = time.time()

        # If only 1 worker or 1 chunk, use sequential processing (no pool overhead)
        if self.n_workers == 1 or n_chunks == 1:
            logger.debug("Using sequential processing (1 worker or 1 chunk)")
            results = []
            for i, chunk in enumerate(chunks):
                try:
                    results.append(worker_fn(chunk, **worker_kwargs))
                except Exception as e:
                    logger.error(f"Error processing chunk {i}: {e}", exc_info=True)
                    raise RuntimeError(f"Chunk processing failed: {e}") from e
                if progress_callback:
                    progress_callback(i + 1, n_chunks)
            return results

        logger.info(f"Processing {n_chunks} chunks with {self.n_workers} workers")
        try:
            results = self._parallel_map(chunks, worker_fn, worker_kwargs, progress_callback, start_time)
        except Exception as e:
            logger.error(f"Parallel processing failed: {e}", exc_info=True)
            raise RuntimeError(f"Parallel chunk processing failed: {e}") from e

        total_time = time.time() - start_time
        logger.info(f"Parallel processing complete: {n_chunks} chunks in {total_time:.1f}s")
        return results

    def _parallel_map(
        self,
        chunks: List[Any],
        worker_fn: Callable,
        worker_kwargs: Dict[str, Any],
        progress_callback: Optional[Callable],
        start_time: float,
    ) -> List[Any]:
        """
        Execute parallel mapping using multiprocessing.Pool.

        Uses imap_unordered for responsiveness, then reorders results to
        match input chunk order.
        """
        n_chunks = len(chunks)
        worker_args = [(i, chunk, worker_fn, worker_kwargs) for i, chunk in enumerate(chunks)]

        with Pool(processes=min(self.n_workers, n_chunks)) as pool:
            results_dict = {}
            errors = []

            for i, (idx, result, error) in enumerate(
                pool.imap_unordered(_worker_wrapper, worker_args)
            ):
                if error:
                    errors.append((idx, error))
                else:
                    results_dict[idx] = result

                completed = i + 1
                if progress_callback:
                    progress_callback(completed, n_chunks)

                if completed % 10 == 0 or completed == n_chunks:
                    elapsed = time.time() - start_time
                    logger.debug(
                        f"Progress: {completed}/{n_chunks} chunks "
                        f"({100 * completed / n_chunks:.1f}%) in {elapsed:.1f}s"
                    )

        if errors:
            error_msg = f"{len(errors)} chunks failed out of {n_chunks}"
            logger.error(error_msg)
            for idx, error in errors[:5]:
                logger.error(f"  Chunk {idx}: {error}")
            if len(errors) > 5:
                logger.error(f"  ... and {len(errors) - 5} more errors")
            raise RuntimeError(error_msg)

        return [results_dict[i] for i in range(n_chunks)]
