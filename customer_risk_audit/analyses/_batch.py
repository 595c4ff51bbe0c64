"""Per-customer map shared by the churn and growth scorers."""

from __future__ import annotations

import multiprocessing
import os
from typing import Callable, Optional, Sequence, TypeVar

from customer_risk_audit.foundation.metric_record import CustomerMetricRecord

_Result = TypeVar("_Result")

# Batches smaller than this are scored in-process
DEFAULT_PARALLEL_THRESHOLD = 1_000_000


def _score_chunk(
    scorer: Callable[[CustomerMetricRecord], _Result],
    chunk: Sequence[CustomerMetricRecord],
) -> list[_Result]:
    return [scorer(record) for record in chunk]


def map_records(
    scorer: Callable[[CustomerMetricRecord], _Result],
    records: Sequence[CustomerMetricRecord],
    parallel: bool = True,
    parallel_threshold: int = DEFAULT_PARALLEL_THRESHOLD,
    n_workers: Optional[int] = None,
) -> list[_Result]:
    """Apply ``scorer`` to every record, preserving input order.

    Records are scored independently, so large batches are split into
    contiguous chunks and scored in worker processes. ``scorer`` must be
    picklable (a module-level function or a ``functools.partial`` of one)
    when parallel scoring kicks in.
    """
    num_records = len(records)
    if not parallel or num_records < parallel_threshold:
        return _score_chunk(scorer, records)

    workers = max(1, n_workers) if n_workers is not None else (os.cpu_count() or 1)
    chunk_size = max(1, -(-num_records // workers))
    chunks = [
        (scorer, records[i : i + chunk_size]) for i in range(0, num_records, chunk_size)
    ]

    with multiprocessing.Pool(processes=workers) as pool:
        chunk_results = pool.starmap(_score_chunk, chunks)

    results: list[_Result] = []
    for chunk_result in chunk_results:
        results.extend(chunk_result)
    return results
