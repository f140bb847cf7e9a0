"""Partitioned dispatch of batched webhook events.

Each partition (one conversation) is driven by its own sequential runner;
runners for different partitions run concurrently and are joined before the
report is built. Dispatch results absorb every failure, so no runner ever
raises and one conversation cannot hold up or abort another.
"""

import asyncio
import time
from typing import Any, Iterable, Optional

from relay.logging_config import LoggerAdapter, get_logger
from relay.schemas.auth import AuthContext
from relay.services.dispatch_service import dispatch_event
from relay.services.partition_service import EventRecord, flatten_entries, partition_events
from relay.services.pipeline.base import PipelineInvoker
from relay.services.result import BatchReport, DispatchResult

logger = get_logger("batch_service")


async def run_sequentially(
    partition: list[EventRecord],
    pipeline_name: str,
    auth: AuthContext,
    invoker: PipelineInvoker,
) -> list[DispatchResult]:
    """Dispatch a partition's events one at a time, in order, collecting every result."""
    results: list[DispatchResult] = []
    cursor = 0
    while cursor < len(partition):
        results.append(await dispatch_event(partition[cursor], pipeline_name, auth, invoker))
        cursor += 1
    return results


async def run_batch(
    partitions: dict[str, list[EventRecord]],
    pipeline_name: str,
    auth: AuthContext,
    invoker: PipelineInvoker,
    *,
    max_concurrency: Optional[int] = None,
) -> BatchReport:
    """Run every partition concurrently and merge their results.

    `max_concurrency` caps how many partitions are in flight; None or a
    non-positive value means no cap. A partition keeps its slot until all of
    its events are dispatched.
    """
    semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency and max_concurrency > 0 else None

    async def _run_partition(key: str, partition: list[EventRecord]) -> list[DispatchResult]:
        partition_logger = LoggerAdapter(logger, {"partition_key": key, "events": len(partition)})
        if semaphore is None:
            results = await run_sequentially(partition, pipeline_name, auth, invoker)
        else:
            async with semaphore:
                results = await run_sequentially(partition, pipeline_name, auth, invoker)
        failed = sum(1 for r in results if not r.ok)
        partition_logger.debug("Partition done", context={"failed": failed})
        return results

    partition_results = await asyncio.gather(
        *(_run_partition(key, partition) for key, partition in partitions.items())
    )

    merged = [result for results in partition_results for result in results]
    return BatchReport.from_results(merged)


async def process_batch(
    entries: Iterable[Any],
    pipeline_name: str,
    auth: AuthContext,
    invoker: PipelineInvoker,
    *,
    max_concurrency: Optional[int] = None,
) -> BatchReport:
    """Flatten, partition and dispatch one webhook delivery."""
    timing_start = time.monotonic()
    events = flatten_entries(entries)
    partitions = partition_events(events)

    logger.info(
        "Batch dispatch start",
        extra={
            "context": {
                "pipeline": pipeline_name,
                "events": len(events),
                "partitions": len(partitions),
                "max_concurrency": max_concurrency,
            }
        },
    )

    report = await run_batch(partitions, pipeline_name, auth, invoker, max_concurrency=max_concurrency)

    logger.info(
        "Batch dispatch done",
        extra={
            "context": {
                "pipeline": pipeline_name,
                "succeeded": len(report.successful_invocations),
                "failed": len(report.failed_invocations),
                "batch_total_ms": round((time.monotonic() - timing_start) * 1000, 2),
            }
        },
    )
    return report
