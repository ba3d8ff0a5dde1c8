"""Bounded-concurrency batch scheduler.

Jobs run in consecutive chunks of at most ``limit``; a chunk starts only
after every job of the previous chunk has resolved. Failures are isolated
per job and come back as failed JobResults, never as exceptions.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from carhunt.core.schemas import JobResult
from carhunt.pipeline.runner import SiteJob

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Search cancelled before this site started"

RunJob = Callable[[SiteJob], Awaitable[JobResult]]
ResultCallback = Callable[[JobResult], None]


def chunked(jobs: Sequence[SiteJob], size: int) -> list[Sequence[SiteJob]]:
    """Split jobs into consecutive chunks of at most ``size``."""
    if size < 1:
        msg = f"chunk size must be >= 1, got {size}"
        raise ValueError(msg)
    return [jobs[i:i + size] for i in range(0, len(jobs), size)]


async def run_batches(
    jobs: Sequence[SiteJob],
    limit: int,
    run_job: RunJob,
    *,
    on_result: ResultCallback | None = None,
    cancel: asyncio.Event | None = None,
) -> list[JobResult]:
    """Run jobs in chunks of ``limit`` and return one JobResult per job.

    Results come back in submission order. ``on_result`` fires as each job
    resolves (completion order). When ``cancel`` is set, no further chunk is
    started; jobs never started resolve as failed with CANCELLED_MESSAGE.
    """
    chunks = chunked(jobs, limit)
    results: list[JobResult] = []

    for index, chunk in enumerate(chunks):
        if cancel is not None and cancel.is_set():
            skipped = [job for rest in chunks[index:] for job in rest]
            logger.info("Cancelled: skipping %d job(s) not yet started", len(skipped))
            for job in skipped:
                result = JobResult.failed(job.site_id, CANCELLED_MESSAGE)
                _report(result, on_result)
                results.append(result)
            break

        logger.info(
            "Chunk %d/%d: %s",
            index + 1, len(chunks), ", ".join(job.site_id for job in chunk),
        )
        chunk_results = await asyncio.gather(
            *(_run_isolated(job, run_job, on_result) for job in chunk),
        )
        results.extend(chunk_results)
        logger.info("Chunk %d/%d done", index + 1, len(chunks))

    return results


async def _run_isolated(
    job: SiteJob,
    run_job: RunJob,
    on_result: ResultCallback | None,
) -> JobResult:
    try:
        result = await run_job(job)
    except Exception as e:
        logger.exception("Job for '%s' raised past its runner", job.site_id)
        result = JobResult.failed(job.site_id, f"{type(e).__name__}: {e}")
    _report(result, on_result)
    return result


def _report(result: JobResult, on_result: ResultCallback | None) -> None:
    if on_result is None:
        return
    try:
        on_result(result)
    except Exception:
        logger.exception("Result callback failed for '%s'", result.site_id)
