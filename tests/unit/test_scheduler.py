"""Tests for the bounded-concurrency batch scheduler."""

import asyncio

import pytest

from carhunt.core.schemas import JobResult
from carhunt.pipeline.runner import SiteJob
from carhunt.pipeline.scheduler import CANCELLED_MESSAGE, chunked, run_batches


def _jobs(*site_ids: str) -> list[SiteJob]:
    return [SiteJob(site_id=s, driver=None) for s in site_ids]


class Recorder:
    """run_job stand-in that records concurrency and start order."""

    def __init__(self, delays: dict[str, float] | None = None, fail: set[str] | None = None) -> None:
        self.delays = delays or {}
        self.fail = fail or set()
        self.running = 0
        self.peak = 0
        self.started: list[str] = []
        self.finished: list[str] = []

    async def __call__(self, job: SiteJob) -> JobResult:
        self.started.append(job.site_id)
        self.running += 1
        self.peak = max(self.peak, self.running)
        try:
            await asyncio.sleep(self.delays.get(job.site_id, 0.01))
            if job.site_id in self.fail:
                msg = f"{job.site_id} exploded"
                raise RuntimeError(msg)
            return JobResult(site_id=job.site_id)
        finally:
            self.running -= 1
            self.finished.append(job.site_id)


# ---------------------------------------------------------------------------
# chunked
# ---------------------------------------------------------------------------


class TestChunked:
    def test_splits_in_order(self) -> None:
        chunks = chunked(_jobs("a", "b", "c", "d", "e"), 2)
        assert [[j.site_id for j in c] for c in chunks] == [["a", "b"], ["c", "d"], ["e"]]

    def test_limit_above_job_count(self) -> None:
        assert len(chunked(_jobs("a", "b"), 5)) == 1

    def test_empty(self) -> None:
        assert chunked([], 3) == []

    def test_invalid_size(self) -> None:
        with pytest.raises(ValueError, match=">= 1"):
            chunked(_jobs("a"), 0)


# ---------------------------------------------------------------------------
# run_batches
# ---------------------------------------------------------------------------


class TestRunBatches:
    async def test_one_result_per_job_in_submission_order(self) -> None:
        recorder = Recorder(delays={"a": 0.05, "b": 0.01, "c": 0.02})
        results = await run_batches(_jobs("a", "b", "c"), 3, recorder)
        assert [r.site_id for r in results] == ["a", "b", "c"]

    async def test_concurrency_never_exceeds_limit(self) -> None:
        recorder = Recorder()
        await run_batches(_jobs(*"abcdefg"), 3, recorder)
        assert recorder.peak == 3

    async def test_next_chunk_waits_for_slowest_job(self) -> None:
        recorder = Recorder(delays={"a": 0.01, "b": 0.1, "c": 0.01})
        await run_batches(_jobs("a", "b", "c"), 2, recorder)
        assert recorder.started.index("c") > recorder.finished.index("b")

    async def test_failure_is_isolated(self) -> None:
        recorder = Recorder(fail={"b"})
        results = await run_batches(_jobs("a", "b", "c"), 2, recorder)
        by_site = {r.site_id: r for r in results}
        assert by_site["a"].succeeded
        assert by_site["c"].succeeded
        assert by_site["b"].error == "RuntimeError: b exploded"

    async def test_on_result_in_completion_order(self) -> None:
        recorder = Recorder(delays={"a": 0.05, "b": 0.01})
        seen: list[str] = []
        await run_batches(_jobs("a", "b"), 2, recorder, on_result=lambda r: seen.append(r.site_id))
        assert seen == ["b", "a"]

    async def test_callback_error_does_not_break_run(self) -> None:
        def _bad(result: JobResult) -> None:
            msg = "consumer gone"
            raise RuntimeError(msg)

        results = await run_batches(_jobs("a", "b"), 1, Recorder(), on_result=_bad)
        assert len(results) == 2

    async def test_empty_jobs(self) -> None:
        assert await run_batches([], 3, Recorder()) == []

    async def test_cancel_stops_new_chunks(self) -> None:
        cancel = asyncio.Event()
        recorder = Recorder()
        seen: list[JobResult] = []

        def _on_result(result: JobResult) -> None:
            seen.append(result)
            cancel.set()

        results = await run_batches(
            _jobs("a", "b", "c"), 1, recorder, on_result=_on_result, cancel=cancel,
        )
        assert recorder.started == ["a"]
        assert [r.site_id for r in results] == ["a", "b", "c"]
        assert results[1].error == CANCELLED_MESSAGE
        assert results[2].error == CANCELLED_MESSAGE
        assert len(seen) == 3

    async def test_running_chunk_finishes_after_cancel(self) -> None:
        cancel = asyncio.Event()
        recorder = Recorder(delays={"a": 0.01, "b": 0.05})
        results = await run_batches(
            _jobs("a", "b"), 2, recorder, on_result=lambda r: cancel.set(), cancel=cancel,
        )
        assert all(r.succeeded for r in results)
