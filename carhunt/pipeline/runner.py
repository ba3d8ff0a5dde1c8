"""Per-site job state machine.

  INIT -> AUTHENTICATING -> NAVIGATING -> FILTER_APPLYING -> EXTRACTING -> DONE
  any state -> FAILED

Policies:
  - Missing credentials or driver fail before a browser context is opened.
  - An unsatisfiable filter is an empty success, not a failure.
  - A failure on page 2+ ends pagination and keeps the earlier pages.
    A failure on page 1 means no data was captured and fails the job.
  - No retries; a failed job stays failed for the run.
  - The context is closed on every exit path.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any

from carhunt.browser.pool import ResourcePool
from carhunt.core.errors import PreconditionError, SearchError
from carhunt.core.schemas import Credentials, FilterOutcome, JobResult, SearchCriteria
from carhunt.pipeline.normalizer import RecordNormalizer
from carhunt.sites.base import SiteDriver

logger = logging.getLogger(__name__)


class JobState(enum.Enum):
    INIT = "init"
    AUTHENTICATING = "authenticating"
    NAVIGATING = "navigating"
    FILTER_APPLYING = "filter_applying"
    EXTRACTING = "extracting"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SiteJob:
    """One site to search in one run."""

    site_id: str
    driver: SiteDriver | None
    uses_proxy: bool = False
    credentials: Credentials | None = None
    max_pages: int = 3


class JobRunner:
    """Drives one SiteDriver per job through the state machine.

    ``states`` holds the latest state of every job this runner has seen.
    """

    def __init__(
        self,
        pool: ResourcePool,
        criteria: SearchCriteria,
        normalizer: RecordNormalizer | None = None,
    ) -> None:
        self._pool = pool
        self._criteria = criteria
        self._normalizer = normalizer or RecordNormalizer()
        self.states: dict[str, JobState] = {}

    async def run(self, job: SiteJob) -> JobResult:
        """Run a job to completion. Never raises for job-level failures."""
        self._enter(job, JobState.INIT)
        try:
            raw_records = await self._run_states(job)
            records = self._normalizer.normalize_all(raw_records)
        except SearchError as e:
            return self._fail(job, str(e))
        except Exception as e:
            return self._fail(job, f"{type(e).__name__}: {e}")

        self._enter(job, JobState.DONE)
        logger.info("%s: done with %d record(s)", job.site_id, len(records))
        return JobResult(site_id=job.site_id, records=records)

    async def _run_states(self, job: SiteJob) -> list[Any]:
        driver = job.driver
        if driver is None:
            msg = f"No driver registered for site '{job.site_id}'"
            raise PreconditionError(msg)
        if job.credentials is None:
            msg = f"Missing username or password for {job.site_id}"
            raise PreconditionError(msg)

        env = self._pool.acquire_group(job.uses_proxy)
        async with self._pool.new_context(env) as page:
            self._enter(job, JobState.AUTHENTICATING)
            await driver.authenticate(page, job.credentials)

            self._enter(job, JobState.NAVIGATING)
            await self._navigate(driver, page)

            self._enter(job, JobState.FILTER_APPLYING)
            outcome = await driver.apply_filters(page, self._criteria)
            if not outcome.is_satisfiable:
                logger.info(
                    "%s: criteria unsatisfiable (%s) - no results",
                    job.site_id, outcome.reason or "no reason given",
                )
                return []

            self._enter(job, JobState.EXTRACTING)
            return await self._extract(job, driver, page, outcome)

    async def _navigate(self, driver: SiteDriver, page: Any) -> None:
        if not driver.builds_search_url:
            return
        url = driver.build_search_url(self._criteria)
        if not url:
            return
        logger.debug("%s: navigating to %s", driver.site_id, url)
        await page.goto(url)
        await page.wait_for_load_state("domcontentloaded")

    async def _extract(
        self,
        job: SiteJob,
        driver: SiteDriver,
        page: Any,
        outcome: FilterOutcome,
    ) -> list[Any]:
        records: list[Any] = []
        for page_number in range(1, job.max_pages + 1):
            try:
                result = await driver.extract_page(page, outcome, page_number)
            except Exception as e:
                if page_number == 1:
                    raise
                logger.warning(
                    "%s: page %d failed (%s) - keeping %d record(s) from earlier pages",
                    job.site_id, page_number, e, len(records),
                )
                break

            records.extend(result.records)
            logger.debug(
                "%s: page %d gave %d record(s), %d so far",
                job.site_id, page_number, len(result.records), len(records),
            )
            if not result.has_next_page:
                break
        else:
            logger.info("%s: stopped at max_pages=%d", job.site_id, job.max_pages)
        return records

    def _enter(self, job: SiteJob, state: JobState) -> None:
        self.states[job.site_id] = state
        logger.debug("%s -> %s", job.site_id, state.value)

    def _fail(self, job: SiteJob, error: str) -> JobResult:
        self._enter(job, JobState.FAILED)
        logger.warning("%s: failed: %s", job.site_id, error)
        return JobResult.failed(job.site_id, error)
