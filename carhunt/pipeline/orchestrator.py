"""Orchestrator: fans a search out to every enabled site and streams results.

Data flow:
  1. Build one SiteJob per enabled site (driver, credentials, proxy group)
  2. Emit ``connected``
  3. Start both browser environments concurrently
  4. Run each group's jobs through the batch scheduler, groups in parallel
  5. Each finished job -> normalized records -> ``progress``
  6. Release each group's environment as soon as its own jobs finish
  7. Emit ``complete`` (or ``error`` if no used group could start)
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from typing import Any

from carhunt.browser.pool import ResourceGroup, ResourcePool
from carhunt.core.config import Settings, credentials_for
from carhunt.core.errors import SearchAbortedError
from carhunt.core.schemas import (
    CompleteEvent,
    Credentials,
    ErrorEvent,
    JobResult,
    SearchCriteria,
    StreamEvent,
    VehicleRecord,
)
from carhunt.pipeline.normalizer import RecordNormalizer
from carhunt.pipeline.runner import JobRunner, SiteJob
from carhunt.pipeline.scheduler import run_batches
from carhunt.pipeline.stream import ProgressStream
from carhunt.sites import get_driver
from carhunt.sites.base import SiteDriver

logger = logging.getLogger(__name__)

PoolFactory = Callable[[], ResourcePool]
DriverFactory = Callable[[str], SiteDriver]
CredentialsLookup = Callable[[str], Credentials | None]


class Orchestrator:
    """Runs searches against the sites enabled in ``settings``.

    Usage::

        orchestrator = Orchestrator(settings)
        async for event in orchestrator.search_stream(criteria):
            ...
        records = await orchestrator.search(criteria)
    """

    def __init__(
        self,
        settings: Settings,
        *,
        pool_factory: PoolFactory | None = None,
        driver_factory: DriverFactory = get_driver,
        credentials_lookup: CredentialsLookup = credentials_for,
    ) -> None:
        self._settings = settings
        self._pool_factory = pool_factory or (lambda: ResourcePool.from_settings(settings))
        self._driver_factory = driver_factory
        self._credentials_lookup = credentials_lookup

    def build_jobs(self) -> list[SiteJob]:
        """One job per enabled site. Unknown sites get a driverless job that fails fast."""
        jobs: list[SiteJob] = []
        for site_id, site in self._settings.enabled_sites.items():
            try:
                driver: SiteDriver | None = self._driver_factory(site_id)
            except ValueError as e:
                logger.warning("Site '%s' has no driver: %s", site_id, e)
                driver = None

            uses_proxy = site.uses_proxy
            if uses_proxy is None:
                uses_proxy = driver.uses_proxy if driver is not None else False

            jobs.append(SiteJob(
                site_id=site_id,
                driver=driver,
                uses_proxy=uses_proxy,
                credentials=self._credentials_lookup(site_id),
                max_pages=site.max_pages,
            ))
        return jobs

    def site_plan(self) -> list[dict[str, Any]]:
        """Describe every enabled site as it would run (no secrets, no browser)."""
        return [
            {
                "siteId": job.site_id,
                "group": ResourceGroup.for_proxy(job.uses_proxy).value,
                "registered": job.driver is not None,
                "hasCredentials": job.credentials is not None,
                "maxPages": job.max_pages,
            }
            for job in self.build_jobs()
        ]

    async def search_stream(
        self,
        criteria: SearchCriteria,
        cancel: asyncio.Event | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Yield connected, progress per site, then complete or error.

        Setting ``cancel`` (or closing the iterator) stops forwarding events
        and starting new chunks. Jobs already running finish naturally, and
        their environments are released before the iterator closes.
        """
        jobs = self.build_jobs()
        stream = ProgressStream(total_sites=len(jobs))
        cancel = cancel or asyncio.Event()

        logger.info("Search started (%s) across %d site(s)", criteria.describe(), len(jobs))
        stream.connect()
        producer = asyncio.create_task(self._produce(criteria, jobs, stream, cancel))
        try:
            async for event in stream.events(cancel):
                yield event
        finally:
            if not producer.done():
                cancel.set()
            await producer

    async def search(self, criteria: SearchCriteria) -> list[VehicleRecord]:
        """Run a search to the end and return only the aggregate records."""
        async with aclosing(self.search_stream(criteria)) as events:
            async for event in events:
                if isinstance(event, CompleteEvent):
                    return event.all_records
                if isinstance(event, ErrorEvent):
                    raise SearchAbortedError(event.message)
        msg = "search ended without a result"
        raise SearchAbortedError(msg)

    async def _produce(
        self,
        criteria: SearchCriteria,
        jobs: list[SiteJob],
        stream: ProgressStream,
        cancel: asyncio.Event,
    ) -> None:
        pool: ResourcePool | None = None
        try:
            pool = self._pool_factory()
            failures = await pool.initialize()

            by_group = {
                group: [job for job in jobs if ResourceGroup.for_proxy(job.uses_proxy) is group]
                for group in ResourceGroup
            }
            used = [group for group, group_jobs in by_group.items() if group_jobs]
            if used and all(group in failures for group in used):
                reasons = "; ".join(f"{g.value}: {failures[g]}" for g in used)
                stream.fail(f"No browser environment could be started ({reasons})")
                return

            runner = JobRunner(pool, criteria, RecordNormalizer())
            await asyncio.gather(*(
                self._run_group(pool, group, by_group[group], runner, stream, cancel)
                for group in ResourceGroup
            ))

            if cancel.is_set():
                logger.info("Search cancelled - not emitting complete")
                return
            stream.complete()
            logger.info("Search complete: %d record(s)", len(stream.records))
        except Exception as e:
            logger.exception("Search run failed")
            stream.fail(f"{type(e).__name__}: {e}")
        finally:
            if pool is not None:
                await pool.close()

    async def _run_group(
        self,
        pool: ResourcePool,
        group: ResourceGroup,
        jobs: list[SiteJob],
        runner: JobRunner,
        stream: ProgressStream,
        cancel: asyncio.Event,
    ) -> list[JobResult]:
        requires_proxy = group is ResourceGroup.PROXIED
        env = pool.acquire_group(requires_proxy) if pool.is_available(requires_proxy) else None
        try:
            if not jobs:
                return []
            limit = min(self._settings.concurrency_limit, len(jobs))
            logger.info(
                "%s group: %d site(s), concurrency %d", group.value, len(jobs), limit,
            )
            return await run_batches(
                jobs, limit, runner.run, on_result=stream.publish, cancel=cancel,
            )
        finally:
            if env is not None:
                await pool.release_group(env)
                logger.info("%s group finished, environment released", group.value)
