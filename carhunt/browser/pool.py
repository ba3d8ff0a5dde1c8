"""Browser environments partitioned by network egress.

Two heavyweight environments exist per search: one launched through the
configured proxy, one direct. Each job gets its own isolated browser
context (cookies and storage) from its group's environment.
"""

import asyncio
import enum
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any, Protocol

from patchright.async_api import Browser, Page, Playwright, async_playwright

from carhunt.browser.blocking import install_blocking
from carhunt.core.config import BlockingConfig, BrowserConfig, Settings
from carhunt.core.errors import EnvironmentUnavailableError

logger = logging.getLogger(__name__)


class ResourceGroup(enum.Enum):
    PROXIED = "proxied"
    DIRECT = "direct"

    @classmethod
    def for_proxy(cls, requires_proxy: bool) -> "ResourceGroup":
        return cls.PROXIED if requires_proxy else cls.DIRECT


class Environment(Protocol):
    """What the pool needs from an environment; tests supply fakes."""

    group: ResourceGroup

    async def start(self) -> None: ...
    async def new_context(self) -> Any: ...
    async def close_context(self, context: Any) -> None: ...
    async def close(self) -> None: ...


EnvironmentFactory = Callable[[ResourceGroup], Environment]


class BrowserEnvironment:
    """One patchright browser process for a resource group."""

    def __init__(
        self,
        group: ResourceGroup,
        browser_config: BrowserConfig,
        blocking_config: BlockingConfig,
    ) -> None:
        self.group = group
        self._config = browser_config
        self._blocking = blocking_config
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    @property
    def proxied(self) -> bool:
        return self.group is ResourceGroup.PROXIED

    async def start(self) -> None:
        launch_kwargs: dict[str, Any] = {"headless": self._config.headless}
        if self.proxied:
            if self._config.proxy is None:
                msg = "browser.proxy must be configured for proxied sites"
                raise ValueError(msg)
            launch_kwargs["proxy"] = self._config.proxy.to_playwright()

        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(**launch_kwargs)
        except Exception:
            await self._playwright.stop()
            self._playwright = None
            raise
        logger.info("Started %s browser environment", self.group.value)

    async def new_context(self) -> Page:
        """Open an isolated context with blocking attached, and return its page."""
        if self._browser is None:
            msg = f"{self.group.value} environment not started"
            raise RuntimeError(msg)
        context = await self._browser.new_context()
        try:
            context.set_default_timeout(self._config.timeout_ms)
            await install_blocking(context, self._blocking, proxied=self.proxied)
            return await context.new_page()
        except Exception:
            await context.close()
            raise

    async def close_context(self, context: Page) -> None:
        await context.context.close()

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
        logger.info("Closed %s browser environment", self.group.value)


class ResourcePool:
    """Owns the per-group environments for one search.

    Usage::

        pool = ResourcePool.from_settings(settings)
        await pool.initialize()
        env = pool.acquire_group(requires_proxy=False)
        async with pool.new_context(env) as page:
            ...
        await pool.release_group(env)
    """

    def __init__(self, factory: EnvironmentFactory) -> None:
        self._factory = factory
        self._environments: dict[ResourceGroup, Environment] = {}
        self._failures: dict[ResourceGroup, BaseException] = {}
        self._released: set[ResourceGroup] = set()
        self._initialized = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResourcePool":
        def factory(group: ResourceGroup) -> Environment:
            return BrowserEnvironment(group, settings.browser, settings.blocking)

        return cls(factory)

    @property
    def failures(self) -> dict[ResourceGroup, BaseException]:
        return dict(self._failures)

    async def initialize(self) -> dict[ResourceGroup, BaseException]:
        """Start every group's environment concurrently.

        Returns the groups that failed to start, mapped to their error.
        A failed group never raises here; acquiring it does.
        """
        if self._initialized:
            return self.failures
        self._initialized = True

        groups = list(ResourceGroup)
        environments = [self._factory(group) for group in groups]
        outcomes = await asyncio.gather(
            *(env.start() for env in environments), return_exceptions=True,
        )
        for group, env, outcome in zip(groups, environments, outcomes):
            if isinstance(outcome, Exception):
                logger.error("Failed to start %s environment: %s", group.value, outcome)
                self._failures[group] = outcome
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                self._environments[group] = env
        return self.failures

    def is_available(self, requires_proxy: bool) -> bool:
        return ResourceGroup.for_proxy(requires_proxy) in self._environments

    def acquire_group(self, requires_proxy: bool) -> Environment:
        """Return the shared environment for a proxy requirement class."""
        group = ResourceGroup.for_proxy(requires_proxy)
        if group in self._failures:
            raise EnvironmentUnavailableError(group.value, self._failures[group])
        env = self._environments.get(group)
        if env is None:
            msg = "ResourcePool not initialized - call initialize() first"
            raise RuntimeError(msg)
        if group in self._released:
            msg = f"{group.value} environment already released"
            raise RuntimeError(msg)
        return env

    @asynccontextmanager
    async def new_context(self, env: Environment) -> AsyncIterator[Any]:
        """Isolated context for one job, closed on every exit path."""
        context = await env.new_context()
        try:
            yield context
        finally:
            try:
                await env.close_context(context)
            except Exception:
                logger.warning("Failed to close %s context", env.group.value, exc_info=True)

    async def release_group(self, env: Environment) -> None:
        """Tear down a group's environment. Later calls for the group are no-ops."""
        if env.group in self._released:
            logger.debug("%s environment already released", env.group.value)
            return
        self._released.add(env.group)
        try:
            await env.close()
        except Exception:
            logger.warning("Failed to close %s environment", env.group.value, exc_info=True)

    async def close(self) -> None:
        """Release every environment still open."""
        for env in list(self._environments.values()):
            await self.release_group(env)
