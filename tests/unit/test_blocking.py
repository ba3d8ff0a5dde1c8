"""Tests for the request-blocking policy and its route handler."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from carhunt.browser.blocking import install_blocking, should_block
from carhunt.core.config import BlockingConfig

CONFIG = BlockingConfig()


class TestShouldBlock:
    @pytest.mark.parametrize("resource_type", ["image", "font", "media", "other"])
    def test_heavy_types_always_blocked(self, resource_type: str) -> None:
        url = "https://site.example/x"
        assert should_block(resource_type, url, CONFIG, proxied=False)
        assert should_block(resource_type, url, CONFIG, proxied=True)

    @pytest.mark.parametrize("resource_type", ["document", "script", "xhr", "fetch"])
    def test_essential_types_pass(self, resource_type: str) -> None:
        url = "https://site.example/app"
        assert not should_block(resource_type, url, CONFIG, proxied=True)

    def test_stylesheets_blocked_only_when_proxied(self) -> None:
        url = "https://site.example/theme"
        assert not should_block("stylesheet", url, CONFIG, proxied=False)
        assert should_block("stylesheet", url, CONFIG, proxied=True)

    def test_tracker_domain_blocked(self) -> None:
        url = "https://www.google-analytics.com/collect?v=1"
        assert should_block("script", url, CONFIG, proxied=False)

    def test_extension_match_is_case_insensitive(self) -> None:
        assert should_block("fetch", "https://cdn.example/PHOTO.JPG", CONFIG, proxied=False)

    def test_css_extension_only_when_proxied(self) -> None:
        url = "https://cdn.example/site.css"
        assert not should_block("fetch", url, CONFIG, proxied=False)
        assert should_block("fetch", url, CONFIG, proxied=True)

    def test_disabled_policy_blocks_nothing(self) -> None:
        config = BlockingConfig(enabled=False)
        assert not should_block("image", "https://x/a.png", config, proxied=True)


class TestInstallBlocking:
    async def _handler(self, proxied: bool) -> AsyncMock:
        context = AsyncMock()
        await install_blocking(context, CONFIG, proxied=proxied)
        context.route.assert_awaited_once()
        pattern, handler = context.route.call_args[0]
        assert pattern == "**/*"
        return handler

    @staticmethod
    def _route(resource_type: str, url: str) -> AsyncMock:
        route = AsyncMock()
        route.request = MagicMock(resource_type=resource_type, url=url)
        return route

    async def test_aborts_blocked_requests(self) -> None:
        handler = await self._handler(proxied=False)
        route = self._route("image", "https://x/a.png")
        await handler(route)
        route.abort.assert_awaited_once()
        route.continue_.assert_not_awaited()

    async def test_continues_allowed_requests(self) -> None:
        handler = await self._handler(proxied=False)
        route = self._route("document", "https://x/search")
        await handler(route)
        route.continue_.assert_awaited_once()
        route.abort.assert_not_awaited()

    async def test_disabled_installs_no_route(self) -> None:
        context = AsyncMock()
        await install_blocking(context, BlockingConfig(enabled=False), proxied=True)
        context.route.assert_not_awaited()
