"""Tests for configuration models, YAML loading and env credentials."""

from pathlib import Path
from textwrap import dedent

import pytest
from pydantic import ValidationError

from carhunt.core.config import (
    BlockingConfig,
    BrowserConfig,
    ProxyConfig,
    SchedulerConfig,
    Settings,
    SiteSettings,
    credentials_env_vars,
    credentials_for,
)


def _settings(**kwargs: object) -> Settings:
    defaults: dict[str, object] = {"sites": {"disposalnetwork": SiteSettings()}}
    defaults.update(kwargs)
    return Settings(**defaults)  # type: ignore[arg-type]


class TestSchedulerConfig:
    def test_default_limit(self) -> None:
        assert SchedulerConfig().concurrency_limit == 5

    def test_limit_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            SchedulerConfig(concurrency_limit=0)


class TestBrowserConfig:
    def test_defaults(self) -> None:
        b = BrowserConfig()
        assert b.headless is True
        assert b.timeout_ms == 30000
        assert b.proxy is None

    def test_timeout_floor(self) -> None:
        with pytest.raises(ValidationError):
            BrowserConfig(timeout_ms=500)

    def test_proxy_to_playwright_omits_blank_auth(self) -> None:
        proxy = ProxyConfig(server="http://proxy:8080")
        assert proxy.to_playwright() == {"server": "http://proxy:8080"}

    def test_proxy_to_playwright_with_auth(self) -> None:
        proxy = ProxyConfig(server="http://proxy:8080", username="u", password="p")
        assert proxy.to_playwright() == {
            "server": "http://proxy:8080", "username": "u", "password": "p",
        }


class TestBlockingConfig:
    def test_defaults(self) -> None:
        b = BlockingConfig()
        assert b.enabled is True
        assert set(b.resource_types) == {"image", "font", "media", "other"}
        assert b.proxied_resource_types == ["stylesheet"]
        assert "google-analytics.com" in b.domains
        assert ".css" in b.proxied_extensions
        assert ".css" not in b.extensions


class TestSiteSettings:
    def test_defaults(self) -> None:
        s = SiteSettings()
        assert s.enabled is True
        assert s.uses_proxy is None
        assert s.max_pages == 3

    def test_max_pages_bounds(self) -> None:
        with pytest.raises(ValidationError):
            SiteSettings(max_pages=0)
        with pytest.raises(ValidationError):
            SiteSettings(max_pages=21)


class TestSettings:
    def test_requires_a_site(self) -> None:
        with pytest.raises(ValidationError):
            Settings(sites={})

    def test_enabled_sites_filters_disabled(self) -> None:
        settings = _settings(sites={
            "disposalnetwork": SiteSettings(),
            "cartotrade": SiteSettings(enabled=False),
        })
        assert list(settings.enabled_sites) == ["disposalnetwork"]

    def test_concurrency_limit_from_config(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("CONCURRENCY_LIMIT", raising=False)
        settings = _settings(scheduler=SchedulerConfig(concurrency_limit=2))
        assert settings.concurrency_limit == 2

    def test_concurrency_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CONCURRENCY_LIMIT", "7")
        assert _settings().concurrency_limit == 7

    @pytest.mark.parametrize("raw", ["abc", "0", "-3"])
    def test_bad_env_override_ignored(self, monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
        monkeypatch.setenv("CONCURRENCY_LIMIT", raw)
        assert _settings().concurrency_limit == 5


class TestFromYaml:
    def test_loads_full_file(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text(dedent("""\
            scheduler:
              concurrency_limit: 3
            browser:
              headless: false
              proxy:
                server: "http://proxy:8080"
            blocking:
              enabled: false
            sites:
              disposalnetwork:
                max_pages: 5
              cartotrade:
                enabled: false
                uses_proxy: true
        """))
        settings = Settings.from_yaml(path)
        assert settings.scheduler.concurrency_limit == 3
        assert settings.browser.headless is False
        assert settings.browser.proxy is not None
        assert settings.blocking.enabled is False
        assert settings.sites["disposalnetwork"].max_pages == 5
        assert settings.sites["cartotrade"].uses_proxy is True
        assert list(settings.enabled_sites) == ["disposalnetwork"]

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            Settings.from_yaml(tmp_path / "nope.yaml")

    def test_empty_file_fails_validation(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text("")
        with pytest.raises(ValidationError):
            Settings.from_yaml(path)

    def test_example_config_loads(self) -> None:
        path = Path(__file__).resolve().parents[2] / "config" / "settings.yaml"
        settings = Settings.from_yaml(path)
        assert set(settings.sites) == {"disposalnetwork", "cartotrade"}


class TestCredentials:
    def test_env_var_names(self) -> None:
        assert credentials_env_vars("disposalnetwork") == (
            "DISPOSALNETWORK_USERNAME", "DISPOSALNETWORK_PASSWORD",
        )
        assert credentials_env_vars("car-to-trade") == (
            "CAR_TO_TRADE_USERNAME", "CAR_TO_TRADE_PASSWORD",
        )

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CARTOTRADE_USERNAME", " dealer ")
        monkeypatch.setenv("CARTOTRADE_PASSWORD", "hunter2")
        creds = credentials_for("cartotrade")
        assert creds is not None
        assert creds.username == "dealer"
        assert creds.password == "hunter2"
        assert "hunter2" not in repr(creds)

    def test_missing_password(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CARTOTRADE_USERNAME", "dealer")
        monkeypatch.delenv("CARTOTRADE_PASSWORD", raising=False)
        assert credentials_for("cartotrade") is None

    def test_blank_values(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CARTOTRADE_USERNAME", "   ")
        monkeypatch.setenv("CARTOTRADE_PASSWORD", "   ")
        assert credentials_for("cartotrade") is None
