"""Configuration models and YAML loader for the car search engine."""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from carhunt.core.schemas import Credentials

logger = logging.getLogger(__name__)

CONCURRENCY_ENV_VAR = "CONCURRENCY_LIMIT"


class SchedulerConfig(BaseModel):
    """Batch scheduler limits (applied per resource group)."""

    concurrency_limit: int = Field(default=5, ge=1)


class ProxyConfig(BaseModel):
    """Upstream proxy used by the proxied browser environment."""

    server: str
    username: str | None = None
    password: str | None = None

    def to_playwright(self) -> dict[str, str]:
        proxy = {"server": self.server}
        if self.username:
            proxy["username"] = self.username
        if self.password:
            proxy["password"] = self.password
        return proxy


class BrowserConfig(BaseModel):
    """Browser environment configuration."""

    headless: bool = True
    timeout_ms: int = Field(default=30000, ge=1000)
    proxy: ProxyConfig | None = None


class BlockingConfig(BaseModel):
    """Request-blocking policy attached to every browser context."""

    enabled: bool = True
    resource_types: list[str] = Field(
        default_factory=lambda: ["image", "font", "media", "other"],
    )
    proxied_resource_types: list[str] = Field(default_factory=lambda: ["stylesheet"])
    domains: list[str] = Field(
        default_factory=lambda: [
            "google-analytics.com",
            "googletagmanager.com",
            "facebook.com/tr",
            "doubleclick.net",
            "googlesyndication.com",
            "amazon-adsystem.com",
            "adsystem.amazon.com",
            "scorecardresearch.com",
            "quantserve.com",
            "outbrain.com",
            "taboola.com",
        ],
    )
    extensions: list[str] = Field(
        default_factory=lambda: [
            ".jpg", ".jpeg", ".png", ".gif", ".svg", ".webp", ".ico",
            ".woff", ".woff2", ".ttf", ".eot",
            ".mp4", ".webm", ".ogg", ".mp3", ".wav",
        ],
    )
    proxied_extensions: list[str] = Field(
        default_factory=lambda: [".css", ".scss", ".sass", ".less", ".styl"],
    )


class SiteSettings(BaseModel):
    """Per-site switches. Selectors and site quirks live in the driver."""

    enabled: bool = True
    uses_proxy: bool | None = None  # None: use the driver's default
    max_pages: int = Field(default=3, ge=1, le=20)


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    blocking: BlockingConfig = Field(default_factory=BlockingConfig)
    sites: dict[str, SiteSettings]

    @field_validator("sites")
    @classmethod
    def at_least_one_site(cls, v: dict[str, SiteSettings]) -> dict[str, SiteSettings]:
        if not v:
            msg = "at least one site must be configured"
            raise ValueError(msg)
        return v

    @property
    def enabled_sites(self) -> dict[str, SiteSettings]:
        return {k: s for k, s in self.sites.items() if s.enabled}

    @property
    def concurrency_limit(self) -> int:
        """Configured limit, overridden by CONCURRENCY_LIMIT when it is a positive int."""
        raw = os.environ.get(CONCURRENCY_ENV_VAR)
        if raw:
            try:
                value = int(raw)
            except ValueError:
                logger.warning("Ignoring non-integer %s=%r", CONCURRENCY_ENV_VAR, raw)
            else:
                if value >= 1:
                    return value
                logger.warning("Ignoring non-positive %s=%d", CONCURRENCY_ENV_VAR, value)
        return self.scheduler.concurrency_limit

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)


def credentials_env_vars(site_id: str) -> tuple[str, str]:
    """Environment variable names holding a site's username and password."""
    prefix = site_id.upper().replace("-", "_")
    return f"{prefix}_USERNAME", f"{prefix}_PASSWORD"


def credentials_for(site_id: str) -> Credentials | None:
    """Read site credentials from the environment. None if either half is blank."""
    user_var, pass_var = credentials_env_vars(site_id)
    username = os.environ.get(user_var, "").strip()
    password = os.environ.get(pass_var, "")
    if not username or not password.strip():
        logger.debug("Credentials incomplete for '%s' (%s / %s)", site_id, user_var, pass_var)
        return None
    return Credentials(username=username, password=password)
