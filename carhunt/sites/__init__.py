"""Site driver registry with lazy loading.

Usage:
    from carhunt.sites import get_driver

    driver = get_driver("disposalnetwork")
"""

from __future__ import annotations

import importlib

from carhunt.sites.base import SiteDriver

__all__ = ["SiteDriver", "available_sites", "get_driver"]

# Lazy registry: maps site id → (module_path, class_name)
_REGISTRY: dict[str, tuple[str, str]] = {
    "disposalnetwork": ("carhunt.sites.disposalnetwork.driver", "DisposalNetworkDriver"),
    "cartotrade": ("carhunt.sites.cartotrade.driver", "CarToTradeDriver"),
}


def get_driver(site_id: str) -> SiteDriver:
    """Instantiate a fresh driver for one job.

    Raises:
        ValueError: If no driver is registered for ``site_id``.
    """
    if site_id not in _REGISTRY:
        valid = ", ".join(sorted(_REGISTRY))
        msg = f"Unknown site '{site_id}'. Available: {valid}"
        raise ValueError(msg)

    module_path, class_name = _REGISTRY[site_id]
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    return cls()  # type: ignore[no-any-return]


def available_sites() -> list[str]:
    """Return sorted list of registered site ids."""
    return sorted(_REGISTRY)
