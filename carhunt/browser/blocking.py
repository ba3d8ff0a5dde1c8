"""Request blocking attached to each browser context before navigation.

Drops bandwidth-heavy, non-essential traffic (images, fonts, media,
trackers). Proxied contexts also drop stylesheets since proxy traffic is
metered. HTML, scripts, XHR and fetch always pass.
"""

import logging
from typing import Any

from carhunt.core.config import BlockingConfig

logger = logging.getLogger(__name__)


def should_block(
    resource_type: str,
    url: str,
    config: BlockingConfig,
    *,
    proxied: bool,
) -> bool:
    """Return True if a request should be aborted under the given policy."""
    if not config.enabled:
        return False

    blocked_types = set(config.resource_types)
    if proxied:
        blocked_types.update(config.proxied_resource_types)
    if resource_type in blocked_types:
        return True

    if any(domain in url for domain in config.domains):
        return True

    lowered = url.lower()
    extensions = list(config.extensions)
    if proxied:
        extensions.extend(config.proxied_extensions)
    return any(ext in lowered for ext in extensions)


async def install_blocking(context: Any, config: BlockingConfig, *, proxied: bool) -> None:
    """Route every request of ``context`` through the blocking policy."""
    if not config.enabled:
        logger.debug("Resource blocking disabled")
        return

    async def _handle(route: Any) -> None:
        request = route.request
        if should_block(request.resource_type, request.url, config, proxied=proxied):
            await route.abort()
        else:
            await route.continue_()

    await context.route("**/*", _handle)
    logger.debug("Installed %s resource blocking", "proxied" if proxied else "standard")
