"""Reusable browser actions shared by site drivers.

Design rules:
  - All settle delays are randomized; no fixed asyncio.sleep() in drivers.
  - Selector lookups go through fallback tuples, first match wins.
"""

import asyncio
import logging
import random
from typing import Any

logger = logging.getLogger(__name__)


async def random_sleep(min_s: float, max_s: float) -> float:
    """Sleep for a random duration between min_s and max_s seconds.

    Floor enforcement: min_s is always respected as the absolute minimum.
    If max_s < min_s, max_s is raised to min_s.

    Returns the actual sleep duration (useful for testing).
    """
    floor = max(min_s, 0.0)
    ceiling = max(max_s, floor)
    duration = random.uniform(floor, ceiling)
    await asyncio.sleep(duration)
    return duration


async def query_first(root: Any, selectors: tuple[str, ...]) -> Any | None:
    """Return the first element matched by any selector, in order."""
    for selector in selectors:
        element = await root.query_selector(selector)
        if element is not None:
            return element
    return None


async def text_of(root: Any, selectors: tuple[str, ...]) -> str:
    """Whitespace-collapsed text of the first matching element, or ""."""
    element = await query_first(root, selectors)
    if element is None:
        return ""
    text = await element.text_content()
    return " ".join(text.split()) if text else ""
