"""CarToTrade DOM parser — converts result cards into raw records.

Pure functions over an element interface; no patchright import, so tests
drive it with AsyncMock cards.

Rules:
  - A card without a title link is not a listing and is skipped.
  - Any other missing field becomes "" and is left for the normalizer.
  - Relative hrefs are made absolute against the site root.
"""

import logging
from typing import Any, Protocol, runtime_checkable

from carhunt.browser.actions import query_first, text_of
from carhunt.sites.cartotrade.selectors import (
    BASE_URL,
    DETAIL_ITEMS,
    IMAGE_SELECTORS,
    LOCATION_SELECTORS,
    PRICE_SELECTORS,
    REGISTRATION_INPUT,
    TITLE_LINK_SELECTORS,
)

logger = logging.getLogger(__name__)

SOURCE_NAME = "CarToTrade"


@runtime_checkable
class ElementLike(Protocol):
    """Minimal element interface so tests can use AsyncMock instead of patchright."""

    async def query_selector(self, selector: str) -> "ElementLike | None": ...
    async def query_selector_all(self, selector: str) -> "list[ElementLike]": ...
    async def get_attribute(self, name: str) -> str | None: ...
    async def text_content(self) -> str | None: ...


def absolute_url(href: str | None) -> str:
    if not href:
        return ""
    href = href.strip()
    return f"{BASE_URL}{href}" if href.startswith("/") else href


def match_model_option(model: str, options: list[dict[str, Any]]) -> str | None:
    """Value of the first option whose text contains ``model`` (case-insensitive)."""
    wanted = model.strip().upper()
    if not wanted:
        return None
    for opt in options:
        text = opt.get("text")
        if text and wanted in str(text).upper():
            return str(opt.get("value", ""))
    return None


class CarToTradeParser:
    """Parses CarToTrade ``.panel`` cards into raw record dicts."""

    async def parse_cards(self, cards: list[ElementLike]) -> list[dict[str, Any]]:
        """Parse multiple cards, skipping any that fail."""
        results: list[dict[str, Any]] = []
        for card in cards:
            try:
                record = await self.parse_card(card)
                if record is not None:
                    results.append(record)
            except Exception:
                logger.debug("Failed to parse card, skipping", exc_info=True)
        return results

    async def parse_card(self, card: ElementLike) -> dict[str, Any] | None:
        """Parse one card. Returns None if the card has no title link."""
        link = await query_first(card, TITLE_LINK_SELECTORS)
        if link is None:
            logger.debug("Card has no title link — skipping")
            return None

        title_text = await link.text_content()
        return {
            "url": absolute_url(await link.get_attribute("href")),
            "imageUrl": await self._image_url(card),
            "title": " ".join(title_text.split()) if title_text else "",
            "price": await text_of(card, PRICE_SELECTORS),
            "location": await text_of(card, LOCATION_SELECTORS),
            "registration": await self._registration(card),
            "mileage": await self._mileage(card),
            "source": SOURCE_NAME,
        }

    # --- Private helpers ---

    async def _image_url(self, card: ElementLike) -> str:
        # Cards without photos show a "no images yet" heading instead.
        img = await query_first(card, IMAGE_SELECTORS)
        if img is None:
            return ""
        src = await img.get_attribute("src")
        return src.strip() if src else ""

    async def _registration(self, card: ElementLike) -> str:
        field = await card.query_selector(REGISTRATION_INPUT)
        if field is None:
            return ""
        value = await field.get_attribute("value")
        return value.strip() if value else ""

    async def _mileage(self, card: ElementLike) -> str:
        for item in await card.query_selector_all(DETAIL_ITEMS):
            text = await item.text_content()
            if text and "miles" in text.lower():
                return " ".join(text.split())
        return ""
